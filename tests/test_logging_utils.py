from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from logging_utils import LOGGER_NAME, setup_logging


def test_setup_logging_writes_to_rotating_file(tmp_path: Path) -> None:
    root = logging.getLogger(LOGGER_NAME)
    saved = list(root.handlers)
    root.handlers.clear()
    try:
        logger, log_path = setup_logging(str(tmp_path))
        again, _ = setup_logging(str(tmp_path))

        assert again is logger
        assert log_path == str(tmp_path / "voxterm.log")
        handlers = [h for h in logger.handlers if isinstance(h, RotatingFileHandler)]
        assert len(handlers) == 1

        logging.getLogger("voxterm.session").info("idle -> recording")
        handlers[0].flush()
        assert "idle -> recording" in Path(log_path).read_text(encoding="utf-8")
    finally:
        for handler in root.handlers:
            handler.close()
        root.handlers[:] = saved
