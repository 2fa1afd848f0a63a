"""Silence and max-duration limits for an open capture."""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional

logger = logging.getLogger("voxterm.capture")

SILENCE = "silence"
MAX_DURATION = "max_duration"


class CaptureWatchdog:
    """Fires ``on_timeout(kind)`` once, from its own thread, when the capture
    has been silent for ``silence_threshold_s`` or open for ``max_duration_s``.

    ``note_activity()`` restarts the silence window. ``cancel()`` guarantees
    the callback will not be invoked afterwards unless it is already running.
    """

    def __init__(
        self,
        silence_threshold_s: float,
        max_duration_s: float,
        on_timeout: Callable[[str], None],
        poll_interval_s: float = 0.05,
    ) -> None:
        self.silence_threshold_s = silence_threshold_s
        self.max_duration_s = max_duration_s
        self._on_timeout = on_timeout
        self._poll_interval_s = poll_interval_s
        self._cancelled = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._started_at = 0.0
        self._last_activity = 0.0

    def start(self) -> None:
        now = time.monotonic()
        self._started_at = now
        self._last_activity = now
        self._cancelled.clear()
        self._thread = threading.Thread(target=self._worker, name="capture-watchdog", daemon=True)
        self._thread.start()

    def note_activity(self) -> None:
        self._last_activity = time.monotonic()

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def active(self) -> bool:
        return self._thread is not None and self._thread.is_alive() and not self._cancelled.is_set()

    @property
    def silence_remaining(self) -> float:
        return max(0.0, self.silence_threshold_s - (time.monotonic() - self._last_activity))

    def _worker(self) -> None:
        while not self._cancelled.wait(self._poll_interval_s):
            now = time.monotonic()
            if now - self._started_at >= self.max_duration_s:
                kind = MAX_DURATION
            elif now - self._last_activity >= self.silence_threshold_s:
                kind = SILENCE
            else:
                continue
            if self._cancelled.is_set():
                return
            self._cancelled.set()
            logger.info("capture limit reached: %s", kind)
            self._on_timeout(kind)
            return
