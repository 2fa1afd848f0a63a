"""Text insertion through the clipboard and a synthetic paste shortcut."""

from __future__ import annotations

import logging
import time

from errors import NO_ACTIVE_TARGET, InsertionFailed
from models import PasteResult

try:
    import pyperclip
except Exception:  # pragma: no cover
    pyperclip = None  # type: ignore

try:
    from pynput.keyboard import Controller, Key
except Exception:  # pragma: no cover
    Controller = None  # type: ignore
    Key = None  # type: ignore

logger = logging.getLogger("voxterm.paste")


class ClipboardPasteService:
    """Puts the text on the clipboard, sends modifier+V to the focused app and
    then puts the previous clipboard contents back."""

    def __init__(self, restore_delay_s: float = 0.1, modifier: str = "cmd") -> None:
        self._restore_delay_s = restore_delay_s
        self._modifier = modifier

    def insert(self, text: str) -> None:
        result = self.paste_text(text)
        if not result.success:
            raise InsertionFailed(result.reason)

    def paste_text(self, text: str) -> PasteResult:
        if not text.strip():
            return PasteResult(success=False, reason="empty text", clipboard_restored=True)
        if pyperclip is None or Controller is None or Key is None:
            return PasteResult(
                success=False,
                reason="clipboard/keyboard dependency missing",
                clipboard_restored=False,
            )

        try:
            previous = pyperclip.paste()
        except Exception as exc:
            logger.error("clipboard unavailable: %s", exc)
            return PasteResult(success=False, reason=f"clipboard unavailable: {exc}", clipboard_restored=False)

        try:
            pyperclip.copy(text)
            self._send_shortcut()
            # the target app reads the clipboard asynchronously
            time.sleep(self._restore_delay_s)
        except Exception as exc:
            logger.error("paste failed: %s", exc)
            return PasteResult(
                success=False,
                reason=f"{NO_ACTIVE_TARGET}: {exc}",
                clipboard_restored=self._put_back(previous),
            )

        restored = self._put_back(previous)
        logger.debug("pasted %d characters (clipboard restored=%s)", len(text), restored)
        return PasteResult(success=True, reason="ok", clipboard_restored=restored)

    def _send_shortcut(self) -> None:
        keyboard = Controller()
        with keyboard.pressed(getattr(Key, self._modifier)):
            keyboard.tap("v")

    def _put_back(self, previous: str) -> bool:
        try:
            pyperclip.copy(previous)
        except Exception as exc:
            logger.warning("could not restore clipboard: %s", exc)
            return False
        return True
