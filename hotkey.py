"""Global push-to-talk hotkey based on pynput."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

try:
    from pynput import keyboard
except Exception:  # pragma: no cover
    keyboard = None  # type: ignore

logger = logging.getLogger("voxterm.hotkey")

Handler = Callable[[], None]


class GlobalHotkeyAdapter:
    """Hold ``hotkey_name`` to talk; press ``cancel_key_name`` while held to
    abort. Key names use pynput's ``str(key)`` form, e.g. ``Key.alt_l``.

    A cancelled hold does not report its release.
    """

    def __init__(self, hotkey_name: str = "Key.alt_l", cancel_key_name: str = "Key.esc") -> None:
        self.hotkey_name = hotkey_name
        self.cancel_key_name = cancel_key_name
        self._listener: Optional[object] = None
        self._on_press: Optional[Handler] = None
        self._on_release: Optional[Handler] = None
        self._on_cancel: Optional[Handler] = None
        self._held = False
        self._cancelled = False
        self._lock = threading.Lock()

    @property
    def held(self) -> bool:
        return self._held

    def start(self, on_press: Handler, on_release: Handler, on_cancel: Optional[Handler] = None) -> None:
        if keyboard is None:
            raise RuntimeError("pynput is not installed")
        self._on_press = on_press
        self._on_release = on_release
        self._on_cancel = on_cancel
        self._listener = keyboard.Listener(on_press=self._key_down, on_release=self._key_up)
        self._listener.start()
        logger.info("hotkey %s armed (cancel: %s)", self.hotkey_name, self.cancel_key_name)

    def stop(self) -> None:
        listener, self._listener = self._listener, None
        if listener is not None:
            listener.stop()

    def _key_down(self, key: object) -> None:
        name = str(key)
        if name == self.cancel_key_name:
            self._cancel_hold()
            return
        if name != self.hotkey_name:
            return
        with self._lock:
            # auto-repeat delivers more presses while held
            if self._held:
                return
            self._held = True
            self._cancelled = False
        if self._on_press:
            self._on_press()

    def _key_up(self, key: object) -> None:
        if str(key) != self.hotkey_name:
            return
        with self._lock:
            if not self._held:
                return
            self._held = False
            notify = not self._cancelled
        if notify and self._on_release:
            self._on_release()

    def _cancel_hold(self) -> None:
        with self._lock:
            if not self._held or self._cancelled:
                return
            self._cancelled = True
        logger.debug("hold cancelled")
        if self._on_cancel:
            self._on_cancel()
