"""Tray application: push-to-talk dictation with spoken terminal commands."""

from __future__ import annotations

import logging
import sys
import threading
from functools import lru_cache
from typing import Optional

from audio_buffer import CaptureArbiter
from auto_paste import ClipboardPasteService
from command_config import CommandConfigStore, ConfigFileWatcher
from command_engine import CommandMatchEngine
from config import JsonConfigStore
from errors import ConfigLoadError, VoxtermError
from focus import FrontmostAppProbe
from hotkey import GlobalHotkeyAdapter
from interfaces import WakeWordDetector
from logging_utils import setup_logging
from models import CaptureSession, SessionState, WakeWordState
from overlay import OverlayWindow
from recognizer import DashscopeTranscriber
from recorder import SoundDeviceRecorder
from session_controller import CaptureSessionMachine
from wake_word import WakeWordSessionMachine

try:
    from PySide6.QtCore import QObject, QSize, QUrl, Signal
    from PySide6.QtGui import QAction, QBrush, QColor, QDesktopServices, QIcon, QPainter, QPixmap
    from PySide6.QtWidgets import QApplication, QInputDialog, QMenu, QMessageBox, QSystemTrayIcon
except Exception as exc:  # pragma: no cover
    raise SystemExit(f"PySide6 is required to run the desktop app: {exc}")

logger = logging.getLogger("voxterm.app")

APP_NAME = "Voxterm"

STATE_COLORS = {
    SessionState.IDLE: "#888888",
    SessionState.RECORDING: "#FF4444",
    SessionState.TRANSCRIBING: "#4A90E2",
    SessionState.INSERTING: "#4A90E2",
    SessionState.COMPLETED: "#4CD964",
    SessionState.CANCELLED: "#888888",
}
ERROR_COLOR = "#FF8800"


@lru_cache(maxsize=None)
def _dot_icon(color: str, size: int = 22) -> QIcon:
    """Filled circle used as the tray icon."""
    pixmap = QPixmap(QSize(size, size))
    pixmap.fill(QColor(0, 0, 0, 0))
    painter = QPainter(pixmap)
    painter.setRenderHint(QPainter.Antialiasing, True)
    painter.setBrush(QBrush(QColor(color)))
    painter.setPen(QColor(color))
    painter.drawEllipse(2, 2, size - 4, size - 4)
    painter.end()
    return QIcon(pixmap)


class UIBridge(QObject):
    """Carries worker-thread events onto the Qt thread."""

    state_signal = Signal(str)
    level_signal = Signal(float)
    error_signal = Signal(str)
    session_signal = Signal(str)


class App:
    def __init__(self, detector: Optional[WakeWordDetector] = None) -> None:
        self.app = QApplication(sys.argv)
        self.app.setQuitOnLastWindowClosed(False)
        self.settings = JsonConfigStore()
        self.overlay = OverlayWindow()

        self.ui = UIBridge()
        self.ui.state_signal.connect(self._show_state)
        self.ui.level_signal.connect(self.overlay.set_level)
        self.ui.error_signal.connect(self._show_error)
        self.ui.session_signal.connect(self._show_last_insert)

        self.commands = self._load_commands()
        self.command_watcher = ConfigFileWatcher(self.commands)
        engine = CommandMatchEngine(self.commands, FrontmostAppProbe())
        arbiter = CaptureArbiter()

        self.controller = CaptureSessionMachine(
            recorder=SoundDeviceRecorder(),
            transcriber=DashscopeTranscriber(api_key=self.settings.get_api_key()),
            inserter=ClipboardPasteService(),
            command_engine=engine,
            settings=self.settings.get_capture_settings(),
            arbiter=arbiter,
            on_state_change=lambda _, to_state: self.ui.state_signal.emit(to_state.value),
            on_level=self.ui.level_signal.emit,
            on_error=self._report_error,
            on_session=self._on_session,
        )
        self.wake_word: Optional[WakeWordSessionMachine] = None
        if detector is not None:
            self.wake_word = WakeWordSessionMachine(
                recorder=SoundDeviceRecorder(),
                detector=detector,
                transcriber=DashscopeTranscriber(api_key=self.settings.get_api_key()),
                inserter=ClipboardPasteService(),
                command_engine=engine,
                config=self.settings.get_voice_trigger(),
                arbiter=arbiter,
                on_state_change=self._on_wake_word_state,
                on_error=self._report_error,
            )
        self.hotkey = GlobalHotkeyAdapter(
            hotkey_name=self.settings.get_hotkey(),
            cancel_key_name=self.settings.get_cancel_key(),
        )

        self.tray = QSystemTrayIcon()
        self.tray.setIcon(_dot_icon(STATE_COLORS[SessionState.IDLE]))
        self.tray.setToolTip(f"{APP_NAME}: ready")
        self.tray.setContextMenu(self._build_menu())
        self.tray.show()

    def _load_commands(self) -> CommandConfigStore:
        store = CommandConfigStore(
            path=self.settings.get_commands_path(),
            on_error=self._report_error,
        )
        try:
            store.load()
        except ConfigLoadError as exc:
            # voice commands stay off until the file is fixed; dictation still works
            self.overlay.show_error(exc.message)
        return store

    def _build_menu(self) -> QMenu:
        menu = QMenu()
        entries = [
            ("Set API Key...", self._ask_api_key),
            ("Set Hotkey...", self._ask_hotkey),
            ("Set Language...", self._ask_language),
            None,
            ("Open Voice Commands File", self._open_commands_file),
            ("Reload Voice Commands", self._reload_commands),
            None,
            ("Quit", self.quit),
        ]
        if self.wake_word is not None:
            entries.insert(-2, ("Restart Voice Trigger", self._restart_wake_word))
        for entry in entries:
            if entry is None:
                menu.addSeparator()
                continue
            label, handler = entry
            action = QAction(label, menu)
            action.triggered.connect(handler)
            menu.addAction(action)
        return menu

    # ------------------------------------------------------------------
    # Menu actions
    # ------------------------------------------------------------------

    def _ask_api_key(self) -> None:
        value, ok = QInputDialog.getText(None, APP_NAME, "DashScope API key")
        if not ok:
            return
        self.settings.set_api_key(value)
        self.controller.replace_transcriber(DashscopeTranscriber(api_key=value))
        if self.wake_word is not None:
            self.wake_word.replace_transcriber(DashscopeTranscriber(api_key=value))

    def _ask_hotkey(self) -> None:
        value, ok = QInputDialog.getText(None, APP_NAME, "Hold-to-talk key (pynput name, e.g. Key.alt_l)")
        if ok and value:
            self.settings.set_hotkey(value)
            QMessageBox.information(None, APP_NAME, "Hotkey saved. It applies after a restart.")

    def _ask_language(self) -> None:
        value, ok = QInputDialog.getText(None, APP_NAME, "Transcription language code", text=self.settings.get_language())
        if ok and value:
            self.settings.set_language(value)
            self.controller.settings.language = value
            if self.wake_word is not None:
                self.wake_word.config.language = value

    def _open_commands_file(self) -> None:
        QDesktopServices.openUrl(QUrl.fromLocalFile(str(self.commands.path)))

    def _reload_commands(self) -> None:
        if self.commands.reload():
            count = len(self.commands.snapshot.triggers)
            self.tray.showMessage(APP_NAME, f"{count} voice command(s) active")

    def _restart_wake_word(self) -> None:
        if self.wake_word is None:
            return
        self.wake_word.disable()
        self._enable_wake_word()

    # ------------------------------------------------------------------
    # Qt-thread handlers
    # ------------------------------------------------------------------

    def _report_error(self, code: str, message: str) -> None:
        self.ui.error_signal.emit(f"{code}: {message}")

    def _on_wake_word_state(self, _: WakeWordState, to_state: WakeWordState) -> None:
        logger.info("voice trigger: %s", to_state.description)

    def _on_session(self, session: CaptureSession) -> None:
        if session.insertion_success:
            self.ui.session_signal.emit(session.inserted_text)

    def _show_state(self, value: str) -> None:
        state = SessionState(value)
        self.tray.setIcon(_dot_icon(STATE_COLORS[state]))
        if state == SessionState.RECORDING:
            self.overlay.show_status("🎙️ Listening...")
        elif state in (SessionState.TRANSCRIBING, SessionState.INSERTING):
            self.overlay.show_status(state.description)
        elif state == SessionState.IDLE:
            self.overlay.hide_with_delay(400)

    def _show_error(self, message: str) -> None:
        self.tray.setIcon(_dot_icon(ERROR_COLOR))
        self.overlay.show_error(message)

    def _show_last_insert(self, text: str) -> None:
        preview = text if len(text) <= 60 else text[:57] + "..."
        self.tray.setToolTip(f"{APP_NAME}: {preview}")

    # ------------------------------------------------------------------
    # Hotkey handlers (pynput listener thread)
    # ------------------------------------------------------------------

    def _on_hotkey_press(self) -> None:
        try:
            self.controller.start()
        except VoxtermError as exc:
            logger.warning("could not start recording: %s", exc.message)

    def _on_hotkey_release(self) -> None:
        # stop() blocks on transcription
        threading.Thread(target=self._finish_session, name="session-stop", daemon=True).start()

    def _finish_session(self) -> None:
        try:
            self.controller.stop()
        except VoxtermError as exc:
            logger.info("session ended without insertion: %s", exc.code)

    def _on_hotkey_cancel(self) -> None:
        self.controller.cancel("cancelled by hotkey")

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def run(self) -> int:
        self.command_watcher.start()
        self._enable_wake_word()
        try:
            self.hotkey.start(
                on_press=self._on_hotkey_press,
                on_release=self._on_hotkey_release,
                on_cancel=self._on_hotkey_cancel,
            )
        except Exception as exc:
            logger.error("hotkey disabled: %s", exc)
            self.overlay.show_error(f"Hotkey disabled: {exc}")
        return self.app.exec()

    def _enable_wake_word(self) -> None:
        if self.wake_word is None:
            return
        config = self.settings.get_voice_trigger()
        if not config.enabled:
            return
        try:
            self.wake_word.enable(config)
        except VoxtermError as exc:
            logger.error("voice trigger disabled: %s", exc.message)
            self.overlay.show_error(exc.message)

    def quit(self) -> None:
        self.hotkey.stop()
        self.command_watcher.stop()
        if self.wake_word is not None:
            self.wake_word.disable()
        self.controller.cancel("app quit")
        self.app.quit()


def main() -> int:
    _, log_path = setup_logging(console=True)
    logger.info("%s starting, log file %s", APP_NAME, log_path)
    return App().run()


if __name__ == "__main__":
    raise SystemExit(main())
