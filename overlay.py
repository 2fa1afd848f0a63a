"""Floating status overlay: capture state, live level and errors."""

from __future__ import annotations

try:
    from PySide6.QtCore import Qt, QTimer
    from PySide6.QtWidgets import QApplication, QLabel, QProgressBar, QVBoxLayout, QWidget
except Exception:  # pragma: no cover
    Qt = None  # type: ignore
    QTimer = None  # type: ignore
    QApplication = None  # type: ignore
    QLabel = object  # type: ignore
    QProgressBar = object  # type: ignore
    QVBoxLayout = object  # type: ignore
    QWidget = object  # type: ignore

_TEXT_STYLE = (
    "color: {color}; font-size: 16px; padding: 12px 16px 4px 16px;"
    "background: rgba(0,0,0,190); border-top-left-radius: 12px; border-top-right-radius: 12px;"
)
_LEVEL_STYLE = (
    "QProgressBar { background: rgba(0,0,0,190); border: none; height: 6px;"
    " border-bottom-left-radius: 12px; border-bottom-right-radius: 12px; }"
    "QProgressBar::chunk { background: #4CD964; }"
)


class OverlayWindow(QWidget):
    def __init__(self) -> None:
        if Qt is None:
            raise RuntimeError("PySide6 is not installed")
        super().__init__()
        self.setWindowFlags(Qt.WindowStaysOnTopHint | Qt.FramelessWindowHint | Qt.Tool)
        self.setAttribute(Qt.WA_TranslucentBackground, True)
        self.setFixedWidth(420)

        self._label = QLabel("")
        self._label.setWordWrap(True)
        self._level = QProgressBar()
        self._level.setRange(0, 100)
        self._level.setTextVisible(False)
        self._level.setStyleSheet(_LEVEL_STYLE)
        self._set_color("white")

        layout = QVBoxLayout()
        layout.setContentsMargins(0, 0, 0, 0)
        layout.setSpacing(0)
        layout.addWidget(self._label)
        layout.addWidget(self._level)
        self.setLayout(layout)

        self._hide_timer: QTimer | None = None

    def _set_color(self, color: str) -> None:
        self._label.setStyleSheet(_TEXT_STYLE.format(color=color))

    def _center_top(self) -> None:
        if QApplication is None:
            return
        screen = QApplication.primaryScreen()
        if screen is None:
            return
        geom = screen.availableGeometry()
        self.adjustSize()
        self.move(geom.x() + (geom.width() - self.width()) // 2, geom.y() + 40)

    def show_status(self, text: str) -> None:
        self._cancel_hide_timer()
        self._set_color("white")
        self._label.setText(text)
        self._center_top()
        self.show()

    def set_level(self, level: float) -> None:
        # quiet speech sits around 0.02-0.1 RMS; scale so it is visible
        self._level.setValue(int(min(level * 10.0, 1.0) * 100))

    def show_error(self, text: str, hide_after_ms: int = 2500) -> None:
        self.show_status(f"⚠️ {text}")
        self._set_color("#FF6B6B")
        self.hide_with_delay(hide_after_ms)

    def hide_with_delay(self, delay_ms: int = 400) -> None:
        self._cancel_hide_timer()
        if QTimer is not None:
            self._hide_timer = QTimer()
            self._hide_timer.setSingleShot(True)
            self._hide_timer.timeout.connect(self._hide_now)
            self._hide_timer.start(delay_ms)

    def _hide_now(self) -> None:
        self._level.setValue(0)
        self.hide()

    def _cancel_hide_timer(self) -> None:
        if self._hide_timer is not None:
            self._hide_timer.stop()
            self._hide_timer = None
