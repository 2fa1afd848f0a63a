from __future__ import annotations

import os

import pytest

pytest.importorskip("PySide6.QtWidgets")
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

from PySide6.QtWidgets import QApplication  # noqa: E402

import config  # noqa: E402
import main  # noqa: E402
from config import JsonConfigStore  # noqa: E402
from models import TriggerKeyword, VoiceTriggerConfig  # noqa: E402


class FakeRecorder:
    def __init__(self) -> None:
        self.started = 0

    def start(self, on_chunk) -> None:  # noqa: ANN001
        self.started += 1

    def stop(self) -> None:
        pass


class FakeDetector:
    def __init__(self) -> None:
        self.phrases: list[str] = []

    def start(self, keywords, on_keyword) -> None:  # noqa: ANN001
        self.phrases = [k.phrase for k in keywords]

    def accept_audio(self, chunk) -> None:  # noqa: ANN001
        pass

    def stop(self) -> None:
        pass


@pytest.fixture
def app_env(tmp_path, monkeypatch):  # noqa: ANN001, ANN201
    monkeypatch.setattr(config, "CONFIG_DIR", tmp_path)
    monkeypatch.setattr(main, "SoundDeviceRecorder", FakeRecorder)
    monkeypatch.setattr(main, "QApplication", lambda argv: QApplication.instance() or QApplication(argv))
    return JsonConfigStore(tmp_path / "config.json")


def _menu_labels(app: main.App) -> list[str]:
    return [action.text() for action in app.tray.contextMenu().actions() if action.text()]


def test_detector_enables_wake_word_monitoring(app_env) -> None:  # noqa: ANN001
    app_env.set_voice_trigger(VoiceTriggerConfig(enabled=True, keywords=[TriggerKeyword("Hey Claude")]))
    detector = FakeDetector()

    app = main.App(detector=detector)
    app._enable_wake_word()

    assert app.wake_word is not None
    assert app.wake_word.state.is_monitoring
    assert detector.phrases == ["Hey Claude"]
    assert "Restart Voice Trigger" in _menu_labels(app)

    app.wake_word.disable()
    app.tray.hide()


def test_disabled_voice_trigger_is_not_started(app_env) -> None:  # noqa: ANN001
    app_env.set_voice_trigger(VoiceTriggerConfig(enabled=False, keywords=[TriggerKeyword("Hey Claude")]))

    app = main.App(detector=FakeDetector())
    app._enable_wake_word()

    assert app.wake_word is not None
    assert not app.wake_word.state.is_monitoring
    app.tray.hide()


def test_without_detector_only_hotkey_path_is_wired(app_env) -> None:  # noqa: ANN001
    app = main.App()

    assert app.wake_word is None
    assert "Restart Voice Trigger" not in _menu_labels(app)
    app.tray.hide()
