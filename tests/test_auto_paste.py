from __future__ import annotations

from unittest.mock import MagicMock

import pytest

import auto_paste
from auto_paste import ClipboardPasteService
from errors import InsertionFailed


def _missing_dependencies(monkeypatch) -> None:  # noqa: ANN001
    monkeypatch.setattr(auto_paste, "pyperclip", None)
    monkeypatch.setattr(auto_paste, "Controller", None)
    monkeypatch.setattr(auto_paste, "Key", None)


def test_paste_returns_failure_when_dependencies_missing(monkeypatch) -> None:  # noqa: ANN001
    _missing_dependencies(monkeypatch)

    service = ClipboardPasteService()
    result = service.paste_text("hello")

    assert result.success is False
    assert result.clipboard_restored is False


def test_paste_returns_failure_on_empty_text() -> None:
    service = ClipboardPasteService()
    result = service.paste_text("   ")

    assert result.success is False
    assert result.clipboard_restored is True


def test_paste_copies_text_and_restores_clipboard(monkeypatch) -> None:  # noqa: ANN001
    clipboard = MagicMock()
    clipboard.paste.return_value = "previous"
    monkeypatch.setattr(auto_paste, "pyperclip", clipboard)
    monkeypatch.setattr(auto_paste, "Controller", MagicMock())
    monkeypatch.setattr(auto_paste, "Key", MagicMock())

    result = ClipboardPasteService(restore_delay_s=0).paste_text("git status")

    assert result.success is True
    assert result.clipboard_restored is True
    assert [c.args[0] for c in clipboard.copy.call_args_list] == ["git status", "previous"]


def test_paste_failure_restores_clipboard(monkeypatch) -> None:  # noqa: ANN001
    clipboard = MagicMock()
    clipboard.paste.return_value = "previous"
    controller = MagicMock()
    controller.return_value.tap.side_effect = RuntimeError("not trusted")
    monkeypatch.setattr(auto_paste, "pyperclip", clipboard)
    monkeypatch.setattr(auto_paste, "Controller", controller)
    monkeypatch.setattr(auto_paste, "Key", MagicMock())

    result = ClipboardPasteService(restore_delay_s=0).paste_text("hello")

    assert result.success is False
    assert "not trusted" in result.reason
    assert result.clipboard_restored is True
    clipboard.copy.assert_called_with("previous")


def test_insert_raises_when_paste_fails(monkeypatch) -> None:  # noqa: ANN001
    _missing_dependencies(monkeypatch)

    with pytest.raises(InsertionFailed, match="dependency missing"):
        ClipboardPasteService().insert("hello")


def test_unreadable_clipboard_is_reported(monkeypatch) -> None:  # noqa: ANN001
    clipboard = MagicMock()
    clipboard.paste.side_effect = RuntimeError("no pasteboard")
    monkeypatch.setattr(auto_paste, "pyperclip", clipboard)
    monkeypatch.setattr(auto_paste, "Controller", MagicMock())
    monkeypatch.setattr(auto_paste, "Key", MagicMock())

    result = ClipboardPasteService(restore_delay_s=0).paste_text("hello")

    assert result.success is False
    assert result.clipboard_restored is False
    clipboard.copy.assert_not_called()
