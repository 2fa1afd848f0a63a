from __future__ import annotations

import json
from pathlib import Path

import pytest

from command_config import (
    EMPTY_INDEX,
    CommandConfigStore,
    CommandIndex,
    ConfigFileWatcher,
    parse_command_config,
)
from errors import CONFIG_LOAD_ERROR, ConfigLoadError
from models import DEFAULT_TERMINAL_APPS, CommandConfig, CommandTrigger


def _write(path: Path, data: object) -> None:
    path.write_text(json.dumps(data), encoding="utf-8")


def test_parse_applies_defaults() -> None:
    config = parse_command_config({"commands": [{"trigger": "git status", "inject": "git status -sb"}]})

    assert config.version == 1
    assert config.enabled is True
    assert config.default_threshold == 0.8
    assert config.match_first_n_words == 5
    assert config.terminal_apps == frozenset(DEFAULT_TERMINAL_APPS)
    assert config.commands == (CommandTrigger("git status", "git status -sb"),)


def test_parse_skips_bad_entries() -> None:
    config = parse_command_config(
        {
            "commands": [
                {"trigger": "ok one", "inject": "/one"},
                {"trigger": "", "inject": "/empty-trigger"},
                {"trigger": "no inject", "inject": ""},
                {"trigger": "bad threshold", "inject": "/x", "threshold": 1.5},
                {"trigger": "bad flag", "inject": "/x", "enabled": "yes"},
                "not an object",
                {"trigger": "ok two", "inject": "/two", "threshold": 0.9, "enabled": False},
            ]
        }
    )

    assert [c.trigger for c in config.commands] == ["ok one", "ok two"]
    assert config.commands[1].threshold == 0.9
    assert config.commands[1].enabled is False


@pytest.mark.parametrize(
    "data",
    [
        [],
        {"enabled": "yes"},
        {"default_threshold": 2},
        {"match_first_n_words": 0},
        {"terminal_apps": "com.apple.Terminal"},
        {"commands": {"trigger": "x"}},
        {"version": "one"},
    ],
)
def test_parse_rejects_structural_errors(data: object) -> None:
    with pytest.raises(ValueError):
        parse_command_config(data)


def test_index_orders_longest_trigger_first_and_drops_disabled() -> None:
    index = CommandIndex.compile(
        CommandConfig(
            commands=(
                CommandTrigger("terraform", "/tf"),
                CommandTrigger("terraform design", "/speckit.plan"),
                CommandTrigger("terraform design review", "/review", enabled=False),
                CommandTrigger("git push", "git push"),
            )
        )
    )

    assert [t.command.trigger for t in index.triggers] == ["terraform design", "git push", "terraform"]


def test_trigger_threshold_falls_back_to_default() -> None:
    index = CommandIndex.compile(
        CommandConfig(commands=(CommandTrigger("a b", "/x"), CommandTrigger("c", "/y", threshold=0.6)))
    )
    by_trigger = {t.command.trigger: t for t in index.triggers}
    assert by_trigger["a b"].threshold(0.8) == 0.8
    assert by_trigger["c"].threshold(0.8) == 0.6


def test_store_starts_empty_and_disabled(tmp_path: Path) -> None:
    store = CommandConfigStore(path=tmp_path / "commands.json")
    assert store.snapshot is EMPTY_INDEX
    assert store.snapshot.config.enabled is False


def test_load_missing_file_uses_defaults(tmp_path: Path) -> None:
    store = CommandConfigStore(path=tmp_path / "commands.json")
    index = store.load()
    assert index.config.enabled is True
    assert index.triggers == ()
    assert store.terminal_apps == frozenset(DEFAULT_TERMINAL_APPS)


def test_load_reads_file(tmp_path: Path) -> None:
    path = tmp_path / "commands.json"
    _write(
        path,
        {
            "terminal_apps": ["com.example.Term"],
            "commands": [{"trigger": "terraform design", "inject": "/speckit.plan"}],
        },
    )
    store = CommandConfigStore(path=path)

    index = store.load()

    assert len(index.triggers) == 1
    assert store.terminal_apps == frozenset({"com.example.Term"})
    assert store.last_error is None


def test_malformed_file_keeps_previous_snapshot(tmp_path: Path) -> None:
    path = tmp_path / "commands.json"
    _write(path, {"commands": [{"trigger": "git push", "inject": "git push"}]})
    store = CommandConfigStore(path=path)
    good = store.load()

    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(ConfigLoadError) as info:
        store.load()

    assert store.snapshot is good
    assert info.value.code == CONFIG_LOAD_ERROR
    assert store.last_error is info.value


def test_first_load_failure_leaves_matching_disabled(tmp_path: Path) -> None:
    path = tmp_path / "commands.json"
    _write(path, {"enabled": "sometimes"})
    store = CommandConfigStore(path=path)

    with pytest.raises(ConfigLoadError):
        store.load()

    assert store.snapshot is EMPTY_INDEX


def test_reload_reports_instead_of_raising(tmp_path: Path) -> None:
    path = tmp_path / "commands.json"
    errors: list[tuple[str, str]] = []
    store = CommandConfigStore(path=path, on_error=lambda c, m: errors.append((c, m)))
    path.write_text("[]", encoding="utf-8")

    assert store.reload() is False
    assert errors[0][0] == CONFIG_LOAD_ERROR
    assert str(path) in errors[0][1]

    _write(path, {"commands": []})
    assert store.reload() is True


def test_watcher_reloads_on_change(tmp_path: Path) -> None:
    path = tmp_path / "commands.json"
    _write(path, {"commands": []})
    store = CommandConfigStore(path=path)
    store.load()
    watcher = ConfigFileWatcher(store)
    assert watcher.poll() is True  # first poll records the signature
    assert watcher.poll() is False

    _write(path, {"commands": [{"trigger": "git status", "inject": "git status -sb"}]})

    assert watcher.poll() is True
    assert [t.command.trigger for t in store.snapshot.triggers] == ["git status"]


def test_watcher_ignores_missing_file(tmp_path: Path) -> None:
    store = CommandConfigStore(path=tmp_path / "missing.json")
    watcher = ConfigFileWatcher(store)
    assert watcher.poll() is False
    assert store.snapshot is EMPTY_INDEX
