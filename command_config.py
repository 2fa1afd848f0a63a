"""Voice command configuration: parsing, compilation and hot reload."""

from __future__ import annotations

import json
import logging
import os
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Optional

from errors import CONFIG_LOAD_ERROR, ConfigLoadError
from models import DEFAULT_TERMINAL_APPS, CommandConfig, CommandTrigger
from phonetic import DEFAULT_MAX_SPLIT, PhoneticPhrase

logger = logging.getLogger("voxterm.commands")

ErrorCallback = Callable[[str, str], None]

DEFAULT_COMMANDS_PATH = Path.home() / ".config" / "voxterm" / "commands.json"


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _threshold(value: Any, where: str) -> float:
    if not _is_number(value) or not 0.0 <= float(value) <= 1.0:
        raise ValueError(f"{where} must be a number between 0 and 1, got {value!r}")
    return float(value)


def _parse_command(entry: Any, index: int) -> CommandTrigger:
    if not isinstance(entry, dict):
        raise ValueError("entry is not an object")
    trigger = entry.get("trigger")
    inject = entry.get("inject")
    if not isinstance(trigger, str) or not trigger.split():
        raise ValueError("trigger must be a non-empty string")
    if not isinstance(inject, str) or not inject:
        raise ValueError("inject must be a non-empty string")
    threshold = entry.get("threshold")
    if threshold is not None:
        threshold = _threshold(threshold, f"commands[{index}].threshold")
    enabled = entry.get("enabled", True)
    if not isinstance(enabled, bool):
        raise ValueError("enabled must be a boolean")
    return CommandTrigger(trigger=trigger.strip(), inject=inject, threshold=threshold, enabled=enabled)


def parse_command_config(data: Any) -> CommandConfig:
    """Validate a decoded command document.

    Structural problems raise ValueError. A single bad command entry is
    logged and skipped so the rest of the file still applies.
    """
    if not isinstance(data, dict):
        raise ValueError("top level must be an object")

    version = data.get("version", 1)
    if not isinstance(version, int) or isinstance(version, bool):
        raise ValueError(f"version must be an integer, got {version!r}")
    enabled = data.get("enabled", True)
    if not isinstance(enabled, bool):
        raise ValueError(f"enabled must be a boolean, got {enabled!r}")
    default_threshold = _threshold(data.get("default_threshold", 0.8), "default_threshold")
    first_n = data.get("match_first_n_words", 5)
    if not isinstance(first_n, int) or isinstance(first_n, bool) or first_n < 1:
        raise ValueError(f"match_first_n_words must be a positive integer, got {first_n!r}")

    terminal_apps = data.get("terminal_apps", list(DEFAULT_TERMINAL_APPS))
    if not isinstance(terminal_apps, list) or not all(isinstance(a, str) for a in terminal_apps):
        raise ValueError("terminal_apps must be a list of strings")

    raw_commands = data.get("commands", [])
    if not isinstance(raw_commands, list):
        raise ValueError("commands must be a list")
    commands = []
    for index, entry in enumerate(raw_commands):
        try:
            commands.append(_parse_command(entry, index))
        except ValueError as exc:
            logger.warning("skipping commands[%d]: %s", index, exc)

    return CommandConfig(
        version=version,
        enabled=enabled,
        default_threshold=default_threshold,
        match_first_n_words=first_n,
        terminal_apps=frozenset(terminal_apps),
        commands=tuple(commands),
    )


@dataclass(frozen=True)
class CompiledTrigger:
    command: CommandTrigger
    phrase: PhoneticPhrase

    def threshold(self, default: float) -> float:
        return self.command.threshold if self.command.threshold is not None else default


@dataclass(frozen=True)
class CommandIndex:
    """An immutable config snapshot plus its compiled, longest-first triggers."""

    config: CommandConfig
    triggers: tuple[CompiledTrigger, ...]

    @classmethod
    def compile(cls, config: CommandConfig, max_split: int = DEFAULT_MAX_SPLIT) -> CommandIndex:
        compiled = []
        for order, command in enumerate(config.commands):
            if not command.enabled:
                continue
            try:
                phrase = PhoneticPhrase.compile(command.trigger, max_split=max_split)
            except ValueError:
                logger.warning("trigger %r has no words, skipped", command.trigger)
                continue
            compiled.append((order, CompiledTrigger(command, phrase)))
        # longest phrase first; file order breaks remaining ties
        compiled.sort(key=lambda item: (-len(item[1].phrase), -len(item[1].command.trigger), item[0]))
        return cls(config=config, triggers=tuple(c for _, c in compiled))


EMPTY_INDEX = CommandIndex(config=CommandConfig(enabled=False), triggers=())


class CommandConfigStore:
    """Holds the active ``CommandIndex``.

    The snapshot is swapped with a single attribute assignment, so a reader
    that grabs ``snapshot`` once sees one complete configuration.
    """

    def __init__(
        self,
        path: Path | None = None,
        on_error: Optional[ErrorCallback] = None,
        max_split: int = DEFAULT_MAX_SPLIT,
    ) -> None:
        self.path = Path(path) if path is not None else DEFAULT_COMMANDS_PATH
        self._on_error = on_error
        self._max_split = max_split
        self._snapshot = EMPTY_INDEX
        self._reload_lock = threading.Lock()
        self.last_error: Optional[ConfigLoadError] = None

    @property
    def snapshot(self) -> CommandIndex:
        return self._snapshot

    @property
    def terminal_apps(self) -> frozenset[str]:
        return self._snapshot.config.terminal_apps

    def replace(self, config: CommandConfig) -> CommandIndex:
        index = CommandIndex.compile(config, max_split=self._max_split)
        self._snapshot = index
        return index

    def load(self) -> CommandIndex:
        """Read and apply the file. On failure the previous snapshot stays
        active (an empty, disabled one on first load) and ConfigLoadError is
        raised."""
        with self._reload_lock:
            if not self.path.exists():
                logger.info("no command file at %s, using defaults", self.path)
                self.last_error = None
                return self.replace(CommandConfig())
            try:
                data = json.loads(self.path.read_text(encoding="utf-8"))
                config = parse_command_config(data)
            except (OSError, UnicodeDecodeError, json.JSONDecodeError, ValueError) as exc:
                error = ConfigLoadError(self.path, str(exc))
                self.last_error = error
                logger.warning("command config rejected, keeping previous: %s", error)
                raise error from exc
            index = self.replace(config)
            self.last_error = None
            logger.info(
                "loaded %d command trigger(s) from %s (enabled=%s)",
                len(index.triggers),
                self.path,
                config.enabled,
            )
            return index

    def reload(self) -> bool:
        """Change-notification entry point; never raises."""
        try:
            self.load()
        except ConfigLoadError as exc:
            if self._on_error:
                self._on_error(CONFIG_LOAD_ERROR, exc.message)
            return False
        return True


class ConfigFileWatcher:
    """Polls the command file and reloads the store when it changes."""

    def __init__(self, store: CommandConfigStore, interval_s: float = 1.0) -> None:
        self._store = store
        self._interval_s = interval_s
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._signature: Optional[tuple[int, int]] = None

    def _stat(self) -> Optional[tuple[int, int]]:
        try:
            st = os.stat(self._store.path)
        except OSError:
            return None
        return (st.st_mtime_ns, st.st_size)

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._signature = self._stat()
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._worker, name="command-config-watch", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop_event.set()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=0.5)

    def poll(self) -> bool:
        """Reload if the file changed since the last poll. Returns True if a
        reload was attempted."""
        signature = self._stat()
        if signature is None or signature == self._signature:
            return False
        self._signature = signature
        logger.debug("command file changed, reloading")
        self._store.reload()
        return True

    def _worker(self) -> None:
        while not self._stop_event.wait(self._interval_s):
            self.poll()
