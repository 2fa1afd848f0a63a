"""Rewrites a spoken command prefix into its configured injection text."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Optional

from command_config import CommandConfigStore, CommandIndex, CompiledTrigger
from interfaces import FocusProbe
from phonetic import DEFAULT_BOUNDARY_PENALTY, align

logger = logging.getLogger("voxterm.commands")

_WORD = re.compile(r"\S+")


@dataclass(frozen=True)
class CommandMatch:
    trigger: CompiledTrigger
    confidence: float
    consumed: str
    remainder: str

    @property
    def output(self) -> str:
        return self.trigger.command.inject + self.remainder


class CommandMatchEngine:
    def __init__(
        self,
        store: CommandConfigStore,
        focus_probe: FocusProbe,
        boundary_penalty: float = DEFAULT_BOUNDARY_PENALTY,
    ) -> None:
        self._store = store
        self._focus_probe = focus_probe
        self.boundary_penalty = boundary_penalty

    def match(self, transcript: str, index: Optional[CommandIndex] = None) -> Optional[CommandMatch]:
        """Find the longest trigger that clears its threshold at the start of
        ``transcript``. Ignores the enabled flag and focus."""
        index = index or self._store.snapshot
        if not index.triggers:
            return None
        spans = [m.span() for m in _WORD.finditer(transcript)][: index.config.match_first_n_words]
        if not spans:
            return None
        words = [transcript[start:end] for start, end in spans]
        for compiled in index.triggers:
            result = align(compiled.phrase, words, boundary_penalty=self.boundary_penalty)
            if result is None or result.words_consumed == 0:
                continue
            if result.confidence < compiled.threshold(index.config.default_threshold):
                continue
            end = spans[result.words_consumed - 1][1]
            return CommandMatch(
                trigger=compiled,
                confidence=result.confidence,
                consumed=transcript[:end],
                remainder=transcript[end:],
            )
        return None

    def rewrite(self, transcript: str) -> str:
        index = self._store.snapshot
        if not index.config.enabled or not index.triggers:
            return transcript
        if not self._focus_probe.is_terminal_focused(index.config.terminal_apps):
            return transcript
        found = self.match(transcript, index)
        if found is None:
            return transcript
        logger.info(
            "voice command %r matched (confidence=%.2f)",
            found.trigger.command.trigger,
            found.confidence,
        )
        return found.output
