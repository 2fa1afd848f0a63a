"""Protocol interfaces for the collaborators the state machines drive."""

from __future__ import annotations

from typing import Callable, Iterable, Protocol, Sequence

import numpy as np

from models import AudioChunk, TranscriptionResult, TriggerKeyword

ChunkCallback = Callable[[AudioChunk], None]
KeywordCallback = Callable[[str], None]


class Recorder(Protocol):
    def start(self, on_chunk: ChunkCallback) -> None: ...

    def stop(self) -> None: ...


class Transcriber(Protocol):
    def transcribe(self, samples: np.ndarray, language: str) -> TranscriptionResult:
        """Raise ``errors.TranscriptionFailed`` on failure."""
        ...


class WakeWordDetector(Protocol):
    def start(self, keywords: Sequence[TriggerKeyword], on_keyword: KeywordCallback) -> None:
        """Raise ``errors.WakeWordInitFailed`` if the detector cannot start."""
        ...

    def accept_audio(self, chunk: AudioChunk) -> None: ...

    def stop(self) -> None: ...


class TextInserter(Protocol):
    def insert(self, text: str) -> None:
        """Raise ``errors.InsertionFailed`` on failure."""
        ...


class FocusProbe(Protocol):
    def is_terminal_focused(self, terminal_apps: Iterable[str]) -> bool: ...
