"""Chunk accumulation shared between the audio callback and a controller."""

from __future__ import annotations

import logging
import threading
from typing import Optional

import numpy as np

from models import CHUNK_SIZE, AudioChunk

logger = logging.getLogger("voxterm.audio")


class AudioCaptureBuffer:
    """Ordered chunks appended by the audio thread, read by the controller.

    Aggregates are maintained on append so readers never walk the chunk list
    while holding the lock; the only O(n) operation is ``all_samples``.
    """

    def __init__(self, chunk_size: int = CHUNK_SIZE) -> None:
        self.chunk_size = chunk_size
        self._lock = threading.Lock()
        self._chunks: list[AudioChunk] = []
        self._total_duration = 0.0
        self._peak_level = 0
        self._is_complete = False
        self.rejected_chunks = 0

    def append(self, chunk: AudioChunk) -> bool:
        with self._lock:
            if self._is_complete:
                self.rejected_chunks += 1
                return False
            self._chunks.append(chunk)
            self._total_duration += chunk.duration
            if chunk.peak_amplitude > self._peak_level:
                self._peak_level = chunk.peak_amplitude
            return True

    def clear(self) -> None:
        with self._lock:
            self._chunks = []
            self._total_duration = 0.0
            self._peak_level = 0
            self._is_complete = False
            self.rejected_chunks = 0

    def mark_complete(self) -> None:
        with self._lock:
            self._is_complete = True

    @property
    def is_complete(self) -> bool:
        return self._is_complete

    @property
    def chunks(self) -> tuple[AudioChunk, ...]:
        with self._lock:
            return tuple(self._chunks)

    @property
    def chunk_count(self) -> int:
        with self._lock:
            return len(self._chunks)

    @property
    def total_duration(self) -> float:
        with self._lock:
            return self._total_duration

    @property
    def current_level(self) -> float:
        """RMS of the most recent chunk, 0.0 when empty."""
        with self._lock:
            return self._chunks[-1].rms_level if self._chunks else 0.0

    @property
    def peak_level(self) -> int:
        with self._lock:
            return self._peak_level

    @property
    def all_samples(self) -> np.ndarray:
        chunks = self.chunks
        if not chunks:
            return np.zeros(0, dtype=np.int16)
        return np.concatenate([c.samples for c in chunks])


class CaptureArbiter:
    """Lets one capture session at a time own the microphone."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._owner: Optional[str] = None

    @property
    def owner(self) -> Optional[str]:
        return self._owner

    def acquire(self, owner: str) -> bool:
        with self._lock:
            if self._owner is not None and self._owner != owner:
                logger.info("capture refused for %s, held by %s", owner, self._owner)
                return False
            self._owner = owner
            return True

    def release(self, owner: str) -> None:
        with self._lock:
            if self._owner == owner:
                self._owner = None
