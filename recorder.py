"""Microphone recorder adapter."""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Optional

from errors import AudioCaptureFailed
from interfaces import ChunkCallback
from models import CHANNELS, SAMPLE_RATE, AudioChunk

try:
    import numpy as np
except Exception:  # pragma: no cover
    np = None  # type: ignore

try:
    import sounddevice as sd
except Exception:  # pragma: no cover
    sd = None  # type: ignore

logger = logging.getLogger("voxterm.recorder")


class SoundDeviceRecorder:
    """Opens a 16kHz mono int16 input stream and emits one chunk per block."""

    def __init__(
        self,
        sample_rate: int = SAMPLE_RATE,
        channels: int = CHANNELS,
        chunk_ms: int = 100,
        device: Optional[int | str] = None,
    ) -> None:
        self.sample_rate = sample_rate
        self.channels = channels
        self.chunk_ms = chunk_ms
        self.device = device
        self._stream: Any = None
        self._running = False
        self._lock = threading.Lock()
        self._on_chunk: Optional[ChunkCallback] = None
        self.overflows = 0

    @property
    def running(self) -> bool:
        return self._running

    def start(self, on_chunk: ChunkCallback) -> None:
        with self._lock:
            if self._running:
                return
            if sd is None or np is None:
                raise AudioCaptureFailed("sounddevice is not installed")
            self._on_chunk = on_chunk
            blocksize = int(self.sample_rate * (self.chunk_ms / 1000.0))
            try:
                self._stream = sd.InputStream(
                    samplerate=self.sample_rate,
                    channels=self.channels,
                    dtype="int16",
                    blocksize=blocksize,
                    device=self.device,
                    callback=self._on_audio,
                )
                self._stream.start()
            except Exception as exc:
                self._stream = None
                raise AudioCaptureFailed(f"could not open input stream: {exc}") from exc
            self._running = True
            logger.debug("input stream started (blocksize=%d)", blocksize)

    def stop(self) -> None:
        with self._lock:
            if not self._running:
                return
            self._running = False
            stream, self._stream = self._stream, None
            if stream is not None:
                stream.stop()
                stream.close()
            logger.debug("input stream stopped")

    def _on_audio(self, indata: Any, frames: int, time_info: Any, status: Any) -> None:
        on_chunk = self._on_chunk
        if not self._running or on_chunk is None or np is None:
            return
        if status:
            self.overflows += 1
            logger.debug("input status: %s", status)
        samples = np.asarray(indata, dtype=np.int16)
        if samples.ndim > 1:
            samples = samples[:, 0]
        chunk = AudioChunk(
            samples.copy(),
            sample_rate=self.sample_rate,
            channels=1,
            timestamp=time.time(),
        )
        try:
            on_chunk(chunk)
        except Exception:
            logger.exception("chunk handler failed")
