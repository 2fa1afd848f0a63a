from __future__ import annotations

import threading

import numpy as np
import pytest

from audio_buffer import AudioCaptureBuffer, CaptureArbiter
from models import AudioChunk


def _chunk(value: int, n: int = 1600) -> AudioChunk:
    return AudioChunk(np.full(n, value, dtype=np.int16))


def test_empty_buffer() -> None:
    buffer = AudioCaptureBuffer()
    assert buffer.chunk_count == 0
    assert buffer.total_duration == 0.0
    assert buffer.current_level == 0.0
    assert buffer.peak_level == 0
    assert buffer.all_samples.size == 0
    assert buffer.all_samples.dtype == np.int16


def test_aggregates_follow_appends() -> None:
    buffer = AudioCaptureBuffer()
    buffer.append(_chunk(100))
    buffer.append(_chunk(900, n=800))
    buffer.append(_chunk(-50))

    assert buffer.chunk_count == 3
    assert buffer.total_duration == pytest.approx(sum(c.duration for c in buffer.chunks))
    assert buffer.peak_level == 900
    assert buffer.current_level == pytest.approx(50.0)
    samples = buffer.all_samples
    assert samples.size == 4000
    assert samples[0] == 100 and samples[1600] == 900 and samples[-1] == -50


def test_clear_resets_everything() -> None:
    buffer = AudioCaptureBuffer()
    buffer.append(_chunk(100))
    buffer.mark_complete()
    buffer.clear()

    assert buffer.chunk_count == 0
    assert buffer.total_duration == 0.0
    assert buffer.peak_level == 0
    assert not buffer.is_complete
    assert buffer.append(_chunk(1))


def test_append_after_complete_is_refused() -> None:
    buffer = AudioCaptureBuffer()
    assert buffer.append(_chunk(100))
    buffer.mark_complete()

    assert buffer.append(_chunk(200)) is False
    assert buffer.chunk_count == 1
    assert buffer.rejected_chunks == 1
    assert buffer.peak_level == 100


def test_concurrent_appends_are_all_kept() -> None:
    buffer = AudioCaptureBuffer()
    chunk = _chunk(10)

    def writer() -> None:
        for _ in range(250):
            buffer.append(chunk)

    threads = [threading.Thread(target=writer) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert buffer.chunk_count == 1000
    assert buffer.total_duration == pytest.approx(100.0)
    assert buffer.all_samples.size == 1_600_000


def test_arbiter_grants_one_owner_at_a_time() -> None:
    arbiter = CaptureArbiter()
    assert arbiter.acquire("hotkey")
    assert arbiter.acquire("hotkey")
    assert not arbiter.acquire("wake_word")

    arbiter.release("wake_word")  # not the owner, ignored
    assert arbiter.owner == "hotkey"

    arbiter.release("hotkey")
    assert arbiter.owner is None
    assert arbiter.acquire("wake_word")
