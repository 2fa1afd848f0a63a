"""Tests for SoundDeviceRecorder."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import numpy as np
import pytest

from errors import AudioCaptureFailed
from models import AudioChunk
from recorder import SoundDeviceRecorder


# ---------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------

def _make_fake_audio_data(n_samples: int = 1600, value: int = 0) -> np.ndarray:
    """Shape sounddevice hands to the callback: (frames, channels)."""
    return np.full((n_samples, 1), value, dtype=np.int16)


# ---------------------------------------------------------------
# Basic start / stop
# ---------------------------------------------------------------

@patch("recorder.sd")
def test_start_creates_stream_and_runs(mock_sd: MagicMock) -> None:
    mock_stream = MagicMock()
    mock_sd.InputStream.return_value = mock_stream

    recorder = SoundDeviceRecorder()
    recorder.start(lambda chunk: None)

    mock_sd.InputStream.assert_called_once()
    kwargs = mock_sd.InputStream.call_args.kwargs
    assert kwargs["samplerate"] == 16000
    assert kwargs["channels"] == 1
    assert kwargs["dtype"] == "int16"
    assert kwargs["blocksize"] == 1600
    mock_stream.start.assert_called_once()
    assert recorder.running

    recorder.stop()
    mock_stream.stop.assert_called_once()
    mock_stream.close.assert_called_once()
    assert not recorder.running


@patch("recorder.sd")
def test_start_is_idempotent(mock_sd: MagicMock) -> None:
    mock_sd.InputStream.return_value = MagicMock()

    recorder = SoundDeviceRecorder()
    recorder.start(lambda chunk: None)
    recorder.start(lambda chunk: None)  # second call should be no-op

    assert mock_sd.InputStream.call_count == 1
    recorder.stop()


@patch("recorder.sd")
def test_stop_is_idempotent(mock_sd: MagicMock) -> None:
    mock_stream = MagicMock()
    mock_sd.InputStream.return_value = mock_stream

    recorder = SoundDeviceRecorder()
    recorder.start(lambda chunk: None)
    recorder.stop()
    recorder.stop()  # second stop: should not raise

    mock_stream.close.assert_called_once()


@patch("recorder.sd")
def test_stream_open_failure_raises_capture_error(mock_sd: MagicMock) -> None:
    mock_sd.InputStream.side_effect = OSError("device busy")

    recorder = SoundDeviceRecorder()
    with pytest.raises(AudioCaptureFailed, match="device busy"):
        recorder.start(lambda chunk: None)
    assert not recorder.running


# ---------------------------------------------------------------
# Audio callback emits chunks
# ---------------------------------------------------------------

@patch("recorder.sd")
def test_callback_emits_audio_chunks(mock_sd: MagicMock) -> None:
    mock_sd.InputStream.return_value = MagicMock()
    chunks: list[AudioChunk] = []

    recorder = SoundDeviceRecorder(sample_rate=16000, channels=1, chunk_ms=100)
    recorder.start(chunks.append)

    # Simulate callback invocation (like sounddevice would do)
    recorder._on_audio(_make_fake_audio_data(1600, value=300), frames=1600, time_info=None, status=None)

    assert len(chunks) == 1
    chunk = chunks[0]
    assert chunk.sample_rate == 16000
    assert chunk.channels == 1
    assert chunk.samples.shape == (1600,)
    assert chunk.duration == pytest.approx(0.1)
    assert chunk.peak_amplitude == 300

    recorder.stop()


@patch("recorder.sd")
def test_callback_copies_the_device_buffer(mock_sd: MagicMock) -> None:
    mock_sd.InputStream.return_value = MagicMock()
    chunks: list[AudioChunk] = []
    recorder = SoundDeviceRecorder()
    recorder.start(chunks.append)

    data = _make_fake_audio_data(1600, value=100)
    recorder._on_audio(data, frames=1600, time_info=None, status=None)
    data[:] = 0  # sounddevice reuses its buffer

    assert chunks[0].peak_amplitude == 100
    assert int(chunks[0].samples.max()) == 100
    recorder.stop()


@patch("recorder.sd")
def test_status_flags_count_overflows(mock_sd: MagicMock) -> None:
    mock_sd.InputStream.return_value = MagicMock()
    recorder = SoundDeviceRecorder()
    recorder.start(lambda chunk: None)

    recorder._on_audio(_make_fake_audio_data(), frames=1600, time_info=None, status="input overflow")

    assert recorder.overflows == 1
    recorder.stop()


@patch("recorder.sd")
def test_handler_exception_does_not_escape_callback(mock_sd: MagicMock) -> None:
    mock_sd.InputStream.return_value = MagicMock()

    def broken(chunk: AudioChunk) -> None:
        raise ValueError("boom")

    recorder = SoundDeviceRecorder()
    recorder.start(broken)
    recorder._on_audio(_make_fake_audio_data(), frames=1600, time_info=None, status=None)
    recorder.stop()


# ---------------------------------------------------------------
# No sounddevice installed
# ---------------------------------------------------------------

def test_start_raises_without_sounddevice(monkeypatch) -> None:  # noqa: ANN001
    import recorder as rec_mod
    monkeypatch.setattr(rec_mod, "sd", None)

    recorder = SoundDeviceRecorder()
    with pytest.raises(AudioCaptureFailed, match="sounddevice is not installed"):
        recorder.start(lambda chunk: None)


# ---------------------------------------------------------------
# Callback after stop is a no-op
# ---------------------------------------------------------------

@patch("recorder.sd")
def test_callback_after_stop_is_noop(mock_sd: MagicMock) -> None:
    mock_sd.InputStream.return_value = MagicMock()
    chunks: list[AudioChunk] = []

    recorder = SoundDeviceRecorder()
    recorder.start(chunks.append)
    recorder.stop()

    recorder._on_audio(_make_fake_audio_data(1600), frames=1600, time_info=None, status=None)
    assert chunks == []
