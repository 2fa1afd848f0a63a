"""Transcriber backed by DashScope qwen3-asr-flash.

The model accepts a complete clip (file path, URL, or base64 data URI) and
streams back the growing transcript when called with ``stream=True``. The
flushed capture is wrapped as an in-memory WAV, sent once, and the last
streamed text is the result. Partial texts can be observed via ``on_partial``.
"""

from __future__ import annotations

import base64
import io
import logging
import os
import time
import wave
from typing import Callable, Optional

import numpy as np

from errors import ASR_PROTOCOL_ERROR, AUTH_FAILED, NETWORK_ERROR, TranscriptionFailed
from models import SAMPLE_RATE, TranscriptionResult

try:
    import dashscope
except Exception:  # pragma: no cover
    dashscope = None  # type: ignore

logger = logging.getLogger("voxterm.recognizer")

PartialCallback = Callable[[str], None]


def _pcm_to_wav_base64(
    pcm: bytes,
    sample_rate: int = SAMPLE_RATE,
    channels: int = 1,
    sample_width: int = 2,
) -> str:
    """Convert raw PCM bytes to a base64-encoded WAV string."""
    buf = io.BytesIO()
    with wave.open(buf, "wb") as wf:
        wf.setnchannels(channels)
        wf.setsampwidth(sample_width)
        wf.setframerate(sample_rate)
        wf.writeframes(pcm)
    return base64.b64encode(buf.getvalue()).decode("ascii")


def _error_code(exc: Exception) -> str:
    low = str(exc).lower()
    if "401" in low or "auth" in low or "api key" in low:
        return AUTH_FAILED
    if "timeout" in low or "network" in low or "connection" in low:
        return NETWORK_ERROR
    return ASR_PROTOCOL_ERROR


class DashscopeTranscriber:
    def __init__(
        self,
        api_key: str,
        model: str = "qwen3-asr-flash",
        request_timeout_s: float = 10.0,
        sample_rate: int = SAMPLE_RATE,
        on_partial: Optional[PartialCallback] = None,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._request_timeout_s = request_timeout_s
        self._sample_rate = sample_rate
        self._on_partial = on_partial

    def transcribe(self, samples: np.ndarray, language: str) -> TranscriptionResult:
        if dashscope is None:
            raise TranscriptionFailed("dashscope is not installed", code=ASR_PROTOCOL_ERROR)
        api_key = self._api_key or os.getenv("DASHSCOPE_API_KEY", "")
        if not api_key:
            raise TranscriptionFailed("No API key configured", code=AUTH_FAILED)

        pcm = np.asarray(samples, dtype=np.int16).tobytes()
        if not pcm:
            return TranscriptionResult(text="", confidence=0.0, duration_ms=0)
        audio = "data:audio/wav;base64," + _pcm_to_wav_base64(pcm, self._sample_rate)

        asr_options = {"enable_itn": False}
        if language:
            asr_options["language"] = language

        started = time.monotonic()
        try:
            response = dashscope.MultiModalConversation.call(
                api_key=api_key,
                model=self._model,
                messages=[
                    {"role": "system", "content": [{"text": ""}]},
                    {"role": "user", "content": [{"audio": audio}]},
                ],
                result_format="message",
                asr_options=asr_options,
                stream=True,
                timeout=self._request_timeout_s,
            )
            latest_text = ""
            for chunk in response:
                text = self._extract_text(chunk)
                if text:
                    latest_text = text
                    if self._on_partial:
                        self._on_partial(text)
        except Exception as exc:
            code = _error_code(exc)
            logger.error("dashscope request failed (%s): %s", code, exc)
            raise TranscriptionFailed(str(exc), code=code) from exc

        duration_ms = int((time.monotonic() - started) * 1000)
        logger.info("transcribed %d samples in %d ms", len(pcm) // 2, duration_ms)
        # The service reports no confidence; a non-empty result counts as certain.
        return TranscriptionResult(
            text=latest_text,
            confidence=1.0 if latest_text.strip() else 0.0,
            duration_ms=duration_ms,
        )

    def _extract_text(self, chunk: object) -> str:
        """Pull text from a dashscope streaming chunk dict."""
        if isinstance(chunk, dict):
            output = chunk.get("output", {})
            choices = output.get("choices", [])
            if not choices:
                return ""
            message = choices[0].get("message", {})
            content = message.get("content", [])
            if not content:
                return ""
            value = content[0]
            if isinstance(value, dict):
                return str(value.get("text", ""))
        return ""
