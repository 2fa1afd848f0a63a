"""Shared error codes, user-facing messages and exception types."""

from __future__ import annotations

ALREADY_RECORDING = "ALREADY_RECORDING"
NOT_RECORDING = "NOT_RECORDING"
NO_AUDIO_CAPTURED = "NO_AUDIO_CAPTURED"
NO_KEYWORDS_CONFIGURED = "NO_KEYWORDS_CONFIGURED"
TRANSCRIPTION_FAILED = "TRANSCRIPTION_FAILED"
INSERTION_FAILED = "INSERTION_FAILED"
WAKE_WORD_INIT_FAILED = "WAKE_WORD_INIT_FAILED"
AUDIO_CAPTURE_FAILED = "AUDIO_CAPTURE_FAILED"
CONFIG_LOAD_ERROR = "CONFIG_LOAD_ERROR"
PERMISSION_DENIED = "PERMISSION_DENIED"
NETWORK_ERROR = "NETWORK_ERROR"
AUTH_FAILED = "AUTH_FAILED"
NO_ACTIVE_TARGET = "NO_ACTIVE_TARGET"
ASR_PROTOCOL_ERROR = "ASR_PROTOCOL_ERROR"

ERROR_MESSAGES = {
    ALREADY_RECORDING: "A recording is already in progress.",
    NOT_RECORDING: "No recording is in progress.",
    NO_AUDIO_CAPTURED: "No audio was captured.",
    NO_KEYWORDS_CONFIGURED: "No wake word keywords are enabled.",
    TRANSCRIPTION_FAILED: "Transcription failed.",
    INSERTION_FAILED: "Text could not be inserted.",
    WAKE_WORD_INIT_FAILED: "Wake word detection could not start.",
    AUDIO_CAPTURE_FAILED: "Audio capture failed.",
    CONFIG_LOAD_ERROR: "Command configuration is invalid, previous commands kept.",
    PERMISSION_DENIED: "Permission is required in macOS settings.",
    NETWORK_ERROR: "Network failed, please retry.",
    AUTH_FAILED: "API key is invalid.",
    NO_ACTIVE_TARGET: "No active input target, result kept in clipboard.",
    ASR_PROTOCOL_ERROR: "ASR response format is invalid.",
}


class VoxtermError(Exception):
    """Base error carrying one of the codes above."""

    code = ASR_PROTOCOL_ERROR

    def __init__(self, message: str = "") -> None:
        self.message = message or ERROR_MESSAGES.get(self.code, self.code)
        super().__init__(self.message)


class AlreadyRecording(VoxtermError):
    code = ALREADY_RECORDING


class NotRecording(VoxtermError):
    code = NOT_RECORDING


class NoAudioCaptured(VoxtermError):
    code = NO_AUDIO_CAPTURED


class NoKeywordsConfigured(VoxtermError):
    code = NO_KEYWORDS_CONFIGURED


class _StageError(VoxtermError):
    """Failure of an external stage; ``reason`` keeps the low-level detail."""

    stage = ""

    def __init__(self, reason: str, code: str | None = None) -> None:
        self.reason = reason
        if code is not None:
            self.code = code
        super().__init__(f"{self.stage}: {reason}" if self.stage else reason)


class TranscriptionFailed(_StageError):
    code = TRANSCRIPTION_FAILED
    stage = "transcription"


class InsertionFailed(_StageError):
    code = INSERTION_FAILED
    stage = "insertion"


class WakeWordInitFailed(_StageError):
    code = WAKE_WORD_INIT_FAILED
    stage = "wake word init"


class AudioCaptureFailed(_StageError):
    code = AUDIO_CAPTURE_FAILED
    stage = "audio capture"


class ConfigLoadError(VoxtermError):
    code = CONFIG_LOAD_ERROR

    def __init__(self, path: object, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"{path}: {reason}")
