"""Core data models for the app."""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

import numpy as np

SAMPLE_RATE = 16000
CHANNELS = 1
CHUNK_SIZE = 1600  # 100ms at 16kHz
INT16_FULL_SCALE = 32768.0


class SessionState(str, Enum):
    IDLE = "idle"
    RECORDING = "recording"
    TRANSCRIBING = "transcribing"
    INSERTING = "inserting"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def description(self) -> str:
        return _SESSION_DESCRIPTIONS[self]

    @property
    def is_active(self) -> bool:
        return self in (SessionState.RECORDING, SessionState.TRANSCRIBING, SessionState.INSERTING)


_SESSION_DESCRIPTIONS = {
    SessionState.IDLE: "Idle",
    SessionState.RECORDING: "Recording...",
    SessionState.TRANSCRIBING: "Transcribing...",
    SessionState.INSERTING: "Inserting text...",
    SessionState.COMPLETED: "Completed",
    SessionState.CANCELLED: "Cancelled",
}


@dataclass(frozen=True, eq=False)
class AudioChunk:
    """~100ms of mono 16-bit audio. Levels are computed once on creation."""

    samples: np.ndarray
    sample_rate: int = SAMPLE_RATE
    channels: int = CHANNELS
    timestamp: float = field(default_factory=time.time)
    duration: float = field(init=False)
    peak_amplitude: int = field(init=False)
    rms_level: float = field(init=False)

    def __post_init__(self) -> None:
        samples = np.array(self.samples, dtype=np.int16).reshape(-1)
        samples.setflags(write=False)
        object.__setattr__(self, "samples", samples)
        object.__setattr__(
            self, "duration", samples.size / float(self.sample_rate * self.channels)
        )
        if samples.size == 0:
            object.__setattr__(self, "peak_amplitude", 0)
            object.__setattr__(self, "rms_level", 0.0)
            return
        # abs(-32768) does not fit in int16; widen and report it as 32767.
        magnitudes = np.minimum(np.abs(samples.astype(np.int32)), 32767)
        object.__setattr__(self, "peak_amplitude", int(magnitudes.max()))
        wide = samples.astype(np.float64)
        object.__setattr__(self, "rms_level", float(np.sqrt(np.mean(wide * wide))))

    @classmethod
    def from_pcm16(cls, payload: bytes, sample_rate: int = SAMPLE_RATE, channels: int = CHANNELS) -> AudioChunk:
        return cls(np.frombuffer(payload, dtype=np.int16), sample_rate=sample_rate, channels=channels)

    @property
    def level(self) -> float:
        """RMS normalised to 0..1."""
        return min(self.rms_level / INT16_FULL_SCALE, 1.0)

    @property
    def is_valid(self) -> bool:
        return (
            self.sample_rate == SAMPLE_RATE
            and self.channels == CHANNELS
            and self.samples.size > 0
            and self.peak_amplitude > 0
        )


@dataclass
class TranscriptionSegment:
    text: str
    start_time: float
    end_time: float
    confidence: float
    id: str = field(default_factory=lambda: uuid.uuid4().hex)


@dataclass
class TranscriptionResult:
    text: str
    confidence: float = 0.0
    duration_ms: int = 0
    segments: list[TranscriptionSegment] = field(default_factory=list)


@dataclass
class CaptureSession:
    """One utterance from capture start to insertion or cancellation."""

    language: str = "en"
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    start_time: float = field(default_factory=time.time)
    end_time: Optional[float] = None
    audio_data: Optional[np.ndarray] = None
    transcribed_text: str = ""
    inserted_text: str = ""
    confidence_score: float = 0.0
    insertion_success: bool = False
    error_message: Optional[str] = None
    peak_amplitude: int = 0
    segments: list[TranscriptionSegment] = field(default_factory=list)
    state: SessionState = SessionState.IDLE

    @property
    def duration(self) -> float:
        end = self.end_time if self.end_time is not None else time.time()
        return end - self.start_time

    @property
    def word_count(self) -> int:
        return len(self.transcribed_text.split())

    @property
    def is_valid(self) -> bool:
        if self.end_time is not None and self.end_time < self.start_time:
            return False
        if not 0.0 <= self.confidence_score <= 1.0:
            return False
        return bool(self.language)

    def finish(self, state: SessionState, error_message: Optional[str] = None) -> None:
        self.end_time = max(time.time(), self.start_time)
        self.state = state
        if error_message is not None:
            self.error_message = error_message


# ----------------------------------------------------------------------
# Wake word path
# ----------------------------------------------------------------------


class TriggerPhase(str, Enum):
    IDLE = "idle"
    MONITORING = "monitoring"
    TRIGGERED = "triggered"
    CAPTURING = "capturing"
    TRANSCRIBING = "transcribing"
    INSERTING = "inserting"
    ERROR = "error"


class TriggerErrorReason(str, Enum):
    WAKE_WORD_INIT_FAILED = "wakeWordInitFailed"
    AUDIO_CAPTURE_FAILED = "audioCaptureFailed"
    TRANSCRIPTION_FAILED = "transcriptionFailed"
    INSERTION_FAILED = "insertionFailed"
    SILENCE_TIMEOUT_EXCEEDED = "silenceTimeoutExceeded"
    MAX_DURATION_EXCEEDED = "maxDurationExceeded"


@dataclass(frozen=True)
class TriggerError:
    reason: TriggerErrorReason
    detail: str = ""

    @property
    def description(self) -> str:
        if self.reason == TriggerErrorReason.SILENCE_TIMEOUT_EXCEEDED:
            return "Silence timeout exceeded"
        if self.reason == TriggerErrorReason.MAX_DURATION_EXCEEDED:
            return "Maximum recording duration exceeded"
        label = {
            TriggerErrorReason.WAKE_WORD_INIT_FAILED: "Wake word initialization failed",
            TriggerErrorReason.AUDIO_CAPTURE_FAILED: "Audio capture failed",
            TriggerErrorReason.TRANSCRIPTION_FAILED: "Transcription failed",
            TriggerErrorReason.INSERTION_FAILED: "Text insertion failed",
        }[self.reason]
        return f"{label}: {self.detail}"


@dataclass(frozen=True)
class WakeWordState:
    phase: TriggerPhase = TriggerPhase.IDLE
    keyword: Optional[str] = None
    error: Optional[TriggerError] = None

    @classmethod
    def triggered(cls, keyword: str) -> WakeWordState:
        return cls(TriggerPhase.TRIGGERED, keyword=keyword)

    @classmethod
    def failed(cls, reason: TriggerErrorReason, detail: str = "") -> WakeWordState:
        return cls(TriggerPhase.ERROR, error=TriggerError(reason, detail))

    @property
    def description(self) -> str:
        if self.phase == TriggerPhase.TRIGGERED:
            return f"Wake word detected: {self.keyword}"
        if self.phase == TriggerPhase.ERROR and self.error is not None:
            return f"Error: {self.error.description}"
        return {
            TriggerPhase.IDLE: "Idle",
            TriggerPhase.MONITORING: "Listening for wake word...",
            TriggerPhase.CAPTURING: "Capturing speech...",
            TriggerPhase.TRANSCRIBING: "Transcribing...",
            TriggerPhase.INSERTING: "Inserting text...",
            TriggerPhase.ERROR: "Error",
        }[self.phase]

    @property
    def is_active(self) -> bool:
        return self.phase not in (TriggerPhase.IDLE, TriggerPhase.ERROR)

    @property
    def is_error(self) -> bool:
        return self.phase == TriggerPhase.ERROR

    @property
    def is_monitoring(self) -> bool:
        return self.phase == TriggerPhase.MONITORING

    @property
    def is_processing(self) -> bool:
        return self.phase in (
            TriggerPhase.TRIGGERED,
            TriggerPhase.CAPTURING,
            TriggerPhase.TRANSCRIBING,
            TriggerPhase.INSERTING,
        )


def _clamp(value: float, low: float, high: float) -> float:
    return min(max(float(value), low), high)


@dataclass
class TriggerKeyword:
    phrase: str
    boosting_score: float = 1.5
    trigger_threshold: float = 0.35
    enabled: bool = True

    def __post_init__(self) -> None:
        self.boosting_score = _clamp(self.boosting_score, 1.0, 2.0)
        self.trigger_threshold = _clamp(self.trigger_threshold, 0.0, 1.0)

    @property
    def display_name(self) -> str:
        return self.phrase or "(empty)"

    @property
    def is_valid(self) -> bool:
        return bool(self.phrase.strip())


HEY_CLAUDE = TriggerKeyword("Hey Claude", boosting_score=1.5, trigger_threshold=0.35, enabled=True)
KEYWORD_PRESETS = (
    HEY_CLAUDE,
    TriggerKeyword("Claude", boosting_score=1.3, trigger_threshold=0.4, enabled=False),
    TriggerKeyword("Opus", boosting_score=1.3, trigger_threshold=0.4, enabled=False),
    TriggerKeyword("Sonnet", boosting_score=1.3, trigger_threshold=0.4, enabled=False),
)


@dataclass
class CaptureSettings:
    """Limits for the hotkey path."""

    language: str = "en"
    silence_threshold_s: float = 1.5
    max_duration_s: float = 300.0
    silence_level: float = 0.02

    def __post_init__(self) -> None:
        self.silence_threshold_s = _clamp(self.silence_threshold_s, 0.5, 3.0)


@dataclass
class VoiceTriggerConfig:
    enabled: bool = False
    keywords: list[TriggerKeyword] = field(default_factory=lambda: [TriggerKeyword(HEY_CLAUDE.phrase)])
    language: str = "en"
    silence_threshold_s: float = 5.0
    max_duration_s: float = 60.0
    silence_level: float = 0.02

    def __post_init__(self) -> None:
        self.silence_threshold_s = _clamp(self.silence_threshold_s, 1.0, 10.0)

    @property
    def active_keywords(self) -> list[TriggerKeyword]:
        return [k for k in self.keywords if k.enabled and k.is_valid]


# ----------------------------------------------------------------------
# Voice commands
# ----------------------------------------------------------------------

DEFAULT_TERMINAL_APPS = (
    "com.apple.Terminal",
    "com.googlecode.iterm2",
    "dev.warp.Warp-Stable",
    "net.kovidgoyal.kitty",
    "org.alacritty",
    "com.github.wez.wezterm",
    "com.mitchellh.ghostty",
    "co.zeit.hyper",
)


@dataclass(frozen=True)
class CommandTrigger:
    trigger: str
    inject: str
    threshold: Optional[float] = None
    enabled: bool = True


@dataclass(frozen=True)
class CommandConfig:
    version: int = 1
    enabled: bool = True
    default_threshold: float = 0.8
    match_first_n_words: int = 5
    terminal_apps: frozenset[str] = frozenset(DEFAULT_TERMINAL_APPS)
    commands: tuple[CommandTrigger, ...] = ()


@dataclass
class PasteResult:
    success: bool
    reason: str
    clipboard_restored: bool
