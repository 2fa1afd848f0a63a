"""Always-listening voice trigger loop.

idle -> monitoring -> triggered(keyword) -> capturing -> transcribing
-> inserting -> monitoring. Any failure parks the machine in error(reason)
until ``reset()`` or ``disable()``.

Detector callbacks and capture timeouts are turned into events on a queue
drained by one worker thread, so all transitions after ``enable()`` run on
that thread. ``disable()`` bumps a generation counter; work that finishes
under an older generation is dropped.
"""

from __future__ import annotations

import logging
import threading
from queue import Queue
from typing import Any, Callable, Optional

from audio_buffer import AudioCaptureBuffer, CaptureArbiter
from capture_timer import SILENCE, CaptureWatchdog
from command_engine import CommandMatchEngine
from errors import (
    AUDIO_CAPTURE_FAILED,
    INSERTION_FAILED,
    TRANSCRIPTION_FAILED,
    WAKE_WORD_INIT_FAILED,
    AlreadyRecording,
    AudioCaptureFailed,
    NoKeywordsConfigured,
    VoxtermError,
    WakeWordInitFailed,
)
from interfaces import Recorder, TextInserter, Transcriber, WakeWordDetector
from models import (
    AudioChunk,
    TriggerErrorReason,
    TriggerPhase,
    VoiceTriggerConfig,
    WakeWordState,
)

logger = logging.getLogger("voxterm.wake_word")

StateCallback = Callable[[WakeWordState, WakeWordState], None]
LevelCallback = Callable[[float], None]
ErrorCallback = Callable[[str, str], None]

_ERROR_CODES = {
    TriggerErrorReason.WAKE_WORD_INIT_FAILED: WAKE_WORD_INIT_FAILED,
    TriggerErrorReason.AUDIO_CAPTURE_FAILED: AUDIO_CAPTURE_FAILED,
    TriggerErrorReason.TRANSCRIPTION_FAILED: TRANSCRIPTION_FAILED,
    TriggerErrorReason.INSERTION_FAILED: INSERTION_FAILED,
    TriggerErrorReason.SILENCE_TIMEOUT_EXCEEDED: AUDIO_CAPTURE_FAILED,
    TriggerErrorReason.MAX_DURATION_EXCEEDED: AUDIO_CAPTURE_FAILED,
}

_KEYWORD = "keyword"
_TIMEOUT = "timeout"
_DETECTOR_ERROR = "detector_error"


def _reason_text(exc: Exception) -> str:
    if isinstance(exc, VoxtermError) and hasattr(exc, "reason"):
        return str(exc.reason)
    return str(exc)


class WakeWordSessionMachine:
    owner_name = "wake_word"

    def __init__(
        self,
        recorder: Recorder,
        detector: WakeWordDetector,
        transcriber: Transcriber,
        inserter: TextInserter,
        command_engine: Optional[CommandMatchEngine] = None,
        config: Optional[VoiceTriggerConfig] = None,
        buffer: Optional[AudioCaptureBuffer] = None,
        arbiter: Optional[CaptureArbiter] = None,
        poll_interval_s: float = 0.05,
        on_state_change: Optional[StateCallback] = None,
        on_level: Optional[LevelCallback] = None,
        on_error: Optional[ErrorCallback] = None,
    ) -> None:
        self._recorder = recorder
        self._detector = detector
        self._transcriber = transcriber
        self._inserter = inserter
        self._command_engine = command_engine
        self.config = config or VoiceTriggerConfig()
        self._buffer = buffer or AudioCaptureBuffer()
        self._arbiter = arbiter
        self._poll_interval_s = poll_interval_s
        self._on_state_change = on_state_change
        self._on_level = on_level
        self._on_error = on_error

        self._lock = threading.RLock()
        self._state = WakeWordState()
        self._generation = 0
        self._events: Queue[Optional[tuple[str, int, Any]]] = Queue()
        self._worker: Optional[threading.Thread] = None
        self._watchdog: Optional[CaptureWatchdog] = None
        self._speech_detected = False
        self._recorder_running = False
        self._detector_running = False

        self.audio_level = 0.0
        self.current_keyword: Optional[str] = None
        self.last_transcribed_text = ""
        self.last_inserted_text = ""
        self.error_message: Optional[str] = None

    @property
    def state(self) -> WakeWordState:
        return self._state

    @property
    def buffer(self) -> AudioCaptureBuffer:
        return self._buffer

    def replace_transcriber(self, transcriber: Transcriber) -> None:
        with self._lock:
            self._transcriber = transcriber

    @property
    def silence_time_remaining(self) -> Optional[float]:
        watchdog = self._watchdog
        if watchdog is None or self._state.phase != TriggerPhase.CAPTURING:
            return None
        return watchdog.silence_remaining

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def enable(self, config: Optional[VoiceTriggerConfig] = None) -> None:
        with self._lock:
            if self._state.phase != TriggerPhase.IDLE:
                raise AlreadyRecording(f"Voice trigger is not idle ({self._state.description}).")
            if config is not None:
                self.config = config
            keywords = self.config.active_keywords
            if not keywords:
                raise NoKeywordsConfigured()

            self._generation += 1
            generation = self._generation
            self._events = Queue()
            self.error_message = None
            self.current_keyword = None
            self.last_transcribed_text = ""
            self._buffer.clear()

            try:
                self._detector.start(keywords, self._handle_keyword)
                self._detector_running = True
            except Exception as exc:
                self._fail(TriggerErrorReason.WAKE_WORD_INIT_FAILED, _reason_text(exc))
                if isinstance(exc, WakeWordInitFailed):
                    raise
                raise WakeWordInitFailed(str(exc)) from exc
            try:
                self._recorder.start(self._handle_chunk)
                self._recorder_running = True
            except Exception as exc:
                self._fail(TriggerErrorReason.AUDIO_CAPTURE_FAILED, _reason_text(exc))
                if isinstance(exc, AudioCaptureFailed):
                    raise
                raise AudioCaptureFailed(str(exc)) from exc

            self._worker = threading.Thread(
                target=self._run,
                args=(generation, self._events),
                name="wake-word-loop",
                daemon=True,
            )
            self._worker.start()
            self._transition(WakeWordState(TriggerPhase.MONITORING))
            logger.info(
                "voice trigger monitoring %d keyword(s): %s",
                len(keywords),
                ", ".join(k.phrase for k in keywords),
            )

    def disable(self) -> None:
        with self._lock:
            self._generation += 1
            self._teardown()
            self._buffer.clear()
            self._events.put(None)
            worker, self._worker = self._worker, None
            self.current_keyword = None
            self.error_message = None
            self.audio_level = 0.0
            self._transition(WakeWordState())
        if worker is not None and worker is not threading.current_thread() and worker.is_alive():
            worker.join(timeout=0.5)

    def reset(self) -> bool:
        """Leave the error state. Returns False when not in error."""
        with self._lock:
            if not self._state.is_error:
                return False
        self.disable()
        return True

    # ------------------------------------------------------------------
    # Callbacks from the detector and the audio thread
    # ------------------------------------------------------------------

    def _handle_keyword(self, phrase: str) -> None:
        self._events.put((_KEYWORD, self._generation, phrase))

    def _handle_chunk(self, chunk: AudioChunk) -> None:
        level = chunk.level
        self.audio_level = level
        phase = self._state.phase
        if phase == TriggerPhase.MONITORING:
            try:
                self._detector.accept_audio(chunk)
            except Exception as exc:
                logger.exception("wake word detector failed on audio frame")
                self._events.put((_DETECTOR_ERROR, self._generation, str(exc)))
        elif phase == TriggerPhase.CAPTURING:
            if self._buffer.append(chunk) and level >= self.config.silence_level:
                self._speech_detected = True
                watchdog = self._watchdog
                if watchdog is not None:
                    watchdog.note_activity()
        if self._on_level:
            self._on_level(level)

    # ------------------------------------------------------------------
    # Worker
    # ------------------------------------------------------------------

    def _run(self, generation: int, events: Queue[Optional[tuple[str, int, Any]]]) -> None:
        while True:
            event = events.get()
            if event is None:
                return
            kind, event_generation, payload = event
            if event_generation != generation or generation != self._generation:
                continue
            if kind == _KEYWORD:
                self._begin_capture(generation, payload)
            elif kind == _TIMEOUT:
                self._finish_capture(generation, payload)
            elif kind == _DETECTOR_ERROR:
                with self._lock:
                    if generation == self._generation:
                        self._fail(
                            TriggerErrorReason.AUDIO_CAPTURE_FAILED,
                            f"wake word processing failed: {payload}",
                        )

    def _begin_capture(self, generation: int, keyword: str) -> None:
        with self._lock:
            if generation != self._generation or self._state.phase != TriggerPhase.MONITORING:
                logger.debug("ignoring wake word %r in state %s", keyword, self._state.phase.value)
                return
            if self._arbiter is not None and not self._arbiter.acquire(self.owner_name):
                self._fail(
                    TriggerErrorReason.AUDIO_CAPTURE_FAILED,
                    AlreadyRecording("The microphone is in use by another capture.").message,
                )
                return
            logger.info("wake word detected: %r", keyword)
            self.current_keyword = keyword
            self._transition(WakeWordState.triggered(keyword))
            self._buffer.clear()
            self._speech_detected = False
            events = self._events
            self._watchdog = CaptureWatchdog(
                self.config.silence_threshold_s,
                self.config.max_duration_s,
                lambda kind: events.put((_TIMEOUT, generation, kind)),
                poll_interval_s=self._poll_interval_s,
            )
            self._transition(WakeWordState(TriggerPhase.CAPTURING))
            self._watchdog.start()

    def _finish_capture(self, generation: int, kind: str) -> None:
        with self._lock:
            if generation != self._generation or self._state.phase != TriggerPhase.CAPTURING:
                return
            self._stop_watchdog()
            self._buffer.mark_complete()
            samples = self._buffer.all_samples
            if self._arbiter is not None:
                self._arbiter.release(self.owner_name)
            if samples.size == 0 or not self._speech_detected:
                reason = (
                    TriggerErrorReason.SILENCE_TIMEOUT_EXCEEDED
                    if kind == SILENCE
                    else TriggerErrorReason.MAX_DURATION_EXCEEDED
                )
                self._fail(reason, "no speech after wake word")
                return
            self._transition(WakeWordState(TriggerPhase.TRANSCRIBING))
            transcriber = self._transcriber
            language = self.config.language

        try:
            result = transcriber.transcribe(samples, language)
        except Exception as exc:
            logger.error("wake word transcription failed: %s", exc)
            self._fail_if_current(generation, TriggerErrorReason.TRANSCRIPTION_FAILED, _reason_text(exc))
            return

        with self._lock:
            if generation != self._generation:
                return
            self.last_transcribed_text = result.text
            text = result.text.strip()
            if not text:
                logger.info("empty transcription, back to monitoring")
                self._resume_monitoring()
                return
            self._transition(WakeWordState(TriggerPhase.INSERTING))

        try:
            if self._command_engine is not None:
                text = self._command_engine.rewrite(text)
            with self._lock:
                if generation != self._generation:
                    return
            self._inserter.insert(text)
        except Exception as exc:
            logger.error("wake word insertion failed: %s", exc)
            self._fail_if_current(generation, TriggerErrorReason.INSERTION_FAILED, _reason_text(exc))
            return

        with self._lock:
            if generation != self._generation:
                return
            self.last_inserted_text = text
            self._resume_monitoring()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _resume_monitoring(self) -> None:
        self.current_keyword = None
        self._buffer.clear()
        self._transition(WakeWordState(TriggerPhase.MONITORING))

    def _fail_if_current(self, generation: int, reason: TriggerErrorReason, detail: str) -> None:
        with self._lock:
            if generation == self._generation:
                self._fail(reason, detail)

    def _fail(self, reason: TriggerErrorReason, detail: str) -> None:
        """Enter error(reason). Caller holds the lock."""
        self._generation += 1
        self._teardown()
        self._events.put(None)
        self._worker = None
        state = WakeWordState.failed(reason, detail)
        self.error_message = state.error.description if state.error else detail
        self.current_keyword = None
        self._transition(state)
        self._emit_error(_ERROR_CODES[reason], self.error_message)

    def _stop_watchdog(self) -> None:
        watchdog, self._watchdog = self._watchdog, None
        if watchdog is not None:
            watchdog.cancel()

    def _teardown(self) -> None:
        self._stop_watchdog()
        if self._recorder_running:
            self._recorder_running = False
            try:
                self._recorder.stop()
            except Exception:
                logger.exception("recorder stop failed")
        if self._detector_running:
            self._detector_running = False
            try:
                self._detector.stop()
            except Exception:
                logger.exception("wake word detector stop failed")
        if self._arbiter is not None:
            self._arbiter.release(self.owner_name)

    def _emit_error(self, code: str, message: str) -> None:
        if self._on_error:
            self._on_error(code, message)

    def _transition(self, to_state: WakeWordState) -> None:
        from_state = self._state
        if from_state == to_state:
            return
        self._state = to_state
        logger.info("%s -> %s", from_state.description, to_state.description)
        if self._on_state_change:
            self._on_state_change(from_state, to_state)
