"""State-machine based orchestration of hotkey-triggered capture sessions."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

from audio_buffer import AudioCaptureBuffer, CaptureArbiter
from capture_timer import CaptureWatchdog
from command_engine import CommandMatchEngine
from errors import (
    AlreadyRecording,
    AudioCaptureFailed,
    InsertionFailed,
    NoAudioCaptured,
    NotRecording,
    TranscriptionFailed,
    VoxtermError,
)
from interfaces import Recorder, TextInserter, Transcriber
from models import AudioChunk, CaptureSession, CaptureSettings, SessionState

logger = logging.getLogger("voxterm.session")

StateCallback = Callable[[SessionState, SessionState], None]
LevelCallback = Callable[[float], None]
ErrorCallback = Callable[[str, str], None]
SessionCallback = Callable[[CaptureSession], None]


def _as_failure(exc: Exception, kind: type[VoxtermError]) -> VoxtermError:
    """Keep our own errors, wrap anything else as ``kind``."""
    if isinstance(exc, VoxtermError):
        return exc
    return kind(str(exc))


class CaptureSessionMachine:
    """idle -> recording -> transcribing -> inserting -> completed -> idle.

    Every exit from recording other than success goes through cancelled.
    ``stop()`` blocks on the transcriber and inserter without holding the
    lock, so ``cancel()`` stays responsive; a cancelled session's late result
    is dropped.
    """

    owner_name = "hotkey"

    def __init__(
        self,
        recorder: Recorder,
        transcriber: Transcriber,
        inserter: TextInserter,
        command_engine: Optional[CommandMatchEngine] = None,
        settings: Optional[CaptureSettings] = None,
        buffer: Optional[AudioCaptureBuffer] = None,
        arbiter: Optional[CaptureArbiter] = None,
        poll_interval_s: float = 0.05,
        on_state_change: Optional[StateCallback] = None,
        on_level: Optional[LevelCallback] = None,
        on_error: Optional[ErrorCallback] = None,
        on_session: Optional[SessionCallback] = None,
    ) -> None:
        self._recorder = recorder
        self._transcriber = transcriber
        self._inserter = inserter
        self._command_engine = command_engine
        self.settings = settings or CaptureSettings()
        self._buffer = buffer or AudioCaptureBuffer()
        self._arbiter = arbiter
        self._poll_interval_s = poll_interval_s
        self._on_state_change = on_state_change
        self._on_level = on_level
        self._on_error = on_error
        self._on_session = on_session

        self._lock = threading.RLock()
        self._state = SessionState.IDLE
        self._generation = 0
        self._session: Optional[CaptureSession] = None
        self._watchdog: Optional[CaptureWatchdog] = None
        self.last_session: Optional[CaptureSession] = None
        self.audio_level = 0.0

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def session(self) -> Optional[CaptureSession]:
        return self._session

    @property
    def buffer(self) -> AudioCaptureBuffer:
        return self._buffer

    def replace_transcriber(self, transcriber: Transcriber) -> None:
        with self._lock:
            self._transcriber = transcriber

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def start(self) -> CaptureSession:
        with self._lock:
            if self._state != SessionState.IDLE:
                raise AlreadyRecording()
            if self._arbiter is not None and not self._arbiter.acquire(self.owner_name):
                raise AlreadyRecording("The microphone is in use by another capture.")

            self._generation += 1
            generation = self._generation
            session = CaptureSession(language=self.settings.language, state=SessionState.RECORDING)
            self._session = session
            self._buffer.clear()
            self.audio_level = 0.0
            self._transition(SessionState.RECORDING)
            try:
                self._recorder.start(self._handle_chunk)
            except Exception as exc:
                failure = _as_failure(exc, AudioCaptureFailed)
                if self._arbiter is not None:
                    self._arbiter.release(self.owner_name)
                self._finish(session, SessionState.CANCELLED, failure.message)
                self._emit_error(failure.code, failure.message)
                if failure is exc:
                    raise
                raise failure from exc

            self._watchdog = CaptureWatchdog(
                self.settings.silence_threshold_s,
                self.settings.max_duration_s,
                lambda kind: self._auto_stop(generation, kind),
                poll_interval_s=self._poll_interval_s,
            )
            self._watchdog.start()
            logger.info("session %s recording", session.id)
            return session

    def stop(self) -> CaptureSession:
        with self._lock:
            if self._state != SessionState.RECORDING or self._session is None:
                raise NotRecording()
            generation = self._generation
            session = self._session
            self._end_capture()
            self._buffer.mark_complete()
            samples = self._buffer.all_samples
            if samples.size == 0:
                error = NoAudioCaptured()
                self._finish(session, SessionState.CANCELLED, error.message, via_cancelled=False)
                self._emit_error(error.code, error.message)
                raise error
            session.audio_data = samples
            session.peak_amplitude = self._buffer.peak_level
            session.state = SessionState.TRANSCRIBING
            self._transition(SessionState.TRANSCRIBING)
            transcriber = self._transcriber

        try:
            result = transcriber.transcribe(samples, session.language)
        except Exception as exc:
            failure = _as_failure(exc, TranscriptionFailed)
            if not self._abort(generation, session, failure):
                return session
            if failure is exc:
                raise
            raise failure from exc

        with self._lock:
            if generation != self._generation:
                logger.info("session %s was cancelled, dropping transcript", session.id)
                return session
            session.transcribed_text = result.text
            session.confidence_score = min(max(result.confidence, 0.0), 1.0)
            session.segments = list(result.segments)
            text = result.text.strip()
            if not text:
                logger.info("session %s produced no text, nothing to insert", session.id)
                self._finish(session, SessionState.COMPLETED)
                return session
            session.state = SessionState.INSERTING
            self._transition(SessionState.INSERTING)

        try:
            if self._command_engine is not None:
                text = self._command_engine.rewrite(text)
            with self._lock:
                if generation != self._generation:
                    logger.info("session %s was cancelled, not inserting", session.id)
                    return session
            self._inserter.insert(text)
        except Exception as exc:
            failure = _as_failure(exc, InsertionFailed)
            if not self._abort(generation, session, failure):
                return session
            if failure is exc:
                raise
            raise failure from exc

        with self._lock:
            if generation != self._generation:
                return session
            session.inserted_text = text
            session.insertion_success = True
            self._finish(session, SessionState.COMPLETED)
        return session

    def cancel(self, reason: str = "cancelled by user") -> bool:
        with self._lock:
            if self._state == SessionState.IDLE or self._session is None:
                return False
            session = self._session
            if self._state == SessionState.RECORDING:
                self._end_capture()
            self._buffer.clear()
            logger.info("session %s cancelled: %s", session.id, reason)
            self._finish(session, SessionState.CANCELLED, reason)
            return True

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _handle_chunk(self, chunk: AudioChunk) -> None:
        # audio thread; the buffer and watchdog are safe to touch here
        if self._state != SessionState.RECORDING:
            return
        if not self._buffer.append(chunk):
            return
        level = chunk.level
        self.audio_level = level
        watchdog = self._watchdog
        if watchdog is not None and level >= self.settings.silence_level:
            watchdog.note_activity()
        if self._on_level:
            self._on_level(level)

    def _auto_stop(self, generation: int, kind: str) -> None:
        with self._lock:
            if generation != self._generation or self._state != SessionState.RECORDING:
                return
        logger.info("auto-stop after %s", kind)
        try:
            self.stop()
        except VoxtermError as exc:
            # already reported through on_error
            logger.debug("auto-stop ended with %s", exc.code)

    def _end_capture(self) -> None:
        watchdog, self._watchdog = self._watchdog, None
        if watchdog is not None:
            watchdog.cancel()
        try:
            self._recorder.stop()
        except Exception:
            logger.exception("recorder stop failed")
        if self._arbiter is not None:
            self._arbiter.release(self.owner_name)
        self.audio_level = 0.0

    def _abort(self, generation: int, session: CaptureSession, failure: VoxtermError) -> bool:
        with self._lock:
            if generation != self._generation:
                return False
            logger.error("session %s failed: %s", session.id, failure.message)
            self._finish(session, SessionState.CANCELLED, failure.message)
            self._emit_error(failure.code, failure.message)
            return True

    def _finish(
        self,
        session: CaptureSession,
        final_state: SessionState,
        error_message: Optional[str] = None,
        via_cancelled: bool = True,
    ) -> None:
        self._generation += 1
        session.finish(final_state, error_message)
        self._session = None
        self.last_session = session
        if final_state == SessionState.COMPLETED or via_cancelled:
            self._transition(final_state)
        self._transition(SessionState.IDLE)
        if self._on_session:
            self._on_session(session)

    def _emit_error(self, code: str, message: str) -> None:
        if self._on_error:
            self._on_error(code, message)

    def _transition(self, to_state: SessionState) -> None:
        from_state = self._state
        if from_state == to_state:
            return
        self._state = to_state
        logger.info("%s -> %s", from_state.value, to_state.value)
        if self._on_state_change:
            self._on_state_change(from_state, to_state)
