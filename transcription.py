"""Listening session on top of a recorder and a continuous speech engine."""

from __future__ import annotations

import logging
import threading
from dataclasses import replace
from queue import Queue
from typing import Callable, Optional

from errors import (
    ASR_PROTOCOL_ERROR,
    PERMISSION_DENIED,
    SPEECH_UNSUPPORTED,
    START_FAILED,
    message_for,
)
from interfaces import Recorder, SpeechEngine
from models import AudioFrame, ListeningSession, PermissionState, TranscriptEvent, TranscriptKind
from permissions import MicrophonePermissionMachine

logger = logging.getLogger(__name__)

TranscriptCallback = Callable[[str, bool], None]
ListeningCallback = Callable[[bool], None]
ErrorCallback = Callable[[str, str], None]

# The microphone is exclusive per process; the latest adapter to start wins.
_microphone_lock = threading.Lock()
_microphone_holder: Optional["SpeechTranscriptionAdapter"] = None


class SpeechTranscriptionAdapter:
    """Owns one ``ListeningSession``.

    ``start_listening`` and ``stop_listening`` never raise: failures end up in
    ``session.last_error`` and are reported through ``on_error(code, message)``.
    Engine events belonging to a stopped session are dropped.
    """

    def __init__(
        self,
        recorder: Recorder,
        engine: SpeechEngine,
        permissions: MicrophonePermissionMachine,
        queue_maxsize: int = 50,
        on_transcript: Optional[TranscriptCallback] = None,
        on_listening_change: Optional[ListeningCallback] = None,
        on_error: Optional[ErrorCallback] = None,
    ) -> None:
        self._recorder = recorder
        self._engine = engine
        self._permissions = permissions
        self._queue_maxsize = queue_maxsize
        self._on_transcript = on_transcript
        self._on_listening_change = on_listening_change
        self._on_error = on_error

        self._lock = threading.RLock()
        self._session = ListeningSession()
        self._session_id = 0
        self._starting = False
        self._closed = False
        self._audio_queue: Queue[AudioFrame | None] = Queue(maxsize=queue_maxsize)

    @property
    def session(self) -> ListeningSession:
        with self._lock:
            return replace(
                self._session,
                permission=self._permissions.state,
                device_available=self._permissions.device_available,
            )

    @property
    def transcript(self) -> str:
        return self._session.transcript

    @property
    def listening(self) -> bool:
        return self._session.active

    @property
    def last_error(self) -> Optional[str]:
        return self._session.last_error

    @property
    def supports_speech_recognition(self) -> bool:
        try:
            return bool(self._engine.is_supported())
        except Exception:
            logger.exception("Speech engine support check failed")
            return False

    def start_listening(self) -> bool:
        """Start continuous recognition. Returns whether the session is listening."""
        with self._lock:
            if self._closed:
                return False
            if self._session.active:
                return True
            if self._starting:
                logger.debug("start_listening ignored: start already in progress")
                return False
            if not self.supports_speech_recognition:
                self._set_error(SPEECH_UNSUPPORTED)
                return False
            self._starting = True
        try:
            return self._start()
        finally:
            with self._lock:
                self._starting = False

    def stop_listening(self) -> None:
        with self._lock:
            if not self._session.active:
                return
            self._session_id += 1
            self._safe_stop_recorder()
            self._safe_stop_engine()
            self._release_microphone()
            self._set_active(False)

    def reset_transcript(self) -> None:
        with self._lock:
            self._session.transcript = ""

    def clear_error(self) -> None:
        with self._lock:
            self._session.last_error = None

    def close(self) -> None:
        self.stop_listening()
        with self._lock:
            self._closed = True
        self._permissions.close()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _start(self) -> bool:
        if self._permissions.state == PermissionState.PROMPT:
            self._permissions.request()
        if not self._permissions.can_listen():
            with self._lock:
                self._set_error(self._permissions.error_code or PERMISSION_DENIED)
            return False

        self._take_microphone()
        with self._lock:
            if self._closed:
                self._release_microphone()
                return False
            self._session_id += 1
            session_id = self._session_id
            self._audio_queue = Queue(maxsize=self._queue_maxsize)
            self._session.transcript = ""
            self._session.last_error = None
            try:
                self._engine.start(
                    self._audio_queue,
                    lambda event: self._handle_engine_event(session_id, event),
                )
                self._recorder.start(self._audio_queue)
            except Exception as exc:
                logger.error("Error starting speech recognition: %s", exc)
                self._session_id += 1
                self._safe_stop_recorder()
                self._safe_stop_engine()
                self._release_microphone()
                self._set_error(START_FAILED, str(exc))
                return False
            self._set_active(True)
        return True

    def _handle_engine_event(self, session_id: int, event: TranscriptEvent) -> None:
        with self._lock:
            if session_id != self._session_id or not self._session.active:
                return
            kind = event.kind
            if kind in (TranscriptKind.PARTIAL.value, TranscriptKind.FINAL.value):
                is_final = kind == TranscriptKind.FINAL.value
                if event.text:
                    self._session.transcript = event.text
                elif not is_final:
                    return
                self._emit_transcript(self._session.transcript, is_final)
                return
            if kind == TranscriptKind.ERROR.value:
                self._fail(event.code or ASR_PROTOCOL_ERROR, event.message)

    def _fail(self, code: str, message: str) -> None:
        self._session_id += 1
        self._set_error(code, message)
        self._safe_stop_recorder()
        self._safe_stop_engine()
        self._release_microphone()
        self._set_active(False)

    def _emit_transcript(self, text: str, is_final: bool) -> None:
        if not self._on_transcript:
            return
        try:
            self._on_transcript(text, is_final)
        except Exception:
            logger.exception("on_transcript callback failed")

    def _set_error(self, code: str, detail: str = "") -> None:
        message = message_for(code, detail)
        self._session.last_error = message
        logger.warning("Listening error %s: %s", code, detail or message)
        if self._on_error:
            try:
                self._on_error(code, detail or message)
            except Exception:
                logger.exception("on_error callback failed")

    def _set_active(self, active: bool) -> None:
        if self._session.active == active:
            return
        self._session.active = active
        logger.info("Listening %s", "started" if active else "stopped")
        if self._on_listening_change:
            try:
                self._on_listening_change(active)
            except Exception:
                logger.exception("on_listening_change callback failed")

    def _take_microphone(self) -> None:
        global _microphone_holder
        with _microphone_lock:
            previous = _microphone_holder
            _microphone_holder = self
        if previous is not None and previous is not self:
            logger.info("Microphone handed over from another listening surface")
            previous.stop_listening()

    def _release_microphone(self) -> None:
        global _microphone_holder
        with _microphone_lock:
            if _microphone_holder is self:
                _microphone_holder = None

    def _safe_stop_recorder(self) -> None:
        try:
            self._recorder.stop()
        except Exception:  # pragma: no cover
            logger.exception("Error stopping recorder")

    def _safe_stop_engine(self) -> None:
        try:
            self._engine.stop()
        except Exception:  # pragma: no cover
            logger.exception("Error stopping speech recognition")
