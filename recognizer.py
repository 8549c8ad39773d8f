"""Continuous speech engine using DashScope qwen3-asr-flash.

The qwen3-asr-flash model accepts complete audio (file path, URL, or base64)
and streams back recognition results via ``stream=True``.  To get continuous
recognition we cut the microphone stream into utterance windows that repeat the
last second of the previous window, so a phrase spoken across a cut is heard
whole at least once.  Each window is converted to WAV and sent to the model.
Partial results for the current window flow through ``on_event`` in real
time, followed by one final event per window.  The engine keeps going until
``stop`` is called, the recorder sends its sentinel, or the model reports an
error.
"""

from __future__ import annotations

import base64
import io
import logging
import os
import threading
import wave
from queue import Empty, Queue
from typing import Callable, Optional, Tuple

from errors import ASR_PROTOCOL_ERROR, AUTH_FAILED, NETWORK_ERROR
from models import AudioFrame, TranscriptEvent, TranscriptKind

logger = logging.getLogger(__name__)

try:
    import dashscope
except Exception:  # pragma: no cover
    dashscope = None  # type: ignore


def _pcm_to_wav_base64(
    pcm: bytes,
    sample_rate: int = 16000,
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
    wav_bytes = buf.getvalue()
    return base64.b64encode(wav_bytes).decode("ascii")


def _pcm_duration_ms(n_bytes: int, sample_rate: int, channels: int, sample_width: int = 2) -> int:
    bytes_per_second = sample_rate * channels * sample_width
    if bytes_per_second <= 0:
        return 0
    return int(n_bytes * 1000 / bytes_per_second)


class _Session:
    """Queue, callback and stop flag owned by one worker thread."""

    def __init__(
        self,
        audio_queue: Queue[AudioFrame | None],
        on_event: Callable[[TranscriptEvent], None],
    ) -> None:
        self.audio_queue = audio_queue
        self.on_event = on_event
        self.stop_event = threading.Event()


class DashscopeRecognizerAdapter:
    def __init__(
        self,
        api_key: str,
        model: str = "qwen3-asr-flash",
        request_timeout_s: float = 10.0,
        utterance_ms: int = 2500,
        min_utterance_ms: int = 300,
        overlap_ms: int = 1000,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._request_timeout_s = request_timeout_s
        self._utterance_ms = utterance_ms
        self._min_utterance_ms = min_utterance_ms
        # At most half a window is carried over so every window holds new audio.
        self._overlap_ms = max(0, min(overlap_ms, utterance_ms // 2))
        self._thread: Optional[threading.Thread] = None
        self._session: Optional[_Session] = None

    def is_supported(self) -> bool:
        return dashscope is not None

    def start(
        self,
        audio_queue: Queue[AudioFrame | None],
        on_event: Callable[[TranscriptEvent], None],
    ) -> None:
        session = self._session
        if session is not None and not session.stop_event.is_set() and self._thread and self._thread.is_alive():
            return
        # A worker left over from the previous session may still be inside a
        # request; it exits on its own stop event and never sees this session.
        session = _Session(audio_queue, on_event)
        self._session = session
        self._thread = threading.Thread(target=self._worker, args=(session,), daemon=True)
        self._thread.start()

    def stop(self) -> None:
        session, thread = self._session, self._thread
        if session is None:
            return
        session.stop_event.set()
        if thread and thread.is_alive() and thread is not threading.current_thread():
            thread.join(timeout=0.5)
            if thread.is_alive():
                logger.info("Previous recognition request still in flight; detached")

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _worker(self, session: _Session) -> None:
        """Consume audio frames in utterance windows until stopped or Sentinel."""
        pcm = bytearray()
        fresh = 0  # bytes not yet sent in any window
        sample_rate = 16000
        channels = 1

        while not session.stop_event.is_set():
            try:
                frame = session.audio_queue.get(timeout=0.2)
            except Empty:
                continue
            if frame is None:  # Sentinel
                break
            pcm.extend(frame.pcm16_bytes)
            fresh += len(frame.pcm16_bytes)
            sample_rate = frame.sample_rate
            channels = frame.channels
            if _pcm_duration_ms(len(pcm), sample_rate, channels) >= self._utterance_ms:
                segment = bytes(pcm)
                carry = _overlap_bytes(self._overlap_ms, sample_rate, channels)
                pcm = bytearray(segment[len(segment) - carry:]) if carry else bytearray()
                fresh = 0
                if not self._recognize_segment(session, segment, sample_rate, channels):
                    return

        if session.stop_event.is_set():
            return

        if fresh and _pcm_duration_ms(fresh, sample_rate, channels) >= self._min_utterance_ms:
            self._recognize_segment(session, bytes(pcm), sample_rate, channels)

    def _recognize_segment(self, session: _Session, pcm: bytes, sample_rate: int, channels: int) -> bool:
        """Recognize one window. Returns False when the engine must stop."""
        logger.debug("Recognizing %d ms of audio", _pcm_duration_ms(len(pcm), sample_rate, channels))
        return self._recognize_stream(session, _pcm_to_wav_base64(pcm, sample_rate, channels))

    def _recognize_stream(self, session: _Session, wav_base64: str) -> bool:
        """Stream one window through dashscope: partials as they arrive, then one final."""
        if dashscope is None:
            return self._emit_error(session, ASR_PROTOCOL_ERROR, "dashscope is not installed", retryable=False)
        api_key = self._api_key or os.getenv("DASHSCOPE_API_KEY", "")
        if not api_key:
            return self._emit_error(session, AUTH_FAILED, "No API key configured", retryable=False)

        latest_text = ""
        try:
            responses = dashscope.MultiModalConversation.call(
                api_key=api_key,
                model=self._model,
                messages=[
                    {"role": "system", "content": [{"text": ""}]},
                    {"role": "user", "content": [{"audio": wav_base64}]},
                ],
                result_format="message",
                asr_options={"enable_itn": False},
                stream=True,
                timeout=self._request_timeout_s,
            )
            for chunk in responses:
                if session.stop_event.is_set():
                    return False
                text = _extract_text(chunk)
                if text:
                    latest_text = text
                    session.on_event(TranscriptEvent(kind=TranscriptKind.PARTIAL.value, text=text))
        except Exception as exc:
            if session.stop_event.is_set():
                return False
            code, retryable = _classify_error(exc)
            return self._emit_error(session, code, str(exc), retryable)

        if session.stop_event.is_set():
            return False
        session.on_event(TranscriptEvent(kind=TranscriptKind.FINAL.value, text=latest_text))
        return True

    def _emit_error(self, session: _Session, code: str, message: str, retryable: bool) -> bool:
        logger.warning("Speech engine error (%s): %s", code, message)
        session.on_event(
            TranscriptEvent(
                kind=TranscriptKind.ERROR.value,
                code=code,
                message=message,
                retryable=retryable,
            )
        )
        return False


def _overlap_bytes(overlap_ms: int, sample_rate: int, channels: int, sample_width: int = 2) -> int:
    samples = sample_rate * overlap_ms // 1000
    return samples * channels * sample_width


def _extract_text(chunk: object) -> str:
    """Text of the first content item of a streaming chunk, or ``""``."""
    if not isinstance(chunk, dict):
        return ""
    try:
        value = chunk["output"]["choices"][0]["message"]["content"][0]
    except (KeyError, IndexError, TypeError):
        return ""
    return str(value.get("text", "")) if isinstance(value, dict) else ""


def _classify_error(exc: Exception) -> Tuple[str, bool]:
    """Map an SDK or network exception to ``(code, retryable)``."""
    low = str(exc).lower()
    if any(marker in low for marker in ("401", "auth", "api key")):
        return AUTH_FAILED, False
    if any(marker in low for marker in ("timeout", "network", "connection")):
        return NETWORK_ERROR, True
    return ASR_PROTOCOL_ERROR, True
