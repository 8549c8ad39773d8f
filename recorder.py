"""Microphone capture into a frame queue."""

from __future__ import annotations

import logging
import threading
import time
from queue import Full, Queue
from typing import Any, Optional

from models import AudioFrame

logger = logging.getLogger(__name__)

try:
    import numpy as np
except Exception:  # pragma: no cover
    np = None  # type: ignore

try:
    import sounddevice as sd
except Exception:  # pragma: no cover
    sd = None  # type: ignore


def resolve_input_device(name: str) -> Optional[int]:
    """Map a configured microphone name to a sounddevice index, exact match first."""
    if not name or sd is None:
        return None
    devices = sd.query_devices()
    inputs = [(i, d) for i, d in enumerate(devices) if d.get("max_input_channels", 0) > 0]
    for i, d in inputs:
        if d.get("name", "").strip() == name:
            return i
    for i, d in inputs:
        if name in d.get("name", ""):
            return i
    logger.warning("Microphone %r not found, using default input", name)
    return None


class SoundDeviceRecorder:
    """Pushes PCM16 frames from the microphone into a queue.

    The input device is either given as an index or looked up once by the
    configured microphone name. ``stop`` always enqueues a ``None`` sentinel
    so the consumer can finish.
    """

    def __init__(
        self,
        sample_rate: int = 16000,
        channels: int = 1,
        chunk_ms: int = 100,
        device: Optional[int] = None,
        microphone: str = "",
    ) -> None:
        self.sample_rate = sample_rate
        self.channels = channels
        self.chunk_ms = chunk_ms
        self._device = device
        self._microphone = microphone
        self._device_resolved = device is not None or not microphone
        self._stream: Any = None
        self._sink: Optional[Queue[AudioFrame | None]] = None
        self._capturing = False
        self._lock = threading.Lock()
        self.dropped_chunks = 0
        self.overflows = 0

    @property
    def running(self) -> bool:
        return self._capturing

    @property
    def blocksize(self) -> int:
        return int(self.sample_rate * self.chunk_ms / 1000)

    def select_device(self) -> Optional[int]:
        """Index of the input device to open; ``None`` means the system default."""
        if not self._device_resolved:
            self._device = resolve_input_device(self._microphone)
            self._device_resolved = True
        return self._device

    def start(self, audio_queue: Queue[AudioFrame | None]) -> None:
        with self._lock:
            if self._capturing:
                return
            if sd is None:
                raise RuntimeError("sounddevice is not installed")
            self._sink = audio_queue
            self.dropped_chunks = 0
            self.overflows = 0
            self._stream = self._open_stream()
            self._capturing = True

    def stop(self) -> None:
        with self._lock:
            if self._capturing:
                self._capturing = False
                self._close_stream()
                if self.dropped_chunks or self.overflows:
                    logger.warning(
                        "Audio lost while listening: %d chunks dropped, %d input overflows",
                        self.dropped_chunks,
                        self.overflows,
                    )
            self._end_of_stream()

    def _open_stream(self) -> Any:
        options: dict = {
            "samplerate": self.sample_rate,
            "channels": self.channels,
            "dtype": "int16",
            "blocksize": self.blocksize,
            "callback": self._on_audio,
        }
        device = self.select_device()
        if device is not None:
            options["device"] = device
        stream = sd.InputStream(**options)
        stream.start()
        logger.debug("Capturing from device %s at %d Hz", "default" if device is None else device, self.sample_rate)
        return stream

    def _close_stream(self) -> None:
        stream, self._stream = self._stream, None
        if stream is not None:
            stream.stop()
            stream.close()

    def _on_audio(self, indata: Any, frames: int, time_info: Any, status: Any) -> None:
        sink = self._sink
        if not self._capturing or sink is None or np is None:
            return
        if status:
            self.overflows += 1
        try:
            sink.put_nowait(self._to_frame(indata))
        except Full:
            self.dropped_chunks += 1

    def _to_frame(self, block: Any) -> AudioFrame:
        return AudioFrame(
            pcm16_bytes=np.asarray(block, dtype=np.int16).tobytes(),
            sample_rate=self.sample_rate,
            channels=self.channels,
            timestamp_ms=int(time.time() * 1000),
        )

    def _end_of_stream(self) -> None:
        if self._sink is None:
            return
        try:
            self._sink.put_nowait(None)
        except Full:
            logger.debug("Frame queue full, consumer will stop on its own")
