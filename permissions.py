"""Microphone permission and device state machine."""

from __future__ import annotations

import logging
import threading
from typing import Callable, List, Optional

from errors import NO_MICROPHONE, PERMISSION_DENIED, PERMISSION_QUERY_FAILED, message_for
from interfaces import PermissionProbe
from models import PermissionState

logger = logging.getLogger(__name__)

try:
    import sounddevice as sd
except Exception:  # pragma: no cover
    sd = None  # type: ignore

ChangeCallback = Callable[[PermissionState, PermissionState], None]


class SoundDevicePermissionProbe:
    """Permission probe backed by PortAudio.

    Desktop hosts have no permission prompt of their own; opening an input
    stream is what triggers the OS prompt, and a stream that cannot be opened
    is reported as a denial. ``poll`` re-checks a denied or missing device and
    notifies subscribers when it becomes usable.
    """

    def __init__(self, device: Optional[int] = None, sample_rate: int = 16000) -> None:
        self._device = device
        self._sample_rate = sample_rate
        self._state = PermissionState.PROMPT
        self._device_missing = False
        self._listeners: List[Callable[[PermissionState], None]] = []
        self._lock = threading.Lock()

    def has_input_device(self) -> bool:
        if sd is None:
            return False
        devices = sd.query_devices()
        present = any(d.get("max_input_channels", 0) > 0 for d in devices)
        self._device_missing = not present
        return present

    def query(self) -> PermissionState:
        return self._state

    def request(self) -> bool:
        granted = self._try_open()
        self._state = PermissionState.GRANTED if granted else PermissionState.DENIED
        return granted

    def subscribe(self, callback: Callable[[PermissionState], None]) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(callback)

        def _unsubscribe() -> None:
            with self._lock:
                if callback in self._listeners:
                    self._listeners.remove(callback)

        return _unsubscribe

    def poll(self) -> PermissionState:
        if self._device_missing:
            try:
                connected = self.has_input_device()
            except Exception as exc:
                logger.warning("Audio device enumeration failed: %s", exc)
                return self._state
            if connected:
                logger.info("Input device connected")
                self._notify(self._state)
            return self._state
        # Only a denial is re-probed; a granted device may be held by the recorder.
        if self._state != PermissionState.DENIED:
            return self._state
        state = PermissionState.GRANTED if self._try_open() else PermissionState.DENIED
        if state != self._state:
            self._state = state
            self._notify(state)
        return state

    def _notify(self, state: PermissionState) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            listener(state)

    def _try_open(self) -> bool:
        if sd is None:
            return False
        try:
            stream = sd.InputStream(
                device=self._device,
                samplerate=self._sample_rate,
                channels=1,
                dtype="int16",
            )
            stream.start()
            stream.stop()
            stream.close()
        except Exception as exc:
            logger.warning("Microphone could not be opened: %s", exc)
            return False
        return True


class MicrophonePermissionMachine:
    """Tracks ``prompt -> granted | denied`` for the microphone.

    ``granted`` and ``denied`` only change again when the platform reports a
    change through the probe subscription. A missing device is a denial with
    its own error code.
    """

    def __init__(self, probe: PermissionProbe, on_change: Optional[ChangeCallback] = None) -> None:
        self._probe = probe
        self._on_change = on_change
        self._lock = threading.RLock()
        self._state = PermissionState.PROMPT
        self._device_available = True
        self._error_code: Optional[str] = None
        self._unsubscribe: Optional[Callable[[], None]] = None

    @property
    def state(self) -> PermissionState:
        return self._state

    @property
    def device_available(self) -> bool:
        return self._device_available

    @property
    def error_code(self) -> Optional[str]:
        return self._error_code

    @property
    def error_message(self) -> Optional[str]:
        if self._error_code is None:
            return None
        return message_for(self._error_code)

    def can_listen(self) -> bool:
        return self._state == PermissionState.GRANTED and self._device_available

    def refresh(self) -> PermissionState:
        """Check for a device and read the current platform permission."""
        with self._lock:
            # Subscribed even without a device so a later connection is seen.
            if self._unsubscribe is None:
                try:
                    self._unsubscribe = self._probe.subscribe(self._on_platform_change)
                except Exception as exc:
                    logger.warning("Permission change subscription unavailable: %s", exc)
            if not self._check_device():
                return self._state
            try:
                state = self._probe.query()
            except Exception as exc:
                logger.error("Error checking microphone permission: %s", exc)
                self._error_code = PERMISSION_QUERY_FAILED
                return self._state
            self._apply(state)
            return self._state

    def request(self) -> PermissionState:
        """Ask for access when still in ``prompt``; terminal states are returned as is."""
        with self._lock:
            if self._state != PermissionState.PROMPT:
                return self._state
            if not self._check_device():
                return self._state
            try:
                granted = self._probe.request()
            except Exception as exc:
                logger.error("Error requesting microphone permission: %s", exc)
                granted = False
            self._apply(PermissionState.GRANTED if granted else PermissionState.DENIED)
            return self._state

    def close(self) -> None:
        with self._lock:
            unsubscribe = self._unsubscribe
            self._unsubscribe = None
        if unsubscribe is not None:
            unsubscribe()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _on_platform_change(self, state: PermissionState) -> None:
        with self._lock:
            if not self._check_device():
                return
            self._apply(state)

    def _check_device(self) -> bool:
        try:
            available = self._probe.has_input_device()
        except Exception as exc:
            logger.error("Error enumerating audio devices: %s", exc)
            self._error_code = PERMISSION_QUERY_FAILED
            return False
        self._device_available = available
        if not available:
            self._error_code = NO_MICROPHONE
            self._transition(PermissionState.DENIED)
        return available

    def _apply(self, state: PermissionState) -> None:
        if state == PermissionState.DENIED:
            self._error_code = PERMISSION_DENIED
        else:
            self._error_code = None
        self._transition(state)

    def _transition(self, to_state: PermissionState) -> None:
        from_state = self._state
        if from_state == to_state:
            return
        self._state = to_state
        logger.info("Microphone permission %s -> %s", from_state.value, to_state.value)
        if self._on_change:
            try:
                self._on_change(from_state, to_state)
            except Exception:
                logger.exception("on_change callback failed")
