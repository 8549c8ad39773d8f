"""Command delivery to the embedded simulation frame."""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, FrozenSet, Mapping, Optional

from interfaces import FrameTarget
from models import RESUME_AUDIO, DispatchMessage

logger = logging.getLogger(__name__)

SIMULATION_LOADED = "phet-simulation-loaded"
RESERVED_KEYS = frozenset({"messageType", "action"})


class CommandDispatcher:
    """Posts ``user-interaction`` messages to a simulation frame.

    Sends are fire-and-forget. A missing frame, an action outside the
    experiment's action set, or a frame that raises all make ``send_command``
    return False; none of them raise.
    """

    def __init__(
        self,
        frame: Optional[FrameTarget] = None,
        allowed_actions: Optional[FrozenSet[str]] = None,
        target_origin: str = "*",
        on_ready: Optional[Callable[[], None]] = None,
    ) -> None:
        self._frame = frame
        self._allowed_actions = allowed_actions
        self._target_origin = target_origin
        self._on_ready = on_ready
        self._lock = threading.Lock()
        self._audio_unlocked = False
        self._ready = False

    @property
    def audio_unlocked(self) -> bool:
        return self._audio_unlocked

    @property
    def simulation_ready(self) -> bool:
        return self._ready

    def attach(self, frame: FrameTarget) -> None:
        with self._lock:
            self._frame = frame

    def detach(self) -> None:
        with self._lock:
            self._frame = None
            self._ready = False

    def unlock_audio(self) -> bool:
        """Send the one-time audio unlock message if it has not been sent."""
        with self._lock:
            frame = self._frame
            if frame is None:
                logger.warning("Cannot unlock audio: simulation frame not available")
                return False
            return self._unlock_locked(frame)

    def send_command(self, action: str, params: Optional[Mapping[str, Any]] = None) -> bool:
        message = self._build_message(action, params)
        if message is None:
            return False

        with self._lock:
            frame = self._frame
            if frame is None:
                logger.warning("Failed to send command %r: simulation frame not available", action)
                return False
            if not self._unlock_locked(frame):
                return False
            if not self._post(frame, message):
                return False
        logger.info("Sent command to simulation: %s %s", action, message.params)
        return True

    def handle_inbound(self, data: Any) -> None:
        """Process a message received from the frame."""
        if not isinstance(data, Mapping) or data.get("type") != SIMULATION_LOADED:
            return
        with self._lock:
            already = self._ready
            self._ready = True
        if already:
            return
        logger.info("Simulation connected and ready for commands")
        if self._on_ready:
            try:
                self._on_ready()
            except Exception:
                logger.exception("on_ready callback failed")

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _build_message(
        self, action: str, params: Optional[Mapping[str, Any]]
    ) -> Optional[DispatchMessage]:
        if not action or action == RESUME_AUDIO:
            logger.warning("Rejected command action %r", action)
            return None
        if self._allowed_actions is not None and action not in self._allowed_actions:
            logger.warning("Rejected command %r: not supported by this simulation", action)
            return None
        extra: Dict[str, Any] = dict(params or {})
        clash = RESERVED_KEYS.intersection(extra)
        if clash:
            logger.warning("Rejected command %r: params override %s", action, sorted(clash))
            return None
        return DispatchMessage(action=action, params=extra)

    def _unlock_locked(self, frame: FrameTarget) -> bool:
        if self._audio_unlocked:
            return True
        if not self._post(frame, DispatchMessage(action=RESUME_AUDIO)):
            return False
        self._audio_unlocked = True
        logger.debug("Audio unlock sent to simulation")
        return True

    def _post(self, frame: FrameTarget, message: DispatchMessage) -> bool:
        try:
            frame.post_message(message.to_payload(), self._target_origin)
        except Exception:
            logger.exception("Posting %r to simulation failed", message.action)
            return False
        return True
