"""Per-surface voice command controller.

Wires the listening session, the matcher, the achievement tracker and the
simulation dispatcher together. Recognized commands flow

    engine -> transcript -> matcher -> tracker -> binding -> dispatcher

and nothing in that chain raises into the caller; failures are reported via
``on_error(code, message)`` and the notification service.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Mapping, Optional

from achievements import AchievementTracker
from config import VoiceSettings
from dispatcher import CommandDispatcher
from errors import FRAME_NOT_READY, message_for
from experiments import CommandBinding, ExperimentProfile
from interfaces import (
    FrameTarget,
    GamificationService,
    NotificationService,
    PermissionProbe,
    Recorder,
    Scheduler,
    SpeechEngine,
)
from matcher import CommandMatcher
from models import NotificationType, PermissionState, RecognitionEvent, VoiceStatus
from permissions import MicrophonePermissionMachine
from transcription import SpeechTranscriptionAdapter

logger = logging.getLogger(__name__)

CommandCallback = Callable[[RecognitionEvent], None]
LocalCommandCallback = Callable[[str], None]
TranscriptCallback = Callable[[str], None]
ListeningCallback = Callable[[bool], None]
ErrorCallback = Callable[[str, str], None]


class VoiceCommandController:
    def __init__(
        self,
        recorder: Recorder,
        engine: SpeechEngine,
        probe: PermissionProbe,
        matcher: CommandMatcher,
        tracker: AchievementTracker,
        dispatcher: Optional[CommandDispatcher] = None,
        bindings: Optional[Mapping[str, CommandBinding]] = None,
        notifications: Optional[NotificationService] = None,
        on_command: Optional[CommandCallback] = None,
        on_local_command: Optional[LocalCommandCallback] = None,
        on_transcript: Optional[TranscriptCallback] = None,
        on_listening_change: Optional[ListeningCallback] = None,
        on_error: Optional[ErrorCallback] = None,
    ) -> None:
        self._matcher = matcher
        self._tracker = tracker
        self._dispatcher = dispatcher
        self._bindings = dict(bindings or {})
        self._notifications = notifications
        self._on_command = on_command
        self._on_local_command = on_local_command
        self._on_transcript = on_transcript
        self._on_error = on_error

        self._lock = threading.RLock()
        self._closed = False
        self._last_command: Optional[str] = None

        self._permissions = MicrophonePermissionMachine(
            probe, on_change=self._handle_permission_change
        )
        self._transcriber = SpeechTranscriptionAdapter(
            recorder=recorder,
            engine=engine,
            permissions=self._permissions,
            on_transcript=self._handle_transcript,
            on_listening_change=on_listening_change,
            on_error=self._handle_error,
        )

    @property
    def permissions(self) -> MicrophonePermissionMachine:
        return self._permissions

    @property
    def transcriber(self) -> SpeechTranscriptionAdapter:
        return self._transcriber

    @property
    def listening(self) -> bool:
        return self._transcriber.listening

    @property
    def last_command(self) -> Optional[str]:
        """Last recognized command that had an experiment binding."""
        return self._last_command

    def mount(self, auto_start: bool = False) -> PermissionState:
        """Read the microphone state; optionally start listening when already granted."""
        state = self._permissions.refresh()
        error = self._permissions.error_code
        if error is not None and state == PermissionState.DENIED:
            self._handle_error(error, message_for(error))
        elif auto_start and state == PermissionState.GRANTED:
            self._transcriber.start_listening()
        return state

    def toggle_listening(self) -> bool:
        """Flip listening on or off. Returns the resulting listening flag."""
        with self._lock:
            if self._closed:
                return False
        if self._transcriber.listening:
            self._transcriber.stop_listening()
            return False
        if self._dispatcher is not None:
            # Enabling voice control is the user gesture the simulation needs.
            self._dispatcher.unlock_audio()
        self._matcher.reset_transcript()
        return self._transcriber.start_listening()

    def send_command(self, action: str, params: Optional[Mapping[str, Any]] = None) -> bool:
        if self._dispatcher is None:
            logger.warning("No simulation dispatcher for command %r", action)
            return False
        return self._dispatcher.send_command(action, params)

    def handle_frame_message(self, data: Any) -> None:
        if self._dispatcher is not None:
            self._dispatcher.handle_inbound(data)

    def reset_experiment(self) -> None:
        with self._lock:
            self._last_command = None
        self._tracker.reset()
        self._matcher.reset()
        self._transcriber.reset_transcript()

    def status(self) -> VoiceStatus:
        session = self._transcriber.session
        event = self._matcher.current_event
        return VoiceStatus(
            transcript=session.transcript,
            listening=session.active,
            supports_speech_recognition=self._transcriber.supports_speech_recognition,
            permission=session.permission,
            unique_commands=self._tracker.unique_commands,
            error=session.last_error or self._permissions.error_message,
            last_recognized_command=event.command if event else None,
            recognized_at=event.recognized_at if event else None,
            confidence_level=event.confidence if event else 0.0,
            simulation_ready=self._dispatcher.simulation_ready if self._dispatcher else False,
        )

    def close(self) -> None:
        """Stop the microphone, cancel timers and drop further events."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
        self._transcriber.close()
        self._matcher.close()
        logger.debug("Voice controller closed")

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _handle_transcript(self, text: str, is_final: bool) -> None:
        with self._lock:
            if self._closed:
                return
        self._safe_call(self._on_transcript, text)
        event = self._matcher.process(text)
        if is_final:
            self._matcher.reset_transcript()
        if event is not None:
            self._handle_recognized(event)

    def _handle_recognized(self, event: RecognitionEvent) -> None:
        self._tracker.observe(event.command)
        self._safe_call(self._on_command, event)

        binding = self._bindings.get(event.command)
        if binding is None:
            return
        with self._lock:
            self._last_command = event.command
        if binding.action is None:
            self._safe_call(self._on_local_command, event.command)
            return
        if not self.send_command(binding.action):
            self._notify(
                "Voice command",
                f'{message_for(FRAME_NOT_READY)} "{event.command}" was not sent.',
                NotificationType.WARNING.value,
            )

    def _handle_permission_change(self, from_state: PermissionState, to_state: PermissionState) -> None:
        if to_state == PermissionState.GRANTED:
            self._transcriber.clear_error()

    def _handle_error(self, code: str, message: str) -> None:
        self._notify("Voice commands", message_for(code, message), NotificationType.ERROR.value)
        if self._on_error:
            try:
                self._on_error(code, message)
            except Exception:
                logger.exception("on_error callback failed")

    def _notify(self, title: str, message: str, type: str) -> None:
        if self._notifications is None:
            return
        try:
            self._notifications.add_notification(title, message, type)
        except Exception:
            logger.exception("Notification %r failed", title)

    def _safe_call(self, callback: Optional[Callable[..., None]], *args: Any) -> None:
        if callback is None:
            return
        try:
            callback(*args)
        except Exception:
            logger.exception("Voice controller callback failed")


def build_controller(
    profile: ExperimentProfile,
    settings: VoiceSettings,
    recorder: Recorder,
    engine: SpeechEngine,
    probe: PermissionProbe,
    gamification: GamificationService,
    notifications: Optional[NotificationService] = None,
    frame: Optional[FrameTarget] = None,
    scheduler: Optional[Scheduler] = None,
    **callbacks: Any,
) -> VoiceCommandController:
    """Assemble a controller for one experiment surface.

    ``on_recognition_cleared``, ``on_badge_unlocked`` and
    ``on_simulation_ready`` go to the matcher, tracker and dispatcher; every
    other keyword is a ``VoiceCommandController`` callback.
    """
    matcher = CommandMatcher(
        profile.commands(),
        scheduler=scheduler,
        dedup_window_ms=settings.dedup_window_ms,
        display_ms=settings.display_ms,
        on_cleared=callbacks.pop("on_recognition_cleared", None),
    )
    tracker = AchievementTracker(
        gamification,
        badge_id=settings.badge_id,
        threshold=settings.badge_threshold,
        on_unlocked=callbacks.pop("on_badge_unlocked", None),
    )
    dispatcher = CommandDispatcher(
        frame=frame,
        allowed_actions=profile.actions,
        target_origin=profile.origin,
        on_ready=callbacks.pop("on_simulation_ready", None),
    )
    return VoiceCommandController(
        recorder=recorder,
        engine=engine,
        probe=probe,
        matcher=matcher,
        tracker=tracker,
        dispatcher=dispatcher,
        bindings=profile.bindings,
        notifications=notifications,
        **callbacks,
    )
