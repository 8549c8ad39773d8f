"""Protocol interfaces for the collaborators of the voice pipeline."""

from __future__ import annotations

from queue import Queue
from typing import Any, Callable, Dict, Protocol

from models import AudioFrame, PermissionState, TranscriptEvent


class Recorder(Protocol):
    def start(self, audio_queue: Queue[AudioFrame | None]) -> None: ...

    def stop(self) -> None: ...


class SpeechEngine(Protocol):
    def is_supported(self) -> bool: ...

    def start(
        self,
        audio_queue: Queue[AudioFrame | None],
        on_event: Callable[[TranscriptEvent], None],
    ) -> None: ...

    def stop(self) -> None: ...


class PermissionProbe(Protocol):
    def has_input_device(self) -> bool: ...

    def query(self) -> PermissionState: ...

    def request(self) -> bool: ...

    def subscribe(self, callback: Callable[[PermissionState], None]) -> Callable[[], None]: ...


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay_s: float, callback: Callable[[], None]) -> TimerHandle: ...


class FrameTarget(Protocol):
    def post_message(self, payload: Dict[str, Any], target_origin: str) -> None: ...


class GamificationService(Protocol):
    def earn_badge(self, badge_id: str) -> None: ...


class NotificationService(Protocol):
    def add_notification(self, title: str, message: str, type: str = "info") -> None: ...


class ConfigStore(Protocol):
    def get_api_key(self) -> str: ...

    def set_api_key(self, key: str) -> None: ...

    def get_hotkey(self) -> str: ...

    def set_hotkey(self, hotkey: str) -> None: ...

    def get_experiment(self) -> str: ...

    def set_experiment(self, experiment_id: str) -> None: ...

    def load_voice_settings(self) -> Any: ...
