"""Core data models for the voice command pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional


USER_INTERACTION = "user-interaction"
RESUME_AUDIO = "resume-audio"


class PermissionState(str, Enum):
    GRANTED = "granted"
    DENIED = "denied"
    PROMPT = "prompt"


class TranscriptKind(str, Enum):
    PARTIAL = "partial"
    FINAL = "final"
    ERROR = "error"


class NotificationType(str, Enum):
    ACHIEVEMENT = "achievement"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


@dataclass
class AudioFrame:
    pcm16_bytes: bytes
    sample_rate: int = 16000
    channels: int = 1
    timestamp_ms: int = 0


@dataclass
class TranscriptEvent:
    kind: str
    text: str = ""
    code: str = ""
    message: str = ""
    retryable: bool = False


@dataclass(frozen=True)
class VoiceCommand:
    command: str
    description: str


@dataclass(frozen=True)
class RecognitionEvent:
    command: str
    recognized_at: int
    confidence: float


@dataclass
class ListeningSession:
    active: bool = False
    transcript: str = ""
    permission: PermissionState = PermissionState.PROMPT
    device_available: bool = True
    last_error: Optional[str] = None


@dataclass(frozen=True)
class DispatchMessage:
    """A single message posted to the embedded simulation frame."""

    action: str
    params: Dict[str, Any] = field(default_factory=dict)
    message_type: str = USER_INTERACTION

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"messageType": self.message_type, "action": self.action}
        payload.update(self.params)
        return payload


@dataclass
class Badge:
    id: str
    name: str
    description: str
    image_url: str = ""
    earned: bool = False
    earned_date: Optional[str] = None


@dataclass
class ExperimentProgress:
    experiment_id: str
    completed: bool
    score: int
    attempts: int
    last_attempt: str


@dataclass
class Notification:
    id: str
    title: str
    message: str
    type: str = NotificationType.INFO.value
    read: bool = False
    created_at: str = ""


@dataclass(frozen=True)
class VoiceStatus:
    """Read-only view of a controller for display surfaces."""

    transcript: str
    listening: bool
    supports_speech_recognition: bool
    permission: PermissionState
    unique_commands: FrozenSet[str]
    error: Optional[str]
    last_recognized_command: Optional[str]
    recognized_at: Optional[int]
    confidence_level: float
    simulation_ready: bool
