"""Shared error codes and user-facing messages."""

from __future__ import annotations

SPEECH_UNSUPPORTED = "SPEECH_UNSUPPORTED"
PERMISSION_DENIED = "PERMISSION_DENIED"
NO_MICROPHONE = "NO_MICROPHONE"
PERMISSION_QUERY_FAILED = "PERMISSION_QUERY_FAILED"
START_FAILED = "START_FAILED"
NETWORK_ERROR = "NETWORK_ERROR"
AUTH_FAILED = "AUTH_FAILED"
ASR_PROTOCOL_ERROR = "ASR_PROTOCOL_ERROR"
FRAME_NOT_READY = "FRAME_NOT_READY"
INVALID_ACTION = "INVALID_ACTION"

ERROR_MESSAGES = {
    SPEECH_UNSUPPORTED: "Speech recognition is not supported on this system.",
    PERMISSION_DENIED: "Microphone access denied",
    NO_MICROPHONE: "No microphone detected",
    PERMISSION_QUERY_FAILED: "Unable to access microphone permissions",
    START_FAILED: "Failed to start speech recognition",
    NETWORK_ERROR: "Network failed, please retry.",
    AUTH_FAILED: "API key is invalid.",
    ASR_PROTOCOL_ERROR: "ASR response format is invalid.",
    FRAME_NOT_READY: "The simulation is not ready yet.",
    INVALID_ACTION: "The simulation does not support this command.",
}


def message_for(code: str, fallback: str = "") -> str:
    return ERROR_MESSAGES.get(code, fallback or code)
