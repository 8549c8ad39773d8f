"""Simple JSON-based config store."""

from __future__ import annotations

import json
from dataclasses import dataclass, fields
from pathlib import Path

from achievements import UNIQUE_COMMAND_THRESHOLD, VOICE_BADGE_ID
from matcher import DEDUP_WINDOW_MS, DISPLAY_MS

DEFAULT_HOTKEY = "Key.f8"
DEFAULT_EXPERIMENT = "ohms-law"


@dataclass
class VoiceSettings:
    dedup_window_ms: int = DEDUP_WINDOW_MS
    display_ms: int = DISPLAY_MS
    badge_threshold: int = UNIQUE_COMMAND_THRESHOLD
    badge_id: str = VOICE_BADGE_ID
    utterance_ms: int = 2500
    microphone: str = ""


class JsonConfigStore:
    def __init__(self, path: Path | None = None) -> None:
        self._path = path or Path.home() / ".config" / "steam_hub" / "config.json"
        self._path.parent.mkdir(parents=True, exist_ok=True)

    def get_api_key(self) -> str:
        data = self._read_all()
        return str(data.get("api_key", ""))

    def set_api_key(self, key: str) -> None:
        data = self._read_all()
        data["api_key"] = key
        self._write_all(data)

    def get_hotkey(self) -> str:
        data = self._read_all()
        return str(data.get("hotkey", DEFAULT_HOTKEY))

    def set_hotkey(self, hotkey: str) -> None:
        data = self._read_all()
        data["hotkey"] = hotkey
        self._write_all(data)

    def get_experiment(self) -> str:
        data = self._read_all()
        return str(data.get("experiment", DEFAULT_EXPERIMENT))

    def set_experiment(self, experiment_id: str) -> None:
        data = self._read_all()
        data["experiment"] = experiment_id
        self._write_all(data)

    def load_voice_settings(self) -> VoiceSettings:
        """Read the ``voice`` section; missing or mistyped keys keep their defaults."""
        section = self._read_all().get("voice", {})
        settings = VoiceSettings()
        if not isinstance(section, dict):
            return settings
        for f in fields(VoiceSettings):
            value = section.get(f.name)
            default = getattr(settings, f.name)
            if isinstance(value, type(default)) and not isinstance(value, bool):
                setattr(settings, f.name, value)
        return settings

    def _read_all(self) -> dict:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError):
            return {}
        return data if isinstance(data, dict) else {}

    def _write_all(self, data: dict) -> None:
        self._path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
