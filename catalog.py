"""Built-in voice command catalog.

Order matters: when a transcript contains several phrases, the entry that
appears first here is recognized first.
"""

from __future__ import annotations

from typing import Iterable, List, Tuple

from models import VoiceCommand

DEFAULT_COMMANDS: Tuple[VoiceCommand, ...] = (
    VoiceCommand("add base", "Add 1 mL of base solution"),
    VoiceCommand("add five milliliters", "Add 5 mL of base solution"),
    VoiceCommand("reset experiment", "Reset the experiment"),
    VoiceCommand("show results", "Show the results"),
    VoiceCommand("go to dashboard", "Return to the dashboard"),
    VoiceCommand("start auto titration", "Start automatic titration"),
    VoiceCommand("stop auto titration", "Stop automatic titration"),
    VoiceCommand("start pendulum", "Start the pendulum motion"),
    VoiceCommand("stop pendulum", "Stop the pendulum motion"),
    VoiceCommand("show trace", "Show pendulum trace"),
    VoiceCommand("hide trace", "Hide pendulum trace"),
)


def normalize_phrase(phrase: str) -> str:
    return " ".join(phrase.lower().split())


def merge_catalogs(*catalogs: Iterable[VoiceCommand]) -> List[VoiceCommand]:
    """Concatenate catalogs, keeping the first entry for each phrase."""
    seen = set()
    merged: List[VoiceCommand] = []
    for catalog in catalogs:
        for entry in catalog:
            phrase = normalize_phrase(entry.command)
            if not phrase or phrase in seen:
                continue
            seen.add(phrase)
            merged.append(VoiceCommand(phrase, entry.description))
    return merged
