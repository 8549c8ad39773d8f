from __future__ import annotations

import pytest

from catalog import DEFAULT_COMMANDS, merge_catalogs, normalize_phrase
from experiments import (
    OHMS_LAW,
    PROFILES,
    WAVE_INTERFERENCE,
    CommandBinding,
    ExperimentProfile,
    get_profile,
)
from models import VoiceCommand


def test_normalize_phrase() -> None:
    assert normalize_phrase("  Add   BASE ") == "add base"


def test_merge_keeps_first_entry_per_phrase() -> None:
    merged = merge_catalogs(
        [VoiceCommand("Show Results", "mine"), VoiceCommand(" ", "blank")],
        DEFAULT_COMMANDS,
    )

    assert merged[0] == VoiceCommand("show results", "mine")
    assert [c.command for c in merged].count("show results") == 1
    assert len(merged) == len(DEFAULT_COMMANDS)


def test_profile_phrases_come_before_shared_catalog() -> None:
    commands = [c.command for c in OHMS_LAW.commands()]

    assert commands[0] == "increase voltage"
    assert commands.index("previous step") < commands.index("add base")
    assert commands[-1] == "hide trace"


def test_actions_match_bindings() -> None:
    assert OHMS_LAW.actions == frozenset(
        {"increase-voltage", "decrease-voltage", "increase-resistance", "decrease-resistance", "reset"}
    )
    assert "reset-simulation" in WAVE_INTERFERENCE.actions


def test_binding_lookup_is_normalized() -> None:
    binding = WAVE_INTERFERENCE.binding_for("Add  Source")

    assert binding is not None
    assert binding.action == "add-source"
    assert WAVE_INTERFERENCE.binding_for("next step") == CommandBinding("Moving to next step")
    assert WAVE_INTERFERENCE.binding_for("go to dashboard") is None


def test_origin_is_derived_from_url() -> None:
    assert OHMS_LAW.origin == "https://phet.colorado.edu"
    local = ExperimentProfile("local", "Local", "ohms-law.html", frozenset())
    assert local.origin == "*"


def test_undeclared_action_is_rejected() -> None:
    with pytest.raises(ValueError, match="undeclared"):
        ExperimentProfile(
            "broken",
            "Broken",
            "https://example.org/sim.html",
            frozenset({"a"}),
            {"do b": CommandBinding("b", "b")},
        )


def test_audio_unlock_action_is_reserved() -> None:
    with pytest.raises(ValueError, match="reserved"):
        ExperimentProfile("broken", "Broken", "https://example.org", frozenset({"resume-audio"}))


def test_get_profile() -> None:
    assert get_profile("ohms-law") is OHMS_LAW
    assert set(PROFILES) == {"ohms-law", "wave-interference"}
    with pytest.raises(ValueError):
        get_profile("chemistry")
