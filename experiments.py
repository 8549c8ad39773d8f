"""Per-experiment command bindings for the embedded PhET simulations."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Mapping, Optional
from urllib.parse import urlsplit

from catalog import DEFAULT_COMMANDS, merge_catalogs, normalize_phrase
from models import RESUME_AUDIO, VoiceCommand


@dataclass(frozen=True)
class CommandBinding:
    """What a recognized phrase does.

    ``action`` is posted to the simulation frame. Bindings without an action
    are handled by the host (e.g. stepping through the lesson).
    """

    feedback: str
    action: Optional[str] = None


@dataclass(frozen=True)
class ExperimentProfile:
    experiment_id: str
    title: str
    simulation_url: str
    actions: FrozenSet[str]
    bindings: Mapping[str, CommandBinding] = field(default_factory=dict)

    def __post_init__(self) -> None:
        unknown = {
            b.action for b in self.bindings.values()
            if b.action is not None and b.action not in self.actions
        }
        if unknown:
            raise ValueError(
                f"{self.experiment_id}: bindings use undeclared actions {sorted(unknown)}"
            )
        if RESUME_AUDIO in self.actions:
            raise ValueError(f"{self.experiment_id}: {RESUME_AUDIO!r} is reserved")

    @property
    def origin(self) -> str:
        parts = urlsplit(self.simulation_url)
        if not parts.scheme or not parts.netloc:
            return "*"
        return f"{parts.scheme}://{parts.netloc}"

    def binding_for(self, command: str) -> Optional[CommandBinding]:
        return self.bindings.get(normalize_phrase(command))

    def commands(self) -> List[VoiceCommand]:
        """Experiment phrases first, then the shared catalog."""
        own = [VoiceCommand(phrase, b.feedback) for phrase, b in self.bindings.items()]
        return merge_catalogs(own, DEFAULT_COMMANDS)


def _profile(
    experiment_id: str,
    title: str,
    simulation_url: str,
    bindings: Dict[str, CommandBinding],
) -> ExperimentProfile:
    actions = frozenset(b.action for b in bindings.values() if b.action)
    return ExperimentProfile(
        experiment_id=experiment_id,
        title=title,
        simulation_url=simulation_url,
        actions=actions,
        bindings={normalize_phrase(k): v for k, v in bindings.items()},
    )


OHMS_LAW = _profile(
    "ohms-law",
    "Ohm's Law",
    "https://phet.colorado.edu/sims/html/ohms-law/latest/ohms-law_en.html",
    {
        "increase voltage": CommandBinding("Increasing voltage", "increase-voltage"),
        "decrease voltage": CommandBinding("Decreasing voltage", "decrease-voltage"),
        "increase resistance": CommandBinding("Increasing resistance", "increase-resistance"),
        "decrease resistance": CommandBinding("Decreasing resistance", "decrease-resistance"),
        "reset simulation": CommandBinding("Resetting simulation", "reset"),
        "next step": CommandBinding("Moving to next step"),
        "previous step": CommandBinding("Moving to previous step"),
    },
)

WAVE_INTERFERENCE = _profile(
    "wave-interference",
    "Wave Interference",
    "https://phet.colorado.edu/sims/html/wave-interference/latest/wave-interference_en.html",
    {
        "add source": CommandBinding("Adding a wave source", "add-source"),
        "remove source": CommandBinding("Removing a wave source", "remove-source"),
        "increase frequency": CommandBinding("Increasing wave frequency", "increase-frequency"),
        "decrease frequency": CommandBinding("Decreasing wave frequency", "decrease-frequency"),
        "increase amplitude": CommandBinding("Increasing wave amplitude", "increase-amplitude"),
        "decrease amplitude": CommandBinding("Decreasing wave amplitude", "decrease-amplitude"),
        "show graph": CommandBinding("Showing the graph view", "show-graph"),
        "reset simulation": CommandBinding("Resetting the simulation", "reset-simulation"),
        "next step": CommandBinding("Moving to next step"),
        "previous step": CommandBinding("Moving to previous step"),
    },
)

PROFILES: Dict[str, ExperimentProfile] = {
    OHMS_LAW.experiment_id: OHMS_LAW,
    WAVE_INTERFERENCE.experiment_id: WAVE_INTERFERENCE,
}


def get_profile(experiment_id: str) -> ExperimentProfile:
    try:
        return PROFILES[experiment_id]
    except KeyError:
        raise ValueError(f"unknown experiment: {experiment_id}") from None
