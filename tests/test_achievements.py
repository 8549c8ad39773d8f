from __future__ import annotations

import pytest

from achievements import VOICE_BADGE_ID, AchievementTracker


def test_unique_count_tracks_distinct_commands(gamification) -> None:  # noqa: ANN001
    tracker = AchievementTracker(gamification)
    sequence = ["show trace", "show trace", "hide trace", "show trace", "add base"]

    counts = []
    for command in sequence:
        tracker.observe(command)
        counts.append(tracker.count)

    assert counts == [1, 1, 2, 2, 3]
    assert tracker.unique_commands == frozenset({"show trace", "hide trace", "add base"})


def test_badge_earned_on_fifth_distinct_command(gamification) -> None:  # noqa: ANN001
    tracker = AchievementTracker(gamification)
    sequence = [
        "add base",
        "add base",
        "reset experiment",
        "show results",
        "add five milliliters",
        "go to dashboard",
    ]

    unlocked_at = [command for command in sequence if tracker.observe(command)]

    assert unlocked_at == ["go to dashboard"]
    assert gamification.calls == [VOICE_BADGE_ID]
    assert tracker.granted is True


def test_badge_not_requested_again_after_unlock(gamification) -> None:  # noqa: ANN001
    tracker = AchievementTracker(gamification, threshold=2)

    for command in ["a", "b", "c", "d", "a"]:
        tracker.observe(command)

    assert gamification.calls == [VOICE_BADGE_ID]
    assert tracker.count == 4


def test_collaborator_failure_keeps_local_state(gamification) -> None:  # noqa: ANN001
    gamification.fail = True
    tracker = AchievementTracker(gamification, threshold=1)

    assert tracker.observe("add base") is True
    assert tracker.observe("show results") is False

    assert tracker.unique_commands == frozenset({"add base", "show results"})
    assert tracker.granted is True
    assert gamification.calls == [VOICE_BADGE_ID]


def test_unlock_callback_receives_badge_id(gamification) -> None:  # noqa: ANN001
    unlocked = []
    tracker = AchievementTracker(gamification, badge_id="voice-test", threshold=1, on_unlocked=unlocked.append)

    tracker.observe("add base")

    assert unlocked == ["voice-test"]
    assert gamification.calls == ["voice-test"]


def test_reset_starts_a_new_session(gamification) -> None:  # noqa: ANN001
    tracker = AchievementTracker(gamification, threshold=2)
    tracker.observe("a")
    tracker.observe("b")

    tracker.reset()
    assert tracker.count == 0
    assert tracker.granted is False

    tracker.observe("c")
    tracker.observe("d")
    assert gamification.calls == [VOICE_BADGE_ID, VOICE_BADGE_ID]


def test_threshold_must_be_positive(gamification) -> None:  # noqa: ANN001
    with pytest.raises(ValueError):
        AchievementTracker(gamification, threshold=0)
