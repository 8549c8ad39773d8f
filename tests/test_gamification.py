from __future__ import annotations

import pytest

from achievements import VOICE_BADGE_ID
from experiments import PROFILES
from gamification import DEFAULT_BADGES, EXPERIMENT_BADGES, GamificationStore, NotificationCenter


@pytest.fixture
def center() -> NotificationCenter:
    return NotificationCenter()


@pytest.fixture
def store(center: NotificationCenter) -> GamificationStore:
    return GamificationStore(center)


def _earned(store: GamificationStore) -> set:
    return {b.id for b in store.earned_badges()}


def test_voice_badge_exists_in_catalog() -> None:
    assert VOICE_BADGE_ID in {b.id for b in DEFAULT_BADGES}


def test_earn_badge_is_idempotent(store: GamificationStore, center: NotificationCenter) -> None:
    store.earn_badge(VOICE_BADGE_ID)
    store.earn_badge(VOICE_BADGE_ID)

    badge = store.get_badge(VOICE_BADGE_ID)
    assert badge is not None and badge.earned
    assert badge.earned_date
    assert len(center.notifications) == 1
    assert center.notifications[0].type == "achievement"
    assert "Voice Commander" in center.notifications[0].message


def test_unknown_badge_is_ignored(store: GamificationStore, center: NotificationCenter) -> None:
    store.earn_badge("does-not-exist")

    assert store.earned_badges() == []
    assert center.notifications == []


def test_badges_are_copies(store: GamificationStore) -> None:
    store.badges[0].earned = True

    assert store.earned_badges() == []


def test_first_pass_earns_first_experiment_and_subject(store: GamificationStore) -> None:
    store.update_progress("ohms-law", 75)

    assert _earned(store) == {"first-experiment", "physics-master"}
    assert store.experiment_progress("ohms-law") == (75, True)
    assert store.completed_experiments() == 1


def test_failed_attempt_then_pass_is_persistent(store: GamificationStore) -> None:
    store.update_progress("wave-interference", 40)
    assert _earned(store) == set()
    assert store.experiment_progress("wave-interference") == (40, False)

    store.update_progress("wave-interference", 100)

    assert _earned(store) == {"persistent-scientist", "perfect-score", "wave-wizard"}


def test_two_subjects_and_all_experiments(store: GamificationStore) -> None:
    store.update_progress("ohms-law", 80)
    store.update_progress("wave-interference", 80)
    assert "science-explorer" not in _earned(store)

    store.update_progress("acid-base-titration", 90)

    assert {"science-explorer", "master-of-all", "chemistry-whiz"} <= _earned(store)


@pytest.mark.parametrize("experiment_id,score", [("", 50), ("ohms-law", -1), ("ohms-law", 101)])
def test_invalid_progress_is_rejected(store: GamificationStore, experiment_id: str, score: int) -> None:
    with pytest.raises(ValueError):
        store.update_progress(experiment_id, score)


def test_reset_progress(store: GamificationStore) -> None:
    store.update_progress("ohms-law", 100)

    store.reset_progress()

    assert store.earned_badges() == []
    assert store.experiment_progress("ohms-law") == (0, False)


def test_notifications_are_newest_first_and_capped() -> None:
    center = NotificationCenter(max_items=50)
    for i in range(55):
        center.add_notification(f"n{i}", "body")

    titles = [n.title for n in center.notifications]
    assert len(titles) == 50
    assert titles[0] == "n54"
    assert titles[-1] == "n5"


def test_notification_read_and_clear(center: NotificationCenter) -> None:
    first = center.add_notification("a", "body", "warning")
    second = center.add_notification("b", "body", "error")
    assert center.unread_count == 2

    center.mark_as_read(first.id)
    assert center.unread_count == 1

    center.clear_notification(second.id)
    assert [n.id for n in center.notifications] == [first.id]

    center.add_notification("c", "body")
    center.mark_all_as_read()
    assert center.unread_count == 0

    center.clear_all()
    assert center.notifications == []


def test_unknown_notification_type_is_rejected(center: NotificationCenter) -> None:
    with pytest.raises(ValueError):
        center.add_notification("a", "body", "shout")


def test_on_added_callback_failure_is_contained() -> None:
    def _boom(notification) -> None:  # noqa: ANN001
        raise RuntimeError("ui gone")

    center = NotificationCenter(on_added=_boom)
    center.add_notification("a", "body")

    assert len(center.notifications) == 1


@pytest.mark.parametrize("experiment_id", sorted(PROFILES))
def test_recorded_score_for_each_experiment_earns_its_badge(
    store: GamificationStore, experiment_id: str
) -> None:
    store.update_progress(PROFILES[experiment_id].experiment_id, 80)

    assert EXPERIMENT_BADGES[experiment_id] in _earned(store)


def test_reset_then_mark_all_read_leaves_nothing_unread(
    store: GamificationStore, center: NotificationCenter
) -> None:
    store.update_progress("ohms-law", 100)
    store.reset_progress()
    assert center.notifications[0].title == "Progress Reset"
    assert center.unread_count > 0

    center.mark_all_as_read()

    assert center.unread_count == 0
    assert _earned(store) == set()
