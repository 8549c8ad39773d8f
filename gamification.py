"""In-memory gamification and notification collaborators."""

from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import replace
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Tuple

from models import Badge, ExperimentProgress, Notification, NotificationType

logger = logging.getLogger(__name__)

PASSING_SCORE = 60
PERFECT_SCORE = 100
MAX_NOTIFICATIONS = 50

EXPERIMENT_BADGES: Dict[str, str] = {
    "acid-base-titration": "chemistry-whiz",
    "ohms-law": "physics-master",
    "wave-interference": "wave-wizard",
}

EXPERIMENT_SUBJECTS: Dict[str, str] = {
    "acid-base-titration": "chemistry",
    "ohms-law": "physics",
    "wave-interference": "physics",
}

_ICON_BASE = "https://img.icons8.com/color/96"

DEFAULT_BADGES: Tuple[Badge, ...] = (
    Badge("first-experiment", "First Steps",
          "Complete your first experiment with a score of 60% or higher",
          f"{_ICON_BASE}/test-tube.png"),
    Badge("perfect-score", "Perfect Score",
          "Get a perfect score of 100% on any experiment",
          f"{_ICON_BASE}/prize.png"),
    Badge("chemistry-whiz", "Chemistry Whiz",
          "Complete the Acid-Base Titration experiment with a score of 60% or higher",
          f"{_ICON_BASE}/laboratory-flask.png"),
    Badge("physics-master", "Physics Master",
          "Complete the Ohm's Law experiment with a score of 60% or higher",
          f"{_ICON_BASE}/physics.png"),
    Badge("wave-wizard", "Wave Wizard",
          "Complete the Wave Interference experiment with a score of 60% or higher",
          f"{_ICON_BASE}/wavelength.png"),
    Badge("science-explorer", "Science Explorer",
          "Complete experiments in at least 2 different subjects",
          f"{_ICON_BASE}/microscope.png"),
    Badge("quick-learner", "Quick Learner",
          "Complete any experiment in less than 10 minutes",
          f"{_ICON_BASE}/running.png"),
    Badge("persistent-scientist", "Persistent Scientist",
          "Retry an experiment after failing it",
          f"{_ICON_BASE}/determination.png"),
    Badge("master-of-all", "Master of All",
          "Complete all available experiments",
          f"{_ICON_BASE}/graduation-cap.png"),
    Badge("voice-commander", "Voice Commander",
          "Successfully use 5 different voice commands",
          f"{_ICON_BASE}/microphone.png"),
)


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


class NotificationCenter:
    """Newest-first notification list, capped at ``max_items``."""

    def __init__(
        self,
        max_items: int = MAX_NOTIFICATIONS,
        on_added: Optional[Callable[[Notification], None]] = None,
    ) -> None:
        self._max_items = max_items
        self._on_added = on_added
        self._lock = threading.Lock()
        self._items: List[Notification] = []

    @property
    def notifications(self) -> List[Notification]:
        with self._lock:
            return list(self._items)

    @property
    def unread_count(self) -> int:
        with self._lock:
            return sum(1 for n in self._items if not n.read)

    def add_notification(
        self, title: str, message: str, type: str = NotificationType.INFO.value
    ) -> Notification:
        notification = Notification(
            id=uuid.uuid4().hex[:12],
            title=title,
            message=message,
            type=NotificationType(type).value,
            created_at=_timestamp(),
        )
        with self._lock:
            self._items.insert(0, notification)
            del self._items[self._max_items:]
        if self._on_added:
            try:
                self._on_added(notification)
            except Exception:
                logger.exception("on_added callback failed")
        return notification

    def mark_as_read(self, notification_id: str) -> None:
        with self._lock:
            self._items = [
                replace(n, read=True) if n.id == notification_id else n for n in self._items
            ]

    def mark_all_as_read(self) -> None:
        with self._lock:
            self._items = [replace(n, read=True) for n in self._items]

    def clear_notification(self, notification_id: str) -> None:
        with self._lock:
            self._items = [n for n in self._items if n.id != notification_id]

    def clear_all(self) -> None:
        with self._lock:
            self._items = []


class GamificationStore:
    """Badges and experiment progress for one learner.

    ``earn_badge`` is idempotent: unknown or already earned badges are ignored.
    """

    def __init__(self, notifications: Optional[NotificationCenter] = None) -> None:
        self._notifications = notifications
        self._lock = threading.RLock()
        self._badges: List[Badge] = [replace(b) for b in DEFAULT_BADGES]
        self._progress: Dict[str, ExperimentProgress] = {}

    @property
    def badges(self) -> List[Badge]:
        with self._lock:
            return [replace(b) for b in self._badges]

    def get_badge(self, badge_id: str) -> Optional[Badge]:
        with self._lock:
            for badge in self._badges:
                if badge.id == badge_id:
                    return replace(badge)
        return None

    def earned_badges(self) -> List[Badge]:
        return [b for b in self.badges if b.earned]

    def earn_badge(self, badge_id: str) -> None:
        with self._lock:
            index = next((i for i, b in enumerate(self._badges) if b.id == badge_id), None)
            if index is None:
                logger.warning("Unknown badge %r", badge_id)
                return
            badge = self._badges[index]
            if badge.earned:
                return
            self._badges[index] = replace(badge, earned=True, earned_date=_timestamp())
        logger.info("Badge earned: %s", badge_id)
        self._notify(
            "New Badge Earned!",
            f'You earned the "{badge.name}" badge!',
            NotificationType.ACHIEVEMENT.value,
        )

    def experiment_progress(self, experiment_id: str) -> Tuple[int, bool]:
        with self._lock:
            progress = self._progress.get(experiment_id)
        if progress is None:
            return 0, False
        return progress.score, progress.completed

    def completed_experiments(self) -> int:
        with self._lock:
            return sum(1 for p in self._progress.values() if p.completed)

    def update_progress(self, experiment_id: str, score: int) -> None:
        if not experiment_id or not isinstance(score, int) or not 0 <= score <= PERFECT_SCORE:
            raise ValueError(f"invalid progress update: {experiment_id!r}, {score!r}")
        passed = score >= PASSING_SCORE

        with self._lock:
            existing = self._progress.get(experiment_id)
            self._progress[experiment_id] = ExperimentProgress(
                experiment_id=experiment_id,
                completed=passed,
                score=score,
                attempts=existing.attempts + 1 if existing else 1,
                last_attempt=_timestamp(),
            )
            completed = {p.experiment_id for p in self._progress.values() if p.completed}

        if existing is not None:
            if not existing.completed and passed:
                self.earn_badge("persistent-scientist")
        elif passed:
            self.earn_badge("first-experiment")

        if score == PERFECT_SCORE:
            self.earn_badge("perfect-score")

        if passed:
            subject_badge = EXPERIMENT_BADGES.get(experiment_id)
            if subject_badge:
                self.earn_badge(subject_badge)
            subjects = {EXPERIMENT_SUBJECTS[e] for e in completed if e in EXPERIMENT_SUBJECTS}
            if len(subjects) >= 2:
                self.earn_badge("science-explorer")
            if all(e in completed for e in EXPERIMENT_BADGES):
                self.earn_badge("master-of-all")

        if passed:
            self._notify(
                "Experiment Completed!",
                f"Experiment completed with a score of {score}%!",
                NotificationType.ACHIEVEMENT.value,
            )
        else:
            self._notify(
                "Experiment Result",
                f"You scored {score}%. Try again to complete the experiment.",
                NotificationType.INFO.value,
            )

    def reset_progress(self) -> None:
        with self._lock:
            self._badges = [replace(b) for b in DEFAULT_BADGES]
            self._progress = {}
        self._notify("Progress Reset", "All progress has been reset.", NotificationType.INFO.value)

    def _notify(self, title: str, message: str, type: str) -> None:
        if self._notifications is None:
            return
        try:
            self._notifications.add_notification(title, message, type)
        except Exception:
            logger.exception("Notification %r failed", title)
