"""Voice achievement tracking."""

from __future__ import annotations

import logging
import threading
from typing import Callable, FrozenSet, Optional, Set

from interfaces import GamificationService

logger = logging.getLogger(__name__)

VOICE_BADGE_ID = "voice-commander"
UNIQUE_COMMAND_THRESHOLD = 5

UnlockCallback = Callable[[str], None]


class AchievementTracker:
    """Accumulates distinct commands for one session and unlocks the voice badge.

    The badge is requested once per session, on the observation that first
    brings the unique count to the threshold. The collaborator is assumed to
    treat repeated grants as a no-op, but it is never asked twice.
    """

    def __init__(
        self,
        gamification: GamificationService,
        badge_id: str = VOICE_BADGE_ID,
        threshold: int = UNIQUE_COMMAND_THRESHOLD,
        on_unlocked: Optional[UnlockCallback] = None,
    ) -> None:
        if threshold < 1:
            raise ValueError("threshold must be positive")
        self._gamification = gamification
        self._badge_id = badge_id
        self._threshold = threshold
        self._on_unlocked = on_unlocked
        self._lock = threading.RLock()
        self._unique: Set[str] = set()
        self._granted = False

    @property
    def unique_commands(self) -> FrozenSet[str]:
        with self._lock:
            return frozenset(self._unique)

    @property
    def count(self) -> int:
        return len(self._unique)

    @property
    def granted(self) -> bool:
        return self._granted

    def observe(self, command: str) -> bool:
        """Record ``command``; return True if this call unlocked the badge."""
        with self._lock:
            self._unique.add(command)
            if self._granted or len(self._unique) < self._threshold:
                return False
            self._granted = True

        logger.info("Unique voice commands reached %d, earning %r", self._threshold, self._badge_id)
        try:
            self._gamification.earn_badge(self._badge_id)
        except Exception:
            logger.exception("earn_badge(%r) failed", self._badge_id)
        if self._on_unlocked:
            try:
                self._on_unlocked(self._badge_id)
            except Exception:
                logger.exception("on_unlocked callback failed")
        return True

    def reset(self) -> None:
        with self._lock:
            self._unique.clear()
            self._granted = False
