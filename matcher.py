"""Transcript to command matching with de-duplication.

The matcher consumes successive transcript snapshots from a continuous
recognizer. Each snapshot is compared with the previous one so only the
unconsumed tail is scanned:

* an identical snapshot is ignored;
* a snapshot that extends the previous one is scanned from the end of the
  last consumed match;
* anything else (a new utterance, a revised partial) is scanned in full.

Within the scanned text, catalog entries are tried in catalog order and the
first one that is eligible fires. A command is eligible when it differs from
the previously fired command or the de-duplication window has elapsed since it
last fired. Suppressed duplicates are consumed so they cannot fire late.
"""

from __future__ import annotations

import logging
import random
import threading
from typing import Callable, List, Optional, Sequence

from catalog import normalize_phrase
from interfaces import Scheduler, TimerHandle
from models import RecognitionEvent, VoiceCommand
from scheduler import ThreadingScheduler, now_ms

logger = logging.getLogger(__name__)

DEDUP_WINDOW_MS = 3000
DISPLAY_MS = 3000


def random_confidence() -> float:
    # Display only; not derived from the recognizer.
    return random.uniform(0.7, 1.0)


class CommandMatcher:
    def __init__(
        self,
        commands: Sequence[VoiceCommand],
        scheduler: Optional[Scheduler] = None,
        clock: Callable[[], int] = now_ms,
        dedup_window_ms: int = DEDUP_WINDOW_MS,
        display_ms: int = DISPLAY_MS,
        confidence_source: Callable[[], float] = random_confidence,
        on_cleared: Optional[Callable[[RecognitionEvent], None]] = None,
    ) -> None:
        self._commands: List[VoiceCommand] = [
            VoiceCommand(normalize_phrase(c.command), c.description) for c in commands
        ]
        self._scheduler = scheduler or ThreadingScheduler()
        self._clock = clock
        self._dedup_window_ms = dedup_window_ms
        self._display_ms = display_ms
        self._confidence_source = confidence_source
        self._on_cleared = on_cleared

        self._lock = threading.RLock()
        self._closed = False
        self._generation = 0
        self._last_transcript = ""
        self._consumed = 0
        self._last_fired: Optional[str] = None
        self._last_fired_at = 0
        self._current: Optional[RecognitionEvent] = None
        self._clear_timer: Optional[TimerHandle] = None

    @property
    def commands(self) -> List[VoiceCommand]:
        return list(self._commands)

    @property
    def current_event(self) -> Optional[RecognitionEvent]:
        return self._current

    @property
    def last_recognized_command(self) -> Optional[str]:
        current = self._current
        return current.command if current else None

    @property
    def recognized_at(self) -> Optional[int]:
        current = self._current
        return current.recognized_at if current else None

    @property
    def confidence_level(self) -> float:
        current = self._current
        return current.confidence if current else 0.0

    def match(self, text: str) -> Optional[VoiceCommand]:
        """Return the first catalog entry contained in ``text``, ignoring history."""
        haystack = normalize_phrase(text)
        for entry in self._commands:
            if entry.command in haystack:
                return entry
        return None

    def process(self, transcript: str) -> Optional[RecognitionEvent]:
        with self._lock:
            if self._closed:
                return None
            text = normalize_phrase(transcript)
            if text == self._last_transcript:
                return None
            if not text.startswith(self._last_transcript):
                self._consumed = 0
            self._last_transcript = text

            window = text[self._consumed:]
            if not window:
                return None

            now = self._clock()
            suppressed_end = 0
            for entry in self._commands:
                idx = window.find(entry.command)
                if idx < 0:
                    continue
                end = idx + len(entry.command)
                if self._is_eligible(entry.command, now):
                    self._consumed += max(end, suppressed_end)
                    return self._fire(entry.command, now)
                logger.debug("Suppressed repeat of %r", entry.command)
                suppressed_end = max(suppressed_end, end)

            self._consumed += suppressed_end
            return None

    def reset_transcript(self) -> None:
        """Forget transcript history, keeping de-duplication state."""
        with self._lock:
            self._last_transcript = ""
            self._consumed = 0

    def reset(self) -> None:
        with self._lock:
            self._generation += 1
            self._cancel_clear_timer()
            self._last_transcript = ""
            self._consumed = 0
            self._last_fired = None
            self._last_fired_at = 0
            self._current = None

    def close(self) -> None:
        with self._lock:
            self.reset()
            self._closed = True

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _is_eligible(self, command: str, now: int) -> bool:
        if command != self._last_fired:
            return True
        return now - self._last_fired_at >= self._dedup_window_ms

    def _fire(self, command: str, now: int) -> RecognitionEvent:
        confidence = min(1.0, max(0.0, float(self._confidence_source())))
        event = RecognitionEvent(command=command, recognized_at=now, confidence=confidence)
        self._last_fired = command
        self._last_fired_at = now
        self._current = event

        self._cancel_clear_timer()
        generation = self._generation
        self._clear_timer = self._scheduler.call_later(
            self._display_ms / 1000.0,
            lambda: self._clear(generation, event),
        )
        logger.info("Recognized command %r", command)
        return event

    def _clear(self, generation: int, event: RecognitionEvent) -> None:
        with self._lock:
            if self._closed or generation != self._generation or self._current is not event:
                return
            self._current = None
            self._clear_timer = None
        if self._on_cleared:
            try:
                self._on_cleared(event)
            except Exception:
                logger.exception("on_cleared callback failed")

    def _cancel_clear_timer(self) -> None:
        timer = self._clear_timer
        self._clear_timer = None
        if timer is not None:
            timer.cancel()
