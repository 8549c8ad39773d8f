from __future__ import annotations

from typing import Callable, List, Optional

import pytest

import transcription


class ManualTimer:
    def __init__(self, due_ms: int, callback: Callable[[], None]) -> None:
        self.due_ms = due_ms
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualTimers:
    """Clock and scheduler driven by ``advance``."""

    def __init__(self, start_ms: int = 1_000_000) -> None:
        self.now = start_ms
        self.timers: List[ManualTimer] = []

    def clock(self) -> int:
        return self.now

    def call_later(self, delay_s: float, callback: Callable[[], None]) -> ManualTimer:
        timer = ManualTimer(self.now + int(delay_s * 1000), callback)
        self.timers.append(timer)
        return timer

    def advance(self, ms: int) -> None:
        self.now += ms
        due = [t for t in self.timers if t.due_ms <= self.now]
        self.timers = [t for t in self.timers if t.due_ms > self.now]
        for timer in sorted(due, key=lambda t: t.due_ms):
            if not timer.cancelled:
                timer.callback()

    @property
    def pending(self) -> List[ManualTimer]:
        return [t for t in self.timers if not t.cancelled]


@pytest.fixture
def timers() -> ManualTimers:
    return ManualTimers()


@pytest.fixture(autouse=True)
def _release_microphone():
    yield
    transcription._microphone_holder = None


class FakeGamification:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.calls: List[str] = []

    def earn_badge(self, badge_id: str) -> None:
        self.calls.append(badge_id)
        if self.fail:
            raise RuntimeError("store unavailable")


@pytest.fixture
def gamification() -> FakeGamification:
    return FakeGamification()


class FakeFrame:
    def __init__(self, fail_on: Optional[str] = None) -> None:
        self.messages: List[dict] = []
        self.origins: List[str] = []
        self.fail_on = fail_on

    def post_message(self, payload: dict, target_origin: str) -> None:
        if self.fail_on is not None and payload.get("action") == self.fail_on:
            raise RuntimeError("frame detached")
        self.messages.append(payload)
        self.origins.append(target_origin)

    @property
    def actions(self) -> List[str]:
        return [m["action"] for m in self.messages]


@pytest.fixture
def frame() -> FakeFrame:
    return FakeFrame()
