"""Timer scheduling used for transient UI state and debounce windows."""

from __future__ import annotations

import threading
import time
from typing import Callable


class ThreadingScheduler:
    def call_later(self, delay_s: float, callback: Callable[[], None]) -> threading.Timer:
        timer = threading.Timer(delay_s, callback)
        timer.daemon = True
        timer.start()
        return timer


def now_ms() -> int:
    return int(time.time() * 1000)
