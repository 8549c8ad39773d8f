"""Global listening toggle hotkey based on pynput."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

logger = logging.getLogger(__name__)

try:
    from pynput import keyboard
except Exception:  # pragma: no cover
    keyboard = None  # type: ignore


def normalize_hotkey(name: str) -> str:
    """Accept ``Key.f8``, ``f8`` or a single character and return pynput's ``str(key)`` form."""
    value = name.strip()
    if not value:
        raise ValueError("hotkey must not be empty")
    if value.startswith("Key."):
        return value
    if len(value) == 1:
        return repr(value.lower())
    return f"Key.{value.lower()}"


class GlobalHotkeyAdapter:
    """Calls ``on_toggle`` once per key press; auto-repeat while held is ignored."""

    def __init__(self, hotkey_name: str = "Key.f8") -> None:
        self._hotkey = normalize_hotkey(hotkey_name)
        self._listener: Optional[object] = None
        self._held = False
        self._lock = threading.Lock()

    @property
    def hotkey(self) -> str:
        return self._hotkey

    def start(self, on_toggle: Callable[[], None]) -> None:
        if keyboard is None:
            raise RuntimeError("pynput is not installed")
        self.stop()

        def _matches(key: object) -> bool:
            return str(key) == self._hotkey

        def _on_press(key: object) -> None:
            if not _matches(key):
                return
            with self._lock:
                if self._held:
                    return
                self._held = True
            try:
                on_toggle()
            except Exception:
                logger.exception("Hotkey toggle failed")

        def _on_release(key: object) -> None:
            if _matches(key):
                with self._lock:
                    self._held = False

        self._listener = keyboard.Listener(on_press=_on_press, on_release=_on_release)
        self._listener.start()
        logger.info("Listening toggle bound to %s", self._hotkey)

    def stop(self) -> None:
        listener, self._listener = self._listener, None
        if listener is not None:
            listener.stop()
        with self._lock:
            self._held = False
