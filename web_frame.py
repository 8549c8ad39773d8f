"""Qt WebEngine bridge to the embedded simulation.

Outbound messages are delivered with ``window.postMessage`` executed inside
the page. Inbound messages are captured by a listener script that echoes
every ``message`` event to the JavaScript console with a fixed prefix; the
page picks those lines up in ``javaScriptConsoleMessage``.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)

try:
    from PySide6.QtCore import QObject, Signal
    from PySide6.QtWebEngineCore import QWebEnginePage, QWebEngineScript
except Exception:  # pragma: no cover
    QObject = object  # type: ignore
    Signal = None  # type: ignore
    QWebEnginePage = object  # type: ignore
    QWebEngineScript = None  # type: ignore

BRIDGE_PREFIX = "steamhub:"

_LISTENER_JS = """
window.addEventListener('message', function (event) {
  try { console.log('%s' + JSON.stringify(event.data)); } catch (e) {}
});
""" % BRIDGE_PREFIX


def build_post_script(payload: Dict[str, Any], target_origin: str) -> str:
    data = json.dumps(payload)
    origin = json.dumps(target_origin)
    return f"window.postMessage({data}, {origin});"


def parse_console_message(message: str) -> Optional[Dict[str, Any]]:
    if not message.startswith(BRIDGE_PREFIX):
        return None
    try:
        data = json.loads(message[len(BRIDGE_PREFIX):])
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, dict) else None


class SimulationPage(QWebEnginePage):
    def __init__(self, on_inbound: Callable[[Dict[str, Any]], None], parent: Any = None) -> None:
        if QWebEngineScript is None:
            raise RuntimeError("PySide6 QtWebEngine is not installed")
        super().__init__(parent)
        self._on_inbound = on_inbound

        script = QWebEngineScript()
        script.setName("steamhub-bridge")
        script.setSourceCode(_LISTENER_JS)
        script.setInjectionPoint(QWebEngineScript.InjectionPoint.DocumentCreation)
        script.setWorldId(QWebEngineScript.ScriptWorldId.MainWorld)
        script.setRunsOnSubFrames(False)
        self.scripts().insert(script)

    def javaScriptConsoleMessage(self, level, message, line_number, source_id):  # noqa: ANN001, N802
        data = parse_console_message(message)
        if data is None:
            return
        try:
            self._on_inbound(data)
        except Exception:
            logger.exception("Inbound simulation message handler failed")


if Signal is not None:

    class _ScriptBridge(QObject):
        script_ready = Signal(str)

else:  # pragma: no cover
    _ScriptBridge = None  # type: ignore


class WebEngineFrameTarget:
    """``FrameTarget`` that posts into a ``QWebEnginePage``.

    ``post_message`` may be called from any thread; the script runs on the
    page's thread through a queued signal.
    """

    def __init__(self, page: Any) -> None:
        if _ScriptBridge is None:
            raise RuntimeError("PySide6 is not installed")
        self._bridge = _ScriptBridge()
        self._bridge.script_ready.connect(page.runJavaScript)

    def post_message(self, payload: Dict[str, Any], target_origin: str) -> None:
        self._bridge.script_ready.emit(build_post_script(payload, target_origin))
