from __future__ import annotations

import json

from models import DispatchMessage
from web_frame import BRIDGE_PREFIX, build_post_script, parse_console_message


def test_post_script_targets_window() -> None:
    payload = DispatchMessage(action="increase-voltage").to_payload()

    script = build_post_script(payload, "https://phet.colorado.edu")

    assert script == (
        'window.postMessage({"messageType": "user-interaction", "action": "increase-voltage"}, '
        '"https://phet.colorado.edu");'
    )


def test_post_script_escapes_values() -> None:
    script = build_post_script({"action": "x", "label": "</script>'\""}, "*")

    assert json.dumps("</script>'\"") in script


def test_parse_console_message() -> None:
    line = BRIDGE_PREFIX + json.dumps({"type": "phet-simulation-loaded"})

    assert parse_console_message(line) == {"type": "phet-simulation-loaded"}


def test_parse_console_message_ignores_other_lines() -> None:
    assert parse_console_message("Uncaught TypeError") is None
    assert parse_console_message(BRIDGE_PREFIX + "{broken") is None
    assert parse_console_message(BRIDGE_PREFIX + '"just a string"') is None
