from __future__ import annotations

from typing import Callable, List, Optional
from unittest.mock import MagicMock, patch

from errors import NO_MICROPHONE, PERMISSION_DENIED, PERMISSION_QUERY_FAILED
from models import PermissionState
from permissions import MicrophonePermissionMachine, SoundDevicePermissionProbe


class FakeProbe:
    def __init__(
        self,
        state: PermissionState = PermissionState.PROMPT,
        grant: bool = True,
        has_device: bool = True,
    ) -> None:
        self.state = state
        self.grant = grant
        self.has_device = has_device
        self.requests = 0
        self.listeners: List[Callable[[PermissionState], None]] = []
        self.query_error: Optional[Exception] = None

    def has_input_device(self) -> bool:
        return self.has_device

    def query(self) -> PermissionState:
        if self.query_error is not None:
            raise self.query_error
        return self.state

    def request(self) -> bool:
        self.requests += 1
        return self.grant

    def subscribe(self, callback: Callable[[PermissionState], None]) -> Callable[[], None]:
        self.listeners.append(callback)
        return lambda: self.listeners.remove(callback)

    def change(self, state: PermissionState) -> None:
        self.state = state
        for listener in list(self.listeners):
            listener(state)


def test_prompt_to_granted_on_request() -> None:
    transitions = []
    machine = MicrophonePermissionMachine(FakeProbe(grant=True), on_change=lambda f, t: transitions.append((f, t)))

    assert machine.request() == PermissionState.GRANTED
    assert machine.can_listen() is True
    assert machine.error_code is None
    assert transitions == [(PermissionState.PROMPT, PermissionState.GRANTED)]


def test_prompt_to_denied_on_request() -> None:
    machine = MicrophonePermissionMachine(FakeProbe(grant=False))

    assert machine.request() == PermissionState.DENIED
    assert machine.can_listen() is False
    assert machine.error_code == PERMISSION_DENIED
    assert machine.error_message == "Microphone access denied"


def test_denied_is_terminal_for_requests() -> None:
    probe = FakeProbe(grant=False)
    machine = MicrophonePermissionMachine(probe)
    machine.request()

    probe.grant = True
    assert machine.request() == PermissionState.DENIED
    assert probe.requests == 1


def test_missing_device_is_a_distinct_denial() -> None:
    machine = MicrophonePermissionMachine(FakeProbe(state=PermissionState.GRANTED, has_device=False))

    assert machine.refresh() == PermissionState.DENIED
    assert machine.device_available is False
    assert machine.error_code == NO_MICROPHONE
    assert machine.error_message == "No microphone detected"


def test_missing_device_denies_from_granted() -> None:
    probe = FakeProbe(state=PermissionState.GRANTED)
    machine = MicrophonePermissionMachine(probe)
    assert machine.refresh() == PermissionState.GRANTED

    probe.has_device = False
    machine.refresh()

    assert machine.state == PermissionState.DENIED
    assert machine.error_code == NO_MICROPHONE


def test_refresh_reads_platform_state_and_subscribes_once() -> None:
    probe = FakeProbe(state=PermissionState.GRANTED)
    machine = MicrophonePermissionMachine(probe)

    machine.refresh()
    machine.refresh()

    assert machine.state == PermissionState.GRANTED
    assert len(probe.listeners) == 1


def test_external_grant_recovers_from_denied() -> None:
    probe = FakeProbe(state=PermissionState.DENIED)
    machine = MicrophonePermissionMachine(probe)
    machine.refresh()
    assert machine.error_code == PERMISSION_DENIED

    probe.change(PermissionState.GRANTED)

    assert machine.state == PermissionState.GRANTED
    assert machine.error_code is None
    assert machine.can_listen() is True


def test_microphone_connected_after_mount_recovers() -> None:
    probe = FakeProbe(has_device=False)
    machine = MicrophonePermissionMachine(probe)

    assert machine.refresh() == PermissionState.DENIED
    assert machine.error_code == NO_MICROPHONE
    assert len(probe.listeners) == 1

    probe.has_device = True
    probe.change(PermissionState.PROMPT)

    assert machine.state == PermissionState.PROMPT
    assert machine.device_available is True
    assert machine.error_code is None
    assert machine.request() == PermissionState.GRANTED


def test_external_grant_without_device_stays_denied() -> None:
    probe = FakeProbe(state=PermissionState.DENIED)
    machine = MicrophonePermissionMachine(probe)
    machine.refresh()

    probe.has_device = False
    probe.change(PermissionState.GRANTED)

    assert machine.state == PermissionState.DENIED
    assert machine.error_code == NO_MICROPHONE


def test_query_failure_becomes_error_state() -> None:
    probe = FakeProbe()
    probe.query_error = OSError("backend unavailable")
    machine = MicrophonePermissionMachine(probe)

    assert machine.refresh() == PermissionState.PROMPT
    assert machine.error_code == PERMISSION_QUERY_FAILED


def test_close_unsubscribes() -> None:
    probe = FakeProbe(state=PermissionState.GRANTED)
    machine = MicrophonePermissionMachine(probe)
    machine.refresh()

    machine.close()

    assert probe.listeners == []


def test_request_exception_is_a_denial() -> None:
    probe = FakeProbe()
    probe.request = MagicMock(side_effect=RuntimeError("portaudio"))  # type: ignore[method-assign]
    machine = MicrophonePermissionMachine(probe)

    assert machine.request() == PermissionState.DENIED


# ---------------------------------------------------------------
# SoundDevicePermissionProbe
# ---------------------------------------------------------------

@patch("permissions.sd")
def test_probe_detects_input_devices(mock_sd: MagicMock) -> None:
    mock_sd.query_devices.return_value = [
        {"name": "Speakers", "max_input_channels": 0},
        {"name": "USB Mic", "max_input_channels": 1},
    ]

    assert SoundDevicePermissionProbe().has_input_device() is True

    mock_sd.query_devices.return_value = [{"name": "Speakers", "max_input_channels": 0}]
    assert SoundDevicePermissionProbe().has_input_device() is False


@patch("permissions.sd")
def test_probe_request_opens_stream(mock_sd: MagicMock) -> None:
    stream = MagicMock()
    mock_sd.InputStream.return_value = stream
    probe = SoundDevicePermissionProbe()

    assert probe.query() == PermissionState.PROMPT
    assert probe.request() is True
    assert probe.query() == PermissionState.GRANTED
    stream.start.assert_called_once()
    stream.close.assert_called_once()


@patch("permissions.sd")
def test_probe_poll_notifies_on_recovery(mock_sd: MagicMock) -> None:
    mock_sd.InputStream.side_effect = OSError("denied")
    probe = SoundDevicePermissionProbe()
    seen = []
    unsubscribe = probe.subscribe(seen.append)

    assert probe.request() is False
    mock_sd.InputStream.side_effect = None
    mock_sd.InputStream.return_value = MagicMock()

    assert probe.poll() == PermissionState.GRANTED
    assert seen == [PermissionState.GRANTED]

    unsubscribe()
    assert probe.poll() == PermissionState.GRANTED
    assert seen == [PermissionState.GRANTED]


@patch("permissions.sd", None)
def test_probe_without_sounddevice_reports_no_device() -> None:
    probe = SoundDevicePermissionProbe()

    assert probe.has_input_device() is False
    assert probe.request() is False


@patch("permissions.sd")
def test_probe_poll_notifies_when_device_connects(mock_sd: MagicMock) -> None:
    mock_sd.query_devices.return_value = [{"name": "Speakers", "max_input_channels": 0}]
    probe = SoundDevicePermissionProbe()
    seen = []
    probe.subscribe(seen.append)

    assert probe.has_input_device() is False
    assert probe.poll() == PermissionState.PROMPT
    assert seen == []

    mock_sd.query_devices.return_value.append({"name": "USB Mic", "max_input_channels": 1})
    assert probe.poll() == PermissionState.PROMPT
    assert seen == [PermissionState.PROMPT]

    assert probe.poll() == PermissionState.PROMPT
    assert seen == [PermissionState.PROMPT]
    mock_sd.InputStream.assert_not_called()


@patch("permissions.sd")
def test_device_connected_while_mounted_reaches_machine(mock_sd: MagicMock) -> None:
    mock_sd.query_devices.return_value = []
    mock_sd.InputStream.return_value = MagicMock()
    probe = SoundDevicePermissionProbe()
    machine = MicrophonePermissionMachine(probe)
    machine.refresh()
    assert machine.error_code == NO_MICROPHONE

    mock_sd.query_devices.return_value = [{"name": "USB Mic", "max_input_channels": 1}]
    probe.poll()

    assert machine.state == PermissionState.PROMPT
    assert machine.request() == PermissionState.GRANTED
