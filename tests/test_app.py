from __future__ import annotations

import asyncio
import datetime as dt
from collections.abc import Callable
from typing import Any

import pytest

from sonos2mqtt import app
from sonos2mqtt._client import actions
from sonos2mqtt._mqtt import InboundMessage
from sonos2mqtt.app import Sonos2Mqtt, build_discovery_payload
from sonos2mqtt.config import Sonos2MqttConfig
from sonos2mqtt.devices import SonosDevice
from sonos2mqtt.exceptions import TransportError
from sonos2mqtt.models.device import DeviceInfo
from sonos2mqtt.state.events import DeviceEvent, RenderingControlEvent


class _RecordingTransport:
    fail_start = False

    def __init__(self, config: Sonos2MqttConfig, *, loop: Any, on_message: Any, on_connected: Any = None) -> None:
        self.published: list[tuple[str, Any, bool]] = []
        self.is_running = False

    def start(self) -> None:
        if self.fail_start:
            raise TransportError("broker down")
        self.is_running = True

    def stop(self) -> None:
        self.is_running = False

    async def publish(self, topic: str, payload: Any, *, qos: int = 0, retain: bool = False) -> None:
        self.published.append((topic, payload, retain))

    async def publish_status(self, code: str) -> None:
        await self.publish("connected", code, retain=True)

    async def publish_autodiscovery(self, prefix: str, device_id: str, descriptor: dict[str, Any]) -> None:
        self.published.append((f"{prefix}/media_player/{device_id}/config", descriptor, True))

    def on_topic(self, topic: str) -> list[Any]:
        return [payload for published_topic, payload, _ in self.published if published_topic == topic]


class _FakeDevice:
    def __init__(self, uuid: str, name: str) -> None:
        self.info = DeviceInfo(uuid=uuid, host=f"{uuid}.local", name=name)
        self.zone = object()
        self.on_event: Callable[[Any, DeviceEvent], None] | None = None
        self.event_during_cancel: DeviceEvent | None = None
        self.cancelled = False

    async def subscribe(self, on_event: Callable[[Any, DeviceEvent], None]) -> None:
        self.on_event = on_event

    async def cancel_events(self) -> None:
        if self.event_during_cancel is not None and self.on_event is not None:
            self.on_event(self.info.device_id, self.event_during_cancel)
        self.on_event = None
        self.cancelled = True

    async def call(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        return fn(*args, **kwargs)


class _FakeAlarm:
    alarm_id = 3
    start_time = dt.time(7, 0)
    duration = dt.time(1, 0)
    recurrence = "DAILY"
    enabled = True
    zone = None
    program_uri = None
    play_mode = "NORMAL"
    volume = 20
    include_linked_zones = False


@pytest.fixture
def transports(monkeypatch: pytest.MonkeyPatch) -> list[_RecordingTransport]:
    created: list[_RecordingTransport] = []

    def factory(*args: Any, **kwargs: Any) -> _RecordingTransport:
        transport = _RecordingTransport(*args, **kwargs)
        created.append(transport)
        return transport

    monkeypatch.setattr(app, "MqttTransport", factory)
    return created


def _bridge(devices: list[_FakeDevice], **config: Any) -> Sonos2Mqtt:
    async def discover(_config: Sonos2MqttConfig) -> list[SonosDevice]:
        return devices  # type: ignore[return-value]

    return Sonos2Mqtt(Sonos2MqttConfig(**config), discover=discover)


async def _wait_for(condition: Callable[[], bool]) -> None:
    for _ in range(50):
        if condition():
            return
        await asyncio.sleep(0.01)


def test_discovery_payload_points_at_state_and_control_topics() -> None:
    config = Sonos2MqttConfig(prefix="sonos", friendly_names="name")
    info = DeviceInfo(uuid="RINCON1", host="192.168.1.10", name="Living Room", model="Sonos One")

    payload = build_discovery_payload(config, info)

    assert payload["unique_id"] == "sonos2mqtt_RINCON1_speaker"
    assert payload["state_topic"] == "sonos/living-room"
    assert payload["command_topic"] == "sonos/RINCON1/control"
    assert payload["availability_topic"] == "sonos/connected"
    assert payload["payload_available"] == "2"
    assert payload["device"] == {
        "identifiers": ["RINCON1"],
        "manufacturer": "Sonos",
        "name": "Living Room",
        "model": "Sonos One",
    }
    assert "volume" in payload["available_commands"]


@pytest.mark.asyncio
async def test_start_without_devices_returns_false() -> None:
    bridge = _bridge([])

    assert await bridge.start() is False
    assert bridge.devices == ()


@pytest.mark.asyncio
async def test_start_and_stop_publish_status(transports: list[_RecordingTransport]) -> None:
    device = _FakeDevice("RINCON1", "Living Room")
    bridge = _bridge([device], discovery=True)

    assert await bridge.start() is True
    transport = transports[0]
    assert transport.on_topic("connected") == ["2"]
    assert transport.on_topic("homeassistant/media_player/RINCON1/config")[0]["unique_id"] == "sonos2mqtt_RINCON1_speaker"
    assert device.on_event is not None

    await bridge.stop()

    assert transport.on_topic("connected") == ["2", "1"]
    assert device.cancelled
    assert transport.is_running is False


@pytest.mark.asyncio
async def test_failed_transport_start_releases_resources(
    transports: list[_RecordingTransport], monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(_RecordingTransport, "fail_start", True)
    bridge = _bridge([_FakeDevice("RINCON1", "Living Room")])

    with pytest.raises(TransportError):
        await bridge.start()

    assert bridge._http_session is None
    assert transports[0].published == []


@pytest.mark.asyncio
async def test_context_manager_without_devices_raises() -> None:
    bridge = _bridge([])

    with pytest.raises(RuntimeError):
        async with bridge:
            pass
    await asyncio.wait_for(bridge.wait_closed(), timeout=1)


@pytest.mark.asyncio
async def test_control_message_uses_topic_selector_and_reports_errors(transports: list[_RecordingTransport]) -> None:
    bridge = _bridge([_FakeDevice("RINCON1", "Living Room"), _FakeDevice("RINCON2", "Kitchen")])
    await bridge.start()
    transport = transports[0]

    bridge._on_inbound(InboundMessage("device", "living-room", {"selector": "kitchen", "command": "explode"}))
    await _wait_for(lambda: bool(transport.on_topic("RINCON1/error")))

    assert transport.on_topic("RINCON1/error") == [{"command": "explode", "error": "Unknown command 'explode'"}]
    assert transport.on_topic("RINCON2/error") == []
    await bridge.stop()


@pytest.mark.asyncio
async def test_listalarms_publishes_to_alarms_topic(
    transports: list[_RecordingTransport], monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(actions, "get_alarms", lambda _zone: {_FakeAlarm()})
    bridge = _bridge([_FakeDevice("RINCON1", "Living Room")])
    await bridge.start()
    transport = transports[0]

    bridge._on_inbound(InboundMessage("generic", "listalarms", None))
    await _wait_for(lambda: bool(transport.on_topic("alarms")))

    alarms = transport.on_topic("alarms")
    assert len(alarms) == 1
    assert [alarm["id"] for alarm in alarms[0]] == ["3"]
    await bridge.stop()


@pytest.mark.asyncio
async def test_events_during_shutdown_are_not_published(transports: list[_RecordingTransport]) -> None:
    device = _FakeDevice("RINCON1", "Living Room")
    device.event_during_cancel = RenderingControlEvent(volume=5)
    bridge = _bridge([device], publish_delay=0.05)
    await bridge.start()
    transport = transports[0]

    await bridge.stop()
    await asyncio.sleep(0.1)

    assert transport.on_topic("RINCON1") == []
