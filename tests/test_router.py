from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any

import pytest

from sonos2mqtt.models.commands import CommandEnvelope, CommandStatus
from sonos2mqtt.models.device import DeviceInfo
from sonos2mqtt.router import CommandRouter


@dataclass
class _FakeDevice:
    info: DeviceInfo


@dataclass
class _RecordingSink:
    published: list[tuple[str, Any]] = field(default_factory=list)

    async def publish(self, topic: str, payload: Any, *, qos: int = 0, retain: bool = False) -> None:
        self.published.append((topic, payload))

    async def publish_status(self, code: str) -> None:
        await self.publish("connected", code, retain=True)

    async def publish_autodiscovery(self, prefix: str, device_id: str, descriptor: dict[str, Any]) -> None:
        self.published.append((f"{prefix}/{device_id}", descriptor))


class _FakeExecutor:
    def __init__(self, result: Any = None, error: Exception | None = None) -> None:
        self.result = result
        self.error = error
        self.calls: list[tuple[str, str]] = []

    async def __call__(self, device: _FakeDevice, envelope: CommandEnvelope) -> Any:
        self.calls.append((device.info.uuid, envelope.command))
        if self.error is not None:
            raise self.error
        return self.result


LIVING_ROOM = _FakeDevice(DeviceInfo(uuid="AB:CD:EF", host="192.168.1.20", name="Living Room"))
KITCHEN = _FakeDevice(DeviceInfo(uuid="RINCON2", host="192.168.1.21", name="Kitchen"))


def _router(
    executor: _FakeExecutor | None = None,
    sink: _RecordingSink | None = None,
    **kwargs: Any,
) -> tuple[CommandRouter[_FakeDevice], _FakeExecutor, _RecordingSink]:
    executor = executor or _FakeExecutor()
    sink = sink or _RecordingSink()
    router: CommandRouter[_FakeDevice] = CommandRouter(
        devices=lambda: [LIVING_ROOM, KITCHEN],
        executor=executor,
        sink=sink,
        **kwargs,
    )
    return router, executor, sink


@pytest.mark.parametrize("selector", ["AB:CD:EF", "ab:cd:ef", "living-room", "Living Room", "192.168.1.20"])
def test_resolve_matches_uuid_host_and_normalized_name(selector: str) -> None:
    router, _, _ = _router()
    assert router.resolve(selector) is LIVING_ROOM


@pytest.mark.parametrize("selector", ["", "   ", "nonexistent", "living", "@@@"])
def test_resolve_returns_none_for_unmatched_selectors(selector: str) -> None:
    router, _, _ = _router()
    assert router.resolve(selector) is None


@pytest.mark.asyncio
async def test_unknown_device_is_logged_without_publish(caplog: pytest.LogCaptureFixture) -> None:
    router, executor, sink = _router()
    caplog.set_level(logging.WARNING)

    outcome = await router.dispatch(CommandEnvelope(selector="nonexistent", command="pause"))

    assert outcome.status == CommandStatus.DEVICE_NOT_FOUND
    assert executor.calls == []
    assert sink.published == []
    assert "nonexistent" in caplog.text


@pytest.mark.asyncio
async def test_success_without_reply_topic_only_logs(caplog: pytest.LogCaptureFixture) -> None:
    router, executor, sink = _router(executor=_FakeExecutor(result="ignored"))
    caplog.set_level(logging.DEBUG, logger="sonos2mqtt.router")

    outcome = await router.dispatch(CommandEnvelope(selector="living-room", command="pause"))

    assert outcome.ok
    assert outcome.device_id == "AB:CD:EF"
    assert executor.calls == [("AB:CD:EF", "pause")]
    assert sink.published == []
    assert "Executed pause for Living Room (AB:CD:EF)" in caplog.text


@pytest.mark.asyncio
async def test_reply_topic_receives_result_under_device_uuid() -> None:
    router, _, sink = _router(executor=_FakeExecutor(result={"volume": 42}))

    envelope = CommandEnvelope.model_validate(
        {"selector": "kitchen", "command": "volumeup", "replyTopic": "replies/volume"}
    )
    outcome = await router.dispatch(envelope)

    assert outcome.ok
    assert sink.published == [("RINCON2/replies/volume", {"volume": 42})]


@pytest.mark.asyncio
async def test_failure_publishes_error_payload_to_device_error_topic() -> None:
    router, _, sink = _router(executor=_FakeExecutor(error=ValueError("volume must be 0-100")))

    outcome = await router.dispatch(CommandEnvelope(selector="RINCON2", command="volume", input=250))

    assert outcome.status == CommandStatus.FAILED
    assert outcome.error == "volume must be 0-100"
    assert sink.published == [("RINCON2/error", {"command": "volume", "error": "volume must be 0-100"})]


@pytest.mark.asyncio
async def test_failure_with_reply_topic_does_not_publish_reply() -> None:
    router, _, sink = _router(executor=_FakeExecutor(error=RuntimeError("boom")))

    await router.dispatch(CommandEnvelope(selector="RINCON2", command="play", reply_topic="out"))

    assert [topic for topic, _ in sink.published] == ["RINCON2/error"]


@pytest.mark.asyncio
async def test_failure_does_not_affect_later_dispatches() -> None:
    executor = _FakeExecutor(error=RuntimeError("boom"))
    router, _, sink = _router(executor=executor)

    await router.dispatch(CommandEnvelope(selector="RINCON2", command="play"))
    executor.error = None
    outcome = await router.dispatch(CommandEnvelope(selector="RINCON2", command="play"))

    assert outcome.ok
    assert len(sink.published) == 1


@pytest.mark.asyncio
async def test_concurrent_dispatches_are_independent() -> None:
    class _SlowFailingExecutor(_FakeExecutor):
        async def __call__(self, device: _FakeDevice, envelope: CommandEnvelope) -> Any:
            if device is KITCHEN:
                await asyncio.sleep(0.01)
                raise RuntimeError("kitchen offline")
            return "ok"

    router, _, sink = _router(executor=_SlowFailingExecutor())

    kitchen, living = await asyncio.gather(
        router.dispatch(CommandEnvelope(selector="kitchen", command="play")),
        router.dispatch(CommandEnvelope(selector="living-room", command="play", reply_topic="r")),
    )

    assert kitchen.status == CommandStatus.FAILED
    assert living.ok
    assert ("AB:CD:EF/r", "ok") in sink.published
    assert ("RINCON2/error", {"command": "play", "error": "kitchen offline"}) in sink.published


@pytest.mark.asyncio
async def test_error_publish_failure_is_swallowed() -> None:
    class _BrokenSink(_RecordingSink):
        async def publish(self, topic: str, payload: Any, *, qos: int = 0, retain: bool = False) -> None:
            raise ConnectionError("broker gone")

    router, _, _ = _router(executor=_FakeExecutor(error=RuntimeError("boom")), sink=_BrokenSink())

    outcome = await router.dispatch(CommandEnvelope(selector="kitchen", command="play"))

    assert outcome.status == CommandStatus.FAILED


@pytest.mark.asyncio
async def test_global_commands_use_handler_table() -> None:
    received: list[Any] = []

    async def pause_all(payload: Any) -> str:
        received.append(payload)
        return "paused"

    router, executor, sink = _router(global_handlers={"pauseall": pause_all})

    outcome = await router.dispatch_global("PauseAll", None)

    assert outcome.ok
    assert outcome.result == "paused"
    assert received == [None]
    assert executor.calls == []
    assert sink.published == []


@pytest.mark.asyncio
async def test_unknown_global_command_is_reported() -> None:
    router, _, _ = _router(global_handlers={})

    outcome = await router.dispatch_global("reboot", {})

    assert outcome.status == CommandStatus.FAILED
    assert outcome.error == "unknown command"


@pytest.mark.asyncio
async def test_failing_global_handler_is_caught(caplog: pytest.LogCaptureFixture) -> None:
    async def broken(_payload: Any) -> None:
        raise RuntimeError("no alarms")

    router, _, sink = _router(global_handlers={"listalarms": broken})
    caplog.set_level(logging.WARNING)

    outcome = await router.dispatch_global("listalarms", None)

    assert outcome.status == CommandStatus.FAILED
    assert outcome.error == "no alarms"
    assert sink.published == []
    assert "listalarms" in caplog.text
