"""Bridge orchestration: wires devices, state engine, router and MQTT."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import Any

import aiohttp
from pydantic import ValidationError

from sonos2mqtt._client import actions
from sonos2mqtt._client.commands import CommandContext, execute_control
from sonos2mqtt._mqtt import InboundMessage, MqttTransport
from sonos2mqtt._redact import redact_for_log
from sonos2mqtt._transport import ALARMS_TOPIC, STATUS_BROKER_ONLY, STATUS_CONNECTED
from sonos2mqtt.config import Sonos2MqttConfig
from sonos2mqtt.devices import SonosDevice, discover_devices, stop_event_listener
from sonos2mqtt.models.commands import CommandEnvelope, GlobalCommand, SonosCommand
from sonos2mqtt.models.device import DeviceInfo
from sonos2mqtt.router import CommandRouter, GlobalHandler
from sonos2mqtt.state.engine import StateEngine

_logger = logging.getLogger(__name__)


def build_discovery_payload(config: Sonos2MqttConfig, info: DeviceInfo) -> dict[str, Any]:
    """Home Assistant autodiscovery descriptor for one device."""
    prefix = config.prefix.strip("/")
    topic_id = info.topic_id(config.friendly_names)
    device: dict[str, Any] = {
        "identifiers": [info.uuid],
        "manufacturer": "Sonos",
        "name": info.name,
    }
    if info.model:
        device["model"] = info.model
    return {
        "available_commands": [command.value for command in SonosCommand],
        "command_topic": f"{prefix}/{info.uuid}/control",
        "device": device,
        "device_class": "speaker",
        "icon": "mdi:speaker",
        "json_attributes": True,
        "json_attributes_topic": f"{prefix}/{topic_id}",
        "name": info.name,
        "state_topic": f"{prefix}/{topic_id}",
        "unique_id": f"sonos2mqtt_{info.uuid}_speaker",
        "availability_topic": f"{prefix}/connected",
        "payload_available": STATUS_CONNECTED,
    }


class Sonos2Mqtt:
    """The running bridge.

    Usage::

        async with Sonos2Mqtt(config) as bridge:
            await bridge.wait_closed()
    """

    def __init__(
        self,
        config: Sonos2MqttConfig,
        *,
        discover: Callable[[Sonos2MqttConfig], Awaitable[list[SonosDevice]]] = discover_devices,
        http_session: aiohttp.ClientSession | None = None,
    ) -> None:
        self._config = config
        self._discover = discover
        self._external_session = http_session is not None
        self._http_session = http_session
        self._devices: list[SonosDevice] = []
        self._transport: MqttTransport | None = None
        self._engine: StateEngine | None = None
        self._router: CommandRouter[SonosDevice] | None = None
        self._tasks: set[asyncio.Task[Any]] = set()
        self._started = False
        self._closed = asyncio.Event()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> Sonos2Mqtt:
        if not await self.start():
            await self.stop()
            raise RuntimeError("No Sonos devices found")
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.stop()

    @property
    def devices(self) -> Sequence[SonosDevice]:
        return tuple(self._devices)

    async def start(self) -> bool:
        """Enumerate devices, connect MQTT and subscribe to device events."""
        loop = asyncio.get_running_loop()
        self._devices = await self._discover(self._config)
        if not self._devices:
            _logger.warning("No sonos speakers found")
            return False
        _logger.info("Found %d sonos speakers", len(self._devices))

        transport = MqttTransport(
            self._config,
            loop=loop,
            on_message=self._on_inbound,
            on_connected=self._on_connected,
        )
        engine = StateEngine(
            sink=transport,
            publish_delay=self._config.publish_delay,
            publish_max_delay=self._config.publish_max_delay,
            distinct=self._config.distinct,
            friendly_names=self._config.friendly_names,
        )
        for device in self._devices:
            engine.add_device(device.info)
        self._router = CommandRouter(
            devices=lambda: self._devices,
            executor=self._execute,
            sink=transport,
            global_handlers=self._global_handlers(),
        )
        self._transport = transport
        self._engine = engine

        try:
            if self._http_session is None:
                self._http_session = aiohttp.ClientSession()

            _logger.debug("Setting up mqtt events")
            await loop.run_in_executor(None, transport.start)

            _logger.debug("Setting up sonos events")
            results = await asyncio.gather(
                *(device.subscribe(engine.handle_event) for device in self._devices),
                return_exceptions=True,
            )
            for device, result in zip(self._devices, results, strict=True):
                if isinstance(result, BaseException):
                    _logger.warning("Subscribing to events of %s failed: %s", device.info.name, result)

            self._started = True
            await transport.publish_status(STATUS_CONNECTED)
            if self._config.discovery:
                await self.publish_discovery_messages()
        except BaseException:
            await self.stop()
            raise
        return True

    async def stop(self) -> None:
        """Publish the closing status and release every resource."""
        transport = self._transport
        self._started = False
        if transport is not None and transport.is_running:
            try:
                await transport.publish_status(STATUS_BROKER_ONLY)
            except Exception:
                _logger.debug("Publishing closing status failed", exc_info=True)

        # Subscriptions end before the engine closes.
        await asyncio.gather(*(d.cancel_events() for d in self._devices), return_exceptions=True)
        await stop_event_listener()
        if self._engine is not None:
            await self._engine.close()
        self._engine = None
        self._router = None

        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

        if transport is not None:
            await asyncio.get_running_loop().run_in_executor(None, transport.stop)
        self._transport = None

        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None
        self._closed.set()

    async def wait_closed(self) -> None:
        await self._closed.wait()

    # ------------------------------------------------------------------
    # Publishing
    # ------------------------------------------------------------------

    async def publish_discovery_messages(self) -> None:
        transport = self._require_transport()
        for device in self._devices:
            payload = build_discovery_payload(self._config, device.info)
            await transport.publish_autodiscovery(self._config.discovery_prefix, device.info.uuid, payload)

    def _require_transport(self) -> MqttTransport:
        if self._transport is None:
            raise RuntimeError("Bridge not started")
        return self._transport

    # ------------------------------------------------------------------
    # Inbound
    # ------------------------------------------------------------------

    def _on_connected(self, connected: bool) -> None:
        _logger.info("Mqtt connection changed to connected: %s", connected)
        if connected and self._started:
            # The broker may have published our last will while we were away.
            self._spawn(self._require_transport().publish_status(STATUS_CONNECTED))

    def _on_inbound(self, message: InboundMessage) -> None:
        router = self._router
        if router is None:
            return
        if message.kind == "generic":
            self._spawn(router.dispatch_global(message.target, message.payload))
            return
        try:
            envelope = CommandEnvelope.model_validate({**message.payload, "selector": message.target})
        except ValidationError as exc:
            _logger.warning("Invalid control message for %s: %s", message.target, exc)
            _logger.debug("Rejected payload: %s", redact_for_log(message.payload))
            return
        self._spawn(router.dispatch(envelope))

    def _spawn(self, coro: Awaitable[Any]) -> None:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _command_context(self) -> CommandContext:
        return CommandContext(
            devices=self.devices,
            tts_endpoint=self._config.tts_endpoint,
            tts_lang=self._config.tts_lang,
            http_session=self._http_session,
        )

    async def _execute(self, device: SonosDevice, envelope: CommandEnvelope) -> Any:
        return await execute_control(device, envelope, self._command_context())

    # ------------------------------------------------------------------
    # Global commands
    # ------------------------------------------------------------------

    def _global_handlers(self) -> dict[str, GlobalHandler]:
        return {
            GlobalCommand.NOTIFY: self._notify,
            GlobalCommand.SPEAK: self._speak,
            GlobalCommand.PAUSE_ALL: self._pause_all,
            # "listalarm" is kept for older clients.
            GlobalCommand.LIST_ALARM: self._list_alarms,
            GlobalCommand.LIST_ALARMS: self._list_alarms,
            GlobalCommand.SET_ALARM: self._set_alarm,
            GlobalCommand.SET_LOGGING: self._set_logging,
            GlobalCommand.CHECK_SUBSCRIPTIONS: self._check_subscriptions,
        }

    async def _notify(self, payload: Any) -> None:
        await actions.notify_all(self._devices, payload)

    async def _speak(self, payload: Any) -> None:
        await actions.speak_all(
            self._devices,
            payload,
            endpoint=self._config.tts_endpoint,
            default_lang=self._config.tts_lang,
            session=self._http_session,
        )

    async def _pause_all(self, _payload: Any) -> None:
        await actions.pause_all(self._devices)

    async def _list_alarms(self, _payload: Any) -> list[dict[str, Any]]:
        alarms = [alarm.to_payload() for alarm in await actions.list_alarms(self._devices)]
        await self._require_transport().publish(ALARMS_TOPIC, alarms)
        return alarms

    async def _set_alarm(self, payload: Any) -> None:
        await actions.patch_alarm(self._devices, payload)

    async def _set_logging(self, payload: Any) -> int:
        level = actions.set_log_level(payload)
        _logger.info("Log level changed to %s", logging.getLevelName(level))
        return level

    async def _check_subscriptions(self, _payload: Any) -> int:
        renewed = await actions.check_subscriptions(self._devices)
        _logger.info("Subscription check done, %d renewed", renewed)
        return renewed
