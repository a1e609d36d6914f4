"""Inbound command routing.

Resolves a control message to one device, runs the mapped operation and
turns the outcome into a reply publish, an error publish, or a log line.
Global commands skip resolution and go to a handler table.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Mapping, Sequence
from typing import Any, Generic, Protocol, TypeVar

from sonos2mqtt._redact import redact_for_log
from sonos2mqtt._transport import TransportSink, error_topic, reply_topic
from sonos2mqtt.exceptions import DeviceNotFoundError
from sonos2mqtt.ingestion.normalize import json_safe
from sonos2mqtt.models.commands import CommandEnvelope, CommandErrorPayload, CommandOutcome, CommandStatus
from sonos2mqtt.models.device import DeviceInfo

_logger = logging.getLogger(__name__)


class AddressableDevice(Protocol):
    info: DeviceInfo


D = TypeVar("D", bound=AddressableDevice)

CommandExecutor = Callable[[D, CommandEnvelope], Awaitable[Any]]
GlobalHandler = Callable[[Any], Awaitable[Any]]


class CommandRouter(Generic[D]):
    """Dispatches control messages to devices.

    Every dispatch is independent: failures are caught, logged and, when a
    device was resolved, published to that device's error topic.
    """

    def __init__(
        self,
        *,
        devices: Callable[[], Sequence[D]],
        executor: CommandExecutor[D],
        sink: TransportSink,
        global_handlers: Mapping[str, GlobalHandler] | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._devices = devices
        self._executor = executor
        self._sink = sink
        self._global_handlers = dict(global_handlers or {})
        self._logger = logger or _logger

    def resolve(self, selector: str) -> D | None:
        """First device whose UUID, host or normalized name matches *selector*."""
        if not selector or not selector.strip():
            return None
        for device in self._devices():
            if device.info.matches(selector):
                return device
        return None

    def require(self, selector: str) -> D:
        device = self.resolve(selector)
        if device is None:
            raise DeviceNotFoundError(selector)
        return device

    async def dispatch(self, envelope: CommandEnvelope) -> CommandOutcome:
        try:
            device = self.require(envelope.selector)
        except DeviceNotFoundError:
            # No device means no error topic to address; log only.
            self._logger.warning("Device %s not found", envelope.selector)
            return CommandOutcome(status=CommandStatus.DEVICE_NOT_FOUND, command=envelope.command)

        info = device.info
        try:
            result = await self._executor(device, envelope)
        except Exception as exc:
            self._logger.warning(
                "Error executing %s for %s (%s): %s",
                envelope.command,
                info.name,
                info.uuid,
                exc,
                exc_info=True,
            )
            detail = str(exc) or type(exc).__name__
            await self._publish_quietly(
                error_topic(info.uuid),
                CommandErrorPayload(command=envelope.command, error=detail).to_payload(),
            )
            return CommandOutcome(
                status=CommandStatus.FAILED,
                command=envelope.command,
                device_id=info.uuid,
                error=detail,
            )

        if envelope.reply_topic:
            await self._publish_quietly(reply_topic(info.uuid, envelope.reply_topic), json_safe(result))
        self._logger.debug("Executed %s for %s (%s)", envelope.command, info.name, info.uuid)
        return CommandOutcome(
            status=CommandStatus.SUCCESS,
            command=envelope.command,
            device_id=info.uuid,
            result=result,
        )

    async def dispatch_global(self, command: str, payload: Any) -> CommandOutcome:
        """Run a command that targets the whole device set."""
        name = command.strip().lower()
        self._logger.debug("Got generic command %s from mqtt: %s", name, redact_for_log(payload))
        handler = self._global_handlers.get(name)
        if handler is None:
            self._logger.warning("Unknown generic command %s", command)
            return CommandOutcome(status=CommandStatus.FAILED, command=name, error="unknown command")
        try:
            result = await handler(payload)
        except Exception as exc:
            self._logger.warning("Error executing generic command %s: %s", name, exc, exc_info=True)
            return CommandOutcome(status=CommandStatus.FAILED, command=name, error=str(exc) or type(exc).__name__)
        return CommandOutcome(status=CommandStatus.SUCCESS, command=name, result=result)

    async def _publish_quietly(self, topic: str, payload: Any) -> None:
        try:
            await self._sink.publish(topic, payload)
        except Exception:
            self._logger.warning("Publishing to %s failed", topic, exc_info=True)
