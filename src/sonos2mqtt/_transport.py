"""Publish-side contract between the bridge core and the MQTT transport.

Topics passed to a sink are relative to the configured prefix; the sink
prepends it.
"""

from __future__ import annotations

from typing import Any, Protocol

STATUS_OFFLINE = "0"
STATUS_BROKER_ONLY = "1"
STATUS_CONNECTED = "2"

ALARMS_TOPIC = "alarms"


class TransportSink(Protocol):
    async def publish(self, topic: str, payload: Any, *, qos: int = 0, retain: bool = False) -> None: ...

    async def publish_status(self, code: str) -> None: ...

    async def publish_autodiscovery(self, prefix: str, device_id: str, descriptor: dict[str, Any]) -> None: ...


def state_topic(device_id: str) -> str:
    return device_id


def field_topic(device_id: str, field: str) -> str:
    return f"status/{device_id}/{field}"


def reply_topic(device_id: str, reply: str) -> str:
    return f"{device_id}/{reply.strip('/')}"


def error_topic(device_id: str) -> str:
    return f"{device_id}/error"
