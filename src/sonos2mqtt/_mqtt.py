"""MQTT transport: broker URL parsing, inbound topic parsing, paho runtime."""

from __future__ import annotations

import asyncio
import json
import logging
import secrets
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Literal, cast
from urllib.parse import unquote, urlsplit

import paho.mqtt.client as mqtt

from sonos2mqtt._redact import redact_url
from sonos2mqtt._transport import STATUS_OFFLINE
from sonos2mqtt.config import Sonos2MqttConfig
from sonos2mqtt.exceptions import ConfigError, TransportError

_DEFAULT_PORTS = {"mqtt": 1883, "tcp": 1883, "mqtts": 8883, "ssl": 8883}


@dataclass(frozen=True)
class MqttBroker:
    """Connection details parsed from the broker URL."""

    host: str
    port: int
    username: str | None = None
    password: str | None = None
    tls: bool = False


@dataclass(frozen=True)
class InboundMessage:
    """A control message, with the prefix already stripped from its topic."""

    kind: Literal["generic", "device"]
    target: str
    payload: Any


def parse_broker_url(url: str) -> MqttBroker:
    value = url.strip()
    if not value:
        raise ConfigError("MQTT URL is empty")
    if "://" not in value:
        value = f"mqtt://{value}"

    parts = urlsplit(value)
    scheme = parts.scheme.lower()
    if scheme not in _DEFAULT_PORTS:
        raise ConfigError(f"Unsupported MQTT scheme {scheme!r}")
    if not parts.hostname:
        raise ConfigError(f"MQTT URL has no host: {redact_url(url)}")
    try:
        port = parts.port or _DEFAULT_PORTS[scheme]
    except ValueError as exc:
        raise ConfigError(f"MQTT URL has an invalid port: {redact_url(url)}") from exc
    return MqttBroker(
        host=parts.hostname,
        port=port,
        username=unquote(parts.username) if parts.username else None,
        password=unquote(parts.password) if parts.password else None,
        tls=scheme in {"mqtts", "ssl"},
    )


def decode_payload(raw: bytes) -> Any:
    """JSON when it parses, else the plain text; empty payloads are ``None``."""
    text = raw.decode("utf-8", errors="replace").strip()
    if not text:
        return None
    try:
        return json.loads(text)
    except ValueError:
        return text


def encode_payload(payload: Any) -> str | bytes | None:
    if payload is None or isinstance(payload, (str, bytes)):
        return payload
    return json.dumps(payload, default=str)


def parse_inbound(prefix: str, topic: str, payload: Any) -> InboundMessage | None:
    """Map a control topic to a generic or per-device message.

    Topics (after ``<prefix>/``):

    - ``cmd/<command>``: generic command, payload as-is
    - ``<device>/control``: per-device command, JSON envelope body
    - ``set/<device>/<command>``: per-device command, payload is the input
    """
    head = f"{prefix.strip('/')}/"
    if not topic.startswith(head):
        return None
    parts = topic[len(head) :].split("/")

    if len(parts) == 2 and parts[0] == "cmd" and parts[1]:
        return InboundMessage(kind="generic", target=parts[1], payload=payload)
    if len(parts) == 3 and parts[0] == "set" and parts[1] and parts[2]:
        return InboundMessage(kind="device", target=parts[1], payload={"command": parts[2], "input": payload})
    if len(parts) == 2 and parts[1] == "control" and parts[0]:
        if not isinstance(payload, dict):
            return None
        return InboundMessage(kind="device", target=parts[0], payload=payload)
    return None


class MqttTransport:
    """Threaded paho-mqtt runtime that hands inbound messages to an asyncio loop.

    Implements the publish side of :class:`sonos2mqtt._transport.TransportSink`.
    """

    def __init__(
        self,
        config: Sonos2MqttConfig,
        *,
        loop: asyncio.AbstractEventLoop,
        on_message: Callable[[InboundMessage], None],
        on_connected: Callable[[bool], None] | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._config = config
        self._prefix = config.prefix.strip("/")
        self._loop = loop
        self._on_message = on_message
        self._on_connected = on_connected
        self._logger = logger or logging.getLogger(__name__)
        self._broker = parse_broker_url(config.mqtt)
        self._client: mqtt.Client | None = None
        self._running = False

    @property
    def is_running(self) -> bool:
        """Whether the MQTT runtime is actively running."""
        return self._running

    def _topic(self, topic: str) -> str:
        return f"{self._prefix}/{topic.lstrip('/')}"

    def start(self) -> None:
        """Connect and start the network loop (blocking connect)."""
        self.stop()
        broker = self._broker
        client_id = self._config.client_id or f"sonos2mqtt_{secrets.token_hex(4)}"
        self._logger.debug(
            "MQTT runtime start requested url=%s client_id=%s",
            redact_url(self._config.mqtt),
            client_id,
        )

        client = mqtt.Client(
            callback_api_version=cast(Any, mqtt).CallbackAPIVersion.VERSION2,
            client_id=client_id,
            protocol=mqtt.MQTTv311,
        )
        client.enable_logger(self._logger)
        if broker.username:
            client.username_pw_set(broker.username, broker.password)
        if broker.tls:
            client.tls_set()
        client.will_set(self._topic("connected"), STATUS_OFFLINE, qos=0, retain=True)
        client.reconnect_delay_set(min_delay=1, max_delay=60)

        subscriptions = [
            (self._topic("cmd/+"), 0),
            (self._topic("+/control"), 0),
            (self._topic("set/+/+"), 0),
        ]

        def on_connect(
            c: mqtt.Client,
            _userdata: Any,
            _flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            if reason_code.value != 0:
                self._logger.warning("MQTT connect failed: %s", reason_code)
                return
            self._logger.debug("MQTT connected successfully reason=%s", reason_code)
            c.subscribe(subscriptions)
            if self._on_connected is not None:
                self._loop.call_soon_threadsafe(self._on_connected, True)

        def on_message(_c: mqtt.Client, _userdata: Any, msg: mqtt.MQTTMessage) -> None:
            try:
                payload = decode_payload(msg.payload)
                inbound = parse_inbound(self._prefix, msg.topic, payload)
                if inbound is None:
                    self._logger.debug("Ignoring message on %s", msg.topic)
                    return
                self._loop.call_soon_threadsafe(self._on_message, inbound)
            except Exception:
                self._logger.debug("MQTT message handling failure topic=%s", msg.topic, exc_info=True)

        def on_disconnect(
            _client: mqtt.Client,
            _userdata: Any,
            _disconnect_flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            if self._running:
                self._logger.warning("MQTT disconnected: %s", reason_code)
                if self._on_connected is not None:
                    self._loop.call_soon_threadsafe(self._on_connected, False)

        client.on_connect = on_connect
        client.on_message = on_message
        client.on_disconnect = on_disconnect

        try:
            client.connect(broker.host, broker.port, keepalive=self._config.mqtt_keepalive)
        except OSError as exc:
            raise TransportError(f"Could not connect to {broker.host}:{broker.port}: {exc}") from exc
        client.loop_start()

        self._client = client
        self._running = True
        self._logger.debug("MQTT network loop started")

    def stop(self) -> None:
        """Stop and disconnect current MQTT client if running."""
        client = self._client
        self._client = None
        was_running = self._running
        self._running = False

        if client is None:
            return
        try:
            if was_running:
                self._logger.debug("MQTT disconnect requested")
                client.disconnect()
        finally:
            client.loop_stop()
            self._logger.debug("MQTT network loop stopped")

    def _publish_absolute(self, topic: str, payload: Any, *, qos: int, retain: bool) -> None:
        client = self._client
        if client is None:
            raise TransportError(f"Cannot publish to {topic}: MQTT runtime not started")
        info = client.publish(topic, encode_payload(payload), qos=qos, retain=retain)
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            self._logger.debug("Publish to %s queued with rc=%s", topic, info.rc)

    async def publish(self, topic: str, payload: Any, *, qos: int = 0, retain: bool = False) -> None:
        self._publish_absolute(self._topic(topic), payload, qos=qos, retain=retain)

    async def publish_status(self, code: str) -> None:
        await self.publish("connected", code, qos=0, retain=True)

    async def publish_autodiscovery(self, prefix: str, device_id: str, descriptor: dict[str, Any]) -> None:
        topic = f"{prefix.strip('/')}/media_player/{device_id}/config"
        self._publish_absolute(topic, descriptor, qos=0, retain=True)
