"""Custom exception hierarchy for sonos2mqtt."""

from __future__ import annotations


class Sonos2MqttError(Exception):
    """Base exception for all sonos2mqtt errors."""


class ConfigError(Sonos2MqttError):
    """Invalid or missing configuration."""


class TransportError(Sonos2MqttError):
    """MQTT-level failure (connect, publish, malformed topic)."""


class DeviceNotFoundError(Sonos2MqttError):
    """A command selector did not resolve to a known device."""

    def __init__(self, selector: str) -> None:
        self.selector = selector
        super().__init__(f"Device {selector!r} not found")


class CommandExecutionError(Sonos2MqttError):
    """A device operation failed.

    Published to ``<uuid>/error`` by the command router; never retried.
    """

    def __init__(
        self,
        message: str,
        *,
        command: str = "",
        device_id: str = "",
    ) -> None:
        self.command = command
        self.device_id = device_id
        super().__init__(message)


class UnknownCommandError(CommandExecutionError):
    """The command name has no mapped device operation."""
