"""sonos2mqtt - bridge Sonos speakers to an MQTT broker."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("sonos2mqtt")
except PackageNotFoundError:
    __version__ = "0+local"
from sonos2mqtt.app import Sonos2Mqtt
from sonos2mqtt.config import Sonos2MqttConfig
from sonos2mqtt.exceptions import (
    CommandExecutionError,
    ConfigError,
    DeviceNotFoundError,
    Sonos2MqttError,
    TransportError,
    UnknownCommandError,
)
from sonos2mqtt.models import (
    CommandEnvelope,
    CommandOutcome,
    CommandStatus,
    DeviceId,
    DeviceInfo,
    DeviceState,
    DeviceStateUpdate,
    SonosCommand,
)
from sonos2mqtt.router import CommandRouter
from sonos2mqtt.state.engine import StateEngine
from sonos2mqtt.state.store import StateStore

__all__ = [
    "__version__",
    "CommandEnvelope",
    "CommandExecutionError",
    "CommandOutcome",
    "CommandRouter",
    "CommandStatus",
    "ConfigError",
    "DeviceId",
    "DeviceInfo",
    "DeviceNotFoundError",
    "DeviceState",
    "DeviceStateUpdate",
    "Sonos2Mqtt",
    "Sonos2MqttConfig",
    "Sonos2MqttError",
    "SonosCommand",
    "StateEngine",
    "StateStore",
    "TransportError",
    "UnknownCommandError",
]
