"""Wire and domain models for sonos2mqtt."""

from sonos2mqtt.models.alarms import AlarmInfo, AlarmPatch
from sonos2mqtt.models.commands import (
    CommandEnvelope,
    CommandErrorPayload,
    CommandOutcome,
    CommandStatus,
    GlobalCommand,
    SonosCommand,
)
from sonos2mqtt.models.device import DeviceId, DeviceInfo, clean_name
from sonos2mqtt.models.notification import NotificationRequest, SpeakRequest
from sonos2mqtt.models.state import DeviceState, DeviceStateUpdate, TrackMetadata

__all__ = [
    "AlarmInfo",
    "AlarmPatch",
    "CommandEnvelope",
    "CommandErrorPayload",
    "CommandOutcome",
    "CommandStatus",
    "DeviceId",
    "DeviceInfo",
    "DeviceState",
    "DeviceStateUpdate",
    "GlobalCommand",
    "NotificationRequest",
    "SonosCommand",
    "SpeakRequest",
    "TrackMetadata",
    "clean_name",
]
