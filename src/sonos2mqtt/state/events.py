"""Typed device events.

Every subscription of a device feeds one channel of :data:`DeviceEvent`
values. The ``kind`` tag decides how the state engine handles each one.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from sonos2mqtt.models.state import DeviceStateUpdate, TrackMetadata


class _DeviceEventBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    def to_update(self) -> DeviceStateUpdate | None:
        """State fields this event carries, ``None`` for per-field-only events."""
        return None


class TransportEvent(_DeviceEventBase):
    """AVTransport service event."""

    kind: Literal["transport"] = "transport"
    current_track: TrackMetadata | None = None
    enqueued_metadata: TrackMetadata | None = None
    next_track: TrackMetadata | None = None
    playmode: str | None = None
    raw: dict[str, Any] = Field(default_factory=dict)

    def to_update(self) -> DeviceStateUpdate:
        # TransportState arrives as its own event.
        return DeviceStateUpdate(
            current_track=self.current_track,
            enqueued_metadata=self.enqueued_metadata,
            next_track=self.next_track,
            playmode=self.playmode,
        )


class RenderingControlEvent(_DeviceEventBase):
    """RenderingControl service event."""

    kind: Literal["rendering_control"] = "rendering_control"
    volume: int | None = None
    mute: bool | None = None
    bass: int | None = None
    treble: int | None = None
    raw: dict[str, Any] = Field(default_factory=dict)

    def to_update(self) -> DeviceStateUpdate:
        return DeviceStateUpdate(volume=self.volume, mute=self.mute, bass=self.bass, treble=self.treble)


class GroupNameEvent(_DeviceEventBase):
    kind: Literal["group_name"] = "group_name"
    group_name: str

    def to_update(self) -> DeviceStateUpdate:
        return DeviceStateUpdate(group_name=self.group_name)


class CoordinatorEvent(_DeviceEventBase):
    kind: Literal["coordinator"] = "coordinator"
    coordinator_uuid: str

    def to_update(self) -> DeviceStateUpdate:
        return DeviceStateUpdate(coordinator_uuid=self.coordinator_uuid)


class TransportStateEvent(_DeviceEventBase):
    kind: Literal["transport_state"] = "transport_state"
    transport_state: str

    def to_update(self) -> DeviceStateUpdate:
        return DeviceStateUpdate(transport_state=self.transport_state)


class TrackMetadataEvent(_DeviceEventBase):
    kind: Literal["track_metadata"] = "track_metadata"
    track: TrackMetadata


class TrackUriEvent(_DeviceEventBase):
    kind: Literal["track_uri"] = "track_uri"
    track_uri: str


class MuteEvent(_DeviceEventBase):
    kind: Literal["mute"] = "mute"
    mute: bool


class VolumeEvent(_DeviceEventBase):
    kind: Literal["volume"] = "volume"
    volume: int


DeviceEvent = Annotated[
    TransportEvent
    | RenderingControlEvent
    | GroupNameEvent
    | CoordinatorEvent
    | TransportStateEvent
    | TrackMetadataEvent
    | TrackUriEvent
    | MuteEvent
    | VolumeEvent,
    Field(discriminator="kind"),
]
