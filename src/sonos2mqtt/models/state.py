"""Aggregated per-device state and the partial update merged into it."""

from __future__ import annotations

from typing import Any

from pydantic import ConfigDict

from sonos2mqtt.models._base import Sonos2MqttModel


class TrackMetadata(Sonos2MqttModel):
    """Track description parsed from DIDL-Lite metadata."""

    model_config = ConfigDict(frozen=True)

    title: str | None = None
    artist: str | None = None
    album: str | None = None
    album_art_uri: str | None = None
    track_uri: str | None = None
    duration: str | None = None
    stream_content: str | None = None
    upnp_class: str | None = None


class DeviceStateUpdate(Sonos2MqttModel):
    """Partial state: unset or ``None`` fields mean "unchanged".

    Kept separate from :class:`DeviceState` so a merge can never be
    mistaken for a full replacement.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    model: str | None = None
    name: str | None = None
    group_name: str | None = None
    coordinator_uuid: str | None = None
    transport_state: str | None = None
    current_track: TrackMetadata | None = None
    enqueued_metadata: TrackMetadata | None = None
    next_track: TrackMetadata | None = None
    playmode: str | None = None
    volume: int | None = None
    mute: bool | None = None
    bass: int | None = None
    treble: int | None = None

    def present_fields(self) -> dict[str, Any]:
        """Fields carried by this update, keyed by attribute name."""
        present: dict[str, Any] = {}
        for name in self.model_fields_set:
            value = getattr(self, name)
            if value is not None:
                present[name] = value
        return present


class DeviceState(Sonos2MqttModel):
    """Last known state of one device, as published to its state topic."""

    uuid: str
    model: str | None = None
    name: str | None = None
    group_name: str | None = None
    coordinator_uuid: str | None = None
    transport_state: str | None = None
    current_track: TrackMetadata | None = None
    enqueued_metadata: TrackMetadata | None = None
    next_track: TrackMetadata | None = None
    playmode: str | None = None
    volume: int | None = None
    mute: bool | None = None
    bass: int | None = None
    treble: int | None = None
    ts: int | None = None
    """Epoch milliseconds of the last merge."""
