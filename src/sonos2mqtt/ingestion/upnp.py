"""UPnP event ingestion.

Translates the ``variables`` of a soco UPnP event into typed device
events. soco has already parsed the LastChange XML; metadata values are
either DIDL objects or raw DIDL-Lite strings.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from soco.data_structures_entry import from_didl_string

from sonos2mqtt.ingestion.normalize import is_meaningful, json_safe, safe_bool, safe_int, safe_str
from sonos2mqtt.models.state import TrackMetadata
from sonos2mqtt.state.events import (
    DeviceEvent,
    MuteEvent,
    RenderingControlEvent,
    TrackMetadataEvent,
    TrackUriEvent,
    TransportEvent,
    TransportStateEvent,
    VolumeEvent,
)

_logger = logging.getLogger(__name__)

AV_TRANSPORT = "AVTransport"
RENDERING_CONTROL = "RenderingControl"
ZONE_GROUP_TOPOLOGY = "ZoneGroupTopology"


def _first_resource(didl: Any) -> Any:
    resources = getattr(didl, "resources", None) or []
    return resources[0] if resources else None


def track_from_didl(value: Any) -> TrackMetadata | None:
    """Build track metadata from a DIDL object or DIDL-Lite string."""
    if not is_meaningful(value):
        return None
    if isinstance(value, TrackMetadata):
        return value
    didl = value
    if isinstance(value, str):
        try:
            parsed = from_didl_string(value)
        except Exception:
            _logger.debug("Unparseable DIDL metadata", exc_info=True)
            return None
        if not parsed:
            return None
        didl = parsed[0]

    resource = _first_resource(didl)
    track = TrackMetadata(
        title=safe_str(getattr(didl, "title", None)),
        artist=safe_str(getattr(didl, "creator", None)),
        album=safe_str(getattr(didl, "album", None)),
        album_art_uri=safe_str(getattr(didl, "album_art_uri", None)),
        track_uri=safe_str(getattr(resource, "uri", None)),
        duration=safe_str(getattr(resource, "duration", None)),
        stream_content=safe_str(getattr(didl, "stream_content", None)),
        upnp_class=safe_str(getattr(didl, "item_class", None)),
    )
    if not track.model_dump(exclude_none=True):
        return None
    return track


def _av_transport_events(variables: Mapping[str, Any]) -> list[DeviceEvent]:
    current_track = track_from_didl(variables.get("current_track_meta_data"))
    events: list[DeviceEvent] = [
        TransportEvent(
            current_track=current_track,
            enqueued_metadata=track_from_didl(variables.get("enqueued_transport_uri_meta_data")),
            next_track=track_from_didl(variables.get("next_track_meta_data")),
            playmode=safe_str(variables.get("current_play_mode")),
            raw=json_safe(dict(variables)),
        )
    ]

    transport_state = safe_str(variables.get("transport_state"))
    if transport_state is not None:
        events.append(TransportStateEvent(transport_state=transport_state))
    if current_track is not None:
        events.append(TrackMetadataEvent(track=current_track))
    track_uri = safe_str(variables.get("current_track_uri"))
    if track_uri is not None:
        events.append(TrackUriEvent(track_uri=track_uri))
    return events


def _rendering_control_events(variables: Mapping[str, Any]) -> list[DeviceEvent]:
    volume = safe_int(variables.get("volume"))
    mute = safe_bool(variables.get("mute"))
    events: list[DeviceEvent] = [
        RenderingControlEvent(
            volume=volume,
            mute=mute,
            bass=safe_int(variables.get("bass")),
            treble=safe_int(variables.get("treble")),
            raw=json_safe(dict(variables)),
        )
    ]
    if volume is not None:
        events.append(VolumeEvent(volume=volume))
    if mute is not None:
        events.append(MuteEvent(mute=mute))
    return events


def events_from_variables(service_type: str, variables: Mapping[str, Any]) -> list[DeviceEvent]:
    """Build device events from one soco event.

    ``service_type`` is the UPnP service type (``event.service.service_type``).
    ZoneGroupTopology events carry no device state of their own; group
    membership is read back from the device instead, so they yield nothing.
    """
    if service_type == AV_TRANSPORT:
        return _av_transport_events(variables)
    if service_type == RENDERING_CONTROL:
        return _rendering_control_events(variables)
    return []
