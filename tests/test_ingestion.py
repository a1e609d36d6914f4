from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from sonos2mqtt.ingestion.normalize import is_meaningful, json_safe, safe_bool, safe_int
from sonos2mqtt.ingestion.upnp import events_from_variables, track_from_didl
from sonos2mqtt.models.state import TrackMetadata
from sonos2mqtt.state.events import (
    MuteEvent,
    RenderingControlEvent,
    TrackMetadataEvent,
    TrackUriEvent,
    TransportEvent,
    TransportStateEvent,
    VolumeEvent,
)


@dataclass
class _Resource:
    uri: str
    duration: str | None = None


@dataclass
class _Didl:
    title: str | None = None
    creator: str | None = None
    album: str | None = None
    album_art_uri: str | None = None
    item_class: str = "object.item.audioItem.musicTrack"
    resources: list[_Resource] = field(default_factory=list)


def test_sentinel_values_are_not_meaningful() -> None:
    assert not is_meaningful(None)
    assert not is_meaningful("")
    assert not is_meaningful("NOT_IMPLEMENTED")
    assert not is_meaningful(float("nan"))
    assert is_meaningful(0)
    assert is_meaningful("PLAYING")


def test_safe_parsers_read_master_channel() -> None:
    assert safe_int({"Master": "20", "LF": "100"}) == 20
    assert safe_int("abc") is None
    assert safe_bool({"Master": "1"}) is True
    assert safe_bool("0") is False
    assert safe_bool("maybe") is None


def test_json_safe_stringifies_unknown_objects() -> None:
    class _Opaque:
        def __str__(self) -> str:
            return "opaque"

    assert json_safe({"a": (1, 2), "b": _Opaque()}) == {"a": [1, 2], "b": "opaque"}


def test_track_from_didl_object() -> None:
    didl = _Didl(
        title="Song",
        creator="Artist",
        album="Album",
        album_art_uri="/getaa?s=1",
        resources=[_Resource(uri="x-sonos-spotify:track", duration="0:03:15")],
    )

    assert track_from_didl(didl) == TrackMetadata(
        title="Song",
        artist="Artist",
        album="Album",
        album_art_uri="/getaa?s=1",
        track_uri="x-sonos-spotify:track",
        duration="0:03:15",
        upnp_class="object.item.audioItem.musicTrack",
    )


def test_track_from_placeholders_is_none() -> None:
    assert track_from_didl(None) is None
    assert track_from_didl("") is None
    assert track_from_didl("NOT_IMPLEMENTED") is None


def test_rendering_control_variables() -> None:
    variables = {"volume": {"Master": "20", "LF": "100"}, "mute": {"Master": "0"}, "bass": "2", "treble": "-1"}

    events = events_from_variables("RenderingControl", variables)

    rendering = events[0]
    assert isinstance(rendering, RenderingControlEvent)
    assert (rendering.volume, rendering.mute, rendering.bass, rendering.treble) == (20, False, 2, -1)
    assert rendering.raw == variables
    assert events[1:] == [VolumeEvent(volume=20), MuteEvent(mute=False)]


def test_rendering_control_without_volume_yields_partial_update() -> None:
    events = events_from_variables("RenderingControl", {"bass": "4"})

    assert len(events) == 1
    update = events[0].to_update()
    assert update is not None
    assert update.present_fields() == {"bass": 4}


def test_av_transport_variables() -> None:
    didl = _Didl(title="Song", creator="Artist", resources=[_Resource(uri="x-file-cifs://song.mp3")])
    variables: dict[str, Any] = {
        "transport_state": "PLAYING",
        "current_play_mode": "SHUFFLE",
        "current_track_uri": "x-file-cifs://song.mp3",
        "current_track_meta_data": didl,
        "next_track_meta_data": "NOT_IMPLEMENTED",
    }

    events = events_from_variables("AVTransport", variables)

    transport = events[0]
    assert isinstance(transport, TransportEvent)
    assert transport.playmode == "SHUFFLE"
    assert transport.current_track is not None
    assert transport.current_track.title == "Song"
    assert transport.next_track is None
    assert transport.raw["transport_state"] == "PLAYING"
    assert TransportStateEvent(transport_state="PLAYING") in events
    assert TrackMetadataEvent(track=transport.current_track) in events
    assert TrackUriEvent(track_uri="x-file-cifs://song.mp3") in events


def test_transport_update_never_carries_absent_fields() -> None:
    events = events_from_variables("AVTransport", {"current_play_mode": "NORMAL"})

    update = events[0].to_update()
    assert update is not None
    assert update.present_fields() == {"playmode": "NORMAL"}


def test_other_services_yield_nothing() -> None:
    assert events_from_variables("ZoneGroupTopology", {"zone_group_state": "<xml/>"}) == []
