"""Notification playback and text-to-speech.

A notification snapshots the group coordinator, plays the clip, waits for
it to stop (or for the timeout), then restores the snapshot.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING, Any

import aiohttp
from soco.snapshot import Snapshot

from sonos2mqtt.exceptions import CommandExecutionError
from sonos2mqtt.models.notification import NotificationRequest, SpeakRequest

if TYPE_CHECKING:
    from sonos2mqtt.devices import SonosDevice

_logger = logging.getLogger(__name__)

_POLL_INTERVAL = 0.5
_PLAYING_STATES = frozenset({"PLAYING", "TRANSITIONING"})


def _transport_state(zone: Any) -> str:
    info = zone.get_current_transport_info()
    return str(info.get("current_transport_state", ""))


def _coordinator(zone: Any) -> Any:
    group = zone.group
    if group is not None and group.coordinator is not None:
        return group.coordinator
    return zone


async def play_notification(device: SonosDevice, request: NotificationRequest) -> bool:
    """Play *request* on the device's group. Returns ``False`` when skipped."""
    coordinator = await device.call(_coordinator, device.zone)
    state = await device.call(_transport_state, coordinator)
    if request.only_when_playing and state not in _PLAYING_STATES:
        _logger.debug("Skipping notification on %s, transport state %s", device.info.name, state)
        return False

    snapshot = Snapshot(coordinator)
    await device.call(snapshot.snapshot)
    try:
        if request.volume is not None:
            await device.call(setattr, coordinator, "volume", request.volume)
        await device.call(coordinator.play_uri, request.track_uri, request.metadata)

        deadline = time.monotonic() + request.timeout
        # Give the player a moment to leave the previous state.
        await asyncio.sleep(_POLL_INTERVAL)
        while time.monotonic() < deadline:
            if await device.call(_transport_state, coordinator) not in _PLAYING_STATES:
                break
            await asyncio.sleep(_POLL_INTERVAL)
        else:
            _logger.debug("Notification on %s hit timeout of %ss", device.info.name, request.timeout)

        if request.delay_ms:
            await asyncio.sleep(request.delay_ms / 1000)
    finally:
        await device.call(snapshot.restore, fade=False)
    return True


async def fetch_tts_uri(
    request: SpeakRequest,
    *,
    endpoint: str | None,
    default_lang: str,
    session: aiohttp.ClientSession | None = None,
) -> str:
    """Ask the TTS endpoint for a playable URI for ``request.text``."""
    url = request.endpoint or endpoint
    if not url:
        raise CommandExecutionError("No TTS endpoint configured", command="speak")

    body = {
        "text": request.text,
        "lang": request.lang or default_lang,
        "gender": request.gender,
    }
    own_session = session is None
    http = session if session is not None else aiohttp.ClientSession()
    try:
        async with http.post(url, json=body, timeout=aiohttp.ClientTimeout(total=15)) as response:
            if response.status != 200:
                raise CommandExecutionError(f"TTS endpoint returned HTTP {response.status}", command="speak")
            data = await response.json(content_type=None)
    except aiohttp.ClientError as exc:
        raise CommandExecutionError(f"TTS request failed: {exc}", command="speak") from exc
    finally:
        if own_session:
            await http.close()

    if not isinstance(data, dict):
        raise CommandExecutionError("TTS endpoint returned a non-object body", command="speak")
    uri = data.get("cdnUri") or data.get("uri")
    if not isinstance(uri, str) or not uri:
        raise CommandExecutionError("TTS endpoint response missing cdnUri", command="speak")
    return uri


async def speak(
    device: SonosDevice,
    request: SpeakRequest,
    *,
    endpoint: str | None,
    default_lang: str,
    session: aiohttp.ClientSession | None = None,
) -> bool:
    uri = await fetch_tts_uri(request, endpoint=endpoint, default_lang=default_lang, session=session)
    notification = NotificationRequest(
        track_uri=uri,
        volume=request.volume,
        timeout=request.timeout,
        only_when_playing=request.only_when_playing,
        delay_ms=request.delay_ms,
    )
    return await play_notification(device, notification)
