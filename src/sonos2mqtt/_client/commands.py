"""Per-device command operations.

Maps each :class:`~sonos2mqtt.models.commands.SonosCommand` to the soco
call it performs. The command router resolves the device and handles the
outcome; this module only executes.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import aiohttp

from sonos2mqtt._client.notifications import play_notification, speak
from sonos2mqtt.exceptions import CommandExecutionError, UnknownCommandError
from sonos2mqtt.ingestion.normalize import json_safe, safe_bool, safe_int
from sonos2mqtt.models.commands import CommandEnvelope, SonosCommand
from sonos2mqtt.models.notification import NotificationRequest, SpeakRequest

if TYPE_CHECKING:
    from sonos2mqtt.devices import SonosDevice

_PLAY_MODES = frozenset({"NORMAL", "REPEAT_ALL", "REPEAT_ONE", "SHUFFLE", "SHUFFLE_NOREPEAT", "SHUFFLE_REPEAT_ONE"})
_DEFAULT_VOLUME_STEP = 5


@dataclass
class CommandContext:
    """What command handlers may need beyond the target device."""

    devices: Sequence[SonosDevice] = ()
    tts_endpoint: str | None = None
    tts_lang: str = "en-US"
    http_session: aiohttp.ClientSession | None = field(default=None, repr=False)


CommandHandler = Callable[["SonosDevice", Any, CommandContext], Awaitable[Any]]


def _require_int(value: Any, name: str, *, low: int, high: int) -> int:
    parsed = safe_int(value)
    if parsed is None:
        raise CommandExecutionError(f"{name} requires a number, got {value!r}", command=name)
    if not low <= parsed <= high:
        raise CommandExecutionError(f"{name} must be between {low} and {high}, got {parsed}", command=name)
    return parsed


def _require_bool(value: Any, name: str) -> bool:
    parsed = safe_bool(value)
    if parsed is None:
        raise CommandExecutionError(f"{name} requires a boolean, got {value!r}", command=name)
    return parsed


def _require_str(value: Any, name: str, *keys: str) -> str:
    if isinstance(value, Mapping):
        for key in keys:
            candidate = value.get(key)
            if isinstance(candidate, str) and candidate:
                return candidate
    if isinstance(value, str) and value:
        return value
    raise CommandExecutionError(f"{name} requires a string input", command=name)


def _to_seconds(value: Any, name: str) -> int:
    """Accept seconds, ``MM:SS`` or ``H:MM:SS``."""
    if not (isinstance(value, str) and ":" in value):
        return _require_int(value, name, low=0, high=24 * 3600)
    parts = value.strip().split(":")
    if len(parts) not in (2, 3) or not all(part.isdigit() for part in parts):
        raise CommandExecutionError(f"{name} requires seconds, MM:SS or H:MM:SS, got {value!r}", command=name)
    numbers = [int(part) for part in parts]
    hours, minutes, seconds = numbers if len(numbers) == 3 else [0, *numbers]
    if minutes > 59 or seconds > 59:
        raise CommandExecutionError(f"{name} has an out of range time {value!r}", command=name)
    return hours * 3600 + minutes * 60 + seconds


def _to_hms(value: Any, name: str) -> str:
    seconds = _to_seconds(value, name)
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    return f"{hours}:{minutes:02d}:{secs:02d}"


async def _play(device: SonosDevice, _value: Any, _ctx: CommandContext) -> None:
    await device.call(device.zone.play)


async def _pause(device: SonosDevice, _value: Any, _ctx: CommandContext) -> None:
    await device.call(device.zone.pause)


async def _stop(device: SonosDevice, _value: Any, _ctx: CommandContext) -> None:
    await device.call(device.zone.stop)


async def _next(device: SonosDevice, _value: Any, _ctx: CommandContext) -> None:
    await device.call(device.zone.next)


async def _previous(device: SonosDevice, _value: Any, _ctx: CommandContext) -> None:
    await device.call(device.zone.previous)


async def _toggle(device: SonosDevice, _value: Any, _ctx: CommandContext) -> str:
    info = await device.call(device.zone.get_current_transport_info)
    if info.get("current_transport_state") == "PLAYING":
        await device.call(device.zone.pause)
        return "PAUSED_PLAYBACK"
    await device.call(device.zone.play)
    return "PLAYING"


async def _volume(device: SonosDevice, value: Any, _ctx: CommandContext) -> None:
    volume = _require_int(value, SonosCommand.VOLUME, low=0, high=100)
    await device.call(setattr, device.zone, "volume", volume)


async def _volume_up(device: SonosDevice, value: Any, _ctx: CommandContext) -> int:
    step = _DEFAULT_VOLUME_STEP if value in (None, "") else _require_int(value, SonosCommand.VOLUME_UP, low=1, high=100)
    return await device.call(device.zone.set_relative_volume, step)


async def _volume_down(device: SonosDevice, value: Any, _ctx: CommandContext) -> int:
    step = _DEFAULT_VOLUME_STEP if value in (None, "") else _require_int(value, SonosCommand.VOLUME_DOWN, low=1, high=100)
    return await device.call(device.zone.set_relative_volume, -step)


async def _mute(device: SonosDevice, _value: Any, _ctx: CommandContext) -> None:
    await device.call(setattr, device.zone, "mute", True)


async def _unmute(device: SonosDevice, _value: Any, _ctx: CommandContext) -> None:
    await device.call(setattr, device.zone, "mute", False)


async def _set_bass(device: SonosDevice, value: Any, _ctx: CommandContext) -> None:
    await device.call(setattr, device.zone, "bass", _require_int(value, SonosCommand.SET_BASS, low=-10, high=10))


async def _set_treble(device: SonosDevice, value: Any, _ctx: CommandContext) -> None:
    await device.call(setattr, device.zone, "treble", _require_int(value, SonosCommand.SET_TREBLE, low=-10, high=10))


async def _set_loudness(device: SonosDevice, value: Any, _ctx: CommandContext) -> None:
    await device.call(setattr, device.zone, "loudness", _require_bool(value, SonosCommand.SET_LOUDNESS))


async def _set_nightmode(device: SonosDevice, value: Any, _ctx: CommandContext) -> None:
    await device.call(setattr, device.zone, "night_mode", _require_bool(value, SonosCommand.SET_NIGHTMODE))


async def _set_speech_enhancement(device: SonosDevice, value: Any, _ctx: CommandContext) -> None:
    enabled = _require_bool(value, SonosCommand.SET_SPEECH_ENHANCEMENT)
    await device.call(setattr, device.zone, "dialog_mode", enabled)


async def _crossfade(device: SonosDevice, value: Any, _ctx: CommandContext) -> None:
    await device.call(setattr, device.zone, "cross_fade", _require_bool(value, SonosCommand.CROSSFADE))


async def _playmode(device: SonosDevice, value: Any, _ctx: CommandContext) -> None:
    mode = _require_str(value, SonosCommand.PLAYMODE, "playmode").upper()
    if mode not in _PLAY_MODES:
        raise CommandExecutionError(f"Unknown play mode {mode!r}", command=SonosCommand.PLAYMODE)
    await device.call(setattr, device.zone, "play_mode", mode)


async def _seek(device: SonosDevice, value: Any, _ctx: CommandContext) -> None:
    await device.call(device.zone.seek, _to_hms(value, SonosCommand.SEEK))


async def _select_track(device: SonosDevice, value: Any, _ctx: CommandContext) -> None:
    position = _require_int(value, SonosCommand.SELECT_TRACK, low=1, high=100_000)
    await device.call(device.zone.play_from_queue, position - 1)


async def _sleep(device: SonosDevice, value: Any, _ctx: CommandContext) -> None:
    if value in (None, "", 0, "0"):
        await device.call(device.zone.set_sleep_timer, None)
        return
    await device.call(device.zone.set_sleep_timer, _to_seconds(value, SonosCommand.SLEEP))


async def _set_av_transport_uri(device: SonosDevice, value: Any, _ctx: CommandContext) -> None:
    uri = _require_str(value, SonosCommand.SET_AV_TRANSPORT_URI, "uri", "trackUri")
    metadata = value.get("metadata", "") if isinstance(value, Mapping) else ""
    await device.call(device.zone.play_uri, uri, metadata, start=False)


async def _queue(device: SonosDevice, value: Any, _ctx: CommandContext) -> int:
    uri = _require_str(value, SonosCommand.QUEUE, "uri", "trackUri")
    return await device.call(device.zone.add_uri_to_queue, uri)


async def _switch_to_queue(device: SonosDevice, _value: Any, _ctx: CommandContext) -> None:
    queue_uri = f"x-rincon-queue:{device.info.uuid}#0"
    await device.call(
        device.zone.avTransport.SetAVTransportURI,
        [("InstanceID", 0), ("CurrentURI", queue_uri), ("CurrentURIMetaData", "")],
    )


async def _switch_to_line(device: SonosDevice, _value: Any, _ctx: CommandContext) -> None:
    await device.call(device.zone.switch_to_line_in)


async def _switch_to_tv(device: SonosDevice, _value: Any, _ctx: CommandContext) -> None:
    await device.call(device.zone.switch_to_tv)


async def _join_group(device: SonosDevice, value: Any, ctx: CommandContext) -> None:
    selector = _require_str(value, SonosCommand.JOIN_GROUP, "device", "group")
    for candidate in ctx.devices:
        if candidate is device:
            continue
        if candidate.info.matches(selector) or (candidate.info.group_name or "").lower() == selector.lower():
            await device.call(device.zone.join, candidate.zone)
            return
    raise CommandExecutionError(f"No device or group named {selector!r}", command=SonosCommand.JOIN_GROUP)


async def _leave_group(device: SonosDevice, _value: Any, _ctx: CommandContext) -> None:
    await device.call(device.zone.unjoin)


async def _notify(device: SonosDevice, value: Any, _ctx: CommandContext) -> bool:
    return await play_notification(device, NotificationRequest.model_validate(value))


async def _speak(device: SonosDevice, value: Any, ctx: CommandContext) -> bool:
    return await speak(
        device,
        SpeakRequest.model_validate(value),
        endpoint=ctx.tts_endpoint,
        default_lang=ctx.tts_lang,
        session=ctx.http_session,
    )


async def _adv_command(device: SonosDevice, value: Any, _ctx: CommandContext) -> Any:
    """Raw UPnP action: ``{"service": "avTransport", "action": "Seek", "args": {...}}``."""
    if not isinstance(value, Mapping):
        raise CommandExecutionError("adv-command requires an object input", command=SonosCommand.ADV_COMMAND)
    service_name = value.get("service")
    action = value.get("action")
    if not isinstance(service_name, str) or not isinstance(action, str):
        raise CommandExecutionError("adv-command requires 'service' and 'action'", command=SonosCommand.ADV_COMMAND)
    service = getattr(device.zone, service_name, None)
    if service is None or not hasattr(service, "send_command"):
        raise CommandExecutionError(f"Unknown service {service_name!r}", command=SonosCommand.ADV_COMMAND)
    args = value.get("args") or {}
    arg_list = list(args.items()) if isinstance(args, Mapping) else list(args)
    result = await device.call(service.send_command, action, arg_list)
    return json_safe(result)


COMMAND_HANDLERS: dict[SonosCommand, CommandHandler] = {
    SonosCommand.ADV_COMMAND: _adv_command,
    SonosCommand.CROSSFADE: _crossfade,
    SonosCommand.JOIN_GROUP: _join_group,
    SonosCommand.LEAVE_GROUP: _leave_group,
    SonosCommand.MUTE: _mute,
    SonosCommand.NEXT: _next,
    SonosCommand.NOTIFY: _notify,
    SonosCommand.PAUSE: _pause,
    SonosCommand.PLAY: _play,
    SonosCommand.PLAYMODE: _playmode,
    SonosCommand.PREVIOUS: _previous,
    SonosCommand.QUEUE: _queue,
    SonosCommand.SEEK: _seek,
    SonosCommand.SELECT_TRACK: _select_track,
    SonosCommand.SET_AV_TRANSPORT_URI: _set_av_transport_uri,
    SonosCommand.SET_BASS: _set_bass,
    SonosCommand.SET_LOUDNESS: _set_loudness,
    SonosCommand.SET_NIGHTMODE: _set_nightmode,
    SonosCommand.SET_SPEECH_ENHANCEMENT: _set_speech_enhancement,
    SonosCommand.SET_TREBLE: _set_treble,
    SonosCommand.SLEEP: _sleep,
    SonosCommand.SPEAK: _speak,
    SonosCommand.STOP: _stop,
    SonosCommand.SWITCH_TO_LINE: _switch_to_line,
    SonosCommand.SWITCH_TO_QUEUE: _switch_to_queue,
    SonosCommand.SWITCH_TO_TV: _switch_to_tv,
    SonosCommand.TOGGLE: _toggle,
    SonosCommand.UNMUTE: _unmute,
    SonosCommand.VOLUME: _volume,
    SonosCommand.VOLUME_DOWN: _volume_down,
    SonosCommand.VOLUME_UP: _volume_up,
}


async def execute_control(device: SonosDevice, envelope: CommandEnvelope, context: CommandContext) -> Any:
    """Run the operation named by ``envelope.command`` against *device*."""
    try:
        command = SonosCommand(envelope.command.strip().lower())
    except ValueError as exc:
        raise UnknownCommandError(
            f"Unknown command {envelope.command!r}",
            command=envelope.command,
            device_id=device.info.uuid,
        ) from exc
    handler = COMMAND_HANDLERS[command]
    return await handler(device, envelope.input, context)
