"""Global (not device-addressed) operations.

These back the ``<prefix>/cmd/<command>`` topics: they act on every
device or on a designated coordinator rather than one resolved device.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

from soco.alarms import get_alarms

from sonos2mqtt._client.notifications import play_notification, speak
from sonos2mqtt.exceptions import CommandExecutionError
from sonos2mqtt.models.alarms import AlarmInfo, AlarmPatch
from sonos2mqtt.models.notification import NotificationRequest, SpeakRequest

if TYPE_CHECKING:
    import aiohttp

    from sonos2mqtt.devices import SonosDevice

_logger = logging.getLogger(__name__)

_LOG_LEVELS = {"trace": logging.DEBUG, "debug": logging.DEBUG, "verbose": logging.DEBUG}


def coordinators(devices: Sequence[SonosDevice]) -> list[SonosDevice]:
    """Devices that coordinate their group (every group once)."""
    return [d for d in devices if d.info.coordinator_uuid in (None, d.info.uuid)]


async def _gather_logged(what: str, devices: Sequence[SonosDevice], coros: Sequence[Any]) -> list[Any]:
    results = await asyncio.gather(*coros, return_exceptions=True)
    for device, result in zip(devices, results, strict=True):
        if isinstance(result, BaseException):
            _logger.warning("%s failed for %s: %s", what, device.info.name, result)
    return list(results)


async def pause_all(devices: Sequence[SonosDevice]) -> None:
    targets = coordinators(devices)
    await _gather_logged("pause", targets, [d.call(d.zone.pause) for d in targets])


async def notify_all(devices: Sequence[SonosDevice], payload: Any) -> None:
    request = NotificationRequest.model_validate(payload)
    targets = coordinators(devices)
    await _gather_logged("notification", targets, [play_notification(d, request) for d in targets])


async def speak_all(
    devices: Sequence[SonosDevice],
    payload: Any,
    *,
    endpoint: str | None,
    default_lang: str,
    session: aiohttp.ClientSession | None = None,
) -> None:
    request = SpeakRequest.model_validate(payload)
    targets = coordinators(devices)
    await _gather_logged(
        "speak",
        targets,
        [speak(d, request, endpoint=endpoint, default_lang=default_lang, session=session) for d in targets],
    )


def _require_device(devices: Sequence[SonosDevice]) -> SonosDevice:
    if not devices:
        raise CommandExecutionError("No devices available")
    return devices[0]


async def list_alarms(devices: Sequence[SonosDevice]) -> list[AlarmInfo]:
    device = _require_device(devices)
    alarms = await device.call(get_alarms, device.zone)
    return sorted((AlarmInfo.from_soco(alarm) for alarm in alarms), key=lambda a: a.id)


async def patch_alarm(devices: Sequence[SonosDevice], payload: Any) -> None:
    patch = AlarmPatch.model_validate(payload)
    device = _require_device(devices)
    alarms = await device.call(get_alarms, device.zone)
    alarm = next((a for a in alarms if str(a.alarm_id) == patch.id), None)
    if alarm is None:
        raise CommandExecutionError(f"Alarm {patch.id} not found", command="setalarm")
    for name, value in patch.changes().items():
        setattr(alarm, name, value)
    await device.call(alarm.save)
    _logger.info("Alarm %s updated: %s", patch.id, sorted(patch.changes()))


def set_log_level(payload: Any, logger_name: str = "sonos2mqtt") -> int:
    """Change the level of the package logger tree. Returns the new level."""
    name = str(payload or "").strip().lower()
    level = _LOG_LEVELS.get(name)
    if level is None:
        resolved = logging.getLevelName(name.upper())
        if not isinstance(resolved, int):
            raise CommandExecutionError(f"Unknown log level {payload!r}", command="setlogging")
        level = resolved
    logging.getLogger(logger_name).setLevel(level)
    return level


async def check_subscriptions(devices: Sequence[SonosDevice]) -> int:
    results = await _gather_logged("subscription check", devices, [d.check_subscriptions() for d in devices])
    return sum(r for r in results if isinstance(r, int))
