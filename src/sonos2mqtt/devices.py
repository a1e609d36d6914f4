"""Sonos device layer on top of soco.

Owns enumeration, UPnP event subscriptions and running blocking soco
calls off the event loop. Subscriptions use ``soco.events_asyncio`` so
event callbacks already run on the bridge's loop.
"""

from __future__ import annotations

import asyncio
import functools
import ipaddress
import logging
from collections.abc import Callable
from typing import Any, TypeVar

import soco
from soco import SoCo, events_asyncio

from sonos2mqtt.config import Sonos2MqttConfig
from sonos2mqtt.ingestion.upnp import ZONE_GROUP_TOPOLOGY, events_from_variables
from sonos2mqtt.models.device import DeviceId, DeviceInfo
from sonos2mqtt.state.events import CoordinatorEvent, DeviceEvent, GroupNameEvent

_logger = logging.getLogger(__name__)

T = TypeVar("T")

EventCallback = Callable[[DeviceId, DeviceEvent], None]

_SUBSCRIBED_SERVICES: tuple[str, ...] = ("avTransport", "renderingControl", "zoneGroupTopology")


def _use_asyncio_events() -> None:
    soco.config.EVENTS_MODULE = events_asyncio


def read_device_info(zone: SoCo) -> DeviceInfo:
    """Blocking: query a player for its enumeration record."""
    speaker_info = zone.get_speaker_info()
    group = zone.group
    coordinator = group.coordinator if group is not None else None
    return DeviceInfo(
        uuid=zone.uid,
        host=zone.ip_address,
        name=zone.player_name,
        model=speaker_info.get("model_name"),
        group_name=group.label if group is not None else None,
        coordinator_uuid=coordinator.uid if coordinator is not None else None,
    )


class SonosDevice:
    """One player: its identity, its subscriptions, and async access to soco."""

    def __init__(
        self,
        zone: SoCo,
        info: DeviceInfo,
        *,
        logger: logging.Logger | None = None,
    ) -> None:
        self._zone = zone
        self.info = info
        self._logger = logger or _logger
        self._subscriptions: dict[str, Any] = {}
        self._on_event: EventCallback | None = None
        self._tasks: set[asyncio.Task[None]] = set()

    def __repr__(self) -> str:
        return f"SonosDevice(name={self.info.name!r}, uuid={self.info.uuid!r}, host={self.info.host!r})"

    @property
    def zone(self) -> SoCo:
        return self._zone

    @property
    def device_id(self) -> DeviceId:
        return self.info.device_id

    async def call(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Run a blocking soco call in the default executor."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(fn, *args, **kwargs))

    async def subscribe(self, on_event: EventCallback) -> None:
        """Subscribe to the UPnP services whose events feed device state."""
        self._on_event = on_event
        for service_name in _SUBSCRIBED_SERVICES:
            await self._subscribe_service(service_name)

    async def _subscribe_service(self, service_name: str) -> None:
        service = getattr(self._zone, service_name)
        subscription = await service.subscribe(auto_renew=True)
        subscription.callback = self._on_soco_event
        subscription.auto_renew_fail = functools.partial(self._on_renew_fail, service_name)
        self._subscriptions[service_name] = subscription
        self._logger.debug("Subscribed %s for %s (sid=%s)", service_name, self.info.name, subscription.sid)

    def _on_soco_event(self, event: Any) -> None:
        on_event = self._on_event
        if on_event is None:
            return
        service_type = event.service.service_type
        if service_type == ZONE_GROUP_TOPOLOGY:
            self._spawn(self._refresh_group())
            return
        for device_event in events_from_variables(service_type, event.variables):
            on_event(self.device_id, device_event)

    def _on_renew_fail(self, service_name: str, exc: Exception) -> None:
        self._logger.warning("Renewing %s subscription for %s failed: %s", service_name, self.info.name, exc)

    async def _refresh_group(self) -> None:
        group = await self.call(lambda: self._zone.group)
        on_event = self._on_event
        if group is None or on_event is None:
            return
        label = group.label
        if label:
            self.info = self.info.model_copy(update={"group_name": label})
            on_event(self.device_id, GroupNameEvent(group_name=label))
        coordinator = group.coordinator
        if coordinator is not None:
            self.info = self.info.model_copy(update={"coordinator_uuid": coordinator.uid})
            on_event(self.device_id, CoordinatorEvent(coordinator_uuid=coordinator.uid))

    def _spawn(self, coro: Any) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)

    def _on_task_done(self, task: asyncio.Task[None]) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            self._logger.warning("Group refresh for %s failed: %s", self.info.name, task.exception())

    async def check_subscriptions(self) -> int:
        """Re-create subscriptions that lapsed. Returns how many were renewed."""
        if self._on_event is None:
            return 0
        renewed = 0
        for service_name in _SUBSCRIBED_SERVICES:
            subscription = self._subscriptions.get(service_name)
            if subscription is not None and subscription.is_subscribed and subscription.time_left > 0:
                continue
            self._logger.info("Re-subscribing %s for %s", service_name, self.info.name)
            await self._subscribe_service(service_name)
            renewed += 1
        return renewed

    async def cancel_events(self) -> None:
        subscriptions = list(self._subscriptions.items())
        self._subscriptions.clear()
        self._on_event = None
        for service_name, subscription in subscriptions:
            try:
                await subscription.unsubscribe()
            except Exception:
                self._logger.debug("Unsubscribing %s for %s failed", service_name, self.info.name, exc_info=True)


async def discover_devices(config: Sonos2MqttConfig) -> list[SonosDevice]:
    """Enumerate players, either from a seed host or via SSDP discovery."""
    _use_asyncio_events()
    loop = asyncio.get_running_loop()
    seed_host = config.device
    if seed_host:
        _logger.debug("Enumerating devices from %s", seed_host)
        zones = await loop.run_in_executor(None, lambda: set(SoCo(seed_host).all_zones))
    else:
        _logger.debug("Discovering devices (timeout=%ss)", config.discovery_timeout)
        found = await loop.run_in_executor(None, functools.partial(soco.discover, timeout=config.discovery_timeout))
        zones = set(found or ())

    devices: list[SonosDevice] = []
    for zone in sorted(zones, key=lambda z: ipaddress.ip_address(z.ip_address)):
        try:
            info = await loop.run_in_executor(None, read_device_info, zone)
        except Exception:
            _logger.warning("Could not read device info from %s", zone.ip_address, exc_info=True)
            continue
        devices.append(SonosDevice(zone, info))
    return devices


async def stop_event_listener() -> None:
    """Stop soco's shared asyncio event listener."""
    listener = events_asyncio.event_listener
    if listener.is_running:
        await listener.async_stop()
