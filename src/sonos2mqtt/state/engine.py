"""Device event dispatcher.

Consumes the typed event channel of every device, merges state changes
into the store, schedules the debounced state publish, and sends the
immediate per-field publishes.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any

from sonos2mqtt._transport import TransportSink, field_topic, state_topic
from sonos2mqtt.models.device import DeviceId, DeviceInfo
from sonos2mqtt.state.debounce import DebounceScheduler
from sonos2mqtt.state.events import (
    CoordinatorEvent,
    DeviceEvent,
    GroupNameEvent,
    MuteEvent,
    RenderingControlEvent,
    TrackMetadataEvent,
    TrackUriEvent,
    TransportEvent,
    TransportStateEvent,
    VolumeEvent,
)
from sonos2mqtt.state.store import StateStore

_logger = logging.getLogger(__name__)


def _distinct_publish(event: DeviceEvent) -> tuple[str, Any] | None:
    """Field topic suffix and payload for the per-field publish of *event*."""
    if isinstance(event, GroupNameEvent):
        return "group", event.group_name
    if isinstance(event, CoordinatorEvent):
        return "coordinator", event.coordinator_uuid
    if isinstance(event, TransportStateEvent):
        return "state", event.transport_state
    if isinstance(event, TrackMetadataEvent):
        return "track", event.track.to_payload()
    if isinstance(event, TrackUriEvent):
        return "trackUri", event.track_uri
    if isinstance(event, MuteEvent):
        return "muted", event.mute
    if isinstance(event, VolumeEvent):
        return "volume", event.volume
    return None


class StateEngine:
    """Routes device events to the store, the debouncer and the sink."""

    def __init__(
        self,
        *,
        sink: TransportSink,
        store: StateStore | None = None,
        publish_delay: float,
        publish_max_delay: float | None = None,
        distinct: bool = False,
        friendly_names: str = "uuid",
        logger: logging.Logger | None = None,
    ) -> None:
        self._sink = sink
        self.store = store if store is not None else StateStore()
        self._distinct = distinct
        self._friendly_names = friendly_names
        self._logger = logger or _logger
        self._topic_ids: dict[DeviceId, str] = {}
        self._tasks: set[asyncio.Task[None]] = set()
        self.scheduler = DebounceScheduler(
            self._emit_state,
            delay=publish_delay,
            max_delay=publish_max_delay,
            logger=self._logger,
        )

    def add_device(self, info: DeviceInfo) -> None:
        """Seed the store for an enumerated device."""
        self.store.seed(info)
        self._topic_ids[info.device_id] = info.topic_id(self._friendly_names)

    def topic_id(self, device_id: DeviceId) -> str:
        return self._topic_ids.get(device_id, device_id.uuid)

    def handle_event(self, device_id: DeviceId, event: DeviceEvent) -> None:
        """Apply one device event.

        Failures are logged and contained to this event so a misbehaving
        device cannot stop processing for the others.
        """
        try:
            self._dispatch(device_id, event)
        except Exception:
            self._logger.warning("Failed to handle %s event for %s", event.kind, device_id, exc_info=True)

    def _dispatch(self, device_id: DeviceId, event: DeviceEvent) -> None:
        topic_id = self.topic_id(device_id)

        update = event.to_update()
        if update is not None and self.store.merge(device_id, update) is not None:
            self.scheduler.schedule_emit(device_id)

        # Raw service events are always mirrored.
        if isinstance(event, TransportEvent):
            self._spawn(self._sink.publish(field_topic(topic_id, "avtransport"), event.raw))
        elif isinstance(event, RenderingControlEvent):
            self._spawn(self._sink.publish(field_topic(topic_id, "renderingcontrol"), event.raw))

        if self._distinct:
            distinct = _distinct_publish(event)
            if distinct is not None:
                field, payload = distinct
                self._spawn(self._sink.publish(field_topic(topic_id, field), payload))

    async def _emit_state(self, device_id: DeviceId) -> None:
        payload = self.store.snapshot_payload(device_id)
        if payload is None:
            return
        topic = state_topic(self.topic_id(device_id))
        self._logger.debug("Publishing state for %s", topic)
        await self._sink.publish(topic, payload, qos=0, retain=True)

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._on_publish_done)

    def _on_publish_done(self, task: asyncio.Task[None]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self._logger.warning("Publish failed: %s", exc)

    async def close(self) -> None:
        """Abandon pending state publishes and wait for in-flight ones."""
        self.scheduler.cancel_all()
        await self.scheduler.drain()
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
