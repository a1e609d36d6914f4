"""Per-device publish debouncing.

Each device has at most one pending timer. Scheduling cancels and
replaces it, so a burst of updates yields one publish on its trailing
edge. A device that never pauses for a full delay is not published until
it does, unless ``max_delay`` caps the wait.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from sonos2mqtt.models.device import DeviceId


class DebounceScheduler:
    """Coalesces publish requests per device on the running event loop."""

    def __init__(
        self,
        emit: Callable[[DeviceId], Awaitable[None]],
        *,
        delay: float,
        max_delay: float | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._emit = emit
        self._delay = delay
        self._max_delay = max_delay
        self._logger = logger or logging.getLogger(__name__)
        self._handles: dict[DeviceId, asyncio.TimerHandle] = {}
        self._first_pending: dict[DeviceId, float] = {}
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def pending(self) -> frozenset[DeviceId]:
        """Devices with an outstanding timer."""
        return frozenset(self._handles)

    def schedule_emit(self, device_id: DeviceId) -> None:
        """(Re)start the publish timer for *device_id*.

        Must be called from the loop thread, in the same step as the merge
        that triggered it.
        """
        loop = asyncio.get_running_loop()
        now = loop.time()
        delay = self._delay
        if self._max_delay is not None:
            first = self._first_pending.setdefault(device_id, now)
            delay = max(0.0, min(delay, first + self._max_delay - now))

        previous = self._handles.pop(device_id, None)
        if previous is not None:
            previous.cancel()
        self._handles[device_id] = loop.call_later(delay, self._fire, device_id)

    def cancel(self, device_id: DeviceId) -> None:
        handle = self._handles.pop(device_id, None)
        self._first_pending.pop(device_id, None)
        if handle is not None:
            handle.cancel()

    def cancel_all(self) -> None:
        """Abandon every pending timer. In-flight publishes are not touched."""
        for device_id in list(self._handles):
            self.cancel(device_id)

    async def drain(self) -> None:
        """Wait for publishes that already fired."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _fire(self, device_id: DeviceId) -> None:
        self._handles.pop(device_id, None)
        self._first_pending.pop(device_id, None)
        task = asyncio.get_running_loop().create_task(self._emit(device_id))
        self._tasks.add(task)
        task.add_done_callback(self._on_done)

    def _on_done(self, task: asyncio.Task[None]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self._logger.warning("Debounced publish failed: %s", exc, exc_info=exc)
