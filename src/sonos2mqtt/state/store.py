"""In-memory state store.

This is the only component allowed to mutate device state.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from sonos2mqtt.models.device import DeviceId, DeviceInfo
from sonos2mqtt.models.state import DeviceState, DeviceStateUpdate


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _epoch_ms(value: datetime) -> int:
    return int(value.timestamp() * 1000)


class StateStore:
    """Last known state per device.

    Records are seeded from enumeration and then only changed through
    :meth:`merge`. There is no removal: a device that goes offline keeps
    its last known state.
    """

    def __init__(self, *, clock: Callable[[], datetime] = _utcnow) -> None:
        self._clock = clock
        self._states: dict[DeviceId, DeviceState] = {}

    def __contains__(self, device_id: object) -> bool:
        return device_id in self._states

    def __len__(self) -> int:
        return len(self._states)

    def seed(self, info: DeviceInfo) -> DeviceState:
        """Create the record for an enumerated device.

        Seeding an identity that already has a record keeps the existing
        record.
        """
        device_id = info.device_id
        state = self._states.get(device_id)
        if state is None:
            state = DeviceState(
                uuid=device_id.uuid,
                model=info.model,
                name=info.name,
                group_name=info.group_name,
                coordinator_uuid=info.coordinator_uuid,
            )
            self._states[device_id] = state
        return state.model_copy(deep=True)

    def merge(self, device_id: DeviceId, update: DeviceStateUpdate) -> DeviceState | None:
        """Copy the fields present in *update* over the record.

        Absent fields are left untouched. The timestamp is refreshed on
        every merge, even when no value changed. Updates for an identity
        without a record are ignored and return ``None``.
        """
        state = self._states.get(device_id)
        if state is None:
            return None

        for name, value in update.present_fields().items():
            setattr(state, name, value)
        state.ts = _epoch_ms(self._clock())
        return state.model_copy(deep=True)

    def get(self, device_id: DeviceId) -> DeviceState | None:
        """Snapshot of one record (a copy; mutating it has no effect)."""
        state = self._states.get(device_id)
        if state is None:
            return None
        return state.model_copy(deep=True)

    def snapshot_payload(self, device_id: DeviceId) -> dict[str, Any] | None:
        """JSON-ready state payload as published to the state topic."""
        state = self._states.get(device_id)
        if state is None:
            return None
        return state.to_payload()
