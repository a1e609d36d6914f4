"""Alarm listing and patching."""

from __future__ import annotations

import datetime as dt
from typing import Any

from pydantic import Field, model_validator

from sonos2mqtt.models._base import Sonos2MqttModel


class AlarmInfo(Sonos2MqttModel):
    """One alarm as published to the ``alarms`` topic."""

    id: str
    start_time: dt.time | None = None
    duration: dt.time | None = None
    recurrence: str | None = None
    enabled: bool = False
    room_uuid: str | None = None
    program_uri: str | None = None
    play_mode: str | None = None
    volume: int | None = None
    include_linked_zones: bool = False

    @classmethod
    def from_soco(cls, alarm: Any) -> AlarmInfo:
        zone = getattr(alarm, "zone", None)
        return cls(
            id=str(alarm.alarm_id),
            start_time=alarm.start_time,
            duration=alarm.duration,
            recurrence=alarm.recurrence,
            enabled=bool(alarm.enabled),
            room_uuid=getattr(zone, "uid", None),
            program_uri=alarm.program_uri,
            play_mode=alarm.play_mode,
            volume=alarm.volume,
            include_linked_zones=bool(alarm.include_linked_zones),
        )


class AlarmPatch(Sonos2MqttModel):
    """Fields to change on one existing alarm; unset fields stay as they are."""

    id: str = Field(min_length=1)
    start_time: dt.time | None = None
    duration: dt.time | None = None
    recurrence: str | None = None
    enabled: bool | None = None
    volume: int | None = Field(default=None, ge=0, le=100)
    play_mode: str | None = None
    include_linked_zones: bool | None = None

    @model_validator(mode="before")
    @classmethod
    def _accept_alarm_id(cls, values: Any) -> Any:
        if isinstance(values, dict) and "id" not in values and "alarmId" in values:
            values = dict(values)
            values["id"] = str(values.pop("alarmId"))
        elif isinstance(values, dict) and isinstance(values.get("id"), int):
            values = dict(values)
            values["id"] = str(values["id"])
        return values

    def changes(self) -> dict[str, Any]:
        """soco ``Alarm`` attribute name to new value, for the fields set."""
        return {name: getattr(self, name) for name in self.model_fields_set if name != "id" and getattr(self, name) is not None}
