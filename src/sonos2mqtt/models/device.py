"""Device identity and enumeration records."""

from __future__ import annotations

import re
from dataclasses import dataclass

from sonos2mqtt.models._base import Sonos2MqttModel

_WHITESPACE = re.compile(r"\s")


def clean_name(name: str) -> str:
    """Normalize a display name for topic and selector use.

    ``"Living Room"`` becomes ``"living-room"``.
    """
    return _WHITESPACE.sub("-", name.lower())


@dataclass(frozen=True, slots=True)
class DeviceId:
    """Stable identity of one player (its UPnP UUID, e.g. ``RINCON_...``).

    Equality is exact. Selector matching, which is case-insensitive,
    lives on :class:`DeviceInfo`.
    """

    uuid: str

    def __post_init__(self) -> None:
        value = self.uuid.strip()
        if not value:
            raise ValueError("uuid must be non-empty")
        object.__setattr__(self, "uuid", value)

    def __str__(self) -> str:
        return self.uuid


class DeviceInfo(Sonos2MqttModel):
    """What enumeration knows about a device before any event arrives."""

    uuid: str
    host: str
    name: str
    model: str | None = None
    group_name: str | None = None
    coordinator_uuid: str | None = None

    @property
    def device_id(self) -> DeviceId:
        return DeviceId(self.uuid)

    @property
    def clean_name(self) -> str:
        return clean_name(self.name)

    def matches(self, selector: str) -> bool:
        """Whether *selector* addresses this device.

        UUID and host compare case-insensitively; the display name is
        compared in its normalized form.
        """
        candidate = selector.strip()
        if not candidate:
            return False
        lowered = candidate.lower()
        return lowered == self.uuid.lower() or lowered == self.host.lower() or clean_name(candidate) == self.clean_name

    def topic_id(self, friendly_names: str = "uuid") -> str:
        """Identity used in state topics for the given naming mode."""
        return self.clean_name if friendly_names == "name" else self.uuid
