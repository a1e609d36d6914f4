"""Base model for sonos2mqtt payloads.

Every published or parsed model inherits from :class:`Sonos2MqttModel`
which maps snake_case fields to the camelCase keys used on the wire
(``groupName``, ``replyTopic``, ...) and accepts either spelling on input.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class Sonos2MqttModel(BaseModel):
    """Base for wire models."""

    model_config = ConfigDict(
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    def to_payload(self) -> dict[str, Any]:
        """Dump as a JSON-ready dict with wire keys, absent fields omitted."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
