"""Notification and text-to-speech requests."""

from __future__ import annotations

from pydantic import Field

from sonos2mqtt.models._base import Sonos2MqttModel


class NotificationRequest(Sonos2MqttModel):
    """Play a short clip, then restore what was playing before.

    ``timeout`` bounds the wait for the clip to finish, in seconds.
    """

    track_uri: str
    metadata: str = ""
    volume: int | None = Field(default=None, ge=0, le=100)
    timeout: float = Field(default=30.0, gt=0)
    only_when_playing: bool = False
    delay_ms: int | None = Field(default=None, ge=0)


class SpeakRequest(Sonos2MqttModel):
    """Have a TTS endpoint render *text*, then play it as a notification."""

    text: str = Field(min_length=1)
    lang: str | None = None
    gender: str | None = None
    endpoint: str | None = None
    volume: int | None = Field(default=None, ge=0, le=100)
    timeout: float = Field(default=30.0, gt=0)
    only_when_playing: bool = False
    delay_ms: int | None = Field(default=None, ge=0)
