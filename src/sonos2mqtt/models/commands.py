"""Inbound command envelopes and command outcomes."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any

from pydantic import model_validator

from sonos2mqtt.models._base import Sonos2MqttModel


class SonosCommand(enum.StrEnum):
    """Per-device command names accepted on ``<prefix>/<device>/control``."""

    ADV_COMMAND = "adv-command"
    CROSSFADE = "crossfade"
    JOIN_GROUP = "joingroup"
    LEAVE_GROUP = "leavegroup"
    MUTE = "mute"
    NEXT = "next"
    NOTIFY = "notify"
    PAUSE = "pause"
    PLAY = "play"
    PLAYMODE = "playmode"
    PREVIOUS = "previous"
    QUEUE = "queue"
    SEEK = "seek"
    SELECT_TRACK = "selecttrack"
    SET_AV_TRANSPORT_URI = "setavtransporturi"
    SET_BASS = "setbass"
    SET_LOUDNESS = "setloudness"
    SET_NIGHTMODE = "setnightmode"
    SET_SPEECH_ENHANCEMENT = "setspeechenhancement"
    SET_TREBLE = "settreble"
    SLEEP = "sleep"
    SPEAK = "speak"
    STOP = "stop"
    SWITCH_TO_LINE = "switchtoline"
    SWITCH_TO_QUEUE = "switchtoqueue"
    SWITCH_TO_TV = "switchtotv"
    TOGGLE = "toggle"
    UNMUTE = "unmute"
    VOLUME = "volume"
    VOLUME_DOWN = "volumedown"
    VOLUME_UP = "volumeup"


class GlobalCommand(enum.StrEnum):
    """Commands on ``<prefix>/cmd/<command>`` that do not target one device."""

    NOTIFY = "notify"
    SPEAK = "speak"
    PAUSE_ALL = "pauseall"
    LIST_ALARM = "listalarm"
    LIST_ALARMS = "listalarms"
    SET_ALARM = "setalarm"
    SET_LOGGING = "setlogging"
    CHECK_SUBSCRIPTIONS = "check-subscriptions"


class CommandEnvelope(Sonos2MqttModel):
    """One per-device control message.

    ``selector`` comes from the topic; the rest from the JSON body.
    The legacy body key ``sonosCommand`` is accepted for ``command``.
    """

    selector: str = ""
    command: str = ""
    input: Any = None
    reply_topic: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _legacy_command_key(cls, values: Any) -> Any:
        if isinstance(values, dict) and not values.get("command") and values.get("sonosCommand"):
            values = dict(values)
            values["command"] = values.pop("sonosCommand")
        return values


class CommandErrorPayload(Sonos2MqttModel):
    """Body published to ``<uuid>/error`` when a command fails."""

    command: str
    error: str


class CommandStatus(enum.StrEnum):
    SUCCESS = "success"
    DEVICE_NOT_FOUND = "device_not_found"
    FAILED = "failed"


@dataclass(frozen=True)
class CommandOutcome:
    """Result of one dispatch, returned to callers and tests."""

    status: CommandStatus
    command: str
    device_id: str | None = None
    result: Any = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == CommandStatus.SUCCESS
