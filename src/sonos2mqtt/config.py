"""Bridge configuration for sonos2mqtt."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from sonos2mqtt.exceptions import ConfigError

#: Delay used to coalesce bursts of state updates into one publish.
DEFAULT_PUBLISH_DELAY: float = 0.4

_FRIENDLY_NAME_MODES = frozenset({"uuid", "name"})


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _env_float(env_key: str, value: str) -> float:
    try:
        return float(value)
    except ValueError as exc:
        raise ConfigError(f"{env_key} must be a number, got {value!r}") from exc


@dataclasses.dataclass(frozen=True)
class Sonos2MqttConfig:
    """Bridge configuration.

    Parameters
    ----------
    mqtt : str
        Broker URL, ``mqtt://[user:pass@]host[:port]``.
    prefix : str
        Topic prefix for every publish and subscription.
    client_id : str or None
        MQTT client id. A random id is used when unset.
    device : str or None
        Host of one Sonos player to seed enumeration from. Network
        discovery is used when unset.
    discovery : bool
        Publish Home Assistant autodiscovery descriptors on start.
    discovery_prefix : str
        Topic prefix for autodiscovery descriptors.
    distinct : bool
        Also publish each changed field to ``status/<id>/<field>``.
    friendly_names : str
        ``"uuid"`` (default) or ``"name"``: which identity the state
        topic uses.
    publish_delay : float
        Seconds a device has to stay quiet before its state is published.
    publish_max_delay : float or None
        Upper bound in seconds between the first unpublished update and
        its publish, even while updates keep arriving. ``None`` keeps the
        trailing-edge-only behaviour.
    tts_endpoint : str or None
        HTTP endpoint turning ``speak`` text into a playable URL.
    tts_lang : str
        Default language for ``speak``.
    log_level : str
        Initial level for the ``sonos2mqtt`` logger tree.
    mqtt_keepalive : int
        MQTT keepalive in seconds.
    discovery_timeout : float
        Seconds to wait for SSDP discovery answers.
    """

    mqtt: str = "mqtt://127.0.0.1"
    prefix: str = "sonos"
    client_id: str | None = None
    device: str | None = None
    discovery: bool = False
    discovery_prefix: str = "homeassistant"
    distinct: bool = False
    friendly_names: str = "uuid"
    publish_delay: float = DEFAULT_PUBLISH_DELAY
    publish_max_delay: float | None = None
    tts_endpoint: str | None = None
    tts_lang: str = "en-US"
    log_level: str = "INFO"
    mqtt_keepalive: int = 60
    discovery_timeout: float = 5.0

    def __post_init__(self) -> None:
        if self.friendly_names not in _FRIENDLY_NAME_MODES:
            raise ConfigError(f"friendly_names must be one of {sorted(_FRIENDLY_NAME_MODES)}, got {self.friendly_names!r}")
        if self.publish_delay < 0:
            raise ConfigError("publish_delay must not be negative")
        if self.publish_max_delay is not None and self.publish_max_delay < self.publish_delay:
            raise ConfigError("publish_max_delay must be >= publish_delay")
        if not self.prefix.strip("/"):
            raise ConfigError("prefix must be non-empty")

    @classmethod
    def from_env(cls, **overrides: Any) -> Sonos2MqttConfig:
        """Create configuration from environment variables.

        Reads ``SONOS2MQTT_*`` variables. Explicit keyword arguments
        override environment values; ``None`` overrides are ignored so
        unset CLI flags fall through to the environment.

        Returns
        -------
        Sonos2MqttConfig
            Populated configuration.
        """
        env = os.environ
        overrides = {key: value for key, value in overrides.items() if value is not None}

        _ENV_CONFIG_MAP = {
            "SONOS2MQTT_MQTT": "mqtt",
            "SONOS2MQTT_PREFIX": "prefix",
            "SONOS2MQTT_CLIENTID": "client_id",
            "SONOS2MQTT_DEVICE": "device",
            "SONOS2MQTT_DISCOVERYPREFIX": "discovery_prefix",
            "SONOS2MQTT_FRIENDLYNAMES": "friendly_names",
            "SONOS2MQTT_TTS_ENDPOINT": "tts_endpoint",
            "SONOS2MQTT_TTS_LANG": "tts_lang",
            "SONOS2MQTT_LOG": "log_level",
        }
        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_CONFIG_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        if "discovery" not in overrides:
            config_kwargs["discovery"] = _env_bool(env.get("SONOS2MQTT_DISCOVERY"), False)
        if "distinct" not in overrides:
            config_kwargs["distinct"] = _env_bool(env.get("SONOS2MQTT_DISTINCT"), False)

        # Numeric settings, handled separately
        delay_env = env.get("SONOS2MQTT_PUBLISH_DELAY")
        if delay_env is not None and "publish_delay" not in overrides:
            config_kwargs["publish_delay"] = _env_float("SONOS2MQTT_PUBLISH_DELAY", delay_env)

        max_delay_env = env.get("SONOS2MQTT_PUBLISH_MAX_DELAY")
        if max_delay_env is not None and "publish_max_delay" not in overrides:
            config_kwargs["publish_max_delay"] = _env_float("SONOS2MQTT_PUBLISH_MAX_DELAY", max_delay_env)

        keepalive_env = env.get("SONOS2MQTT_MQTT_KEEPALIVE")
        if keepalive_env is not None and "mqtt_keepalive" not in overrides:
            config_kwargs["mqtt_keepalive"] = int(_env_float("SONOS2MQTT_MQTT_KEEPALIVE", keepalive_env))

        timeout_env = env.get("SONOS2MQTT_DISCOVERY_TIMEOUT")
        if timeout_env is not None and "discovery_timeout" not in overrides:
            config_kwargs["discovery_timeout"] = _env_float("SONOS2MQTT_DISCOVERY_TIMEOUT", timeout_env)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
