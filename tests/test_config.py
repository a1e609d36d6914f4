from __future__ import annotations

import pytest

from sonos2mqtt.config import DEFAULT_PUBLISH_DELAY, Sonos2MqttConfig
from sonos2mqtt.exceptions import ConfigError

_ENV_KEYS = (
    "SONOS2MQTT_MQTT",
    "SONOS2MQTT_PREFIX",
    "SONOS2MQTT_DISTINCT",
    "SONOS2MQTT_DISCOVERY",
    "SONOS2MQTT_FRIENDLYNAMES",
    "SONOS2MQTT_PUBLISH_DELAY",
    "SONOS2MQTT_PUBLISH_MAX_DELAY",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


def test_defaults() -> None:
    config = Sonos2MqttConfig.from_env()

    assert config.mqtt == "mqtt://127.0.0.1"
    assert config.prefix == "sonos"
    assert config.publish_delay == DEFAULT_PUBLISH_DELAY == 0.4
    assert config.publish_max_delay is None
    assert config.distinct is False
    assert config.friendly_names == "uuid"


def test_environment_values_are_read(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SONOS2MQTT_MQTT", "mqtt://broker:1884")
    monkeypatch.setenv("SONOS2MQTT_PREFIX", "home/sonos")
    monkeypatch.setenv("SONOS2MQTT_DISTINCT", "true")
    monkeypatch.setenv("SONOS2MQTT_PUBLISH_DELAY", "0.25")

    config = Sonos2MqttConfig.from_env()

    assert config.mqtt == "mqtt://broker:1884"
    assert config.prefix == "home/sonos"
    assert config.distinct is True
    assert config.publish_delay == 0.25


def test_overrides_win_and_none_falls_through(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SONOS2MQTT_PREFIX", "from-env")
    monkeypatch.setenv("SONOS2MQTT_DISTINCT", "1")

    config = Sonos2MqttConfig.from_env(prefix=None, distinct=False, mqtt="mqtt://cli")

    assert config.prefix == "from-env"
    assert config.distinct is False
    assert config.mqtt == "mqtt://cli"


def test_non_numeric_delay_is_a_config_error(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SONOS2MQTT_PUBLISH_DELAY", "soon")

    with pytest.raises(ConfigError):
        Sonos2MqttConfig.from_env()


@pytest.mark.parametrize(
    "kwargs",
    [
        {"friendly_names": "hostname"},
        {"publish_delay": -1},
        {"publish_delay": 0.4, "publish_max_delay": 0.1},
        {"prefix": "/"},
    ],
)
def test_invalid_values_are_rejected(kwargs: dict[str, object]) -> None:
    with pytest.raises(ConfigError):
        Sonos2MqttConfig(**kwargs)  # type: ignore[arg-type]
