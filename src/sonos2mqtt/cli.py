"""Command-line entry point: ``sonos2mqtt`` / ``python -m sonos2mqtt``."""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import signal
import sys
from collections.abc import Sequence

from sonos2mqtt._client.actions import set_log_level
from sonos2mqtt._redact import redact_url
from sonos2mqtt.app import Sonos2Mqtt
from sonos2mqtt.config import Sonos2MqttConfig
from sonos2mqtt.exceptions import Sonos2MqttError

_LOG = logging.getLogger("sonos2mqtt.cli")


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="sonos2mqtt",
        description="Bridge Sonos speakers to MQTT. Flags override SONOS2MQTT_* environment variables.",
    )
    parser.add_argument("--mqtt", help="Broker URL, mqtt://[user:pass@]host[:port].")
    parser.add_argument("--prefix", help="Topic prefix (default: sonos).")
    parser.add_argument("--clientid", dest="client_id", help="MQTT client id.")
    parser.add_argument("--device", help="Seed host; skips SSDP discovery.")
    parser.add_argument(
        "--discovery",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Publish Home Assistant autodiscovery descriptors.",
    )
    parser.add_argument("--discoveryprefix", dest="discovery_prefix", help="Autodiscovery topic prefix.")
    parser.add_argument(
        "--distinct",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Also publish each field to status/<device>/<field>.",
    )
    parser.add_argument("--friendlynames", dest="friendly_names", choices=["uuid", "name"], help="State topic identity.")
    parser.add_argument("--publish-delay", type=float, help="Seconds of quiet before a state publish.")
    parser.add_argument(
        "--publish-max-delay",
        type=float,
        help="Upper bound in seconds for a state publish while updates keep arriving.",
    )
    parser.add_argument("--tts-endpoint", help="HTTP endpoint for the speak command.")
    parser.add_argument("--tts-lang", help="Default speak language.")
    parser.add_argument("--log", dest="log_level", help="Log level (debug, info, warning, error).")
    return parser.parse_args(argv)


async def _run(config: Sonos2MqttConfig) -> int:
    bridge = Sonos2Mqtt(config)
    if not await bridge.start():
        await bridge.stop()
        return 1

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, stop_event.set)

    await stop_event.wait()
    _LOG.info("Shutting down")
    await bridge.stop()
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(
        level=logging.WARNING,
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
    )
    try:
        config = Sonos2MqttConfig.from_env(**vars(args))
        set_log_level(config.log_level)
    except Sonos2MqttError as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        return 2

    _LOG.info("Starting sonos2mqtt, broker %s, prefix %s", redact_url(config.mqtt), config.prefix)

    try:
        return asyncio.run(_run(config))
    except Sonos2MqttError as exc:
        _LOG.error("sonos2mqtt failed: %s", exc)
        return 1
