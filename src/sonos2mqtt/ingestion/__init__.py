"""Ingestion layer.

Adapters that receive raw soco UPnP events and emit the typed
:data:`sonos2mqtt.state.events.DeviceEvent` values the state engine
consumes.
"""

__all__: list[str] = []
