"""Normalization helpers.

Centralizes defensive parsing of UPnP event values and placeholder
handling.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from typing import Any

# Placeholders Sonos players send for "no value".
_SENTINELS = frozenset({"", "NOT_IMPLEMENTED", "NaN", "nan"})


def is_meaningful(value: Any) -> bool:
    """Return True if the value should be carried into an event."""
    if value is None:
        return False
    if isinstance(value, str) and value.strip() in _SENTINELS:
        return False
    return not (isinstance(value, float) and math.isnan(value))


def master_channel(value: Any) -> Any:
    """Pick the ``Master`` channel from a per-channel mapping.

    RenderingControl reports volume and mute as ``{"Master": "20", "LF": ...}``.
    """
    if isinstance(value, Mapping):
        return value.get("Master")
    return value


def safe_int(value: Any) -> int | None:
    if not is_meaningful(value):
        return None
    try:
        result = float(master_channel(value))
    except (TypeError, ValueError):
        return None
    if math.isnan(result):
        return None
    return int(result)


def safe_bool(value: Any) -> bool | None:
    value = master_channel(value)
    if not is_meaningful(value):
        return None
    if isinstance(value, bool):
        return value
    normalized = str(value).strip().lower()
    if normalized in {"1", "true", "on", "yes"}:
        return True
    if normalized in {"0", "false", "off", "no"}:
        return False
    return None


def safe_str(value: Any) -> str | None:
    if not is_meaningful(value):
        return None
    return str(value)


def json_safe(value: Any, *, _depth: int = 0) -> Any:
    """Return a copy of *value* that ``json.dumps`` accepts."""
    if _depth > 20:
        return "<max-depth>"
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, Mapping):
        return {str(k): json_safe(v, _depth=_depth + 1) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [json_safe(v, _depth=_depth + 1) for v in value]
    to_dict = getattr(value, "to_dict", None)
    if callable(to_dict):
        return json_safe(to_dict(), _depth=_depth + 1)
    return str(value)
