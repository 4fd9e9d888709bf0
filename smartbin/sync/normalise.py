# smartbin/sync/normalise.py
"""
Normalisation of remote store values.

Sensors and actuators report either a bare scalar or a small record such as
{"value": 42, "timestamp": ...} or {"status": true, "timestamp": ...}.
This is the single place that ambiguity is resolved.
"""

from typing import Any

VALUE_KEYS = ("value",)
STATUS_KEYS = ("status", "value")

_TRUE_STRINGS = frozenset({"true", "1", "on", "open", "yes"})
_FALSE_STRINGS = frozenset({"false", "0", "off", "closed", "no", ""})


def unwrap(raw: Any, keys: tuple[str, ...]) -> Any:
    """Return the scalar inside a wrapper record, or raw if it is a scalar.

    The first key present with a non-None value wins. A record with none of
    the keys yields None.
    """
    if isinstance(raw, dict):
        for key in keys:
            if raw.get(key) is not None:
                return raw[key]
        return None
    return raw


def normalise_number(raw: Any, default: float) -> float:
    """Coerce a scalar or {"value": x} record to a float.

    Anything unparseable (including booleans) yields the default.
    """
    value = unwrap(raw, VALUE_KEYS)
    if value is None or isinstance(value, bool):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if number != number:  # NaN
        return default
    return number


def normalise_flag(raw: Any, default: bool = False) -> bool:
    """Coerce a scalar or {"status"|"value": x} record to a bool."""
    value = unwrap(raw, STATUS_KEYS)
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, int | float):
        return value != 0
    if isinstance(value, str):
        text = value.strip().lower()
        if text in _TRUE_STRINGS:
            return True
        if text in _FALSE_STRINGS:
            return False
    return default


def normalise_value(raw: Any, default: float | bool) -> float | bool:
    """Normalise a remote value to the scalar type of default."""
    if isinstance(default, bool):
        return normalise_flag(raw, default)
    return normalise_number(raw, default)
