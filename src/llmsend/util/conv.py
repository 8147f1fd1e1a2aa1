from __future__ import annotations

import math
from typing import Any

_TRUE = {"1", "true", "yes", "y", "on"}
_FALSE = {"0", "false", "no", "n", "off"}


def coerce_bool(value: Any, *, default: bool = False) -> bool:
    """Coerce a loosely-typed value into a boolean.

    Settings come from hand-written YAML where values may arrive as strings
    like "false"/"0". Unknown strings fall back to the provided default so
    that bool("false") never turns into True.
    """
    if value is None:
        return bool(default)
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    if isinstance(value, float):
        if math.isnan(value):
            return bool(default)
        return value != 0.0
    if isinstance(value, str):
        s = value.strip().lower()
        if not s:
            return bool(default)
        if s in _TRUE:
            return True
        if s in _FALSE:
            return False
        try:
            return int(s) != 0
        except ValueError:
            return bool(default)
    return bool(value)


def coerce_int(value: Any, *, default: int, min_value: int, max_value: int) -> int:
    try:
        n = int(value)
    except (TypeError, ValueError):
        n = int(default)
    if n < min_value:
        n = min_value
    if n > max_value:
        n = max_value
    return n


def coerce_float(value: Any, *, default: float, min_value: float = 0.0, max_value: float = 60.0) -> float:
    try:
        f = float(value)
    except (TypeError, ValueError):
        f = float(default)
    if math.isnan(f):
        f = float(default)
    return max(min_value, min(max_value, f))
