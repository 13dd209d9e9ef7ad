import math
from typing import Any, Mapping

CENTS_PER_OCTAVE = 1200.0


def clamp_count(value: Any, ceiling: int) -> int:
    """Floor a user-supplied count and clamp it into [0, ceiling]. Non-numbers become 0."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    if not math.isfinite(number):
        return 0
    return max(0, min(ceiling, math.floor(number)))


def finite_or(value: Any, default: float) -> float:
    """Return value as float if it is finite, otherwise the default."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    return number if math.isfinite(number) else default


def int_keys(data: Mapping[Any, Any] | None) -> dict[int, Any]:
    """Convert mapping keys (often strings after JSON) to ints, skipping garbage keys."""
    result: dict[int, Any] = {}
    for key, value in (data or {}).items():
        try:
            result[int(key)] = value
        except (TypeError, ValueError):
            continue
    return result
