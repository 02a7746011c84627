"""Utility functions for numeric processing."""

import math
from typing import Any, Optional


def round_half_up(value: float, digits: int = 0) -> float:
    """
    Round halves toward positive infinity (2.5 -> 3, -2.5 -> -2), unlike banker's round().

    Scores are published as integers and ties must always go up.
    """
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def round_int(value: float) -> int:
    """Half-up rounding to an int."""
    return int(round_half_up(value))


def safe_float(value: Any, default: Optional[float] = 0.0) -> Optional[float]:
    """Convert a JSON value to a finite float, returning default for null/junk."""
    if value is None or isinstance(value, bool):
        return default
    try:
        result = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(result) or math.isinf(result):
        return default
    return result


def clamp(value: float, low: float, high: float) -> float:
    """Clamp value to the [low, high] interval."""
    return max(low, min(high, value))
