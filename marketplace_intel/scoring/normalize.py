"""Numeric helpers shared by the scorers."""

import math


def round_half_up(value: float, digits: int = 0) -> float:
    """Round with halves going up (35.5 -> 36), unlike Python's banker's rounding.

    Args:
        value: Number to round
        digits: Decimal places to keep

    Returns:
        Rounded value
    """
    factor = 10**digits
    return math.floor(value * factor + 0.5) / factor


def round_int(value: float) -> int:
    """Round half up to an int."""
    return int(round_half_up(value))


def clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    """Bound a value to [low, high]."""
    return max(low, min(high, value))


def ratio_percent(part: float, whole: float) -> float:
    """part / whole * 100, or 0 when whole is empty."""
    if whole <= 0:
        return 0.0
    return part / whole * 100
