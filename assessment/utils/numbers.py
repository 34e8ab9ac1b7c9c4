"""Rounding helpers matching dashboard (half-up) rounding."""
import math


def round_half_up(value: float) -> int:
    """Round to nearest integer, halves away from zero for positives."""
    return int(math.floor(value + 0.5))


def percent(part: int, whole: int) -> int:
    """Integer percentage, 0 when whole is 0."""
    if not whole:
        return 0
    return round_half_up(100 * part / whole)
