"""Utility modules."""
from assessment.utils.ids import coerce_numeric_id, normalize_id
from assessment.utils.numbers import percent, round_half_up
from assessment.utils.time_utils import monotonic_ms, parse_iso_timestamp, utc_day, utc_now
from assessment.utils.validation import validate_id, validate_positive_int

__all__ = [
    "coerce_numeric_id",
    "normalize_id",
    "percent",
    "round_half_up",
    "monotonic_ms",
    "parse_iso_timestamp",
    "utc_day",
    "utc_now",
    "validate_id",
    "validate_positive_int",
]
