"""Application configuration and constants."""
import logging
import os


def _parse_int_env(name: str, default: int) -> int:
    """Parse integer from environment variable."""
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _parse_float_env(name: str, default: float) -> float:
    """Parse float from environment variable."""
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


# Backend
API_BASE_URL = os.environ.get(
    "ASSESSMENT_API_BASE_URL", "http://127.0.0.1:8080/api"
).rstrip("/")
API_TOKEN = os.environ.get("ASSESSMENT_API_TOKEN") or None
REQUEST_TIMEOUT_SECONDS = _parse_float_env("REQUEST_TIMEOUT_SECONDS", 30.0)

# Attempt delivery
PER_QUESTION_SECONDS = _parse_int_env("PER_QUESTION_SECONDS", 60)
TIMER_TICK_SECONDS = _parse_float_env("TIMER_TICK_SECONDS", 1.0)
START_LIMIT_MAX = _parse_int_env("START_LIMIT_MAX", 100)
QUESTION_BANK_FETCH_LIMIT = _parse_int_env("QUESTION_BANK_FETCH_LIMIT", 1000)

# Analytics
TOP_PERFORMERS_LIMIT = 5
RECENT_ACTIVITY_LIMIT = 6

# Logging
LOG_LEVEL = getattr(
    logging, os.environ.get("LOG_LEVEL", "INFO").upper(), logging.INFO
)
