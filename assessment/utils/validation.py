"""Validation utilities."""
from assessment.errors import AttemptValidationError


def validate_id(name: str, value: object) -> str:
    """Validate a reference id (non-empty, no path separators)."""
    if isinstance(value, bool) or not isinstance(value, (str, int)):
        raise AttemptValidationError(f"{name} is required")
    cleaned = str(value).strip()
    if not cleaned:
        raise AttemptValidationError(f"{name} is required")
    if "/" in cleaned or "\\" in cleaned or "?" in cleaned:
        raise AttemptValidationError(f"Invalid {name}")
    return cleaned


def validate_positive_int(name: str, value: object) -> int:
    """Validate a strictly positive integer reference (e.g. a test id)."""
    cleaned = validate_id(name, value)
    try:
        number = int(cleaned)
    except ValueError:
        raise AttemptValidationError(f"Invalid {name}") from None
    if number <= 0:
        raise AttemptValidationError(f"Invalid {name}")
    return number
