"""Identifier helpers for mixed numeric/string ids."""


def normalize_id(value: object) -> str:
    """String-normalize an id so 7, "7" and " 7 " compare equal."""
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


def coerce_numeric_id(payload: object) -> int | None:
    """Pull a positive numeric attempt id out of a start response.

    Accepts ``attemptId``, ``sessionId`` and ``id`` at the top level or
    nested under ``data``, plus snake_case variants.
    """
    if not isinstance(payload, dict):
        return None
    sources = [payload]
    nested = payload.get("data")
    if isinstance(nested, dict):
        sources.append(nested)

    for source in sources:
        for key in ("attemptId", "sessionId", "id", "attempt_id", "session_id"):
            raw = source.get(key)
            if raw is None or isinstance(raw, bool):
                continue
            try:
                number = int(str(raw).strip())
            except ValueError:
                continue
            if number > 0:
                return number
    return None
