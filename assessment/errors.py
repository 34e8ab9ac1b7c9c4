"""Error taxonomy for backend calls and attempt sessions."""
import re

# 400 bodies matching RETRY_MESSAGE_PATTERN earn one refreshed-token retry;
# only those matching AUTH_MESSAGE_PATTERN are classified as auth failures.
RETRY_MESSAGE_PATTERN = re.compile(r"unauth|token|expired|invalid", re.IGNORECASE)
AUTH_MESSAGE_PATTERN = re.compile(r"unauth|token|expired", re.IGNORECASE)


class ApiError(Exception):
    """Backend request failed.

    Carries the HTTP status (0 for connectivity failures) and the parsed
    response payload, if any.
    """

    def __init__(self, message: str, status: int = 0, payload: object = None):
        super().__init__(message)
        self.message = message
        self.status = status
        self.payload = payload


class NetworkError(ApiError):
    """Backend unreachable (status 0)."""


class AuthError(ApiError):
    """Credentials rejected even after a refreshed token. Sign in again."""


class ValidationError(ApiError):
    """Backend rejected the request (4xx other than auth)."""


class ServerError(ApiError):
    """Backend failed (5xx)."""


def payload_message(payload: object) -> str:
    """Extract a human readable message from an error payload."""
    if isinstance(payload, str):
        return payload
    if isinstance(payload, dict):
        for key in ("message", "error", "detail"):
            value = payload.get(key)
            if isinstance(value, str) and value:
                return value
    return ""


def should_retry_with_fresh_token(status: int, payload: object) -> bool:
    """Check whether a response should trigger a token refresh retry."""
    if status in (401, 403):
        return True
    if status == 400:
        return bool(RETRY_MESSAGE_PATTERN.search(payload_message(payload)))
    return False


def looks_like_auth_failure(status: int, payload: object) -> bool:
    """Check whether a failed response means the credentials were rejected."""
    if status in (401, 403):
        return True
    if status == 400:
        return bool(AUTH_MESSAGE_PATTERN.search(payload_message(payload)))
    return False


def error_for_status(status: int, payload: object, reason: str = "") -> ApiError:
    """Build the typed error for a failed response."""
    message = payload_message(payload) or f"HTTP {status} {reason}".strip()
    if status == 0:
        return NetworkError(message, status, payload)
    if looks_like_auth_failure(status, payload):
        return AuthError(message, status, payload)
    if 400 <= status < 500:
        return ValidationError(message, status, payload)
    return ServerError(message, status, payload)


class SessionError(Exception):
    """Base exception for attempt session errors."""
    pass


class AttemptValidationError(SessionError):
    """Raised when the test/assignment reference is missing or rejected."""
    pass


class AttemptStartError(SessionError):
    """Raised when the backend could not start an attempt."""
    pass


class CompletionUnknownError(SessionError):
    """Raised when the completion status could not be determined."""
    pass


class AnswerSyncError(SessionError):
    """Raised when a recorded answer could not be sent to the backend."""
    pass


class InvalidSessionStateError(SessionError):
    """Raised when the session is in an invalid state for the operation."""
    pass
