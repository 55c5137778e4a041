"""User-safe error messages and HTTP status classification.

Internal error text (provider messages, credentials, tracebacks) stops
here. Only the fixed strings in this module reach the client.
"""

from collections.abc import Iterable
from enum import Enum

GENERIC_ERROR = "Something went wrong. Please retry."
AUTH_ERROR = "Authentication error. Please check your configuration."
NETWORK_ERROR = "Network error. Please check your connection and try again."
FORMAT_ERROR = "Invalid request format. Please try again."

RATE_LIMIT_MESSAGE = "I'm experiencing high demand right now. Please try again in a moment."
UNAVAILABLE_MESSAGE = "The service is temporarily unavailable. Please try again shortly."
VALIDATION_ERROR = "Validation failed: the calendar service rejected the event details."


class ErrorKind(str, Enum):
    """Structured failure categories reported by the calendar collaborator."""
    VALIDATION = "validation"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    UNAVAILABLE = "unavailable"
    UNKNOWN = "unknown"


class CalendarServiceError(Exception):
    """A calendar action failed. ``kind`` is UNKNOWN when the cause is free text."""

    def __init__(self, message: str, kind: ErrorKind = ErrorKind.UNKNOWN):
        super().__init__(message)
        self.kind = kind


class ActionValidationError(CalendarServiceError):
    """The action failed local validation. Its text only lists field problems."""

    def __init__(self, errors: list[str]):
        super().__init__(f"Validation failed: {', '.join(errors)}", ErrorKind.VALIDATION)
        self.errors = errors


_KIND_RESPONSES: dict[ErrorKind, tuple[int, str]] = {
    ErrorKind.VALIDATION: (400, VALIDATION_ERROR),
    ErrorKind.UNAUTHORIZED: (
        401, "Calendar access authorization failed. Please check your Google Calendar permissions."
    ),
    ErrorKind.FORBIDDEN: (403, "Insufficient permissions to access this calendar."),
    ErrorKind.NOT_FOUND: (404, "The requested calendar event could not be found."),
    ErrorKind.CONFLICT: (409, "There is a scheduling conflict with this time slot."),
    ErrorKind.UNAVAILABLE: (
        503, "Calendar service is currently unavailable. Please try again later."
    ),
}

# Fallback for free-text errors. Order matters: first match wins.
_SUBSTRING_KINDS: list[tuple[tuple[str, ...], ErrorKind]] = [
    (("Validation failed",), ErrorKind.VALIDATION),
    (("authorization", "unauthorized"), ErrorKind.UNAUTHORIZED),
    (("permissions", "forbidden"), ErrorKind.FORBIDDEN),
    (("not found",), ErrorKind.NOT_FOUND),
    (("conflict", "busy"), ErrorKind.CONFLICT),
]


def _message_of(error) -> str:
    if error is None:
        return ""
    if isinstance(error, str):
        return error
    return str(error)


def sanitize_error_message(error) -> str:
    """Map any error to one of a few user-safe strings.

    Args:
        error: Exception, string, or anything with a useful str().

    Returns:
        Authentication, network, format, or generic retry message.
    """
    message = _message_of(error)

    if "API key" in message or "unauthorized" in message:
        return AUTH_ERROR
    if "network" in message or "timeout" in message:
        return NETWORK_ERROR
    if "parse" in message or "invalid JSON" in message:
        return FORMAT_ERROR
    return GENERIC_ERROR


def handle_rate_limit(error) -> str:
    """Friendly backoff text for throttling and availability failures."""
    status = getattr(error, "status_code", None)
    message = _message_of(error)

    if status == 429 or "rate limit" in message:
        return RATE_LIMIT_MESSAGE
    if status == 503 or "unavailable" in message:
        return UNAVAILABLE_MESSAGE
    return GENERIC_ERROR


def error_kind_of(error) -> ErrorKind:
    """Prefer the structured kind; fall back to substring sniffing."""
    kind = getattr(error, "kind", None)
    if isinstance(kind, ErrorKind) and kind is not ErrorKind.UNKNOWN:
        return kind

    message = _message_of(error)
    for needles, candidate in _SUBSTRING_KINDS:
        if any(needle in message for needle in needles):
            return candidate
    return ErrorKind.UNKNOWN


def classify_calendar_error(error) -> tuple[int, str]:
    """Pick the HTTP status and client message for a failed confirmation.

    Only ActionValidationError keeps its own text, which lists field problems.
    Every other failure maps to a fixed message; unclassified ones become a
    sanitized 500.

    Returns:
        (status_code, message) tuple.
    """
    if isinstance(error, ActionValidationError):
        return 400, str(error)

    kind = error_kind_of(error)
    if kind in _KIND_RESPONSES:
        return _KIND_RESPONSES[kind]
    return 500, sanitize_error_message(error)


def validate_api_response(response, required_fields: Iterable[str]) -> bool:
    """Check that every required field is present and non-empty.

    Args:
        response: Mapping or object to inspect.
        required_fields: Keys/attributes that must hold a value.
    """
    if response is None or isinstance(response, (str, bytes, int, float, bool)):
        return False

    for name in required_fields:
        if isinstance(response, dict):
            value = response.get(name)
        else:
            value = getattr(response, name, None)
        if value is None or value == "":
            return False
    return True
