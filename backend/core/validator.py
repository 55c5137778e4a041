"""Field and time-ordering checks for proposed calendar actions.

All rules run; every violation is collected so the user sees the full
list at once.
"""

from collections.abc import Mapping
from datetime import datetime, timezone

from backend.api.schemas import CalendarAction

# Action types that do not need a time window
TIMELESS_ACTIONS = frozenset({"delete"})


def validate_calendar_action(action: CalendarAction | Mapping) -> list[str]:
    """Check a calendar action before it is executed.

    Args:
        action: CalendarAction model or raw mapping (camelCase or snake_case keys).

    Returns:
        List of human-readable errors. Empty means the action is valid.
    """
    if isinstance(action, Mapping):
        action_type = action.get("type")
        event = _normalize_event(action.get("event") or {})
    else:
        action_type = action.type
        event = action.event.model_dump()

    errors: list[str] = []

    title = event.get("title")
    if not title or not str(title).strip():
        errors.append("Event title is required")

    if action_type not in TIMELESS_ACTIONS:
        start_raw = event.get("start_time")
        end_raw = event.get("end_time")

        if not start_raw:
            errors.append("Start time is required")
        if not end_raw:
            errors.append("End time is required")

        if start_raw and end_raw:
            start = _parse_datetime(start_raw)
            end = _parse_datetime(end_raw)
            if start is None or end is None:
                errors.append("Invalid date format for start or end time")
            elif start >= end:
                errors.append("End time must be after start time")

    return errors


def _normalize_event(event: Mapping) -> dict:
    """Accept both startTime and start_time spellings."""
    return {
        "title": event.get("title"),
        "start_time": event.get("start_time", event.get("startTime")),
        "end_time": event.get("end_time", event.get("endTime")),
    }


def _parse_datetime(value) -> datetime | None:
    """Parse an ISO-8601 instant. Naive values are taken as UTC."""
    if not isinstance(value, str):
        return None
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
