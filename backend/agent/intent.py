"""Detect calendar mutations in model responses and extract the proposed action.

Structured MCP tool calls are the primary signal. Plain-text phrase
matching is only used when the model reported no tool calls at all.
"""

import json
from collections.abc import Mapping
from datetime import datetime, timedelta, timezone
from uuid import uuid4

import structlog
from pydantic import ValidationError

from backend.api.schemas import CalendarAction, EventDetails

logger = structlog.get_logger(__name__)

MUTATING_TOOL_MARKERS = ("create", "update", "delete", "add")

MODIFICATION_KEYWORDS = (
    "create event", "schedule meeting", "add to calendar",
    "delete event", "cancel meeting", "remove from calendar",
    "reschedule", "move meeting", "change time",
    "edit event", "update meeting", "modify event",
    "i can create", "i can schedule", "i can add",
    "would you like me to", "shall i create", "shall i schedule",
    "i'll create", "i'll schedule", "i'll add",
)

DEFAULT_MESSAGE = "I can help you with your calendar. What would you like to do?"
DEFAULT_TITLE = "Calendar Event"


def _get(obj, key, default=None):
    """Read a key from a dict or an attribute from a model/dataclass."""
    if obj is None:
        return default
    if isinstance(obj, Mapping):
        return obj.get(key, default)
    return getattr(obj, key, default)


def _tool_calls(response) -> list:
    calls = _get(response, "tool_calls")
    return calls if isinstance(calls, list) else []


def _is_live_mcp_call(call) -> bool:
    return _get(call, "type") == "mcp_call" and not _get(call, "error")


def detect_calendar_modification(response) -> bool:
    """Decide whether a response proposes a calendar change.

    Args:
        response: Normalized ModelResponse or an equivalent mapping.

    Returns:
        True if the user must confirm before anything is executed.
    """
    calls = _tool_calls(response)
    if calls:
        for call in calls:
            if not _is_live_mcp_call(call):
                continue
            name = (_get(call, "name") or "").lower()
            if any(marker in name for marker in MUTATING_TOOL_MARKERS):
                return True
        return False

    content = _get(response, "content") or ""
    if not isinstance(content, str):
        return False
    text = content.lower()
    return any(keyword in text for keyword in MODIFICATION_KEYWORDS)


def extract_message_content(response) -> str:
    """Assistant text for the UI, with a default prompt when none is present."""
    content = _get(response, "content")
    if content:
        return content

    output_text = _get(response, "output_text")
    if output_text:
        return output_text

    output = _get(response, "output")
    if isinstance(output, list):
        return join_output_text(output)

    return DEFAULT_MESSAGE


def join_output_text(output) -> str:
    """Join the ``output_text`` parts of every message item in a Responses-API output list."""
    if not output:
        return ""
    if isinstance(output, str):
        return output
    if not isinstance(output, list):
        return ""

    parts = []
    for item in output:
        if _get(item, "type") != "message":
            continue
        for piece in _get(item, "content") or []:
            if _get(piece, "type") == "output_text":
                parts.append(_get(piece, "text") or "")
    return " \n".join(parts)


def _load(payload):
    """Parse JSON text; pass dicts and None through."""
    if isinstance(payload, str):
        return json.loads(payload)
    return payload


def _action_type(tool_name: str) -> str:
    if "create" in tool_name:
        return "create"
    if "update" in tool_name:
        return "edit"
    if "delete" in tool_name:
        return "delete"
    return "action"


def _nested_datetime(source, key: str):
    value = _get(source, key)
    if isinstance(value, Mapping):
        return value.get("dateTime") or value.get("date")
    return None


def _attendees(raw) -> list[str] | None:
    if not raw:
        return None
    if isinstance(raw, str):
        return [a.strip() for a in raw.split(",") if a.strip()]
    if isinstance(raw, list):
        return [a if isinstance(a, str) else (_get(a, "email") or str(a)) for a in raw]
    return None


def extract_calendar_action(response) -> CalendarAction | None:
    """Build a CalendarAction from the first usable MCP tool call.

    Argument fields win over output fields, which win over defaults.
    Only meaningful after detect_calendar_modification returned True.

    Args:
        response: Normalized ModelResponse or an equivalent mapping.

    Returns:
        CalendarAction with a fresh confirmation id, or None when no call
        carries results or its payloads cannot be parsed.
    """
    call = next(
        (c for c in _tool_calls(response) if _is_live_mcp_call(c) and _get(c, "output")),
        None,
    )
    if call is None:
        return None

    name = _get(call, "name") or ""
    try:
        tool_args = _load(_get(call, "arguments")) or {}
        tool_output = _load(_get(call, "output")) or {}
    except (json.JSONDecodeError, TypeError) as e:
        logger.error("intent.parse_failed", tool=name, error=str(e))
        return None

    if not isinstance(tool_args, Mapping) or not isinstance(tool_output, Mapping):
        logger.warning("intent.unexpected_payload", tool=name)
        return None

    results = tool_output.get("results")
    if not results:
        return None

    # Zapier wraps the affected event(s) in a results list
    record = tool_output
    if isinstance(results, list) and isinstance(results[0], Mapping):
        record = {**results[0], **{k: v for k, v in tool_output.items() if k != "results"}}

    now = datetime.now(timezone.utc)
    start = (
        tool_args.get("start__dateTime")
        or _nested_datetime(record, "start")
        or now.isoformat()
    )
    end = (
        tool_args.get("end__dateTime")
        or _nested_datetime(record, "end")
        or (now + timedelta(hours=1)).isoformat()
    )

    event_id = record.get("id") or tool_args.get("eventid")
    try:
        event = EventDetails(
            id=str(event_id) if event_id is not None else None,
            title=tool_args.get("summary") or tool_args.get("text") or record.get("summary") or DEFAULT_TITLE,
            description=tool_args.get("description") or record.get("description"),
            start_time=start,
            end_time=end,
            location=tool_args.get("location") or record.get("location"),
            attendees=_attendees(tool_args.get("attendees") or record.get("attendees")),
        )
    except ValidationError as e:
        logger.error("intent.event_invalid", tool=name, error=str(e))
        return None

    action = CalendarAction(
        type=_action_type(name.lower()),
        event=event,
        confirmation_id=str(uuid4()),
    )
    logger.info("intent.action_extracted", tool=name, type=action.type,
                confirmation_id=action.confirmation_id)
    return action
