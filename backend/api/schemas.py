"""Pydantic models for the API layer.

Defines the calendar domain types shared by the detector, validator and
confirmation flow, plus request/response schemas for all endpoints.
Attribute names are snake_case; the JSON wire format is camelCase.
"""

from datetime import datetime
from typing import Any, Literal
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

ActionType = Literal["create", "edit", "delete", "reschedule", "action"]


class CamelModel(BaseModel):
    """Base model that reads and writes camelCase JSON keys."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RecurrenceRule(CamelModel):
    """Descriptive recurrence; not cross-checked against the event times."""
    frequency: Literal["daily", "weekly", "monthly", "yearly"]
    interval: int | None = None
    until: str | None = None
    count: int | None = None


class EventDetails(CamelModel):
    """A calendar event as proposed by the model or edited by the user.

    Fields are optional at the schema level so that incomplete proposals
    reach the validator and produce readable errors instead of a 422.
    """
    id: str | None = None
    title: str | None = None
    description: str | None = None
    start_time: str | None = None
    end_time: str | None = None
    location: str | None = None
    attendees: list[str] | None = None
    recurrence: RecurrenceRule | None = None


class CalendarAction(CamelModel):
    """A proposed calendar mutation awaiting user confirmation."""
    type: ActionType
    event: EventDetails
    confirmation_id: str = Field(default_factory=lambda: str(uuid4()))


class ChatMessage(CamelModel):
    """Single message in a UI conversation."""
    id: str
    role: Literal["user", "assistant"]
    content: str
    timestamp: datetime
    response_id: str | None = None
    error: bool = False


class ChatRequest(CamelModel):
    """Incoming chat message from the frontend."""
    message: str | None = None
    previous_response_id: str | None = None


class ChatResponse(CamelModel):
    """Assistant reply plus an optional pending action."""
    id: str
    message: str
    requires_confirmation: bool
    calendar_action: CalendarAction | None = None


class ConfirmationRequest(CamelModel):
    """The user's decision on a pending calendar action.

    ``calendar_action`` stays a raw mapping; it is only parsed into a
    CalendarAction once the decision is "accept".
    """
    confirmation_id: str | None = None
    action: str | None = None
    calendar_action: dict[str, Any] | None = None


class ConfirmationResult(BaseModel):
    """Outcome details of an executed action (snake_case on the wire)."""
    event_id: str | None = None
    action: ActionType
    event: EventDetails
    calendar_data: Any = None


class ConfirmationResponse(BaseModel):
    success: bool
    message: str
    result: ConfirmationResult | None = None
    action: str | None = None
