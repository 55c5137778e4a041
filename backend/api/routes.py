"""FastAPI endpoints for the calendar assistant.

POST /api/chat - one conversation turn, with optional pending calendar action
GET /api/chat - same turn streamed as server-sent events
POST /api/calendar/confirm - accept or reject a pending calendar action
GET /api/calendar/confirm - calendar service health
"""

import json
import time
from datetime import datetime, timezone

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import ValidationError

from backend.agent.intent import (
    detect_calendar_modification,
    extract_calendar_action,
    extract_message_content,
)
from backend.agent.prompts import CHAT_INSTRUCTIONS, STREAM_INSTRUCTIONS
from backend.api.schemas import (
    CalendarAction,
    ChatRequest,
    ChatResponse,
    ConfirmationRequest,
    ConfirmationResponse,
    ConfirmationResult,
)
from backend.core.calendar_client import ZapierMCPClient
from backend.core.error_handling import (
    ActionValidationError,
    CalendarServiceError,
    classify_calendar_error,
    handle_rate_limit,
    sanitize_error_message,
)
from backend.core.llm_adapter import LLMAuthError, LLMRateLimitError, OpenAIClient, extract_stream_delta
from backend.core.validator import validate_calendar_action

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api")

SERVICE_NAME = "calendar-confirmation"

_SUCCESS_VERBS = {
    "create": "created",
    "edit": "updated",
    "delete": "deleted",
    "reschedule": "rescheduled",
}


def get_llm_client(request: Request) -> OpenAIClient:
    return request.app.state.llm_client


def get_calendar_client(request: Request) -> ZapierMCPClient:
    return request.app.state.calendar_client


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": message})


def _require_message(message: str | None) -> str:
    if not message or not message.strip():
        raise HTTPException(status_code=400, detail="Message is required")
    return message.strip()


@router.post("/chat", response_model=ChatResponse, response_model_exclude_none=True)
async def chat(
    request: ChatRequest,
    llm: OpenAIClient = Depends(get_llm_client),
    calendar: ZapierMCPClient = Depends(get_calendar_client),
):
    """One conversation turn: model call -> intent detection -> optional pending action."""
    start = time.monotonic()
    message = _require_message(request.message)

    logger.info("chat.request", msg_len=len(message),
                continued=bool(request.previous_response_id))

    if not calendar.configured:
        logger.warning("chat.mcp_unavailable", reason=calendar.config.reason)

    try:
        response = await llm.create_response(
            message=message,
            instructions=CHAT_INSTRUCTIONS,
            previous_response_id=request.previous_response_id,
        )
    except Exception as e:
        logger.error("chat.llm_failed", error=str(e))
        if isinstance(e, LLMRateLimitError) or "rate limit" in str(e):
            return _error(429, handle_rate_limit(e))
        if isinstance(e, LLMAuthError) or "API key" in str(e):
            return _error(500, "OpenAI API configuration error")
        return _error(500, sanitize_error_message(e))

    requires_confirmation = detect_calendar_modification(response)
    calendar_action = extract_calendar_action(response) if requires_confirmation else None

    latency_ms = int((time.monotonic() - start) * 1000)
    logger.info("chat.response", response_id=response.id, latency_ms=latency_ms,
                requires_confirmation=requires_confirmation,
                has_action=calendar_action is not None)

    return ChatResponse(
        id=response.id,
        message=extract_message_content(response),
        requires_confirmation=requires_confirmation,
        calendar_action=calendar_action,
    )


@router.get("/chat")
async def chat_stream(
    message: str | None = None,
    previous_response_id: str | None = Query(None, alias="previousResponseId"),
    llm: OpenAIClient = Depends(get_llm_client),
    calendar: ZapierMCPClient = Depends(get_calendar_client),
):
    """Stream assistant text as SSE ``{"content": ...}`` frames ending with [DONE]."""
    message = _require_message(message)
    logger.info("chat_stream.request", msg_len=len(message))

    if not calendar.configured:
        logger.warning("chat_stream.mcp_unavailable", reason=calendar.config.reason)

    try:
        stream = await llm.create_streaming_response(
            message=message,
            instructions=STREAM_INSTRUCTIONS,
            previous_response_id=previous_response_id or None,
        )
    except Exception as e:
        logger.error("chat_stream.open_failed", error=str(e))
        return _error(500, sanitize_error_message(e))

    async def generate_events():
        chunks = 0
        try:
            async for event in stream:
                content = extract_stream_delta(event)
                if content:
                    chunks += 1
                    yield f"data: {json.dumps({'content': content})}\n\n"
            yield "data: [DONE]\n\n"
            logger.info("chat_stream.complete", chunks=chunks)
        except Exception as e:
            logger.error("chat_stream.failed", error=str(e), chunks=chunks)
            yield f"data: {json.dumps({'error': sanitize_error_message(e)})}\n\n"
        finally:
            close = getattr(stream, "close", None)
            if close is not None:
                await close()

    return StreamingResponse(
        generate_events(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )


async def execute_calendar_action(
    calendar_action: CalendarAction,
    calendar: ZapierMCPClient,
) -> dict:
    """Run an already validated action through the calendar collaborator.

    Returns:
        Dict with event_id, message, and collaborator data.

    Raises:
        CalendarServiceError: Unknown action type or collaborator failure.
    """
    verb = _SUCCESS_VERBS.get(calendar_action.type)
    if verb is None:
        raise CalendarServiceError(f"Unknown calendar action type: {calendar_action.type}")

    mcp_response = await calendar.execute_calendar_action(calendar_action)
    if not mcp_response.success:
        raise CalendarServiceError(mcp_response.error or "Calendar action failed", mcp_response.kind)

    event = calendar_action.event
    if calendar_action.type == "create":
        data_id = mcp_response.data.get("id") if isinstance(mcp_response.data, dict) else None
        event_id = str(data_id) if data_id else f"event_{int(time.time() * 1000)}"
    else:
        event_id = event.id

    return {
        "event_id": event_id,
        "message": f'Successfully {verb} event "{event.title}"',
        "data": mcp_response.data,
    }


@router.post("/calendar/confirm", response_model=ConfirmationResponse, response_model_exclude_none=True)
async def confirm(
    request: ConfirmationRequest,
    calendar: ZapierMCPClient = Depends(get_calendar_client),
):
    """Accept (validate + execute) or reject a pending calendar action."""
    if not request.confirmation_id or not request.action or request.calendar_action is None:
        raise HTTPException(
            status_code=400,
            detail="Missing required fields: confirmationId, action, and calendarAction",
        )

    if request.action not in ("accept", "reject"):
        raise HTTPException(status_code=400, detail='Action must be either "accept" or "reject"')

    log = logger.bind(confirmation_id=request.confirmation_id,
                      type=request.calendar_action.get("type"))

    if request.action == "reject":
        log.info("confirm.rejected")
        return ConfirmationResponse(success=True, message="Calendar action cancelled", action="rejected")

    try:
        calendar_action = CalendarAction.model_validate(request.calendar_action)
    except ValidationError as e:
        fields = [".".join(str(p) for p in err["loc"]) for err in e.errors()]
        log.warning("confirm.invalid_action", fields=fields)
        return _error(400, f"Invalid calendar action fields: {', '.join(fields)}")

    try:
        errors = validate_calendar_action(calendar_action)
        if errors:
            raise ActionValidationError(errors)

        if not await calendar.check_health():
            log.warning("confirm.mcp_unreachable")
            return _error(503, "Calendar service is currently unavailable. Please try again later.")

        result = await execute_calendar_action(calendar_action, calendar)
    except Exception as e:
        status, detail = classify_calendar_error(e)
        log.error("confirm.failed", error=str(e), status=status)
        return _error(status, detail)

    log.info("confirm.executed", event_id=result["event_id"])
    return ConfirmationResponse(
        success=True,
        message=result["message"],
        result=ConfirmationResult(
            event_id=result["event_id"],
            action=calendar_action.type,
            event=calendar_action.event,
            calendar_data=result["data"],
        ),
    )


@router.get("/calendar/confirm")
async def confirm_health(calendar: ZapierMCPClient = Depends(get_calendar_client)):
    """Report whether the calendar collaborator is reachable."""
    timestamp = datetime.now(timezone.utc).isoformat()
    try:
        healthy = await calendar.check_health()
    except Exception as e:
        logger.error("confirm_health.failed", error=str(e))
        return JSONResponse(status_code=503, content={
            "status": "error",
            "service": SERVICE_NAME,
            "mcp_status": "error",
            "error": sanitize_error_message(e),
            "timestamp": timestamp,
        })

    body = {
        "status": "ok" if healthy else "degraded",
        "service": SERVICE_NAME,
        "mcp_status": "connected" if healthy else "disconnected",
        "timestamp": timestamp,
    }
    return JSONResponse(status_code=200 if healthy else 503, content=body)


@router.get("/health")
def health(
    llm: OpenAIClient = Depends(get_llm_client),
    calendar: ZapierMCPClient = Depends(get_calendar_client),
):
    """Configuration status of both collaborators."""
    components = {
        "openai": "ok" if llm.is_healthy() else "error",
        "mcp": "ok" if calendar.configured else "error",
    }
    errors = [k for k, v in components.items() if v == "error"]
    if not errors:
        status = "healthy"
    elif len(errors) == len(components):
        status = "unhealthy"
    else:
        status = "degraded"
    return {"status": status, "components": components}
