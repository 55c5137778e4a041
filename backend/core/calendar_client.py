"""Zapier MCP client for Google Calendar operations.

Provides the MCP tool definition handed to the Responses API, a liveness
probe, and direct execution of user-confirmed actions via JSON-RPC
``tools/call``.
"""

import json
from dataclasses import dataclass
from typing import Any
from uuid import uuid4

import httpx
import structlog

from backend.api.schemas import CalendarAction
from backend.core.config import MCPConfig, MCPServerConfig
from backend.core.error_handling import ErrorKind

logger = structlog.get_logger(__name__)

USER_AGENT = "Calendar-Assistant/1.0"

# Zapier Google Calendar tool per action type
ACTION_TOOLS = {
    "create": "google_calendar_create_detailed_event",
    "edit": "google_calendar_update_event",
    "reschedule": "google_calendar_update_event",
    "delete": "google_calendar_delete_event",
}

_STATUS_KINDS = {
    401: ErrorKind.UNAUTHORIZED,
    403: ErrorKind.FORBIDDEN,
    404: ErrorKind.NOT_FOUND,
    409: ErrorKind.CONFLICT,
    503: ErrorKind.UNAVAILABLE,
}


@dataclass
class MCPResponse:
    """Outcome of a calendar tool call."""
    success: bool
    data: Any = None
    error: str | None = None
    kind: ErrorKind = ErrorKind.UNKNOWN


class ZapierMCPClient:
    """Talks to the Zapier MCP server, or reports why it cannot."""

    def __init__(self, config: MCPConfig, transport: httpx.AsyncBaseTransport | None = None):
        self.config = config
        self._transport = transport

    @property
    def configured(self) -> bool:
        return isinstance(self.config, MCPServerConfig)

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.config.api_key}",
            "User-Agent": USER_AGENT,
        }

    def _client(self, timeout: float) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=timeout, transport=self._transport)

    def get_tool_config(self) -> dict | None:
        """MCP tool entry for the Responses API ``tools`` list.

        Returns:
            Tool dict, or None when MCP is unconfigured (logged as a warning).
        """
        if not self.configured:
            logger.warning("mcp.unconfigured", reason=self.config.reason)
            return None

        return {
            "type": "mcp",
            "server_label": self.config.server_label,
            "server_url": self.config.server_url,
            "require_approval": "never",
            "headers": self._headers(),
        }

    async def check_health(self) -> bool:
        """GET <server>/health within the health timeout. Any failure is False."""
        if not self.configured:
            return False

        url = f"{self.config.server_url}/health"
        try:
            async with self._client(self.config.health_timeout) as client:
                resp = await client.get(url, headers={"Content-Type": "application/json"})
            healthy = resp.is_success
        except httpx.HTTPError as e:
            logger.warning("mcp.health_failed", error=str(e))
            return False

        logger.debug("mcp.health", healthy=healthy, status=resp.status_code)
        return healthy

    async def execute_calendar_action(self, action: CalendarAction) -> MCPResponse:
        """Run a confirmed action through the matching Zapier calendar tool.

        Args:
            action: Validated CalendarAction.

        Returns:
            MCPResponse; failures carry an ErrorKind when the cause is known.
        """
        if not self.configured:
            return MCPResponse(False, error="Calendar service unavailable: MCP is not configured",
                               kind=ErrorKind.UNAVAILABLE)

        tool = ACTION_TOOLS.get(action.type)
        if tool is None:
            return MCPResponse(False, error=f"Unknown calendar action type: {action.type}")

        payload = {
            "jsonrpc": "2.0",
            "id": str(uuid4()),
            "method": "tools/call",
            "params": {"name": tool, "arguments": build_tool_arguments(action)},
        }
        headers = {**self._headers(), "Accept": "application/json, text/event-stream"}

        logger.info("mcp.execute", tool=tool, type=action.type, confirmation_id=action.confirmation_id)
        try:
            async with self._client(self.config.timeout) as client:
                resp = await client.post(self.config.server_url, json=payload, headers=headers)
        except httpx.TimeoutException as e:
            logger.error("mcp.timeout", tool=tool, error=str(e))
            return MCPResponse(False, error="Calendar service timeout", kind=ErrorKind.UNAVAILABLE)
        except httpx.HTTPError as e:
            logger.error("mcp.network_error", tool=tool, error=str(e))
            return MCPResponse(False, error="Calendar service network error", kind=ErrorKind.UNAVAILABLE)

        if not resp.is_success:
            logger.error("mcp.http_error", tool=tool, status=resp.status_code)
            return MCPResponse(
                False,
                error=f"Calendar service returned {resp.status_code}: {resp.text[:200]}",
                kind=_STATUS_KINDS.get(resp.status_code, ErrorKind.UNKNOWN),
            )

        try:
            body = _decode_body(resp)
        except ValueError as e:
            logger.error("mcp.bad_response", tool=tool, error=str(e))
            return MCPResponse(False, error="Could not parse calendar service response")

        return _to_mcp_response(body)


def build_tool_arguments(action: CalendarAction) -> dict[str, Any]:
    """Zapier-style arguments for a calendar tool call."""
    event = action.event
    args: dict[str, Any] = {
        "instructions": f"{action.type} calendar event \"{event.title}\"",
    }
    if event.id:
        args["eventid"] = event.id

    if action.type != "delete":
        args["summary"] = event.title
        args["reminders__useDefault"] = True
        if event.start_time:
            args["start__dateTime"] = event.start_time
        if event.end_time:
            args["end__dateTime"] = event.end_time
        if event.description:
            args["description"] = event.description
        if event.location:
            args["location"] = event.location
        if event.attendees:
            args["attendees"] = event.attendees
        if event.recurrence:
            args["recurrence"] = event.recurrence.model_dump(exclude_none=True)
    return args


def _decode_body(resp: httpx.Response) -> dict:
    """Parse a JSON-RPC reply sent either as JSON or as SSE ``data:`` frames."""
    if resp.headers.get("content-type", "").startswith("text/event-stream"):
        frames = [
            line[5:].strip() for line in resp.text.splitlines()
            if line.startswith("data:") and line[5:].strip()
        ]
        if not frames:
            raise ValueError("empty event stream")
        return json.loads(frames[-1])
    return resp.json()


def _to_mcp_response(body: dict) -> MCPResponse:
    if not isinstance(body, dict):
        return MCPResponse(False, error="Unexpected calendar service response")

    if body.get("error"):
        error = body["error"]
        message = error.get("message") if isinstance(error, dict) else str(error)
        return MCPResponse(False, error=message or "Calendar action failed")

    result = body.get("result") or {}
    texts = [
        part.get("text", "") for part in result.get("content") or []
        if isinstance(part, dict) and part.get("type") == "text"
    ]
    data = _parse_tool_text(texts)

    if result.get("isError"):
        return MCPResponse(False, error=" ".join(texts) or "Calendar action failed")
    return MCPResponse(True, data=data)


def _parse_tool_text(texts: list[str]) -> Any:
    """Tool text is usually JSON; keep the raw text when it is not."""
    if not texts:
        return None
    raw = "\n".join(texts)
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        return raw
    # Zapier returns {"results": [event, ...]}
    if isinstance(parsed, dict) and isinstance(parsed.get("results"), list) and parsed["results"]:
        return parsed["results"][0]
    return parsed
