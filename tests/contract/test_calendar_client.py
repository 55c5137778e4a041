"""Contract tests for the Zapier MCP calendar client (mocked HTTP transport)."""

import json

import httpx
import pytest

from backend.api.schemas import CalendarAction, EventDetails
from backend.core.calendar_client import ZapierMCPClient, build_tool_arguments
from backend.core.error_handling import ErrorKind


def _action(type_="create", **event):
    event.setdefault("title", "Team Standup")
    event.setdefault("start_time", "2024-01-02T09:00:00Z")
    event.setdefault("end_time", "2024-01-02T09:30:00Z")
    return CalendarAction(type=type_, event=EventDetails(**event), confirmation_id="conf-1")


def _tool_result(payload, is_error=False):
    return {"jsonrpc": "2.0", "id": "1", "result": {
        "content": [{"type": "text", "text": json.dumps(payload) if not isinstance(payload, str) else payload}],
        "isError": is_error,
    }}


def _client(config, handler):
    return ZapierMCPClient(config, transport=httpx.MockTransport(handler))


class TestToolConfig:

    def test_configured(self, mcp_config):
        tool = ZapierMCPClient(mcp_config).get_tool_config()
        assert tool == {
            "type": "mcp",
            "server_label": "zapier",
            "server_url": "https://mcp.zapier.test/api/mcp",
            "require_approval": "never",
            "headers": {"Authorization": "Bearer zap-key", "User-Agent": "Calendar-Assistant/1.0"},
        }

    def test_unconfigured(self, unconfigured_mcp):
        client = ZapierMCPClient(unconfigured_mcp)
        assert not client.configured
        assert client.get_tool_config() is None


class TestHealth:

    @pytest.mark.asyncio
    async def test_healthy(self, mcp_config):
        seen = []

        def handler(request):
            seen.append(str(request.url))
            return httpx.Response(200, json={"ok": True})

        assert await _client(mcp_config, handler).check_health()
        assert seen == ["https://mcp.zapier.test/api/mcp/health"]

    @pytest.mark.asyncio
    async def test_error_status(self, mcp_config):
        assert not await _client(mcp_config, lambda r: httpx.Response(500)).check_health()

    @pytest.mark.asyncio
    async def test_network_failure(self, mcp_config):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        assert not await _client(mcp_config, handler).check_health()

    @pytest.mark.asyncio
    async def test_unconfigured(self, unconfigured_mcp):
        assert not await ZapierMCPClient(unconfigured_mcp).check_health()


class TestExecute:

    @pytest.mark.asyncio
    async def test_create_sends_tools_call(self, mcp_config):
        captured = {}

        def handler(request):
            captured["body"] = json.loads(request.content)
            captured["auth"] = request.headers["Authorization"]
            return httpx.Response(200, json=_tool_result({"results": [{"id": "evt_1", "summary": "Team Standup"}]}))

        result = await _client(mcp_config, handler).execute_calendar_action(_action(location="Room 4"))

        assert result.success
        assert result.data == {"id": "evt_1", "summary": "Team Standup"}
        assert captured["auth"] == "Bearer zap-key"
        params = captured["body"]["params"]
        assert captured["body"]["method"] == "tools/call"
        assert params["name"] == "google_calendar_create_detailed_event"
        assert params["arguments"]["summary"] == "Team Standup"
        assert params["arguments"]["start__dateTime"] == "2024-01-02T09:00:00Z"
        assert params["arguments"]["location"] == "Room 4"
        assert params["arguments"]["reminders__useDefault"] is True

    @pytest.mark.asyncio
    async def test_sse_framed_reply(self, mcp_config):
        body = "event: message\ndata: " + json.dumps(_tool_result({"id": "evt_2"})) + "\n\n"

        def handler(request):
            return httpx.Response(200, text=body, headers={"content-type": "text/event-stream"})

        result = await _client(mcp_config, handler).execute_calendar_action(_action())
        assert result.success
        assert result.data == {"id": "evt_2"}

    @pytest.mark.asyncio
    async def test_tool_error_result(self, mcp_config):
        def handler(request):
            return httpx.Response(200, json=_tool_result("Event not found", is_error=True))

        result = await _client(mcp_config, handler).execute_calendar_action(_action("delete", id="evt_9"))
        assert not result.success
        assert "not found" in result.error

    @pytest.mark.asyncio
    async def test_jsonrpc_error(self, mcp_config):
        def handler(request):
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": "1",
                                             "error": {"code": -32602, "message": "Unknown tool"}})

        result = await _client(mcp_config, handler).execute_calendar_action(_action())
        assert not result.success
        assert result.error == "Unknown tool"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status, kind", [
        (401, ErrorKind.UNAUTHORIZED),
        (403, ErrorKind.FORBIDDEN),
        (404, ErrorKind.NOT_FOUND),
        (409, ErrorKind.CONFLICT),
        (500, ErrorKind.UNKNOWN),
    ])
    async def test_http_status_kinds(self, mcp_config, status, kind):
        result = await _client(mcp_config, lambda r: httpx.Response(status, text="nope")).execute_calendar_action(_action())
        assert not result.success
        assert result.kind is kind

    @pytest.mark.asyncio
    async def test_timeout_is_unavailable(self, mcp_config):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        result = await _client(mcp_config, handler).execute_calendar_action(_action())
        assert result.kind is ErrorKind.UNAVAILABLE

    @pytest.mark.asyncio
    async def test_unconfigured(self, unconfigured_mcp):
        result = await ZapierMCPClient(unconfigured_mcp).execute_calendar_action(_action())
        assert not result.success
        assert result.kind is ErrorKind.UNAVAILABLE

    @pytest.mark.asyncio
    async def test_unknown_type_not_sent(self, mcp_config):
        def handler(request):
            raise AssertionError("should not be called")

        result = await _client(mcp_config, handler).execute_calendar_action(_action("action"))
        assert not result.success


class TestToolArguments:

    def test_delete_only_identifies_event(self):
        args = build_tool_arguments(_action("delete", id="evt_3"))
        assert args["eventid"] == "evt_3"
        assert "start__dateTime" not in args

    def test_reschedule_carries_times(self):
        args = build_tool_arguments(_action("reschedule", id="evt_3", attendees=["a@x.com"]))
        assert args["eventid"] == "evt_3"
        assert args["end__dateTime"] == "2024-01-02T09:30:00Z"
        assert args["attendees"] == ["a@x.com"]
