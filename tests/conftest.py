"""Shared fixtures for all tests."""

import pytest
from fastapi.testclient import TestClient

from backend.api.routes import get_calendar_client, get_llm_client
from backend.core.calendar_client import MCPResponse
from backend.core.config import MCPServerConfig, MCPUnconfigured
from backend.core.llm_adapter import ModelResponse


class FakeStream:
    """Async event stream with a close() like the OpenAI AsyncStream."""

    def __init__(self, events, error=None):
        self.events = events
        self.error = error
        self.closed = False

    async def __aiter__(self):
        for event in self.events:
            yield event
        if self.error:
            raise self.error

    async def close(self):
        self.closed = True


class FakeLLM:
    """Stands in for OpenAIClient; returns canned responses or raises."""

    def __init__(self, response=None, error=None, stream_events=None, stream_error=None):
        self.response = response or ModelResponse(id="resp_1", content="Hello!")
        self.error = error
        self.stream_events = stream_events or []
        self.stream_error = stream_error
        self.stream = None
        self.calls = []

    def is_healthy(self):
        return True

    async def create_response(self, message, instructions, previous_response_id=None):
        self.calls.append({"message": message, "previous_response_id": previous_response_id})
        if self.error:
            raise self.error
        return self.response

    async def create_streaming_response(self, message, instructions, previous_response_id=None):
        self.calls.append({"message": message, "previous_response_id": previous_response_id})
        if self.error:
            raise self.error
        self.stream = FakeStream(self.stream_events, self.stream_error)
        return self.stream


class FakeCalendar:
    """Stands in for ZapierMCPClient and records executed actions."""

    def __init__(self, healthy=True, result=None, raises=None):
        self.config = MCPServerConfig(api_key="k", server_url="https://mcp.test")
        self.healthy = healthy
        self.result = result or MCPResponse(True, data={"id": "evt_123"})
        self.raises = raises
        self.executed = []

    @property
    def configured(self):
        return True

    async def check_health(self):
        if isinstance(self.healthy, Exception):
            raise self.healthy
        return self.healthy

    async def execute_calendar_action(self, action):
        self.executed.append(action)
        if self.raises:
            raise self.raises
        return self.result


@pytest.fixture
def fake_llm():
    return FakeLLM()


@pytest.fixture
def fake_calendar():
    return FakeCalendar()


@pytest.fixture
def client(fake_llm, fake_calendar):
    """TestClient with both collaborators replaced by fakes (lifespan not run)."""
    from backend.main import _rate_buckets, app

    _rate_buckets.clear()
    app.state.llm_client = fake_llm
    app.state.calendar_client = fake_calendar
    app.dependency_overrides[get_llm_client] = lambda: fake_llm
    app.dependency_overrides[get_calendar_client] = lambda: fake_calendar
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def mcp_config():
    return MCPServerConfig(api_key="zap-key", server_url="https://mcp.zapier.test/api/mcp")


@pytest.fixture
def unconfigured_mcp():
    return MCPUnconfigured("ZAPIER_MCP_API_KEY is not set")


@pytest.fixture
def create_action_payload() -> dict:
    return {
        "type": "create",
        "confirmationId": "conf-1",
        "event": {
            "title": "Team Standup",
            "startTime": "2024-01-02T09:00:00Z",
            "endTime": "2024-01-02T09:30:00Z",
        },
    }


@pytest.fixture
def mcp_create_call() -> dict:
    """An mcp_call output item as returned by the Responses API."""
    return {
        "type": "mcp_call",
        "id": "mcp_1",
        "name": "google_calendar_create_detailed_event",
        "server_label": "zapier",
        "arguments": '{"summary": "Dentist", "start__dateTime": "2024-03-01T14:00:00Z", '
                     '"end__dateTime": "2024-03-01T15:00:00Z", "location": "Main St"}',
        "output": '{"results": [{"id": "evt_42", "summary": "Dentist"}]}',
        "error": None,
    }
