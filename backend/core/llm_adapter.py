"""OpenAI Responses API adapter with the Zapier MCP calendar tool attached.

Every call goes through retry_api_call. Upstream failures are translated
into the LLMError family so routes never see provider exceptions.
"""

from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any

import structlog
from openai import APIConnectionError, APIStatusError, AsyncOpenAI

from backend.agent.intent import join_output_text
from backend.agent.prompts import build_instructions
from backend.core.calendar_client import ZapierMCPClient
from backend.core.config import Settings
from backend.core.error_handling import sanitize_error_message, validate_api_response
from backend.core.retry import retry_api_call

logger = structlog.get_logger(__name__)

CHAT_RETRIES = 3
STREAM_RETRIES = 2
RETRY_INITIAL_DELAY = 1.0


class LLMError(Exception):
    """Non-retryable LLM error (bad request, malformed response)."""
    pass


class LLMRateLimitError(LLMError):
    """Upstream returned 429."""
    pass


class LLMAuthError(LLMError):
    """API key missing or rejected."""
    pass


class LLMUnavailableError(LLMError):
    """Upstream is down or unreachable."""
    pass


@dataclass
class ModelResponse:
    """Normalized result of a non-streaming Responses API call.

    Attributes:
        id: Response id, passed back by the UI as previousResponseId.
        content: Assistant text (may be empty).
        tool_calls: Raw ``mcp_call`` output items as dicts.
        finish_reason: Upstream status, "completed" by default.
    """
    id: str
    content: str = ""
    tool_calls: list[dict[str, Any]] = field(default_factory=list)
    finish_reason: str = "completed"


def _translate_error(e: Exception) -> LLMError:
    """Map SDK exceptions to the LLMError family."""
    if isinstance(e, LLMError):
        return e
    if isinstance(e, APIStatusError):
        if e.status_code == 429:
            return LLMRateLimitError("rate limit")
        if e.status_code == 401:
            return LLMAuthError("API key invalid")
        if e.status_code == 503:
            return LLMUnavailableError("OpenAI service unavailable")
    if isinstance(e, APIConnectionError):
        return LLMUnavailableError("network error contacting OpenAI")
    return LLMError(sanitize_error_message(e))


class OpenAIClient:
    """Calls the Responses API with calendar instructions and the MCP tool."""

    def __init__(self, settings: Settings, mcp_client: ZapierMCPClient, client: AsyncOpenAI | None = None):
        self.model = settings.openai_model
        self.api_key = settings.openai_api_key
        self.mcp_client = mcp_client
        self._client = client
        if self._client is None and self.api_key:
            self._client = AsyncOpenAI(api_key=self.api_key)

    def is_healthy(self) -> bool:
        """True if an API key (or an injected client) is available."""
        return self._client is not None

    def _require_client(self) -> AsyncOpenAI:
        if self._client is None:
            raise LLMAuthError("OpenAI API key is not configured")
        return self._client

    def _request_params(self, message: str, instructions: str, previous_response_id: str | None) -> dict:
        mcp_tool = self.mcp_client.get_tool_config()
        params = {
            "model": self.model,
            "input": message,
            "instructions": instructions,
            "tools": [mcp_tool] if mcp_tool else [],
        }
        if previous_response_id:
            params["previous_response_id"] = previous_response_id
        return params

    async def create_response(
        self,
        message: str,
        instructions: str,
        previous_response_id: str | None = None,
    ) -> ModelResponse:
        """Send one conversation turn and normalize the result.

        Args:
            message: User text.
            instructions: Endpoint instructions; shared rules are appended.
            previous_response_id: Continuation token from the last turn.

        Returns:
            ModelResponse with text and MCP tool-call records.

        Raises:
            LLMRateLimitError, LLMAuthError, LLMUnavailableError, LLMError.
        """
        params = self._request_params(message, build_instructions(instructions), previous_response_id)
        client = self._require_client()

        async def attempt() -> ModelResponse:
            logger.debug("llm.invoke", model=self.model, tools=len(params["tools"]),
                         continued=bool(previous_response_id))
            try:
                response = await client.responses.create(**params)
            except Exception as e:
                logger.error("llm.request_failed", error=str(e))
                raise _translate_error(e)
            return self._normalize(response)

        return await retry_api_call(attempt, CHAT_RETRIES, RETRY_INITIAL_DELAY)

    async def create_streaming_response(
        self,
        message: str,
        instructions: str,
        previous_response_id: str | None = None,
    ) -> AsyncIterator[Any]:
        """Open a streaming Responses API call.

        Only opening the stream is retried; iteration errors surface to the caller.

        Returns:
            Async iterator of stream events.
        """
        params = self._request_params(
            message, build_instructions(instructions, streaming=True), previous_response_id
        )
        params["stream"] = True
        client = self._require_client()

        async def attempt():
            logger.debug("llm.stream_open", model=self.model)
            try:
                return await client.responses.create(**params)
            except Exception as e:
                logger.error("llm.stream_failed", error=str(e))
                raise _translate_error(e)

        return await retry_api_call(attempt, STREAM_RETRIES, RETRY_INITIAL_DELAY)

    def _normalize(self, response) -> ModelResponse:
        if not validate_api_response(response, ["id"]):
            raise LLMError("Invalid response from language model: missing id")

        data = response.model_dump() if hasattr(response, "model_dump") else dict(response)
        output = data.get("output") or []
        content = getattr(response, "output_text", None) or data.get("output_text") or join_output_text(output)
        tool_calls = [item for item in output if isinstance(item, dict) and item.get("type") == "mcp_call"]

        logger.info("llm.response", response_id=data["id"], tool_calls=len(tool_calls))
        return ModelResponse(
            id=data["id"],
            content=content or "",
            tool_calls=tool_calls,
            finish_reason=data.get("status") or "completed",
        )


def extract_stream_delta(event) -> str:
    """Text carried by one stream event, or "" for non-text events."""
    if isinstance(event, dict):
        get = event.get
    else:
        def get(key, default=None):
            return getattr(event, key, default)

    event_type = get("type")
    if event_type == "response.output_text.delta":
        delta = get("delta")
        return delta if isinstance(delta, str) else ""

    legacy = None
    if event_type == "response_delta":
        legacy = (get("response_delta") or {}).get("output_text_delta")
    elif event_type == "output_text_delta":
        legacy = get("output_text_delta")
    if isinstance(legacy, dict) and isinstance(legacy.get("text"), str):
        return legacy["text"]

    choices = get("choices")
    if choices:
        first = choices[0]
        delta = first.get("delta") if isinstance(first, dict) else getattr(first, "delta", None)
        text = delta.get("content") if isinstance(delta, dict) else getattr(delta, "content", None)
        if isinstance(text, str):
            return text
    return ""
