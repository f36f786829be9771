"""LLM client — HTTP connection to a chat-completion backend.

The session injects an LLM object matching the protocol:

    async def chat(self, stage, messages, *, tools=None, tool_choice=None) -> ChatResponse

`stage` identifies which pipeline step is calling ("narrator",
"world_context"). Implementations may use it for logging or routing; the
simplest implementation ignores it.

Messages use the OpenAI chat shape, extended for multi-round tool use:

    assistant  — may carry `tool_calls` with empty content
    tool       — content is a JSON string, tagged with `tool_call_id`

Two implementations are provided:

    HttpLLM   — real HTTP client for OpenAI-compatible /v1/chat/completions.
    EchoLLM   — echoes the last user message as narration. Useful for
                 smoke-testing the session wiring without a running model.

Tests use StubLLM (defined in the test helpers) instead.
"""

from __future__ import annotations

import logging
from typing import Any, Literal, Protocol

import httpx
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

Role = Literal["system", "user", "assistant", "tool"]

ToolChoice = Literal["auto", "none", "required"]


# ---------------------------------------------------------------------------
# Wire models
# ---------------------------------------------------------------------------

class ToolFunction(BaseModel):
    name: str
    arguments: str = "{}"  # raw JSON string, parsed by the executor


class ToolCall(BaseModel):
    id: str
    type: Literal["function"] = "function"
    function: ToolFunction


class ChatMessage(BaseModel):
    role: Role
    content: str = ""
    tool_calls: list[ToolCall] | None = None
    tool_call_id: str | None = None

    def to_wire(self) -> dict[str, Any]:
        """Serialise in the OpenAI request shape, omitting unset tool fields."""
        return self.model_dump(exclude_none=True)


class ChatResponse(BaseModel):
    content: str = ""
    tool_calls: list[ToolCall] = Field(default_factory=list)

    @property
    def has_tool_calls(self) -> bool:
        return len(self.tool_calls) > 0


# ---------------------------------------------------------------------------
# Protocol — every LLM implementation must match this signature
# ---------------------------------------------------------------------------

class LLM(Protocol):
    async def chat(
        self,
        stage: str,
        messages: list[ChatMessage],
        *,
        tools: list[dict] | None = None,
        tool_choice: ToolChoice | None = None,
    ) -> ChatResponse: ...


# ---------------------------------------------------------------------------
# HttpLLM — connects to a real backend
# ---------------------------------------------------------------------------

class HttpLLM:
    """Async HTTP client for OpenAI-compatible chat-completion backends.

    POST {provider_url}/v1/chat/completions
        {"model": ..., "messages": [...], "tools": [...], "tool_choice": "auto"}
    Response: {"choices": [{"message": {"content": "...", "tool_calls": [...]}}]}

    Args:
        provider_url: Base URL of the backend, e.g. "http://localhost:1234".
        api_key:      Bearer token, or empty string if not required.
        model:        Model identifier; omitted from the body when empty.
        timeout:      HTTP timeout in seconds. Defaults to 120.
        temperature:  Sampling temperature. Defaults to 0.7.
    """

    def __init__(
        self,
        provider_url: str,
        api_key: str = "",
        model: str = "",
        timeout: float = 120.0,
        temperature: float = 0.7,
    ) -> None:
        self._base_url = provider_url.rstrip("/")
        self._api_key = api_key
        self._model = model
        self._timeout = timeout
        self._temperature = temperature

    def _headers(self) -> dict[str, str]:
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    def _build_request(
        self,
        messages: list[ChatMessage],
        tools: list[dict] | None,
        tool_choice: ToolChoice | None,
    ) -> tuple[str, dict]:
        """Return (url, body) for a chat completion request."""
        url = f"{self._base_url}/v1/chat/completions"
        body: dict[str, Any] = {
            "messages": [m.to_wire() for m in messages],
            "temperature": self._temperature,
        }
        if self._model:
            body["model"] = self._model
        if tools:
            body["tools"] = tools
            body["tool_choice"] = tool_choice or "auto"
        return url, body

    def _parse_response(self, data: dict) -> ChatResponse:
        """Extract content and tool calls from the first choice."""
        choices = data.get("choices")
        if not choices or not isinstance(choices[0].get("message"), dict):
            raise LLMError("Unexpected response format from chat backend")
        message = choices[0]["message"]
        try:
            tool_calls = [ToolCall.model_validate(tc) for tc in message.get("tool_calls") or []]
        except ValueError as e:
            raise LLMError(f"Malformed tool call from chat backend: {e}") from e
        return ChatResponse(
            content=(message.get("content") or "").strip(),
            tool_calls=tool_calls,
        )

    async def chat(
        self,
        stage: str,
        messages: list[ChatMessage],
        *,
        tools: list[dict] | None = None,
        tool_choice: ToolChoice | None = None,
    ) -> ChatResponse:
        url, body = self._build_request(messages, tools, tool_choice)
        logger.debug(
            "llm call stage=%s url=%s messages=%d tools=%d",
            stage, url, len(messages), len(tools or []),
        )

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(url, json=body, headers=self._headers())
                resp.raise_for_status()
        except httpx.ConnectError as e:
            raise LLMError(f"Cannot connect to LLM backend at {self._base_url}") from e
        except httpx.HTTPStatusError as e:
            raise LLMError(
                f"LLM backend returned HTTP {e.response.status_code}"
            ) from e
        except httpx.TimeoutException as e:
            raise LLMError(f"LLM backend timed out after {self._timeout}s") from e

        try:
            data = resp.json()
        except ValueError as e:
            raise LLMError("LLM backend returned a non-JSON body") from e

        response = self._parse_response(data)
        logger.debug(
            "llm response stage=%s len=%d tool_calls=%d",
            stage, len(response.content), len(response.tool_calls),
        )
        return response


# ---------------------------------------------------------------------------
# EchoLLM — narrates the last user message; no tool calls, no network
# ---------------------------------------------------------------------------

class EchoLLM:
    """Returns the latest user message as narrative text. No network calls.

    Lets you verify that the session wiring (context building, action
    formatting, event stream, saving) works end-to-end without a running
    model. Its output is not valid JSON, so the world-context step always
    takes its no-op path.
    """

    async def chat(
        self,
        stage: str,
        messages: list[ChatMessage],
        *,
        tools: list[dict] | None = None,
        tool_choice: ToolChoice | None = None,
    ) -> ChatResponse:
        logger.debug("EchoLLM stage=%s messages=%d", stage, len(messages))
        for message in reversed(messages):
            if message.role == "user":
                return ChatResponse(content=message.content)
        return ChatResponse()


# ---------------------------------------------------------------------------
# LLMError — raised by HttpLLM for all connection and protocol failures
# ---------------------------------------------------------------------------

class LLMError(RuntimeError):
    """Raised when the LLM backend cannot be reached or returns an error."""
