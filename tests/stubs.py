"""Test doubles shared across the test modules."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

from rpg_session.llm import ChatMessage, ChatResponse, ToolCall, ToolFunction


def tool_call(name: str, call_id: str = "call_1", **arguments: Any) -> ToolCall:
    return ToolCall(id=call_id, function=ToolFunction(name=name, arguments=json.dumps(arguments)))


def tools_response(*calls: ToolCall, content: str = "") -> ChatResponse:
    return ChatResponse(content=content, tool_calls=list(calls))


def text_response(content: str) -> ChatResponse:
    return ChatResponse(content=content)


@dataclass
class RecordedCall:
    stage: str
    messages: list[ChatMessage]
    tools: list[dict] | None
    tool_choice: str | None


@dataclass
class StubLLM:
    """Deterministic LLM stand-in for tests.

    Provide a dict mapping stage name → list of responses (in call order).
    A response may be an exception instance, which is raised instead.
    Raises AssertionError if a stage is called more times than responses
    were provided.
    """

    responses: dict[str, list[ChatResponse | Exception]]
    calls: list[RecordedCall] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.responses = {k: list(v) for k, v in self.responses.items()}

    async def chat(
        self,
        stage: str,
        messages: list[ChatMessage],
        *,
        tools: list[dict] | None = None,
        tool_choice: str | None = None,
    ) -> ChatResponse:
        # Snapshot: the caller keeps appending to the same list
        self.calls.append(RecordedCall(
            stage, [m.model_copy(deep=True) for m in messages], tools, tool_choice,
        ))
        queue = self.responses.get(stage)
        if not queue:
            raise AssertionError(
                f"StubLLM: unexpected call to stage={stage!r} (no responses queued)"
            )
        response = queue.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def calls_for(self, stage: str) -> list[RecordedCall]:
        return [c for c in self.calls if c.stage == stage]

    def assert_exhausted(self) -> None:
        """Assert every queued response was consumed — catches missing LLM calls."""
        leftover = {k: v for k, v in self.responses.items() if v}
        if leftover:
            raise AssertionError(f"StubLLM: unused responses remain: {leftover}")


EMPTY_PATCH = text_response('{"worldMemory": {}, "characterConditions": []}')
