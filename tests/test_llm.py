"""Tests for rpg_session.llm — HttpLLM and EchoLLM."""

import json

import httpx
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from rpg_session.llm import ChatMessage, EchoLLM, HttpLLM, LLMError, ToolCall, ToolFunction


# ---------------------------------------------------------------------------
# EchoLLM
# ---------------------------------------------------------------------------

class TestEchoLLM:
    async def test_returns_last_user_message(self) -> None:
        llm = EchoLLM()
        messages = [
            ChatMessage(role="system", content="rules"),
            ChatMessage(role="user", content="first"),
            ChatMessage(role="assistant", content="reply"),
            ChatMessage(role="user", content="[Aria] I look around"),
        ]
        result = await llm.chat("narrator", messages)
        assert result.content == "[Aria] I look around"
        assert not result.has_tool_calls

    async def test_no_user_message(self) -> None:
        result = await EchoLLM().chat("narrator", [ChatMessage(role="system", content="x")])
        assert result.content == ""


# ---------------------------------------------------------------------------
# Wire shape
# ---------------------------------------------------------------------------

class TestChatMessage:
    def test_plain_message_omits_tool_fields(self) -> None:
        assert ChatMessage(role="user", content="hi").to_wire() == {"role": "user", "content": "hi"}

    def test_tool_message(self) -> None:
        wire = ChatMessage(role="tool", content='{"ok": true}', tool_call_id="c1").to_wire()
        assert wire == {"role": "tool", "content": '{"ok": true}', "tool_call_id": "c1"}

    def test_assistant_with_tool_calls(self) -> None:
        call = ToolCall(id="c1", function=ToolFunction(name="start_combat", arguments="{}"))
        wire = ChatMessage(role="assistant", tool_calls=[call]).to_wire()
        assert wire["content"] == ""
        assert wire["tool_calls"] == [
            {"id": "c1", "type": "function", "function": {"name": "start_combat", "arguments": "{}"}},
        ]


# ---------------------------------------------------------------------------
# HttpLLM
# ---------------------------------------------------------------------------

def _mock_response(body: dict, status: int = 200) -> MagicMock:
    resp = MagicMock()
    resp.status_code = status
    resp.json.return_value = body
    resp.raise_for_status = MagicMock(
        side_effect=None if status < 400 else httpx.HTTPStatusError(
            "", request=MagicMock(), response=resp
        )
    )
    return resp


def _choice(content: str | None = "ok", tool_calls: list | None = None) -> dict:
    message: dict = {"role": "assistant", "content": content}
    if tool_calls is not None:
        message["tool_calls"] = tool_calls
    return {"choices": [{"message": message}]}


USER = [ChatMessage(role="user", content="I open the door")]


class TestHttpLLM:
    @pytest.fixture
    def llm(self) -> HttpLLM:
        return HttpLLM(provider_url="http://localhost:1234", model="mistral-7b")

    async def test_happy_path(self, llm: HttpLLM) -> None:
        mock_post = AsyncMock(return_value=_mock_response(_choice("  The door creaks.  ")))
        with patch("httpx.AsyncClient.post", mock_post):
            result = await llm.chat("narrator", USER)
        assert result.content == "The door creaks."
        assert result.tool_calls == []

    async def test_posts_to_correct_url(self, llm: HttpLLM) -> None:
        mock_post = AsyncMock(return_value=_mock_response(_choice()))
        with patch("httpx.AsyncClient.post", mock_post):
            await llm.chat("narrator", USER)
        assert mock_post.call_args[0][0] == "http://localhost:1234/v1/chat/completions"

    async def test_trailing_slash_stripped_from_url(self) -> None:
        llm = HttpLLM(provider_url="http://localhost:1234/")
        mock_post = AsyncMock(return_value=_mock_response(_choice()))
        with patch("httpx.AsyncClient.post", mock_post):
            await llm.chat("narrator", USER)
        assert mock_post.call_args[0][0] == "http://localhost:1234/v1/chat/completions"

    async def test_body_without_tools(self, llm: HttpLLM) -> None:
        mock_post = AsyncMock(return_value=_mock_response(_choice()))
        with patch("httpx.AsyncClient.post", mock_post):
            await llm.chat("world_context", USER)
        body = mock_post.call_args.kwargs["json"]
        assert body["model"] == "mistral-7b"
        assert body["messages"] == [{"role": "user", "content": "I open the door"}]
        assert "tools" not in body
        assert "tool_choice" not in body

    async def test_body_with_tools(self, llm: HttpLLM) -> None:
        tools = [{"type": "function", "function": {"name": "start_combat"}}]
        mock_post = AsyncMock(return_value=_mock_response(_choice()))
        with patch("httpx.AsyncClient.post", mock_post):
            await llm.chat("narrator", USER, tools=tools, tool_choice="auto")
        body = mock_post.call_args.kwargs["json"]
        assert body["tools"] == tools
        assert body["tool_choice"] == "auto"

    async def test_model_omitted_when_empty(self) -> None:
        llm = HttpLLM(provider_url="http://localhost:1234")
        mock_post = AsyncMock(return_value=_mock_response(_choice()))
        with patch("httpx.AsyncClient.post", mock_post):
            await llm.chat("narrator", USER)
        assert "model" not in mock_post.call_args.kwargs["json"]

    async def test_bearer_token_sent_when_api_key_set(self) -> None:
        llm = HttpLLM(provider_url="http://localhost:1234", api_key="secret")
        mock_post = AsyncMock(return_value=_mock_response(_choice()))
        with patch("httpx.AsyncClient.post", mock_post):
            await llm.chat("narrator", USER)
        assert mock_post.call_args.kwargs["headers"].get("Authorization") == "Bearer secret"

    async def test_no_auth_header_when_no_api_key(self, llm: HttpLLM) -> None:
        mock_post = AsyncMock(return_value=_mock_response(_choice()))
        with patch("httpx.AsyncClient.post", mock_post):
            await llm.chat("narrator", USER)
        assert "Authorization" not in mock_post.call_args.kwargs["headers"]

    async def test_tool_calls_parsed(self, llm: HttpLLM) -> None:
        args = json.dumps({"characterId": "charA", "ability": "dexterity", "dc": 15})
        body = _choice(None, [{
            "id": "call_9", "type": "function",
            "function": {"name": "request_ability_check", "arguments": args},
        }])
        mock_post = AsyncMock(return_value=_mock_response(body))
        with patch("httpx.AsyncClient.post", mock_post):
            result = await llm.chat("narrator", USER, tools=[{}])
        assert result.content == ""
        assert result.has_tool_calls
        assert result.tool_calls[0].id == "call_9"
        assert result.tool_calls[0].function.name == "request_ability_check"
        assert json.loads(result.tool_calls[0].function.arguments)["dc"] == 15

    async def test_malformed_response_raises_llm_error(self, llm: HttpLLM) -> None:
        mock_post = AsyncMock(return_value=_mock_response({"results": [{"text": "wrong format"}]}))
        with patch("httpx.AsyncClient.post", mock_post):
            with pytest.raises(LLMError, match="Unexpected response format"):
                await llm.chat("narrator", USER)

    async def test_http_error_raises_llm_error(self, llm: HttpLLM) -> None:
        mock_post = AsyncMock(return_value=_mock_response({}, status=500))
        with patch("httpx.AsyncClient.post", mock_post):
            with pytest.raises(LLMError, match="HTTP 500"):
                await llm.chat("narrator", USER)

    async def test_connect_error_raises_llm_error(self, llm: HttpLLM) -> None:
        mock_post = AsyncMock(side_effect=httpx.ConnectError("refused"))
        with patch("httpx.AsyncClient.post", mock_post):
            with pytest.raises(LLMError, match="Cannot connect"):
                await llm.chat("narrator", USER)

    async def test_timeout_raises_llm_error(self, llm: HttpLLM) -> None:
        mock_post = AsyncMock(side_effect=httpx.ReadTimeout("slow"))
        with patch("httpx.AsyncClient.post", mock_post):
            with pytest.raises(LLMError, match="timed out"):
                await llm.chat("narrator", USER)

    async def test_non_json_body(self, llm: HttpLLM) -> None:
        resp = _mock_response({})
        resp.json.side_effect = ValueError("not json")
        mock_post = AsyncMock(return_value=resp)
        with patch("httpx.AsyncClient.post", mock_post):
            with pytest.raises(LLMError, match="non-JSON"):
                await llm.chat("narrator", USER)
