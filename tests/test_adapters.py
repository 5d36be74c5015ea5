"""
Tests for the provider adapters.
Run with: pytest tests/test_adapters.py
"""

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from switchboard.adapters import (
    AnthropicAdapter,
    GoogleAdapter,
    OpenAIAdapter,
    OpenRouterAdapter,
    build_adapters,
)
from switchboard.config import DEFAULTS
from switchboard.errors import (
    AdapterRequestError,
    AdapterResponseShapeError,
    AdapterTimeoutError,
    InvalidRequest,
)
from switchboard.routing import Provider
from switchboard.turns import normalize_turns

HI = [{"role": "user", "content": "hi"}]

CONVERSATION = [
    {"role": "system", "content": "Be brief."},
    {"role": "user", "content": "hi"},
    {"role": "assistant", "content": "hello"},
    {"role": "system", "content": "Ignored."},
    {"role": "user", "content": "how are you?"},
]


def _mock_client(mock_client_cls, body=None, status=200, reason="OK"):
    """Wire a patched httpx.AsyncClient to return one response."""
    mock_resp = MagicMock()
    mock_resp.status_code = status
    mock_resp.reason_phrase = reason
    mock_resp.json.return_value = body

    mock_client = AsyncMock()
    mock_client.post.return_value = mock_resp
    mock_client.__aenter__ = AsyncMock(return_value=mock_client)
    mock_client.__aexit__ = AsyncMock(return_value=False)
    mock_client_cls.return_value = mock_client
    return mock_client


def _openai_body(text="hello"):
    return {"choices": [{"message": {"role": "assistant", "content": text}}]}


# ---------------------------------------------------------------------------
# OpenAI
# ---------------------------------------------------------------------------

class TestOpenAIAdapter:
    @pytest.mark.asyncio
    async def test_request_shape(self):
        """openai/gpt-4.1 goes out bare, with bearer auth and defaults."""
        adapter = OpenAIAdapter()
        with patch("switchboard.adapters.base.httpx.AsyncClient") as mock_client_cls:
            mock_client = _mock_client(mock_client_cls, _openai_body("hey there"))
            result = await adapter.send(HI, "openai/gpt-4.1", "sk-abc")

        assert result.content == "hey there"
        assert result.provider is Provider.OPENAI
        assert result.cost_usd is None

        args, kwargs = mock_client.post.call_args
        assert args[0] == "https://api.openai.com/v1/chat/completions"
        assert kwargs["json"] == {
            "model": "gpt-4.1",
            "messages": [{"role": "user", "content": "hi"}],
            "temperature": 0.7,
            "max_tokens": 1000,
        }
        assert kwargs["headers"]["Authorization"] == "Bearer sk-abc"
        assert kwargs["params"] is None

    def test_system_turns_stay_inline(self):
        adapter = OpenAIAdapter()
        req = adapter.build_request(normalize_turns(CONVERSATION), "gpt-4o", "sk-x")
        assert [m["role"] for m in req.json["messages"]] == [
            "system", "user", "assistant", "system", "user",
        ]

    @pytest.mark.asyncio
    async def test_http_error_status(self):
        adapter = OpenAIAdapter()
        with patch("switchboard.adapters.base.httpx.AsyncClient") as mock_client_cls:
            _mock_client(mock_client_cls, {"error": {"message": "bad key sk-abc"}},
                         status=401, reason="Unauthorized")
            with pytest.raises(AdapterRequestError) as exc_info:
                await adapter.send(HI, "gpt-4o", "sk-abc")

        err = exc_info.value
        assert err.status == 401
        assert err.message == "OpenAI API error: HTTP 401 Unauthorized"
        assert "sk-abc" not in err.message

    @pytest.mark.asyncio
    async def test_missing_choices_is_malformed(self):
        adapter = OpenAIAdapter()
        with patch("switchboard.adapters.base.httpx.AsyncClient") as mock_client_cls:
            _mock_client(mock_client_cls, {"choices": []})
            with pytest.raises(AdapterResponseShapeError):
                await adapter.send(HI, "gpt-4o", "sk-abc")

    @pytest.mark.asyncio
    async def test_non_text_content_is_malformed(self):
        adapter = OpenAIAdapter()
        with patch("switchboard.adapters.base.httpx.AsyncClient") as mock_client_cls:
            _mock_client(mock_client_cls, _openai_body(None))
            with pytest.raises(AdapterResponseShapeError):
                await adapter.send(HI, "gpt-4o", "sk-abc")

    @pytest.mark.asyncio
    async def test_non_json_body(self):
        adapter = OpenAIAdapter()
        with patch("switchboard.adapters.base.httpx.AsyncClient") as mock_client_cls:
            mock_client = _mock_client(mock_client_cls)
            mock_client.post.return_value.json.side_effect = ValueError("no json")
            with pytest.raises(AdapterResponseShapeError, match="not JSON"):
                await adapter.send(HI, "gpt-4o", "sk-abc")

    @pytest.mark.asyncio
    async def test_timeout(self):
        adapter = OpenAIAdapter(timeout=2)
        with patch("switchboard.adapters.base.httpx.AsyncClient") as mock_client_cls:
            mock_client = _mock_client(mock_client_cls)
            mock_client.post.side_effect = httpx.ReadTimeout("timed out")
            with pytest.raises(AdapterTimeoutError) as exc_info:
                await adapter.send(HI, "gpt-4o", "sk-abc")
        assert exc_info.value.status is None
        assert "timed out after 2s" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_connection_error(self):
        adapter = OpenAIAdapter()
        with patch("switchboard.adapters.base.httpx.AsyncClient") as mock_client_cls:
            mock_client = _mock_client(mock_client_cls)
            mock_client.post.side_effect = httpx.ConnectError("connection refused")
            with pytest.raises(AdapterRequestError) as exc_info:
                await adapter.send(HI, "gpt-4o", "sk-abc")
        assert "request failed" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_bad_turns_rejected_before_io(self):
        adapter = OpenAIAdapter()
        with patch("switchboard.adapters.base.httpx.AsyncClient") as mock_client_cls:
            with pytest.raises(InvalidRequest):
                await adapter.send([{"role": "tool", "content": "x"}], "gpt-4o", "sk-abc")
        mock_client_cls.assert_not_called()


# ---------------------------------------------------------------------------
# Anthropic
# ---------------------------------------------------------------------------

class TestAnthropicAdapter:
    @pytest.mark.asyncio
    async def test_system_lifted_and_headers(self):
        adapter = AnthropicAdapter()
        body = {"content": [{"type": "text", "text": "Doing well."}]}
        with patch("switchboard.adapters.base.httpx.AsyncClient") as mock_client_cls:
            mock_client = _mock_client(mock_client_cls, body)
            result = await adapter.send(CONVERSATION, "anthropic/claude-sonnet-4-0", "sk-ant-1")

        assert result.content == "Doing well."
        args, kwargs = mock_client.post.call_args
        assert args[0] == "https://api.anthropic.com/v1/messages"
        assert kwargs["headers"]["x-api-key"] == "sk-ant-1"
        assert kwargs["headers"]["anthropic-version"] == "2023-06-01"
        assert "Authorization" not in kwargs["headers"]

        sent = kwargs["json"]
        assert sent["model"] == "claude-sonnet-4-0"
        assert sent["system"] == "Be brief."
        assert sent["max_tokens"] == 1000
        assert "temperature" not in sent
        assert sent["messages"] == [
            {"role": "user", "content": "hi"},
            {"role": "assistant", "content": "hello"},
            {"role": "user", "content": "how are you?"},
        ]

    def test_no_system_field_without_system_turn(self):
        req = AnthropicAdapter().build_request(normalize_turns(HI), "claude-3-haiku", "k")
        assert "system" not in req.json

    @pytest.mark.asyncio
    async def test_empty_content_is_malformed(self):
        adapter = AnthropicAdapter()
        with patch("switchboard.adapters.base.httpx.AsyncClient") as mock_client_cls:
            _mock_client(mock_client_cls, {"content": []})
            with pytest.raises(AdapterResponseShapeError) as exc_info:
                await adapter.send(HI, "claude-3-haiku", "sk-ant-1")
        assert exc_info.value.message.startswith("Anthropic API returned a malformed response")


# ---------------------------------------------------------------------------
# Google
# ---------------------------------------------------------------------------

class TestGoogleAdapter:
    @pytest.mark.asyncio
    async def test_role_mapping_and_key_param(self):
        adapter = GoogleAdapter()
        body = {"candidates": [{"content": {"parts": [{"text": "Fine, thanks."}]}}]}
        with patch("switchboard.adapters.base.httpx.AsyncClient") as mock_client_cls:
            mock_client = _mock_client(mock_client_cls, body)
            result = await adapter.send(CONVERSATION, "google/gemini-2.5-pro", "AIza-test-key")

        assert result.content == "Fine, thanks."
        args, kwargs = mock_client.post.call_args
        assert args[0] == (
            "https://generativelanguage.googleapis.com/v1beta/models/gemini-2.5-pro:generateContent"
        )
        assert kwargs["params"] == {"key": "AIza-test-key"}
        assert "Authorization" not in kwargs["headers"]

        sent = kwargs["json"]
        assert sent["contents"] == [
            {"role": "user", "parts": [{"text": "hi"}]},
            {"role": "model", "parts": [{"text": "hello"}]},
            {"role": "user", "parts": [{"text": "how are you?"}]},
        ]
        assert sent["systemInstruction"] == {"parts": [{"text": "Be brief."}]}
        assert sent["generationConfig"] == {"temperature": 0.7, "maxOutputTokens": 1000}

    @pytest.mark.asyncio
    async def test_missing_candidates_is_malformed(self):
        adapter = GoogleAdapter()
        with patch("switchboard.adapters.base.httpx.AsyncClient") as mock_client_cls:
            _mock_client(mock_client_cls, {"promptFeedback": {"blockReason": "SAFETY"}})
            with pytest.raises(AdapterResponseShapeError):
                await adapter.send(HI, "gemini-2.0-flash", "AIza-test-key")

    @pytest.mark.asyncio
    async def test_key_scrubbed_from_transport_errors(self):
        adapter = GoogleAdapter()
        with patch("switchboard.adapters.base.httpx.AsyncClient") as mock_client_cls:
            mock_client = _mock_client(mock_client_cls)
            mock_client.post.side_effect = httpx.ConnectError(
                "failed to reach https://example.test/?key=AIza-test-key"
            )
            with pytest.raises(AdapterRequestError) as exc_info:
                await adapter.send(HI, "gemini-2.0-flash", "AIza-test-key")
        assert "AIza-test-key" not in exc_info.value.message


# ---------------------------------------------------------------------------
# OpenRouter
# ---------------------------------------------------------------------------

class TestOpenRouterAdapter:
    @pytest.mark.asyncio
    async def test_full_model_id_and_headers(self):
        adapter = OpenRouterAdapter()
        with patch("switchboard.adapters.base.httpx.AsyncClient") as mock_client_cls:
            mock_client = _mock_client(mock_client_cls, _openai_body("via router"))
            result = await adapter.send(HI, "anthropic/claude-sonnet-4-0", "or-xyz")

        assert result.provider is Provider.OPENROUTER
        args, kwargs = mock_client.post.call_args
        assert args[0] == "https://openrouter.ai/api/v1/chat/completions"
        assert kwargs["json"]["model"] == "anthropic/claude-sonnet-4-0"
        assert kwargs["headers"]["Authorization"] == "Bearer or-xyz"
        assert kwargs["headers"]["HTTP-Referer"]
        assert kwargs["headers"]["X-Title"] == "Switchboard"

    @pytest.mark.asyncio
    async def test_legacy_id_unchanged(self):
        adapter = OpenRouterAdapter()
        with patch("switchboard.adapters.base.httpx.AsyncClient") as mock_client_cls:
            mock_client = _mock_client(mock_client_cls, _openai_body())
            await adapter.send(HI, "claude-3-haiku", "or-xyz")
        assert mock_client.post.call_args.kwargs["json"]["model"] == "claude-3-haiku"

    def test_extract_cost_top_level(self):
        assert OpenRouterAdapter().extract_cost({"cost_usd": 0.0042}) == 0.0042

    def test_extract_cost_from_usage(self):
        data = {"usage": {"prompt_tokens": 10, "completion_tokens": 5, "cost": "0.001"}}
        assert OpenRouterAdapter().extract_cost(data) == 0.001

    def test_extract_cost_missing(self):
        assert OpenRouterAdapter().extract_cost({"usage": {"total_tokens": 15}}) is None
        assert OpenRouterAdapter().extract_cost({"cost_usd": "n/a"}) is None

    @pytest.mark.asyncio
    async def test_cost_on_response(self):
        adapter = OpenRouterAdapter()
        body = _openai_body()
        body["usage"] = {"cost": 0.0125}
        with patch("switchboard.adapters.base.httpx.AsyncClient") as mock_client_cls:
            _mock_client(mock_client_cls, body)
            result = await adapter.send(HI, "openai/gpt-4.1", "or-xyz")
        assert result.cost_usd == 0.0125


# ---------------------------------------------------------------------------
# Construction from config
# ---------------------------------------------------------------------------

class TestBuildAdapters:
    def test_all_providers_present(self):
        adapters = build_adapters(DEFAULTS)
        assert set(adapters) == set(Provider)
        assert isinstance(adapters[Provider.OPENROUTER], OpenRouterAdapter)
        assert adapters[Provider.OPENAI].timeout == 30

    def test_generation_and_per_provider_overrides(self):
        cfg = {
            "generation": {"temperature": 0.2, "max_tokens": 500},
            "providers": {
                "anthropic": {"max_tokens": 4000, "version": "2024-01-01"},
                "openrouter": {"title": "My App"},
            },
            "dispatch": {"timeout": 12},
        }
        adapters = build_adapters(cfg)
        assert adapters[Provider.OPENAI].temperature == 0.2
        assert adapters[Provider.OPENAI].max_tokens == 500
        assert adapters[Provider.ANTHROPIC].max_tokens == 4000
        assert adapters[Provider.ANTHROPIC].version == "2024-01-01"
        assert adapters[Provider.OPENROUTER].title == "My App"
        assert adapters[Provider.GOOGLE].timeout == 12
        assert adapters[Provider.GOOGLE].url == "https://generativelanguage.googleapis.com/v1beta"
