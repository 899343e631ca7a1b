"""
Tests for the provider clients with mocked SDKs.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import anthropic
import openai
import pytest
from google.api_core import exceptions as google_exceptions

from scene_engine.core.errors import ProviderError
from scene_engine.services import ClaudeClient, GeminiClient, OpenAIClient


async def _aiter(items):
    for item in items:
        yield item


def _openai_chunk(content):
    return SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=content))])


class _ClaudeStream:
    def __init__(self, texts):
        self.text_stream = _aiter(texts)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


class TestOpenAIClient:
    """OpenAI-compatible chat completions."""

    @pytest.fixture
    def client(self):
        client = OpenAIClient(api_key="test", model="gpt-4o-mini", provider="openrouter")
        client._client = MagicMock()
        return client

    @pytest.mark.asyncio
    async def test_complete(self, client):
        message = SimpleNamespace(content="Scene text.")
        client._client.chat.completions.create = AsyncMock(
            return_value=SimpleNamespace(choices=[SimpleNamespace(message=message)])
        )

        assert await client.complete("system", "user", temperature=0.3, max_tokens=500) == "Scene text."

        kwargs = client._client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["messages"][0] == {"role": "system", "content": "system"}
        assert kwargs["temperature"] == 0.3

    @pytest.mark.asyncio
    async def test_empty_response(self, client):
        message = SimpleNamespace(content="")
        client._client.chat.completions.create = AsyncMock(
            return_value=SimpleNamespace(choices=[SimpleNamespace(message=message)])
        )
        with pytest.raises(ProviderError, match="empty"):
            await client.complete("system", "user")

    @pytest.mark.asyncio
    async def test_sdk_error_wrapped(self, client):
        client._client.chat.completions.create = AsyncMock(side_effect=openai.OpenAIError("quota"))

        with pytest.raises(ProviderError) as exc_info:
            await client.complete("system", "user")

        assert exc_info.value.provider == "openrouter"
        assert isinstance(exc_info.value.__cause__, openai.OpenAIError)

    @pytest.mark.asyncio
    async def test_stream_skips_empty_deltas(self, client):
        chunks = [_openai_chunk("Once "), _openai_chunk(None), _openai_chunk("upon")]
        client._client.chat.completions.create = AsyncMock(return_value=_aiter(chunks))

        parts = [part async for part in client.stream("system", "user")]

        assert parts == ["Once ", "upon"]
        assert client._client.chat.completions.create.call_args.kwargs["stream"] is True


class TestClaudeClient:
    """Anthropic messages API."""

    @pytest.mark.asyncio
    async def test_complete_joins_text_blocks(self):
        client = ClaudeClient(api_key="test", model="claude-3-5-haiku-20241022")
        client._client = MagicMock()
        client._client.messages.create = AsyncMock(
            return_value=SimpleNamespace(
                content=[
                    SimpleNamespace(type="text", text="First. "),
                    SimpleNamespace(type="tool_use", text="ignored"),
                    SimpleNamespace(type="text", text="Second."),
                ]
            )
        )

        assert await client.complete("system", "user") == "First. Second."
        assert client._client.messages.create.call_args.kwargs["system"] == "system"

    @pytest.mark.asyncio
    async def test_stream(self):
        client = ClaudeClient(api_key="test", model="claude-3-5-haiku-20241022")
        client._client = MagicMock()
        client._client.messages.stream = MagicMock(return_value=_ClaudeStream(["a", "", "b"]))

        assert [part async for part in client.stream("system", "user")] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_error_wrapped(self):
        client = ClaudeClient(api_key="test", model="claude-3-5-haiku-20241022")
        client._client = MagicMock()
        client._client.messages.create = AsyncMock(side_effect=anthropic.AnthropicError("overloaded"))

        with pytest.raises(ProviderError, match="overloaded"):
            await client.complete("system", "user")


class TestGeminiClient:
    """Google Gemini."""

    @pytest.mark.asyncio
    async def test_complete_prepends_system_prompt(self):
        client = GeminiClient(api_key="test", model="gemini-2.5-flash-lite", timeout=30)
        client._client = MagicMock()
        client._client.generate_content_async = AsyncMock(return_value=SimpleNamespace(text="Scene."))

        assert await client.complete("system", "user") == "Scene."

        call = client._client.generate_content_async.call_args
        assert call.args[0] == "system\n\n---\n\nuser"
        assert call.kwargs["request_options"] == {"timeout": 30}

    @pytest.mark.asyncio
    async def test_stream(self):
        client = GeminiClient(api_key="test", model="gemini-2.5-flash-lite")
        client._client = MagicMock()
        chunks = [SimpleNamespace(text="x"), SimpleNamespace(text="y")]
        client._client.generate_content_async = AsyncMock(return_value=_aiter(chunks))

        assert [part async for part in client.stream("system", "user")] == ["x", "y"]

    @pytest.mark.asyncio
    async def test_api_error_wrapped(self):
        client = GeminiClient(api_key="test", model="gemini-2.5-flash-lite")
        client._client = MagicMock()
        client._client.generate_content_async = AsyncMock(
            side_effect=google_exceptions.ResourceExhausted("quota")
        )

        with pytest.raises(ProviderError) as exc_info:
            await client.complete("system", "user")

        assert exc_info.value.provider == "gemini"
