"""
Unit tests for the OpenAI completion wrapper.
"""
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import openai
import pytest

from app.config import settings
from app.services.completion import CompletionClient, build_completion_client, is_rate_limited


def _response(content: str | None = "{}", finish_reason: str = "stop", choices: bool = True):
    return SimpleNamespace(
        choices=(
            [SimpleNamespace(finish_reason=finish_reason, message=SimpleNamespace(content=content))]
            if choices
            else []
        ),
        usage=SimpleNamespace(prompt_tokens=120, completion_tokens=40),
    )


def _client(response) -> CompletionClient:
    client = CompletionClient(api_key="test-key", model="test-model")
    client._client = MagicMock()
    client._client.chat.completions.create = AsyncMock(return_value=response)
    return client


class TestIsRateLimited:
    def test_openai_rate_limit_error(self):
        request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
        err = openai.RateLimitError(
            "Rate limit reached", response=httpx.Response(429, request=request), body=None
        )

        assert is_rate_limited(err)

    def test_status_code_attribute(self):
        err = RuntimeError("too many requests")
        err.status_code = 429

        assert is_rate_limited(err)

    def test_other_errors(self):
        assert not is_rate_limited(TimeoutError("read timeout"))
        err = RuntimeError("server error")
        err.status_code = 500
        assert not is_rate_limited(err)


class TestCompletionClient:
    @pytest.mark.asyncio
    async def test_returns_message_content(self):
        client = _client(_response('{"optimizedTitle": "x"}'))

        text = await client.complete("prompt", max_tokens=4096, force_json=True)

        assert text == '{"optimizedTitle": "x"}'
        kwargs = client._client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "test-model"
        assert kwargs["max_completion_tokens"] == 4096
        assert kwargs["response_format"] == {"type": "json_object"}
        assert kwargs["messages"] == [{"role": "user", "content": "prompt"}]

    @pytest.mark.asyncio
    async def test_plain_text_request_has_no_response_format(self):
        client = _client(_response("hello"))

        await client.complete("prompt", max_tokens=10)

        assert "response_format" not in client._client.chat.completions.create.call_args.kwargs

    @pytest.mark.asyncio
    async def test_empty_content_is_empty_string(self):
        client = _client(_response(None))

        assert await client.complete("prompt", max_tokens=10) == ""

    @pytest.mark.asyncio
    async def test_truncated_answer_raises(self):
        client = _client(_response("{", finish_reason="length"))

        with pytest.raises(ValueError, match="truncated"):
            await client.complete("prompt", max_tokens=10)

    @pytest.mark.asyncio
    async def test_no_choices_raises(self):
        client = _client(_response(choices=False))

        with pytest.raises(ValueError, match="no choices"):
            await client.complete("prompt", max_tokens=10)


class TestBuildCompletionClient:
    def test_none_without_api_key(self, monkeypatch):
        monkeypatch.setattr(settings, "openai_api_key", "")

        assert build_completion_client() is None

    def test_client_with_api_key(self, monkeypatch):
        monkeypatch.setattr(settings, "openai_api_key", "sk-test")

        assert isinstance(build_completion_client(), CompletionClient)
