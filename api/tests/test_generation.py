"""
Tests for the generation client.

Google calls run against httpx.MockTransport; SDK-backed providers use a
patched client factory returning MagicMock/AsyncMock.
"""

import asyncio
import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import openai
import pytest

from services import generation
from services.bot_config import ProviderConfig, ProviderKind
from services.bot_errors import ProviderError


def _config(provider=ProviderKind.GOOGLE, **overrides):
    values = dict(
        provider=provider,
        base_url="https://generativelanguage.googleapis.com/v1beta",
        api_key="k",
        model_name="gemini-2.0-flash",
        temperature=0.3,
        system_instruction="Be brief.",
    )
    values.update(overrides)
    return ProviderConfig(**values)


def _google(handler, config=None):
    async def run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            return await generation.generate_text("Hello?", config or _config(), http_client=client)
    return asyncio.run(run())


def test_google_request_shape():
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"candidates": [{"content": {"parts": [{"text": "Hi!"}]}}]})

    assert _google(handler) == "Hi!"
    assert seen["url"].startswith(
        "https://generativelanguage.googleapis.com/v1beta/models/gemini-2.0-flash:generateContent"
    )
    assert "key=k" in seen["url"]
    assert seen["body"]["contents"][0]["parts"][0]["text"] == "Hello?"
    assert seen["body"]["generationConfig"]["temperature"] == 0.3


def test_google_non_2xx_is_provider_error():
    with pytest.raises(ProviderError) as exc:
        _google(lambda request: httpx.Response(429, json={"error": "quota"}))
    assert exc.value.status_code == 429


def test_google_unexpected_shape():
    with pytest.raises(ProviderError):
        _google(lambda request: httpx.Response(200, json={"candidates": []}))


def test_google_timeout():
    def handler(request):
        raise httpx.ReadTimeout("slow", request=request)

    with pytest.raises(ProviderError):
        _google(handler)


def test_google_requires_key():
    with pytest.raises(ProviderError):
        asyncio.run(generation.generate_text("x", _config(api_key=None)))


def _chat_response(text):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=text))])


def test_chat_completion_messages():
    client = MagicMock()
    client.chat.completions.create = AsyncMock(return_value=_chat_response("pong"))
    config = _config(ProviderKind.OLLAMA, base_url="http://localhost:11434/v1", api_key=None, model_name="llama3")

    with patch.object(generation, "_openai_client", return_value=client):
        assert asyncio.run(generation.generate_text("ping", config)) == "pong"

    kwargs = client.chat.completions.create.call_args.kwargs
    assert kwargs["model"] == "llama3"
    assert kwargs["messages"] == [
        {"role": "system", "content": "Be brief."},
        {"role": "user", "content": "ping"},
    ]
    assert kwargs["temperature"] == 0.3


def test_openai_requires_key():
    with pytest.raises(ProviderError):
        asyncio.run(generation.generate_text("x", _config(ProviderKind.OPENAI, api_key=None)))


def test_chat_completion_errors_become_provider_errors():
    client = MagicMock()
    client.chat.completions.create = AsyncMock(side_effect=openai.APIConnectionError(request=httpx.Request("POST", "http://x")))
    with patch.object(generation, "_openai_client", return_value=client):
        with pytest.raises(ProviderError):
            asyncio.run(generation.generate_text("x", _config(ProviderKind.CUSTOM, base_url="http://x")))


def test_chat_completion_empty_response():
    client = MagicMock()
    client.chat.completions.create = AsyncMock(return_value=_chat_response(None))
    with patch.object(generation, "_openai_client", return_value=client):
        with pytest.raises(ProviderError):
            asyncio.run(generation.generate_text("x", _config(ProviderKind.OPENAI, base_url="https://api.openai.com/v1")))


def test_anthropic_messages():
    client = MagicMock()
    client.messages.create = AsyncMock(return_value=SimpleNamespace(
        content=[SimpleNamespace(type="text", text='{"action": "REPLY"}')]
    ))
    config = _config(ProviderKind.ANTHROPIC, base_url=None, model_name="claude-sonnet-4-5")

    with patch.object(generation, "_anthropic_client", return_value=client):
        assert asyncio.run(generation.generate_text("x", config)) == '{"action": "REPLY"}'

    kwargs = client.messages.create.call_args.kwargs
    assert kwargs["system"] == "Be brief."
    assert kwargs["messages"] == [{"role": "user", "content": "x"}]
