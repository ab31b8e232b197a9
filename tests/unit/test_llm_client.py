"""Tests for the OpenAI-compatible client."""

import json

import httpx
import pytest

from manugrader.grading.errors import TransportError
from manugrader.llm.openrouter import OpenAICompatibleClient, extract_text_and_usage


def _client(handler, **kwargs):
    return OpenAICompatibleClient(
        api_key="sk-test",
        base_url="https://example.test/api/v1",
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


def test_extract_chat_completion_payload():
    """Test the chat completions shape."""
    body = {
        "choices": [{"message": {"role": "assistant", "content": "hello"}}],
        "usage": {"prompt_tokens": 3, "completion_tokens": 1, "total_tokens": 4},
    }

    text, usage = extract_text_and_usage(body)

    assert text == "hello"
    assert usage.prompt_tokens == 3
    assert usage.response_tokens == 1


def test_extract_responses_payload():
    """Test the Responses-style shape."""
    body = {
        "output": [
            {"type": "reasoning", "content": []},
            {"type": "message", "content": [{"type": "output_text", "text": "answer"}]},
        ]
    }

    text, usage = extract_text_and_usage(body)

    assert text == "answer"
    assert usage is None


def test_extract_unknown_payload():
    """Test that unexpected shapes return None."""
    assert extract_text_and_usage({"error": "nope"}) is None
    assert extract_text_and_usage([1, 2]) is None


@pytest.mark.asyncio
async def test_complete_sends_system_and_headers():
    """Test request construction."""
    seen = {}

    def handler(request):
        seen["auth"] = request.headers["Authorization"]
        seen["title"] = request.headers.get("X-Title")
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return httpx.Response(
            200,
            json={
                "model": "openai/gpt-4o-mini",
                "choices": [{"message": {"content": "{\"ok\": true}"}}],
                "usage": {"prompt_tokens": 20, "completion_tokens": 4, "total_tokens": 24},
            },
        )

    client = _client(handler, title="manugrader")
    response = await client.complete(
        [{"role": "user", "content": "manuscript"}],
        model="openai/gpt-4o-mini",
        system="grade it",
    )
    await client.close()

    assert seen["auth"] == "Bearer sk-test"
    assert seen["title"] == "manugrader"
    assert seen["path"] == "/api/v1/chat/completions"
    assert seen["body"]["model"] == "openai/gpt-4o-mini"
    assert seen["body"]["messages"][0] == {"role": "system", "content": "grade it"}
    assert response.content == "{\"ok\": true}"
    assert response.usage.total_tokens == 24


@pytest.mark.asyncio
async def test_missing_usage_is_approximated():
    """Test the whitespace token estimate when usage is absent."""

    def handler(request):
        return httpx.Response(200, json={"choices": [{"message": {"content": "three word reply"}}]})

    client = _client(handler)
    response = await client.complete([{"role": "user", "content": "a b c d"}], model="m", system="sys")
    await client.close()

    assert response.usage.prompt_tokens == 5
    assert response.usage.response_tokens == 3
    assert response.usage.total_tokens == 8


@pytest.mark.asyncio
async def test_error_status_raises_transport_error():
    """Test that non-2xx responses become TransportError."""

    def handler(request):
        return httpx.Response(429, json={"error": {"message": "rate limited"}})

    client = _client(handler)
    with pytest.raises(TransportError, match="429"):
        await client.complete([{"role": "user", "content": "x"}], model="m")
    await client.close()


@pytest.mark.asyncio
async def test_non_json_body_raises_transport_error():
    """Test that an undecodable body becomes TransportError."""

    def handler(request):
        return httpx.Response(502, text="<html>Bad gateway</html>")

    client = _client(handler)
    with pytest.raises(TransportError):
        await client.complete([{"role": "user", "content": "x"}], model="m")
    await client.close()


@pytest.mark.asyncio
async def test_connection_error_raises_transport_error():
    """Test that httpx connection failures are wrapped."""

    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    client = _client(handler)
    with pytest.raises(TransportError):
        await client.complete([{"role": "user", "content": "x"}], model="m")
    await client.close()


@pytest.mark.asyncio
async def test_as_oracle_binds_model():
    """Test the oracle adapter."""
    seen = {}

    def handler(request):
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"choices": [{"message": {"content": "ok"}}]})

    client = _client(handler)
    oracle = client.as_oracle("openai/gpt-4o")
    response = await oracle("system text", "user text")
    await client.close()

    assert response.content == "ok"
    assert seen["body"]["model"] == "openai/gpt-4o"
    assert seen["body"]["messages"] == [
        {"role": "system", "content": "system text"},
        {"role": "user", "content": "user text"},
    ]
