"""OpenAI-compatible chat client used for OpenRouter and Poe."""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from manugrader.grading.errors import TransportError
from manugrader.llm.base import (
    CompletionResponse,
    LLMClient,
    TokenUsage,
    approximate_token_count,
)

logger = logging.getLogger(__name__)

_PREVIEW_CHARS = 500


class OpenAICompatibleClient(LLMClient):
    """Chat completions client for OpenAI-compatible providers.

    No transport-level retry is performed here; callers own the retry
    policy.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://openrouter.ai/api/v1",
        provider: str = "openrouter",
        referer: str | None = None,
        title: str | None = None,
        timeout: float = 120.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key
        self.provider = provider
        self.base_url = base_url.rstrip("/")

        headers = {"Authorization": f"Bearer {api_key}"}
        if referer:
            headers["HTTP-Referer"] = referer
        if title:
            headers["X-Title"] = title

        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def complete(
        self,
        messages: list[dict[str, str]],
        model: str,
        system: str | None = None,
    ) -> CompletionResponse:
        """Send completion request to the provider."""
        built = self._build_messages(messages, system)
        payload = {"model": model, "messages": built}

        try:
            response = await self._client.post("/chat/completions", json=payload)
        except httpx.HTTPError as e:
            raise TransportError(f"{self.provider} request failed: {e}") from e

        body_text = response.text
        try:
            body = json.loads(body_text)
        except json.JSONDecodeError as e:
            raise TransportError(
                f"failed to parse {self.provider} response as JSON: {body_text[:_PREVIEW_CHARS]}"
            ) from e

        if response.is_error:
            raise TransportError(
                f"{self.provider} call failed with status {response.status_code}: "
                f"{body_text[:_PREVIEW_CHARS]}"
            )

        extracted = extract_text_and_usage(body)
        if extracted is None:
            raise TransportError(
                f"unexpected {self.provider} response payload: {body_text[:_PREVIEW_CHARS]}"
            )
        text, usage = extracted

        prompt_tokens = approximate_token_count("\n".join(m["content"] for m in built))
        usage = usage or TokenUsage()
        if usage.prompt_tokens == 0:
            usage.prompt_tokens = prompt_tokens
        if usage.response_tokens == 0:
            usage.response_tokens = approximate_token_count(text)
        usage.total_tokens = usage.prompt_tokens + usage.response_tokens

        logger.debug(
            "%s/%s returned %d chars (%d tokens)",
            self.provider,
            model,
            len(text),
            usage.total_tokens,
        )
        return CompletionResponse(
            content=text,
            model=body.get("model", model),
            usage=usage,
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    def _build_messages(
        self, messages: list[dict[str, str]], system: str | None
    ) -> list[dict[str, str]]:
        """Build messages list with optional system prompt."""
        result = []
        if system:
            result.append({"role": "system", "content": system})
        result.extend(messages)
        return result


def extract_text_and_usage(body: Any) -> tuple[str, TokenUsage | None] | None:
    """Pull the reply text and usage out of a provider payload.

    Understands Responses-style payloads (``output[].content[]``) and
    chat-completions payloads (``choices[].message.content``). Returns None
    for anything else.
    """
    if not isinstance(body, dict):
        return None

    usage = _parse_usage(body.get("usage"))

    output = body.get("output")
    if isinstance(output, list):
        text = ""
        for item in output:
            if not isinstance(item, dict) or item.get("type") != "message":
                continue
            for content in item.get("content") or []:
                if isinstance(content, dict) and content.get("type") in ("output_text", "text"):
                    text = content.get("text") or ""
                    break
            else:
                continue
            break
        return text, usage

    choices = body.get("choices")
    if isinstance(choices, list):
        text = ""
        for choice in choices:
            message = choice.get("message") if isinstance(choice, dict) else None
            if isinstance(message, dict) and message.get("content") is not None:
                text = message["content"]
                break
        return text, usage

    return None


def _parse_usage(raw: Any) -> TokenUsage | None:
    if not isinstance(raw, dict):
        return None
    return TokenUsage(
        prompt_tokens=int(raw.get("prompt_tokens") or 0),
        response_tokens=int(raw.get("completion_tokens") or 0),
        total_tokens=int(raw.get("total_tokens") or 0),
    )
