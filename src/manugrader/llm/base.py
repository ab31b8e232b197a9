"""Base LLM client protocol and types."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass


@dataclass
class TokenUsage:
    """Token accounting for one or more calls."""

    prompt_tokens: int = 0
    response_tokens: int = 0
    total_tokens: int = 0

    def __add__(self, other: TokenUsage) -> TokenUsage:
        return TokenUsage(
            prompt_tokens=self.prompt_tokens + other.prompt_tokens,
            response_tokens=self.response_tokens + other.response_tokens,
            total_tokens=self.total_tokens + other.total_tokens,
        )


@dataclass
class CompletionResponse:
    """Response from LLM completion."""

    content: str
    model: str = ""
    usage: TokenUsage | None = None


# (system prompt, user text) -> response; one chat round-trip
Oracle = Callable[[str, str], Awaitable[CompletionResponse]]


class LLMClient(ABC):
    """Abstract base class for LLM clients."""

    @abstractmethod
    async def complete(
        self,
        messages: list[dict[str, str]],
        model: str,
        system: str | None = None,
    ) -> CompletionResponse:
        """Send completion request to LLM."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Close any open connections."""
        ...

    def as_oracle(self, model: str) -> Oracle:
        """Bind a model name, returning a single-turn oracle callable."""

        async def _oracle(system_prompt: str, user_text: str) -> CompletionResponse:
            return await self.complete(
                [{"role": "user", "content": user_text}],
                model=model,
                system=system_prompt,
            )

        return _oracle


def approximate_token_count(text: str) -> int:
    """Whitespace token estimate used when a provider omits usage figures."""
    return len(text.split())
