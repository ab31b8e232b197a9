"""LLM client factory with provider-prefixed model resolution."""

from __future__ import annotations

import os
from dataclasses import dataclass

from manugrader.config.settings import ManugraderConfig
from manugrader.llm.base import LLMClient, Oracle
from manugrader.llm.openrouter import OpenAICompatibleClient

SUPPORTED_PROVIDERS = ("openrouter", "poe")


@dataclass
class ResolvedModel:
    """Result of model resolution."""

    provider: str
    provider_id: str  # The provider-specific model ID
    raw_input: str


def resolve_model(model: str) -> ResolvedModel:
    """Split a provider-prefixed model id such as ``openrouter/openai/gpt-4o``."""
    model_stripped = model.strip()
    provider, sep, name = model_stripped.partition("/")
    if not sep:
        raise ValueError(
            "model must be prefixed with provider, e.g. 'openrouter/openai/gpt-4o'"
        )
    if not name.strip():
        raise ValueError("model name is required after provider prefix")
    if provider not in SUPPORTED_PROVIDERS:
        raise ValueError(f"Unsupported provider prefix: {provider}")

    return ResolvedModel(provider=provider, provider_id=name.strip(), raw_input=model_stripped)


def create_llm_client(config: ManugraderConfig, provider: str) -> LLMClient:
    """Create LLM client for a provider.

    Credentials can come from:
    1. manugrader.yaml config
    2. Environment variables (OPENROUTER_API_KEY, POE_API_KEY)
    """
    timeout = config.providers.timeout

    if provider == "openrouter":
        settings = config.providers.openrouter
        api_key = settings.api_key or os.environ.get("OPENROUTER_API_KEY", "")

        if not api_key:
            raise ValueError(
                "OpenRouter API key not configured. "
                "Set OPENROUTER_API_KEY environment variable or add to manugrader.yaml"
            )

        return OpenAICompatibleClient(
            api_key=api_key,
            base_url=settings.base_url,
            provider="openrouter",
            referer=settings.referer or os.environ.get("OPENROUTER_HTTP_REFERER"),
            title=settings.title or os.environ.get("OPENROUTER_X_TITLE"),
            timeout=timeout,
        )

    elif provider == "poe":
        settings = config.providers.poe
        api_key = settings.api_key or os.environ.get("POE_API_KEY", "")

        if not api_key:
            raise ValueError(
                "Poe API key not configured. "
                "Set POE_API_KEY environment variable or add to manugrader.yaml"
            )

        return OpenAICompatibleClient(
            api_key=api_key,
            base_url=settings.base_url,
            provider="poe",
            timeout=timeout,
        )

    else:
        raise ValueError(f"Unknown provider: {provider}")


class ClientPool:
    """Lazily creates one client per provider and hands out oracles."""

    def __init__(self, config: ManugraderConfig):
        self._config = config
        self._clients: dict[str, LLMClient] = {}

    def oracle_for(self, model: str) -> Oracle:
        """Return an oracle callable for a provider-prefixed model id."""
        resolved = resolve_model(model)
        client = self._clients.get(resolved.provider)
        if client is None:
            client = create_llm_client(self._config, resolved.provider)
            self._clients[resolved.provider] = client
        return client.as_oracle(resolved.provider_id)

    async def close(self) -> None:
        for client in self._clients.values():
            await client.close()
        self._clients.clear()
