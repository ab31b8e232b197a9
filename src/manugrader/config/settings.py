"""Configuration settings and manugrader.yaml loader."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from manugrader.llm.prompts.grading import DEFAULT_GRADING_PROMPT
from manugrader.llm.prompts.keywords import DEFAULT_KEYWORD_PROMPT


class OpenRouterConfig(BaseModel):
    """OpenRouter provider configuration."""

    api_key: str = ""
    base_url: str = "https://openrouter.ai/api/v1"
    referer: str | None = None
    title: str | None = None


class PoeConfig(BaseModel):
    """Poe provider configuration (OpenAI-compatible endpoint)."""

    api_key: str = ""
    base_url: str = "https://api.poe.com/v1"


class ProvidersConfig(BaseModel):
    """LLM provider configurations."""

    openrouter: OpenRouterConfig = Field(default_factory=OpenRouterConfig)
    poe: PoeConfig = Field(default_factory=PoeConfig)
    timeout: float = 120.0  # seconds


class ModelsConfig(BaseModel):
    """Model selection, prefixed with the provider name."""

    grading: str = "openrouter/openai/gpt-4o-mini"
    keyword: str = "openrouter/openai/gpt-4o-mini"


class PromptsConfig(BaseModel):
    """System prompts sent to the oracle."""

    grading: str = DEFAULT_GRADING_PROMPT
    keyword_selection: str = DEFAULT_KEYWORD_PROMPT


class SamplingConfig(BaseModel):
    """Quorum sampling budget."""

    max_attempts: int = Field(default=30, ge=1)
    target_successes: int = Field(default=12, ge=1)
    min_successes: int = Field(default=8, ge=1)
    delay_ms: int = Field(default=500, ge=0)

    @model_validator(mode="after")
    def _check_budget(self) -> SamplingConfig:
        if self.min_successes > self.target_successes:
            raise ValueError("min_successes cannot exceed target_successes")
        if self.target_successes > self.max_attempts:
            raise ValueError("target_successes cannot exceed max_attempts")
        return self

    @property
    def delay_seconds(self) -> float:
        return self.delay_ms / 1000


class ThresholdTier(BaseModel):
    """One row of the match-strength table.

    A ``multiplier`` of None means venues at this strength are excluded.
    """

    min_strength: int = Field(ge=0)
    multiplier: float | None = Field(default=None, gt=0.0)


def _default_tiers() -> list[ThresholdTier]:
    return [
        ThresholdTier(min_strength=6, multiplier=0.90),
        ThresholdTier(min_strength=5, multiplier=0.95),
        ThresholdTier(min_strength=4, multiplier=1.00),
        ThresholdTier(min_strength=3, multiplier=1.05),
        ThresholdTier(min_strength=2, multiplier=None),
        ThresholdTier(min_strength=1, multiplier=None),
        ThresholdTier(min_strength=0, multiplier=None),
    ]


class RecommendationConfig(BaseModel):
    """Venue matching configuration."""

    tiers: list[ThresholdTier] = Field(default_factory=_default_tiers)
    max_recommendations: int = Field(default=12, ge=1)
    primary_weight: int = Field(default=2, ge=0)
    secondary_weight: int = Field(default=1, ge=0)

    @field_validator("tiers")
    @classmethod
    def _order_tiers(cls, value: list[ThresholdTier]) -> list[ThresholdTier]:
        # adjust_lower_bound expects descending min_strength
        bounds = [tier.min_strength for tier in value]
        if len(set(bounds)) != len(bounds):
            raise ValueError("threshold tiers must have distinct min_strength values")
        return sorted(value, key=lambda tier: tier.min_strength, reverse=True)


class EngineConfig(BaseModel):
    """All tunables of the grading engine."""

    sampling: SamplingConfig = Field(default_factory=SamplingConfig)
    level_weights: list[float] = Field(default_factory=lambda: [4.0, 2.0, 1.0, 1.0, 1.0, 1.0])
    derived_format_penalty: float = Field(default=0.02, ge=0.0, lt=1.0)
    recommendation: RecommendationConfig = Field(default_factory=RecommendationConfig)
    excerpt_chars: int = Field(default=10_000, ge=1)  # classifier context budget

    @field_validator("level_weights")
    @classmethod
    def _six_weights(cls, value: list[float]) -> list[float]:
        if len(value) != 6:
            raise ValueError("level_weights must contain exactly 6 values")
        return value


class ManugraderConfig(BaseModel):
    """Root configuration model for manugrader.yaml."""

    providers: ProvidersConfig = Field(default_factory=ProvidersConfig)
    models: ModelsConfig = Field(default_factory=ModelsConfig)
    prompts: PromptsConfig = Field(default_factory=PromptsConfig)
    engine: EngineConfig = Field(default_factory=EngineConfig)
    references: str = "references.yaml"

    @classmethod
    def load(cls, path: Path) -> ManugraderConfig:
        """Load configuration from YAML file."""
        if not path.exists():
            return cls()

        with open(path) as f:
            data = yaml.safe_load(f) or {}

        # Expand environment variables in the config
        data = _expand_env_vars(data)
        return cls.model_validate(data)

    def save(self, path: Path) -> None:
        """Save configuration to YAML file."""
        with open(path, "w") as f:
            yaml.dump(self.model_dump(), f, default_flow_style=False, sort_keys=False)

    def references_path(self, config_path: Path) -> Path:
        """Resolve the reference table path relative to the config file."""
        path = Path(self.references)
        if path.is_absolute():
            return path
        return config_path.parent / path


def _expand_env_vars(obj: Any) -> Any:
    """Recursively expand ${VAR} patterns in strings."""
    if isinstance(obj, str):
        # Match ${VAR} or $VAR patterns
        pattern = re.compile(r"\$\{([^}]+)\}|\$([A-Za-z_][A-Za-z0-9_]*)")

        def replace(match: re.Match[str]) -> str:
            var_name = match.group(1) or match.group(2)
            return os.environ.get(var_name, match.group(0))

        return pattern.sub(replace, obj)
    elif isinstance(obj, dict):
        return {k: _expand_env_vars(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [_expand_env_vars(item) for item in obj]
    return obj


CONFIG_FILENAME = "manugrader.yaml"
REFERENCES_FILENAME = "references.yaml"


def find_config_path(start_dir: Path | None = None) -> Path | None:
    """Find manugrader.yaml by walking up directory tree."""
    current = start_dir or Path.cwd()

    while current != current.parent:
        config_path = current / CONFIG_FILENAME
        if config_path.exists():
            return config_path
        current = current.parent

    return None
