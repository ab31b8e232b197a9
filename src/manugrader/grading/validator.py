"""Parse and validate one grading response from the oracle.

A response must be a JSON object carrying six numeric fields named
``Level 1`` .. ``Level 6`` (increasing leniency, so values must not
decrease) and an optional ``justification``. Values are clamped into
[0, 100] before the ordering check; out-of-order vectors are rejected
rather than repaired.
"""

from __future__ import annotations

import json
import math
import sys
from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from manugrader.grading.errors import ParseError, ValidationError

LEVEL_COUNT = 6
SCORE_MIN = 0.0
SCORE_MAX = 100.0
MONOTONIC_TOLERANCE = sys.float_info.epsilon


class GradingPayload(BaseModel):
    """Typed shape of a grading response."""

    model_config = ConfigDict(strict=True, populate_by_name=True)

    level1: float = Field(alias="Level 1")
    level2: float = Field(alias="Level 2")
    level3: float = Field(alias="Level 3")
    level4: float = Field(alias="Level 4")
    level5: float = Field(alias="Level 5")
    level6: float = Field(alias="Level 6")
    justification: str | None = None

    def levels(self) -> tuple[float, ...]:
        return (self.level1, self.level2, self.level3, self.level4, self.level5, self.level6)


@dataclass(frozen=True)
class ScoreVector:
    """Six clamped, non-decreasing level scores from one oracle sample."""

    levels: tuple[float, ...]

    def __post_init__(self) -> None:
        if len(self.levels) != LEVEL_COUNT:
            raise ValueError(f"expected {LEVEL_COUNT} levels, got {len(self.levels)}")

    def __getitem__(self, index: int) -> float:
        return self.levels[index]

    def __iter__(self):
        return iter(self.levels)


@dataclass(frozen=True)
class SampleVerdict:
    """Outcome of validating one response.

    Exactly one of ``vector`` and ``error`` is set.
    """

    vector: ScoreVector | None = None
    justification: str | None = None
    error: ParseError | ValidationError | None = None

    @property
    def is_valid(self) -> bool:
        return self.vector is not None


def strip_code_fence(text: str) -> str:
    """Remove one surrounding Markdown code fence, if present."""
    text = text.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else text[3:]
        if text.endswith("```"):
            text = text[:-3]
        text = text.strip()
    return text


def parse_grading_response(text: str) -> GradingPayload:
    """Decode raw oracle text into a GradingPayload.

    Raises:
        ParseError: if the text is not JSON or lacks the expected fields.
    """
    try:
        data = json.loads(strip_code_fence(text))
    except json.JSONDecodeError as e:
        raise ParseError(f"invalid grading JSON: {e}") from e

    try:
        return GradingPayload.model_validate(data)
    except PydanticValidationError as e:
        raise ParseError(f"invalid grading JSON: {e.error_count()} field error(s)") from e


def clamp_level(value: float) -> float:
    if not math.isfinite(value) or value < SCORE_MIN:
        return SCORE_MIN
    if value > SCORE_MAX:
        return SCORE_MAX
    return value


def normalize_levels(values: tuple[float, ...] | list[float]) -> tuple[float, ...]:
    """Clamp every level into [0, 100]; NaN and infinities become 0."""
    return tuple(clamp_level(float(v)) for v in values)


def is_non_decreasing(values: tuple[float, ...] | list[float]) -> bool:
    return all(a <= b + MONOTONIC_TOLERANCE for a, b in zip(values, values[1:]))


def validate_response(text: str) -> SampleVerdict:
    """Turn raw oracle text into a verdict without raising."""
    try:
        payload = parse_grading_response(text)
    except ParseError as e:
        return SampleVerdict(error=e)

    levels = normalize_levels(payload.levels())
    if not is_non_decreasing(levels):
        return SampleVerdict(
            justification=payload.justification,
            error=ValidationError(f"levels are not non-decreasing: {list(levels)}"),
        )

    return SampleVerdict(vector=ScoreVector(levels), justification=payload.justification)
