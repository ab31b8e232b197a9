"""Topic classification against a controlled vocabulary."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from manugrader.config.references import Topic
from manugrader.grading.errors import ClassificationError
from manugrader.grading.validator import strip_code_fence
from manugrader.llm.base import Oracle, TokenUsage
from manugrader.llm.prompts.keywords import build_keyword_prompt, build_keyword_user_message

logger = logging.getLogger(__name__)


class KeywordPayload(BaseModel):
    """Typed shape of a keyword selection response."""

    main_keyword: str | None = None
    peripheral_keywords: list[str] = []


@dataclass
class KeywordSummary:
    """Primary and secondary topic keywords chosen for a manuscript."""

    main: str | None = None
    peripheral: list[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return self.main is None and not self.peripheral


def normalize_keywords(payload: KeywordPayload) -> KeywordSummary:
    """Trim, drop empties and drop case-insensitive duplicates of the primary."""
    main = (payload.main_keyword or "").strip() or None

    seen: set[str] = set()
    if main is not None:
        seen.add(main.lower())

    peripheral: list[str] = []
    for keyword in payload.peripheral_keywords:
        trimmed = keyword.strip()
        if not trimmed or trimmed.lower() in seen:
            continue
        seen.add(trimmed.lower())
        peripheral.append(trimmed)

    return KeywordSummary(main=main, peripheral=peripheral)


class TopicClassifier:
    """Asks the oracle which vocabulary topics a manuscript covers."""

    def __init__(self, oracle: Oracle, prompt_template: str, excerpt_chars: int = 10_000):
        self.oracle = oracle
        self.prompt_template = prompt_template
        self.excerpt_chars = excerpt_chars
        self.usage = TokenUsage()

    async def classify(self, manuscript: str, topics: list[Topic]) -> KeywordSummary:
        """Classify the manuscript.

        Raises:
            ClassificationError: if the oracle call fails or its reply cannot
                be parsed.
        """
        names = [name for name in (topic.name.strip() for topic in topics) if name]
        if not names:
            return KeywordSummary()

        prompt = build_keyword_prompt(self.prompt_template, names)
        excerpt = manuscript[: self.excerpt_chars]

        try:
            response = await self.oracle(
                prompt, build_keyword_user_message(excerpt, self.excerpt_chars)
            )
        except Exception as e:
            raise ClassificationError(f"keyword selection call failed: {e}") from e

        if response.usage is not None:
            self.usage = self.usage + response.usage

        try:
            data = json.loads(strip_code_fence(response.content))
            payload = KeywordPayload.model_validate(data)
        except (json.JSONDecodeError, PydanticValidationError) as e:
            raise ClassificationError(f"invalid keyword JSON: {e}") from e

        summary = normalize_keywords(payload)
        logger.info("Classified manuscript: main=%s peripheral=%s", summary.main, summary.peripheral)
        return summary
