"""Grading job orchestration.

Flow:
    manuscript text
      ├─ Sampler.run()            → SamplingResult     (SAMPLING)
      ├─ aggregate()              → AggregateScore     (AGGREGATING)
      │      └─ derived-format penalty, if any
      ├─ TopicClassifier.classify → KeywordSummary     (CLASSIFYING)
      └─ build_recommendations()  → [Recommendation]   (RECOMMENDING)
                       ↓
                   JobResult (DONE | FAILED)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from enum import Enum

from manugrader.config.references import ReferenceTable
from manugrader.config.settings import EngineConfig
from manugrader.grading.aggregator import aggregate
from manugrader.grading.errors import ClassificationError, InsufficientSamples
from manugrader.grading.recommend import Recommendation, build_recommendations
from manugrader.grading.sampler import ProgressReporter, Sampler
from manugrader.grading.topics import KeywordSummary, TopicClassifier
from manugrader.llm.base import Oracle, TokenUsage

logger = logging.getLogger(__name__)


class JobState(str, Enum):
    """Lifecycle states of a grading job."""

    SAMPLING = "sampling"
    AGGREGATING = "aggregating"
    CLASSIFYING = "classifying"
    RECOMMENDING = "recommending"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class GradingOutcome:
    """Final grading figures for one manuscript."""

    composite: float
    per_level: tuple[float, ...]
    attempts_run: int
    valid_runs: int
    justification: str | None
    decision_reason: str
    usage: TokenUsage = field(default_factory=TokenUsage)

    def with_penalty(self, fraction: float) -> GradingOutcome:
        """Scale the composite and every level down by ``fraction``."""
        factor = 1.0 - fraction
        return replace(
            self,
            composite=self.composite * factor,
            per_level=tuple(value * factor for value in self.per_level),
        )


@dataclass
class JobResult:
    """Terminal payload of a grading job."""

    state: JobState
    outcome: GradingOutcome | None = None
    keywords: KeywordSummary = field(default_factory=KeywordSummary)
    recommendations: list[Recommendation] = field(default_factory=list)
    error_message: str | None = None
    usage: TokenUsage = field(default_factory=TokenUsage)

    @property
    def succeeded(self) -> bool:
        return self.state is JobState.DONE

    def to_dict(self) -> dict:
        outcome = None
        if self.outcome is not None:
            outcome = {
                "composite": self.outcome.composite,
                "per_level": list(self.outcome.per_level),
                "attempts_run": self.outcome.attempts_run,
                "valid_runs": self.outcome.valid_runs,
                "justification": self.outcome.justification,
                "decision_reason": self.outcome.decision_reason,
            }
        return {
            "state": self.state.value,
            "outcome": outcome,
            "keywords": {
                "main": self.keywords.main,
                "peripheral": list(self.keywords.peripheral),
            },
            "recommendations": [rec.to_dict() for rec in self.recommendations],
            "error_message": self.error_message,
            "total_tokens": self.usage.total_tokens,
        }


class GradingJob:
    """Runs one manuscript through sampling, aggregation and matching."""

    def __init__(
        self,
        config: EngineConfig,
        grading_oracle: Oracle,
        keyword_oracle: Oracle,
        grading_prompt: str,
        keyword_prompt: str,
        references: ReferenceTable,
        progress: ProgressReporter | None = None,
    ):
        self.config = config
        self.grading_oracle = grading_oracle
        self.keyword_oracle = keyword_oracle
        self.grading_prompt = grading_prompt
        self.keyword_prompt = keyword_prompt
        self.references = references
        self.progress = progress
        self.state = JobState.SAMPLING
        self._attempts_run = 0
        self._valid_count = 0

    async def run(self, manuscript: str, derived_format: bool = False) -> JobResult:
        """Grade ``manuscript`` and return the terminal job result."""
        text = manuscript.strip()
        if not text:
            return self._fail("No manuscript text could be read; check the file.")

        # --- Sampling ---
        self._transition(JobState.SAMPLING, "Collecting grading samples...")
        sampler = Sampler(self.config.sampling, self.grading_oracle, progress=self._on_progress)
        try:
            sampling = await sampler.run(self.grading_prompt, text)
        except InsufficientSamples as e:
            logger.warning("Grading quorum not reached: %s", e)
            return self._fail(
                "The model did not return enough valid results; please try again later.",
            )

        # --- Aggregating ---
        self._transition(JobState.AGGREGATING, "Aggregating grading samples...")
        score = aggregate(sampling.population, self.config.level_weights)
        outcome = GradingOutcome(
            composite=score.composite,
            per_level=score.per_level,
            attempts_run=sampling.attempts_run,
            valid_runs=sampling.valid_count,
            justification=sampling.justification,
            decision_reason=score.rationale,
            usage=sampling.usage,
        )
        if derived_format:
            outcome = outcome.with_penalty(self.config.derived_format_penalty)

        # --- Classifying ---
        self._transition(JobState.CLASSIFYING, "Analyzing topics and matching venues...")
        classifier = TopicClassifier(
            self.keyword_oracle, self.keyword_prompt, self.config.excerpt_chars
        )
        try:
            keywords = await classifier.classify(text, self.references.topics)
        except ClassificationError as e:
            logger.warning("Keyword selection failed, continuing without topics: %s", e)
            keywords = KeywordSummary()

        # --- Recommending ---
        self._transition(JobState.RECOMMENDING, "Matching venues...")
        recommendations = build_recommendations(
            outcome.composite,
            keywords,
            self.references.venues,
            self.references.topics,
            self.config.recommendation,
        )

        self._transition(JobState.DONE, "Grading complete.")
        return JobResult(
            state=JobState.DONE,
            outcome=outcome,
            keywords=keywords,
            recommendations=recommendations,
            usage=outcome.usage + classifier.usage,
        )

    def _on_progress(self, attempts_run: int, valid_count: int, message: str) -> None:
        self._attempts_run = attempts_run
        self._valid_count = valid_count
        if self.progress is not None:
            self.progress(attempts_run, valid_count, message)

    def _transition(self, state: JobState, message: str) -> None:
        logger.info("Grading job -> %s", state.value)
        self.state = state
        if self.progress is not None:
            self.progress(self._attempts_run, self._valid_count, message)

    def _fail(self, message: str) -> JobResult:
        self._transition(JobState.FAILED, message)
        return JobResult(state=JobState.FAILED, error_message=message)
