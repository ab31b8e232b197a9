"""Quorum sampling of the grading oracle.

The sampler calls the oracle sequentially until either the target number of
valid samples has been collected or the attempt budget is spent. Every
attempt, successful or not, consumes budget. Rejected and failed attempts
are logged and skipped; only a final shortfall below the minimum quorum is
reported to the caller, as InsufficientSamples.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from manugrader.config.settings import SamplingConfig
from manugrader.grading.errors import InsufficientSamples
from manugrader.grading.validator import ScoreVector, validate_response
from manugrader.llm.base import Oracle, TokenUsage
from manugrader.llm.prompts.grading import build_grading_user_message

logger = logging.getLogger(__name__)

# (attempts_run, valid_count, status_message)
ProgressReporter = Callable[[int, int, str], None]


@dataclass
class GradingAttempt:
    """One oracle round-trip made by the sampler."""

    ordinal: int
    raw_text: str | None = None
    vector: ScoreVector | None = None
    justification: str | None = None
    error: str | None = None


@dataclass
class SamplingResult:
    """Valid population plus counters from a completed sampling run."""

    population: list[ScoreVector]
    attempts_run: int
    justification: str | None = None
    attempts: list[GradingAttempt] = field(default_factory=list)
    usage: TokenUsage = field(default_factory=TokenUsage)

    @property
    def valid_count(self) -> int:
        return len(self.population)


class Sampler:
    """Collects a quorum of validated score vectors from the oracle."""

    def __init__(
        self,
        config: SamplingConfig,
        oracle: Oracle,
        progress: ProgressReporter | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.config = config
        self.oracle = oracle
        self.progress = progress
        self._sleep = sleep

    async def run(self, system_prompt: str, manuscript: str) -> SamplingResult:
        """Sample the oracle until quorum or budget exhaustion.

        Raises:
            InsufficientSamples: if fewer than ``min_successes`` valid
                samples were collected.
        """
        config = self.config
        user_message = build_grading_user_message(manuscript)

        population: list[ScoreVector] = []
        justifications: list[str] = []
        attempts: list[GradingAttempt] = []
        usage = TokenUsage()
        attempts_run = 0

        while attempts_run < config.max_attempts and len(population) < config.target_successes:
            attempts_run += 1
            if attempts_run > 1:
                await self._sleep(config.delay_seconds)

            attempt = GradingAttempt(ordinal=attempts_run)
            attempts.append(attempt)

            try:
                response = await self.oracle(system_prompt, user_message)
            except Exception as e:
                logger.warning("Grading call %d failed: %s", attempts_run, e)
                attempt.error = str(e)
            else:
                if response.usage is not None:
                    usage = usage + response.usage
                attempt.raw_text = response.content

                verdict = validate_response(response.content)
                if verdict.is_valid:
                    attempt.vector = verdict.vector
                    attempt.justification = verdict.justification
                    population.append(verdict.vector)
                    if verdict.justification:
                        justifications.append(verdict.justification)
                else:
                    attempt.error = str(verdict.error)
                    logger.info("Discarding grading sample %d: %s", attempts_run, verdict.error)

            self._report(
                attempts_run,
                len(population),
                f"Collecting grading samples: {len(population)} valid "
                f"out of {attempts_run} attempts.",
            )

        if len(population) < config.min_successes:
            raise InsufficientSamples(attempts_run, len(population), config.min_successes)

        return SamplingResult(
            population=population,
            attempts_run=attempts_run,
            justification=justifications[0] if justifications else None,
            attempts=attempts,
            usage=usage,
        )

    def _report(self, attempts_run: int, valid_count: int, message: str) -> None:
        if self.progress is not None:
            self.progress(attempts_run, valid_count, message)
