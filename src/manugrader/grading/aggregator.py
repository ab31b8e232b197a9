"""Reduce a population of score vectors to one composite score."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from manugrader.grading.validator import LEVEL_COUNT, ScoreVector


@dataclass(frozen=True)
class AggregateScore:
    """Composite score plus the per-level profile of the kept samples."""

    composite: float
    per_level: tuple[float, ...]
    kept_indices: tuple[int, ...]
    sample_count: int

    @property
    def rationale(self) -> str:
        return (
            f"Weighted scores from {self.sample_count} valid samples; "
            f"interquartile mean over {len(self.kept_indices)} of them."
        )


def weighted_mean(levels: Sequence[float], weights: Sequence[float]) -> float:
    numerator = 0.0
    denominator = 0.0
    for score, weight in zip(levels, weights):
        numerator += score * weight
        denominator += weight
    if denominator == 0.0:
        return 0.0
    return numerator / denominator


def interquartile_mean(values: Sequence[float]) -> tuple[float, list[int]]:
    """Mean of the middle band of ``values`` and the indices it kept.

    With ``k = (n + 3) // 4`` the lowest and highest ``k`` values are dropped,
    but only when more than ``2k`` values exist; smaller populations are
    kept whole.
    """
    n = len(values)
    if n == 0:
        return 0.0, []

    order = sorted(range(n), key=lambda i: values[i])
    k = (n + 3) // 4
    kept = order[k : n - k] if n > 2 * k else order

    if not kept:
        return 0.0, []
    return sum(values[i] for i in kept) / len(kept), kept


def aggregate(population: Sequence[ScoreVector], weights: Sequence[float]) -> AggregateScore:
    """Weighted per-sample scores, trimmed to their interquartile mean."""
    composites = [weighted_mean(vector.levels, weights) for vector in population]
    composite, kept = interquartile_mean(composites)

    kept_runs = [population[i] for i in kept] if kept else list(population)
    if kept_runs:
        per_level = tuple(
            sum(run[level] for run in kept_runs) / len(kept_runs)
            for level in range(LEVEL_COUNT)
        )
    else:
        per_level = (0.0,) * LEVEL_COUNT

    return AggregateScore(
        composite=composite,
        per_level=per_level,
        kept_indices=tuple(kept) if kept else tuple(range(len(population))),
        sample_count=len(population),
    )
