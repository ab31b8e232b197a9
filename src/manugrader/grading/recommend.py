"""Match a composite score against the venue reference table.

Each venue's match strength is the sum over topics of the manuscript's
topic weight times the venue's affinity. The strength picks a multiplier
for the venue's low bound from an ordered tier table; venues whose
strength falls in an excluded tier, or whose adjusted threshold the score
does not clear, are dropped.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import asdict, dataclass

from manugrader.config.references import Topic, VenueReference
from manugrader.config.settings import RecommendationConfig, ThresholdTier
from manugrader.grading.topics import KeywordSummary


@dataclass(frozen=True)
class Recommendation:
    """A venue the manuscript clears, with its adjusted threshold."""

    venue_id: str
    venue_name: str
    reference_mark: str | None
    low_bound: float
    match_strength: int
    adjusted_threshold: float

    def to_dict(self) -> dict:
        return asdict(self)


def build_topic_weights(
    summary: KeywordSummary,
    topics: Sequence[Topic],
    primary_weight: int = 2,
    secondary_weight: int = 1,
) -> dict[str, int]:
    """Map topic ids to weights from the classified keywords."""
    name_lookup = {topic.name.lower(): topic.id for topic in topics}

    weights: dict[str, int] = {}
    if summary.main is not None:
        topic_id = name_lookup.get(summary.main.lower())
        if topic_id is not None:
            weights[topic_id] = primary_weight
    for keyword in summary.peripheral:
        topic_id = name_lookup.get(keyword.lower())
        if topic_id is not None:
            weights.setdefault(topic_id, secondary_weight)
    return weights


def match_strength(venue: VenueReference, weights: dict[str, int]) -> int:
    return sum(weights.get(topic_id, 0) * score for topic_id, score in venue.affinities.items())


def adjust_lower_bound(
    low_bound: float, strength: int, tiers: Sequence[ThresholdTier]
) -> float | None:
    """Apply the first tier whose minimum the strength reaches."""
    for tier in tiers:
        if strength >= tier.min_strength:
            if tier.multiplier is None:
                return None
            return low_bound * tier.multiplier
    return None


def build_recommendations(
    composite: float,
    summary: KeywordSummary,
    venues: Sequence[VenueReference],
    topics: Sequence[Topic],
    config: RecommendationConfig,
) -> list[Recommendation]:
    """Venues the composite score clears, ascending by adjusted threshold.

    When more than ``config.max_recommendations`` venues qualify, the
    highest thresholds are kept.
    """
    if not venues:
        return []

    weights = build_topic_weights(
        summary, topics, config.primary_weight, config.secondary_weight
    )

    results: list[Recommendation] = []
    for venue in venues:
        strength = match_strength(venue, weights)
        adjusted = adjust_lower_bound(venue.low_bound, strength, config.tiers)
        if adjusted is None or composite < adjusted:
            continue
        results.append(
            Recommendation(
                venue_id=venue.id,
                venue_name=venue.name,
                reference_mark=venue.mark,
                low_bound=venue.low_bound,
                match_strength=strength,
                adjusted_threshold=adjusted,
            )
        )

    results.sort(key=lambda rec: rec.adjusted_threshold)
    if len(results) > config.max_recommendations:
        results = results[-config.max_recommendations :]
    return results
