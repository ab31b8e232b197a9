"""Topic vocabulary and venue reference table (references.yaml)."""

from __future__ import annotations

import logging
from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, Field, model_validator

logger = logging.getLogger(__name__)

MAX_AFFINITY = 2


class Topic(BaseModel):
    """One entry of the controlled topic vocabulary."""

    model_config = ConfigDict(str_strip_whitespace=True)

    id: str
    name: str
    description: str | None = None


class VenueReference(BaseModel):
    """A candidate venue with its acceptance low bound and topic affinities."""

    id: str
    name: str
    mark: str | None = None
    low_bound: float = Field(ge=0.0)
    notes: str | None = None
    affinities: dict[str, int] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _check_affinities(self) -> VenueReference:
        for topic_id, score in self.affinities.items():
            if not 0 <= score <= MAX_AFFINITY:
                raise ValueError(
                    f"affinity for topic {topic_id!r} on venue {self.name!r} "
                    f"must be between 0 and {MAX_AFFINITY}"
                )
        return self


class ReferenceTable(BaseModel):
    """Topics plus venues, as loaded from references.yaml."""

    topics: list[Topic] = Field(default_factory=list)
    venues: list[VenueReference] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_ids(self) -> ReferenceTable:
        topic_ids = [topic.id for topic in self.topics]
        if len(set(topic_ids)) != len(topic_ids):
            raise ValueError("topic ids must be unique")

        venue_ids = [venue.id for venue in self.venues]
        if len(set(venue_ids)) != len(venue_ids):
            raise ValueError("venue ids must be unique")

        known = set(topic_ids)
        for venue in self.venues:
            unknown = [topic_id for topic_id in venue.affinities if topic_id not in known]
            for topic_id in unknown:
                logger.warning("Venue %s references unknown topic %s; ignoring", venue.name, topic_id)
                del venue.affinities[topic_id]
        return self

    @classmethod
    def load(cls, path: Path) -> ReferenceTable:
        """Load the reference table; a missing file yields an empty table."""
        if not path.exists():
            logger.warning("Reference table %s not found; recommendations disabled", path)
            return cls()

        with open(path) as f:
            data = yaml.safe_load(f) or {}

        return cls.model_validate(data)
