"""End-to-end tests of the grading job with scripted oracles."""

import json

import pytest

from manugrader.config.references import ReferenceTable
from manugrader.config.settings import EngineConfig, SamplingConfig
from manugrader.grading.errors import TransportError
from manugrader.grading.orchestrator import GradingJob, GradingOutcome, JobState
from manugrader.llm.base import CompletionResponse, TokenUsage


def _levels(*values):
    return json.dumps({f"Level {i + 1}": v for i, v in enumerate(values)} | {"justification": "Sound design"})


FLAT_80 = _levels(80, 80, 80, 80, 80, 80)

REFERENCES = ReferenceTable.model_validate(
    {
        "topics": [
            {"id": "sound", "name": "Urban soundscape"},
            {"id": "acou", "name": "Architectural acoustics"},
        ],
        "venues": [
            {"id": "top", "name": "Top Journal", "low_bound": 85, "affinities": {"sound": 2, "acou": 2}},
            {"id": "mid", "name": "Mid Journal", "mark": "Q2", "low_bound": 80, "affinities": {"sound": 2}},
            {"id": "edge", "name": "Edge Journal", "low_bound": 79.5, "affinities": {"sound": 2}},
            {"id": "off", "name": "Off-topic Journal", "low_bound": 10, "affinities": {"acou": 1}},
        ],
    }
)


class Oracle:
    def __init__(self, replies, default=None):
        self.replies = list(replies)
        self.default = default
        self.calls = 0

    async def __call__(self, system_prompt, user_text):
        self.calls += 1
        item = self.replies.pop(0) if self.replies else self.default
        if isinstance(item, Exception):
            raise item
        return CompletionResponse(content=item, usage=TokenUsage(100, 10, 110))


def _engine():
    return EngineConfig(sampling=SamplingConfig(delay_ms=0))


def _job(grading_oracle, keyword_oracle, progress=None):
    return GradingJob(
        config=_engine(),
        grading_oracle=grading_oracle,
        keyword_oracle=keyword_oracle,
        grading_prompt="grade",
        keyword_prompt="Pick: {{KEYWORDS}}",
        references=REFERENCES,
        progress=progress,
    )


@pytest.mark.asyncio
async def test_successful_job():
    """Test a full run producing score, topics and recommendations."""
    keywords = Oracle([json.dumps({"main_keyword": "urban soundscape", "peripheral_keywords": ["Architectural acoustics"]})])
    job = _job(Oracle([], default=FLAT_80), keywords)

    result = await job.run("A manuscript about city noise.")

    assert result.state is JobState.DONE
    assert result.succeeded
    assert result.outcome.composite == pytest.approx(80.0)
    assert result.outcome.per_level == pytest.approx((80.0,) * 6)
    assert result.outcome.attempts_run == 12
    assert result.outcome.valid_runs == 12
    assert result.outcome.justification == "Sound design"
    assert result.keywords.main == "urban soundscape"
    # top: 2*2+1*2=6 -> 76.5; mid: 4 -> 80.0; edge: 4 -> 79.5; off: 1 -> excluded
    assert [rec.venue_id for rec in result.recommendations] == ["top", "edge", "mid"]
    assert result.usage.total_tokens == 13 * 110
    assert job.state is JobState.DONE


@pytest.mark.asyncio
async def test_derived_format_penalty_affects_matching():
    """Test that the 2% penalty applies before venues are matched."""
    keywords = Oracle([json.dumps({"main_keyword": "Urban soundscape"})])
    job = _job(Oracle([], default=FLAT_80), keywords)

    result = await job.run("A manuscript.", derived_format=True)

    assert result.outcome.composite == pytest.approx(78.4)
    assert result.outcome.per_level == pytest.approx((78.4,) * 6)
    # 78.4 no longer clears mid (80.0) or edge (79.5)
    assert result.recommendations == []


def test_penalty_scales_every_level():
    """Test the penalty arithmetic on an outcome."""
    outcome = GradingOutcome(
        composite=80.0,
        per_level=(50.0, 60.0, 70.0, 80.0, 90.0, 100.0),
        attempts_run=12,
        valid_runs=12,
        justification=None,
        decision_reason="",
    )

    penalized = outcome.with_penalty(0.02)

    assert penalized.composite == pytest.approx(78.4)
    assert penalized.per_level == pytest.approx((49.0, 58.8, 68.6, 78.4, 88.2, 98.0))
    assert outcome.composite == 80.0


@pytest.mark.asyncio
async def test_quorum_failure_fails_job():
    """Test that too few valid samples ends the job as failed."""
    keywords = Oracle([], default="{}")
    job = _job(Oracle([FLAT_80] * 7, default=TransportError("down")), keywords)

    result = await job.run("A manuscript.")

    assert result.state is JobState.FAILED
    assert result.outcome is None
    assert result.recommendations == []
    assert "valid results" in result.error_message
    assert keywords.calls == 0


@pytest.mark.asyncio
async def test_classification_failure_degrades():
    """Test that a broken keyword step yields empty topics, not failure."""
    job = _job(Oracle([], default=FLAT_80), Oracle([], default="not json"))

    result = await job.run("A manuscript.")

    assert result.state is JobState.DONE
    assert result.keywords.main is None
    assert result.keywords.peripheral == []
    assert result.recommendations == []
    assert result.outcome.composite == pytest.approx(80.0)


@pytest.mark.asyncio
async def test_empty_manuscript_fails_without_sampling():
    """Test the empty-text guard."""
    grading = Oracle([], default=FLAT_80)
    job = _job(grading, Oracle([], default="{}"))

    result = await job.run("   \n ")

    assert result.state is JobState.FAILED
    assert grading.calls == 0


@pytest.mark.asyncio
async def test_progress_messages():
    """Test that progress covers sampling and stage transitions."""
    events = []
    job = _job(
        Oracle([], default=FLAT_80),
        Oracle([], default=json.dumps({"main_keyword": "Urban soundscape"})),
        progress=lambda attempts, valid, message: events.append((attempts, valid, message)),
    )

    await job.run("A manuscript.")

    assert (12, 12) in [(a, v) for a, v, _ in events]
    assert events[-1][2] == "Grading complete."
    assert events[-1][:2] == (12, 12)


@pytest.mark.asyncio
async def test_result_serializes():
    """Test the JSON-ready result payload."""
    job = _job(Oracle([], default=FLAT_80), Oracle([], default=json.dumps({"main_keyword": "Urban soundscape"})))

    result = await job.run("A manuscript.")
    data = result.to_dict()

    assert data["state"] == "done"
    assert data["outcome"]["valid_runs"] == 12
    assert data["keywords"]["main"] == "Urban soundscape"
    assert data["recommendations"][0]["venue_id"] == "edge"
    json.dumps(data)
