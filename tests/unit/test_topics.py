"""Tests for topic classification."""

import json

import pytest

from manugrader.config.references import Topic
from manugrader.grading.errors import ClassificationError, TransportError
from manugrader.grading.topics import (
    KeywordPayload,
    KeywordSummary,
    TopicClassifier,
    normalize_keywords,
)
from manugrader.llm.base import CompletionResponse
from manugrader.llm.prompts.keywords import DEFAULT_KEYWORD_PROMPT

TOPICS = [
    Topic(id="t1", name="Urban soundscape"),
    Topic(id="t2", name=" Architectural acoustics "),
    Topic(id="t3", name="   "),
]


class RecordingOracle:
    def __init__(self, reply):
        self.reply = reply
        self.calls = []

    async def __call__(self, system_prompt, user_text):
        self.calls.append((system_prompt, user_text))
        if isinstance(self.reply, Exception):
            raise self.reply
        return CompletionResponse(content=self.reply)


def test_normalize_drops_duplicates_and_primary():
    """Test trimming, de-duplication and primary removal."""
    payload = KeywordPayload(
        main_keyword="  Urban soundscape ",
        peripheral_keywords=["urban SOUNDSCAPE", " Noise ", "", "noise", "Health"],
    )

    summary = normalize_keywords(payload)

    assert summary.main == "Urban soundscape"
    assert summary.peripheral == ["Noise", "Health"]


def test_normalize_blank_primary_is_none():
    """Test that a whitespace-only primary is dropped."""
    summary = normalize_keywords(KeywordPayload(main_keyword="  ", peripheral_keywords=["A"]))

    assert summary.main is None
    assert summary.peripheral == ["A"]


@pytest.mark.asyncio
async def test_empty_vocabulary_skips_oracle():
    """Test that no call is made without topics."""
    oracle = RecordingOracle("{}")
    classifier = TopicClassifier(oracle, DEFAULT_KEYWORD_PROMPT)

    summary = await classifier.classify("text", [])

    assert summary == KeywordSummary()
    assert summary.is_empty
    assert oracle.calls == []


@pytest.mark.asyncio
async def test_classify_substitutes_vocabulary_and_truncates():
    """Test prompt substitution and manuscript truncation."""
    reply = json.dumps({"main_keyword": "Urban soundscape", "peripheral_keywords": ["Architectural acoustics"]})
    oracle = RecordingOracle(reply)
    classifier = TopicClassifier(oracle, "Pick from: {{KEYWORDS}}", excerpt_chars=100)

    summary = await classifier.classify("x" * 250, TOPICS)

    system_prompt, user_text = oracle.calls[0]
    assert system_prompt == "Pick from: Urban soundscape, Architectural acoustics"
    assert user_text.count("x") == 100
    assert summary.main == "Urban soundscape"
    assert summary.peripheral == ["Architectural acoustics"]


@pytest.mark.asyncio
async def test_classify_missing_peripherals_defaults_empty():
    """Test that an absent peripheral list is treated as empty."""
    oracle = RecordingOracle('{"main_keyword": "Urban soundscape"}')
    classifier = TopicClassifier(oracle, DEFAULT_KEYWORD_PROMPT)

    summary = await classifier.classify("text", TOPICS)

    assert summary.main == "Urban soundscape"
    assert summary.peripheral == []


@pytest.mark.asyncio
async def test_classify_invalid_json_raises():
    """Test that unparsable output is a classification error."""
    classifier = TopicClassifier(RecordingOracle("soundscape, probably"), DEFAULT_KEYWORD_PROMPT)

    with pytest.raises(ClassificationError):
        await classifier.classify("text", TOPICS)


@pytest.mark.asyncio
async def test_classify_transport_failure_raises():
    """Test that a failed call is a classification error."""
    classifier = TopicClassifier(RecordingOracle(TransportError("timeout")), DEFAULT_KEYWORD_PROMPT)

    with pytest.raises(ClassificationError):
        await classifier.classify("text", TOPICS)
