"""Error taxonomy for the grading pipeline."""

from __future__ import annotations


class GraderError(Exception):
    """Base class for grading errors."""


class ParseError(GraderError):
    """Oracle output could not be decoded into the expected shape."""


class ValidationError(GraderError):
    """Oracle output decoded but violates the score invariants."""


class TransportError(GraderError):
    """The oracle call itself failed."""


class ClassificationError(GraderError):
    """Topic classification call failed or returned unusable output."""


class InsufficientSamples(GraderError):
    """Not enough valid samples were collected to aggregate."""

    def __init__(self, attempts_run: int, valid_count: int, required: int):
        self.attempts_run = attempts_run
        self.valid_count = valid_count
        self.required = required
        super().__init__(
            f"only {valid_count} valid samples after {attempts_run} attempts "
            f"(at least {required} required)"
        )
