"""Manuscript grading by quorum sampling and venue matching."""

__version__ = "0.1.0"
