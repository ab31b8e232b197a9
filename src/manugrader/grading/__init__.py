"""Sampling, aggregation, classification and venue matching."""
