"""Configuration and reference tables."""
