"""Starter files written by ``manugrader init``."""

CONFIG_TEMPLATE = """\
# manugrader configuration
providers:
  openrouter:
    api_key: ""  # or export OPENROUTER_API_KEY
  poe:
    api_key: ""  # or export POE_API_KEY
  timeout: 120

models:
  # provider/model, e.g. openrouter/openai/gpt-4o-mini or poe/GPT-4o
  grading: "openrouter/openai/gpt-4o-mini"
  keyword: "openrouter/openai/gpt-4o-mini"

engine:
  sampling:
    max_attempts: 30
    target_successes: 12
    min_successes: 8
    delay_ms: 500
  level_weights: [4, 2, 1, 1, 1, 1]
  derived_format_penalty: 0.02
  excerpt_chars: 10000
  recommendation:
    max_recommendations: 12

references: "references.yaml"
"""

REFERENCES_TEMPLATE = """\
# Controlled topic vocabulary and target venues.
# Affinity scores range from 0 (unrelated) to 2 (core topic).
topics:
  - id: soundscape
    name: Urban soundscape
  - id: acoustics
    name: Architectural acoustics
  - id: health
    name: Healthy habitat

venues:
  - id: bae
    name: Building and Environment
    mark: Q1
    low_bound: 55
    affinities:
      acoustics: 2
      health: 1
  - id: apac
    name: Applied Acoustics
    mark: Q1
    low_bound: 45
    affinities:
      acoustics: 2
      soundscape: 2
  - id: hp
    name: Health & Place
    low_bound: 50
    affinities:
      health: 2
      soundscape: 1
"""
