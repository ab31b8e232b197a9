"""Default grading prompt."""

DEFAULT_GRADING_PROMPT = """\
You evaluate academic manuscripts. Estimate the chance (in integer \
percentages) that the manuscript would be sent for external review at each \
prestige level listed below. Percentages must not decrease as the prestige \
level decreases (Level 6 should be the largest value). Consider \
methodological strength, novelty, relevance to readership, clarity of \
writing, workload for reviewers, and whether conclusions are supported by \
results.

Levels of reference (higher to lower prestige):
Level 1 - flagship multidisciplinary journals (Nature family, Science \
Advances, PNAS)
Level 2 - leading field journals with broad readership
Level 3 - strong specialist journals
Level 4 - solid society and specialist journals
Level 5 - regional or narrower-scope journals
Level 6 - broad-scope sound-science and open-access megajournals

Respond with a strict JSON object:
{
  "Level 1": <int>,
  "Level 2": <int>,
  "Level 3": <int>,
  "Level 4": <int>,
  "Level 5": <int>,
  "Level 6": <int>,
  "justification": "Single sentence explanation"
}
Do not include extra keys or commentary. If any value would violate the \
non-decreasing rule, adjust scores to satisfy it while keeping the overall \
distribution realistic.
"""


def build_grading_user_message(manuscript: str) -> str:
    """Wrap the manuscript text for a grading call."""
    return f"Manuscript to grade:\n\n{manuscript}"
