"""Default topic keyword selection prompt."""

KEYWORDS_PLACEHOLDER = "{{KEYWORDS}}"

DEFAULT_KEYWORD_PROMPT = """\
You analyze an academic manuscript to identify its primary and secondary \
research focuses. Choose from the following keywords only:
{{KEYWORDS}}

Output valid JSON with a single "main_keyword" (string) and up to three \
distinct items in "peripheral_keywords" (array). Peripheral keywords must \
differ from the main keyword. If none apply beyond the main topic, return an \
empty array for peripherals.
"""


def build_keyword_prompt(template: str, topic_names: list[str]) -> str:
    """Substitute the comma-joined vocabulary into the prompt template."""
    return template.replace(KEYWORDS_PLACEHOLDER, ", ".join(topic_names))


def build_keyword_user_message(excerpt: str, limit: int) -> str:
    """Wrap the manuscript excerpt for a keyword selection call."""
    return f"Manuscript content (first {limit} characters):\n\n{excerpt}"
