"""Base utilities for prompts module.

Contains shared helper functions used across prompt modules.
"""

import re

_FENCE_OPEN_RE = re.compile(r"^```[a-zA-Z0-9_-]*\s*")


def strip_markdown_code_blocks(text: str) -> str:
    """Strip markdown code fences from AI response text.

    Args:
        text: Raw text that may be wrapped in ```json ... ``` fences

    Returns:
        Cleaned text with the fences removed
    """
    text = text.strip()
    text = _FENCE_OPEN_RE.sub("", text, count=1)
    if text.endswith("```"):
        text = text[:-3]
    return text.strip()
