"""Prompts module - centralized prompt templates for AI services.

Re-exports all prompt constants and utilities for easy importing:
    from services.prompts import PROMPT_VERSIONS, strip_markdown_code_blocks
    from services.prompts import SHORTS_SCRIPT_V1
"""

from services.prompts._base import strip_markdown_code_blocks
from services.prompts.script_generation import SHORTS_SCRIPT_SYSTEM, SHORTS_SCRIPT_V1

# Increment when a prompt changes so logged responses can be traced to it
PROMPT_VERSIONS = {
    "generate_shorts_script": "v1",
}

__all__ = [
    # Utilities
    "strip_markdown_code_blocks",
    # Version tracking
    "PROMPT_VERSIONS",
    # Script generation prompts
    "SHORTS_SCRIPT_SYSTEM",
    "SHORTS_SCRIPT_V1",
]
