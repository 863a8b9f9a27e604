"""Prompt fragments and output-format contracts."""

from .registry import FieldPromptRegistry, FormatContract, BASE_PROMPT, ALT_GENERATION_PROMPT
from .builder import Prompt, PromptBuilder

__all__ = [
    "FieldPromptRegistry",
    "FormatContract",
    "BASE_PROMPT",
    "ALT_GENERATION_PROMPT",
    "Prompt",
    "PromptBuilder",
]
