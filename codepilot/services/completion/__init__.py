"""Inline completion and inline code generation prompts."""

from codepilot.services.completion.prompt_builder import (
    BLANK_MARKER,
    CURSOR_MARKER,
    CompletionPromptBuilder,
    CursorWindow,
    clean_completion,
    clean_generated_code,
)

__all__ = [
    "BLANK_MARKER",
    "CURSOR_MARKER",
    "CompletionPromptBuilder",
    "CursorWindow",
    "clean_completion",
    "clean_generated_code",
]
