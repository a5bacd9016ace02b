"""Pydantic schemas shared across the context and LLM services."""

from .context import AssembledPrompt, ContextFile, ContextStats, FileKind, PromptBudget
from .session import ChatMessage, ChatSession

__all__ = [
    "AssembledPrompt",
    "ContextFile",
    "ContextStats",
    "FileKind",
    "PromptBudget",
    "ChatMessage",
    "ChatSession",
]
