"""
Completion Prompt Builder

Builds the prompts used for inline completion (fill the ``<BLANK>``) and for
inline code generation (insert at ``<CURSOR>``), and cleans the raw model
output so it can be inserted into the editor as-is.
"""

import logging
import re
from dataclasses import dataclass
from typing import List

from codepilot.core.config import SettingsProvider

logger = logging.getLogger(__name__)

BLANK_MARKER = "<BLANK>"
CURSOR_MARKER = "<CURSOR>"

# Share of the context window spent on text before the cursor
BEFORE_CURSOR_RATIO = 0.6

INLINE_CONTEXT_LINES = 10
INLINE_CONTEXT_CHARS = 1000

COMPLETION_TEMPLATE = """You are an AI code completion assistant. Your task is to complete the code at the <BLANK> position.

IMPORTANT RULES:
1. Only provide the code that should replace <BLANK>
2. Do NOT include any leading empty lines or whitespace before the code
3. Do NOT include any trailing empty lines after the code
4. Do NOT wrap the response in markdown code blocks
5. Start immediately with the actual code content
6. Keep the completion concise and contextually appropriate

Code context:
{context}

Complete the code at <BLANK>:"""

INLINE_GENERATION_TEMPLATE = """You are an AI code assistant. Based on the user's request and the code context, generate the appropriate code to insert at the cursor position.

User Request: {request}

Code Context:
{context}

Generate code that should be inserted at the <CURSOR> position. Return only the code without any explanations, markdown formatting, or code blocks. The code should be properly formatted and indented to match the surrounding context."""

_LEADING_FENCE = re.compile(r"^```[\w-]*\n?")
_TRAILING_FENCE = re.compile(r"\n?```$")
_ANY_FENCE = re.compile(r"```[\w-]*\n?")
_EXCESS_BLANK_LINES = re.compile(r"\n\s*\n\s*\n")
_CODE_HINTS = ("{", ";", "=", "def ", "function ", "class ")


@dataclass(frozen=True)
class CursorWindow:
    """Text around the cursor, trimmed to whole lines at the outer edges."""
    before: str
    after: str

    def render(self, marker: str = BLANK_MARKER) -> str:
        return f"{self.before}{marker}{self.after}"

    @property
    def is_blank(self) -> bool:
        return not (self.before + self.after).strip()


class CompletionPromptBuilder:
    """Prompt construction and output cleanup for inline completion and generation."""

    def __init__(self, settings_provider: SettingsProvider):
        self.settings_provider = settings_provider

    def cursor_window(self, text: str, offset: int) -> CursorWindow:
        """
        Split ``text`` at ``offset`` and keep at most ``completion_context_length``
        characters around it: 60% before the cursor, 40% after.
        """
        context_length = self.settings_provider.current().completion.completion_context_length
        before_chars = int(context_length * BEFORE_CURSOR_RATIO)
        after_chars = context_length - before_chars

        offset = max(0, min(offset, len(text)))
        before = text[:offset]
        after = text[offset:]

        if len(before) > before_chars:
            before = before[len(before) - before_chars:]
            # Drop the partial first line
            first_newline = before.find("\n")
            if first_newline > 0:
                before = before[first_newline + 1:]

        if len(after) > after_chars:
            after = after[:after_chars]
            last_newline = after.rfind("\n")
            if 0 < last_newline < len(after) - 1:
                after = after[: last_newline + 1]

        return CursorWindow(before=before, after=after)

    def build_completion_prompt(self, text: str, offset: int) -> str:
        """Completion prompt for the cursor at ``offset``; empty when there is no usable context."""
        window = self.cursor_window(text, offset)
        if window.is_blank:
            logger.debug("No code around the cursor, skipping completion prompt")
            return ""
        return COMPLETION_TEMPLATE.format(context=window.render(BLANK_MARKER))

    def inline_context(self, text: str, line: int, column: int, max_chars: int = INLINE_CONTEXT_CHARS) -> str:
        """
        Up to ten lines either side of the cursor with ``<CURSOR>`` marking its
        position. The cursor line is always kept; lines before it are taken
        nearest-first until half of ``max_chars`` is used.
        """
        lines = text.split("\n")
        line = max(0, min(line, len(lines) - 1))
        start = max(0, line - INLINE_CONTEXT_LINES)
        end = min(len(lines) - 1, line + INLINE_CONTEXT_LINES)

        current = lines[line]
        head, tail = current[:column], current[column:]
        before: List[str] = [head + CURSOR_MARKER + (tail if tail.strip() else "") + "\n"]
        used = len(current) + 1

        for i in range(line - 1, start - 1, -1):
            if used >= max_chars / 2:
                break
            before.append(lines[i] + "\n")
            used += len(lines[i]) + 1

        parts: List[str] = list(reversed(before))
        for i in range(line + 1, end + 1):
            current = lines[i]
            if used >= max_chars or used + len(current) > max_chars:
                break
            parts.append(current + "\n")
            used += len(current) + 1

        return "".join(parts)

    def build_inline_prompt(self, request: str, text: str, line: int, column: int) -> str:
        context = self.inline_context(text, line, column)
        return INLINE_GENERATION_TEMPLATE.format(request=request.strip(), context=context)

    def clip(self, completion: str) -> str:
        """Limit a completion to ``completion_max_length``, preferring whole lines."""
        max_length = self.settings_provider.current().completion.completion_max_length
        if len(completion) <= max_length:
            return completion
        clipped = completion[:max_length]
        last_newline = clipped.rfind("\n")
        return clipped[:last_newline] if last_newline > 0 else clipped


def clean_completion(text: str) -> str:
    """Strip code fences and stray blank lines from a completion response."""
    cleaned = text.strip()
    cleaned = _LEADING_FENCE.sub("", cleaned)
    cleaned = _TRAILING_FENCE.sub("", cleaned)
    cleaned = re.sub(r"^[\s\n]*\n", "", cleaned)
    cleaned = re.sub(r"\n+\s*$", "", cleaned)
    cleaned = _EXCESS_BLANK_LINES.sub("\n\n", cleaned)

    lines = cleaned.split("\n")
    if lines and lines[0] and not lines[0].strip():
        cleaned = "\n".join(lines[1:])
    return cleaned


def clean_generated_code(code: str) -> str:
    """Strip fences and any explanatory preamble before the first line that looks like code."""
    cleaned = _ANY_FENCE.sub("", code).replace("```", "").strip()
    lines = cleaned.split("\n")

    start = 0
    for i, line in enumerate(lines):
        stripped = line.strip()
        if not stripped or stripped.startswith(("//", "/*", "*")):
            continue
        if any(hint in stripped for hint in _CODE_HINTS):
            start = i
            break

    return "\n".join(lines[start:])
