"""
Content Truncator

Boundary-aware truncation of file content to a character budget. Cuts at the
last line break when that keeps most of the budget, otherwise at the hard
limit, and always leaves a marker so the model knows content is missing.
"""

import logging
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)

TRUNCATION_MARKER = "\n\n// ... (content truncated)"

# A line boundary is only used when it keeps at least this share of the budget.
LINE_BOUNDARY_RATIO = 0.8


class TruncationStrategy(Enum):
    """How the cut point was chosen."""
    NONE = "none"                    # Content already fit
    LINE_BOUNDARY = "line_boundary"  # Cut at the last newline
    HARD_LIMIT = "hard_limit"        # Cut exactly at the budget


@dataclass
class TruncationResult:
    """Result of a truncation operation."""
    original_size: int
    final_size: int
    truncated_content: str
    strategy_used: TruncationStrategy

    @property
    def was_truncated(self) -> bool:
        return self.strategy_used != TruncationStrategy.NONE

    @property
    def characters_removed(self) -> int:
        return max(0, self.original_size - self.final_size)


def is_truncated(text: str, max_length: int) -> bool:
    """True when ``text`` is already the marked output of a cut at ``max_length`` or less."""
    if not text.endswith(TRUNCATION_MARKER):
        return False
    return len(text) - len(TRUNCATION_MARKER) <= max(0, max_length)


def truncate_with_result(text: str, max_length: int) -> TruncationResult:
    """Truncate ``text`` to ``max_length`` and describe what happened."""
    max_length = max(0, max_length)
    original_size = len(text)

    if original_size <= max_length or is_truncated(text, max_length):
        return TruncationResult(
            original_size=original_size,
            final_size=original_size,
            truncated_content=text,
            strategy_used=TruncationStrategy.NONE,
        )

    head = text[:max_length]
    last_newline = head.rfind("\n")

    if last_newline >= 0 and last_newline >= max_length * LINE_BOUNDARY_RATIO:
        body = head[:last_newline]
        strategy = TruncationStrategy.LINE_BOUNDARY
    else:
        body = head
        strategy = TruncationStrategy.HARD_LIMIT

    truncated = body + TRUNCATION_MARKER
    return TruncationResult(
        original_size=original_size,
        final_size=len(truncated),
        truncated_content=truncated,
        strategy_used=strategy,
    )


def truncate_content(text: str, max_length: int) -> str:
    """
    Truncate ``text`` to at most ``max_length`` characters of original content.

    Returns the text unchanged when it fits. Truncating an already truncated
    string at the same or a larger budget returns it unchanged.
    """
    return truncate_with_result(text, max_length).truncated_content


class ContentTruncator:
    """Truncator that keeps running statistics, useful for scan reporting."""

    def __init__(self):
        self._truncation_count = 0
        self._total_characters_removed = 0

    def truncate(self, text: str, max_length: int) -> str:
        result = truncate_with_result(text, max_length)
        if result.was_truncated:
            self._truncation_count += 1
            self._total_characters_removed += result.characters_removed
            logger.debug(
                f"Truncated content {result.original_size} -> {result.final_size} chars "
                f"({result.strategy_used.value})"
            )
        return result.truncated_content

    def get_truncation_count(self) -> int:
        return self._truncation_count

    def get_stats(self) -> dict:
        return {
            "truncation_count": self._truncation_count,
            "total_characters_removed": self._total_characters_removed,
        }

    def reset_stats(self) -> None:
        self._truncation_count = 0
        self._total_characters_removed = 0
