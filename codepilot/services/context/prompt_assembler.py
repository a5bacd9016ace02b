"""
Prompt Assembler

Builds the single prompt string sent to the model from the user's message
and the files in the context store, within a hard length budget.

Assembly steps:
  1. Reserve room for the preamble, the user message, the section headers,
     the context summary and a safety margin.
  2. Take a snapshot of the store, cap the candidates, pre-bound each file
     and rank them.
  3. Greedily include whole files; the first file that does not fit is
     included truncated if enough room is left, and assembly stops there.
  4. Render the sections, a context summary and the user question.
  5. Hard-truncate the rendered prompt if overhead drift pushed it over.

Usage:
    assembler = PromptAssembler()
    prompt = assembler.build("How does login work?", store, PromptBudget.from_settings(settings))
"""

import logging
from typing import List, Optional, Tuple

from codepilot.models.schemas.context import AssembledPrompt, ContextFile, FileKind, PromptBudget
from codepilot.services.context.content_truncator import ContentTruncator
from codepilot.services.context.context_store import ContextStore
from codepilot.services.context.file_prioritizer import FilePrioritizer

logger = logging.getLogger(__name__)

PREAMBLE = (
    "You are an AI assistant that helps developers understand and work with code.\n"
    "You will be provided with reference files of a project.\n\n"
)

SOURCE_HEADER = "=== Project Source Files ===\n"
REFERENCE_HEADER = "\n=== Reference Files (Manually Added) ===\n"
QUESTION_HEADER = "\n=== User Question ===\n"

SAFETY_MARGIN = 100
MIN_USEFUL_SPACE = 500
TRUNCATION_OVERHEAD = 200

PROMPT_TRUNCATION_MARKER = "\n\n... (prompt truncated due to length)"
FINAL_GUARD_MARGIN = 100


class PromptAssembler:
    """Deterministic, length-bounded prompt assembly over a context snapshot."""

    def __init__(self, prioritizer: Optional[FilePrioritizer] = None, truncator: Optional[ContentTruncator] = None):
        self.prioritizer = prioritizer or FilePrioritizer()
        self.truncator = truncator or ContentTruncator()

    def build(self, user_message: str, store: ContextStore, budget: PromptBudget) -> str:
        """Return the prompt; its length never exceeds ``budget.max_total_length``."""
        return self.build_with_report(user_message, store, budget).prompt

    def build_with_report(self, user_message: str, store: ContextStore, budget: PromptBudget) -> AssembledPrompt:
        snapshot = store.snapshot()

        candidates = snapshot.all_files[: budget.max_files_considered]
        candidates = [self._bound(f, budget.max_per_file_length) for f in candidates]
        ranked = self.prioritizer.rank(candidates)

        reserved = len(PREAMBLE) + len(user_message) + _fixed_overhead(len(ranked)) + SAFETY_MARGIN
        available = budget.max_total_length - reserved

        included: List[Tuple[ContextFile, bool]] = []
        if available > 0:
            included = self._select(ranked, available)
        else:
            logger.warning(
                f"No room for context files: message needs {reserved} of {budget.max_total_length} characters"
            )

        prompt = self._render(user_message, included, candidate_count=len(ranked))
        prompt, guard_applied = self._apply_final_guard(prompt, budget.max_total_length)

        truncated_path = next((f.path for f, truncated in included if truncated), None)
        source_count = sum(1 for f, _ in included if f.kind == FileKind.SOURCE)

        return AssembledPrompt(
            prompt=prompt,
            candidate_count=len(ranked),
            included_paths=[f.path for f, _ in included],
            source_count=source_count,
            reference_count=len(included) - source_count,
            skipped_count=len(ranked) - len(included),
            truncated_path=truncated_path,
            final_guard_applied=guard_applied,
        )

    def _bound(self, file: ContextFile, max_length: int) -> ContextFile:
        content = self.truncator.truncate(file.content, max_length)
        if content is file.content:
            return file
        return file.with_content(content)

    def _select(self, ranked: List[ContextFile], available: int) -> List[Tuple[ContextFile, bool]]:
        """Greedy inclusion; returns ``(file, was_truncated)`` pairs in rank order."""
        included: List[Tuple[ContextFile, bool]] = []
        used = 0
        # Sections are numbered per kind, in rank order
        counts = {FileKind.SOURCE: 0, FileKind.REFERENCE: 0}

        for file in ranked:
            index = counts[file.kind] + 1
            section = _render_section(_label(file), index, file, truncated=False)
            if used + len(section) <= available:
                included.append((file, False))
                counts[file.kind] = index
                used += len(section)
                continue

            remaining = available - used
            if remaining > MIN_USEFUL_SPACE:
                content = self.truncator.truncate(file.content, remaining - TRUNCATION_OVERHEAD)
                shortened = file.with_content(content)
                section = _render_section(_label(file), index, shortened, truncated=True)
                if used + len(section) <= available:
                    included.append((shortened, True))
                    used += len(section)
                    logger.debug(f"Included truncated file {file.path} in remaining {remaining} characters")
            break

        return included

    def _render(self, user_message: str, included: List[Tuple[ContextFile, bool]], candidate_count: int) -> str:
        sources = [(f, t) for f, t in included if f.kind == FileKind.SOURCE]
        references = [(f, t) for f, t in included if f.kind == FileKind.REFERENCE]

        parts = [PREAMBLE]

        if sources:
            parts.append(SOURCE_HEADER)
            for i, (file, truncated) in enumerate(sources, start=1):
                parts.append(_render_section("Source", i, file, truncated))

        if references:
            parts.append(REFERENCE_HEADER)
            for i, (file, truncated) in enumerate(references, start=1):
                parts.append(_render_section("Reference", i, file, truncated))

        if candidate_count:
            parts.append(_summary(len(included), candidate_count, len(sources), len(references)))

        parts.append(QUESTION_HEADER)
        parts.append(user_message)
        return "".join(parts)

    def _apply_final_guard(self, prompt: str, max_total_length: int) -> Tuple[str, bool]:
        if len(prompt) <= max_total_length:
            return prompt, False

        logger.warning(
            f"Generated prompt length ({len(prompt)}) exceeds max length ({max_total_length}), truncating..."
        )
        cut = max(0, max_total_length - max(FINAL_GUARD_MARGIN, len(PROMPT_TRUNCATION_MARKER)))
        guarded = prompt[:cut] + PROMPT_TRUNCATION_MARKER
        return guarded[:max_total_length], True


def _label(file: ContextFile) -> str:
    return "Reference" if file.kind == FileKind.REFERENCE else "Source"


def _summary(included: int, candidates: int, sources: int, references: int) -> str:
    text = (
        "\n--- Context Summary ---\n"
        f"Included {included} of {candidates} files ({sources} source, {references} reference)\n"
    )
    skipped = candidates - included
    if skipped > 0:
        text += f"Skipped {skipped} files due to length constraints\n"
    return text


def _fixed_overhead(candidate_count: int) -> int:
    """Upper bound on everything rendered besides the preamble, file sections and message."""
    if not candidate_count:
        return len(QUESTION_HEADER)
    # Widest summary: every count as large as the candidate count, plus the skipped line
    summary = _summary(candidate_count, candidate_count, candidate_count, candidate_count)
    summary += f"Skipped {candidate_count} files due to length constraints\n"
    return len(SOURCE_HEADER) + len(REFERENCE_HEADER) + len(summary) + len(QUESTION_HEADER)


def _render_section(label: str, index: int, file: ContextFile, truncated: bool) -> str:
    suffix = " (truncated)" if truncated else ""
    return f"\n--- {label} File {index}: {file.name}{suffix} ---\n{file.content}\n"
