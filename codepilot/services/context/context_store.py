"""
Context Store

Holds the two collections of context files: references pinned by the user
and sources discovered by the last project scan. The two are independent
address spaces keyed by path.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Tuple

from codepilot.models.schemas.context import ContextFile, ContextStats, FileKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ContextSnapshot:
    """Both collections captured at the same instant."""
    references: Tuple[ContextFile, ...]
    sources: Tuple[ContextFile, ...]

    @property
    def all_files(self) -> List[ContextFile]:
        return [*self.references, *self.sources]


class ContextStore:
    """
    In-memory store for context files.

    Dicts preserve insertion order, so re-adding an existing path replaces
    its content while keeping its original position. Readers always get
    copies; a rescan swaps the whole source collection in one assignment.
    """

    def __init__(self):
        self._references: Dict[str, ContextFile] = {}
        self._sources: Dict[str, ContextFile] = {}

    # ------------------------------------------------------------------
    # References
    # ------------------------------------------------------------------

    def add_reference(self, file: ContextFile) -> None:
        """Add or replace a reference file (keyed by path)."""
        file = file.as_kind(FileKind.REFERENCE)
        replaced = file.path in self._references
        self._references[file.path] = file
        logger.debug(f"{'Replaced' if replaced else 'Added'} reference file: {file.path}")

    def remove_reference(self, path: str) -> bool:
        """Remove a reference file; returns False when the path was not present."""
        removed = self._references.pop(path, None)
        if removed is not None:
            logger.debug(f"Removed reference file: {path}")
        return removed is not None

    def clear_references(self) -> None:
        self._references = {}

    def get_reference(self) -> List[ContextFile]:
        return list(self._references.values())

    # ------------------------------------------------------------------
    # Sources
    # ------------------------------------------------------------------

    def replace_source_scan(self, files: Iterable[ContextFile]) -> None:
        """Replace the whole source collection with the result of a scan."""
        sources: Dict[str, ContextFile] = {}
        for file in files:
            file = file.as_kind(FileKind.SOURCE)
            sources[file.path] = file
        self._sources = sources
        logger.info(f"Source collection replaced with {len(sources)} files")

    def clear_source(self) -> None:
        self._sources = {}

    def get_source(self) -> List[ContextFile]:
        return list(self._sources.values())

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def snapshot(self) -> ContextSnapshot:
        return ContextSnapshot(
            references=tuple(self._references.values()),
            sources=tuple(self._sources.values()),
        )

    def stats(self) -> ContextStats:
        snapshot = self.snapshot()
        total_bytes = sum(len(f.content.encode("utf-8")) for f in snapshot.all_files)
        return ContextStats(
            reference_count=len(snapshot.references),
            source_count=len(snapshot.sources),
            total_bytes=total_bytes,
        )
