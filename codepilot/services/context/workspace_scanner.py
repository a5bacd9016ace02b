"""
Workspace Scanner

Filesystem collaborator used by the project context service. The core never
walks directories itself; it asks a ``WorkspaceScanner`` for ``(path, text)``
pairs.
"""

import asyncio
import fnmatch
import logging
import re
from pathlib import Path
from typing import List, Optional, Protocol, Sequence, Tuple

logger = logging.getLogger(__name__)

_BRACE_PATTERN = re.compile(r"\{([^{}]*)\}")


class WorkspaceScanner(Protocol):
    """Anything that can list and read workspace files."""

    async def scan_workspace(
        self, patterns: Sequence[str], exclude_patterns: Sequence[str], limit: int
    ) -> Sequence[Tuple[str, str]]:
        ...

    async def read_file(self, path: str) -> str:
        ...


def expand_braces(pattern: str) -> List[str]:
    """Expand ``*.{js,ts}`` into ``["*.js", "*.ts"]`` (nested groups included)."""
    match = _BRACE_PATTERN.search(pattern)
    if not match:
        return [pattern]

    expanded: List[str] = []
    head, tail = pattern[: match.start()], pattern[match.end():]
    for option in match.group(1).split(","):
        expanded.extend(expand_braces(f"{head}{option}{tail}"))
    return expanded


class FileSystemWorkspaceScanner:
    """
    Scans a directory tree with glob patterns.

    Matches are returned in sorted path order so repeated scans are stable.
    File reads run in a worker thread; unreadable files are logged and
    skipped.
    """

    def __init__(self, root: str, encoding: str = "utf-8"):
        self.root = Path(root)
        self.encoding = encoding

    async def scan_workspace(
        self, patterns: Sequence[str], exclude_patterns: Sequence[str], limit: int
    ) -> List[Tuple[str, str]]:
        paths = await asyncio.to_thread(self._find_files, list(patterns), list(exclude_patterns), limit)

        results: List[Tuple[str, str]] = []
        for path in paths:
            try:
                text = await self.read_file(str(path))
            except (OSError, UnicodeDecodeError) as e:
                logger.warning(f"Skipping unreadable file {path}: {e}")
                continue
            results.append((str(path), text))

        logger.info(f"Workspace scan found {len(results)} files under {self.root}")
        return results

    async def read_file(self, path: str) -> str:
        return await asyncio.to_thread(Path(path).read_text, encoding=self.encoding)

    def _find_files(self, patterns: List[str], exclude_patterns: List[str], limit: int) -> List[Path]:
        expanded_excludes = [p for pattern in exclude_patterns for p in expand_braces(pattern)]

        found = set()
        for pattern in patterns:
            for expanded in expand_braces(pattern):
                for path in self.root.glob(expanded):
                    if path.is_file() and not self._is_excluded(path, expanded_excludes):
                        found.add(path)

        ordered = sorted(found)
        if limit >= 0:
            ordered = ordered[:limit]
        return ordered

    def _is_excluded(self, path: Path, exclude_patterns: List[str]) -> bool:
        relative = "/" + path.relative_to(self.root).as_posix()
        return any(fnmatch.fnmatch(relative, pattern) for pattern in exclude_patterns)


def default_scanner(root: Optional[str] = None) -> FileSystemWorkspaceScanner:
    return FileSystemWorkspaceScanner(root or str(Path.cwd()))
