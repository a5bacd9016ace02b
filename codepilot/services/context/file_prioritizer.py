"""
File Prioritizer

Orders context files so the ones most likely to matter (configuration,
entrypoints, services) are considered first when the prompt budget runs out.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, List, Sequence, Tuple

from codepilot.models.schemas.context import ContextFile

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PriorityRule:
    """Substring rule over a file's lowercased name and path."""
    label: str
    score: int
    name_keywords: Tuple[str, ...] = ()
    path_keywords: Tuple[str, ...] = ()

    def matches(self, name: str, path: str) -> bool:
        return any(k in name for k in self.name_keywords) or any(k in path for k in self.path_keywords)


DEFAULT_PRIORITY = 5

# Evaluated in order; the first matching rule decides the score.
DEFAULT_RULES: Tuple[PriorityRule, ...] = (
    PriorityRule(
        label="config",
        score=10,
        name_keywords=("config", "package.json", "tsconfig", "pom.xml", "pyproject", "setup.cfg", "requirements"),
    ),
    PriorityRule(
        label="entrypoint",
        score=8,
        name_keywords=("main", "index", "app"),
        path_keywords=("src/main",),
    ),
    PriorityRule(
        label="service",
        score=7,
        name_keywords=("service", "manager", "provider", "controller"),
    ),
    PriorityRule(
        label="test",
        score=3,
        name_keywords=("test", "spec"),
        path_keywords=("test/", "__tests__"),
    ),
)


class FilePrioritizer:
    """Stable, descending-priority ordering of context files."""

    def __init__(self, rules: Sequence[PriorityRule] = DEFAULT_RULES, default_priority: int = DEFAULT_PRIORITY):
        self.rules = tuple(rules)
        self.default_priority = default_priority

    def priority(self, file: ContextFile) -> int:
        name = file.name.lower()
        path = file.path.replace("\\", "/").lower()
        for rule in self.rules:
            if rule.matches(name, path):
                return rule.score
        return self.default_priority

    def rank(self, files: Iterable[ContextFile]) -> List[ContextFile]:
        """Return a new list ordered by priority; ties keep their input order."""
        # sorted() is stable, so equal priorities keep their relative order
        ranked = sorted(files, key=self.priority, reverse=True)
        logger.debug(f"Ranked {len(ranked)} context files")
        return ranked
