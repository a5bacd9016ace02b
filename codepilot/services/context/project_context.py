"""
Project Context Service

Populates the context store from the workspace and produces full prompts for
chat requests. Scanning, summarizing and budget handling are delegated to the
workspace scanner, structure extractor, truncator and prompt assembler.
"""

import logging
import os
from typing import List, Optional, Tuple

from codepilot.core.config import SettingsProvider
from codepilot.models.schemas.context import AssembledPrompt, ContextFile, FileKind, PromptBudget
from codepilot.services.context.content_truncator import ContentTruncator
from codepilot.services.context.context_store import ContextStore
from codepilot.services.context.prompt_assembler import PromptAssembler
from codepilot.services.context.structure_extractor import LanguageFamily, StructureExtractor
from codepilot.services.context.workspace_scanner import WorkspaceScanner, default_scanner

logger = logging.getLogger(__name__)

SOURCE_PATTERNS = ("**/*.{js,ts,jsx,tsx,py,java,cpp,c,cs,php,rb,go,rs,swift,kt}",)
EXCLUDE_PATTERNS = ("**/node_modules/**",)


class ProjectContextService:
    """
    Owns the context store for one workspace.

    Limits are read from the settings provider at the start of every
    operation, never cached.
    """

    def __init__(
        self,
        settings_provider: SettingsProvider,
        scanner: Optional[WorkspaceScanner] = None,
        store: Optional[ContextStore] = None,
        extractor: Optional[StructureExtractor] = None,
        truncator: Optional[ContentTruncator] = None,
        assembler: Optional[PromptAssembler] = None,
    ):
        self.settings_provider = settings_provider
        self.scanner = scanner or default_scanner()
        self.store = store or ContextStore()
        self.extractor = extractor or StructureExtractor()
        self.truncator = truncator or ContentTruncator()
        self.assembler = assembler or PromptAssembler(truncator=self.truncator)

    async def init_project_context(self, scanner: Optional[WorkspaceScanner] = None) -> int:
        """
        Rescan the workspace and replace the source collection.

        Returns the number of source files now held by the store.
        """
        scanner = scanner or self.scanner
        limits = self.settings_provider.current().context

        scanned = await scanner.scan_workspace(SOURCE_PATTERNS, EXCLUDE_PATTERNS, limits.max_context_files)

        sources: List[ContextFile] = []
        for path, text in scanned:
            try:
                sources.append(self._to_source_file(path, text, limits.max_file_content_length))
            except Exception as e:
                logger.error(f"Error processing file {path}: {e}", exc_info=True)

        self.store.replace_source_scan(sources)
        logger.info(f"Project context initialized with {len(sources)} source files")
        return len(sources)

    def _to_source_file(self, path: str, text: str, max_length: int) -> ContextFile:
        name = os.path.basename(path)
        family = LanguageFamily.from_filename(name)

        if family == LanguageFamily.PLAIN:
            content = self.truncator.truncate(text, max_length)
        else:
            content = self.extractor.summarize(text, family)
        content = self.truncator.truncate(content, max_length)

        return ContextFile(path=path, name=name, content=content, kind=FileKind.SOURCE)

    async def add_reference_file(self, path: str) -> bool:
        """Read ``path`` and pin it as a reference file. Returns False if it cannot be read."""
        try:
            text = await self.scanner.read_file(path)
        except (OSError, UnicodeDecodeError) as e:
            logger.error(f"Error adding reference file {path}: {e}")
            return False

        self.store.add_reference(
            ContextFile(path=path, name=os.path.basename(path), content=text, kind=FileKind.REFERENCE)
        )
        return True

    def remove_reference_file(self, path: str) -> bool:
        return self.store.remove_reference(path)

    def clear_reference_files(self) -> None:
        self.store.clear_references()

    def get_reference_files(self) -> List[ContextFile]:
        return self.store.get_reference()

    def get_source_files(self) -> List[ContextFile]:
        return self.store.get_source()

    def current_budget(self) -> PromptBudget:
        return PromptBudget.from_settings(self.settings_provider.current())

    def generate_full_prompt(self, user_message: str) -> str:
        return self.generate_full_prompt_with_report(user_message).prompt

    def generate_full_prompt_with_report(self, user_message: str) -> AssembledPrompt:
        report = self.assembler.build_with_report(user_message, self.store, self.current_budget())
        if report.skipped_count:
            logger.info(
                f"Prompt includes {report.included_count} of {report.candidate_count} files, "
                f"skipped {report.skipped_count}"
            )
        return report

    def context_summary(self) -> Tuple[int, int]:
        """``(reference_count, source_count)`` for status displays."""
        stats = self.store.stats()
        return stats.reference_count, stats.source_count
