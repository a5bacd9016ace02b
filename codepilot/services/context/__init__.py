"""
Project Context Services

Gathers project files and turns them into length-bounded prompts.

Public API:
  - StructureExtractor / extract_structure: structural summaries of source files
  - truncate_content / ContentTruncator: boundary-aware truncation
  - FilePrioritizer: priority ordering of context files
  - ContextStore: reference and source collections
  - PromptAssembler: budgeted prompt assembly
  - ProjectContextService: scan + store + assembly wired together

Usage:
    from codepilot.services.context import ProjectContextService

    service = ProjectContextService(settings_provider, scanner=FileSystemWorkspaceScanner(root))
    await service.init_project_context()
    prompt = service.generate_full_prompt("Where is the login handled?")
"""

from codepilot.services.context.content_truncator import (
    TRUNCATION_MARKER,
    ContentTruncator,
    TruncationResult,
    TruncationStrategy,
    truncate_content,
)
from codepilot.services.context.context_store import ContextSnapshot, ContextStore
from codepilot.services.context.file_prioritizer import FilePrioritizer, PriorityRule
from codepilot.services.context.project_context import ProjectContextService
from codepilot.services.context.prompt_assembler import PromptAssembler
from codepilot.services.context.structure_extractor import (
    LanguageFamily,
    StructureExtractor,
    extract_structure,
)
from codepilot.services.context.workspace_scanner import FileSystemWorkspaceScanner, WorkspaceScanner

__all__ = [
    # Summarizing and truncation
    "StructureExtractor",
    "LanguageFamily",
    "extract_structure",
    "ContentTruncator",
    "TruncationResult",
    "TruncationStrategy",
    "TRUNCATION_MARKER",
    "truncate_content",
    # Store and assembly
    "ContextStore",
    "ContextSnapshot",
    "FilePrioritizer",
    "PriorityRule",
    "PromptAssembler",
    # Workspace integration
    "ProjectContextService",
    "FileSystemWorkspaceScanner",
    "WorkspaceScanner",
]
