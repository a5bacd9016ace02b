"""
Context Models

Pydantic schemas for the files that feed prompt assembly and for the budget
that bounds it.
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator


class FileKind(str, Enum):
    """Collection a context file belongs to."""
    SOURCE = "source"        # Auto-discovered by a project scan
    REFERENCE = "reference"  # Explicitly pinned by the user


class ContextFile(BaseModel):
    """Single file held by the context store."""

    model_config = ConfigDict(frozen=True)

    path: str = Field(..., description="Absolute or workspace-relative path (unique key within a kind)")
    name: str = Field(..., description="Display name, usually the file's basename")
    content: str = Field(default="", description="Text content, possibly summarized or truncated")
    kind: FileKind = Field(default=FileKind.SOURCE, description="Collection this file belongs to")

    @field_validator("path")
    @classmethod
    def validate_path(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("File path cannot be empty")
        return v

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("File name cannot be empty")
        return v.strip()

    @computed_field
    @property
    def character_count(self) -> int:
        return len(self.content)

    def as_kind(self, kind: FileKind) -> "ContextFile":
        """Return this file re-tagged with ``kind``."""
        if self.kind == kind:
            return self
        return self.model_copy(update={"kind": kind})

    def with_content(self, content: str) -> "ContextFile":
        return self.model_copy(update={"content": content})


class PromptBudget(BaseModel):
    """
    Length limits for one prompt assembly call.

    Built from the current settings at call time and never cached, so a
    configuration change takes effect on the next assembly.
    """

    model_config = ConfigDict(frozen=True)

    max_total_length: int = Field(..., ge=1, description="Hard ceiling on the rendered prompt length")
    max_files_considered: int = Field(default=50, ge=0, description="Maximum candidate files looked at")
    max_per_file_length: int = Field(default=3_000, ge=1, description="Maximum content length of a single file")

    @classmethod
    def from_settings(cls, settings) -> "PromptBudget":
        limits = settings.context
        return cls(
            max_total_length=limits.max_prompt_length,
            max_files_considered=limits.max_context_files,
            max_per_file_length=limits.max_file_content_length,
        )


class ContextStats(BaseModel):
    """Counts reported by the context store."""

    model_config = ConfigDict(frozen=True)

    reference_count: int = 0
    source_count: int = 0
    total_bytes: int = 0


class AssembledPrompt(BaseModel):
    """Prompt text plus a report of what made it in."""

    model_config = ConfigDict(frozen=True)

    prompt: str
    candidate_count: int = 0
    included_paths: List[str] = Field(default_factory=list)
    source_count: int = 0
    reference_count: int = 0
    skipped_count: int = 0
    truncated_path: Optional[str] = None
    final_guard_applied: bool = False

    @computed_field
    @property
    def included_count(self) -> int:
        return len(self.included_paths)

    @computed_field
    @property
    def length(self) -> int:
        return len(self.prompt)
