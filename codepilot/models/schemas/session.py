"""
Chat Session Models

Read-only view of a chat session as consumed by the provider adapters. The
session collection itself (creation, persistence) lives outside this package.
"""

import uuid
from datetime import datetime, timezone
from typing import List, Tuple

from pydantic import BaseModel, ConfigDict, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ChatMessage(BaseModel):
    """One turn of a conversation."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    content: str
    is_user: bool
    timestamp: datetime = Field(default_factory=_utcnow)

    @property
    def role(self) -> str:
        return "user" if self.is_user else "assistant"


class ChatSession(BaseModel):
    """A named conversation with ordered messages."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    name: str = "New Chat"
    messages: Tuple[ChatMessage, ...] = ()
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @classmethod
    def empty(cls, name: str = "Temporary Session") -> "ChatSession":
        return cls(id="temp", name=name)

    def to_chat_messages(self) -> List[dict]:
        """Role-tagged turns in session order."""
        return [{"role": message.role, "content": message.content} for message in self.messages]
