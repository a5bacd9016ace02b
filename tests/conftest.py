"""
Global test configuration and fixtures for the assistant core tests.

Provides settings, context files and chat sessions shared across test modules.
"""

from typing import Callable, List

import httpx
import pytest

from codepilot.core.config import SettingsProvider, create_test_config
from codepilot.models.schemas.context import ContextFile, FileKind
from codepilot.models.schemas.session import ChatMessage, ChatSession
from codepilot.services.context.context_store import ContextStore


@pytest.fixture
def settings_provider() -> SettingsProvider:
    """Settings with short limits and no retry backoff."""
    return SettingsProvider(create_test_config())


@pytest.fixture
def context_store() -> ContextStore:
    return ContextStore()


@pytest.fixture
def make_file() -> Callable[..., ContextFile]:
    """Factory for context files; the name defaults to the path's basename."""

    def _make(path: str, content: str = "", kind: FileKind = FileKind.SOURCE, name: str = None) -> ContextFile:
        return ContextFile(path=path, name=name or path.rsplit("/", 1)[-1], content=content, kind=kind)

    return _make


@pytest.fixture
def sample_session() -> ChatSession:
    """Session with one completed exchange."""
    return ChatSession(
        id="session-1",
        name="Login questions",
        messages=(
            ChatMessage(content="What does AuthService do?", is_user=True),
            ChatMessage(content="It validates credentials.", is_user=False),
        ),
    )


@pytest.fixture
def recorded_requests() -> List[httpx.Request]:
    """Requests seen by a mock transport, in order."""
    return []
