"""
Assistant Service

Facade used by the editor integration: chat with project context, streaming
chat, inline code generation and inline completion. All collaborators are
injected; nothing here is a process-wide singleton.
"""

import logging
from typing import Optional

from codepilot.core.config import SettingsProvider
from codepilot.models.schemas.session import ChatSession
from codepilot.services.completion.prompt_builder import (
    CompletionPromptBuilder,
    clean_completion,
    clean_generated_code,
)
from codepilot.services.context.project_context import ProjectContextService
from codepilot.services.llm.base_client import ChunkCallback, CompleteCallback, ErrorCallback, StreamState
from codepilot.services.llm.error_classifier import LLMErrorHandler
from codepilot.services.llm.exceptions import NoModelsAvailableError
from codepilot.services.llm.service_manager import LLMServiceManager
from codepilot.utils.logging import configure_logging

logger = logging.getLogger(__name__)


class AssistantService:
    """Wires project context, prompt building and the LLM service manager together."""

    def __init__(
        self,
        settings_provider: SettingsProvider,
        llm_manager: Optional[LLMServiceManager] = None,
        context_service: Optional[ProjectContextService] = None,
        completion_builder: Optional[CompletionPromptBuilder] = None,
        error_handler: Optional[LLMErrorHandler] = None,
    ):
        configure_logging(settings_provider.current().log_level)

        self.settings_provider = settings_provider
        self.llm_manager = llm_manager or LLMServiceManager(settings_provider)
        self.context_service = context_service or ProjectContextService(settings_provider)
        self.completion_builder = completion_builder or CompletionPromptBuilder(settings_provider)
        self.error_handler = error_handler or LLMErrorHandler(settings_provider)

    async def resolve_model(self, model: Optional[str] = None) -> str:
        """Explicit model, else the provider's preferred model."""
        if model:
            return model
        preferred = await self.llm_manager.preferred_model()
        if not preferred:
            raise NoModelsAvailableError(self.llm_manager.current_provider_name)
        return preferred

    # ------------------------------------------------------------------
    # Chat
    # ------------------------------------------------------------------

    async def send_chat_message(
        self, message: str, session: Optional[ChatSession] = None, model: Optional[str] = None
    ) -> str:
        """Answer ``message`` with the project context prepended."""
        model = await self.resolve_model(model)
        prompt = self.context_service.generate_full_prompt(message)
        return await self.llm_manager.chat(model, prompt, session or ChatSession.empty())

    async def stream_chat_message(
        self,
        message: str,
        on_chunk: ChunkCallback,
        on_complete: CompleteCallback,
        on_error: ErrorCallback,
        session: Optional[ChatSession] = None,
        model: Optional[str] = None,
    ) -> StreamState:
        try:
            model = await self.resolve_model(model)
        except NoModelsAvailableError as e:
            on_error(e)
            return StreamState.FAILED

        prompt = self.context_service.generate_full_prompt(message)
        return await self.llm_manager.chat_stream(
            model, prompt, session or ChatSession.empty(), on_chunk, on_complete, on_error
        )

    # ------------------------------------------------------------------
    # Inline generation and completion
    # ------------------------------------------------------------------

    async def generate_inline_code(
        self, request: str, text: str, line: int, column: int, model: Optional[str] = None
    ) -> str:
        """Generate code for ``request`` to be inserted at ``(line, column)`` of ``text``."""
        model = await self.resolve_model(model)
        prompt = self.completion_builder.build_inline_prompt(request, text, line, column)
        generated = await self.llm_manager.generate(model, prompt)
        return clean_generated_code(generated)

    async def complete_code(self, text: str, offset: int, model: Optional[str] = None) -> str:
        """
        Inline completion at ``offset``.

        Completion runs in the background of typing, so failures are logged
        and reported as an empty completion rather than raised.
        """
        if not self.settings_provider.current().completion.enable_code_completion:
            return ""

        prompt = self.completion_builder.build_completion_prompt(text, offset)
        if not prompt:
            return ""

        try:
            model = await self.resolve_model(model)
        except NoModelsAvailableError as e:
            self.error_handler.handle_error(e, {"operation": "inline_completion"})
            return ""

        try:
            response = await self.llm_manager.generate(model, prompt)
        except Exception as generate_error:
            logger.info(f"Generate failed for completion, falling back to chat: {generate_error}")
            try:
                response = await self.llm_manager.chat(model, prompt, ChatSession.empty())
            except Exception as chat_error:
                self.error_handler.handle_error(chat_error, {"operation": "inline_completion", "offset": offset})
                return ""

        return self.completion_builder.clip(clean_completion(response))

    def describe_error(self, error: BaseException) -> str:
        """User-facing text for a failure surfaced by any of the calls above."""
        details = self.error_handler.handle_error(error)
        return self.error_handler.format_for_user(details)
