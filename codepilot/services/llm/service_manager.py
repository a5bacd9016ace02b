"""
LLM Service Manager

Holds the provider adapters, tracks which one is current and routes every
model call through the RetryCoordinator. Adapters are created lazily through
the LLMFactory and reused.

Streaming calls are only retried while nothing has been delivered: once a
chunk has reached the caller, a failure is reported through ``on_error``
instead of restarting the stream, so chunks are never delivered twice.
"""

import logging
import uuid
from typing import Any, Callable, Dict, List, Optional

import httpx

from codepilot.core.config import SettingsProvider
from codepilot.models.schemas.session import ChatSession

from .base_client import BaseLLMService, ChunkCallback, CompleteCallback, ErrorCallback, StreamState
from .llm_factory import LLMFactory
from .response_cache import ResponseCache
from .retry import RetryCoordinator

logger = logging.getLogger(__name__)

ProviderListener = Callable[[str], None]


def new_operation_id(operation: str, model: Optional[str] = None) -> str:
    """Unique id for one logical call, e.g. ``chat_llama3_3f2a9c1e``."""
    suffix = uuid.uuid4().hex[:8]
    return f"{operation}_{model}_{suffix}" if model else f"{operation}_{suffix}"


class LLMServiceManager:
    """Entry point for model calls; owns provider selection and retries."""

    def __init__(
        self,
        settings_provider: SettingsProvider,
        retry: Optional[RetryCoordinator] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings_provider = settings_provider
        self.retry = retry or RetryCoordinator(settings_provider)
        self._transport = transport
        self._cache = ResponseCache()
        self._services: Dict[str, BaseLLMService] = {}
        self._listeners: List[ProviderListener] = []
        self._current = self.get_service(settings_provider.current().llm_provider)

    # ------------------------------------------------------------------
    # Provider management
    # ------------------------------------------------------------------

    def register_service(self, service: BaseLLMService) -> None:
        """Register a ready-made adapter under its provider name."""
        self._services[service.provider_name] = service

    def get_service(self, provider: str) -> BaseLLMService:
        """Return the adapter for ``provider``, creating it on first use."""
        name = provider.lower()
        service = self._services.get(name)
        if service is None:
            service = LLMFactory.create_client(name, self.settings_provider, transport=self._transport, cache=self._cache)
            self._services[name] = service
        return service

    @property
    def current_service(self) -> BaseLLMService:
        return self._current

    @property
    def current_provider_name(self) -> str:
        return self._current.provider_name

    def available_providers(self) -> List[str]:
        return LLMFactory.supported_providers()

    def on_provider_changed(self, listener: ProviderListener) -> None:
        self._listeners.append(listener)

    async def switch_provider(self, provider: Optional[str] = None) -> bool:
        """
        Make ``provider`` (default: the ``llm_provider`` setting) current.

        Only switches when the target reports available; otherwise the
        current provider is kept and False is returned.
        """
        name = (provider or self.settings_provider.current().llm_provider).lower()
        if self._current.provider_name == name:
            return True

        service = self.get_service(name)
        if not await service.is_available():
            logger.warning(f"Provider {name} is not available, keeping {self.current_provider_name}")
            return False

        self._current = service
        logger.info(f"Switched to LLM provider: {name}")
        for listener in list(self._listeners):
            listener(name)
        return True

    # ------------------------------------------------------------------
    # Model calls
    # ------------------------------------------------------------------

    async def is_available(self) -> bool:
        return await self._current.is_available()

    async def list_models(self) -> List[str]:
        service = self._current
        return await self.retry.with_retry(
            service.list_models, new_operation_id("list_models"), {"operation": "list_models"}
        )

    async def preferred_model(self) -> Optional[str]:
        return await self._current.preferred_model()

    async def generate(self, model: str, prompt: str) -> str:
        service = self._current
        return await self.retry.with_retry(
            lambda: service.generate(model, prompt),
            new_operation_id("generate", model),
            _call_context(service, "generate", model, prompt),
        )

    async def chat(self, model: str, prompt: str, session: ChatSession) -> str:
        service = self._current
        return await self.retry.with_retry(
            lambda: service.chat(model, prompt, session),
            new_operation_id("chat", model),
            _call_context(service, "chat", model, prompt),
        )

    async def chat_stream(
        self,
        model: str,
        prompt: str,
        session: ChatSession,
        on_chunk: ChunkCallback,
        on_complete: CompleteCallback,
        on_error: ErrorCallback,
    ) -> StreamState:
        """
        Stream a chat response with retries before the first chunk.

        ``on_error`` is called exactly once on final failure and never
        together with ``on_complete``.
        """
        service = self._current
        delivered = 0
        completed = False
        final_state = StreamState.IDLE

        def forward_chunk(chunk: str) -> None:
            nonlocal delivered
            delivered += 1
            on_chunk(chunk)

        def mark_complete() -> None:
            nonlocal completed
            completed = True

        async def attempt() -> None:
            nonlocal final_state
            failure: List[BaseException] = []
            final_state = await service.chat_stream(model, prompt, session, forward_chunk, mark_complete, failure.append)
            if failure:
                if delivered == 0:
                    raise failure[0]
                # Partial output already reached the caller
                on_error(failure[0])

        try:
            await self.retry.with_retry(
                attempt,
                new_operation_id("chat_stream", model),
                _call_context(service, "chat_stream", model, prompt),
            )
        except Exception as e:
            final_state = StreamState.FAILED
            on_error(e)
            return final_state

        # Completion is reported once, after the retried call has settled
        if completed:
            on_complete()
        return final_state

    # ------------------------------------------------------------------
    # Model management
    # ------------------------------------------------------------------

    async def pull_model(self, model: str, on_progress: Optional[Callable[[Dict[str, Any]], None]] = None) -> bool:
        return await self._current.pull_model(model, on_progress)

    async def delete_model(self, model: str) -> bool:
        return await self._current.delete_model(model)

    async def get_model_info(self, model: str) -> Optional[Dict[str, Any]]:
        return await self._current.get_model_info(model)


def _call_context(service: BaseLLMService, operation: str, model: str, prompt: str) -> Dict[str, Any]:
    return {
        "operation": operation,
        "provider": service.provider_name,
        "model": model,
        "prompt_length": len(prompt),
    }
