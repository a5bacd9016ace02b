"""
Base interface for LLM provider adapters.

An adapter turns the capability calls (availability, model listing,
generate, chat, streaming chat) into one backend's HTTP protocol. Adapters
never retry; retries belong to the RetryCoordinator wrapped around them.

Connection settings are looked up through the settings provider on every
call, so a changed base URL or timeout applies to the next request.
"""

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx

from codepilot.core.config import ProviderSettings, SettingsProvider
from codepilot.models.schemas.session import ChatSession
from codepilot.services.llm.exceptions import (
    InvalidResponseError,
    LLMServiceError,
    ModelNotFoundError,
    NoModelsAvailableError,
    ProviderHTTPError,
    StreamTimeoutError,
)
from codepilot.services.llm.response_cache import ResponseCache

logger = logging.getLogger(__name__)

ChunkCallback = Callable[[str], None]
CompleteCallback = Callable[[], None]
ErrorCallback = Callable[[BaseException], None]


class StreamState(Enum):
    """Lifecycle of one streaming request."""
    IDLE = "idle"
    CONNECTING = "connecting"    # Request sent, no success status yet
    STREAMING = "streaming"      # Success status received, reading chunks
    COMPLETED = "completed"
    FAILED = "failed"


class StreamRun:
    """Tracks the state of a single ``chat_stream`` call."""

    def __init__(self):
        self.state = StreamState.IDLE
        self.chunks_delivered = 0

    def advance(self, state: StreamState) -> None:
        logger.debug(f"Stream state {self.state.value} -> {state.value}")
        self.state = state


class BaseLLMService(ABC):
    """Abstract base class for LLM provider adapters."""

    def __init__(
        self,
        settings_provider: SettingsProvider,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        cache: Optional[ResponseCache] = None,
    ):
        self.settings_provider = settings_provider
        self._transport = transport
        self.cache = cache or ResponseCache()
        # Base URL for which availability was last confirmed
        self._available_for: Optional[str] = None
        self.last_stream_state = StreamState.IDLE

    # ------------------------------------------------------------------
    # Provider specifics
    # ------------------------------------------------------------------

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the provider name (e.g., 'ollama', 'localai')."""
        pass

    @property
    @abstractmethod
    def health_path(self) -> str:
        """Path probed by ``is_available``."""
        pass

    @abstractmethod
    async def _fetch_models(self, client: httpx.AsyncClient) -> List[str]:
        pass

    @abstractmethod
    async def _generate(self, client: httpx.AsyncClient, model: str, prompt: str) -> str:
        pass

    @abstractmethod
    async def _chat(self, client: httpx.AsyncClient, model: str, messages: List[Dict[str, str]]) -> str:
        pass

    @abstractmethod
    def _stream_request(self, model: str, messages: List[Dict[str, str]]) -> Tuple[str, Dict[str, Any]]:
        """Return ``(path, json_body)`` for a streaming chat request."""
        pass

    @abstractmethod
    def _parse_stream_line(self, line: str) -> Tuple[Optional[str], bool]:
        """
        Parse one non-empty line of a streaming response.

        Returns ``(text, done)``. Raises ``ValueError`` for malformed lines,
        which are skipped.
        """
        pass

    async def pull_model(self, model: str, on_progress: Optional[Callable[[Dict[str, Any]], None]] = None) -> bool:
        return False

    async def delete_model(self, model: str) -> bool:
        return False

    async def get_model_info(self, model: str) -> Optional[Dict[str, Any]]:
        return None

    # ------------------------------------------------------------------
    # Connection helpers
    # ------------------------------------------------------------------

    @property
    def provider_settings(self) -> ProviderSettings:
        return self.settings_provider.current().get_provider_settings(self.provider_name)

    @property
    def base_url(self) -> str:
        return self.provider_settings.base_url

    def _client(self) -> httpx.AsyncClient:
        settings = self.provider_settings
        headers = {"Content-Type": "application/json"}
        if settings.api_key:
            headers["Authorization"] = f"Bearer {settings.api_key}"
        return httpx.AsyncClient(
            base_url=settings.base_url,
            timeout=settings.timeout_seconds,
            headers=headers,
            transport=self._transport,
        )

    def _raise_for_status(self, response: httpx.Response, model: Optional[str] = None) -> None:
        """Raise the matching service error for a non-success response (body must be read)."""
        if response.is_success:
            return

        if model and self._is_missing_model(response):
            raise ModelNotFoundError(model, provider=self.provider_name)

        raise ProviderHTTPError(
            status_code=response.status_code,
            reason=response.reason_phrase,
            provider=self.provider_name,
            body=response.text,
        )

    @staticmethod
    def _is_missing_model(response: httpx.Response) -> bool:
        if response.status_code != 404:
            return False
        body = response.text.lower()
        return "model" in body and ("not found" in body or "does not exist" in body)

    def _json(self, response: httpx.Response) -> Any:
        try:
            return json.loads(response.text)
        except ValueError as e:
            raise InvalidResponseError(f"JSON parse error: {e}", provider=self.provider_name, raw=response.text)

    @staticmethod
    def build_messages(prompt: str, session: ChatSession) -> List[Dict[str, str]]:
        """Session history as role-tagged turns, followed by the new user prompt."""
        messages = session.to_chat_messages()
        messages.append({"role": "user", "content": prompt})
        return messages

    # ------------------------------------------------------------------
    # Capability interface
    # ------------------------------------------------------------------

    async def is_available(self) -> bool:
        """
        Probe the provider. A positive result is remembered until the
        configured base URL changes; failures are never cached.
        """
        base_url = self.base_url
        if self._available_for == base_url:
            return True

        try:
            async with self._client() as client:
                response = await client.get(self.health_path)
        except httpx.HTTPError as e:
            self._log_unavailable(f"{self.provider_name} service is not available at {base_url}: {e}")
            return False

        if response.is_success:
            self._available_for = base_url
            return True

        self._log_unavailable(f"{self.provider_name} availability check returned HTTP {response.status_code}")
        return False

    def _log_unavailable(self, message: str) -> None:
        if self.settings_provider.current().error_handling.show_connection_warnings:
            logger.warning(message)
        else:
            logger.debug(message)

    async def list_models(self) -> List[str]:
        async with self._client() as client:
            models = await self._fetch_models(client)
        if not models:
            raise NoModelsAvailableError(self.provider_name)
        return models

    async def preferred_model(self) -> Optional[str]:
        """Configured default model, else the first listed model; None when neither is available."""
        configured = self.settings_provider.current().default_model
        if configured:
            return configured

        try:
            models = await self.list_models()
        except (LLMServiceError, httpx.HTTPError, ValueError) as e:
            logger.warning(f"Could not determine preferred {self.provider_name} model: {e}")
            return None
        return models[0]

    async def generate(self, model: str, prompt: str) -> str:
        """Single-turn completion without session context."""
        use_cache = self.settings_provider.current().error_handling.cache_responses
        key = self.cache.generate_key(model, prompt)
        if use_cache:
            cached = self.cache.get(key)
            if cached is not None:
                return cached

        async with self._client() as client:
            text = await self._generate(client, model, prompt)

        if use_cache:
            self.cache.set(key, text)
        return text

    async def chat(self, model: str, prompt: str, session: ChatSession) -> str:
        messages = self.build_messages(prompt, session)

        use_cache = self.settings_provider.current().error_handling.cache_responses
        key = self.cache.generate_key(model, json.dumps(messages, ensure_ascii=False))
        if use_cache:
            cached = self.cache.get(key)
            if cached is not None:
                return cached

        async with self._client() as client:
            text = await self._chat(client, model, messages)

        if use_cache:
            self.cache.set(key, text)
        return text

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
        Stream a chat response through callbacks.

        Exactly one of ``on_complete`` / ``on_error`` is called, once. A
        stream that exceeds the stream timeout is cancelled, its response
        closed, and reported as ``StreamTimeoutError``. Returns the final
        state.
        """
        run = StreamRun()
        run.advance(StreamState.CONNECTING)
        messages = self.build_messages(prompt, session)
        timeout = self.provider_settings.stream_timeout_seconds

        failure: Optional[BaseException] = None
        try:
            await asyncio.wait_for(self._consume_stream(run, model, messages, on_chunk), timeout)
        except asyncio.TimeoutError:
            logger.warning(f"{self.provider_name} stream for {model} timed out after {timeout}s")
            failure = StreamTimeoutError(timeout, model=model)
        except Exception as e:
            failure = e

        if failure is not None:
            run.advance(StreamState.FAILED)
            self.last_stream_state = run.state
            on_error(failure)
            return run.state

        run.advance(StreamState.COMPLETED)
        self.last_stream_state = run.state
        on_complete()
        return run.state

    async def _consume_stream(
        self,
        run: StreamRun,
        model: str,
        messages: List[Dict[str, str]],
        on_chunk: ChunkCallback,
    ) -> None:
        path, body = self._stream_request(model, messages)

        # Read timeouts are left to the overall stream timeout
        async with self._client() as client:
            async with client.stream("POST", path, json=body, timeout=httpx.Timeout(None)) as response:
                if not response.is_success:
                    await response.aread()
                    self._raise_for_status(response, model)

                run.advance(StreamState.STREAMING)
                async for raw_line in response.aiter_lines():
                    line = raw_line.strip()
                    if not line:
                        continue

                    try:
                        text, done = self._parse_stream_line(line)
                    except ValueError:
                        logger.warning(f"Failed to parse chunk: {line[:200]}")
                        continue

                    if text:
                        on_chunk(text)
                        run.chunks_delivered += 1
                    if done:
                        break
