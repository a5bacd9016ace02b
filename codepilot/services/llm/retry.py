"""
Retry Coordinator

Wraps an async operation with classification-aware retries and exponential
backoff. Retry settings are read from the settings provider on every call.

Attempt counting is scoped to a call chain: each ``with_retry`` invocation
registers its own token under the operation id, so two concurrent calls that
happen to share an id never see each other's attempts. Counters are removed
when the chain succeeds or gives up.

Usage:
    coordinator = RetryCoordinator(settings_provider)
    result = await coordinator.with_retry(lambda: service.chat(model, prompt, session), f"chat_{model}")
"""

import asyncio
import logging
import uuid
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

from codepilot.core.config import SettingsProvider
from codepilot.services.llm.error_classifier import ErrorClassifier, ErrorDetails, LLMErrorHandler

logger = logging.getLogger(__name__)

T = TypeVar("T")

RetryHook = Callable[[int, int, ErrorDetails], None]


class RetryCoordinator:
    """Runs operations with bounded, exponentially backed-off retries."""

    def __init__(
        self,
        settings_provider: SettingsProvider,
        error_handler: Optional[LLMErrorHandler] = None,
        on_retry: Optional[RetryHook] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.settings_provider = settings_provider
        self.error_handler = error_handler or LLMErrorHandler(settings_provider, ErrorClassifier())
        self.on_retry = on_retry
        self._sleep = sleep
        # operation_id -> {chain token -> attempts so far}
        self._attempts: Dict[str, Dict[str, int]] = {}

    async def with_retry(
        self,
        operation: Callable[[], Awaitable[T]],
        operation_id: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> T:
        """
        Run ``operation`` until it succeeds or retrying is no longer allowed.

        Re-raises the original exception of the last attempt. Cancellation
        is not intercepted and propagates immediately, also during backoff.
        """
        settings = self.settings_provider.current()
        config = settings.error_handling
        max_retries = config.max_retries if config.enable_retry else 0
        provider = (context or {}).get("provider")
        if provider in settings.available_providers():
            # The provider's own limit caps the global one
            max_retries = min(max_retries, settings.get_provider_settings(provider).max_retries)
        base_delay = config.retry_base_delay_seconds

        token = uuid.uuid4().hex
        chains = self._attempts.setdefault(operation_id, {})
        chains[token] = 0

        try:
            while True:
                try:
                    result = await operation()
                except Exception as e:
                    attempts = chains[token]
                    details = self.error_handler.handle_error(
                        e, {**(context or {}), "operation_id": operation_id, "attempt": attempts + 1}
                    )

                    if attempts < max_retries and details.can_retry and config.enable_retry:
                        chains[token] = attempts + 1
                        delay = base_delay * (2 ** attempts)
                        logger.info(
                            f"Retrying {operation_id} in {delay:.2f}s "
                            f"({attempts + 1}/{max_retries}, {details.kind.value})"
                        )
                        if self.on_retry:
                            self.on_retry(attempts + 1, max_retries, details)
                        await self._sleep(delay)
                        continue

                    if attempts:
                        logger.warning(f"Giving up on {operation_id} after {attempts + 1} attempts")
                    raise

                if chains[token]:
                    logger.info(f"{operation_id} succeeded after {chains[token] + 1} attempts")
                return result
        finally:
            chains.pop(token, None)
            if not chains:
                self._attempts.pop(operation_id, None)

    def active_attempts(self, operation_id: str) -> Dict[str, int]:
        """Attempt counters of the in-flight chains for ``operation_id``."""
        return dict(self._attempts.get(operation_id, {}))
