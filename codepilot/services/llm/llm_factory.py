"""Factory for creating LLM provider adapters."""
import logging
from enum import Enum
from typing import Callable, Dict, List, Optional, Union

import httpx

from codepilot.core.config import SettingsProvider

from .base_client import BaseLLMService
from .exceptions import UnsupportedProviderError
from .localai_client import LocalAIService
from .ollama_client import OllamaService
from .response_cache import ResponseCache

logger = logging.getLogger(__name__)

ServiceBuilder = Callable[..., BaseLLMService]


class LLMProvider(str, Enum):
    """Supported LLM providers."""
    OLLAMA = "ollama"
    LOCALAI = "localai"


class LLMFactory:
    """Factory for creating provider adapters from settings."""

    _builders: Dict[str, ServiceBuilder] = {
        LLMProvider.OLLAMA.value: OllamaService,
        LLMProvider.LOCALAI.value: LocalAIService,
    }

    @classmethod
    def register(cls, name: str, builder: ServiceBuilder) -> None:
        """Register an additional provider adapter."""
        cls._builders[name.lower()] = builder

    @classmethod
    def supported_providers(cls) -> List[str]:
        return list(cls._builders)

    @classmethod
    def create_client(
        cls,
        provider: Union[LLMProvider, str],
        settings_provider: SettingsProvider,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        cache: Optional[ResponseCache] = None,
    ) -> BaseLLMService:
        """
        Create an adapter for ``provider``.

        Args:
            provider: Provider name or enum member
            settings_provider: Source of live connection settings
            transport: Optional httpx transport (used by tests)
            cache: Optional response cache shared between adapters

        Returns:
            Configured adapter instance
        """
        name = provider.value if isinstance(provider, LLMProvider) else str(provider).lower()
        builder = cls._builders.get(name)
        if builder is None:
            raise UnsupportedProviderError(name, cls.supported_providers())

        logger.info(f"Creating {name} LLM service")
        return builder(settings_provider, transport=transport, cache=cache)

    @classmethod
    def create_from_settings(
        cls,
        settings_provider: SettingsProvider,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> BaseLLMService:
        """Create the adapter named by the ``llm_provider`` setting."""
        return cls.create_client(settings_provider.current().llm_provider, settings_provider, transport=transport)


def get_llm_client(
    settings_provider: SettingsProvider,
    provider: Optional[str] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> BaseLLMService:
    """
    Convenience function to get an adapter.

    Falls back to the configured ``llm_provider`` when ``provider`` is not given.
    """
    if provider is None:
        return LLMFactory.create_from_settings(settings_provider, transport=transport)
    return LLMFactory.create_client(provider, settings_provider, transport=transport)
