"""LLM service module: provider adapters, error classification and retries."""

from .base_client import BaseLLMService, StreamState
from .error_classifier import ErrorClassifier, ErrorDetails, ErrorKind, LLMErrorHandler
from .exceptions import (
    InvalidResponseError,
    LLMServiceError,
    ModelNotFoundError,
    NoModelsAvailableError,
    ProviderHTTPError,
    StreamTimeoutError,
    UnsupportedProviderError,
)
from .llm_factory import LLMFactory, LLMProvider, get_llm_client
from .localai_client import LocalAIService
from .ollama_client import OllamaService
from .response_cache import ResponseCache
from .retry import RetryCoordinator
from .service_manager import LLMServiceManager

__all__ = [
    # Adapters
    "BaseLLMService",
    "StreamState",
    "OllamaService",
    "LocalAIService",
    "LLMFactory",
    "LLMProvider",
    "get_llm_client",
    "LLMServiceManager",
    "ResponseCache",
    # Errors and retries
    "ErrorClassifier",
    "ErrorDetails",
    "ErrorKind",
    "LLMErrorHandler",
    "RetryCoordinator",
    "LLMServiceError",
    "InvalidResponseError",
    "ModelNotFoundError",
    "NoModelsAvailableError",
    "ProviderHTTPError",
    "StreamTimeoutError",
    "UnsupportedProviderError",
]
