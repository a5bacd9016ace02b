"""
LLM Service Exception Hierarchy

Exceptions raised by the provider adapters and the service manager. Every
exception carries an error code and structured details for the diagnostic
log; whether a failure is retried is decided by the error classifier, not by
the exception type alone.

Transport failures raised by httpx (connect errors, timeouts) are not
wrapped: they propagate unchanged so the retry coordinator can re-raise the
original error.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional


class LLMServiceError(Exception):
    """Base exception for all LLM service errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        recoverable: bool = False
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        self.recoverable = recoverable
        self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
            "recoverable": self.recoverable,
            "timestamp": self.timestamp.isoformat()
        }

    def __str__(self) -> str:
        return f"{self.error_code}: {self.message}"


# ============================================================================
# PROVIDER RESPONSE ERRORS
# ============================================================================

class ProviderHTTPError(LLMServiceError):
    """Raised when a provider answers with a non-success HTTP status."""

    def __init__(
        self,
        status_code: int,
        reason: str = "",
        provider: str = "unknown",
        body: str = ""
    ):
        super().__init__(
            message=f"HTTP {status_code}: {reason}".rstrip(": "),
            error_code="PROVIDER_HTTP_ERROR",
            details={
                "status_code": status_code,
                "provider": provider,
                "body": body[:500]
            },
            recoverable=status_code >= 500 or status_code == 429
        )
        self.status_code = status_code


class InvalidResponseError(LLMServiceError):
    """Raised when a provider response cannot be parsed or lacks expected fields."""

    def __init__(self, message: str, provider: str = "unknown", raw: str = ""):
        super().__init__(
            message=f"Invalid response from {provider}: {message}",
            error_code="INVALID_RESPONSE",
            details={"provider": provider, "raw": raw[:500]},
            recoverable=True  # Often a transient glitch in the model server
        )


class StreamTimeoutError(LLMServiceError):
    """Raised when a streaming response does not finish within its timeout."""

    def __init__(self, timeout_seconds: float, model: Optional[str] = None):
        super().__init__(
            message=f"Stream timeout after {timeout_seconds}s",
            error_code="STREAM_TIMEOUT",
            details={"timeout_seconds": timeout_seconds, "model": model},
            recoverable=True
        )


# ============================================================================
# MODEL ERRORS
# ============================================================================

class ModelNotFoundError(LLMServiceError):
    """Raised when the requested model does not exist on the provider."""

    def __init__(self, model: str, provider: str = "unknown"):
        super().__init__(
            message=f"Model '{model}' not found",
            error_code="MODEL_NOT_FOUND",
            details={"model": model, "provider": provider},
            recoverable=False  # Retrying cannot make a model appear
        )
        self.model = model


class NoModelsAvailableError(LLMServiceError):
    """Raised when a provider lists no installed models."""

    def __init__(self, provider: str = "unknown"):
        super().__init__(
            message=f"No models available from {provider}",
            error_code="NO_MODELS_AVAILABLE",
            details={"provider": provider},
            recoverable=False
        )


# ============================================================================
# CONFIGURATION ERRORS
# ============================================================================

class UnsupportedProviderError(LLMServiceError):
    """Raised when a provider name is not registered."""

    def __init__(self, provider: str, supported: Optional[list] = None):
        super().__init__(
            message=f"Unsupported LLM provider: {provider}",
            error_code="UNSUPPORTED_PROVIDER",
            details={"provider": provider, "supported": supported or []},
            recoverable=False
        )
