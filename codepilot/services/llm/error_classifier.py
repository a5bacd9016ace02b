"""
Error Classifier

Maps any failure raised while talking to an LLM backend onto a closed set of
error kinds, each with a static retry verdict, a short user-facing message
and ordered suggested actions.

Classification is first-match over the error's message (lowercased) and a
few pieces of metadata (exception type, HTTP status). It never raises: any
object, including ``None`` and objects whose ``__str__`` fails, yields an
``ErrorDetails``.

Usage:
    classifier = ErrorClassifier()
    details = classifier.classify(error, context={"operation": "chat"})
    if not details.can_retry:
        ...
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional, Tuple

import httpx
from pydantic import BaseModel, ConfigDict, Field

from codepilot.core.config import SettingsProvider
from codepilot.services.llm.exceptions import StreamTimeoutError
from codepilot.utils.logging import Logger

logger = logging.getLogger(__name__)


class ErrorKind(str, Enum):
    """Closed taxonomy of LLM failures."""
    CONNECTION_FAILED = "connection_failed"
    TIMEOUT = "timeout"
    MODEL_NOT_FOUND = "model_not_found"
    MODEL_LOADING_FAILED = "model_loading_failed"
    INVALID_RESPONSE = "invalid_response"
    SERVICE_UNAVAILABLE = "service_unavailable"
    AUTHENTICATION_FAILED = "authentication_failed"
    RATE_LIMITED = "rate_limited"
    UNKNOWN = "unknown"


class ErrorDetails(BaseModel):
    """Classification of one failure. Created fresh for every failure."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    kind: ErrorKind
    message: str = Field(..., description="Technical message, for the diagnostic log")
    user_message: str = Field(..., description="Short text suitable for display")
    suggested_actions: Tuple[str, ...] = ()
    can_retry: bool = True
    context: Dict[str, Any] = Field(default_factory=dict)
    original_error: Optional[Any] = Field(default=None, exclude=True, repr=False)


# ============================================================================
# CATALOG
# ============================================================================

@dataclass(frozen=True)
class ErrorKindInfo:
    user_message: str
    suggested_actions: Tuple[str, ...]
    can_retry: bool


ERROR_CATALOG: Dict[ErrorKind, ErrorKindInfo] = {
    ErrorKind.CONNECTION_FAILED: ErrorKindInfo(
        user_message="Unable to connect to the AI service",
        suggested_actions=(
            "Check if Ollama is running (try: ollama serve)",
            "Verify the service URL in settings",
            "Check your network connection",
            "Ensure the AI service is installed and properly configured",
        ),
        can_retry=True,
    ),
    ErrorKind.TIMEOUT: ErrorKindInfo(
        user_message="Request timed out",
        suggested_actions=(
            "Try again with a simpler request",
            "Check if the AI service is responsive",
            "Consider using a smaller model if available",
        ),
        can_retry=True,
    ),
    ErrorKind.MODEL_NOT_FOUND: ErrorKindInfo(
        user_message="The specified AI model is not available",
        suggested_actions=(
            "Download the model using: ollama pull <model-name>",
            "Check available models with: ollama list",
            "Select a different model",
            "Verify the model name is correct",
        ),
        can_retry=False,
    ),
    ErrorKind.MODEL_LOADING_FAILED: ErrorKindInfo(
        user_message="The AI model failed to load",
        suggested_actions=(
            "Wait a moment and try again",
            "Check that the machine has enough free memory for the model",
            "Try with a smaller model",
        ),
        can_retry=True,
    ),
    ErrorKind.INVALID_RESPONSE: ErrorKindInfo(
        user_message="Received invalid response from AI service",
        suggested_actions=(
            "Try rephrasing your request",
            "Check if the model is properly loaded",
            "Try with a different model",
        ),
        can_retry=True,
    ),
    ErrorKind.SERVICE_UNAVAILABLE: ErrorKindInfo(
        user_message="The AI service is not available",
        suggested_actions=(
            "Start the service (for Ollama: ollama serve)",
            "Check if the service is installed",
            "Verify system requirements are met",
            "Try restarting the service",
        ),
        can_retry=True,
    ),
    ErrorKind.AUTHENTICATION_FAILED: ErrorKindInfo(
        user_message="The AI service rejected the credentials",
        suggested_actions=(
            "Check the API key in settings",
            "Verify the key has access to the selected model",
        ),
        can_retry=False,
    ),
    ErrorKind.RATE_LIMITED: ErrorKindInfo(
        user_message="The AI service is rate limiting requests",
        suggested_actions=(
            "Wait a moment before sending another request",
            "Reduce how often completions are requested",
        ),
        can_retry=True,
    ),
    ErrorKind.UNKNOWN: ErrorKindInfo(
        user_message="An unexpected error occurred",
        suggested_actions=(
            "Try again in a moment",
            "Check the assistant logs for details",
            "Restart the assistant if the problem persists",
        ),
        can_retry=True,
    ),
}


# ============================================================================
# MATCHERS
# ============================================================================

def _contains_any(text: str, keywords: Tuple[str, ...]) -> bool:
    return any(k in text for k in keywords)


def _is_connection_error(error: Any, text: str) -> bool:
    if isinstance(error, (httpx.NetworkError, ConnectionError)):
        return True
    return _contains_any(text, ("network", "fetch", "connection", "econnrefused", "enotfound"))


def _is_timeout_error(error: Any, text: str) -> bool:
    if isinstance(error, (asyncio.TimeoutError, TimeoutError, httpx.TimeoutException, StreamTimeoutError)):
        return True
    if type(error).__name__ == "AbortError":
        return True
    return _contains_any(text, ("timeout", "aborted"))


def _is_model_not_found_error(error: Any, text: str) -> bool:
    return (
        ("model" in text and "not found" in text)
        or ("model" in text and "does not exist" in text)
        or "unknown model" in text
    )


def _is_service_unavailable_error(error: Any, text: str) -> bool:
    return _contains_any(text, ("service unavailable", "502", "503", "504"))


def _is_invalid_response_error(error: Any, text: str) -> bool:
    return _contains_any(text, ("invalid response", "parse", "json", "unexpected token"))


def _is_model_loading_error(error: Any, text: str) -> bool:
    return _contains_any(text, ("failed to load model", "model load", "loading model"))


def _is_authentication_error(error: Any, text: str) -> bool:
    return _contains_any(text, ("401", "403", "unauthorized", "forbidden", "invalid api key"))


def _is_rate_limited_error(error: Any, text: str) -> bool:
    return _contains_any(text, ("429", "rate limit", "too many requests"))


# Evaluated in order; the first matching kind wins.
CLASSIFICATION_RULES: Tuple[Tuple[ErrorKind, Callable[[Any, str], bool]], ...] = (
    (ErrorKind.CONNECTION_FAILED, _is_connection_error),
    (ErrorKind.TIMEOUT, _is_timeout_error),
    (ErrorKind.MODEL_NOT_FOUND, _is_model_not_found_error),
    (ErrorKind.SERVICE_UNAVAILABLE, _is_service_unavailable_error),
    (ErrorKind.INVALID_RESPONSE, _is_invalid_response_error),
    (ErrorKind.MODEL_LOADING_FAILED, _is_model_loading_error),
    (ErrorKind.AUTHENTICATION_FAILED, _is_authentication_error),
    (ErrorKind.RATE_LIMITED, _is_rate_limited_error),
)


def describe_error(error: Any) -> str:
    """Best-effort message for any object; never raises."""
    if error is None:
        return "Unknown error"
    if isinstance(error, str):
        return error or "Unknown error"

    try:
        message = getattr(error, "message", None)
        if isinstance(message, str) and message:
            return message
        text = str(error)
    except Exception:
        text = ""

    if text:
        return text
    try:
        return type(error).__name__
    except Exception:
        return "Unknown error"


def _status_code(error: Any) -> Optional[int]:
    try:
        status = getattr(error, "status_code", None)
        if status is None and isinstance(error, httpx.HTTPStatusError):
            status = error.response.status_code
    except Exception:
        return None
    return status if isinstance(status, int) else None


class ErrorClassifier:
    """Classifies failures into ``ErrorDetails``."""

    def classify(self, error: Any, context: Optional[Dict[str, Any]] = None) -> ErrorDetails:
        message = describe_error(error)

        haystack = message.lower()
        status = _status_code(error)
        if status is not None:
            haystack += f" http {status}"

        kind = ErrorKind.UNKNOWN
        for candidate, matcher in CLASSIFICATION_RULES:
            try:
                matched = matcher(error, haystack)
            except Exception:
                matched = False
            if matched:
                kind = candidate
                break

        info = ERROR_CATALOG[kind]
        return ErrorDetails(
            kind=kind,
            message=message,
            user_message=info.user_message,
            suggested_actions=info.suggested_actions,
            can_retry=info.can_retry,
            context=dict(context or {}),
            original_error=error,
        )


class LLMErrorHandler:
    """
    Classifies failures, records them in the diagnostic log and renders them
    for display.

    Technical messages and tracebacks only ever go to the log; rendered text
    includes the technical message only when ``show_detailed_errors`` is on.
    """

    def __init__(self, settings_provider: SettingsProvider, classifier: Optional[ErrorClassifier] = None):
        self.settings_provider = settings_provider
        self.classifier = classifier or ErrorClassifier()
        self.diagnostics = Logger("codepilot.errors")

    def handle_error(self, error: Any, context: Optional[Dict[str, Any]] = None) -> ErrorDetails:
        details = self.classifier.classify(error, context)
        self.log_error(details)
        return details

    def log_error(self, details: ErrorDetails) -> None:
        error = details.original_error
        exc_info = error if isinstance(error, BaseException) else None
        self.diagnostics.error(
            f"Error Type: {details.kind.value} | Message: {details.message}",
            extra={"error_kind": details.kind.value, "can_retry": details.can_retry, **details.context},
            exc_info=exc_info,
        )

    def format_for_user(self, details: ErrorDetails) -> str:
        """User-facing text: the short message followed by numbered actions."""
        lines = [details.user_message]
        if details.suggested_actions:
            lines.append("")
            lines.append("Suggested actions:")
            lines.extend(f"{i}. {action}" for i, action in enumerate(details.suggested_actions, start=1))

        if self.settings_provider.current().error_handling.show_detailed_errors:
            lines.append("")
            lines.append(f"Technical details: {details.message}")
        return "\n".join(lines)

    @staticmethod
    def retry_notice(attempt: int, max_retries: int) -> str:
        return f"Retrying operation... ({attempt}/{max_retries})"
