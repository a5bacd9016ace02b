"""
Assistant Configuration

Pydantic settings for the context assembly engine and the LLM service layer.
Values come from environment variables (prefix ``AI_ASSISTANT_``, nested
groups separated by ``__``) or a local ``.env`` file.

Components never hold on to a settings object: they receive a
``SettingsProvider`` and ask it for the current settings on every call so that
live configuration changes are honored.
"""

from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ContextLimits(BaseModel):
    """Limits applied while gathering project context and building prompts."""

    max_context_files: int = Field(default=50, ge=1, description="Maximum files picked up by a project scan")
    max_prompt_length: int = Field(default=50_000, ge=1, description="Maximum length of an assembled prompt")
    max_file_content_length: int = Field(default=3_000, ge=1, description="Maximum length of a single file's content")


class ErrorHandlingSettings(BaseModel):
    """Retry and error presentation settings."""

    show_detailed_errors: bool = True
    enable_retry: bool = True
    max_retries: int = Field(default=3, ge=0)
    retry_base_delay_seconds: float = Field(default=1.0, ge=0.0)
    cache_responses: bool = True
    # Unreachable providers are logged at WARNING when set, DEBUG otherwise
    show_connection_warnings: bool = True


class ProviderSettings(BaseModel):
    """Connection settings for one LLM backend."""

    base_url: str
    timeout_seconds: float = Field(default=30.0, ge=1.0)
    stream_timeout_seconds: float = Field(default=60.0, ge=1.0)
    max_retries: int = Field(default=3, ge=0, description="Caps error_handling.max_retries for this provider")
    api_key: Optional[str] = None

    @field_validator("base_url")
    @classmethod
    def normalize_base_url(cls, v: str) -> str:
        """Strip trailing slashes so paths can be appended safely."""
        return v.strip().rstrip("/")


class CompletionSettings(BaseModel):
    """
    Inline completion settings.

    ``completion_delay_ms`` is the editor's typing debounce; the core only
    carries it for the editor side and never waits on it.
    """

    enable_code_completion: bool = True
    completion_delay_ms: int = Field(default=500, ge=0)
    completion_max_length: int = Field(default=200, ge=1)
    completion_context_length: int = Field(default=1_500, ge=10)


class AssistantSettings(BaseSettings):
    """Top-level settings for the assistant core."""

    app_name: str = "codepilot"
    env: str = "development"
    log_level: str = "INFO"

    llm_provider: str = "ollama"
    default_model: str = ""

    context: ContextLimits = Field(default_factory=ContextLimits)
    error_handling: ErrorHandlingSettings = Field(default_factory=ErrorHandlingSettings)
    completion: CompletionSettings = Field(default_factory=CompletionSettings)

    ollama: ProviderSettings = Field(
        default_factory=lambda: ProviderSettings(base_url="http://localhost:11434")
    )
    localai: ProviderSettings = Field(
        default_factory=lambda: ProviderSettings(base_url="http://localhost:8080")
    )

    model_config = SettingsConfigDict(
        env_prefix="AI_ASSISTANT_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("llm_provider")
    @classmethod
    def normalize_provider(cls, v: str) -> str:
        return v.strip().lower()

    def get_provider_settings(self, provider: str) -> ProviderSettings:
        """Return connection settings for a provider name."""
        provider = provider.lower()
        if provider == "ollama":
            return self.ollama
        if provider == "localai":
            return self.localai
        raise ValueError(f"Unsupported LLM provider: {provider}")

    def available_providers(self) -> List[str]:
        return ["ollama", "localai"]

    def validate_provider_config(self, provider: str) -> List[str]:
        """Return a list of configuration problems for a provider (empty when valid)."""
        errors: List[str] = []
        try:
            config = self.get_provider_settings(provider)
        except ValueError as e:
            return [str(e)]

        if not config.base_url:
            errors.append("Base URL is required")
        if not config.base_url.startswith(("http://", "https://")):
            errors.append("Base URL must start with http:// or https://")
        return errors

    def config_summary(self) -> str:
        """Human-readable summary of the active provider configuration."""
        provider = self.get_provider_settings(self.llm_provider)
        return (
            f"Provider: {self.llm_provider}\n"
            f"Base URL: {provider.base_url}\n"
            f"Timeout: {provider.timeout_seconds}s\n"
            f"Max Retries: {provider.max_retries}\n"
            f"Default Model: {self.default_model or 'Not set'}"
        )


SettingsListener = Callable[[AssistantSettings, AssistantSettings], None]


class SettingsProvider:
    """
    Holds the live settings object.

    ``current()`` is cheap and is meant to be called at the start of every
    operation that needs configuration. ``update()`` swaps in a new validated
    settings object and notifies listeners with ``(old, new)``.
    """

    def __init__(self, settings: Optional[AssistantSettings] = None):
        self._settings = settings or AssistantSettings()
        self._listeners: List[SettingsListener] = []

    def current(self) -> AssistantSettings:
        return self._settings

    def __call__(self) -> AssistantSettings:
        return self._settings

    def update(self, **changes: Any) -> AssistantSettings:
        """
        Apply changes and return the new settings.

        Nested groups accept partial dicts, e.g.
        ``update(error_handling={"max_retries": 1})``.
        """
        old = self._settings
        data: Dict[str, Any] = old.model_dump()
        for key, value in changes.items():
            if isinstance(value, dict) and isinstance(data.get(key), dict):
                data[key] = {**data[key], **value}
            else:
                data[key] = value

        new = AssistantSettings.model_validate(data)
        self._settings = new
        for listener in list(self._listeners):
            listener(old, new)
        return new

    def subscribe(self, listener: SettingsListener) -> None:
        self._listeners.append(listener)


def create_development_config() -> AssistantSettings:
    """Settings suitable for running against a local Ollama instance."""
    return AssistantSettings(env="development", log_level="DEBUG")


def create_test_config() -> AssistantSettings:
    """Settings with short limits and no backoff delay, used by the test suite."""
    return AssistantSettings(
        env="test",
        log_level="WARNING",
        context=ContextLimits(max_context_files=10, max_prompt_length=5_000, max_file_content_length=3_000),
        error_handling=ErrorHandlingSettings(max_retries=3, retry_base_delay_seconds=0.0),
        ollama=ProviderSettings(base_url="http://ollama.test", timeout_seconds=5.0, stream_timeout_seconds=5.0),
        localai=ProviderSettings(base_url="http://localai.test", timeout_seconds=5.0, stream_timeout_seconds=5.0),
    )
