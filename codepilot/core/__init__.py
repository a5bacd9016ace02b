from .config import (
    AssistantSettings,
    CompletionSettings,
    ContextLimits,
    ErrorHandlingSettings,
    ProviderSettings,
    SettingsProvider,
    create_development_config,
    create_test_config,
)

__all__ = [
    "AssistantSettings",
    "CompletionSettings",
    "ContextLimits",
    "ErrorHandlingSettings",
    "ProviderSettings",
    "SettingsProvider",
    "create_development_config",
    "create_test_config",
]
