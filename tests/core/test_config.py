"""
Tests for assistant settings and the live settings provider
"""

from unittest.mock import Mock

import pytest
from pydantic import ValidationError

from codepilot.core.config import (
    AssistantSettings,
    ProviderSettings,
    SettingsProvider,
    create_development_config,
    create_test_config,
)


class TestAssistantSettings:
    """Test defaults, validation and environment loading."""

    def test_defaults(self):
        settings = AssistantSettings(_env_file=None)

        assert settings.llm_provider == "ollama"
        assert settings.context.max_prompt_length == 50_000
        assert settings.context.max_file_content_length == 3_000
        assert settings.error_handling.max_retries == 3
        assert settings.ollama.base_url == "http://localhost:11434"
        assert settings.localai.base_url == "http://localhost:8080"

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("AI_ASSISTANT_LLM_PROVIDER", "LocalAI")
        monkeypatch.setenv("AI_ASSISTANT_CONTEXT__MAX_PROMPT_LENGTH", "1234")

        settings = AssistantSettings(_env_file=None)

        assert settings.llm_provider == "localai"
        assert settings.context.max_prompt_length == 1234

    def test_base_url_trailing_slash_removed(self):
        assert ProviderSettings(base_url="http://host:1234/").base_url == "http://host:1234"

    def test_invalid_limits_rejected(self):
        with pytest.raises(ValidationError):
            AssistantSettings(_env_file=None, context={"max_prompt_length": 0})

    def test_provider_settings_lookup(self):
        settings = create_test_config()

        assert settings.get_provider_settings("OLLAMA").base_url == "http://ollama.test"
        with pytest.raises(ValueError):
            settings.get_provider_settings("openai")

    def test_validate_provider_config(self):
        settings = create_test_config()

        assert settings.validate_provider_config("ollama") == []
        assert settings.validate_provider_config("openai") == ["Unsupported LLM provider: openai"]

    def test_validate_provider_config_bad_scheme(self):
        settings = AssistantSettings(_env_file=None, ollama={"base_url": "localhost:11434"})

        assert settings.validate_provider_config("ollama") == ["Base URL must start with http:// or https://"]

    def test_development_config(self):
        settings = create_development_config()

        assert settings.env == "development"
        assert settings.log_level == "DEBUG"

    def test_config_summary(self):
        summary = create_test_config().config_summary()

        assert "Provider: ollama" in summary
        assert "Base URL: http://ollama.test" in summary
        assert "Default Model: Not set" in summary


class TestSettingsProvider:
    """Test live updates."""

    def test_update_merges_nested_groups(self, settings_provider):
        settings_provider.update(error_handling={"max_retries": 1})

        current = settings_provider.current()
        assert current.error_handling.max_retries == 1
        assert current.error_handling.retry_base_delay_seconds == 0.0

    def test_update_notifies_listeners(self, settings_provider):
        listener = Mock()
        settings_provider.subscribe(listener)
        old = settings_provider.current()

        new = settings_provider.update(default_model="llama3")

        listener.assert_called_once_with(old, new)
        assert settings_provider() is new

    def test_invalid_update_keeps_old_settings(self, settings_provider):
        old = settings_provider.current()

        with pytest.raises(ValidationError):
            settings_provider.update(context={"max_prompt_length": -1})

        assert settings_provider.current() is old
