"""
Tests for LLMServiceManager

Adapters are replaced with scripted fakes so retry and streaming policy can
be checked without HTTP.
"""

from unittest.mock import AsyncMock, Mock

import pytest

from codepilot.services.llm.base_client import StreamState
from codepilot.services.llm.exceptions import ModelNotFoundError
from codepilot.services.llm.ollama_client import OllamaService
from codepilot.services.llm.retry import RetryCoordinator
from codepilot.services.llm.service_manager import LLMServiceManager, new_operation_id


class ScriptedStreamService:
    """Fake adapter whose ``chat_stream`` follows a script of attempts.

    Each attempt is a list of chunks optionally followed by an exception.
    """

    def __init__(self, provider_name, attempts):
        self.provider_name = provider_name
        self.attempts = list(attempts)
        self.calls = 0

    async def chat_stream(self, model, prompt, session, on_chunk, on_complete, on_error):
        script = self.attempts[min(self.calls, len(self.attempts) - 1)]
        self.calls += 1
        for item in script:
            if isinstance(item, BaseException):
                on_error(item)
                return StreamState.FAILED
            on_chunk(item)
        on_complete()
        return StreamState.COMPLETED


def fake_service(name, available=True):
    service = Mock()
    service.provider_name = name
    service.is_available = AsyncMock(return_value=available)
    service.generate = AsyncMock(return_value="generated")
    service.chat = AsyncMock(return_value="chatted")
    service.list_models = AsyncMock(return_value=["m1"])
    return service


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def retry(settings_provider):
    return RetryCoordinator(settings_provider, sleep=AsyncMock())


@pytest.fixture
def manager(settings_provider, retry):
    return LLMServiceManager(settings_provider, retry=retry)


def use(manager, service):
    manager.register_service(service)
    manager._current = service
    return service


# ============================================================================
# PROVIDERS
# ============================================================================

class TestProviders:
    """Test provider selection and switching."""

    def test_initial_provider_follows_settings(self, manager):
        assert isinstance(manager.current_service, OllamaService)
        assert manager.current_provider_name == "ollama"

    def test_services_are_reused(self, manager):
        assert manager.get_service("localai") is manager.get_service("LOCALAI")

    def test_available_providers(self, manager):
        assert manager.available_providers() == ["ollama", "localai"]

    @pytest.mark.asyncio
    async def test_switch_to_available_provider(self, manager):
        manager.register_service(fake_service("localai", available=True))
        listener = Mock()
        manager.on_provider_changed(listener)

        assert await manager.switch_provider("localai") is True
        assert manager.current_provider_name == "localai"
        listener.assert_called_once_with("localai")

    @pytest.mark.asyncio
    async def test_switch_to_unavailable_provider_keeps_current(self, manager):
        manager.register_service(fake_service("localai", available=False))
        listener = Mock()
        manager.on_provider_changed(listener)

        assert await manager.switch_provider("localai") is False
        assert manager.current_provider_name == "ollama"
        listener.assert_not_called()

    @pytest.mark.asyncio
    async def test_switch_defaults_to_setting(self, manager, settings_provider):
        manager.register_service(fake_service("localai"))
        settings_provider.update(llm_provider="localai")

        assert await manager.switch_provider() is True
        assert manager.current_provider_name == "localai"

    @pytest.mark.asyncio
    async def test_switch_to_current_provider_is_a_no_op(self, manager):
        assert await manager.switch_provider("ollama") is True


# ============================================================================
# CALLS
# ============================================================================

class TestCalls:
    """Test that model calls go through retries."""

    @pytest.mark.asyncio
    async def test_generate_is_retried(self, manager):
        service = use(manager, fake_service("ollama"))
        service.generate.side_effect = [ConnectionError("ECONNREFUSED"), "second time"]

        assert await manager.generate("m", "p") == "second time"
        assert service.generate.await_count == 2

    @pytest.mark.asyncio
    async def test_chat_model_not_found_is_not_retried(self, manager, sample_session):
        service = use(manager, fake_service("ollama"))
        service.chat.side_effect = ModelNotFoundError("m")

        with pytest.raises(ModelNotFoundError):
            await manager.chat("m", "p", sample_session)

        assert service.chat.await_count == 1

    @pytest.mark.asyncio
    async def test_list_models(self, manager):
        use(manager, fake_service("ollama"))

        assert await manager.list_models() == ["m1"]

    @pytest.mark.asyncio
    async def test_operation_ids_are_unique(self, manager):
        retry = Mock()
        retry.with_retry = AsyncMock(return_value="x")
        manager.retry = retry
        use(manager, fake_service("ollama"))

        await manager.generate("m", "p")
        await manager.generate("m", "p")

        ids = [c.args[1] for c in retry.with_retry.await_args_list]
        assert ids[0] != ids[1]
        assert all(i.startswith("generate_m_") for i in ids)
        assert retry.with_retry.await_args_list[0].args[2] == {
            "operation": "generate", "provider": "ollama", "model": "m", "prompt_length": 1,
        }

    def test_new_operation_id_without_model(self):
        assert new_operation_id("list_models").startswith("list_models_")


# ============================================================================
# STREAMING
# ============================================================================

class TestChatStreamPolicy:
    """Test retries before the first chunk and single error delivery."""

    @pytest.mark.asyncio
    async def test_failure_before_first_chunk_is_retried(self, manager, sample_session):
        service = use(manager, ScriptedStreamService("ollama", [
            [ConnectionError("ECONNREFUSED")],
            ["Hel", "lo"],
        ]))
        chunks, on_complete, on_error = [], Mock(), Mock()

        state = await manager.chat_stream("m", "p", sample_session, chunks.append, on_complete, on_error)

        assert state == StreamState.COMPLETED
        assert chunks == ["Hel", "lo"]
        assert service.calls == 2
        on_complete.assert_called_once()
        on_error.assert_not_called()

    @pytest.mark.asyncio
    async def test_failure_after_chunks_is_not_retried(self, manager, sample_session):
        failure = ConnectionError("ECONNRESET connection lost")
        service = use(manager, ScriptedStreamService("ollama", [["Hel", failure], ["never"]]))
        chunks, on_complete, on_error = [], Mock(), Mock()

        state = await manager.chat_stream("m", "p", sample_session, chunks.append, on_complete, on_error)

        assert state == StreamState.FAILED
        assert chunks == ["Hel"]
        assert service.calls == 1
        on_error.assert_called_once_with(failure)
        on_complete.assert_not_called()

    @pytest.mark.asyncio
    async def test_persistent_failure_reports_once(self, manager, sample_session):
        service = use(manager, ScriptedStreamService("ollama", [[ConnectionError("ECONNREFUSED")]]))
        on_complete, on_error = Mock(), Mock()

        state = await manager.chat_stream("m", "p", sample_session, Mock(), on_complete, on_error)

        assert state == StreamState.FAILED
        assert service.calls == 4
        on_error.assert_called_once()
        assert isinstance(on_error.call_args.args[0], ConnectionError)
        on_complete.assert_not_called()

    @pytest.mark.asyncio
    async def test_non_retryable_stream_failure(self, manager, sample_session):
        service = use(manager, ScriptedStreamService("ollama", [[ModelNotFoundError("m")]]))
        on_error = Mock()

        await manager.chat_stream("m", "p", sample_session, Mock(), Mock(), on_error)

        assert service.calls == 1
        on_error.assert_called_once()

    @pytest.mark.asyncio
    async def test_raising_completion_callback_does_not_restart_stream(self, manager, sample_session):
        service = use(manager, ScriptedStreamService("ollama", [["Hel", "lo"]]))
        chunks, on_error = [], Mock()
        on_complete = Mock(side_effect=RuntimeError("panel closed"))

        with pytest.raises(RuntimeError):
            await manager.chat_stream("m", "p", sample_session, chunks.append, on_complete, on_error)

        assert service.calls == 1
        assert chunks == ["Hel", "lo"]
        on_complete.assert_called_once()
        on_error.assert_not_called()
