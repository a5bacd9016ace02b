"""
Tests for RetryCoordinator
"""

import asyncio
from unittest.mock import AsyncMock, Mock

import pytest

from codepilot.services.llm.error_classifier import ErrorKind
from codepilot.services.llm.exceptions import ModelNotFoundError
from codepilot.services.llm.retry import RetryCoordinator


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def sleep():
    return AsyncMock()


@pytest.fixture
def coordinator(settings_provider, sleep):
    return RetryCoordinator(settings_provider, sleep=sleep)


def failing(error, times):
    """Operation that raises ``error`` ``times`` times and then returns "ok"."""
    calls = {"count": 0}

    async def operation():
        calls["count"] += 1
        if calls["count"] <= times:
            raise error
        return "ok"

    return operation, calls


# ============================================================================
# RETRY BEHAVIOR
# ============================================================================

class TestWithRetry:
    """Test attempts, backoff and re-raising."""

    @pytest.mark.asyncio
    async def test_success_on_first_attempt(self, coordinator, sleep):
        operation, calls = failing(ConnectionError("ECONNREFUSED"), 0)

        assert await coordinator.with_retry(operation, "chat_m") == "ok"
        assert calls["count"] == 1
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_recovers_after_transient_failures(self, coordinator):
        operation, calls = failing(ConnectionError("ECONNREFUSED"), 2)

        assert await coordinator.with_retry(operation, "chat_m") == "ok"
        assert calls["count"] == 3

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self, coordinator):
        error = ConnectionError("ECONNREFUSED")
        operation, calls = failing(error, 100)

        with pytest.raises(ConnectionError) as exc_info:
            await coordinator.with_retry(operation, "chat_m")

        assert exc_info.value is error
        assert calls["count"] == 4

    @pytest.mark.asyncio
    async def test_non_retryable_error_is_raised_immediately(self, coordinator, sleep):
        operation, calls = failing(ModelNotFoundError("codellama"), 100)

        with pytest.raises(ModelNotFoundError):
            await coordinator.with_retry(operation, "chat_codellama")

        assert calls["count"] == 1
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_retry_disabled(self, coordinator, settings_provider):
        settings_provider.update(error_handling={"enable_retry": False})
        operation, calls = failing(ConnectionError("ECONNREFUSED"), 100)

        with pytest.raises(ConnectionError):
            await coordinator.with_retry(operation, "chat_m")

        assert calls["count"] == 1

    @pytest.mark.asyncio
    async def test_exponential_backoff(self, coordinator, settings_provider, sleep):
        settings_provider.update(error_handling={"retry_base_delay_seconds": 1.0})
        operation, _ = failing(ConnectionError("ECONNREFUSED"), 100)

        with pytest.raises(ConnectionError):
            await coordinator.with_retry(operation, "chat_m")

        assert [c.args[0] for c in sleep.await_args_list] == [1.0, 2.0, 4.0]

    @pytest.mark.asyncio
    async def test_settings_are_read_per_call(self, coordinator, settings_provider):
        settings_provider.update(error_handling={"max_retries": 1})
        operation, calls = failing(ConnectionError("ECONNREFUSED"), 100)

        with pytest.raises(ConnectionError):
            await coordinator.with_retry(operation, "chat_m")

        assert calls["count"] == 2

    @pytest.mark.asyncio
    async def test_provider_limit_caps_retries(self, coordinator, settings_provider):
        settings_provider.update(ollama={"max_retries": 1})
        operation, calls = failing(ConnectionError("ECONNREFUSED"), 100)

        with pytest.raises(ConnectionError):
            await coordinator.with_retry(operation, "chat_m", {"provider": "ollama"})

        assert calls["count"] == 2

    @pytest.mark.asyncio
    async def test_unknown_provider_uses_global_limit(self, coordinator):
        operation, calls = failing(ConnectionError("ECONNREFUSED"), 100)

        with pytest.raises(ConnectionError):
            await coordinator.with_retry(operation, "chat_m", {"provider": "custom"})

        assert calls["count"] == 4

    @pytest.mark.asyncio
    async def test_on_retry_hook(self, settings_provider, sleep):
        hook = Mock()
        coordinator = RetryCoordinator(settings_provider, on_retry=hook, sleep=sleep)
        operation, _ = failing(ConnectionError("ECONNREFUSED"), 2)

        await coordinator.with_retry(operation, "chat_m")

        assert [c.args[:2] for c in hook.call_args_list] == [(1, 3), (2, 3)]
        assert hook.call_args_list[0].args[2].kind == ErrorKind.CONNECTION_FAILED

    @pytest.mark.asyncio
    async def test_every_failure_is_reported_with_context(self, settings_provider, sleep):
        handler = Mock()
        handler.handle_error.side_effect = lambda error, context: Mock(can_retry=True, kind=ErrorKind.UNKNOWN)
        coordinator = RetryCoordinator(settings_provider, error_handler=handler, sleep=sleep)
        operation, _ = failing(RuntimeError("x"), 2)

        await coordinator.with_retry(operation, "generate_m", {"operation": "generate", "model": "m"})

        contexts = [c.args[1] for c in handler.handle_error.call_args_list]
        assert [c["attempt"] for c in contexts] == [1, 2]
        assert all(c["operation_id"] == "generate_m" and c["model"] == "m" for c in contexts)


# ============================================================================
# ATTEMPT BOOKKEEPING
# ============================================================================

class TestAttemptCounters:
    """Test per-chain attempt counters."""

    @pytest.mark.asyncio
    async def test_counters_removed_after_success(self, coordinator):
        operation, _ = failing(ConnectionError("ECONNREFUSED"), 1)

        await coordinator.with_retry(operation, "chat_m")

        assert coordinator.active_attempts("chat_m") == {}

    @pytest.mark.asyncio
    async def test_counters_removed_after_giving_up(self, coordinator):
        operation, _ = failing(ConnectionError("ECONNREFUSED"), 100)

        with pytest.raises(ConnectionError):
            await coordinator.with_retry(operation, "chat_m")

        assert coordinator.active_attempts("chat_m") == {}

    @pytest.mark.asyncio
    async def test_concurrent_chains_do_not_share_attempts(self, settings_provider):
        gate = asyncio.Event()

        async def sleep(delay):
            await gate.wait()

        coordinator = RetryCoordinator(settings_provider, sleep=sleep)
        first_op, first_calls = failing(ConnectionError("ECONNREFUSED"), 3)
        second_op, second_calls = failing(ConnectionError("ECONNREFUSED"), 3)

        first = asyncio.create_task(coordinator.with_retry(first_op, "chat_shared"))
        second = asyncio.create_task(coordinator.with_retry(second_op, "chat_shared"))
        await asyncio.sleep(0)

        assert sorted(coordinator.active_attempts("chat_shared").values()) == [1, 1]

        gate.set()
        assert await asyncio.gather(first, second) == ["ok", "ok"]
        assert first_calls["count"] == second_calls["count"] == 4
        assert coordinator.active_attempts("chat_shared") == {}

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self, settings_provider):
        async def sleep(delay):
            await asyncio.Event().wait()

        coordinator = RetryCoordinator(settings_provider, sleep=sleep)
        operation, _ = failing(ConnectionError("ECONNREFUSED"), 100)

        task = asyncio.create_task(coordinator.with_retry(operation, "chat_m"))
        await asyncio.sleep(0)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert coordinator.active_attempts("chat_m") == {}
