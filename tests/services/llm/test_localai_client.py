"""
Tests for LocalAIService (OpenAI-compatible endpoints)
"""

import json
from unittest.mock import Mock

import httpx
import pytest

from codepilot.models.schemas.session import ChatSession
from codepilot.services.llm.base_client import StreamState
from codepilot.services.llm.exceptions import InvalidResponseError, ModelNotFoundError, ProviderHTTPError
from codepilot.services.llm.localai_client import LocalAIService


def sse(*events) -> bytes:
    lines = []
    for event in events:
        payload = event if isinstance(event, str) else json.dumps(event)
        lines.append(f"data: {payload}\n\n")
    return "".join(lines).encode("utf-8")


def delta(content):
    return {"choices": [{"delta": {"content": content}}]}


@pytest.fixture
def handler():
    """Mutable handler; tests assign ``handler.response``."""
    state = Mock()
    state.response = httpx.Response(404)
    return state


@pytest.fixture
def service(settings_provider, handler, recorded_requests):
    def respond(request):
        recorded_requests.append(request)
        return handler.response

    return LocalAIService(settings_provider, transport=httpx.MockTransport(respond))


# ============================================================================
# REQUEST / RESPONSE
# ============================================================================

class TestLocalAIRequests:
    """Test the non-streaming endpoints."""

    @pytest.mark.asyncio
    async def test_is_available_probes_models(self, service, handler, recorded_requests):
        handler.response = httpx.Response(200, json={"data": []})

        assert await service.is_available() is True
        assert recorded_requests[0].url.path == "/v1/models"

    @pytest.mark.asyncio
    async def test_list_models(self, service, handler):
        handler.response = httpx.Response(200, json={"object": "list", "data": [{"id": "gpt-4"}, {"id": "phi-2"}]})

        assert await service.list_models() == ["gpt-4", "phi-2"]

    @pytest.mark.asyncio
    async def test_generate(self, service, handler, recorded_requests):
        handler.response = httpx.Response(200, json={"choices": [{"text": "return a + b"}]})

        assert await service.generate("phi-2", "add") == "return a + b"
        assert recorded_requests[0].url.path == "/v1/completions"

    @pytest.mark.asyncio
    async def test_chat(self, service, handler, recorded_requests, sample_session):
        handler.response = httpx.Response(200, json={"choices": [{"message": {"role": "assistant", "content": "Hi"}}]})

        assert await service.chat("gpt-4", "hello", sample_session) == "Hi"

        body = json.loads(recorded_requests[0].content)
        assert recorded_requests[0].url.path == "/v1/chat/completions"
        assert body["messages"][-1] == {"role": "user", "content": "hello"}
        assert len(body["messages"]) == 3

    @pytest.mark.asyncio
    async def test_empty_choices(self, service, handler):
        handler.response = httpx.Response(200, json={"choices": []})

        with pytest.raises(InvalidResponseError):
            await service.chat("gpt-4", "hello", ChatSession.empty())

    @pytest.mark.asyncio
    async def test_missing_model(self, service, handler):
        handler.response = httpx.Response(404, json={"error": {"message": "model gpt-9 does not exist"}})

        with pytest.raises(ModelNotFoundError):
            await service.generate("gpt-9", "hello")

    @pytest.mark.asyncio
    async def test_unauthorized(self, service, handler):
        handler.response = httpx.Response(401, json={"error": "bad key"})

        with pytest.raises(ProviderHTTPError) as exc_info:
            await service.generate("gpt-4", "hello")

        assert exc_info.value.status_code == 401
        assert not exc_info.value.recoverable


# ============================================================================
# STREAMING
# ============================================================================

class TestLocalAIStream:
    """Test server-sent event streaming."""

    @pytest.mark.asyncio
    async def test_sse_stream(self, service, handler):
        handler.response = httpx.Response(200, content=(
            b": keep-alive\n\n" + sse(delta("Hel"), {"choices": [{"delta": {}}]}, delta("lo"), "[DONE]")
        ))
        chunks = []
        on_complete, on_error = Mock(), Mock()

        state = await service.chat_stream("gpt-4", "hi", ChatSession.empty(), chunks.append, on_complete, on_error)

        assert state == StreamState.COMPLETED
        assert chunks == ["Hel", "lo"]
        on_complete.assert_called_once()
        on_error.assert_not_called()

    @pytest.mark.asyncio
    async def test_malformed_event_is_skipped(self, service, handler):
        handler.response = httpx.Response(200, content=sse(delta("a"), "{broken", delta("b"), "[DONE]"))
        chunks = []

        await service.chat_stream("gpt-4", "hi", ChatSession.empty(), chunks.append, Mock(), Mock())

        assert chunks == ["a", "b"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("event", [
        {"choices": ["oops"]},
        {"choices": [{"delta": "oops"}]},
        {"choices": [{"delta": {"content": 7}}]},
        {"choices": {"delta": {"content": "x"}}},
    ])
    async def test_wrongly_shaped_event_is_skipped(self, service, handler, event):
        handler.response = httpx.Response(200, content=sse(delta("a"), event, delta("b"), "[DONE]"))
        chunks, on_complete, on_error = [], Mock(), Mock()

        state = await service.chat_stream("gpt-4", "hi", ChatSession.empty(), chunks.append, on_complete, on_error)

        assert state == StreamState.COMPLETED
        assert chunks == ["a", "b"]
        on_complete.assert_called_once()
        on_error.assert_not_called()

    @pytest.mark.asyncio
    async def test_error_event(self, service, handler):
        handler.response = httpx.Response(200, content=sse({"error": {"message": "backend crashed"}}))
        on_complete, on_error = Mock(), Mock()

        state = await service.chat_stream("gpt-4", "hi", ChatSession.empty(), Mock(), on_complete, on_error)

        assert state == StreamState.FAILED
        assert "backend crashed" in str(on_error.call_args.args[0])
        on_complete.assert_not_called()


# ============================================================================
# MODEL MANAGEMENT
# ============================================================================

class TestLocalAIModelManagement:
    """LocalAI manages models itself."""

    @pytest.mark.asyncio
    async def test_pull_is_a_no_op(self, service, recorded_requests):
        assert await service.pull_model("phi-2") is True
        assert recorded_requests == []

    @pytest.mark.asyncio
    async def test_delete_is_unsupported(self, service):
        assert await service.delete_model("phi-2") is False

    @pytest.mark.asyncio
    async def test_model_info(self, service, handler, recorded_requests):
        handler.response = httpx.Response(200, json={"id": "phi-2", "object": "model"})

        assert await service.get_model_info("phi-2") == {"id": "phi-2", "object": "model"}
        assert recorded_requests[0].url.path == "/v1/models/phi-2"
