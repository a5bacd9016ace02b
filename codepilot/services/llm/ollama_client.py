"""Ollama adapter (native ``/api`` endpoints, NDJSON streaming)."""
import json
import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx

from .base_client import BaseLLMService
from .exceptions import InvalidResponseError, LLMServiceError

logger = logging.getLogger(__name__)


class OllamaService(BaseLLMService):
    """Adapter for a local or remote Ollama server."""

    @property
    def provider_name(self) -> str:
        """Return provider name."""
        return "ollama"

    @property
    def health_path(self) -> str:
        return "/api/tags"

    async def _fetch_models(self, client: httpx.AsyncClient) -> List[str]:
        response = await client.get("/api/tags")
        self._raise_for_status(response)
        data = self._json(response)
        return [model["name"] for model in data.get("models") or [] if model.get("name")]

    async def _generate(self, client: httpx.AsyncClient, model: str, prompt: str) -> str:
        response = await client.post("/api/generate", json={"model": model, "prompt": prompt, "stream": False})

        # Servers without /api/generate answer 404 without naming the model
        if response.status_code == 404 and not self._is_missing_model(response):
            logger.warning("Generate API not available, falling back to chat API")
            return await self._chat(client, model, [{"role": "user", "content": prompt}])

        self._raise_for_status(response, model)
        data = self._json(response)
        if "response" not in data:
            raise InvalidResponseError("missing 'response' field", provider=self.provider_name, raw=response.text)
        return data["response"]

    async def _chat(self, client: httpx.AsyncClient, model: str, messages: List[Dict[str, str]]) -> str:
        response = await client.post("/api/chat", json={"model": model, "messages": messages, "stream": False})
        self._raise_for_status(response, model)
        data = self._json(response)
        message = data.get("message")
        if not isinstance(message, dict) or "content" not in message:
            raise InvalidResponseError("missing 'message.content' field", provider=self.provider_name, raw=response.text)
        return message["content"]

    def _stream_request(self, model: str, messages: List[Dict[str, str]]) -> Tuple[str, Dict[str, Any]]:
        return "/api/chat", {"model": model, "messages": messages, "stream": True}

    def _parse_stream_line(self, line: str) -> Tuple[Optional[str], bool]:
        data = json.loads(line)
        if not isinstance(data, dict):
            raise ValueError("stream chunk is not an object")
        if data.get("error"):
            raise LLMServiceError(str(data["error"]), error_code="STREAM_ERROR", recoverable=True)

        message = data.get("message") or {}
        if not isinstance(message, dict):
            raise ValueError("stream chunk has malformed message")
        content = message.get("content")
        if content is not None and not isinstance(content, str):
            raise ValueError("stream chunk content is not text")
        return content or None, bool(data.get("done"))

    # ------------------------------------------------------------------
    # Model management
    # ------------------------------------------------------------------

    async def pull_model(self, model: str, on_progress: Optional[Callable[[Dict[str, Any]], None]] = None) -> bool:
        """Download a model, reporting each NDJSON progress record."""
        try:
            async with self._client() as client:
                async with client.stream(
                    "POST", "/api/pull", json={"name": model, "stream": True}, timeout=httpx.Timeout(None)
                ) as response:
                    if not response.is_success:
                        await response.aread()
                        self._raise_for_status(response, model)

                    succeeded = False
                    async for line in response.aiter_lines():
                        if not line.strip():
                            continue
                        try:
                            progress = json.loads(line)
                        except ValueError:
                            logger.warning(f"Failed to parse pull progress: {line[:200]}")
                            continue
                        if progress.get("error"):
                            raise LLMServiceError(str(progress["error"]), error_code="PULL_FAILED")
                        if on_progress:
                            on_progress(progress)
                        if progress.get("status") == "success":
                            succeeded = True
                    return succeeded
        except (httpx.HTTPError, LLMServiceError) as e:
            logger.error(f"Failed to pull model {model}: {e}")
            return False

    async def delete_model(self, model: str) -> bool:
        try:
            async with self._client() as client:
                response = await client.request("DELETE", "/api/delete", json={"name": model})
        except httpx.HTTPError as e:
            logger.error(f"Failed to delete model {model}: {e}")
            return False
        if not response.is_success:
            logger.error(f"Failed to delete model {model}: HTTP {response.status_code}")
        return response.is_success

    async def get_model_info(self, model: str) -> Optional[Dict[str, Any]]:
        try:
            async with self._client() as client:
                response = await client.post("/api/show", json={"name": model})
                self._raise_for_status(response, model)
                return self._json(response)
        except (httpx.HTTPError, LLMServiceError) as e:
            logger.error(f"Failed to get model info for {model}: {e}")
            return None
