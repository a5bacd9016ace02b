"""LocalAI adapter (OpenAI-compatible ``/v1`` endpoints, SSE streaming)."""
import json
import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx

from .base_client import BaseLLMService
from .exceptions import InvalidResponseError, LLMServiceError

logger = logging.getLogger(__name__)

SSE_DATA_PREFIX = "data:"
SSE_DONE = "[DONE]"


class LocalAIService(BaseLLMService):
    """Adapter for LocalAI or any server speaking the OpenAI chat completions protocol."""

    @property
    def provider_name(self) -> str:
        """Return provider name."""
        return "localai"

    @property
    def health_path(self) -> str:
        return "/v1/models"

    async def _fetch_models(self, client: httpx.AsyncClient) -> List[str]:
        response = await client.get("/v1/models")
        self._raise_for_status(response)
        data = self._json(response)
        return [model["id"] for model in data.get("data") or [] if model.get("id")]

    async def _generate(self, client: httpx.AsyncClient, model: str, prompt: str) -> str:
        response = await client.post("/v1/completions", json={"model": model, "prompt": prompt, "stream": False})
        self._raise_for_status(response, model)
        choice = self._first_choice(response)
        if "text" not in choice:
            raise InvalidResponseError("missing 'choices[0].text' field", provider=self.provider_name, raw=response.text)
        return choice["text"]

    async def _chat(self, client: httpx.AsyncClient, model: str, messages: List[Dict[str, str]]) -> str:
        response = await client.post(
            "/v1/chat/completions", json={"model": model, "messages": messages, "stream": False}
        )
        self._raise_for_status(response, model)
        message = self._first_choice(response).get("message")
        if not isinstance(message, dict) or "content" not in message:
            raise InvalidResponseError(
                "missing 'choices[0].message.content' field", provider=self.provider_name, raw=response.text
            )
        return message["content"] or ""

    def _first_choice(self, response: httpx.Response) -> Dict[str, Any]:
        data = self._json(response)
        choices = data.get("choices") if isinstance(data, dict) else None
        if not choices or not isinstance(choices[0], dict):
            raise InvalidResponseError("response has no choices", provider=self.provider_name, raw=response.text)
        return choices[0]

    def _stream_request(self, model: str, messages: List[Dict[str, str]]) -> Tuple[str, Dict[str, Any]]:
        return "/v1/chat/completions", {"model": model, "messages": messages, "stream": True}

    def _parse_stream_line(self, line: str) -> Tuple[Optional[str], bool]:
        # Comments, event names and ids carry no content
        if not line.startswith(SSE_DATA_PREFIX):
            return None, False

        payload = line[len(SSE_DATA_PREFIX):].strip()
        if payload == SSE_DONE:
            return None, True

        data = json.loads(payload)
        if not isinstance(data, dict):
            raise ValueError("stream chunk is not an object")
        if data.get("error"):
            error = data["error"]
            message = error.get("message") if isinstance(error, dict) else error
            raise LLMServiceError(str(message), error_code="STREAM_ERROR", recoverable=True)

        choices = data.get("choices") or []
        if not choices:
            return None, False
        if not isinstance(choices, list) or not isinstance(choices[0], dict):
            raise ValueError("stream chunk has malformed choices")
        delta = choices[0].get("delta") or {}
        if not isinstance(delta, dict):
            raise ValueError("stream chunk has malformed delta")
        content = delta.get("content")
        if content is not None and not isinstance(content, str):
            raise ValueError("stream chunk content is not text")
        return content or None, False

    # ------------------------------------------------------------------
    # Model management
    # ------------------------------------------------------------------

    async def pull_model(self, model: str, on_progress: Optional[Callable[[Dict[str, Any]], None]] = None) -> bool:
        # Models are installed through LocalAI's own gallery
        logger.info(f"LocalAI does not support pulling models; assuming {model} is installed")
        return True

    async def delete_model(self, model: str) -> bool:
        logger.info("LocalAI does not support deleting models")
        return False

    async def get_model_info(self, model: str) -> Optional[Dict[str, Any]]:
        try:
            async with self._client() as client:
                response = await client.get(f"/v1/models/{model}")
                self._raise_for_status(response, model)
                return self._json(response)
        except (httpx.HTTPError, LLMServiceError) as e:
            logger.error(f"Failed to get model info for {model}: {e}")
            return None
