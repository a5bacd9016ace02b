"""Short-lived cache of complete model responses, keyed by model and prompt."""

import hashlib
import logging
import time
from typing import Callable, Dict, Optional, Tuple

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 5 * 60


class ResponseCache:
    """TTL cache for non-streaming responses. Expired entries are dropped on read."""

    def __init__(self, ttl_seconds: float = DEFAULT_TTL_SECONDS, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, Tuple[str, float]] = {}

    @staticmethod
    def generate_key(model: str, prompt: str) -> str:
        digest = hashlib.sha256()
        digest.update(model.encode("utf-8"))
        digest.update(b"\x00")
        digest.update(prompt.encode("utf-8"))
        return digest.hexdigest()

    def get(self, key: str) -> Optional[str]:
        entry = self._entries.get(key)
        if entry is None:
            return None

        response, stored_at = entry
        if self._clock() - stored_at > self.ttl_seconds:
            del self._entries[key]
            return None
        logger.debug(f"Response cache hit for key {key[:12]}")
        return response

    def set(self, key: str, response: str) -> None:
        self._entries[key] = (response, self._clock())

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
