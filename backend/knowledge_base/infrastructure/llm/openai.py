"""Chat model client for OpenAI-compatible ``/chat/completions`` endpoints."""

from typing import Any, Dict, List, Optional

import httpx

from ...modules.common.exceptions import InvalidInput, ProviderUnavailable
from ..embedding.remote import RETRYABLE_STATUS_CODES
from ..logging import get_logger
from .base import ChatMessage

logger = get_logger(__name__)


class OpenAIChatModel:
    """Sends ``{"model": ..., "messages": [...]}`` and returns the first choice's content."""

    def __init__(
        self,
        model: str,
        base_url: str = "https://api.openai.com/v1",
        api_key: str = "",
        timeout: float = 60.0,
        temperature: float = 0.2,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.model = model
        self.temperature = temperature
        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        self._client = client or httpx.AsyncClient(base_url=base_url.rstrip("/"), headers=headers, timeout=timeout)

    def get_chat_payload(self, messages: List[ChatMessage]) -> Dict[str, Any]:
        return {"model": self.model, "messages": messages, "temperature": self.temperature, "stream": False}

    def extract_chat_response(self, response_data: Dict[str, Any]) -> str:
        """Assistant reply text of the first choice.

        Raises:
            ProviderUnavailable: If the body carries no reply
        """
        try:
            content = response_data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise ProviderUnavailable(f"Malformed chat response: {e}") from e
        return content or ""

    async def complete(self, messages: List[ChatMessage]) -> str:
        try:
            response = await self._client.post("/chat/completions", json=self.get_chat_payload(messages))
        except httpx.TransportError as e:
            raise ProviderUnavailable(f"Chat model unreachable: {e}") from e

        if response.status_code in RETRYABLE_STATUS_CODES or response.status_code >= 500:
            logger.error(f"Chat request failed: status {response.status_code}, body: {response.text[:200]}")
            raise ProviderUnavailable(f"Chat model returned {response.status_code}")
        if response.status_code >= 400:
            raise InvalidInput(f"Chat model rejected the request ({response.status_code}): {response.text[:200]}")

        try:
            body = response.json()
        except ValueError as e:
            raise ProviderUnavailable("Chat model returned a non-JSON body") from e
        return self.extract_chat_response(body)

    async def aclose(self) -> None:
        await self._client.aclose()
