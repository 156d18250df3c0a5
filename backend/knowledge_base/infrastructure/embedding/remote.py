"""Embedding provider for OpenAI-compatible ``/embeddings`` HTTP endpoints."""

from typing import Any, Dict, List, Optional

import httpx

from ...modules.common.exceptions import InvalidInput, ProviderUnavailable

# Status codes worth retrying: rate limiting and server-side failures.
RETRYABLE_STATUS_CODES = frozenset({408, 409, 425, 429, 500, 502, 503, 504})


class OpenAIEmbeddingProvider:
    """Calls ``POST {base_url}/embeddings`` with ``{"model": ..., "input": [...]}``.

    The response lists ``{"embedding": [...], "index": i}`` items; they are
    reordered by ``index`` so output order always matches input order.
    """

    name = "openai"

    def __init__(
        self,
        model: str,
        base_url: str = "https://api.openai.com/v1",
        api_key: str = "",
        batch_size: int = 128,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.model = model
        self._batch_size = batch_size
        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        self._client = client or httpx.AsyncClient(base_url=base_url.rstrip("/"), headers=headers, timeout=timeout)

    @property
    def max_batch_size(self) -> int:
        return self._batch_size

    def get_embed_payload(self, texts: List[str]) -> Dict[str, Any]:
        return {"model": self.model, "input": texts}

    def extract_embeddings_from_response(self, response_data: Dict[str, Any], expected: int) -> List[List[float]]:
        """Pull vectors out of the response body in input order.

        Raises:
            ProviderUnavailable: If the body is malformed or the count is wrong.
        """
        items = response_data.get("data")
        if not isinstance(items, list) or len(items) != expected:
            raise ProviderUnavailable(
                f"Embedding response carried {len(items) if isinstance(items, list) else 'no'} vectors, expected {expected}"
            )
        try:
            ordered = sorted(items, key=lambda item: item["index"])
            return [[float(value) for value in item["embedding"]] for item in ordered]
        except (KeyError, TypeError, ValueError) as e:
            raise ProviderUnavailable(f"Malformed embedding response: {e}") from e

    async def embed_batch(self, texts: List[str]) -> List[List[float]]:
        if not texts:
            return []

        try:
            response = await self._client.post("/embeddings", json=self.get_embed_payload(texts))
        except httpx.TransportError as e:
            raise ProviderUnavailable(f"Embedding provider unreachable: {e}") from e

        if response.status_code in RETRYABLE_STATUS_CODES:
            raise ProviderUnavailable(f"Embedding provider returned {response.status_code}")
        if response.status_code >= 400:
            raise InvalidInput(f"Embedding provider rejected input ({response.status_code}): {response.text[:200]}")

        try:
            body = response.json()
        except ValueError as e:
            raise ProviderUnavailable("Embedding provider returned a non-JSON body") from e

        return self.extract_embeddings_from_response(body, expected=len(texts))

    async def aclose(self) -> None:
        await self._client.aclose()
