"""Capability interface every embedding provider satisfies."""

from typing import List, Protocol, runtime_checkable


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Something that turns a batch of texts into vectors.

    Providers report transient failures (network errors, 5xx, rate limits) as
    ``ProviderUnavailable`` and rejected input as ``InvalidInput``. Batching,
    retries, timeouts and concurrency limits belong to ``EmbeddingClient``, not
    to providers.
    """

    name: str

    @property
    def max_batch_size(self) -> int:
        """Largest number of texts one ``embed_batch`` call accepts."""
        ...

    async def embed_batch(self, texts: List[str]) -> List[List[float]]:
        """Embed texts, returning one vector per text in input order."""
        ...

    async def aclose(self) -> None:
        """Release network clients or models held by the provider."""
        ...
