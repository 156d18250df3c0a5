"""Embedding client: batching, bounded concurrency, timeouts and retries over a provider."""

import asyncio
import time
from typing import List, Sequence

from ...modules.common.exceptions import DimensionMismatchError, InvalidInput, ProviderUnavailable
from ..config.pipeline import PipelineConfig
from ..config.settings import EmbeddingProviderOption
from ..logging import get_logger
from .base import EmbeddingProvider
from .local import SentenceTransformerProvider
from .remote import OpenAIEmbeddingProvider

logger = get_logger(__name__)


class EmbeddingClient:
    """Turns texts into vectors through an ``EmbeddingProvider``.

    - Input is split into batches no larger than both the configured batch size
      and the provider's own limit.
    - At most ``embedding_max_concurrency`` provider calls are in flight.
    - Each call is bounded by ``embedding_timeout_seconds``; expiry counts as
      ``ProviderUnavailable``.
    - ``ProviderUnavailable`` is retried up to ``embedding_max_retries`` times
      with exponential backoff capped at ``embedding_max_backoff_seconds``.
      ``InvalidInput`` and ``DimensionMismatchError`` are raised immediately.
    - If one batch fails for good, the other in-flight batches are cancelled.

    Output has the same length and order as the input.
    """

    def __init__(self, provider: EmbeddingProvider, config: PipelineConfig):
        self.provider = provider
        self.config = config
        self._semaphore = asyncio.Semaphore(config.embedding_max_concurrency)

    @property
    def dimension(self) -> int:
        return self.config.embedding_dimension

    @property
    def batch_size(self) -> int:
        return max(1, min(self.config.embedding_batch_size, self.provider.max_batch_size))

    async def embed(self, texts: Sequence[str]) -> List[List[float]]:
        """Embed many texts.

        Args:
            texts: Texts to embed; each must be a non-blank string

        Returns:
            One vector per text, in input order

        Raises:
            InvalidInput: If any text is blank or not a string
            ProviderUnavailable: If a batch still fails after all retries
            DimensionMismatchError: If the provider returns vectors of the wrong length
        """
        if not texts:
            return []

        for index, text in enumerate(texts):
            if not isinstance(text, str) or not text.strip():
                raise InvalidInput(f"Text at index {index} is empty")

        size = self.batch_size
        batches = [list(texts[i : i + size]) for i in range(0, len(texts), size)]

        start_time = time.perf_counter()
        tasks = [asyncio.create_task(self._embed_batch_with_retry(batch)) for batch in batches]
        try:
            results = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        vectors = [vector for batch_vectors in results for vector in batch_vectors]
        logger.debug(
            f"Embedded {len(vectors)} texts in {len(batches)} batches",
            extra={"provider": self.provider.name, "elapsed_ms": round((time.perf_counter() - start_time) * 1000, 2)},
        )
        return vectors

    async def embed_query(self, text: str) -> List[float]:
        """Embed a single query string."""
        vectors = await self.embed([text])
        return vectors[0]

    async def _embed_batch_with_retry(self, batch: List[str]) -> List[List[float]]:
        attempts = self.config.embedding_max_retries + 1
        delay = self.config.embedding_initial_backoff_seconds

        for attempt in range(1, attempts + 1):
            try:
                return await self._embed_batch_once(batch)
            except ProviderUnavailable as e:
                if attempt >= attempts:
                    logger.error(f"Embedding provider still unavailable after {attempts} attempts: {e}")
                    raise
                wait = min(delay, self.config.embedding_max_backoff_seconds)
                logger.warning(
                    f"Embedding attempt {attempt}/{attempts} failed, retrying in {wait:.2f}s: {e}",
                    extra={"provider": self.provider.name, "batch_size": len(batch)},
                )
                await asyncio.sleep(wait)
                delay = delay * 2 if delay > 0 else 0

        raise ProviderUnavailable("Embedding retries exhausted")

    async def _embed_batch_once(self, batch: List[str]) -> List[List[float]]:
        async with self._semaphore:
            try:
                vectors = await asyncio.wait_for(
                    self.provider.embed_batch(batch), timeout=self.config.embedding_timeout_seconds
                )
            except asyncio.TimeoutError as e:
                raise ProviderUnavailable(
                    f"Embedding call timed out after {self.config.embedding_timeout_seconds}s"
                ) from e

        if len(vectors) != len(batch):
            raise ProviderUnavailable(f"Provider returned {len(vectors)} vectors for {len(batch)} texts")
        for vector in vectors:
            if len(vector) != self.dimension:
                raise DimensionMismatchError(expected=self.dimension, actual=len(vector))
        return vectors

    async def aclose(self) -> None:
        await self.provider.aclose()


def create_embedding_provider(config: PipelineConfig) -> EmbeddingProvider:
    """Construct the provider named by ``config.embedding_provider``."""
    if config.embedding_provider == EmbeddingProviderOption.OPENAI:
        return OpenAIEmbeddingProvider(
            model=config.embedding_model,
            base_url=config.embedding_api_base_url,
            api_key=config.embedding_api_key,
            batch_size=config.embedding_batch_size,
            timeout=config.embedding_timeout_seconds,
        )
    return SentenceTransformerProvider(model_name=config.embedding_model, batch_size=config.embedding_batch_size)


def create_embedding_client(config: PipelineConfig) -> EmbeddingClient:
    return EmbeddingClient(provider=create_embedding_provider(config), config=config)
