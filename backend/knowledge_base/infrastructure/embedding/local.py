"""In-process embedding provider backed by sentence-transformers."""

import asyncio
from typing import List, Optional, cast

from sentence_transformers import SentenceTransformer

from ...modules.common.exceptions import ProviderUnavailable


class SentenceTransformerProvider:
    """Embeds text with a local sentence-transformers model.

    The model is loaded lazily on first use, under a lock so concurrent first
    calls load it once. Loading and encoding run in a worker thread to keep the
    event loop free. Embeddings are L2-normalised, so cosine similarity equals
    the dot product.
    """

    name = "sentence_transformers"

    def __init__(self, model_name: str = "all-mpnet-base-v2", batch_size: int = 32):
        """Initialize the provider.

        Args:
            model_name: HuggingFace model name for sentence transformers
            batch_size: Texts encoded per forward pass
        """
        self.model_name = model_name
        self._batch_size = batch_size
        self._model: Optional[SentenceTransformer] = None
        self._model_lock = asyncio.Lock()

    @property
    def max_batch_size(self) -> int:
        return self._batch_size

    async def _get_model(self) -> SentenceTransformer:
        """Get the model instance, loading it if necessary."""
        if self._model is None:
            async with self._model_lock:
                if self._model is None:
                    try:
                        self._model = cast(
                            SentenceTransformer, await asyncio.to_thread(SentenceTransformer, self.model_name)
                        )
                    except OSError as e:
                        raise ProviderUnavailable(f"Could not load embedding model {self.model_name}: {e}") from e
        return self._model

    async def embed_batch(self, texts: List[str]) -> List[List[float]]:
        if not texts:
            return []

        model = await self._get_model()
        embeddings = await asyncio.to_thread(
            model.encode,
            texts,
            convert_to_tensor=False,
            normalize_embeddings=True,
            batch_size=self._batch_size,
        )

        if hasattr(embeddings, "tolist"):
            return cast(List[List[float]], embeddings.tolist())
        return [embedding.tolist() for embedding in embeddings]

    async def dimension(self) -> int:
        """Output dimension reported by the loaded model."""
        model = await self._get_model()
        return int(model.get_sentence_embedding_dimension() or 0)

    def is_loaded(self) -> bool:
        return self._model is not None

    async def aclose(self) -> None:
        self._model = None
