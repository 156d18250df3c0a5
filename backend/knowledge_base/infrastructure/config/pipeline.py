"""Single validated configuration value shared by the ingestion and retrieval components.

Settings are grouped by concern for the environment layer, but the pipeline
components only ever see this frozen dataclass. It is built once at startup,
validated once, and handed to each component by value, so a component can never
observe a configuration another component did not.
"""

from dataclasses import dataclass, replace
from typing import Any

from ...modules.common.exceptions import ConfigurationError
from .settings import EmbeddingProviderOption, Settings, VectorStoreBackend


@dataclass(frozen=True)
class PipelineConfig:
    """Every knob the chunker, embedding client, vector store and retriever read.

    Attributes:
        chunk_size: Characters per chunk window. Must be positive.
        chunk_overlap: Characters shared by adjacent chunks. ``0 <= overlap < chunk_size``.
        embedding_provider: Which provider backs the embedding client.
        embedding_model: Provider model name.
        embedding_dimension: Length every stored and query vector must have.
        embedding_batch_size: Texts per provider request.
        embedding_max_concurrency: Provider requests in flight at once.
        embedding_timeout_seconds: Per-request timeout; expiry counts as provider unavailable.
        embedding_max_retries: Retries after the first attempt for transient failures.
        embedding_initial_backoff_seconds: First retry delay, doubled per attempt.
        embedding_max_backoff_seconds: Ceiling on the retry delay.
        embedding_api_base_url: Base URL for the OpenAI-compatible provider.
        embedding_api_key: Bearer token for the OpenAI-compatible provider.
        max_results: Default ``k`` for retrieval.
        min_similarity: Default similarity floor for retrieval.
        graph_expansion_factor: ``k' = k * factor`` when graph expansion is requested.
        graph_seed_count: Direct hits whose edges are followed.
        graph_score_penalty: Subtracted (scaled by ``1 - weight``) from graph-only scores.
        rrf_k: Rank offset in reciprocal rank fusion; larger values flatten the top ranks.
        vector_store_backend: Which vector store variant to construct.
        vector_store_timeout_seconds: Timeout applied to each store call.
        qdrant_url: Base URL of the dedicated vector database.
        qdrant_api_key: API key for the dedicated vector database.
        qdrant_collection: Collection name prefix in the dedicated vector database.
    """

    chunk_size: int = 1000
    chunk_overlap: int = 200

    embedding_provider: EmbeddingProviderOption = EmbeddingProviderOption.SENTENCE_TRANSFORMERS
    embedding_model: str = "all-mpnet-base-v2"
    embedding_dimension: int = 768
    embedding_batch_size: int = 32
    embedding_max_concurrency: int = 4
    embedding_timeout_seconds: float = 30.0
    embedding_max_retries: int = 3
    embedding_initial_backoff_seconds: float = 0.5
    embedding_max_backoff_seconds: float = 8.0
    embedding_api_base_url: str = "https://api.openai.com/v1"
    embedding_api_key: str = ""

    max_results: int = 10
    min_similarity: float = 0.2
    graph_expansion_factor: int = 3
    graph_seed_count: int = 3
    graph_score_penalty: float = 0.1
    rrf_k: int = 60

    vector_store_backend: VectorStoreBackend = VectorStoreBackend.MEMORY
    vector_store_timeout_seconds: float = 10.0
    qdrant_url: str = "http://localhost:6333"
    qdrant_api_key: str = ""
    qdrant_collection: str = "knowledge_base"

    @classmethod
    def from_settings(cls, settings: Settings) -> "PipelineConfig":
        """Build and validate the pipeline configuration from application settings."""
        pipeline_config = cls(
            chunk_size=settings.CHUNK_SIZE,
            chunk_overlap=settings.CHUNK_OVERLAP,
            embedding_provider=settings.EMBEDDING_PROVIDER,
            embedding_model=settings.EMBEDDING_MODEL,
            embedding_dimension=settings.EMBEDDING_DIMENSION,
            embedding_batch_size=settings.EMBEDDING_BATCH_SIZE,
            embedding_max_concurrency=settings.EMBEDDING_MAX_CONCURRENCY,
            embedding_timeout_seconds=settings.EMBEDDING_TIMEOUT_SECONDS,
            embedding_max_retries=settings.EMBEDDING_MAX_RETRIES,
            embedding_initial_backoff_seconds=settings.EMBEDDING_INITIAL_BACKOFF_SECONDS,
            embedding_max_backoff_seconds=settings.EMBEDDING_MAX_BACKOFF_SECONDS,
            embedding_api_base_url=settings.EMBEDDING_API_BASE_URL,
            embedding_api_key=settings.EMBEDDING_API_KEY,
            max_results=settings.MAX_RESULTS,
            min_similarity=settings.MIN_SIMILARITY_THRESHOLD,
            graph_expansion_factor=settings.GRAPH_EXPANSION_FACTOR,
            graph_seed_count=settings.GRAPH_SEED_COUNT,
            graph_score_penalty=settings.GRAPH_SCORE_PENALTY,
            rrf_k=settings.RRF_K,
            vector_store_backend=settings.VECTOR_STORE_BACKEND,
            vector_store_timeout_seconds=settings.VECTOR_STORE_TIMEOUT_SECONDS,
            qdrant_url=settings.QDRANT_URL,
            qdrant_api_key=settings.QDRANT_API_KEY,
            qdrant_collection=settings.QDRANT_COLLECTION,
        )
        pipeline_config.validate()
        return pipeline_config

    def with_overrides(self, **changes: Any) -> "PipelineConfig":
        """Return a validated copy with some fields replaced."""
        updated = replace(self, **changes)
        updated.validate()
        return updated

    def validate(self) -> None:
        """Check every field once.

        Raises:
            ConfigurationError: On the first invalid field found.
        """
        validate_chunk_window(self.chunk_size, self.chunk_overlap)

        if self.embedding_dimension <= 0:
            raise ConfigurationError(f"embedding_dimension must be positive, got {self.embedding_dimension}")
        if self.embedding_batch_size <= 0:
            raise ConfigurationError(f"embedding_batch_size must be positive, got {self.embedding_batch_size}")
        if self.embedding_max_concurrency <= 0:
            raise ConfigurationError(
                f"embedding_max_concurrency must be positive, got {self.embedding_max_concurrency}"
            )
        if self.embedding_timeout_seconds <= 0:
            raise ConfigurationError("embedding_timeout_seconds must be positive")
        if self.embedding_max_retries < 0:
            raise ConfigurationError("embedding_max_retries cannot be negative")
        if self.embedding_initial_backoff_seconds < 0 or self.embedding_max_backoff_seconds < 0:
            raise ConfigurationError("embedding backoff delays cannot be negative")
        if not self.embedding_model:
            raise ConfigurationError("embedding_model must be set")

        if self.max_results <= 0:
            raise ConfigurationError(f"max_results must be positive, got {self.max_results}")
        if not -1.0 <= self.min_similarity <= 1.0:
            raise ConfigurationError(f"min_similarity must lie in [-1, 1], got {self.min_similarity}")
        if self.graph_expansion_factor < 1:
            raise ConfigurationError("graph_expansion_factor must be at least 1")
        if self.graph_seed_count < 1:
            raise ConfigurationError("graph_seed_count must be at least 1")
        if self.graph_score_penalty < 0:
            raise ConfigurationError("graph_score_penalty cannot be negative")
        if self.rrf_k < 1:
            raise ConfigurationError(f"rrf_k must be at least 1, got {self.rrf_k}")

        if self.vector_store_timeout_seconds <= 0:
            raise ConfigurationError("vector_store_timeout_seconds must be positive")
        if self.vector_store_backend == VectorStoreBackend.QDRANT and not self.qdrant_url:
            raise ConfigurationError("qdrant_url must be set for the qdrant backend")


def validate_chunk_window(chunk_size: int, chunk_overlap: int) -> None:
    """Raise ConfigurationError unless ``0 <= chunk_overlap < chunk_size``."""
    if chunk_size <= 0:
        raise ConfigurationError(f"Chunk size must be positive, got {chunk_size}")
    if chunk_overlap < 0:
        raise ConfigurationError(f"Chunk overlap cannot be negative, got {chunk_overlap}")
    if chunk_overlap >= chunk_size:
        raise ConfigurationError(f"Chunk overlap ({chunk_overlap}) must be smaller than chunk size ({chunk_size})")
