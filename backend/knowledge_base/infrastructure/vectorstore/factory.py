"""Select the vector store variant once, at construction time."""

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..config.pipeline import PipelineConfig
from ..config.settings import VectorStoreBackend
from ..database.session import local_session
from .base import Namespace, VectorStore
from .memory import InMemoryVectorStore
from .pgvector import PgVectorStore
from .qdrant import QdrantVectorStore


def create_vector_store(
    config: PipelineConfig,
    namespace: Namespace = Namespace.CHUNKS,
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
) -> VectorStore:
    """Build the store named by ``config.vector_store_backend``.

    Args:
        config: Validated pipeline configuration
        namespace: Record space the store reads and writes
        session_factory: Session factory for the pgvector backend; defaults to the application's

    Returns:
        A store satisfying the VectorStore protocol
    """
    if config.vector_store_backend == VectorStoreBackend.PGVECTOR:
        return PgVectorStore(
            session_factory=session_factory or local_session,
            dimension=config.embedding_dimension,
            namespace=namespace,
            timeout=config.vector_store_timeout_seconds,
        )

    if config.vector_store_backend == VectorStoreBackend.QDRANT:
        return QdrantVectorStore(
            base_url=config.qdrant_url,
            collection=config.qdrant_collection,
            dimension=config.embedding_dimension,
            namespace=namespace,
            api_key=config.qdrant_api_key,
            timeout=config.vector_store_timeout_seconds,
        )

    return InMemoryVectorStore(dimension=config.embedding_dimension, namespace=namespace)
