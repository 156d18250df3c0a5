"""Vector store capability and its in-memory, pgvector and Qdrant variants."""

from .base import (
    DOCUMENT_ID_KEY,
    MetadataFilter,
    Namespace,
    VectorMatch,
    VectorRecord,
    VectorStore,
    is_excluded,
    keyword_relevance,
    keyword_terms,
    matches_metadata_filter,
)
from .factory import create_vector_store
from .memory import InMemoryVectorStore
from .pgvector import PgVectorStore
from .qdrant import QdrantVectorStore
from .similarity import cosine_similarities

__all__ = [
    "DOCUMENT_ID_KEY",
    "InMemoryVectorStore",
    "MetadataFilter",
    "Namespace",
    "PgVectorStore",
    "QdrantVectorStore",
    "VectorMatch",
    "VectorRecord",
    "VectorStore",
    "cosine_similarities",
    "create_vector_store",
    "is_excluded",
    "keyword_relevance",
    "keyword_terms",
    "matches_metadata_filter",
]
