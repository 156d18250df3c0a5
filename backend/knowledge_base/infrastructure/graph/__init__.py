"""Relationship edge storage for graph-augmented retrieval."""

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..config.pipeline import PipelineConfig
from ..config.settings import VectorStoreBackend
from ..database.session import local_session
from .base import (
    NEXT_CHUNK_RELATION,
    EdgeDirection,
    GraphStore,
    NodeKind,
    RelationshipEdge,
    sequential_chunk_edges,
)
from .memory import InMemoryGraphStore
from .sql import SqlGraphStore


def create_graph_store(
    config: PipelineConfig, session_factory: Optional[async_sessionmaker[AsyncSession]] = None
) -> GraphStore:
    """In-memory edges for the in-memory backend, relational edges otherwise."""
    if config.vector_store_backend == VectorStoreBackend.MEMORY:
        return InMemoryGraphStore()
    return SqlGraphStore(session_factory=session_factory or local_session)


__all__ = [
    "NEXT_CHUNK_RELATION",
    "EdgeDirection",
    "GraphStore",
    "InMemoryGraphStore",
    "NodeKind",
    "RelationshipEdge",
    "SqlGraphStore",
    "create_graph_store",
    "sequential_chunk_edges",
]
