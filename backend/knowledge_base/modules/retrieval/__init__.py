"""Query-time retrieval over the vector store and relationship graph."""

from .retriever import (
    CollectionMembership,
    RetrievalOptions,
    RetrievedPassage,
    Retriever,
    SearchMode,
    apply_rrf,
    rank_key,
)

__all__ = [
    "CollectionMembership",
    "RetrievalOptions",
    "RetrievedPassage",
    "Retriever",
    "SearchMode",
    "apply_rrf",
    "rank_key",
]
