"""Pydantic schemas for search."""

import uuid as uuid_pkg
from typing import Annotated, Any, Dict, List, Optional

from pydantic import BaseModel, Field

from ...infrastructure.graph import EdgeDirection
from .retriever import RetrievedPassage, SearchMode


class SearchRequest(BaseModel):
    query: Annotated[str, Field(min_length=1, description="Natural-language query")]
    user_id: Optional[str] = Field(default=None, description="Only search this user's documents")
    collection_id: Optional[uuid_pkg.UUID] = Field(default=None, description="Only search this collection")
    document_id: Optional[uuid_pkg.UUID] = Field(default=None, description="Only search this document")
    k: Optional[int] = Field(default=None, ge=1, le=100, description="Maximum number of results")
    min_similarity: Optional[float] = Field(default=None, ge=-1.0, le=1.0, description="Similarity threshold")
    use_graph: bool = Field(default=False, description="Expand results through chunk relationships")
    search_mode: SearchMode = Field(
        default=SearchMode.VECTOR, description="Vector similarity, keyword match, or both fused by rank"
    )
    include_metadata: Optional[Dict[str, Any]] = Field(
        default=None, description="Metadata every result must match; list values match any of them"
    )
    exclude_metadata: Optional[Dict[str, Any]] = Field(
        default=None, description="Results matching any of these metadata entries are dropped"
    )
    relation_types: Optional[List[str]] = Field(
        default=None, description="Only follow relationships of these types during graph expansion"
    )
    direction: EdgeDirection = Field(
        default=EdgeDirection.ANY, description="Which relationships of a match are followed during graph expansion"
    )


class SearchResult(BaseModel):
    chunk_id: str
    document_id: str
    content: str
    score: float
    similarity: float
    via_graph: bool
    relation_type: Optional[str] = None
    metadata: Dict[str, Any]

    @classmethod
    def from_passage(cls, passage: RetrievedPassage) -> "SearchResult":
        return cls(
            chunk_id=passage.chunk_id,
            document_id=passage.document_id,
            content=passage.content,
            score=passage.score,
            similarity=passage.similarity,
            via_graph=passage.via_graph,
            relation_type=passage.relation_type,
            metadata=passage.metadata,
        )


class SearchResponse(BaseModel):
    query: str
    results: List[SearchResult]

