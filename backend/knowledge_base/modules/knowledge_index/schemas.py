"""Pydantic schemas for the knowledge index."""

from typing import Annotated, Any, Dict, Optional

from pydantic import BaseModel, Field


class KnowledgeIndexEntry(BaseModel):
    user_id: Annotated[str, Field(min_length=1, max_length=64)]
    entity_type: Annotated[str, Field(min_length=1, max_length=64, description="Kind of entity, e.g. note or task")]
    entity_id: Annotated[str, Field(min_length=1, max_length=255)]
    text: Annotated[str, Field(min_length=1, description="Text to embed for the entity")]
    metadata: Dict[str, Any] = Field(default_factory=dict)


class KnowledgeIndexEntryRead(BaseModel):
    id: str
    user_id: str
    entity_type: str
    entity_id: str


class KnowledgeIndexSearch(BaseModel):
    user_id: Annotated[str, Field(min_length=1, max_length=64)]
    query: Annotated[str, Field(min_length=1)]
    entity_type: Optional[str] = None
    k: int = Field(default=10, ge=1, le=100)


class KnowledgeIndexMatchRead(BaseModel):
    entity_type: str
    entity_id: str
    text: str
    score: float
    metadata: Dict[str, Any]
