"""Pydantic schemas for chat."""

import uuid as uuid_pkg
from typing import Annotated, List, Optional

from pydantic import BaseModel, Field

from ..retrieval.schemas import SearchResult


class ChatRequest(BaseModel):
    message: Annotated[str, Field(min_length=1, description="The user's question")]
    user_id: Optional[str] = None
    document_id: Optional[uuid_pkg.UUID] = Field(default=None, description="Ground the answer in this document")
    collection_id: Optional[uuid_pkg.UUID] = Field(default=None, description="Ground the answer in this collection")
    use_graph: bool = False


class ChatResponse(BaseModel):
    answer: str
    thread_id: str
    citations: List[str]
    sources: List[SearchResult]
