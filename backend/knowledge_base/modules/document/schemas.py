"""Pydantic schemas for document entities."""

import uuid as uuid_pkg
from typing import Annotated, Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..common.schemas import PageParams, TimestampSchema
from .models import DocumentStatus


class DocumentBase(BaseModel):
    """Base schema for document data."""

    filename: Annotated[str, Field(min_length=1, max_length=255, description="Original filename")]
    path: Optional[str] = Field(default=None, max_length=1024, description="Storage path of the original file")
    collection_id: Optional[uuid_pkg.UUID] = Field(default=None, description="Primary collection of the document")
    metadata: Dict[str, Any] = Field(default_factory=dict, description="Additional document metadata")


class DocumentUpload(DocumentBase):
    """Schema for uploading a new document."""

    user_id: Annotated[str, Field(min_length=1, max_length=64, description="Owning user")]
    content: Annotated[str, Field(description="Full text content of the file")]


class DocumentRead(TimestampSchema, DocumentBase):
    """Schema for reading document data."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid_pkg.UUID
    user_id: str
    status: DocumentStatus
    error_reason: Optional[str] = None
    chunk_count: Optional[int] = Field(default=None, description="Chunks currently stored for the document")


class DocumentDetail(DocumentRead):
    """Document data including its full text."""

    content: str


class DocumentQuery(PageParams):
    """Listing filters for documents."""

    q: Optional[str] = Field(default=None, max_length=500, description="Substring matched against filename and content")
    user_id: Optional[str] = Field(default=None, description="Only documents owned by this user")
    collection_id: Optional[uuid_pkg.UUID] = Field(default=None, description="Only documents in this collection")
    status: Optional[DocumentStatus] = Field(default=None, description="Only documents in this status")


class ChunkRead(BaseModel):
    """A stored chunk of a document."""

    id: str
    document_id: str
    position: int
    content: str
    metadata: Dict[str, Any]
