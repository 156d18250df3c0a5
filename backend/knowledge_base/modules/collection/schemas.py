"""Pydantic schemas for collection entities."""

import uuid as uuid_pkg
from typing import Annotated, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..common.schemas import TimestampSchema


class CollectionBase(BaseModel):
    name: Annotated[str, Field(min_length=1, max_length=255, description="Collection name, unique per user")]
    description: Optional[str] = Field(default=None, max_length=1000)


class CollectionCreate(CollectionBase):
    user_id: Annotated[str, Field(min_length=1, max_length=64, description="Owning user")]


class CollectionRead(TimestampSchema, CollectionBase):
    model_config = ConfigDict(from_attributes=True)

    id: uuid_pkg.UUID
    user_id: str
    document_ids: List[uuid_pkg.UUID] = Field(default_factory=list)
