"""Knowledge index endpoints."""

from typing import Annotated, List

from fastapi import APIRouter, Depends

from ....modules.knowledge_index.schemas import (
    KnowledgeIndexEntry,
    KnowledgeIndexEntryRead,
    KnowledgeIndexMatchRead,
    KnowledgeIndexSearch,
)
from ....modules.knowledge_index.service import KnowledgeIndexService
from ..dependencies import get_knowledge_index_service

router = APIRouter(prefix="/knowledge-index", tags=["Knowledge Index"])

KnowledgeIndexServiceDep = Annotated[KnowledgeIndexService, Depends(get_knowledge_index_service)]


@router.put(
    "",
    summary="Index Entity",
    description="Embeds an entity's text. Indexing the same user, type and id again replaces the entry.",
    responses={422: {"description": "Blank text"}, 503: {"description": "Embedding provider unavailable"}},
)
async def upsert_entry(entry: KnowledgeIndexEntry, service: KnowledgeIndexServiceDep) -> KnowledgeIndexEntryRead:
    entry_id = await service.upsert_entry(
        user_id=entry.user_id,
        entity_type=entry.entity_type,
        entity_id=entry.entity_id,
        text=entry.text,
        metadata=entry.metadata,
    )
    return KnowledgeIndexEntryRead(
        id=entry_id, user_id=entry.user_id, entity_type=entry.entity_type, entity_id=entry.entity_id
    )


@router.post("/search", summary="Search Indexed Entities")
async def search_entries(
    search: KnowledgeIndexSearch, service: KnowledgeIndexServiceDep
) -> List[KnowledgeIndexMatchRead]:
    matches = await service.search(search.user_id, search.query, entity_type=search.entity_type, k=search.k)
    return [
        KnowledgeIndexMatchRead(
            entity_type=match.entity_type,
            entity_id=match.entity_id,
            text=match.text,
            score=match.score,
            metadata=match.metadata,
        )
        for match in matches
    ]
