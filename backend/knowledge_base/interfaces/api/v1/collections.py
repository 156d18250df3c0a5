"""Collection API endpoints."""

import uuid as uuid_pkg
from typing import Annotated, List

from fastapi import APIRouter, Depends, Query, status

from ....modules.collection.schemas import CollectionCreate, CollectionRead
from ....modules.collection.services import CollectionService
from ..dependencies import DbSession, get_collection_service

router = APIRouter(prefix="/collections", tags=["Collections"])

CollectionServiceDep = Annotated[CollectionService, Depends(get_collection_service)]


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    summary="Create Collection",
    responses={201: {"description": "Collection created"}, 409: {"description": "Name already used by this user"}},
)
async def create_collection(
    collection_data: CollectionCreate, db: DbSession, collection_service: CollectionServiceDep
) -> CollectionRead:
    return await collection_service.create_collection(collection_data, db)


@router.get("", summary="List Collections")
async def list_collections(
    user_id: Annotated[str, Query(min_length=1)], db: DbSession, collection_service: CollectionServiceDep
) -> List[CollectionRead]:
    return await collection_service.list_collections(user_id, db)


@router.get(
    "/{collection_id}",
    summary="Get Collection",
    responses={404: {"description": "Collection not found"}},
)
async def get_collection(
    collection_id: uuid_pkg.UUID, db: DbSession, collection_service: CollectionServiceDep
) -> CollectionRead:
    return await collection_service.get_collection(collection_id, db)


@router.delete(
    "/{collection_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete Collection",
    description="Deletes the collection. Its documents are kept.",
    responses={404: {"description": "Collection not found"}},
)
async def delete_collection(
    collection_id: uuid_pkg.UUID, db: DbSession, collection_service: CollectionServiceDep
) -> None:
    await collection_service.delete_collection(collection_id, db)


@router.put(
    "/{collection_id}/documents/{document_id}",
    summary="Add Document to Collection",
    responses={404: {"description": "Collection or document not found"}},
)
async def add_document(
    collection_id: uuid_pkg.UUID,
    document_id: uuid_pkg.UUID,
    db: DbSession,
    collection_service: CollectionServiceDep,
) -> CollectionRead:
    return await collection_service.add_document(collection_id, document_id, db)


@router.delete(
    "/{collection_id}/documents/{document_id}",
    summary="Remove Document from Collection",
    responses={404: {"description": "Collection or document not found"}},
)
async def remove_document(
    collection_id: uuid_pkg.UUID,
    document_id: uuid_pkg.UUID,
    db: DbSession,
    collection_service: CollectionServiceDep,
) -> CollectionRead:
    return await collection_service.remove_document(collection_id, document_id, db)
