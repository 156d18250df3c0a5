"""Document API endpoints."""

import uuid as uuid_pkg
from typing import Annotated, List

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status

from ....modules.common.schemas import Page
from ....modules.document.schemas import ChunkRead, DocumentDetail, DocumentQuery, DocumentRead, DocumentUpload
from ....modules.document.services import DocumentService
from ..dependencies import DbSession, get_document_service

router = APIRouter(prefix="/documents", tags=["Documents"])

DocumentServiceDep = Annotated[DocumentService, Depends(get_document_service)]


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    summary="Upload Document",
    description="""
    Stores a document and ingests it: the text is split into overlapping chunks,
    each chunk is embedded and stored for search.

    - **filename**: Original file name; its extension picks the chunk size
    - **user_id**: Owner of the document
    - **content**: Full text of the file
    - **collection_id**: Optional collection the document belongs to

    With synchronous ingestion the response carries status `ready`. With
    background ingestion it carries `pending`; poll the document for the outcome.
    """,
    responses={
        201: {"description": "Document stored and ingested (or queued)"},
        404: {"description": "Collection not found"},
        422: {"description": "Invalid document data"},
        500: {"description": "Ingestion failed; the document is marked `error`"},
        503: {"description": "Embedding provider or vector store unavailable"},
    },
)
async def upload_document(
    document_data: DocumentUpload,
    background_tasks: BackgroundTasks,
    db: DbSession,
    document_service: DocumentServiceDep,
) -> DocumentRead:
    return await document_service.upload_document(document_data, db, background_tasks)


@router.get(
    "",
    summary="List Documents",
    description="""
    Lists documents page by page. `q` matches file names and content,
    case-insensitively. Sort by `created_at`, `updated_at`, `filename` or `status`.
    """,
    responses={200: {"description": "One page of documents"}, 422: {"description": "Invalid query"}},
)
async def list_documents(
    query: Annotated[DocumentQuery, Query()],
    db: DbSession,
    document_service: DocumentServiceDep,
) -> Page[DocumentRead]:
    return await document_service.list_documents(query, db)


@router.get(
    "/{document_id}",
    summary="Get Document",
    description="Retrieves a document with its full text, status and current chunk count.",
    responses={200: {"description": "Document details"}, 404: {"description": "Document not found"}},
)
async def get_document(
    document_id: uuid_pkg.UUID,
    db: DbSession,
    document_service: DocumentServiceDep,
) -> DocumentDetail:
    return await document_service.get_document(document_id, db)


@router.get(
    "/{document_id}/chunks",
    summary="List Document Chunks",
    description="Returns the stored chunks of a document in position order.",
    responses={200: {"description": "Chunks of the document"}, 404: {"description": "Document not found"}},
)
async def list_document_chunks(
    document_id: uuid_pkg.UUID,
    db: DbSession,
    document_service: DocumentServiceDep,
) -> List[ChunkRead]:
    return await document_service.list_chunks(document_id, db)


@router.post(
    "/{document_id}/reingest",
    summary="Re-ingest Document",
    description="""
    Chunks and embeds the document again. Every previously stored chunk of the
    document is replaced; concurrent ingestions of the same document run one
    after the other.
    """,
    responses={
        200: {"description": "Document re-ingested"},
        404: {"description": "Document not found"},
        500: {"description": "Ingestion failed; the document is marked `error`"},
        503: {"description": "Embedding provider or vector store unavailable"},
    },
)
async def reingest_document(
    document_id: uuid_pkg.UUID,
    db: DbSession,
    document_service: DocumentServiceDep,
) -> DocumentRead:
    return await document_service.reingest_document(document_id, db)


@router.delete(
    "/{document_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete Document",
    description="Deletes every stored chunk of the document, then the document itself.",
    responses={204: {"description": "Document deleted"}, 404: {"description": "Document not found"}},
)
async def delete_document(
    document_id: uuid_pkg.UUID,
    db: DbSession,
    document_service: DocumentServiceDep,
) -> None:
    await document_service.delete_document(document_id, db)
