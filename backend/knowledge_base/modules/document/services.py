"""Document management service for the knowledge base."""

import uuid as uuid_pkg
from datetime import UTC, datetime
from typing import Any, List, Optional

from fastapi import BackgroundTasks
from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ...infrastructure.config.settings import IngestionMode
from ...infrastructure.logging import get_logger
from ...infrastructure.vectorstore import DOCUMENT_ID_KEY, VectorStore
from ..collection.crud import collection_crud
from ..collection.models import CollectionDocument
from ..common.exceptions import CollectionNotFoundError, DocumentNotFoundError, InvalidInput, ProcessingError
from ..common.schemas import Page
from ..ingestion.pipeline import IngestionPipeline, IngestionRequest
from .crud import document_crud
from .models import Document, DocumentStatus
from .schemas import ChunkRead, DocumentDetail, DocumentQuery, DocumentRead, DocumentUpload

logger = get_logger(__name__)

SORTABLE_COLUMNS = {
    "created_at": Document.created_at,
    "updated_at": Document.updated_at,
    "filename": Document.filename,
    "status": Document.status,
}


def _document_fields(document: Document) -> dict[str, Any]:
    return {
        "id": document.id,
        "user_id": document.user_id,
        "filename": document.filename,
        "path": document.path,
        "collection_id": document.collection_id,
        "metadata": document.extra_metadata or {},
        "status": DocumentStatus(document.status),
        "error_reason": document.error_reason,
        "created_at": document.created_at,
        "updated_at": document.updated_at,
    }


def ingestion_request_for(document: Document) -> IngestionRequest:
    return IngestionRequest(
        document_id=str(document.id),
        content=document.content,
        user_id=document.user_id,
        filename=document.filename,
        collection_id=str(document.collection_id) if document.collection_id else None,
        created_at=document.created_at,
    )


class DocumentService:
    """Service for uploaded documents and their ingestion lifecycle.

    The relational record holds the text and status; the chunks and their
    embeddings live in the vector store and are managed through the pipeline.
    """

    def __init__(
        self,
        pipeline: IngestionPipeline,
        vector_store: VectorStore,
        ingestion_mode: IngestionMode = IngestionMode.SYNC,
    ):
        self.pipeline = pipeline
        self.vector_store = vector_store
        self.ingestion_mode = ingestion_mode

    async def upload_document(
        self,
        document_data: DocumentUpload,
        db: AsyncSession,
        background_tasks: Optional[BackgroundTasks] = None,
    ) -> DocumentRead:
        """Store a document and ingest it.

        In background mode the call returns while the document is still
        ``pending``; poll the document to see it become ``ready`` or ``error``.

        Args:
            document_data: File name, owner and full text
            db: Database session
            background_tasks: Where to schedule background ingestion

        Returns:
            The stored document

        Raises:
            CollectionNotFoundError: If ``collection_id`` names an unknown collection
            ProcessingError: If synchronous ingestion failed
        """
        if document_data.collection_id is not None:
            if not await collection_crud.exists(db=db, id=document_data.collection_id):
                raise CollectionNotFoundError(document_data.collection_id)

        document = Document(
            user_id=document_data.user_id,
            filename=document_data.filename,
            content=document_data.content,
            path=document_data.path,
            collection_id=document_data.collection_id,
            extra_metadata=document_data.metadata or None,
            status=DocumentStatus.PENDING.value,
        )
        db.add(document)
        await db.flush()
        if document.collection_id is not None:
            db.add(CollectionDocument(collection_id=document.collection_id, document_id=document.id))
        await db.commit()

        request = ingestion_request_for(document)
        if self.ingestion_mode == IngestionMode.BACKGROUND and background_tasks is not None:
            background_tasks.add_task(self._ingest_in_background, request)
            return DocumentRead(**_document_fields(document), chunk_count=0)

        result = await self.pipeline.ingest(request)
        await db.refresh(document)
        return DocumentRead(**_document_fields(document), chunk_count=result.chunk_count)

    async def get_document(self, document_id: uuid_pkg.UUID, db: AsyncSession) -> DocumentDetail:
        """Get a document with its text and current chunk count.

        Raises:
            DocumentNotFoundError: If the document does not exist
        """
        document = await self._get_or_raise(document_id, db)
        chunk_count = await self.vector_store.count({DOCUMENT_ID_KEY: str(document.id)})
        return DocumentDetail(**_document_fields(document), content=document.content, chunk_count=chunk_count)

    async def list_documents(self, query: DocumentQuery, db: AsyncSession) -> Page[DocumentRead]:
        """List documents page by page.

        ``q`` is matched case-insensitively against filename and content.

        Raises:
            InvalidInput: If ``sort_by`` is not a sortable column
        """
        sort_column = SORTABLE_COLUMNS.get(query.sort_by)
        if sort_column is None:
            raise InvalidInput(
                f"Cannot sort by '{query.sort_by}'; expected one of {', '.join(sorted(SORTABLE_COLUMNS))}"
            )

        stmt = select(Document)
        if query.user_id:
            stmt = stmt.where(Document.user_id == query.user_id)
        if query.status:
            stmt = stmt.where(Document.status == query.status.value)
        if query.collection_id:
            members = select(CollectionDocument.document_id).where(
                CollectionDocument.collection_id == query.collection_id
            )
            stmt = stmt.where(or_(Document.id.in_(members), Document.collection_id == query.collection_id))
        if query.q:
            pattern = f"%{query.q}%"
            stmt = stmt.where(or_(Document.filename.ilike(pattern), Document.content.ilike(pattern)))

        total = (await db.execute(select(func.count()).select_from(stmt.subquery()))).scalar_one()

        order = sort_column.asc() if query.sort_order == "asc" else sort_column.desc()
        result = await db.execute(stmt.order_by(order, Document.id).offset(query.offset).limit(query.limit))
        items = [DocumentRead(**_document_fields(document)) for document in result.scalars().all()]

        return Page[DocumentRead](
            items=items,
            total=total,
            page=query.page,
            limit=query.limit,
            has_more=query.offset + len(items) < total,
        )

    async def reingest_document(self, document_id: uuid_pkg.UUID, db: AsyncSession) -> DocumentRead:
        """Chunk and embed a document again, replacing its stored chunks.

        Raises:
            DocumentNotFoundError: If the document does not exist
            ProcessingError: If ingestion failed
        """
        document = await self._get_or_raise(document_id, db)
        result = await self.pipeline.ingest(ingestion_request_for(document))
        await db.refresh(document)
        return DocumentRead(**_document_fields(document), chunk_count=result.chunk_count)

    async def delete_document(self, document_id: uuid_pkg.UUID, db: AsyncSession) -> int:
        """Delete a document's chunks, then its record.

        Chunks stored under the id are removed even when the record is gone.

        Returns:
            Number of chunks removed

        Raises:
            DocumentNotFoundError: If there is no record for the id
        """
        removed = await self.pipeline.delete_document(str(document_id))

        if not await document_crud.exists(db=db, id=document_id):
            raise DocumentNotFoundError(document_id)
        await document_crud.db_delete(db=db, id=document_id)
        return removed

    async def list_chunks(self, document_id: uuid_pkg.UUID, db: AsyncSession) -> List[ChunkRead]:
        """Stored chunks of a document in position order.

        Raises:
            DocumentNotFoundError: If the document does not exist
        """
        await self._get_or_raise(document_id, db)
        records = await self.vector_store.list_by_document(str(document_id))
        return [
            ChunkRead(
                id=record.id,
                document_id=str(document_id),
                position=int(record.metadata.get("position", 0)),
                content=record.content,
                metadata=record.metadata,
            )
            for record in records
        ]

    async def _get_or_raise(self, document_id: uuid_pkg.UUID, db: AsyncSession) -> Document:
        document = await db.get(Document, document_id)
        if document is None:
            raise DocumentNotFoundError(document_id)
        return document

    async def _ingest_in_background(self, request: IngestionRequest) -> None:
        try:
            await self.pipeline.ingest(request)
        except ProcessingError as e:
            # Already recorded on the document as status ``error``.
            logger.error(f"Background ingestion failed: {e}")


class SqlDocumentStatusRecorder:
    """Writes ingestion status onto the ``documents`` table.

    Each update runs in its own short transaction so it is visible immediately,
    independent of any request session.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def set_status(
        self, document_id: str, status: DocumentStatus, error_reason: Optional[str] = None
    ) -> None:
        stmt = (
            update(Document)
            .where(Document.id == uuid_pkg.UUID(str(document_id)))
            .values(status=status.value, error_reason=error_reason, updated_at=datetime.now(UTC))
        )
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            if result.rowcount == 0:
                await session.rollback()
                raise DocumentNotFoundError(document_id)
            await session.commit()
