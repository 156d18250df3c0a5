"""Ingestion pipeline: chunk, embed, store and link a document."""

import asyncio
import os
import time
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError

from ...infrastructure.config.pipeline import PipelineConfig
from ...infrastructure.embedding import EmbeddingClient
from ...infrastructure.graph import GraphStore, sequential_chunk_edges
from ...infrastructure.logging import get_logger
from ...infrastructure.vectorstore import DOCUMENT_ID_KEY, VectorRecord, VectorStore
from ..chunk.chunker import ChunkingConfig, TextSpan, chunk
from ..common.exceptions import DomainError, ProcessingError
from ..document.models import DocumentStatus
from .locks import DocumentLockRegistry
from .status import DocumentStatusRecorder

logger = get_logger(__name__)

UPLOAD_SOURCE_TYPE = "file"


def chunk_record_id(document_id: str, position: int) -> str:
    return f"{document_id}_chunk_{position}"


def file_type_of(filename: Optional[str]) -> str:
    extension = os.path.splitext(filename or "")[1].lower().lstrip(".")
    return extension or "txt"


@dataclass(frozen=True)
class IngestionRequest:
    """Everything the pipeline needs to know about one document."""

    document_id: str
    content: str
    user_id: Optional[str] = None
    filename: Optional[str] = None
    collection_id: Optional[str] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class IngestionResult:
    document_id: str
    status: DocumentStatus
    chunk_count: int
    replaced_count: int
    elapsed_ms: float


class IngestionPipeline:
    """Runs a document through chunking, embedding and storage.

    Status moves ``processing`` -> ``ready`` on success and ``processing`` ->
    ``error`` on failure. Any failure after the document is marked processing
    deletes whatever was stored for it before the error surfaces as
    ``ProcessingError``, so a document is never left partially embedded.

    Ingestion and deletion of the same document are serialized; different
    documents proceed concurrently.
    """

    def __init__(
        self,
        config: PipelineConfig,
        embedding_client: EmbeddingClient,
        vector_store: VectorStore,
        status_recorder: DocumentStatusRecorder,
        graph_store: Optional[GraphStore] = None,
    ):
        self.config = config
        self.embedding_client = embedding_client
        self.vector_store = vector_store
        self.status_recorder = status_recorder
        self.graph_store = graph_store
        self._locks = DocumentLockRegistry()

    def is_busy(self, document_id: str) -> bool:
        return self._locks.is_locked(document_id)

    async def ingest(self, request: IngestionRequest) -> IngestionResult:
        """Ingest or re-ingest a document.

        Re-ingesting replaces every chunk stored for the document.

        Args:
            request: Document id, text and attributes copied onto each chunk

        Returns:
            Outcome with the number of chunks stored

        Raises:
            ProcessingError: If any step failed; the document is marked ``error``
        """
        document_id = str(request.document_id)
        async with self._locks.hold(document_id):
            started = time.perf_counter()
            await self.status_recorder.set_status(document_id, DocumentStatus.PROCESSING)

            try:
                replaced = await self.vector_store.delete_by_document(document_id)
                await self._delete_edges(document_id)

                spans = self._split(request)
                vectors = await self.embedding_client.embed([span.text for span in spans])
                records = self._build_records(request, spans, vectors)
                await self.vector_store.upsert(records)
                await self._link_chunks(document_id, [record.id for record in records])

                await self.status_recorder.set_status(document_id, DocumentStatus.READY)
            except asyncio.CancelledError:
                await asyncio.shield(self._rollback(document_id, "Ingestion was cancelled"))
                raise
            except Exception as e:
                reason = str(e) or type(e).__name__
                await asyncio.shield(self._rollback(document_id, reason))
                raise ProcessingError(document_id, reason) from e

            elapsed_ms = (time.perf_counter() - started) * 1000
            logger.info(
                f"Ingested document {document_id}: {len(records)} chunks "
                f"({replaced} replaced) in {elapsed_ms:.1f}ms"
            )
            return IngestionResult(
                document_id=document_id,
                status=DocumentStatus.READY,
                chunk_count=len(records),
                replaced_count=replaced,
                elapsed_ms=elapsed_ms,
            )

    async def delete_document(self, document_id: str) -> int:
        """Remove every chunk and edge of a document.

        Waits for an in-flight ingestion of the same document. Unknown ids are
        not an error.

        Returns:
            Number of chunks removed
        """
        async with self._locks.hold(str(document_id)):
            removed = await self.vector_store.delete_by_document(str(document_id))
            await self._delete_edges(str(document_id))
        logger.info(f"Deleted {removed} chunks of document {document_id}")
        return removed

    def _split(self, request: IngestionRequest) -> List[TextSpan]:
        chunking_config = ChunkingConfig.from_pipeline(self.config, request.filename)
        # Whitespace-only spans carry nothing to embed.
        return [span for span in chunk(request.content, chunking_config) if span.text.strip()]

    def _build_records(
        self, request: IngestionRequest, spans: Sequence[TextSpan], vectors: Sequence[List[float]]
    ) -> List[VectorRecord]:
        document_id = str(request.document_id)
        base_metadata: Dict[str, Any] = {
            **request.metadata,
            DOCUMENT_ID_KEY: document_id,
            "sourceType": UPLOAD_SOURCE_TYPE,
            "fileType": file_type_of(request.filename),
            "createdAt": request.created_at.isoformat(),
        }
        if request.user_id is not None:
            base_metadata["userId"] = request.user_id
        if request.filename is not None:
            base_metadata["filename"] = request.filename
        if request.collection_id is not None:
            base_metadata["collectionId"] = str(request.collection_id)

        return [
            VectorRecord(
                id=chunk_record_id(document_id, span.position),
                vector=list(vector),
                metadata={**base_metadata, "position": span.position, "start": span.start, "end": span.end},
                content=span.text,
            )
            for span, vector in zip(spans, vectors)
        ]

    async def _link_chunks(self, document_id: str, chunk_ids: Sequence[str]) -> None:
        if self.graph_store is None or len(chunk_ids) < 2:
            return
        try:
            await self.graph_store.add_edges(sequential_chunk_edges(document_id, chunk_ids))
        except (DomainError, SQLAlchemyError) as e:
            logger.warning(f"Could not link chunks of document {document_id}: {e}")

    async def _delete_edges(self, document_id: str) -> None:
        if self.graph_store is not None:
            await self.graph_store.delete_by_document(document_id)

    async def _rollback(self, document_id: str, reason: str) -> None:
        """Undo partial writes and record the failure. Never raises."""
        try:
            removed = await self.vector_store.delete_by_document(document_id)
            await self._delete_edges(document_id)
            logger.warning(f"Rolled back document {document_id} ({removed} chunks removed): {reason}")
        except Exception as e:
            logger.error(f"Rollback of document {document_id} failed: {e}", exc_info=True)

        try:
            await self.status_recorder.set_status(document_id, DocumentStatus.ERROR, error_reason=reason)
        except Exception as e:
            logger.error(f"Could not mark document {document_id} as failed: {e}", exc_info=True)
