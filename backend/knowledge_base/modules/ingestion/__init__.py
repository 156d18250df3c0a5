"""Document ingestion: chunking, embedding and storage under per-document locks."""

from .locks import DocumentLockRegistry
from .pipeline import IngestionPipeline, IngestionRequest, IngestionResult, chunk_record_id
from .status import DocumentStatusRecorder, InMemoryStatusRecorder

__all__ = [
    "DocumentLockRegistry",
    "DocumentStatusRecorder",
    "InMemoryStatusRecorder",
    "IngestionPipeline",
    "IngestionRequest",
    "IngestionResult",
    "chunk_record_id",
]
