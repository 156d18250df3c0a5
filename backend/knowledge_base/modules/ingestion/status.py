"""Where the pipeline reports a document's ingestion status."""

from typing import Dict, List, Optional, Protocol, Tuple, runtime_checkable

from ..common.exceptions import DocumentNotFoundError
from ..document.models import DocumentStatus


@runtime_checkable
class DocumentStatusRecorder(Protocol):
    async def set_status(
        self, document_id: str, status: DocumentStatus, error_reason: Optional[str] = None
    ) -> None: ...


class InMemoryStatusRecorder:
    """Keeps statuses in a dict and the full transition history per document.

    Used when no relational database is configured and in tests.
    """

    def __init__(self, strict: bool = False):
        self.strict = strict
        self.statuses: Dict[str, DocumentStatus] = {}
        self.reasons: Dict[str, Optional[str]] = {}
        self.history: Dict[str, List[Tuple[DocumentStatus, Optional[str]]]] = {}

    def register(self, document_id: str, status: DocumentStatus = DocumentStatus.PENDING) -> None:
        self.statuses[str(document_id)] = status
        self.history.setdefault(str(document_id), []).append((status, None))

    async def set_status(
        self, document_id: str, status: DocumentStatus, error_reason: Optional[str] = None
    ) -> None:
        key = str(document_id)
        if self.strict and key not in self.statuses:
            raise DocumentNotFoundError(document_id)
        self.statuses[key] = status
        self.reasons[key] = error_reason
        self.history.setdefault(key, []).append((status, error_reason))

    def status_of(self, document_id: str) -> Optional[DocumentStatus]:
        return self.statuses.get(str(document_id))
