"""SQLAlchemy models for document entities."""

import uuid as uuid_pkg
from enum import Enum
from typing import Any, Dict, Optional

from sqlalchemy import JSON, ForeignKey, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from ...infrastructure.database.models import TimestampMixin, UUIDMixin
from ...infrastructure.database.session import Base


class DocumentStatus(str, Enum):
    """Ingestion lifecycle: pending -> processing -> ready | error."""

    PENDING = "pending"
    PROCESSING = "processing"
    READY = "ready"
    ERROR = "error"


class Document(Base, UUIDMixin, TimestampMixin):
    """An uploaded file and its full text.

    The document owns its chunks and their embeddings, which live in the vector
    store keyed by ``documentId`` and are deleted with it. ``status`` is only
    ``ready`` once every chunk has an embedding; ``error_reason`` keeps the
    message of the last failed ingestion.
    """

    __tablename__ = "documents"

    user_id: Mapped[str] = mapped_column(String(64), index=True)
    filename: Mapped[str] = mapped_column(String(255), index=True)
    content: Mapped[str] = mapped_column(Text)
    path: Mapped[Optional[str]] = mapped_column(String(1024), default=None)
    collection_id: Mapped[Optional[uuid_pkg.UUID]] = mapped_column(
        UUID(as_uuid=True), ForeignKey("collections.id", ondelete="SET NULL"), default=None, index=True
    )
    extra_metadata: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, default=None)
    status: Mapped[str] = mapped_column(String(16), default=DocumentStatus.PENDING.value, index=True)
    error_reason: Mapped[Optional[str]] = mapped_column(Text, default=None)
