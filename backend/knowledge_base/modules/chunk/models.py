"""SQLAlchemy models for chunk vectors and the edges between chunks."""

from typing import Any, Dict, Optional

from pgvector.sqlalchemy import Vector
from sqlalchemy import Float, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from ...infrastructure.config.settings import settings
from ...infrastructure.database.models import TimestampMixin
from ...infrastructure.database.session import Base


class VectorRecordRow(Base, TimestampMixin):
    """One embedded record held by the pgvector store.

    Chunk embeddings live in the ``chunks`` namespace keyed by
    ``<documentId>_chunk_<position>``; the knowledge metadata index lives in
    the ``knowledge_index`` namespace. ``document_id`` duplicates the
    ``documentId`` metadata key so delete-by-document uses an index.
    """

    __tablename__ = "vector_records"
    __table_args__ = (
        Index("ix_vector_records_namespace_document", "namespace", "document_id"),
        Index(
            "ix_vector_records_embedding_hnsw",
            "embedding",
            postgresql_using="hnsw",
            postgresql_ops={"embedding": "vector_cosine_ops"},
        ),
    )

    namespace: Mapped[str] = mapped_column(String(64), primary_key=True)
    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    embedding: Mapped[list[float]] = mapped_column(Vector(settings.EMBEDDING_DIMENSION))
    document_id: Mapped[Optional[str]] = mapped_column(String(64), default=None)
    content: Mapped[str] = mapped_column(Text, default="")
    extra_metadata: Mapped[Dict[str, Any]] = mapped_column(JSONB, default_factory=dict)


class RelationshipEdgeRow(Base, TimestampMixin):
    """Directed, weighted, typed link between two chunks or documents."""

    __tablename__ = "relationship_edges"
    __table_args__ = (
        Index("ix_relationship_edges_source", "source_id"),
        Index("ix_relationship_edges_target", "target_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True, init=False)
    source_id: Mapped[str] = mapped_column(String(255))
    target_id: Mapped[str] = mapped_column(String(255))
    relation_type: Mapped[str] = mapped_column(String(64))
    weight: Mapped[float] = mapped_column(Float, default=1.0)
    source_kind: Mapped[str] = mapped_column(String(16), default="chunk")
    target_kind: Mapped[str] = mapped_column(String(16), default="chunk")
    source_document_id: Mapped[Optional[str]] = mapped_column(String(64), default=None, index=True)
    target_document_id: Mapped[Optional[str]] = mapped_column(String(64), default=None, index=True)
