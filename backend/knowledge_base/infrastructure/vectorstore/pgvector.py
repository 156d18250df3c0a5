"""Relational vector store: Postgres with the pgvector extension."""

import asyncio
from typing import Any, Awaitable, Callable, List, Optional, Sequence, Tuple, TypeVar

from sqlalchemy import delete, func, literal_column, or_, select
from sqlalchemy import text as sql_text
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ...modules.chunk.models import VectorRecordRow
from ...modules.common.exceptions import ProviderUnavailable
from ..logging import get_logger
from .base import (
    DOCUMENT_ID_KEY,
    MetadataFilter,
    Namespace,
    VectorMatch,
    VectorRecord,
    dedupe_by_id,
    keyword_terms,
    validate_dimensions,
)

logger = get_logger(__name__)

T = TypeVar("T")

# Rows per INSERT statement; all statements of one upsert share a transaction.
UPSERT_BATCH_SIZE = 500

# Text search configuration: lowercase words, no stemming or stop words.
FTS_CONFIG = literal_column("'simple'::regconfig")

# First pgvector release that can keep scanning the HNSW index until enough rows pass the filter.
ITERATIVE_SCAN_VERSION = (0, 8)


class PgVectorStore:
    """Stores vectors in the ``vector_records`` table and ranks with ``<=>`` (cosine distance).

    Every public call opens its own session from ``session_factory`` and runs
    in one transaction under ``timeout`` seconds. A timeout, a lost connection
    or a cancelled caller rolls the transaction back, so an upsert is never
    partially visible.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        dimension: int,
        namespace: Namespace = Namespace.CHUNKS,
        timeout: float = 10.0,
    ):
        self.session_factory = session_factory
        self.dimension = dimension
        self.namespace = namespace
        self.timeout = timeout
        self._iterative_scan: Optional[bool] = None

    async def upsert(self, records: Sequence[VectorRecord]) -> None:
        validate_dimensions(records, self.dimension)
        unique_records = dedupe_by_id(records)
        if not unique_records:
            return

        async def _upsert(db: AsyncSession) -> None:
            for start in range(0, len(unique_records), UPSERT_BATCH_SIZE):
                batch = unique_records[start : start + UPSERT_BATCH_SIZE]
                stmt = pg_insert(VectorRecordRow).values([self._to_row(record) for record in batch])
                stmt = stmt.on_conflict_do_update(
                    index_elements=[VectorRecordRow.namespace, VectorRecordRow.id],
                    set_={
                        "embedding": stmt.excluded.embedding,
                        "document_id": stmt.excluded.document_id,
                        "content": stmt.excluded.content,
                        "extra_metadata": stmt.excluded.extra_metadata,
                        "updated_at": func.now(),
                    },
                )
                await db.execute(stmt)

        await self._run_in_transaction(_upsert)

    async def delete_by_document(self, document_id: str) -> int:
        async def _delete(db: AsyncSession) -> int:
            result = await db.execute(
                delete(VectorRecordRow).where(
                    VectorRecordRow.namespace == self.namespace.value,
                    VectorRecordRow.document_id == str(document_id),
                )
            )
            return int(result.rowcount or 0)

        return await self._run_in_transaction(_delete)

    async def query(
        self,
        vector: Sequence[float],
        k: int,
        metadata_filter: Optional[MetadataFilter] = None,
        exclude_filter: Optional[MetadataFilter] = None,
    ) -> List[VectorMatch]:
        validate_dimensions([VectorRecord(id="<query>", vector=list(vector))], self.dimension)
        if k <= 0:
            return []

        distance = VectorRecordRow.embedding.cosine_distance(list(vector)).label("distance")
        stmt = (
            select(VectorRecordRow, distance)
            .where(*self._where(metadata_filter, exclude_filter))
            .order_by(distance)
            .limit(k)
        )

        async def _query(db: AsyncSession) -> List[VectorMatch]:
            await self._prepare_index_scan(db)
            result = await db.execute(stmt)
            return [
                VectorMatch(
                    id=row.id,
                    score=max(-1.0, min(1.0, 1.0 - float(dist))),
                    metadata=dict(row.extra_metadata or {}),
                    content=row.content,
                )
                for row, dist in result.all()
            ]

        return await self._run_in_transaction(_query)

    async def keyword_search(
        self,
        text: str,
        k: int,
        metadata_filter: Optional[MetadataFilter] = None,
        exclude_filter: Optional[MetadataFilter] = None,
    ) -> List[VectorMatch]:
        """Full-text match on ``content``, ranked by ``ts_rank_cd``."""
        if k <= 0 or not keyword_terms(text):
            return []

        ts_query = func.websearch_to_tsquery(FTS_CONFIG, text)
        document = func.to_tsvector(FTS_CONFIG, VectorRecordRow.content)
        rank = func.ts_rank_cd(document, ts_query).label("rank")
        stmt = (
            select(VectorRecordRow, rank)
            .where(*self._where(metadata_filter, exclude_filter), document.bool_op("@@")(ts_query))
            .order_by(rank.desc(), VectorRecordRow.id)
            .limit(k)
        )

        async def _search(db: AsyncSession) -> List[VectorMatch]:
            result = await db.execute(stmt)
            return [
                VectorMatch(
                    id=row.id,
                    score=float(row_rank),
                    metadata=dict(row.extra_metadata or {}),
                    content=row.content,
                )
                for row, row_rank in result.all()
            ]

        return await self._run_in_transaction(_search)

    async def get(self, ids: Sequence[str]) -> List[VectorRecord]:
        if not ids:
            return []
        stmt = select(VectorRecordRow).where(
            VectorRecordRow.namespace == self.namespace.value, VectorRecordRow.id.in_(list(ids))
        )
        rows = await self._fetch_rows(stmt)
        by_id = {row.id: row for row in rows}
        return [self._from_row(by_id[record_id]) for record_id in ids if record_id in by_id]

    async def list_by_document(self, document_id: str) -> List[VectorRecord]:
        stmt = select(VectorRecordRow).where(
            VectorRecordRow.namespace == self.namespace.value,
            VectorRecordRow.document_id == str(document_id),
        )
        records = [self._from_row(row) for row in await self._fetch_rows(stmt)]
        return sorted(records, key=lambda record: record.metadata.get("position", 0))

    async def count(self, metadata_filter: Optional[MetadataFilter] = None) -> int:
        stmt = select(func.count()).select_from(VectorRecordRow).where(*self._where(metadata_filter))

        async def _count(db: AsyncSession) -> int:
            return int((await db.execute(stmt)).scalar_one())

        return await self._run_in_transaction(_count)

    async def aclose(self) -> None:
        return None

    def _where(
        self, metadata_filter: Optional[MetadataFilter], exclude_filter: Optional[MetadataFilter] = None
    ) -> List[Any]:
        """Translate metadata filters into SQL clauses on the JSONB column."""
        clauses: List[Any] = [VectorRecordRow.namespace == self.namespace.value]
        for key, expected in (metadata_filter or {}).items():
            column = self._column(key)
            if isinstance(expected, (list, tuple, set, frozenset)):
                clauses.append(column.in_([_as_text(value) for value in expected]))
            elif expected is None:
                clauses.append(column.is_(None))
            else:
                clauses.append(column == _as_text(expected))

        for key, excluded in (exclude_filter or {}).items():
            column = self._column(key)
            if isinstance(excluded, (list, tuple, set, frozenset)):
                clauses.append(or_(column.is_(None), column.not_in([_as_text(value) for value in excluded])))
            elif excluded is None:
                clauses.append(column.is_not(None))
            else:
                clauses.append(column.is_distinct_from(_as_text(excluded)))
        return clauses

    @staticmethod
    def _column(key: str) -> Any:
        if key == DOCUMENT_ID_KEY:
            return VectorRecordRow.document_id
        return VectorRecordRow.extra_metadata[key].astext

    async def _prepare_index_scan(self, db: AsyncSession) -> None:
        """Make the HNSW index honour the WHERE clause instead of filtering a fixed candidate set.

        The index hands back ``hnsw.ef_search`` neighbours before the filter
        runs, so a scoped query can come back short or empty. With pgvector 0.8
        the scan continues until ``k`` rows pass; older versions skip the index
        for this transaction and rank the filtered rows exactly.
        """
        if self._iterative_scan is None:
            version = (
                await db.execute(sql_text("SELECT extversion FROM pg_extension WHERE extname = 'vector'"))
            ).scalar_one_or_none()
            self._iterative_scan = _parse_version(version) >= ITERATIVE_SCAN_VERSION

        if self._iterative_scan:
            await db.execute(sql_text("SET LOCAL hnsw.iterative_scan = strict_order"))
        else:
            await db.execute(sql_text("SET LOCAL enable_indexscan = off"))

    async def _fetch_rows(self, stmt: Any) -> List[VectorRecordRow]:
        async def _fetch(db: AsyncSession) -> List[VectorRecordRow]:
            return list((await db.execute(stmt)).scalars().all())

        return await self._run_in_transaction(_fetch)

    async def _run_in_transaction(self, operation: Callable[[AsyncSession], Awaitable[T]]) -> T:
        async def _run() -> T:
            async with self.session_factory() as db:
                async with db.begin():
                    return await operation(db)

        try:
            return await asyncio.wait_for(_run(), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise ProviderUnavailable(f"Vector store call timed out after {self.timeout}s") from e
        except (OperationalError, InterfaceError, OSError) as e:
            raise ProviderUnavailable(f"Vector store unavailable: {e}") from e
        except DBAPIError as e:
            if e.connection_invalidated:
                raise ProviderUnavailable(f"Vector store connection lost: {e}") from e
            raise

    def _to_row(self, record: VectorRecord) -> dict:
        return {
            "namespace": self.namespace.value,
            "id": record.id,
            "embedding": [float(value) for value in record.vector],
            "document_id": record.document_id,
            "content": record.content,
            "extra_metadata": dict(record.metadata),
        }

    @staticmethod
    def _from_row(row: VectorRecordRow) -> VectorRecord:
        return VectorRecord(
            id=row.id,
            vector=[float(value) for value in row.embedding],
            metadata=dict(row.extra_metadata or {}),
            content=row.content,
        )


def _as_text(value: Any) -> str:
    """Render a filter value the way Postgres renders the JSONB scalar as text."""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _parse_version(version: Optional[str]) -> Tuple[int, ...]:
    """``"0.8.0"`` -> ``(0, 8, 0)``; unknown or malformed versions sort lowest."""
    parts = []
    for part in (version or "").split("."):
        if not part.isdigit():
            break
        parts.append(int(part))
    return tuple(parts)
