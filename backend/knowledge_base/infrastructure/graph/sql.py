from typing import List, Optional, Sequence

from sqlalchemy import and_, delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ...modules.chunk.models import RelationshipEdgeRow
from .base import EdgeDirection, NodeKind, RelationshipEdge


class SqlGraphStore:
    """Edges in the ``relationship_edges`` table. Used with the pgvector and Qdrant backends."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def add_edges(self, edges: Sequence[RelationshipEdge]) -> None:
        if not edges:
            return
        async with self.session_factory() as db:
            async with db.begin():
                db.add_all(
                    [
                        RelationshipEdgeRow(
                            source_id=edge.source_id,
                            target_id=edge.target_id,
                            relation_type=edge.relation_type,
                            weight=edge.weight,
                            source_kind=NodeKind(edge.source_kind).value,
                            target_kind=NodeKind(edge.target_kind).value,
                            source_document_id=edge.source_document_id,
                            target_document_id=edge.target_document_id,
                        )
                        for edge in edges
                    ]
                )

    async def neighbors(
        self,
        node_ids: Sequence[str],
        direction: EdgeDirection = EdgeDirection.ANY,
        relation_types: Optional[Sequence[str]] = None,
    ) -> List[RelationshipEdge]:
        if not node_ids:
            return []

        ids = list(node_ids)
        if direction == EdgeDirection.OUTBOUND:
            endpoint_clause = RelationshipEdgeRow.source_id.in_(ids)
        elif direction == EdgeDirection.INBOUND:
            endpoint_clause = RelationshipEdgeRow.target_id.in_(ids)
        else:
            endpoint_clause = or_(RelationshipEdgeRow.source_id.in_(ids), RelationshipEdgeRow.target_id.in_(ids))

        stmt = select(RelationshipEdgeRow).where(endpoint_clause)
        if relation_types:
            stmt = stmt.where(RelationshipEdgeRow.relation_type.in_(list(relation_types)))

        async with self.session_factory() as db:
            rows = (await db.execute(stmt)).scalars().all()

        return [
            RelationshipEdge(
                source_id=row.source_id,
                target_id=row.target_id,
                relation_type=row.relation_type,
                weight=row.weight,
                source_kind=NodeKind(row.source_kind),
                target_kind=NodeKind(row.target_kind),
                source_document_id=row.source_document_id,
                target_document_id=row.target_document_id,
            )
            for row in rows
        ]

    async def delete_by_document(self, document_id: str) -> int:
        stmt = delete(RelationshipEdgeRow).where(
            or_(
                RelationshipEdgeRow.source_document_id == document_id,
                RelationshipEdgeRow.target_document_id == document_id,
                and_(RelationshipEdgeRow.source_kind == NodeKind.DOCUMENT.value, RelationshipEdgeRow.source_id == document_id),
                and_(RelationshipEdgeRow.target_kind == NodeKind.DOCUMENT.value, RelationshipEdgeRow.target_id == document_id),
            )
        )
        async with self.session_factory() as db:
            async with db.begin():
                result = await db.execute(stmt)
        return int(result.rowcount or 0)
