import asyncio
from typing import List, Optional, Sequence

from .base import EdgeDirection, RelationshipEdge


class InMemoryGraphStore:
    """Edges held in a list; lookups scan it. Paired with the in-memory vector store."""

    def __init__(self):
        self._edges: List[RelationshipEdge] = []
        self._lock = asyncio.Lock()

    async def add_edges(self, edges: Sequence[RelationshipEdge]) -> None:
        async with self._lock:
            known = set(self._edges)
            self._edges.extend(edge for edge in edges if edge not in known)

    async def neighbors(
        self,
        node_ids: Sequence[str],
        direction: EdgeDirection = EdgeDirection.ANY,
        relation_types: Optional[Sequence[str]] = None,
    ) -> List[RelationshipEdge]:
        wanted = set(node_ids)
        found = []
        for edge in self._edges:
            if relation_types and edge.relation_type not in relation_types:
                continue
            outbound = edge.source_id in wanted and direction in (EdgeDirection.OUTBOUND, EdgeDirection.ANY)
            inbound = edge.target_id in wanted and direction in (EdgeDirection.INBOUND, EdgeDirection.ANY)
            if outbound or inbound:
                found.append(edge)
        return found

    async def delete_by_document(self, document_id: str) -> int:
        async with self._lock:
            kept = [
                edge
                for edge in self._edges
                if document_id not in (edge.source_document_id, edge.target_document_id)
                and document_id not in self._document_endpoints(edge)
            ]
            removed = len(self._edges) - len(kept)
            self._edges = kept
        return removed

    @staticmethod
    def _document_endpoints(edge: RelationshipEdge) -> set:
        return {
            node_id
            for node_id, kind in ((edge.source_id, edge.source_kind), (edge.target_id, edge.target_kind))
            if kind == "document"
        }
