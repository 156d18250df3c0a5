"""Relationship edges between chunks or documents, used by graph-augmented retrieval."""

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Protocol, Sequence, runtime_checkable


class NodeKind(str, Enum):
    CHUNK = "chunk"
    DOCUMENT = "document"


class EdgeDirection(str, Enum):
    """Which edges of a node count as its neighbours."""

    OUTBOUND = "outbound"
    INBOUND = "inbound"
    ANY = "any"


# Edge type linking a chunk to the chunk that follows it in the same document.
NEXT_CHUNK_RELATION = "next"


@dataclass(frozen=True)
class RelationshipEdge:
    """A directed, typed, weighted link. ``weight`` is expected in [0, 1]."""

    source_id: str
    target_id: str
    relation_type: str
    weight: float = 1.0
    source_kind: NodeKind = NodeKind.CHUNK
    target_kind: NodeKind = NodeKind.CHUNK
    source_document_id: Optional[str] = None
    target_document_id: Optional[str] = None

    def other_end(self, node_id: str) -> tuple[str, NodeKind]:
        """The endpoint opposite ``node_id``."""
        if node_id == self.source_id:
            return self.target_id, self.target_kind
        return self.source_id, self.source_kind


@runtime_checkable
class GraphStore(Protocol):
    """Storage for relationship edges.

    Edges are optional context: a failure here never blocks ingestion.
    """

    async def add_edges(self, edges: Sequence[RelationshipEdge]) -> None: ...

    async def neighbors(
        self,
        node_ids: Sequence[str],
        direction: EdgeDirection = EdgeDirection.ANY,
        relation_types: Optional[Sequence[str]] = None,
    ) -> List[RelationshipEdge]: ...

    async def delete_by_document(self, document_id: str) -> int: ...


def sequential_chunk_edges(document_id: str, chunk_ids: Sequence[str]) -> List[RelationshipEdge]:
    """``next`` edges linking each chunk of a document to the one after it."""
    return [
        RelationshipEdge(
            source_id=current,
            target_id=following,
            relation_type=NEXT_CHUNK_RELATION,
            weight=1.0,
            source_document_id=document_id,
            target_document_id=document_id,
        )
        for current, following in zip(chunk_ids, chunk_ids[1:])
    ]
