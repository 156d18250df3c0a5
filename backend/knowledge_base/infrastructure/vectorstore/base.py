"""Capability interface and value types shared by every vector store variant."""

import re
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, runtime_checkable

from ...modules.common.exceptions import DimensionMismatchError

# Metadata key every chunk record carries; delete_by_document matches on it.
DOCUMENT_ID_KEY = "documentId"

MetadataFilter = Mapping[str, Any]

KEYWORD_PATTERN = re.compile(r"\w+")


class Namespace(str, Enum):
    """Independent record spaces held by one backend."""

    CHUNKS = "chunks"
    KNOWLEDGE_INDEX = "knowledge_index"


@dataclass
class VectorRecord:
    """A vector keyed by id, with the metadata used for filter pushdown."""

    id: str
    vector: List[float]
    metadata: Dict[str, Any] = field(default_factory=dict)
    content: str = ""

    @property
    def document_id(self) -> Optional[str]:
        value = self.metadata.get(DOCUMENT_ID_KEY)
        return str(value) if value is not None else None


@dataclass
class VectorMatch:
    """One hit.

    ``score`` is cosine similarity in [-1, 1] for ``query`` and keyword relevance
    (higher is better, not comparable across backends) for ``keyword_search``.
    """

    id: str
    score: float
    metadata: Dict[str, Any]
    content: str = ""


@runtime_checkable
class VectorStore(Protocol):
    """Durable owner of record vectors.

    Variants are chosen at construction time by ``create_vector_store``; callers
    depend only on this protocol.

    Guarantees every variant gives:
    - ``upsert`` is all-or-nothing per call from the caller's perspective.
    - A record whose vector length differs from ``dimension`` is rejected with
      ``DimensionMismatchError`` before anything is written.
    - ``delete_by_document`` succeeds when nothing matches.
    - ``query`` returns at most ``k`` matches by descending cosine similarity
      and applies no similarity threshold.
    - ``keyword_search`` returns at most ``k`` records whose content holds
      every query word, most relevant first.
    - ``exclude_filter`` drops a record that matches any one of its criteria.
    - Unreachable backends and timeouts surface as ``ProviderUnavailable``.
    """

    dimension: int
    namespace: Namespace

    async def upsert(self, records: Sequence[VectorRecord]) -> None: ...

    async def delete_by_document(self, document_id: str) -> int: ...

    async def query(
        self,
        vector: Sequence[float],
        k: int,
        metadata_filter: Optional[MetadataFilter] = None,
        exclude_filter: Optional[MetadataFilter] = None,
    ) -> List[VectorMatch]: ...

    async def keyword_search(
        self,
        text: str,
        k: int,
        metadata_filter: Optional[MetadataFilter] = None,
        exclude_filter: Optional[MetadataFilter] = None,
    ) -> List[VectorMatch]: ...

    async def get(self, ids: Sequence[str]) -> List[VectorRecord]: ...

    async def list_by_document(self, document_id: str) -> List[VectorRecord]: ...

    async def count(self, metadata_filter: Optional[MetadataFilter] = None) -> int: ...

    async def aclose(self) -> None: ...


def validate_dimensions(records: Sequence[VectorRecord], dimension: int) -> None:
    """Reject the whole batch if any vector has the wrong length."""
    for record in records:
        if len(record.vector) != dimension:
            raise DimensionMismatchError(expected=dimension, actual=len(record.vector), record_id=record.id)


def matches_metadata_filter(metadata: Mapping[str, Any], metadata_filter: Optional[MetadataFilter]) -> bool:
    """Check a record's metadata against a filter.

    Scalar filter values must equal the metadata value. List, tuple and set
    values match when the metadata value is any of them.

    Args:
        metadata: Metadata from the record
        metadata_filter: Filter criteria

    Returns:
        True if the record matches every criterion
    """
    if not metadata_filter:
        return True

    for key, expected in metadata_filter.items():
        actual = metadata.get(key)
        if isinstance(expected, (list, tuple, set, frozenset)):
            if actual not in expected:
                return False
        elif actual != expected:
            return False

    return True


def dedupe_by_id(records: Sequence[VectorRecord]) -> List[VectorRecord]:
    """Keep the last record for each id, preserving first-seen order."""
    latest: Dict[str, VectorRecord] = {}
    for record in records:
        latest[record.id] = record
    return list(latest.values())


def is_excluded(metadata: Mapping[str, Any], exclude_filter: Optional[MetadataFilter]) -> bool:
    """True when the metadata matches any single criterion of the exclusion filter."""
    for key, excluded in (exclude_filter or {}).items():
        actual = metadata.get(key)
        if isinstance(excluded, (list, tuple, set, frozenset)):
            if actual in excluded:
                return True
        elif actual == excluded:
            return True
    return False


def keyword_terms(text: str) -> List[str]:
    """Distinct lowercase words of ``text`` in order of first appearance."""
    return list(dict.fromkeys(token.lower() for token in KEYWORD_PATTERN.findall(text)))


def keyword_relevance(terms: Sequence[str], content: str) -> float:
    """Share of the content's words that are query terms; 0 unless every term occurs."""
    counts = Counter(token.lower() for token in KEYWORD_PATTERN.findall(content))
    total = sum(counts.values())
    if not terms or not total or any(counts[term] == 0 for term in terms):
        return 0.0
    return sum(counts[term] for term in terms) / total
