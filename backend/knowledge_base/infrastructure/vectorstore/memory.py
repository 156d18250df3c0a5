"""In-process vector store using exact (brute-force) cosine similarity."""

import asyncio
from typing import Dict, List, Optional, Sequence

import numpy as np

from .base import (
    DOCUMENT_ID_KEY,
    MetadataFilter,
    Namespace,
    VectorMatch,
    VectorRecord,
    dedupe_by_id,
    is_excluded,
    keyword_relevance,
    keyword_terms,
    matches_metadata_filter,
    validate_dimensions,
)
from .similarity import cosine_similarities


class InMemoryVectorStore:
    """Exact nearest-neighbour search over vectors held in a dict.

    Characteristics:
    - Search: O(n * d), vectorised with numpy
    - Accuracy: exact
    - Durability: none, contents die with the process

    Best for tests, local development and small corpora.

    Writes take a lock and apply a fully validated batch without yielding to
    the event loop, so a concurrent query sees either none or all of an upsert.
    """

    def __init__(self, dimension: int, namespace: Namespace = Namespace.CHUNKS):
        self.dimension = dimension
        self.namespace = namespace
        self._records: Dict[str, VectorRecord] = {}
        self._write_lock = asyncio.Lock()

    async def upsert(self, records: Sequence[VectorRecord]) -> None:
        validate_dimensions(records, self.dimension)
        staged = {
            record.id: VectorRecord(
                id=record.id,
                vector=[float(value) for value in record.vector],
                metadata=dict(record.metadata),
                content=record.content,
            )
            for record in dedupe_by_id(records)
        }
        async with self._write_lock:
            self._records.update(staged)

    async def delete_by_document(self, document_id: str) -> int:
        async with self._write_lock:
            doomed = [
                record_id
                for record_id, record in self._records.items()
                if str(record.metadata.get(DOCUMENT_ID_KEY)) == str(document_id)
            ]
            for record_id in doomed:
                del self._records[record_id]
        return len(doomed)

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

        candidates = self._select(metadata_filter, exclude_filter)
        if not candidates:
            return []

        scores = cosine_similarities(vector, [record.vector for record in candidates])
        order = np.argsort(-scores, kind="stable")[:k]

        return [
            VectorMatch(
                id=candidates[i].id,
                score=float(scores[i]),
                metadata=dict(candidates[i].metadata),
                content=candidates[i].content,
            )
            for i in order
        ]

    async def keyword_search(
        self,
        text: str,
        k: int,
        metadata_filter: Optional[MetadataFilter] = None,
        exclude_filter: Optional[MetadataFilter] = None,
    ) -> List[VectorMatch]:
        terms = keyword_terms(text)
        if k <= 0 or not terms:
            return []

        scored = []
        for record in self._select(metadata_filter, exclude_filter):
            relevance = keyword_relevance(terms, record.content)
            if relevance > 0:
                scored.append((relevance, record))
        scored.sort(key=lambda item: -item[0])

        return [
            VectorMatch(id=record.id, score=relevance, metadata=dict(record.metadata), content=record.content)
            for relevance, record in scored[:k]
        ]

    async def get(self, ids: Sequence[str]) -> List[VectorRecord]:
        return [self._records[record_id] for record_id in ids if record_id in self._records]

    async def list_by_document(self, document_id: str) -> List[VectorRecord]:
        records = [
            record
            for record in self._records.values()
            if str(record.metadata.get(DOCUMENT_ID_KEY)) == str(document_id)
        ]
        return sorted(records, key=lambda record: record.metadata.get("position", 0))

    async def count(self, metadata_filter: Optional[MetadataFilter] = None) -> int:
        return sum(1 for record in self._records.values() if matches_metadata_filter(record.metadata, metadata_filter))

    async def aclose(self) -> None:
        return None

    def clear(self) -> None:
        self._records.clear()

    def _select(
        self, metadata_filter: Optional[MetadataFilter], exclude_filter: Optional[MetadataFilter]
    ) -> List[VectorRecord]:
        return [
            record
            for record in self._records.values()
            if matches_metadata_filter(record.metadata, metadata_filter)
            and not is_excluded(record.metadata, exclude_filter)
        ]

