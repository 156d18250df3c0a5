"""Semantic, keyword and hybrid retrieval with optional graph expansion."""

import asyncio
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Dict, List, Mapping, Optional, Protocol, Sequence, Set, Tuple, TypeVar

from sqlalchemy.exc import SQLAlchemyError

from ...infrastructure.config.pipeline import PipelineConfig
from ...infrastructure.embedding import EmbeddingClient
from ...infrastructure.graph import EdgeDirection, GraphStore, NodeKind, RelationshipEdge
from ...infrastructure.logging import get_logger
from ...infrastructure.vectorstore import (
    DOCUMENT_ID_KEY,
    MetadataFilter,
    VectorMatch,
    VectorRecord,
    VectorStore,
    cosine_similarities,
    is_excluded,
    matches_metadata_filter,
)
from ..common.exceptions import InvalidInput, ProviderUnavailable

logger = get_logger(__name__)

T = TypeVar("T")

# Metadata keys the retriever sets from the scope options; callers cannot filter on them directly.
RESERVED_METADATA_KEYS = frozenset({"userId", "collectionId", DOCUMENT_ID_KEY})


class SearchMode(str, Enum):
    VECTOR = "vector"
    KEYWORD = "keyword"
    HYBRID = "hybrid"


class CollectionMembership(Protocol):
    """Resolves a collection to the ids of the documents in it."""

    async def document_ids(self, collection_id: str) -> List[str]: ...


@dataclass(frozen=True)
class RetrievalOptions:
    """Scope and limits of one retrieval. Unset limits fall back to the pipeline config.

    Attributes:
        collection_id: Only chunks of documents in this collection.
        document_id: Only chunks of this document.
        user_id: Only chunks owned by this user.
        k: Maximum number of passages returned.
        min_similarity: Cosine similarity floor, applied in every search mode.
        use_graph: Follow relationship edges from the top matches.
        search_mode: Vector similarity, keyword match, or both fused by rank.
        include_metadata: Extra metadata every passage must match.
        exclude_metadata: Passages matching any of these entries are dropped.
        relation_types: Only follow edges of these types. ``None`` follows all.
        direction: Which edges of a seed node count during graph expansion.
    """

    collection_id: Optional[str] = None
    document_id: Optional[str] = None
    user_id: Optional[str] = None
    k: Optional[int] = None
    min_similarity: Optional[float] = None
    use_graph: bool = False
    search_mode: SearchMode = SearchMode.VECTOR
    include_metadata: Optional[Mapping[str, Any]] = None
    exclude_metadata: Optional[Mapping[str, Any]] = None
    relation_types: Optional[Tuple[str, ...]] = None
    direction: EdgeDirection = EdgeDirection.ANY


@dataclass(frozen=True)
class RetrievedPassage:
    """One ranked chunk.

    ``similarity`` is the raw cosine similarity to the query; ``score`` is what
    the ranking uses. In vector mode they differ only for passages reached
    through the graph. In keyword and hybrid mode ``score`` is the reciprocal
    rank fusion score.
    """

    chunk_id: str
    document_id: str
    content: str
    score: float
    similarity: float
    metadata: Dict[str, Any] = field(default_factory=dict)
    via_graph: bool = False
    relation_type: Optional[str] = None

    @property
    def created_at(self) -> float:
        value = self.metadata.get("createdAt")
        if not value:
            return 0.0
        try:
            return datetime.fromisoformat(str(value)).timestamp()
        except ValueError:
            return 0.0


def rank_key(passage: RetrievedPassage) -> tuple:
    """Higher score first; on ties direct matches before graph matches, then newer first."""
    return (-passage.score, passage.via_graph, -passage.created_at)


def apply_rrf(ranked_lists: Sequence[Sequence[RetrievedPassage]], k_rrf: int = 60) -> List[RetrievedPassage]:
    """Fuse ranked lists with reciprocal rank fusion.

    A passage at 1-based position ``rank`` of a list earns ``1 / (k_rrf + rank)``
    from it, and its fused score is the sum over every list it appears in. When
    a chunk shows up both directly and through the graph, the direct copy is kept.

    Args:
        ranked_lists: Lists ordered best first
        k_rrf: Rank offset; larger values flatten the difference between top ranks

    Returns:
        One passage per chunk, ordered by fused score.
    """
    fused: Dict[str, float] = {}
    chosen: Dict[str, RetrievedPassage] = {}
    for ranked in ranked_lists:
        for rank, passage in enumerate(ranked, start=1):
            fused[passage.chunk_id] = fused.get(passage.chunk_id, 0.0) + 1.0 / (k_rrf + rank)
            current = chosen.get(passage.chunk_id)
            if current is None or (current.via_graph and not passage.via_graph):
                chosen[passage.chunk_id] = passage

    results = [replace(passage, score=fused[chunk_id]) for chunk_id, passage in chosen.items()]
    results.sort(key=rank_key)
    return results


class Retriever:
    """Finds the chunks most relevant to a query.

    Results are sorted by descending score, never exceed ``k`` and never fall
    below the similarity threshold. When graph expansion is on, neighbours of
    the top direct matches join the candidates with a score no higher than
    their own similarity, so a direct match always ranks at least as high as a
    graph-only match of equal similarity.

    Every vector store and graph store call runs under the configured store
    timeout. A slow vector store raises ProviderUnavailable; a slow or failing
    graph store only costs the graph matches.
    """

    def __init__(
        self,
        config: PipelineConfig,
        embedding_client: EmbeddingClient,
        vector_store: VectorStore,
        graph_store: Optional[GraphStore] = None,
        membership: Optional[CollectionMembership] = None,
    ):
        self.config = config
        self.embedding_client = embedding_client
        self.vector_store = vector_store
        self.graph_store = graph_store
        self.membership = membership

    async def retrieve(
        self, query: Optional[str], options: Optional[RetrievalOptions] = None
    ) -> List[RetrievedPassage]:
        """Retrieve ranked passages for a query.

        Args:
            query: Natural-language query text
            options: Scope, result count, threshold, search mode and graph expansion

        Returns:
            At most ``k`` passages, best first. Empty when nothing clears the threshold.

        Raises:
            InvalidInput: If the query is missing or blank, ``k`` is not positive,
                or ``include_metadata`` names a scope key
            ProviderUnavailable: If the embedding provider or vector store is unreachable
        """
        if not isinstance(query, str) or not query.strip():
            raise InvalidInput("Query must be a non-empty string")

        options = options or RetrievalOptions()
        k = options.k if options.k is not None else self.config.max_results
        if k <= 0:
            raise InvalidInput(f"k must be positive, got {k}")
        reserved = RESERVED_METADATA_KEYS.intersection(options.include_metadata or {})
        if reserved:
            raise InvalidInput(f"Use the scope options instead of filtering on {sorted(reserved)}")
        min_similarity = (
            options.min_similarity if options.min_similarity is not None else self.config.min_similarity
        )
        try:
            mode = SearchMode(options.search_mode)
        except ValueError:
            raise InvalidInput(f"Unknown search mode: {options.search_mode}") from None

        metadata_filter = await self._build_filter(options)
        if metadata_filter is None:
            return []
        exclude_filter = dict(options.exclude_metadata) if options.exclude_metadata else None

        query_vector = await self.embedding_client.embed_query(query)
        use_graph = options.use_graph and self.graph_store is not None
        limit = k * self.config.graph_expansion_factor if use_graph else k

        vector_hits: List[RetrievedPassage] = []
        keyword_hits: List[RetrievedPassage] = []
        if mode in (SearchMode.VECTOR, SearchMode.HYBRID):
            matches = await self._with_timeout(
                self.vector_store.query(query_vector, limit, metadata_filter or None, exclude_filter),
                "Vector store query",
            )
            vector_hits = [
                self._direct_passage(match, match.score) for match in matches if match.score >= min_similarity
            ]
        if mode in (SearchMode.KEYWORD, SearchMode.HYBRID):
            keyword_hits = await self._keyword_passages(
                query, query_vector, limit, metadata_filter, exclude_filter, min_similarity
            )

        primary = keyword_hits if mode == SearchMode.KEYWORD else vector_hits
        graph_hits: List[RetrievedPassage] = []
        if use_graph and primary:
            seen = {passage.chunk_id for passage in vector_hits + keyword_hits}
            graph_hits = await self._expand(
                query_vector, primary, seen, metadata_filter, exclude_filter, min_similarity, options
            )

        if mode == SearchMode.VECTOR:
            passages = sorted(primary + graph_hits, key=rank_key)
        elif mode == SearchMode.KEYWORD:
            passages = apply_rrf([primary + sorted(graph_hits, key=rank_key)], self.config.rrf_k)
        else:
            passages = apply_rrf([sorted(primary + graph_hits, key=rank_key), keyword_hits], self.config.rrf_k)
        return passages[:k]

    async def _build_filter(self, options: RetrievalOptions) -> Optional[MetadataFilter]:
        """Metadata filter for the scope, or None when the scope is provably empty."""
        metadata_filter: Dict[str, Any] = dict(options.include_metadata or {})
        if options.user_id:
            metadata_filter["userId"] = options.user_id
        if options.document_id:
            metadata_filter[DOCUMENT_ID_KEY] = str(options.document_id)

        if options.collection_id:
            if self.membership is None:
                metadata_filter["collectionId"] = str(options.collection_id)
                return metadata_filter

            member_ids = await self.membership.document_ids(str(options.collection_id))
            if options.document_id:
                member_ids = [doc_id for doc_id in member_ids if doc_id == str(options.document_id)]
            if not member_ids:
                return None
            metadata_filter[DOCUMENT_ID_KEY] = member_ids

        return metadata_filter

    async def _keyword_passages(
        self,
        query: str,
        query_vector: List[float],
        limit: int,
        metadata_filter: MetadataFilter,
        exclude_filter: Optional[MetadataFilter],
        min_similarity: float,
    ) -> List[RetrievedPassage]:
        """Keyword matches in the store's relevance order, each carrying its cosine similarity."""
        matches = await self._with_timeout(
            self.vector_store.keyword_search(query, limit, metadata_filter or None, exclude_filter),
            "Keyword search",
        )
        if not matches:
            return []

        records = await self._with_timeout(self.vector_store.get([match.id for match in matches]), "Vector fetch")
        vectors = {record.id: record.vector for record in records}
        present = [match for match in matches if match.id in vectors]
        similarities = cosine_similarities(query_vector, [vectors[match.id] for match in present])
        return [
            self._direct_passage(match, float(similarity))
            for match, similarity in zip(present, similarities)
            if similarity >= min_similarity
        ]

    async def _expand(
        self,
        query_vector: List[float],
        primary: Sequence[RetrievedPassage],
        seen: Set[str],
        metadata_filter: MetadataFilter,
        exclude_filter: Optional[MetadataFilter],
        min_similarity: float,
        options: RetrievalOptions,
    ) -> List[RetrievedPassage]:
        """Graph neighbours of the top primary matches, scored against the query.

        Each seed contributes its chunk node and its document node, so edges
        between chunks and edges between documents are both followed.
        """
        if self.graph_store is None:
            return []
        seeds: Set[Tuple[str, NodeKind]] = set()
        for passage in primary[: self.config.graph_seed_count]:
            seeds.add((passage.chunk_id, NodeKind.CHUNK))
            if passage.document_id:
                seeds.add((passage.document_id, NodeKind.DOCUMENT))

        try:
            edges = await self._with_timeout(
                self.graph_store.neighbors(
                    sorted({node_id for node_id, _ in seeds}), options.direction, options.relation_types
                ),
                "Graph lookup",
            )
        except (ProviderUnavailable, SQLAlchemyError) as e:
            logger.warning(f"Graph expansion skipped, edges unavailable: {e}")
            return []

        best_edge: Dict[str, RelationshipEdge] = {}
        chunk_ids: Dict[Tuple[str, NodeKind], List[str]] = {}
        for edge in edges:
            for node in self._far_ends(edge, seeds, options.direction):
                if node not in chunk_ids:
                    chunk_ids[node] = await self._chunk_ids_for(*node)
                for candidate_id in chunk_ids[node]:
                    if candidate_id in seen:
                        continue
                    current = best_edge.get(candidate_id)
                    if current is None or edge.weight > current.weight:
                        best_edge[candidate_id] = edge

        if not best_edge:
            return []

        records = [
            record
            for record in await self._with_timeout(self.vector_store.get(list(best_edge)), "Vector fetch")
            if matches_metadata_filter(record.metadata, metadata_filter)
            and not is_excluded(record.metadata, exclude_filter)
        ]
        similarities = cosine_similarities(query_vector, [record.vector for record in records])

        expanded = []
        for record, similarity in zip(records, similarities):
            edge = best_edge[record.id]
            score = self._graph_score(float(similarity), edge.weight)
            if score < min_similarity:
                continue
            expanded.append(self._graph_passage(record, score, float(similarity), edge))
        return expanded

    @staticmethod
    def _far_ends(
        edge: RelationshipEdge, seeds: Set[Tuple[str, NodeKind]], direction: EdgeDirection
    ) -> List[Tuple[str, NodeKind]]:
        """Endpoints reached from a seed along ``edge`` in the allowed direction."""
        ends = []
        if direction != EdgeDirection.INBOUND and (edge.source_id, edge.source_kind) in seeds:
            ends.append((edge.target_id, edge.target_kind))
        if direction != EdgeDirection.OUTBOUND and (edge.target_id, edge.target_kind) in seeds:
            ends.append((edge.source_id, edge.source_kind))
        return ends

    async def _chunk_ids_for(self, node_id: str, kind: NodeKind) -> List[str]:
        if kind == NodeKind.DOCUMENT:
            records = await self._with_timeout(self.vector_store.list_by_document(node_id), "Vector fetch")
            return [record.id for record in records]
        return [node_id]

    async def _with_timeout(self, awaitable: Awaitable[T], action: str) -> T:
        timeout = self.config.vector_store_timeout_seconds
        try:
            return await asyncio.wait_for(awaitable, timeout=timeout)
        except asyncio.TimeoutError:
            raise ProviderUnavailable(f"{action} timed out after {timeout}s") from None

    def _graph_score(self, similarity: float, weight: float) -> float:
        """Similarity discounted by how weak the edge is. Never above ``similarity``."""
        weight = min(max(weight, 0.0), 1.0)
        return similarity - self.config.graph_score_penalty * (1.0 - weight)

    @staticmethod
    def _direct_passage(match: VectorMatch, similarity: float) -> RetrievedPassage:
        return RetrievedPassage(
            chunk_id=match.id,
            document_id=str(match.metadata.get(DOCUMENT_ID_KEY, "")),
            content=match.content,
            score=similarity,
            similarity=similarity,
            metadata=match.metadata,
        )

    @staticmethod
    def _graph_passage(
        record: VectorRecord, score: float, similarity: float, edge: RelationshipEdge
    ) -> RetrievedPassage:
        return RetrievedPassage(
            chunk_id=record.id,
            document_id=str(record.metadata.get(DOCUMENT_ID_KEY, "")),
            content=record.content,
            score=score,
            similarity=similarity,
            metadata=dict(record.metadata),
            via_graph=True,
            relation_type=edge.relation_type,
        )
