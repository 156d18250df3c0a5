"""Embedding index over arbitrary user entities, kept apart from document chunks."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Dict, List, Optional

from ...infrastructure.embedding import EmbeddingClient
from ...infrastructure.logging import get_logger
from ...infrastructure.vectorstore import DOCUMENT_ID_KEY, Namespace, VectorRecord, VectorStore
from ..common.exceptions import ConfigurationError, InvalidInput

logger = get_logger(__name__)


def entry_id(user_id: str, entity_type: str, entity_id: str) -> str:
    """One entry per (user, entity type, entity id)."""
    return f"{user_id}:{entity_type}:{entity_id}"


@dataclass(frozen=True)
class KnowledgeIndexMatch:
    entity_type: str
    entity_id: str
    text: str
    score: float
    metadata: Dict[str, Any] = field(default_factory=dict)


class KnowledgeIndexService:
    """Upserts and searches entries in the ``knowledge_index`` namespace.

    Entries are keyed by user, entity type and entity id, so indexing the same
    entity again replaces its text and vector. ``documentId`` holds the entity
    id, which lets ``remove_entity`` clear every entry of an entity.
    """

    def __init__(self, embedding_client: EmbeddingClient, vector_store: VectorStore, min_similarity: float = 0.0):
        if vector_store.namespace != Namespace.KNOWLEDGE_INDEX:
            raise ConfigurationError(
                f"Knowledge index needs the '{Namespace.KNOWLEDGE_INDEX.value}' namespace, "
                f"got '{vector_store.namespace.value}'"
            )
        self.embedding_client = embedding_client
        self.vector_store = vector_store
        self.min_similarity = min_similarity

    async def upsert_entry(
        self,
        user_id: str,
        entity_type: str,
        entity_id: str,
        text: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> str:
        """Index or re-index an entity's text.

        Returns:
            The entry id

        Raises:
            InvalidInput: If the text is blank
        """
        if not text or not text.strip():
            raise InvalidInput("Knowledge index text must not be blank")

        vector = await self.embedding_client.embed_query(text)
        record_id = entry_id(user_id, entity_type, entity_id)
        await self.vector_store.upsert(
            [
                VectorRecord(
                    id=record_id,
                    vector=vector,
                    content=text,
                    metadata={
                        **(metadata or {}),
                        DOCUMENT_ID_KEY: str(entity_id),
                        "userId": user_id,
                        "entityType": entity_type,
                        "entityId": str(entity_id),
                        "updatedAt": datetime.now(UTC).isoformat(),
                    },
                )
            ]
        )
        logger.debug(f"Indexed {entity_type} {entity_id} for user {user_id}")
        return record_id

    async def search(
        self,
        user_id: str,
        query: str,
        entity_type: Optional[str] = None,
        k: int = 10,
    ) -> List[KnowledgeIndexMatch]:
        """Entries of one user most similar to the query, best first.

        Raises:
            InvalidInput: If the query is blank or ``k`` is not positive
        """
        if not isinstance(query, str) or not query.strip():
            raise InvalidInput("Query must be a non-empty string")
        if k <= 0:
            raise InvalidInput(f"k must be positive, got {k}")

        metadata_filter: Dict[str, Any] = {"userId": user_id}
        if entity_type:
            metadata_filter["entityType"] = entity_type

        vector = await self.embedding_client.embed_query(query)
        matches = await self.vector_store.query(vector, k, metadata_filter)
        return [
            KnowledgeIndexMatch(
                entity_type=str(match.metadata.get("entityType", "")),
                entity_id=str(match.metadata.get("entityId", "")),
                text=match.content,
                score=match.score,
                metadata=match.metadata,
            )
            for match in matches
            if match.score >= self.min_similarity
        ]

    async def remove_entity(self, entity_id: str) -> int:
        return await self.vector_store.delete_by_document(str(entity_id))
