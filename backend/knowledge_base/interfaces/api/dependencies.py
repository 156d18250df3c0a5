"""FastAPI dependencies for use in API endpoints.

Clients and stores are built once per process from the validated pipeline
configuration and shared by every request. Tests replace them through
``app.dependency_overrides``.
"""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends, FastAPI
from sqlalchemy.ext.asyncio import AsyncSession

from ...infrastructure.config import PipelineConfig, settings
from ...infrastructure.database import async_session, local_session
from ...infrastructure.embedding import EmbeddingClient, create_embedding_client
from ...infrastructure.graph import GraphStore, create_graph_store
from ...infrastructure.llm import ChatModel, OpenAIChatModel
from ...infrastructure.logging import get_logger
from ...infrastructure.vectorstore import Namespace, QdrantVectorStore, VectorStore, create_vector_store
from ...modules.chat.service import ChatService
from ...modules.collection.services import CollectionService, SqlCollectionMembership
from ...modules.document.services import DocumentService, SqlDocumentStatusRecorder
from ...modules.ingestion import IngestionPipeline
from ...modules.knowledge_index.service import KnowledgeIndexService
from ...modules.retrieval import Retriever

logger = get_logger(__name__)

DbSession = Annotated[AsyncSession, Depends(async_session)]


@lru_cache
def get_pipeline_config() -> PipelineConfig:
    return PipelineConfig.from_settings(settings)


@lru_cache
def get_embedding_client() -> EmbeddingClient:
    return create_embedding_client(get_pipeline_config())


@lru_cache
def get_vector_store() -> VectorStore:
    """Store for document chunks."""
    return create_vector_store(get_pipeline_config(), Namespace.CHUNKS, session_factory=local_session)


@lru_cache
def get_knowledge_index_store() -> VectorStore:
    return create_vector_store(get_pipeline_config(), Namespace.KNOWLEDGE_INDEX, session_factory=local_session)


@lru_cache
def get_graph_store() -> GraphStore:
    return create_graph_store(get_pipeline_config(), session_factory=local_session)


@lru_cache
def get_chat_model() -> ChatModel:
    return OpenAIChatModel(
        model=settings.CHAT_MODEL_NAME,
        base_url=settings.CHAT_MODEL_BASE_URL,
        api_key=settings.CHAT_MODEL_API_KEY,
        timeout=settings.CHAT_MODEL_TIMEOUT_SECONDS,
    )


@lru_cache
def get_ingestion_pipeline() -> IngestionPipeline:
    return IngestionPipeline(
        config=get_pipeline_config(),
        embedding_client=get_embedding_client(),
        vector_store=get_vector_store(),
        status_recorder=SqlDocumentStatusRecorder(local_session),
        graph_store=get_graph_store(),
    )


@lru_cache
def get_retriever() -> Retriever:
    return Retriever(
        config=get_pipeline_config(),
        embedding_client=get_embedding_client(),
        vector_store=get_vector_store(),
        graph_store=get_graph_store(),
        membership=SqlCollectionMembership(local_session),
    )


def get_document_service() -> DocumentService:
    """Dependency for providing a DocumentService instance."""
    return DocumentService(
        pipeline=get_ingestion_pipeline(),
        vector_store=get_vector_store(),
        ingestion_mode=settings.INGESTION_MODE,
    )


def get_collection_service() -> CollectionService:
    """Dependency for providing a CollectionService instance."""
    return CollectionService()


def get_chat_service() -> ChatService:
    """Dependency for providing a ChatService instance."""
    return ChatService(
        retriever=get_retriever(),
        chat_model=get_chat_model(),
        context_chunks=settings.CHAT_CONTEXT_CHUNKS,
        max_context_chars=settings.CHAT_MAX_CONTEXT_CHARS,
    )


def get_knowledge_index_service() -> KnowledgeIndexService:
    """Dependency for providing a KnowledgeIndexService instance."""
    return KnowledgeIndexService(
        embedding_client=get_embedding_client(),
        vector_store=get_knowledge_index_store(),
        min_similarity=get_pipeline_config().min_similarity,
    )


async def open_resources(app: FastAPI) -> None:
    """Validate configuration and prepare remote collections before serving."""
    config = get_pipeline_config()
    logger.info(
        f"Using {config.vector_store_backend.value} vector store and "
        f"{config.embedding_provider.value} embeddings ({config.embedding_dimension} dimensions)"
    )
    for store in (get_vector_store(), get_knowledge_index_store()):
        if isinstance(store, QdrantVectorStore):
            await store.boot()


async def close_resources(app: FastAPI) -> None:
    """Close shared clients and forget them, so a restarted app builds fresh ones."""
    cached = (get_embedding_client, get_vector_store, get_knowledge_index_store, get_chat_model)
    for factory in cached:
        if factory.cache_info().currsize:
            await factory().aclose()

    for factory in (
        get_pipeline_config,
        get_embedding_client,
        get_vector_store,
        get_knowledge_index_store,
        get_graph_store,
        get_chat_model,
        get_ingestion_pipeline,
        get_retriever,
    ):
        factory.cache_clear()
