"""Test configuration and fixtures for the knowledge base."""

import os

# Settings are read when the package is imported; keep vectors small and stores in memory.
os.environ.setdefault("ENVIRONMENT", "local")
os.environ.setdefault("EMBEDDING_DIMENSION", "8")
os.environ.setdefault("VECTOR_STORE_BACKEND", "memory")
os.environ.setdefault("CREATE_TABLES_ON_STARTUP", "false")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

# mypy: disable-error-code="import-untyped"
from testcontainers.core.docker_client import DockerClient
from testcontainers.postgres import PostgresContainer

from fakes import DIMENSION, KeywordEmbeddingProvider, RecordingChatModel
from knowledge_base.infrastructure.config import PipelineConfig
from knowledge_base.infrastructure.config.settings import VectorStoreBackend
from knowledge_base.infrastructure.database.session import Base, async_session, create_tables
from knowledge_base.infrastructure.embedding import EmbeddingClient
from knowledge_base.infrastructure.graph import InMemoryGraphStore
from knowledge_base.infrastructure.logging import configure_testing_logging
from knowledge_base.infrastructure.vectorstore import InMemoryVectorStore, Namespace
from knowledge_base.interfaces.api import dependencies
from knowledge_base.interfaces.main import app
from knowledge_base.modules.ingestion import IngestionPipeline, InMemoryStatusRecorder
from knowledge_base.modules.retrieval import Retriever

configure_testing_logging()

PGVECTOR_IMAGE = "pgvector/pgvector:pg16"


@pytest.fixture
def pipeline_config() -> PipelineConfig:
    """Small windows and no backoff delays so tests stay fast."""
    return PipelineConfig(
        chunk_size=40,
        chunk_overlap=10,
        embedding_dimension=DIMENSION,
        embedding_batch_size=4,
        embedding_max_concurrency=2,
        embedding_timeout_seconds=1.0,
        embedding_max_retries=2,
        embedding_initial_backoff_seconds=0.0,
        embedding_max_backoff_seconds=0.0,
        max_results=5,
        min_similarity=0.2,
        vector_store_backend=VectorStoreBackend.MEMORY,
        vector_store_timeout_seconds=1.0,
    )


@pytest.fixture
def embedding_provider() -> KeywordEmbeddingProvider:
    return KeywordEmbeddingProvider()


@pytest.fixture
def embedding_client(embedding_provider, pipeline_config) -> EmbeddingClient:
    return EmbeddingClient(provider=embedding_provider, config=pipeline_config)


@pytest.fixture
def vector_store() -> InMemoryVectorStore:
    return InMemoryVectorStore(dimension=DIMENSION, namespace=Namespace.CHUNKS)


@pytest.fixture
def graph_store() -> InMemoryGraphStore:
    return InMemoryGraphStore()


@pytest.fixture
def status_recorder() -> InMemoryStatusRecorder:
    return InMemoryStatusRecorder()


@pytest.fixture
def pipeline(pipeline_config, embedding_client, vector_store, status_recorder, graph_store) -> IngestionPipeline:
    return IngestionPipeline(
        config=pipeline_config,
        embedding_client=embedding_client,
        vector_store=vector_store,
        status_recorder=status_recorder,
        graph_store=graph_store,
    )


@pytest.fixture
def retriever(pipeline_config, embedding_client, vector_store, graph_store) -> Retriever:
    return Retriever(
        config=pipeline_config,
        embedding_client=embedding_client,
        vector_store=vector_store,
        graph_store=graph_store,
    )


@pytest.fixture
def chat_model() -> RecordingChatModel:
    return RecordingChatModel()


def is_docker_running() -> bool:
    """Check if Docker daemon is running."""
    try:
        DockerClient()
        return True
    except Exception:
        return False


@pytest.fixture(scope="session")
def pg_container():
    """PostgreSQL with the pgvector extension available."""
    if not is_docker_running():
        pytest.skip("Docker is required, but not running")

    with PostgresContainer(PGVECTOR_IMAGE, driver="asyncpg") as pg:
        yield pg


@pytest_asyncio.fixture
async def test_db_engine(pg_container):
    """Engine with a fresh schema for each test."""
    engine = create_async_engine(pg_container.get_connection_url(), echo=False)
    await create_tables(bind=engine)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(test_db_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(test_db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(session_factory, pipeline_config, embedding_client, vector_store, graph_store, chat_model):
    """API client over the app, with the database and providers swapped for test doubles.

    Chunks live in memory; documents, collections and statuses in the test database.
    """
    from knowledge_base.modules.chat.service import ChatService
    from knowledge_base.modules.collection.services import SqlCollectionMembership
    from knowledge_base.modules.document.services import DocumentService, SqlDocumentStatusRecorder
    from knowledge_base.modules.knowledge_index.service import KnowledgeIndexService

    pipeline = IngestionPipeline(
        config=pipeline_config,
        embedding_client=embedding_client,
        vector_store=vector_store,
        status_recorder=SqlDocumentStatusRecorder(session_factory),
        graph_store=graph_store,
    )
    retriever = Retriever(
        config=pipeline_config,
        embedding_client=embedding_client,
        vector_store=vector_store,
        graph_store=graph_store,
        membership=SqlCollectionMembership(session_factory),
    )
    knowledge_index_store = InMemoryVectorStore(dimension=DIMENSION, namespace=Namespace.KNOWLEDGE_INDEX)

    async def override_get_db():
        """Each request gets its own isolated database session."""
        async with session_factory() as session:
            yield session

    app.dependency_overrides = {
        async_session: override_get_db,
        dependencies.get_retriever: lambda: retriever,
        dependencies.get_document_service: lambda: DocumentService(pipeline=pipeline, vector_store=vector_store),
        dependencies.get_chat_service: lambda: ChatService(retriever=retriever, chat_model=chat_model),
        dependencies.get_knowledge_index_service: lambda: KnowledgeIndexService(
            embedding_client=embedding_client, vector_store=knowledge_index_store
        ),
    }

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides = {}
