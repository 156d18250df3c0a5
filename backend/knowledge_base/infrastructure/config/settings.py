import logging
import os
from enum import Enum
from typing import List

from pydantic_settings import BaseSettings
from starlette.config import Config

logger = logging.getLogger(__name__)

current_file_dir = os.path.dirname(os.path.realpath(__file__))
project_root = os.path.abspath(os.path.join(current_file_dir, "..", "..", "..", ".."))

env_paths = [
    "/code/.env",
    os.path.join(project_root, ".env"),
    "/.env",
]

env_path = next((path for path in env_paths if os.path.isfile(path)), env_paths[0])
logger.info(f"Using environment file at: {env_path}")

config = Config(env_path)


class EnvironmentOption(str, Enum):
    """Environment options for the application."""

    PRODUCTION = "production"
    STAGING = "staging"
    DEVELOPMENT = "development"
    LOCAL = "local"


class EmbeddingProviderOption(str, Enum):
    """Embedding providers the client can talk to."""

    SENTENCE_TRANSFORMERS = "sentence_transformers"
    OPENAI = "openai"


class VectorStoreBackend(str, Enum):
    """Vector store variants selectable at construction time."""

    MEMORY = "memory"
    PGVECTOR = "pgvector"
    QDRANT = "qdrant"


class IngestionMode(str, Enum):
    """Whether uploads wait for ingestion or hand it to a background task."""

    SYNC = "sync"
    BACKGROUND = "background"


class EnvironmentSettings(BaseSettings):
    """Environment-related settings."""

    ENVIRONMENT: EnvironmentOption = config("ENVIRONMENT", default=EnvironmentOption.DEVELOPMENT, cast=EnvironmentOption)


class DatabaseSettings(BaseSettings):
    """Database-related settings."""

    POSTGRES_USER: str = config("POSTGRES_USER", default="postgres")
    POSTGRES_PASSWORD: str = config("POSTGRES_PASSWORD", default="postgres")
    POSTGRES_SERVER: str = config("POSTGRES_SERVER", default="localhost")
    POSTGRES_PORT: int = config("POSTGRES_PORT", default=5432, cast=int)
    POSTGRES_DB: str = config("POSTGRES_DB", default="postgres")
    POSTGRES_ASYNC_PREFIX: str = config("POSTGRES_ASYNC_PREFIX", default="postgresql+asyncpg://")
    CREATE_TABLES_ON_STARTUP: bool = config("CREATE_TABLES_ON_STARTUP", default=True, cast=bool)

    POSTGRES_POOL_SIZE: int = config("POSTGRES_POOL_SIZE", default=20, cast=int)
    POSTGRES_MAX_OVERFLOW: int = config("POSTGRES_MAX_OVERFLOW", default=0, cast=int)

    @property
    def DATABASE_URL(self) -> str:
        """Get the full database URL."""
        return (
            f"{self.POSTGRES_ASYNC_PREFIX}{self.POSTGRES_USER}:"
            f"{self.POSTGRES_PASSWORD}@{self.POSTGRES_SERVER}:"
            f"{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )


class CORSSettings(BaseSettings):
    """CORS-related settings."""

    CORS_ENABLED: bool = config("CORS_ENABLED", default=True, cast=bool)
    CORS_ORIGINS: str = config("CORS_ORIGINS", default="*")
    CORS_ALLOW_CREDENTIALS: bool = config("CORS_ALLOW_CREDENTIALS", default=True, cast=bool)

    @property
    def CORS_ORIGINS_LIST(self) -> List[str]:
        """Get CORS origins as a list."""
        if not self.CORS_ORIGINS:
            return ["*"]
        return [x.strip() for x in self.CORS_ORIGINS.split(",") if x.strip()]


class CompressionSettings(BaseSettings):
    """Compression-related settings."""

    GZIP_ENABLED: bool = config("GZIP_ENABLED", default=True, cast=bool)
    GZIP_MINIMUM_SIZE: int = config("GZIP_MINIMUM_SIZE", default=1000, cast=int)


class APIDocSettings(BaseSettings):
    """API documentation settings."""

    ENABLE_DOCS_IN_PRODUCTION: bool = config("ENABLE_DOCS_IN_PRODUCTION", default=False, cast=bool)
    DOCS_URL: str = config("DOCS_URL", default="/docs")
    REDOC_URL: str = config("REDOC_URL", default="/redoc")
    OPENAPI_URL: str = config("OPENAPI_URL", default="/openapi.json")


class APISettings(BaseSettings):
    """API-related settings."""

    API_PREFIX: str = "/api"


class AppSettings(BaseSettings):
    """Application-related settings."""

    APP_NAME: str = "Knowledge Base API"
    APP_DESCRIPTION: str = "Document knowledge base with retrieval-augmented chat"
    DEBUG: bool = config("DEBUG", default=False, cast=bool)
    VERSION: str = "0.1.0"


class EmbeddingSettings(BaseSettings):
    """Embedding provider settings."""

    EMBEDDING_PROVIDER: EmbeddingProviderOption = config(
        "EMBEDDING_PROVIDER", default=EmbeddingProviderOption.SENTENCE_TRANSFORMERS, cast=EmbeddingProviderOption
    )
    EMBEDDING_MODEL: str = config("EMBEDDING_MODEL", default="all-mpnet-base-v2")
    EMBEDDING_DIMENSION: int = config("EMBEDDING_DIMENSION", default=768, cast=int)
    EMBEDDING_BATCH_SIZE: int = config("EMBEDDING_BATCH_SIZE", default=32, cast=int)
    EMBEDDING_MAX_CONCURRENCY: int = config("EMBEDDING_MAX_CONCURRENCY", default=4, cast=int)
    EMBEDDING_TIMEOUT_SECONDS: float = config("EMBEDDING_TIMEOUT_SECONDS", default=30.0, cast=float)
    EMBEDDING_MAX_RETRIES: int = config("EMBEDDING_MAX_RETRIES", default=3, cast=int)
    EMBEDDING_INITIAL_BACKOFF_SECONDS: float = config("EMBEDDING_INITIAL_BACKOFF_SECONDS", default=0.5, cast=float)
    EMBEDDING_MAX_BACKOFF_SECONDS: float = config("EMBEDDING_MAX_BACKOFF_SECONDS", default=8.0, cast=float)
    EMBEDDING_API_BASE_URL: str = config("EMBEDDING_API_BASE_URL", default="https://api.openai.com/v1")
    EMBEDDING_API_KEY: str = config("EMBEDDING_API_KEY", default="")


class ChunkingSettings(BaseSettings):
    """Default chunk window, in characters."""

    CHUNK_SIZE: int = config("CHUNK_SIZE", default=1000, cast=int)
    CHUNK_OVERLAP: int = config("CHUNK_OVERLAP", default=200, cast=int)


class RetrievalSettings(BaseSettings):
    """Retrieval ranking settings."""

    MAX_RESULTS: int = config("MAX_RESULTS", default=10, cast=int)
    MIN_SIMILARITY_THRESHOLD: float = config("MIN_SIMILARITY_THRESHOLD", default=0.2, cast=float)
    GRAPH_EXPANSION_FACTOR: int = config("GRAPH_EXPANSION_FACTOR", default=3, cast=int)
    GRAPH_SEED_COUNT: int = config("GRAPH_SEED_COUNT", default=3, cast=int)
    GRAPH_SCORE_PENALTY: float = config("GRAPH_SCORE_PENALTY", default=0.1, cast=float)
    RRF_K: int = config("RRF_K", default=60, cast=int)


class VectorStoreSettings(BaseSettings):
    """Vector store backend settings."""

    VECTOR_STORE_BACKEND: VectorStoreBackend = config(
        "VECTOR_STORE_BACKEND", default=VectorStoreBackend.PGVECTOR, cast=VectorStoreBackend
    )
    VECTOR_STORE_TIMEOUT_SECONDS: float = config("VECTOR_STORE_TIMEOUT_SECONDS", default=10.0, cast=float)
    QDRANT_URL: str = config("QDRANT_URL", default="http://localhost:6333")
    QDRANT_API_KEY: str = config("QDRANT_API_KEY", default="")
    QDRANT_COLLECTION: str = config("QDRANT_COLLECTION", default="knowledge_base")


class IngestionSettings(BaseSettings):
    """Ingestion hand-off settings."""

    INGESTION_MODE: IngestionMode = config("INGESTION_MODE", default=IngestionMode.SYNC, cast=IngestionMode)


class ChatSettings(BaseSettings):
    """Settings for the chat model that turns retrieved context into answers."""

    CHAT_MODEL_BASE_URL: str = config("CHAT_MODEL_BASE_URL", default="https://api.openai.com/v1")
    CHAT_MODEL_NAME: str = config("CHAT_MODEL_NAME", default="gpt-4o-mini")
    CHAT_MODEL_API_KEY: str = config("CHAT_MODEL_API_KEY", default="")
    CHAT_MODEL_TIMEOUT_SECONDS: float = config("CHAT_MODEL_TIMEOUT_SECONDS", default=60.0, cast=float)
    CHAT_CONTEXT_CHUNKS: int = config("CHAT_CONTEXT_CHUNKS", default=3, cast=int)
    CHAT_MAX_CONTEXT_CHARS: int = config("CHAT_MAX_CONTEXT_CHARS", default=1500, cast=int)


class LoggingSettings(BaseSettings):
    """Centralized logging configuration settings."""

    LOG_LEVEL: str = config("LOG_LEVEL", default="INFO")
    LOG_FORMAT: str = config("LOG_FORMAT", default="structured")  # "simple", "detailed", "structured", "json"

    LOG_CONSOLE_ENABLED: bool = config("LOG_CONSOLE_ENABLED", default=True, cast=bool)
    LOG_FILE_ENABLED: bool = config("LOG_FILE_ENABLED", default=False, cast=bool)
    LOG_FILE_PATH: str = config("LOG_FILE_PATH", default="logs/knowledge_base.log")
    LOG_FILE_MAX_SIZE: int = config("LOG_FILE_MAX_SIZE", default=10485760, cast=int)
    LOG_FILE_BACKUP_COUNT: int = config("LOG_FILE_BACKUP_COUNT", default=5, cast=int)

    LOG_CORRELATION_ID: bool = config("LOG_CORRELATION_ID", default=True, cast=bool)
    LOG_DEVELOPMENT_VERBOSE: bool = config("LOG_DEVELOPMENT_VERBOSE", default=True, cast=bool)
    LOG_PRODUCTION_OPTIMIZE: bool = config("LOG_PRODUCTION_OPTIMIZE", default=True, cast=bool)

    @property
    def LOG_LEVEL_INT(self) -> int:
        """Convert string log level to integer."""
        level_map = {
            "DEBUG": logging.DEBUG,
            "INFO": logging.INFO,
            "WARNING": logging.WARNING,
            "ERROR": logging.ERROR,
            "CRITICAL": logging.CRITICAL,
        }
        return level_map.get(self.LOG_LEVEL.upper(), logging.INFO)


class Settings(
    EnvironmentSettings,
    DatabaseSettings,
    CORSSettings,
    CompressionSettings,
    APIDocSettings,
    APISettings,
    AppSettings,
    EmbeddingSettings,
    ChunkingSettings,
    RetrievalSettings,
    VectorStoreSettings,
    IngestionSettings,
    ChatSettings,
    LoggingSettings,
):
    """Main settings class that combines all setting categories."""

    pass


settings = Settings()


def get_settings() -> Settings:
    """Get application settings.

    Returns:
        The application settings.
    """
    return settings
