"""Embedding infrastructure for text-to-vector conversion."""

from .base import EmbeddingProvider
from .local import SentenceTransformerProvider
from .remote import OpenAIEmbeddingProvider
from .service import EmbeddingClient, create_embedding_client, create_embedding_provider

__all__ = [
    "EmbeddingClient",
    "EmbeddingProvider",
    "OpenAIEmbeddingProvider",
    "SentenceTransformerProvider",
    "create_embedding_client",
    "create_embedding_provider",
]
