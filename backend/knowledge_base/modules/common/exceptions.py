"""Domain exception classes for business logic errors."""

from typing import Optional


class DomainError(Exception):
    """Base class for all domain-specific errors."""

    pass


class ResourceNotFoundError(DomainError):
    """Raised when a requested resource cannot be found."""

    pass


class ResourceExistsError(DomainError):
    """Raised when attempting to create a resource that already exists."""

    pass


class ValidationError(DomainError):
    """Raised when data validation fails."""

    pass


class ConfigurationError(ValidationError):
    """Raised when chunking, embedding or store configuration is unusable.

    Fatal: retrying with the same configuration fails the same way.
    """

    pass


class InvalidInput(ValidationError):
    """Raised when input to the embedding provider or retriever is malformed."""

    pass


class ProviderUnavailable(DomainError):
    """Raised when the embedding provider or vector store cannot be reached.

    Covers network errors, 5xx responses and timeouts. Callers retry with
    backoff before surfacing it.
    """

    pass


class DimensionMismatchError(DomainError):
    """Raised when a vector's length differs from the configured dimension."""

    def __init__(self, expected: int, actual: int, record_id: Optional[str] = None):
        self.expected = expected
        self.actual = actual
        self.record_id = record_id
        where = f" for record {record_id}" if record_id else ""
        super().__init__(f"Vector dimension {actual}{where} does not match configured dimension {expected}")


class DocumentNotFoundError(ResourceNotFoundError):
    """Raised when a document (uploaded file) cannot be found."""

    def __init__(self, document_id: object):
        self.document_id = document_id
        super().__init__(f"Document {document_id} not found")


class CollectionNotFoundError(ResourceNotFoundError):
    """Raised when a collection cannot be found."""

    def __init__(self, collection_id: object):
        self.collection_id = collection_id
        super().__init__(f"Collection {collection_id} not found")


class ProcessingError(DomainError):
    """Raised when ingestion fails. Rollback has already run when this surfaces."""

    def __init__(self, document_id: object, reason: str):
        self.document_id = document_id
        self.reason = reason
        super().__init__(f"Processing of document {document_id} failed: {reason}")
