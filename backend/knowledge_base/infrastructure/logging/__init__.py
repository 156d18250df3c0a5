"""Centralized logging for the knowledge base.

Every module obtains its logger here instead of calling logging.getLogger
directly, so handlers, formats and levels follow the environment configured in
settings.

Usage:
    ```python
    from knowledge_base.infrastructure.logging import get_logger

    logger = get_logger(__name__)
    logger.info("Document ingested", extra={"document_id": str(document_id), "chunks": 12})

    # Bind context once for a component
    logger = get_logger(__name__, component="retriever")
    ```
"""

from .config import (
    configure_testing_logging,
    generate_correlation_id,
    get_correlation_id,
    reset_correlation_id,
    set_correlation_id,
    setup_logging_configuration,
)
from .factory import configure_logging, get_logger

__all__ = [
    "configure_logging",
    "configure_testing_logging",
    "generate_correlation_id",
    "get_correlation_id",
    "get_logger",
    "reset_correlation_id",
    "set_correlation_id",
    "setup_logging_configuration",
]
