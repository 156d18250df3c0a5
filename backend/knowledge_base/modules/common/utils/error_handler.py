"""Utility functions for mapping domain exceptions to HTTP exceptions."""

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse

from ....infrastructure.logging import get_logger
from ..constants import EXCEPTION_MAPPING
from ..exceptions import DomainError

logger = get_logger(__name__)


def map_exception(error: DomainError) -> HTTPException:
    """Map a domain exception to a corresponding HTTP exception.

    The most specific mapped class wins, so a subclass can override the status
    its base maps to.
    """
    for exception_class in type(error).__mro__:
        mapper = EXCEPTION_MAPPING.get(exception_class)
        if mapper is not None:
            return mapper(str(error))

    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"An unexpected error occurred: {str(error)}"
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register global exception handlers for domain exceptions."""

    @app.exception_handler(DomainError)
    async def domain_exception_handler(request: Request, exc: DomainError) -> JSONResponse:
        http_exception = map_exception(exc)
        if http_exception.status_code >= 500:
            logger.error(
                f"{type(exc).__name__} on {request.method} {request.url.path}: {exc}",
                extra={"status_code": http_exception.status_code},
            )
        return JSONResponse(
            status_code=http_exception.status_code,
            content={"detail": http_exception.detail},
        )

