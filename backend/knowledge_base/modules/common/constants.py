"""Common constants used across the application."""

from typing import Callable, Dict, Type

from fastapi import HTTPException, status

from .exceptions import (
    DimensionMismatchError,
    DomainError,
    ProcessingError,
    ProviderUnavailable,
    ResourceExistsError,
    ResourceNotFoundError,
    ValidationError,
)

EXCEPTION_MAPPING: Dict[Type[DomainError], Callable[[str], HTTPException]] = {
    ResourceNotFoundError: lambda message: HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=message),
    ResourceExistsError: lambda message: HTTPException(status_code=status.HTTP_409_CONFLICT, detail=message),
    ValidationError: lambda message: HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=message),
    DimensionMismatchError: lambda message: HTTPException(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=message
    ),
    ProviderUnavailable: lambda message: HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=message),
    ProcessingError: lambda message: HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=message),
}

DEFAULT_PAGE_LIMIT = 10
MAX_PAGE_LIMIT = 100
