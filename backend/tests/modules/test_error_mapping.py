import pytest

from knowledge_base.modules.common.exceptions import (
    CollectionNotFoundError,
    ConfigurationError,
    DimensionMismatchError,
    DocumentNotFoundError,
    DomainError,
    InvalidInput,
    ProcessingError,
    ProviderUnavailable,
    ResourceExistsError,
)
from knowledge_base.modules.common.utils.error_handler import map_exception


@pytest.mark.parametrize(
    "error, status_code",
    [
        (DocumentNotFoundError("doc-1"), 404),
        (CollectionNotFoundError("col-1"), 404),
        (ResourceExistsError("exists"), 409),
        (InvalidInput("blank"), 422),
        (ConfigurationError("bad window"), 422),
        (DimensionMismatchError(expected=8, actual=3), 422),
        (ProviderUnavailable("down"), 503),
        (ProcessingError("doc-1", "down"), 500),
        (DomainError("unknown"), 500),
    ],
)
def test_status_codes(error, status_code):
    assert map_exception(error).status_code == status_code


def test_message_is_kept():
    assert "doc-1" in map_exception(DocumentNotFoundError("doc-1")).detail
