"""
Error taxonomy for the catalog and recommendation services.

Services raise these; routers translate them into HTTP responses.
"""
from fastapi import HTTPException


class CatalogError(Exception):
    """Base class for errors surfaced by the catalog services."""
    pass


class InvalidRequest(CatalogError):
    """Malformed or missing input. Raised before any store access."""
    pass


class NotFound(CatalogError):
    """A referenced book, recommender or contribution does not exist."""
    pass


class StoreUnavailable(CatalogError):
    """The backing store could not be read. The whole request is aborted."""
    pass


class EmbeddingUnavailable(CatalogError):
    """The embedding upstream failed or returned an unusable vector."""
    pass


_STATUS_CODES = (
    (InvalidRequest, 400),
    (NotFound, 404),
    (EmbeddingUnavailable, 502),
    (StoreUnavailable, 503),
)


def status_code_for(exc: CatalogError) -> int:
    for error_type, code in _STATUS_CODES:
        if isinstance(exc, error_type):
            return code
    return 500


def to_http_exception(exc: CatalogError) -> HTTPException:
    return HTTPException(status_code=status_code_for(exc), detail=str(exc) or type(exc).__name__)
