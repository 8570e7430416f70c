"""
Shared router helpers: translating service errors into HTTP responses and
loading the book named in the path.
"""
from contextlib import contextmanager
from uuid import UUID

from fastapi import Depends, HTTPException, status
from sqlalchemy.orm import Session

from readowl.database import get_db
from readowl.models import Book
from readowl.services.book_service import get_book_by_slug
from readowl.services.errors import (
    NotFoundError,
    PermissionDeniedError,
    ReadowlError,
    ValidationFailedError,
)

_STATUS_BY_ERROR = (
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (PermissionDeniedError, status.HTTP_403_FORBIDDEN),
    (ValidationFailedError, status.HTTP_400_BAD_REQUEST),
)


def http_error(exc: ReadowlError) -> HTTPException:
    for error_cls, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_cls):
            return HTTPException(status_code=status_code, detail=exc.detail)
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.detail)


@contextmanager
def service_errors():
    """Re-raise service-layer errors as HTTPException."""
    try:
        yield
    except ReadowlError as e:
        raise http_error(e) from e


def parse_uuid(value: str, what: str) -> UUID:
    """Path ids that aren't UUIDs can't name anything, so they are 404s."""
    try:
        return UUID(value)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{what} not found")


def get_book(slug: str, db: Session = Depends(get_db)) -> Book:
    """Dependency: the book identified by the ``slug`` path parameter."""
    with service_errors():
        return get_book_by_slug(db, slug)
