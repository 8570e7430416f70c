"""Tests for translating service errors into HTTP responses."""
import pytest
from fastapi import HTTPException

from readowl.routers.deps import http_error, service_errors
from readowl.services.errors import NotFoundError, PermissionDeniedError, ValidationFailedError


@pytest.mark.parametrize(
    "error, status_code",
    [
        (NotFoundError("Book not found"), 404),
        (PermissionDeniedError("Forbidden"), 403),
        (ValidationFailedError("Invalid volume"), 400),
    ],
)
def test_http_error_status(error, status_code):
    exc = http_error(error)
    assert exc.status_code == status_code
    assert exc.detail == error.detail


def test_service_errors_reraises_as_http_exception():
    with pytest.raises(HTTPException) as info:
        with service_errors():
            raise NotFoundError("Chapter not found")
    assert info.value.status_code == 404
    assert info.value.detail == "Chapter not found"
