"""Tests for RFC 7807 error handling."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from apps.api.core.errors import (
    AuthenticationError,
    BadRequestError,
    PayloadTooLargeError,
    ServiceUnavailableError,
    ValidationError,
    app_error_for_import,
    register_error_handlers,
)
from packages.statement_import.errors import (
    ColumnNotFoundError,
    FileFormatError,
    PersistenceError,
    RowDateError,
    UniqueViolation,
)


@pytest.fixture
def error_app():
    """Create a test app with error handlers registered."""
    app = FastAPI()
    register_error_handlers(app)

    @app.get("/test/validation")
    async def raise_validation():
        raise ValidationError("Invalid amount")

    @app.get("/test/auth")
    async def raise_auth():
        raise AuthenticationError()

    @app.get("/test/bad-request")
    async def raise_bad_request():
        raise BadRequestError("Unsupported file type")

    @app.get("/test/too-large")
    async def raise_too_large():
        raise PayloadTooLargeError()

    @app.get("/test/file-format")
    async def raise_file_format():
        raise FileFormatError("File is empty")

    @app.get("/test/columns")
    async def raise_columns():
        raise ColumnNotFoundError(["date"])

    @app.get("/test/ledger")
    async def raise_ledger():
        raise PersistenceError("Ledger request failed")

    @app.get("/test/unhandled")
    async def raise_unhandled():
        raise RuntimeError("Unexpected crash")

    return app


@pytest.fixture
def client(error_app):
    return TestClient(error_app, raise_server_exceptions=False)


class TestRFC7807ErrorFormat:
    """All errors should return RFC 7807 Problem Details format."""

    def test_validation_error_returns_rfc7807(self, client):
        response = client.get("/test/validation")
        assert response.status_code == 422
        body = response.json()
        assert body["type"] == "about:blank"
        assert body["status"] == 422
        assert body["instance"] == "/test/validation"
        assert body["title"] == "Unprocessable Entity"
        assert body["detail"] == "Invalid amount"

    def test_auth_error_returns_rfc7807(self, client):
        response = client.get("/test/auth")
        assert response.status_code == 401
        body = response.json()
        assert body["title"] == "Unauthorized"

    def test_bad_request_returns_rfc7807(self, client):
        response = client.get("/test/bad-request")
        assert response.status_code == 400
        assert response.json()["detail"] == "Unsupported file type"

    def test_payload_too_large_returns_rfc7807(self, client):
        response = client.get("/test/too-large")
        assert response.status_code == 413
        assert response.json()["title"] == "Payload Too Large"

    def test_unhandled_error_returns_rfc7807(self, client):
        response = client.get("/test/unhandled")
        assert response.status_code == 500
        body = response.json()
        assert body["title"] == "Internal Server Error"
        assert body["detail"] == "An unexpected error occurred"


class TestStatementImportErrors:
    """Pipeline errors map onto HTTP statuses."""

    def test_file_format_error_is_422(self, client):
        response = client.get("/test/file-format")
        assert response.status_code == 422
        assert response.json()["detail"] == "File is empty"

    def test_missing_column_is_422(self, client):
        response = client.get("/test/columns")
        assert response.status_code == 422
        assert response.json()["detail"].startswith("Could not find required column(s): date")

    def test_persistence_error_is_503(self, client):
        response = client.get("/test/ledger")
        assert response.status_code == 503
        assert response.json()["title"] == "Service Unavailable"


class TestImportErrorTranslation:
    """Each pipeline error becomes exactly one gateway error class."""

    @pytest.mark.parametrize(
        "exc, expected",
        [
            (FileFormatError("File is empty"), ValidationError),
            (ColumnNotFoundError(["date"]), ValidationError),
            (PersistenceError("timed out"), ServiceUnavailableError),
            (UniqueViolation("duplicate key"), ServiceUnavailableError),
            (RowDateError("x"), BadRequestError),
        ],
    )
    def test_maps_to_app_error(self, exc, expected):
        app_error = app_error_for_import(exc)
        assert type(app_error) is expected
        assert app_error.detail == str(exc)
