"""RFC 7807 Problem Details error handling.

Provides centralized exception handling middleware and custom exception
classes. All errors return a consistent JSON format:

    {
        "type": "about:blank",
        "title": "Unprocessable Entity",
        "status": 422,
        "detail": "Could not find required column(s): date",
        "instance": "/api/v1/bank-transactions/upload"
    }

Statement import errors raised by packages.statement_import are mapped here:
file-level parse failures become 422, ledger failures become 503.
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from packages.statement_import.errors import (
    ColumnNotFoundError,
    FileFormatError,
    PersistenceError,
    StatementImportError,
)


class AppError(Exception):
    """Base application error."""

    def __init__(self, detail: str, status_code: int = 500, error_type: str = "about:blank"):
        self.detail = detail
        self.status_code = status_code
        self.error_type = error_type
        super().__init__(detail)


class BadRequestError(AppError):
    """Malformed or unsupported request."""

    def __init__(self, detail: str = "Bad request"):
        super().__init__(detail=detail, status_code=400)


class ValidationError(AppError):
    """Request validation failed."""

    def __init__(self, detail: str = "Validation failed"):
        super().__init__(detail=detail, status_code=422)


class AuthenticationError(AppError):
    """Authentication failed."""

    def __init__(self, detail: str = "Authentication required"):
        super().__init__(detail=detail, status_code=401)


class PayloadTooLargeError(AppError):
    """Upload exceeds the configured size limit."""

    def __init__(self, detail: str = "File too large"):
        super().__init__(detail=detail, status_code=413)


class ServiceUnavailableError(AppError):
    """A backing service (the ledger) failed or timed out."""

    def __init__(self, detail: str = "Ledger unavailable"):
        super().__init__(detail=detail, status_code=503)


def _build_problem_detail(
    status: int,
    title: str,
    detail: str,
    error_type: str = "about:blank",
    instance: str = "",
    request_id: str = "",
) -> dict:
    """Build RFC 7807 Problem Details response body."""
    body = {
        "type": error_type,
        "title": title,
        "status": status,
        "detail": detail,
    }
    if instance:
        body["instance"] = instance
    if request_id:
        body["request_id"] = request_id
    return body


# HTTP status code to title mapping
_STATUS_TITLES = {
    400: "Bad Request",
    401: "Unauthorized",
    403: "Forbidden",
    404: "Not Found",
    409: "Conflict",
    413: "Payload Too Large",
    422: "Unprocessable Entity",
    429: "Too Many Requests",
    500: "Internal Server Error",
    502: "Bad Gateway",
    503: "Service Unavailable",
}


def app_error_for_import(exc: StatementImportError) -> AppError:
    """Translate a pipeline error into the matching HTTP-level error."""
    if isinstance(exc, (FileFormatError, ColumnNotFoundError)):
        return ValidationError(str(exc))
    if isinstance(exc, PersistenceError):
        return ServiceUnavailableError(str(exc))
    return BadRequestError(str(exc))


def _problem_response(request: Request, status: int, detail: str, error_type: str = "about:blank") -> JSONResponse:
    body = _build_problem_detail(
        status=status,
        title=_STATUS_TITLES.get(status, "Error"),
        detail=detail,
        error_type=error_type,
        instance=str(request.url.path),
        request_id=getattr(request.state, "request_id", ""),
    )
    return JSONResponse(status_code=status, content=body)


def register_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the FastAPI app."""

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        return _problem_response(request, exc.status_code, exc.detail, exc.error_type)

    @app.exception_handler(StatementImportError)
    async def import_error_handler(request: Request, exc: StatementImportError) -> JSONResponse:
        app_error = app_error_for_import(exc)
        return _problem_response(request, app_error.status_code, app_error.detail)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        detail = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
        return _problem_response(request, exc.status_code, detail)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        return _problem_response(request, 500, "An unexpected error occurred")
