"""Error taxonomy and the FastAPI handlers that render it as ``{"message": ...}``."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger("barkbase_ops.errors")


class OpsError(Exception):
    """Base class for errors that map to a specific HTTP status."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(OpsError):
    status_code = 400


class AuthenticationError(OpsError):
    # Authentication failures share 403 with authorization failures.
    status_code = 403


class AuthorizationError(OpsError):
    status_code = 403


class NotFoundError(OpsError):
    status_code = 404


def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"message": message})


def _describe_validation_error(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    if first.get("type") == "json_invalid":
        return "Request body must be valid JSON"
    if location:
        return f"Invalid request: {location}: {first.get('msg', 'invalid value')}"
    return f"Invalid request: {first.get('msg', 'invalid value')}"


def register_exception_handlers(app: FastAPI) -> None:
    """Install the handlers mapping errors to status codes and message bodies."""

    @app.exception_handler(OpsError)
    async def ops_error_handler(request: Request, exc: OpsError):
        return _error_response(exc.status_code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return _error_response(400, _describe_validation_error(exc))

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            return _error_response(404, "Not found")
        message = exc.detail if isinstance(exc.detail, str) else "Request failed"
        return _error_response(exc.status_code, message)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.error(
            "Unhandled error on %s %s",
            request.method,
            request.url.path,
            exc_info=exc,
            extra={"request_id": getattr(request.state, "request_id", None)},
        )
        return _error_response(500, "Internal server error")
