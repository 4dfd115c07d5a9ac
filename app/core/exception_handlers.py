"""Global exception handlers for consistent error responses.

This module provides FastAPI exception handlers that intercept all errors
(domain and unexpected) and return consistent JSON responses with proper
HTTP status codes and traceability.

Design:
- AppError subclasses → appropriate HTTP status (400, 401, 404, 429, 500)
- Malformed request bodies → 400
- Unexpected Exception → generic 500 (safety net)
- All responses carry ``error`` (message), ``code`` and ``request_id``
- Server-side failures never expose upstream detail to the client
"""

import logging

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.core.errors import (
    AppError,
    AuthenticationAppError,
    DataStoreError,
    NotFoundAppError,
    RateLimitedAppError,
    SessionAppError,
)
from app.core.logging import get_request_id

logger = logging.getLogger(__name__)

SERVER_ERROR_MESSAGE = "Terjadi kesalahan server"


def _status_for(exc: AppError) -> int:
    if isinstance(exc, AuthenticationAppError):
        return 401
    if isinstance(exc, NotFoundAppError):
        return 404
    if isinstance(exc, RateLimitedAppError):
        return 429
    if isinstance(exc, (DataStoreError, SessionAppError)):
        return 500
    return 400


def error_body(code: str, message: str) -> dict:
    """Build the JSON error envelope used by every handler."""
    return {
        "error": message,
        "code": code,
        "request_id": get_request_id(),
    }


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Handle domain application errors with consistent JSON format.

    Routes domain errors to appropriate HTTP status codes:
    - ValidationAppError → 400 Bad Request (client fault)
    - AuthenticationAppError → 401 Unauthorized
    - NotFoundAppError → 404 Not Found
    - RateLimitedAppError → 429 Too Many Requests (+ Retry-After)
    - DataStoreError → 500 Internal Server Error (detail logged only)
    - SessionAppError → 500 with its own client-safe message

    Args:
        request: FastAPI request object.
        exc: AppError instance (or subclass).

    Returns:
        JSONResponse with appropriate status code and error body.
    """
    status_code = _status_for(exc)

    if status_code >= 500:
        message = exc.message if isinstance(exc, SessionAppError) else SERVER_ERROR_MESSAGE
        logger.error(
            "app_error_handled",
            extra={
                "error_code": exc.code,
                "error_message": exc.message,
                "error_details": exc.details,
                "status_code": status_code,
                "request_path": request.url.path,
                "request_id": get_request_id(),
            },
        )
        return JSONResponse(
            status_code=status_code,
            content=error_body(exc.code, message),
        )

    logger.warning(
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "error_message": exc.message,
            "status_code": status_code,
            "has_details": bool(exc.details),
            "request_id": get_request_id(),
        },
    )

    headers: dict[str, str] = {}
    if isinstance(exc, RateLimitedAppError) and exc.details and "retry_after" in exc.details:
        headers["Retry-After"] = str(exc.details["retry_after"])

    return JSONResponse(
        status_code=status_code,
        content=error_body(exc.code, exc.message),
        headers=headers or None,
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Map FastAPI body/query validation failures to a plain 400."""
    logger.warning(
        "request_validation_failed",
        extra={
            "request_path": request.url.path,
            "error_count": len(exc.errors()),
            "request_id": get_request_id(),
        },
    )
    return JSONResponse(
        status_code=400,
        content=error_body("invalid_request", "Permintaan tidak valid"),
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback handler for unexpected errors (safety net).

    Logs detailed information for debugging while returning a generic
    message. No stack traces or exception text reach the client.

    Args:
        request: FastAPI request object.
        exc: Exception instance (unexpected).

    Returns:
        JSONResponse with generic error (no implementation details leaked).
    """
    logger.error(
        "unhandled_exception",
        extra={
            "error_type": type(exc).__name__,
            "error_msg": str(exc),
            "request_path": request.url.path,
            "request_method": request.method,
            "request_id": get_request_id(),
        },
    )

    return JSONResponse(
        status_code=500,
        content=error_body("internal_server_error", SERVER_ERROR_MESSAGE),
    )


def setup_exception_handlers(app) -> None:
    """Register all exception handlers with FastAPI app.

    Must be called during app initialization, before route registration.

    Args:
        app: FastAPI application instance.
    """
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(RequestValidationError)(request_validation_handler)
    app.exception_handler(Exception)(general_exception_handler)
