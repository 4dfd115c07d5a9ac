"""Application-level exception types.

This module defines domain errors used across services/adapters, enabling
consistent error handling, logging, and API responses.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients.

    Fields are optional to keep backward compatibility while encouraging
    consistent shapes across the codebase.
    """

    code: str
    message: str
    hint: str
    field: str
    table: str
    http_status: int
    retry_after: int
    status_code: int
    url: str
    request_id: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Raised when request input is missing or invalid."""


class AuthenticationAppError(AppError):
    """Raised when authentication/authorization fails."""


class NotFoundAppError(AppError):
    """Raised when a referenced entity does not exist."""


class RateLimitedAppError(AppError):
    """Raised when a client exhausts its attempt budget."""


class DataStoreError(AppError):
    """Raised when the data-access capability reports a failure."""


class SessionAppError(AppError):
    """Raised when a login succeeds but no session can be opened.

    Served as a 500 whose message is shown to the client as is.
    """


class CacheFetchError(AppError):
    """Raised by the client-side response cache on HTTP or JSON failures."""


def unauthorized() -> AuthenticationAppError:
    """Build the generic 401 error shared by every protected route."""
    return AuthenticationAppError(code="unauthorized", message="Unauthorized")
