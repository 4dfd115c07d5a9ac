"""Authorization gates shared by every route.

Two independent mechanisms:

- Session gate for dashboard routes: the ``session_token`` cookie is
  exchanged for a user through the session service, then the user's role is
  checked. Any failure (no cookie, unknown/expired token, wrong role) is the
  same generic 401 so callers learn nothing about why.
- Static API key for ``/api/external`` routes: the ``x-api-key`` header must
  equal the configured shared secret.

Usage:
    @router.get("/things")
    async def list_things(user: AuthUser = Depends(require_roles("ADMIN"))):
        ...
"""

from __future__ import annotations

import hashlib
import hmac
import logging
from typing import Annotated, Awaitable, Callable

from fastapi import Depends, Header, Request

from app.adapters.datastore import AbstractDataStore
from app.adapters.datastore.factory import get_data_store
from app.core.config import settings
from app.core.errors import unauthorized
from app.core.logging import set_user_id
from app.services.session_service import AuthUser, validate_session

logger = logging.getLogger(__name__)


def _token_hash(value: str) -> str:
    return hashlib.sha256(value.encode()).hexdigest()[:16]


def validate_api_key(provided_key: str | None) -> None:
    """Compare ``provided_key`` with the configured external secret.

    Pure validation logic without FastAPI dependencies for easy testing.

    Raises:
        AuthenticationAppError: If no secret is configured or the key differs.
    """
    secret = settings.app.external_api_secret
    if not secret:
        logger.error(
            "api_key_validation_failed",
            extra={"reason": "external_api_secret_not_configured"},
        )
        raise unauthorized()

    if not provided_key or not hmac.compare_digest(provided_key.encode(), secret.encode()):
        logger.warning(
            "api_key_validation_failed",
            extra={
                "reason": "invalid_api_key" if provided_key else "missing_api_key",
                "api_key_hash": _token_hash(provided_key) if provided_key else None,
            },
        )
        raise unauthorized()


async def verify_external_api_key(
    x_api_key: Annotated[str | None, Header(alias="x-api-key")] = None,
) -> None:
    """FastAPI dependency guarding the external read API."""
    validate_api_key(x_api_key)


async def get_current_user(
    request: Request,
    store: Annotated[AbstractDataStore, Depends(get_data_store)],
) -> AuthUser:
    """Resolve the session cookie to a user or fail with 401."""
    token = request.cookies.get(settings.app.session_cookie_name)
    if not token:
        logger.info("auth.missing_session", extra={"path": request.url.path})
        raise unauthorized()

    user = await validate_session(store, token)
    if user is None:
        logger.info(
            "auth.invalid_session",
            extra={"path": request.url.path, "token_hash": _token_hash(token)},
        )
        raise unauthorized()

    set_user_id(user.id)
    return user


def require_roles(*roles: str) -> Callable[..., Awaitable[AuthUser]]:
    """Build a dependency admitting only users holding one of ``roles``.

    With no roles, any authenticated user is admitted.
    """
    allowed = frozenset(roles)

    async def dependency(user: Annotated[AuthUser, Depends(get_current_user)]) -> AuthUser:
        if allowed and user.role not in allowed:
            logger.warning(
                "auth.forbidden_role",
                extra={"role": user.role, "allowed_roles": sorted(allowed)},
            )
            raise unauthorized()
        return user

    return dependency

