"""Login attempt limiting for FastAPI routes.

Wires the limiter adapter into the HTTP layer:

- ``enforce_login_rate_limit`` is a route dependency counting one attempt
  per call, keyed by client address.
- ``run_rate_limit_sweeper`` is a background coroutine started from the
  application lifespan that periodically drops expired entries so the
  table does not grow without bound.

Client identification: first hop of ``X-Forwarded-For``, then
``X-Real-IP``, then the shared ``unknown`` bucket.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging

from fastapi import Request

from app.adapters.rate_limit.base import UNKNOWN_CLIENT_KEY, AbstractRateLimiter
from app.adapters.rate_limit.in_memory import InMemoryRateLimiter
from app.core.config import settings
from app.core.errors import RateLimitedAppError

logger = logging.getLogger(__name__)

LOGIN_RATE_LIMIT_MESSAGE = "Terlalu banyak percobaan login. Coba lagi dalam 1 menit."

_limiter: AbstractRateLimiter | None = None
_limiter_config: tuple[int, int] | None = None


def get_login_rate_limiter() -> AbstractRateLimiter:
    """Return the process-wide login limiter.

    The instance is cached in-module to preserve state across requests.
    If configuration changes (primarily in tests), the limiter is rebuilt.
    """

    global _limiter, _limiter_config

    config = (
        settings.app.login_max_attempts,
        settings.app.login_window_seconds,
    )

    if _limiter is None or _limiter_config != config:
        _limiter = InMemoryRateLimiter(
            limit=settings.app.login_max_attempts,
            window_seconds=settings.app.login_window_seconds,
        )
        _limiter_config = config

    return _limiter


def reset_login_rate_limiter() -> None:
    """Forget the cached limiter (tests)."""

    global _limiter, _limiter_config
    _limiter = None
    _limiter_config = None


def client_key(request: Request) -> str:
    """Identify the caller for rate limiting purposes."""

    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    return UNKNOWN_CLIENT_KEY


def _hash_key(key: str) -> str:
    """Hash the limiter key so client addresses stay out of the logs."""
    return hashlib.sha256(key.encode()).hexdigest()[:16]


async def enforce_login_rate_limit(request: Request) -> None:
    """FastAPI dependency counting one login attempt.

    Raises:
        RateLimitedAppError: 429 once the client exceeds its budget.
    """

    if not settings.app.login_rate_limit_enabled:
        return

    key = client_key(request)
    result = get_login_rate_limiter().consume(key)
    if result.allowed:
        return

    logger.warning(
        "rate_limit.exceeded",
        extra={
            "key_hash": _hash_key(key),
            "anonymous": key == UNKNOWN_CLIENT_KEY,
            "limit": result.limit,
            "count": result.count,
            "window_s": settings.app.login_window_seconds,
            "retry_after_s": result.retry_after_seconds,
        },
    )
    raise RateLimitedAppError(
        code="rate_limited",
        message=LOGIN_RATE_LIMIT_MESSAGE,
        details={"retry_after": result.retry_after_seconds or 0},
    )


async def run_rate_limit_sweeper(interval_seconds: float | None = None) -> None:
    """Sweep expired limiter entries forever (cancel to stop)."""

    interval = interval_seconds or settings.app.login_sweep_interval_seconds
    while True:
        await asyncio.sleep(interval)
        removed = get_login_rate_limiter().sweep()
        if removed:
            logger.debug("rate_limit.swept", extra={"removed": removed})
