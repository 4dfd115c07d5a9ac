"""Time-boxed JSON response cache for API consumers.

A drop-in replacement for a plain GET that:

- serves a stored payload while it is younger than the TTL,
- collapses concurrent requests for the same URL into one network call
  whose result (or error) every caller shares,
- can be invalidated wholesale or by URL prefix after mutations.

Keys are the request URL strings exactly as passed in.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Mapping
from urllib.parse import urlencode, urlsplit

import httpx

from app.core.errors import CacheFetchError

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 30.0


@dataclass(frozen=True)
class CacheEntry:
    """Stored payload and the clock reading at which it was fetched."""

    data: Any
    timestamp: float


class CachedFetcher:
    """GET-with-cache over an ``httpx.AsyncClient``.

    Attributes:
        default_ttl_seconds: TTL used when ``fetch`` is called without one.
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        *,
        base_url: str = "",
        default_ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._client = client
        self._base_url = base_url
        self.default_ttl_seconds = default_ttl_seconds
        self._clock = clock
        self._cache: dict[str, CacheEntry] = {}
        self._pending: dict[str, asyncio.Future] = {}
        self._lock = threading.RLock()
        self._hits = 0
        self._misses = 0
        self._network_fetches = 0

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return (
            f"CachedFetcher(default_ttl_seconds={self.default_ttl_seconds}, "
            f"entries={len(self._cache)}, pending={len(self._pending)})"
        )

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(base_url=self._base_url)
        return self._client

    def peek(self, url: str) -> CacheEntry | None:
        with self._lock:
            return self._cache.get(url)

    def is_pending(self, url: str) -> bool:
        return url in self._pending

    async def fetch(self, url: str, ttl_seconds: float | None = None) -> Any:
        """Return the JSON payload of ``GET url``, from cache when fresh.

        Raises:
            CacheFetchError: On a non-2xx status, an unparseable body or a
                transport failure. Every caller attached to the same
                in-flight request receives the same error.
        """
        ttl = self.default_ttl_seconds if ttl_seconds is None else ttl_seconds

        with self._lock:
            entry = self._cache.get(url)
            if entry is not None and self._clock() - entry.timestamp < ttl:
                self._hits += 1
                logger.debug("cache.hit", extra={"url": url})
                return entry.data
            self._misses += 1

        pending = self._pending.get(url)
        if pending is None:
            pending = asyncio.ensure_future(self._load(url))
            self._pending[url] = pending
        else:
            logger.debug("cache.joined_pending", extra={"url": url})

        # shield: one caller going away must not cancel the shared fetch
        return await asyncio.shield(pending)

    async def _load(self, url: str) -> Any:
        try:
            self._network_fetches += 1
            try:
                response = await self.client.get(url)
            except httpx.HTTPError as exc:
                raise CacheFetchError(
                    code="network_error",
                    message=f"Request to {url} failed: {type(exc).__name__}",
                    details={"url": url},
                ) from exc

            if not response.is_success:
                raise CacheFetchError(
                    code="http_error",
                    message=f"HTTP {response.status_code}",
                    details={"url": url, "status_code": response.status_code},
                )
            try:
                data = response.json()
            except ValueError as exc:
                raise CacheFetchError(
                    code="invalid_json",
                    message="Response body is not valid JSON",
                    details={"url": url},
                ) from exc

            with self._lock:
                self._cache[url] = CacheEntry(data=data, timestamp=self._clock())
            logger.debug("cache.set", extra={"url": url, "size": len(self._cache)})
            return data
        except CacheFetchError as exc:
            logger.warning("cache.fetch_failed", extra={"url": url, "error_code": exc.code})
            raise
        finally:
            self._pending.pop(url, None)

    def invalidate(self, prefix: str | None = None) -> int:
        """Drop cached entries; return how many were removed.

        Without a prefix everything goes. With one, every key that starts
        with or merely contains the prefix is removed, so
        ``/api/students`` also clears ``/api/x-students-y``.
        """
        with self._lock:
            if not prefix:
                removed = len(self._cache)
                self._cache.clear()
                return removed
            doomed = [key for key in self._cache if key.startswith(prefix) or prefix in key]
            for key in doomed:
                del self._cache[key]
            return len(doomed)

    async def send(self, method: str, url: str, *, json: Any = None) -> Any:
        """Issue a mutating request, then invalidate the URL's path.

        Raises:
            CacheFetchError: On a non-2xx status.
        """
        response = await self.client.request(method, url, json=json)
        self.invalidate(urlsplit(url).path)
        if not response.is_success:
            raise CacheFetchError(
                code="http_error",
                message=f"HTTP {response.status_code}",
                details={"url": url, "status_code": response.status_code},
            )
        return response.json() if response.content else None

    def stats(self) -> dict[str, int | float]:
        """Return lightweight cache metrics without exposing values."""
        with self._lock:
            return {
                "default_ttl_seconds": self.default_ttl_seconds,
                "entries": len(self._cache),
                "pending": len(self._pending),
                "hits": self._hits,
                "misses": self._misses,
                "network_fetches": self._network_fetches,
            }

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()


_default_fetcher: CachedFetcher | None = None


def get_default_fetcher() -> CachedFetcher:
    global _default_fetcher
    if _default_fetcher is None:
        from app.core.config import settings

        _default_fetcher = CachedFetcher(default_ttl_seconds=settings.app.client_cache_ttl_seconds)
    return _default_fetcher


def set_default_fetcher(fetcher: CachedFetcher | None) -> None:
    global _default_fetcher
    _default_fetcher = fetcher


async def cached_fetch(url: str, ttl_seconds: float | None = None) -> Any:
    """``CachedFetcher.fetch`` on the process-wide fetcher."""
    return await get_default_fetcher().fetch(url, ttl_seconds)


def invalidate_cache(prefix: str | None = None) -> int:
    """``CachedFetcher.invalidate`` on the process-wide fetcher."""
    return get_default_fetcher().invalidate(prefix)


def create_fetch_url(base: str, params: Mapping[str, Any] | None = None) -> str:
    """Append the non-empty ``params`` to ``base`` as a query string.

    Booleans are rendered lowercase (``today=true``).
    """
    if not params:
        return base
    pairs = []
    for key, value in params.items():
        if value is None or value == "":
            continue
        if isinstance(value, bool):
            value = "true" if value else "false"
        pairs.append((key, str(value)))
    query = urlencode(pairs)
    return f"{base}?{query}" if query else base
