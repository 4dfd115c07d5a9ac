"""In-memory per-client attempt limiter.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: uses a lock around shared state.
"""

from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass
from typing import Callable

from app.adapters.rate_limit.base import (
    UNKNOWN_CLIENT_KEY,
    AbstractRateLimiter,
    RateLimitResult,
)


@dataclass
class RateLimitEntry:
    count: int
    reset_at: float


class InMemoryRateLimiter(AbstractRateLimiter):
    """Fixed window per key, opened by the key's first attempt.

    The window is not aligned to wall-clock boundaries: the first attempt of
    a key (or the first one after its window ended) starts a fresh window of
    ``window_seconds`` with a count of 1. Later attempts increment the count
    and are rejected once it exceeds ``limit``. Rejected attempts still
    count, so hammering the endpoint does not earn extra tries.
    """

    def __init__(
        self,
        *,
        limit: int,
        window_seconds: float,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the limiter.

        Args:
            limit: Maximum attempts allowed per window.
            window_seconds: Window length in seconds.
            clock: Time source returning seconds.

        Raises:
            ValueError: If limit or window_seconds are invalid.
        """
        if limit < 1:
            raise ValueError("limit must be >= 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be > 0")

        self._limit = limit
        self._window_seconds = window_seconds
        self._clock = clock
        self._lock = threading.RLock()
        self._entries: dict[str, RateLimitEntry] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get_entry(self, key: str) -> RateLimitEntry | None:
        with self._lock:
            entry = self._entries.get(key or UNKNOWN_CLIENT_KEY)
            return RateLimitEntry(entry.count, entry.reset_at) if entry else None

    def consume(self, key: str) -> RateLimitResult:
        """Count one attempt for ``key``.

        Never raises: an empty key is counted against the shared
        ``unknown`` bucket.
        """
        key = key or UNKNOWN_CLIENT_KEY
        now = self._clock()

        with self._lock:
            entry = self._entries.get(key)
            if entry is None or now > entry.reset_at:
                entry = RateLimitEntry(count=1, reset_at=now + self._window_seconds)
                self._entries[key] = entry
            else:
                entry.count += 1

            allowed = entry.count <= self._limit
            retry_after = None if allowed else max(0, int(math.ceil(entry.reset_at - now)))
            return RateLimitResult(
                allowed=allowed,
                limit=self._limit,
                count=entry.count,
                remaining=max(0, self._limit - entry.count),
                reset_at=entry.reset_at,
                retry_after_seconds=retry_after,
            )

    def sweep(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [key for key, entry in self._entries.items() if now > entry.reset_at]
            for key in expired:
                del self._entries[key]
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
