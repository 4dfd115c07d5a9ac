"""Rate limiter interfaces.

Route dependencies talk to this abstraction only, so the in-process table
can later be replaced by a shared counter service when the API runs as
several processes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

# Bucket used when the caller cannot be identified
UNKNOWN_CLIENT_KEY = "unknown"


@dataclass(frozen=True)
class RateLimitResult:
    """Outcome of one counted attempt.

    Attributes:
        allowed: Whether the attempt may proceed.
        limit: Max attempts per window.
        count: Attempts seen in the current window, this one included.
        remaining: Attempts left in the current window (0 when blocked).
        reset_at: Clock time at which the current window ends.
        retry_after_seconds: Suggested wait in whole seconds when blocked.
    """

    allowed: bool
    limit: int
    count: int
    remaining: int
    reset_at: float
    retry_after_seconds: int | None


class AbstractRateLimiter(ABC):
    """Interface for attempt limiters."""

    @abstractmethod
    def consume(self, key: str) -> RateLimitResult:
        """Count one attempt for ``key`` and decide whether it is allowed."""
        raise NotImplementedError

    @abstractmethod
    def sweep(self) -> int:
        """Drop state whose window has ended; return how many keys were removed."""
        raise NotImplementedError

    def check_rate_limit(self, key: str) -> bool:
        """Count one attempt and return only the allow/deny decision."""
        return self.consume(key).allowed
