"""Pagination helpers for list endpoints.

Two conventions coexist and are deliberately kept apart:

- page-style (``page``/``limit``) used by the dashboard routes. It is opt-in:
  when neither parameter is supplied, callers get the full result set as
  before pagination existed.
- offset-style (``limit``/``offset``) used by the ``/api/external`` routes
  whose consumers already depend on it.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Mapping

from app.adapters.datastore.base import Query

MAX_LIMIT = 500
DEFAULT_LIMIT = 100

_LEADING_INT = re.compile(r"^\s*([+-]?[0-9]+)")


def parse_int(raw: str | None) -> int | None:
    """Parse the leading integer of ``raw`` (``"12abc"`` -> 12), else None."""
    if raw is None:
        return None
    match = _LEADING_INT.match(raw)
    return int(match.group(1)) if match else None


@dataclass(frozen=True)
class PaginationParams:
    """Normalized page window; ``from_`` and ``to`` are inclusive row offsets."""

    page: int
    limit: int
    from_: int
    to: int


@dataclass(frozen=True)
class OffsetWindow:
    limit: int
    offset: int

    @property
    def to(self) -> int:
        return self.offset + self.limit - 1


def parse_pagination(
    query_params: Mapping[str, str],
    default_limit: int = DEFAULT_LIMIT,
) -> PaginationParams | None:
    """Read ``page``/``limit`` from the query string.

    Returns None when neither is present so the caller skips pagination.
    Zero, negative or non-numeric values fall back to page 1 and
    ``default_limit``; the limit is clamped to [1, 500].
    """
    raw_page = query_params.get("page")
    raw_limit = query_params.get("limit")
    if not raw_page and not raw_limit:
        return None

    page = max(1, parse_int(raw_page) or 1)
    limit = min(MAX_LIMIT, max(1, parse_int(raw_limit) or default_limit))
    from_ = (page - 1) * limit
    return PaginationParams(page=page, limit=limit, from_=from_, to=from_ + limit - 1)


def apply_pagination(query: Query, params: PaginationParams | None) -> Query:
    if params is None:
        return query
    return query.range(params.from_, params.to)


def pagination_headers(params: PaginationParams | None, total_count: int | None = None) -> dict[str, str]:
    """Response headers describing the page that was served."""
    if params is None:
        return {}
    headers = {
        "X-Page": str(params.page),
        "X-Limit": str(params.limit),
    }
    if total_count is not None:
        headers["X-Total-Count"] = str(total_count)
        headers["X-Total-Pages"] = str(math.ceil(total_count / params.limit))
    return headers


def parse_offset_window(
    query_params: Mapping[str, str],
    default_limit: int = DEFAULT_LIMIT,
) -> OffsetWindow:
    """Read the legacy ``limit``/``offset`` pair.

    Unlike page-style parsing this always yields a window; nonsensical
    values are normalized (limit clamped to [1, 500], offset at least 0).
    """
    limit = parse_int(query_params.get("limit"))
    offset = parse_int(query_params.get("offset"))
    limit = default_limit if limit is None else min(MAX_LIMIT, max(1, limit))
    offset = max(0, offset or 0)
    return OffsetWindow(limit=limit, offset=offset)
