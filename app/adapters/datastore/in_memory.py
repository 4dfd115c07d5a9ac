"""In-memory data store.

Keeps every table as a list of dicts inside the process. Used for local
development and the test-suite; it honours the same query semantics as the
PostgREST backend (filters, nested relations, ordering, inclusive ranges,
exact counts).

Notes:
- Per-process only: data disappears on restart.
- Thread-safe: uses a lock around shared state.
"""

from __future__ import annotations

import copy
import threading
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Iterable

from app.adapters.datastore.base import (
    AbstractDataStore,
    Embed,
    Filter,
    Query,
    QueryResult,
    Row,
)
from app.core.errors import DataStoreError


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _compare(op: str, actual: Any, expected: Any) -> bool:
    if op == "eq":
        return actual == expected
    if op == "neq":
        return actual != expected
    if op == "in":
        return actual in expected
    if op == "is":
        return actual is expected
    if actual is None or expected is None:
        return False
    if op == "gt":
        return actual > expected
    if op == "gte":
        return actual >= expected
    if op == "lt":
        return actual < expected
    if op == "lte":
        return actual <= expected
    raise DataStoreError(code="unsupported_filter", message=f"Unsupported filter operator: {op}")


def _matches(row: Row, filters: Iterable[Filter]) -> bool:
    return all(_compare(f.op, row.get(f.column), f.value) for f in filters)


def _project(row: Row, columns: tuple[str, ...]) -> Row:
    if "*" in columns:
        return dict(row)
    return {column: row.get(column) for column in columns}


class InMemoryDataStore(AbstractDataStore):
    """Dict-of-lists store with PostgREST-like read semantics."""

    def __init__(
        self,
        tables: dict[str, list[Row]] | None = None,
        *,
        id_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
        now: Callable[[], str] = _utcnow_iso,
    ) -> None:
        self._tables: dict[str, list[Row]] = copy.deepcopy(tables) if tables else {}
        self._id_factory = id_factory
        self._now = now
        self._lock = threading.RLock()

    def table(self, name: str) -> list[Row]:
        """Return a copy of every row of ``name`` (inspection helper)."""
        with self._lock:
            return copy.deepcopy(self._tables.get(name, []))

    def _rows(self, name: str) -> list[Row]:
        return self._tables.setdefault(name, [])

    def _resolve_embed(self, parent: Row, embed: Embed) -> Any:
        local_value = parent.get(embed.local_key)
        related = [
            row for row in self._rows(embed.table)
            if local_value is not None and row.get(embed.remote_key) == local_value
        ]
        shaped = [self._shape(row, embed.columns, embed.embeds) for row in related]
        if embed.many:
            return shaped
        return shaped[0] if shaped else None

    def _shape(self, row: Row, columns: tuple[str, ...], embeds: tuple[Embed, ...]) -> Row:
        shaped = _project(row, columns)
        for embed in embeds:
            shaped[embed.alias] = self._resolve_embed(row, embed)
        return shaped

    @staticmethod
    def _sort(rows: list[Row], query: Query) -> list[Row]:
        # Stable sorts applied last-key-first give a lexicographic order.
        # NULLs sort last ascending and first descending, like PostgreSQL.
        for order in reversed(query.orders):
            rows = sorted(
                rows,
                key=lambda r, c=order.column: (r.get(c) is None, r.get(c)),
                reverse=not order.ascending,
            )
        return rows

    async def fetch(self, query: Query) -> QueryResult:
        with self._lock:
            rows = [row for row in self._rows(query.table) if _matches(row, query.filters)]
            try:
                rows = self._sort(rows, query)
            except TypeError as exc:
                raise DataStoreError(
                    code="unsortable_column",
                    message=f"Cannot order {query.table} rows",
                    details={"table": query.table},
                ) from exc

            total = len(rows)
            if query.range_start is not None:
                end = query.range_end + 1 if query.range_end is not None else None
                rows = rows[query.range_start:end]
            if query.max_rows is not None:
                rows = rows[: query.max_rows]

            shaped = [copy.deepcopy(self._shape(row, query.columns, query.embeds)) for row in rows]
            return QueryResult(rows=shaped, count=total if query.with_count else None)

    async def insert(self, table: str, rows: Row | list[Row]) -> list[Row]:
        batch = [rows] if isinstance(rows, dict) else list(rows)
        inserted: list[Row] = []
        with self._lock:
            target = self._rows(table)
            for row in batch:
                stored = dict(row)
                stored.setdefault("id", self._id_factory())
                stored.setdefault("created_at", self._now())
                if any(existing.get("id") == stored["id"] for existing in target):
                    raise DataStoreError(
                        code="duplicate_key",
                        message=f"Duplicate id in {table}",
                        details={"table": table},
                    )
                inserted.append(stored)
            target.extend(inserted)
            return copy.deepcopy(inserted)

    async def update(self, query: Query, values: Row) -> list[Row]:
        with self._lock:
            updated = []
            for row in self._rows(query.table):
                if _matches(row, query.filters):
                    row.update(values)
                    updated.append(copy.deepcopy(row))
            return updated

    async def delete(self, query: Query) -> list[Row]:
        with self._lock:
            kept: list[Row] = []
            removed: list[Row] = []
            for row in self._rows(query.table):
                (removed if _matches(row, query.filters) else kept).append(row)
            self._tables[query.table] = kept
            return removed
