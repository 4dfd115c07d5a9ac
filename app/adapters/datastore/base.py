"""Data-access interfaces.

Route handlers and services describe reads as immutable ``Query`` values
(table, column selection with nested relations, filters, ordering, range)
and hand them to an ``AbstractDataStore``. Writes take a table name or a
filtering ``Query``. Backends translate these to their own query language.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from typing import Any, Iterable

Row = dict[str, Any]

FILTER_OPERATORS = ("eq", "neq", "gt", "gte", "lt", "lte", "in", "is")


@dataclass(frozen=True)
class Filter:
    column: str
    op: str
    value: Any


@dataclass(frozen=True)
class Order:
    column: str
    ascending: bool = True


@dataclass(frozen=True)
class Embed:
    """A related table nested under ``alias`` in every returned row.

    Attributes:
        alias: Key the related data is stored under.
        table: Related table name.
        columns: Columns to keep from the related rows (``"*"`` for all).
        local_key: Column on the parent row used for the join.
        remote_key: Column on the related row matched against ``local_key``.
        many: True for one-to-many (list), False for many-to-one (object or None).
        embeds: Relations nested inside this one.
        hint: Foreign key column name when the backend needs disambiguation.
    """

    alias: str
    table: str
    columns: tuple[str, ...] = ("*",)
    local_key: str = "id"
    remote_key: str = "id"
    many: bool = False
    embeds: tuple["Embed", ...] = ()
    hint: str | None = None


def one(
    alias: str,
    table: str,
    *columns: str,
    key: str | None = None,
    embeds: Iterable[Embed] = (),
    hint: str | None = None,
) -> Embed:
    """Many-to-one relation: ``parent[key] == related.id``.

    ``key`` defaults to ``<alias>_id`` (``class`` -> ``class_id``).
    """
    return Embed(
        alias=alias,
        table=table,
        columns=columns or ("*",),
        local_key=key or f"{alias}_id",
        remote_key="id",
        many=False,
        embeds=tuple(embeds),
        hint=hint,
    )


def many(
    alias: str,
    table: str,
    *columns: str,
    foreign_key: str,
    embeds: Iterable[Embed] = (),
) -> Embed:
    """One-to-many relation: ``related[foreign_key] == parent.id``."""
    return Embed(
        alias=alias,
        table=table,
        columns=columns or ("*",),
        local_key="id",
        remote_key=foreign_key,
        many=True,
        embeds=tuple(embeds),
    )


@dataclass(frozen=True)
class Query:
    """Immutable description of a read (or of the rows a write targets)."""

    table: str
    columns: tuple[str, ...] = ("*",)
    embeds: tuple[Embed, ...] = ()
    filters: tuple[Filter, ...] = ()
    orders: tuple[Order, ...] = ()
    range_start: int | None = None
    range_end: int | None = None
    max_rows: int | None = None
    with_count: bool = False

    def select(self, *columns: str, embeds: Iterable[Embed] = (), count: bool = False) -> "Query":
        return replace(
            self,
            columns=columns or ("*",),
            embeds=tuple(embeds),
            with_count=count,
        )

    def _where(self, column: str, op: str, value: Any) -> "Query":
        return replace(self, filters=self.filters + (Filter(column, op, value),))

    def eq(self, column: str, value: Any) -> "Query":
        return self._where(column, "eq", value)

    def neq(self, column: str, value: Any) -> "Query":
        return self._where(column, "neq", value)

    def gt(self, column: str, value: Any) -> "Query":
        return self._where(column, "gt", value)

    def gte(self, column: str, value: Any) -> "Query":
        return self._where(column, "gte", value)

    def lt(self, column: str, value: Any) -> "Query":
        return self._where(column, "lt", value)

    def lte(self, column: str, value: Any) -> "Query":
        return self._where(column, "lte", value)

    def in_(self, column: str, values: Iterable[Any]) -> "Query":
        return self._where(column, "in", tuple(values))

    def is_null(self, column: str) -> "Query":
        return self._where(column, "is", None)

    def order(self, column: str, *, ascending: bool = True) -> "Query":
        return replace(self, orders=self.orders + (Order(column, ascending),))

    def range(self, start: int, end: int) -> "Query":
        """Restrict to rows ``start`` through ``end`` (both inclusive)."""
        return replace(self, range_start=start, range_end=end)

    def limit(self, count: int) -> "Query":
        return replace(self, max_rows=count)


@dataclass
class QueryResult:
    rows: list[Row] = field(default_factory=list)
    count: int | None = None


class AbstractDataStore(ABC):
    """Interface of the relational store used by services.

    Implementations raise ``app.core.errors.DataStoreError`` on failure.
    """

    @abstractmethod
    async def fetch(self, query: Query) -> QueryResult:
        """Run a read and return rows (plus the exact count when requested)."""
        raise NotImplementedError

    @abstractmethod
    async def insert(self, table: str, rows: Row | list[Row]) -> list[Row]:
        """Insert one or many rows and return them as stored."""
        raise NotImplementedError

    @abstractmethod
    async def update(self, query: Query, values: Row) -> list[Row]:
        """Apply ``values`` to every row matched by ``query``'s filters."""
        raise NotImplementedError

    @abstractmethod
    async def delete(self, query: Query) -> list[Row]:
        """Delete every row matched by ``query``'s filters."""
        raise NotImplementedError

    async def fetch_one(self, query: Query) -> Row | None:
        """Return the first matching row or None."""
        result = await self.fetch(query.limit(1))
        return result.rows[0] if result.rows else None

    async def fetch_all(self, query: Query) -> list[Row]:
        return (await self.fetch(query)).rows

    async def count(self, query: Query) -> int:
        result = await self.fetch(query.select("id", count=True))
        return result.count or 0

    async def aclose(self) -> None:
        """Release backend resources (connections, clients)."""
        return None
