"""PostgREST (Supabase) data store over httpx.

Translates ``Query`` values into PostgREST REST calls:

- column selection and relations → ``select=*,class:classes(id,name)``
- filters → ``column=op.value`` query parameters
- ordering → ``order=col.desc,other.asc``
- inclusive ranges → ``offset``/``limit``
- exact counts → ``Prefer: count=exact`` and the ``Content-Range`` header
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from app.adapters.datastore.base import (
    AbstractDataStore,
    Embed,
    Filter,
    Query,
    QueryResult,
    Row,
)
from app.core.errors import DataStoreError

logger = logging.getLogger(__name__)


def _format_value(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _quote_list_item(value: Any) -> str:
    text = _format_value(value)
    if any(ch in text for ch in ',()"'):
        return '"' + text.replace('"', '\\"') + '"'
    return text


def render_filter(flt: Filter) -> tuple[str, str]:
    """Render one filter as a ``(column, "op.value")`` query parameter."""
    if flt.op == "in":
        items = ",".join(_quote_list_item(v) for v in flt.value)
        return flt.column, f"in.({items})"
    if flt.op == "is":
        return flt.column, f"is.{_format_value(flt.value)}"
    return flt.column, f"{flt.op}.{_format_value(flt.value)}"


def _render_embed(embed: Embed) -> str:
    target = f"{embed.table}!{embed.hint}" if embed.hint else embed.table
    inner = render_select(embed.columns, embed.embeds)
    return f"{embed.alias}:{target}({inner})"


def render_select(columns: tuple[str, ...], embeds: tuple[Embed, ...]) -> str:
    """Render a PostgREST ``select`` expression."""
    parts = list(columns) + [_render_embed(embed) for embed in embeds]
    return ",".join(parts)


def _parse_content_range(header: str | None) -> int | None:
    # "0-9/42" or "*/0"
    if not header or "/" not in header:
        return None
    total = header.rsplit("/", 1)[1]
    return int(total) if total.isdigit() else None


class PostgrestDataStore(AbstractDataStore):
    """Data store backed by a PostgREST endpoint.

    Attributes:
        base_url: Project URL; requests go to ``{base_url}/rest/v1/{table}``.
    """

    def __init__(
        self,
        *,
        base_url: str,
        service_key: str,
        timeout_seconds: float = 15.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=f"{self.base_url}/rest/v1",
            timeout=timeout_seconds,
            headers={
                "apikey": service_key,
                "Authorization": f"Bearer {service_key}",
            },
        )

    @staticmethod
    def _filter_params(query: Query) -> list[tuple[str, str]]:
        return [render_filter(flt) for flt in query.filters]

    async def _request(
        self,
        method: str,
        table: str,
        *,
        params: list[tuple[str, str]],
        headers: dict[str, str] | None = None,
        json: Any = None,
    ) -> httpx.Response:
        try:
            response = await self._client.request(method, f"/{table}", params=params, headers=headers, json=json)
        except httpx.HTTPError as exc:
            logger.error(
                "datastore.transport_error",
                extra={"table": table, "method": method, "error_type": type(exc).__name__},
            )
            raise DataStoreError(
                code="datastore_unreachable",
                message=f"Data store request failed: {type(exc).__name__}",
                details={"table": table},
            ) from exc

        if response.status_code >= 400:
            try:
                body = response.json()
            except ValueError:
                body = {"message": response.text}
            logger.error(
                "datastore.error",
                extra={
                    "table": table,
                    "method": method,
                    "status_code": response.status_code,
                    "pg_code": body.get("code") if isinstance(body, dict) else None,
                },
            )
            message = body.get("message") if isinstance(body, dict) else None
            raise DataStoreError(
                code="datastore_error",
                message=message or f"Data store returned HTTP {response.status_code}",
                details={"table": table, "status_code": response.status_code},
            )
        return response

    async def fetch(self, query: Query) -> QueryResult:
        params = [("select", render_select(query.columns, query.embeds))]
        params += self._filter_params(query)
        if query.orders:
            params.append((
                "order",
                ",".join(f"{o.column}.{'asc' if o.ascending else 'desc'}" for o in query.orders),
            ))

        offset = query.range_start
        limit = None
        if query.range_start is not None and query.range_end is not None:
            limit = query.range_end - query.range_start + 1
        if query.max_rows is not None:
            limit = query.max_rows if limit is None else min(limit, query.max_rows)
        if offset:
            params.append(("offset", str(offset)))
        if limit is not None:
            params.append(("limit", str(limit)))

        headers = {"Prefer": "count=exact"} if query.with_count else None
        response = await self._request("GET", query.table, params=params, headers=headers)
        count = _parse_content_range(response.headers.get("content-range")) if query.with_count else None
        return QueryResult(rows=response.json(), count=count)

    async def insert(self, table: str, rows: Row | list[Row]) -> list[Row]:
        response = await self._request(
            "POST",
            table,
            params=[],
            headers={"Prefer": "return=representation"},
            json=rows,
        )
        return response.json()

    async def update(self, query: Query, values: Row) -> list[Row]:
        response = await self._request(
            "PATCH",
            query.table,
            params=self._filter_params(query),
            headers={"Prefer": "return=representation"},
            json=values,
        )
        return response.json()

    async def delete(self, query: Query) -> list[Row]:
        response = await self._request(
            "DELETE",
            query.table,
            params=self._filter_params(query),
            headers={"Prefer": "return=representation"},
        )
        return response.json()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
