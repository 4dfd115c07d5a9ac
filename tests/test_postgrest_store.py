"""Tests for the PostgREST adapter using httpx.MockTransport."""

from urllib.parse import parse_qsl

import httpx
import pytest

from app.adapters.datastore import Query, many, one
from app.adapters.datastore.base import Filter
from app.adapters.datastore.postgrest import PostgrestDataStore, render_filter, render_select
from app.core.errors import DataStoreError


class Recorder:
    def __init__(self, response: httpx.Response) -> None:
        self.response = response
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.response

    @property
    def last_params(self) -> list[tuple[str, str]]:
        return parse_qsl(self.requests[-1].url.query.decode())


def _store(recorder: Recorder) -> PostgrestDataStore:
    client = httpx.AsyncClient(
        transport=httpx.MockTransport(recorder),
        base_url="https://db.example/rest/v1",
    )
    return PostgrestDataStore(base_url="https://db.example", service_key="svc", client=client)


def test_render_filter_variants() -> None:
    assert render_filter(Filter("is_active", "eq", True)) == ("is_active", "eq.true")
    assert render_filter(Filter("class_id", "is", None)) == ("class_id", "is.null")
    assert render_filter(Filter("id", "in", ("a", "b,c"))) == ("id", 'in.(a,"b,c")')
    assert render_filter(Filter("expires_at", "gt", "2025-01-01")) == ("expires_at", "gt.2025-01-01")


def test_render_select_nests_relations_and_hints() -> None:
    select = render_select(
        ("*",),
        (
            one("created_by_user", "users", "full_name", key="created_by", hint="created_by"),
            many("entries", "schedule_entries", foreign_key="schedule_id", embeds=[one("subject", "subjects", "id", "name")]),
        ),
    )

    assert select == "*,created_by_user:users!created_by(full_name),entries:schedule_entries(*,subject:subjects(id,name))"


@pytest.mark.asyncio
async def test_fetch_builds_query_and_reads_count() -> None:
    recorder = Recorder(httpx.Response(200, json=[{"id": "s-1"}], headers={"Content-Range": "10-19/42"}))
    store = _store(recorder)

    result = await store.fetch(
        Query("students").select("id", count=True).eq("class_id", "c-1").order("created_at", ascending=False).range(10, 19)
    )

    assert result.rows == [{"id": "s-1"}]
    assert result.count == 42
    request = recorder.requests[-1]
    assert request.url.path == "/rest/v1/students"
    assert request.headers["Prefer"] == "count=exact"
    assert recorder.last_params == [
        ("select", "id"),
        ("class_id", "eq.c-1"),
        ("order", "created_at.desc"),
        ("offset", "10"),
        ("limit", "10"),
    ]


@pytest.mark.asyncio
async def test_fetch_one_limits_to_single_row() -> None:
    recorder = Recorder(httpx.Response(200, json=[]))

    assert await _store(recorder).fetch_one(Query("users").eq("username", "x")) is None
    assert ("limit", "1") in recorder.last_params


@pytest.mark.asyncio
async def test_writes_ask_for_representation() -> None:
    recorder = Recorder(httpx.Response(201, json=[{"id": "u-1"}]))
    store = _store(recorder)

    rows = await store.insert("users", {"username": "a"})
    await store.update(Query("users").eq("id", "u-1"), {"full_name": "A"})
    await store.delete(Query("users").eq("id", "u-1"))

    assert rows == [{"id": "u-1"}]
    assert [r.method for r in recorder.requests] == ["POST", "PATCH", "DELETE"]
    assert all(r.headers["Prefer"] == "return=representation" for r in recorder.requests)
    assert recorder.last_params == [("id", "eq.u-1")]


@pytest.mark.asyncio
async def test_error_status_raises_store_error() -> None:
    recorder = Recorder(httpx.Response(400, json={"code": "42P01", "message": "relation does not exist"}))

    with pytest.raises(DataStoreError) as exc_info:
        await _store(recorder).fetch(Query("nope"))

    assert exc_info.value.details["status_code"] == 400


@pytest.mark.asyncio
async def test_transport_error_raises_store_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("slow", request=request)

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="https://db.example/rest/v1")
    store = PostgrestDataStore(base_url="https://db.example", service_key="svc", client=client)

    with pytest.raises(DataStoreError) as exc_info:
        await store.fetch(Query("users"))

    assert exc_info.value.code == "datastore_unreachable"


def test_default_client_sends_service_key_headers() -> None:
    store = PostgrestDataStore(base_url="https://db.example/", service_key="svc")

    assert store.base_url == "https://db.example"
    assert store._client.headers["apikey"] == "svc"
    assert store._client.headers["Authorization"] == "Bearer svc"
