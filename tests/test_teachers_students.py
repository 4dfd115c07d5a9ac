"""Tests for teacher listing, bulk teacher creation and student listing."""

import asyncio

import pytest

from app.adapters.datastore import Query
from app.adapters.datastore.in_memory import InMemoryDataStore
from app.core.errors import DataStoreError
from app.services.session_service import verify_password
from app.services.teacher_service import TeacherService


class TeacherInsertFails(InMemoryDataStore):
    """Store whose ``teachers`` inserts always fail."""

    async def insert(self, table, rows):
        if table == "teachers":
            raise DataStoreError(code="datastore_error", message="duplicate key value violates unique constraint")
        return await super().insert(table, rows)


def _add_students(store) -> None:
    rows = [
        {
            "id": f"st-{i}", "user_id": None, "nis": f"1{i:02d}", "class_id": "c-2" if i % 2 else "c-1",
            "angkatan": "2024", "school_level": "SMA" if i > 5 else "SMP", "status": "ACTIVE",
            "created_at": f"2025-08-{i:02d}T00:00:00+00:00",
        }
        for i in range(2, 12)
    ]
    asyncio.run(store.insert("students", rows))


class TestBulkTeachers:
    def test_payload_must_be_array(self, login_as) -> None:
        resp = login_as("ADMIN").post("/api/teachers/bulk", json={"username": "x"})

        assert resp.status_code == 400
        assert resp.json()["error"] == "Payload harus berupa array"

    def test_admin_only(self, login_as) -> None:
        assert login_as("GURU").post("/api/teachers/bulk", json=[]).status_code == 401

    def test_items_are_isolated(self, login_as, store) -> None:
        items = [
            {"full_name": "Ani", "username": "ani", "password": "pw-ani", "nip": "123", "gender": "P"},
            {"full_name": "Tanpa Password", "username": "nopw"},
            {"full_name": "Duplikat", "username": "guru1", "password": "x"},
            {"full_name": "Dedi", "username": "dedi", "password": "pw-dedi", "gender": "X"},
            "not-an-object",
        ]

        resp = login_as("ADMIN").post("/api/teachers/bulk", json=items)

        assert resp.status_code == 200
        results = resp.json()["results"]
        assert [r["success"] for r in results] == [True, False, False, True, False]
        assert results[1]["error"] == "Nama, Username, dan Password harus diisi"
        assert results[2]["error"] == "Username sudah digunakan"
        assert results[4]["error"] == "Nama, Username, dan Password harus diisi"
        assert results[0]["item"] == items[0]

        users = {u["username"]: u for u in store.table("users")}
        assert users["ani"]["role"] == "GURU"
        assert verify_password("pw-ani", users["ani"]["password_hash"])
        teachers = {t["user_id"]: t for t in store.table("teachers")}
        assert teachers[users["ani"]["id"]]["gender"] == "P"
        assert teachers[users["ani"]["id"]]["nip"] == "123"
        assert teachers[users["dedi"]["id"]]["gender"] is None
        assert teachers[users["dedi"]["id"]]["nip"] is None

    @pytest.mark.asyncio
    async def test_failed_teacher_row_removes_user(self) -> None:
        store = TeacherInsertFails({"users": []})
        service = TeacherService(store)

        [result] = await service.bulk_create([{"full_name": "Eka", "username": "eka", "password": "pw"}])

        assert result.success is False
        assert result.error == "duplicate key value violates unique constraint"
        assert store.table("users") == []


class TestListTeachers:
    def test_unpaginated_list_has_no_headers(self, login_as) -> None:
        resp = login_as("GURU").get("/api/teachers")

        assert resp.status_code == 200
        assert resp.json()[0]["user"]["full_name"] == "Budi Guru"
        assert "X-Page" not in resp.headers

    def test_students_may_not_list_teachers(self, login_as) -> None:
        assert login_as("SISWA").get("/api/teachers").status_code == 401

    def test_paginated_list_sets_headers(self, login_as) -> None:
        resp = login_as("ADMIN").get("/api/teachers", params={"page": "1", "limit": "10"})

        assert resp.headers["X-Page"] == "1"
        assert resp.headers["X-Limit"] == "10"
        assert resp.headers["X-Total-Count"] == "1"


class TestStudents:
    def test_filters(self, login_as, store) -> None:
        _add_students(store)
        client = login_as("WALI")

        by_level = client.get("/api/students", params={"school_level": "SMA"}).json()
        by_class = client.get("/api/students", params={"class_id": "c-1", "angkatan": "2024"}).json()

        assert {s["school_level"] for s in by_level} == {"SMA"}
        assert len(by_level) == 6
        assert {s["class_id"] for s in by_class} == {"c-1"}
        assert len(by_class) == 5

    def test_pagination_window_and_headers(self, login_as, store) -> None:
        _add_students(store)

        resp = login_as("ADMIN").get("/api/students", params={"page": "2", "limit": "4"})

        assert [s["id"] for s in resp.json()] == ["st-7", "st-6", "st-5", "st-4"]
        assert resp.headers["X-Page"] == "2"
        assert resp.headers["X-Total-Count"] == "11"
        assert resp.headers["X-Total-Pages"] == "3"

    def test_rows_embed_user_and_class(self, login_as) -> None:
        [student] = login_as("SISWA").get("/api/students").json()

        assert student["user"]["username"] == "siswa1"
        assert "password_hash" not in student["user"]
        assert student["class"]["name"] == "VII-A"

    def test_requires_session(self, client) -> None:
        assert client.get("/api/students").status_code == 401

    def test_enrollments_newest_first(self, login_as, store) -> None:
        asyncio.run(store.insert("student_enrollments", [
            {"id": "en-1", "student_id": "st-1", "class_id": "c-1", "academic_year_id": "y-old", "enrolled_at": "2024-07-15"},
            {"id": "en-2", "student_id": "st-1", "class_id": "c-1", "academic_year_id": "y-1", "enrolled_at": "2025-07-14"},
            {"id": "en-3", "student_id": "st-other", "academic_year_id": "y-1", "enrolled_at": "2025-07-14"},
        ]))

        resp = login_as("ADMIN").get("/api/students/st-1/enrollments")

        enrollments = resp.json()["enrollments"]
        assert [e["id"] for e in enrollments] == ["en-2", "en-1"]
        assert enrollments[0]["academic_year"] == {"id": "y-1", "name": "2025/2026", "is_active": True}

    def test_enrollments_empty(self, login_as) -> None:
        assert login_as("ADMIN").get("/api/students/nobody/enrollments").json() == {"enrollments": []}


@pytest.mark.asyncio
async def test_teacher_list_count_only_when_paginated(store) -> None:
    rows, total = await TeacherService(store).list()

    assert total is None
    assert len(rows) == 1
    assert await store.count(Query("teachers")) == 1
