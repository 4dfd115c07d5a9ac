"""Tests for the academic year endpoints and cascade delete."""

import asyncio
from datetime import date

import pytest

from app.adapters.datastore import Query
from app.schemas.academic_years import AcademicYearUpdate
from app.services.academic_year_service import AcademicYearService


def _seed_content(store) -> None:
    async def seed() -> None:
        await store.insert("assignments", [
            {"id": "as-1", "teaching_assignment_id": "ta-1", "title": "PR 1", "type": "TUGAS"},
        ])
        await store.insert("student_submissions", {"id": "sub-1", "assignment_id": "as-1", "student_id": "st-1"})
        await store.insert("grades", {"id": "g-1", "submission_id": "sub-1", "score": 90})
        await store.insert("quizzes", {"id": "q-1", "teaching_assignment_id": "ta-1", "title": "Kuis"})
        await store.insert("quiz_questions", {"id": "qq-1", "quiz_id": "q-1"})
        await store.insert("quiz_submissions", {"id": "qs-1", "quiz_id": "q-1", "student_id": "st-1"})
        await store.insert("exams", {"id": "e-1", "teaching_assignment_id": "ta-1", "title": "UTS"})
        await store.insert("exam_questions", {"id": "eq-1", "exam_id": "e-1"})
        await store.insert("exam_submissions", {"id": "es-1", "exam_id": "e-1", "student_id": "st-1"})
        await store.insert("materials", {"id": "m-1", "teaching_assignment_id": "ta-1"})
        await store.insert("student_enrollments", {"id": "en-1", "student_id": "st-1", "academic_year_id": "y-1"})

    asyncio.run(seed())


def test_list_is_newest_first(login_as) -> None:
    resp = login_as("ADMIN").get("/api/academic-years")

    assert resp.status_code == 200
    assert [y["id"] for y in resp.json()] == ["y-1", "y-old"]


def test_create_requires_name(login_as) -> None:
    resp = login_as("ADMIN").post("/api/academic-years", json={"status": "PLANNED"})

    assert resp.status_code == 400
    assert resp.json()["error"] == "Nama tahun ajaran harus diisi"


def test_create_planned_year_leaves_active_year_alone(login_as, store) -> None:
    resp = login_as("ADMIN").post("/api/academic-years", json={"name": "2026/2027", "start_date": "2026-07-13"})

    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "PLANNED"
    assert body["is_active"] is False
    assert body["start_date"] == "2026-07-13"
    assert next(y for y in store.table("academic_years") if y["id"] == "y-1")["is_active"] is True


def test_create_active_year_completes_previous_one(login_as, store) -> None:
    resp = login_as("ADMIN").post("/api/academic-years", json={"name": "2026/2027", "status": "ACTIVE"})

    assert resp.json()["is_active"] is True
    previous = next(y for y in store.table("academic_years") if y["id"] == "y-1")
    assert previous["is_active"] is False
    assert previous["status"] == "COMPLETED"
    assert sum(1 for y in store.table("academic_years") if y["is_active"]) == 1


def test_is_active_flag_implies_active_status(login_as) -> None:
    resp = login_as("ADMIN").post("/api/academic-years", json={"name": "2026/2027", "is_active": True})

    assert resp.json()["status"] == "ACTIVE"


def test_get_unknown_year_is_404(login_as) -> None:
    resp = login_as("ADMIN").get("/api/academic-years/missing")

    assert resp.status_code == 404
    assert resp.json()["error"] == "Tahun ajaran tidak ditemukan"


def test_rename_does_not_touch_activation(login_as) -> None:
    resp = login_as("ADMIN").put("/api/academic-years/y-1", json={"name": "2025/2026 Genap"})

    assert resp.status_code == 200
    assert resp.json()["name"] == "2025/2026 Genap"
    assert resp.json()["is_active"] is True
    assert resp.json()["status"] == "ACTIVE"


def test_activating_old_year_deactivates_current(login_as, store) -> None:
    resp = login_as("ADMIN").put("/api/academic-years/y-old", json={"status": "ACTIVE"})

    assert resp.json()["is_active"] is True
    current = next(y for y in store.table("academic_years") if y["id"] == "y-1")
    assert current["is_active"] is False


def test_complete_sets_status_and_end_date(login_as) -> None:
    resp = login_as("ADMIN").put("/api/academic-years/y-1/complete")

    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["message"] == "Tahun ajaran 2025/2026 berhasil diselesaikan"
    assert body["data"]["status"] == "COMPLETED"
    assert body["data"]["is_active"] is False
    assert body["data"]["end_date"] == date.today().isoformat()


def test_complete_unknown_year_is_404(login_as) -> None:
    assert login_as("ADMIN").put("/api/academic-years/missing/complete").status_code == 404


def test_update_unknown_year_keeps_active_year(login_as, store) -> None:
    resp = login_as("ADMIN").put("/api/academic-years/does-not-exist", json={"is_active": True})

    assert resp.status_code == 404
    current = next(y for y in store.table("academic_years") if y["id"] == "y-1")
    assert current["is_active"] is True
    assert current["status"] == "ACTIVE"


def test_related_counts(login_as, store) -> None:
    _seed_content(store)

    body = login_as("ADMIN").get("/api/academic-years/y-1/related").json()

    assert body["classes"] == {"count": 1, "names": ["VII-A"]}
    assert body["teaching_assignments"] == 1
    assert body["student_enrollments"] == 1
    assert body["materials"] == 1
    assert body["assignments"] == 1
    assert body["quizzes"] == 1
    assert body["exams"] == 1
    assert body["submissions"] == 1
    assert body["quiz_submissions"] == 1
    assert body["exam_submissions"] == 1
    assert body["total"] == 10


def test_delete_cascades_and_detaches_students(login_as, store) -> None:
    _seed_content(store)

    resp = login_as("ADMIN").delete("/api/academic-years/y-1")

    assert resp.status_code == 200
    assert resp.json() == {"success": True}
    for table in (
        "classes", "teaching_assignments", "assignments", "student_submissions", "grades",
        "quizzes", "quiz_questions", "quiz_submissions", "exams", "exam_questions",
        "exam_submissions", "materials", "student_enrollments",
    ):
        assert store.table(table) == [], table
    assert [y["id"] for y in store.table("academic_years")] == ["y-old"]
    [student] = store.table("students")
    assert student["class_id"] is None


def test_delete_unknown_year_is_404(login_as) -> None:
    assert login_as("ADMIN").delete("/api/academic-years/missing").status_code == 404


@pytest.mark.asyncio
async def test_update_without_changes_returns_current_row(store) -> None:
    service = AcademicYearService(store)

    year = await service.update("y-1", AcademicYearUpdate())

    assert year["name"] == "2025/2026"
    assert await store.count(Query("academic_years").eq("is_active", True)) == 1
