"""Tests for the API-key protected external read API."""

import asyncio

import pytest


def _seed_activity(store) -> None:
    async def seed() -> None:
        await store.insert("teachers", {"id": "t-2", "user_id": None, "created_at": "2025-07-05T00:00:00+00:00"})
        await store.insert("materials", [
            {"id": "m-1", "teaching_assignment_id": "ta-1", "type": "PDF"},
            {"id": "m-2", "teaching_assignment_id": "ta-other"},
        ])
        await store.insert("assignments", [
            {"id": "as-1", "teaching_assignment_id": "ta-1", "title": "PR Pecahan", "type": "TUGAS"},
            {"id": "as-2", "teaching_assignment_id": "ta-1", "title": "Latihan", "type": "LATIHAN"},
        ])
        await store.insert("student_submissions", [
            {"id": "sub-1", "assignment_id": "as-1", "student_id": "st-1", "submitted_at": "2025-08-01T08:00:00Z"},
            {"id": "sub-2", "assignment_id": "as-2", "student_id": "st-1", "submitted_at": "2025-08-01T00:00:00Z"},
        ])
        await store.insert("grades", [
            {"id": "g-1", "submission_id": "sub-1", "score": 90, "feedback": "Bagus sekali kerjanya",
             "graded_at": "2025-08-02T08:00:00Z"},
            {"id": "g-2", "submission_id": "sub-2", "score": None, "feedback": "",
             "graded_at": "2025-08-05T00:00:00Z"},
        ])
        await store.insert("quizzes", {"id": "q-1", "teaching_assignment_id": "ta-1", "title": "Kuis 1"})
        await store.insert("quiz_submissions", {"id": "qs-1", "quiz_id": "q-1", "student_id": "st-1", "total_score": 80})
        await store.insert("exams", {"id": "e-1", "teaching_assignment_id": "ta-1", "title": "UTS"})
        await store.insert("exam_submissions", {"id": "es-1", "exam_id": "e-1", "student_id": "st-1", "total_score": 70})

    asyncio.run(seed())


@pytest.mark.parametrize(
    "path",
    [
        "/api/external/teachers",
        "/api/external/teaching-assignments",
        "/api/external/kpi/content",
        "/api/external/kpi/grading",
        "/api/external/kpi/student-performance",
    ],
)
def test_every_route_needs_the_key(client, path) -> None:
    assert client.get(path).status_code == 401
    assert client.get(path, headers={"x-api-key": "wrong"}).status_code == 401


def test_session_cookie_is_not_enough(login_as) -> None:
    assert login_as("ADMIN").get("/api/external/teachers").status_code == 401


def test_teachers_are_flattened(client, api_key_headers) -> None:
    body = client.get("/api/external/teachers", headers=api_key_headers).json()

    assert body["meta"] == {"total": 1, "limit": 100, "offset": 0}
    assert body["data"] == [
        {
            "id": "t-1",
            "nip": "1987",
            "user_id": "u-guru",
            "full_name": "Budi Guru",
            "username": "guru1",
            "created_at": "2025-07-02T00:00:00+00:00",
        }
    ]


def test_teachers_offset_window(client, api_key_headers) -> None:
    body = client.get("/api/external/teachers", params={"limit": "1", "offset": "5"}, headers=api_key_headers).json()

    assert body["data"] == []
    assert body["meta"] == {"total": 1, "limit": 1, "offset": 5}


def test_teaching_assignments(client, api_key_headers) -> None:
    body = client.get("/api/external/teaching-assignments", headers=api_key_headers).json()

    [row] = body["data"]
    assert row["teacher_name"] == "Budi Guru"
    assert row["subject"] == "Matematika"
    assert row["class_name"] == "VII-A"
    assert row["school_level"] == "SMP"
    assert row["academic_year"] == "2025/2026"
    assert body["meta"]["total"] == 1


def test_teaching_assignments_by_year(client, api_key_headers) -> None:
    body = client.get(
        "/api/external/teaching-assignments", params={"academic_year_id": "y-old"}, headers=api_key_headers
    ).json()

    assert body["data"] == []
    assert body["meta"]["total"] == 0


def test_content_kpi_counts_task_assignments_only(client, store, api_key_headers) -> None:
    _seed_activity(store)

    everything = client.get("/api/external/kpi/content", headers=api_key_headers).json()
    teacher = client.get("/api/external/kpi/content", params={"teacher_id": "t-1"}, headers=api_key_headers).json()

    assert everything["teacher_id"] == "all"
    assert everything["kpi_metrics"]["a1_materials"]["count"] == 2
    assert teacher["teacher_id"] == "t-1"
    counts = {name: metric["count"] for name, metric in teacher["kpi_metrics"].items()}
    assert counts == {"a1_materials": 1, "a2_assignments": 1, "a3_exams": 1, "a4_quizzes": 1}
    assert teacher["kpi_metrics"]["a2_assignments"]["details"][0]["id"] == "as-1"


def test_content_kpi_for_teacher_without_classes(client, store, api_key_headers) -> None:
    _seed_activity(store)

    body = client.get("/api/external/kpi/content", params={"teacher_id": "t-2"}, headers=api_key_headers).json()

    assert all(metric == {"count": 0, "details": []} for metric in body["kpi_metrics"].values())


def test_grading_kpi(client, store, api_key_headers) -> None:
    _seed_activity(store)

    body = client.get("/api/external/kpi/grading", headers=api_key_headers).json()

    assert [row["grade_id"] for row in body["data"]] == ["g-2", "g-1"]
    late, on_time = body["data"]
    assert late["grading_time_hours"] == 96.0
    assert late["within_sla"] is False
    assert late["has_feedback"] is False
    assert on_time["grading_time_hours"] == 24.0
    assert on_time["within_sla"] is True
    assert on_time["feedback_word_count"] == 3
    assert on_time["subject"] == "Matematika"
    assert on_time["class"] == "VII-A"
    assert on_time["assignment_title"] == "PR Pecahan"
    assert body["meta"] == {
        "total_processed": 2,
        "avg_grading_time_hours": 60.0,
        "sla_compliance_rate_percent": 50.0,
        "avg_feedback_word_count": 1.5,
    }


def test_grading_kpi_limit_and_teacher_filter(client, store, api_key_headers) -> None:
    _seed_activity(store)

    limited = client.get("/api/external/kpi/grading", params={"limit": "1"}, headers=api_key_headers).json()
    other = client.get("/api/external/kpi/grading", params={"teacher_id": "t-2"}, headers=api_key_headers).json()

    assert [row["grade_id"] for row in limited["data"]] == ["g-2"]
    assert other["data"] == []
    assert other["meta"]["total_processed"] == 0
    assert other["meta"]["sla_compliance_rate_percent"] == 0


def test_grading_kpi_missing_timestamp(client, store, api_key_headers) -> None:
    asyncio.run(store.insert("grades", {"id": "g-x", "submission_id": None, "score": 50, "feedback": "ok"}))

    [row] = client.get("/api/external/kpi/grading", headers=api_key_headers).json()["data"]

    assert row["grading_time_hours"] is None
    assert row["within_sla"] is False


def test_student_performance(client, store, api_key_headers) -> None:
    _seed_activity(store)

    body = client.get(
        "/api/external/kpi/student-performance", params={"class_id": "c-1"}, headers=api_key_headers
    ).json()

    assert body["meta"] == {
        "total_students": 1,
        "filters": {"teacherId": None, "classId": "c-1", "academicYearId": None},
    }
    [student] = body["data"]
    assert student["student_id"] == "st-1"
    assert student["averages"] == {"assignments": 45.0, "quizzes": 80.0, "exams": 70.0}
    assert student["details"] == {"assignments": 2, "quizzes": 1, "exams": 1}


def test_student_performance_without_teaching_assignments(client, api_key_headers) -> None:
    resp = client.get(
        "/api/external/kpi/student-performance", params={"teacher_id": "t-none"}, headers=api_key_headers
    )

    assert resp.status_code == 200
    assert resp.json() == []
