"""Read models exposed to external systems (HR/KPI dashboards).

Responses are flattened, stable shapes; the dashboard routes keep their
nested shapes.

KPI groups:
    A: content production (materials, TUGAS assignments, exams, quizzes).
    B: grading discipline (turnaround hours, 72 hour SLA, feedback length).
    C: student performance (average score per student and assessment kind).
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Iterable

from app.adapters.datastore import AbstractDataStore, Query, Row, one
from app.utils.pagination import OffsetWindow

logger = logging.getLogger(__name__)

GRADING_SLA_HOURS = 72
DEFAULT_GRADING_LIMIT = 1000
ASSIGNMENT_TYPE_TASK = "TUGAS"


def _parse_timestamp(value: Any) -> datetime | None:
    if not value or not isinstance(value, str):
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _word_count(text: str | None) -> int:
    return len(text.split()) if text else 0


def _average(values: Iterable[float]) -> float:
    values = list(values)
    return round(sum(values) / len(values), 2) if values else 0


def _dig(row: Row | None, *path: str) -> Any:
    for key in path:
        if not isinstance(row, dict):
            return None
        row = row.get(key)
    return row


def _meta(total: int | None, window: OffsetWindow) -> dict[str, Any]:
    return {"total": total, "limit": window.limit, "offset": window.offset}


class ExternalService:
    def __init__(self, store: AbstractDataStore) -> None:
        self.store = store

    async def teachers(self, window: OffsetWindow) -> dict[str, Any]:
        result = await self.store.fetch(
            Query("teachers")
            .select("id", "nip", "created_at", embeds=[one("user", "users", "id", "username", "full_name")], count=True)
            .order("created_at", ascending=False)
            .range(window.offset, window.to)
        )
        data = [
            {
                "id": row["id"],
                "nip": row.get("nip"),
                "user_id": _dig(row, "user", "id"),
                "full_name": _dig(row, "user", "full_name"),
                "username": _dig(row, "user", "username"),
                "created_at": row.get("created_at"),
            }
            for row in result.rows
        ]
        return {"data": data, "meta": _meta(result.count, window)}

    async def teaching_assignments(self, window: OffsetWindow, academic_year_id: str | None = None) -> dict[str, Any]:
        query = (
            Query("teaching_assignments")
            .select(
                "id", "teacher_id", "subject_id", "class_id", "academic_year_id", "created_at",
                embeds=[
                    one("teacher", "teachers", "id", embeds=[one("user", "users", "full_name")]),
                    one("subject", "subjects", "id", "name"),
                    one("class", "classes", "id", "name", "school_level"),
                    one("academic_year", "academic_years", "id", "name", "status"),
                ],
                count=True,
            )
            .order("created_at", ascending=False)
            .range(window.offset, window.to)
        )
        if academic_year_id:
            query = query.eq("academic_year_id", academic_year_id)

        result = await self.store.fetch(query)
        data = [
            {
                "id": row["id"],
                "teacher_name": _dig(row, "teacher", "user", "full_name"),
                "teacher_id": row.get("teacher_id"),
                "subject": _dig(row, "subject", "name"),
                "subject_id": row.get("subject_id"),
                "class_name": _dig(row, "class", "name"),
                "class_id": row.get("class_id"),
                "school_level": _dig(row, "class", "school_level"),
                "academic_year": _dig(row, "academic_year", "name"),
                "created_at": row.get("created_at"),
            }
            for row in result.rows
        ]
        return {"data": data, "meta": _meta(result.count, window)}

    async def _teaching_assignment_ids(self, **filters: str | None) -> list[str]:
        query = Query("teaching_assignments").select("id")
        for column, value in filters.items():
            if value:
                query = query.eq(column, value)
        return [row["id"] for row in await self.store.fetch_all(query)]

    async def content_kpi(self, teacher_id: str | None = None) -> dict[str, Any]:
        """Content counts per kind, scoped to one teacher when ``teacher_id`` is given.

        A teacher without teaching assignments has produced nothing, so every
        count is zero.
        """
        ta_ids: list[str] | None = None
        if teacher_id:
            ta_ids = await self._teaching_assignment_ids(teacher_id=teacher_id)

        sources = {
            "a1_materials": Query("materials").select("id", "teaching_assignment_id", "created_at", "type"),
            "a2_assignments": Query("assignments")
            .select("id", "teaching_assignment_id", "created_at", "due_date")
            .eq("type", ASSIGNMENT_TYPE_TASK),
            "a3_exams": Query("exams").select("id", "teaching_assignment_id", "created_at", "start_time"),
            "a4_quizzes": Query("quizzes").select("id", "teaching_assignment_id", "created_at"),
        }

        metrics: dict[str, Any] = {}
        for name, query in sources.items():
            if ta_ids is not None and not ta_ids:
                rows: list[Row] = []
            else:
                if ta_ids is not None:
                    query = query.in_("teaching_assignment_id", ta_ids)
                rows = await self.store.fetch_all(query)
            metrics[name] = {"count": len(rows), "details": rows}

        return {"teacher_id": teacher_id or "all", "kpi_metrics": metrics}

    async def grading_kpi(self, teacher_id: str | None = None, limit: int = DEFAULT_GRADING_LIMIT) -> dict[str, Any]:
        """Grading turnaround for the latest ``limit`` grades.

        The teacher filter applies after the limit, so a teacher sees their
        share of the most recent grades overall.
        """
        grades = await self.store.fetch_all(
            Query("grades")
            .select(
                "id", "score", "feedback", "graded_at",
                embeds=[
                    one(
                        "submission", "student_submissions", "id", "submitted_at",
                        embeds=[
                            one(
                                "assignment", "assignments", "id", "title", "type",
                                embeds=[
                                    one(
                                        "teaching_assignment", "teaching_assignments", "id", "teacher_id",
                                        embeds=[one("subject", "subjects", "name"), one("class", "classes", "name")],
                                    )
                                ],
                            )
                        ],
                    )
                ],
            )
            .order("graded_at", ascending=False)
            .limit(limit)
        )

        data = []
        for grade in grades:
            teaching = _dig(grade, "submission", "assignment", "teaching_assignment")
            if teacher_id and _dig(teaching, "teacher_id") != teacher_id:
                continue

            submitted_at = _parse_timestamp(_dig(grade, "submission", "submitted_at"))
            graded_at = _parse_timestamp(grade.get("graded_at"))
            hours = None
            if submitted_at and graded_at:
                hours = round((graded_at - submitted_at).total_seconds() / 3600, 2)
            words = _word_count(grade.get("feedback"))

            data.append(
                {
                    "grade_id": grade["id"],
                    "teacher_id": _dig(teaching, "teacher_id"),
                    "subject": _dig(teaching, "subject", "name"),
                    "class": _dig(teaching, "class", "name"),
                    "assignment_title": _dig(grade, "submission", "assignment", "title"),
                    "grading_time_hours": hours,
                    "within_sla": hours is not None and hours <= GRADING_SLA_HOURS,
                    "feedback_word_count": words,
                    "has_feedback": words > 0,
                }
            )

        total = len(data)
        timed = [item["grading_time_hours"] for item in data if item["grading_time_hours"] is not None]
        compliant = sum(1 for item in data if item["within_sla"])
        return {
            "meta": {
                "total_processed": total,
                "avg_grading_time_hours": _average(timed),
                "sla_compliance_rate_percent": round(compliant / total * 100, 2) if total else 0,
                "avg_feedback_word_count": _average(item["feedback_word_count"] for item in data),
            },
            "data": data,
        }

    async def student_performance_kpi(
        self,
        teacher_id: str | None = None,
        class_id: str | None = None,
        academic_year_id: str | None = None,
    ) -> dict[str, Any] | list:
        """Average assignment, quiz and exam score per student.

        Returns an empty list when no teaching assignment matches the filters.
        """
        ta_ids = await self._teaching_assignment_ids(
            teacher_id=teacher_id, class_id=class_id, academic_year_id=academic_year_id
        )
        if not ta_ids:
            return []

        assignments = {
            row["id"]: row
            for row in await self.store.fetch_all(
                Query("assignments").select("id", "teaching_assignment_id", "title", "type").in_("teaching_assignment_id", ta_ids)
            )
        }
        quizzes = {
            row["id"]: row
            for row in await self.store.fetch_all(
                Query("quizzes").select("id", "teaching_assignment_id", "title").in_("teaching_assignment_id", ta_ids)
            )
        }
        exams = {
            row["id"]: row
            for row in await self.store.fetch_all(
                Query("exams").select("id", "teaching_assignment_id", "title").in_("teaching_assignment_id", ta_ids)
            )
        }

        students: dict[str, dict[str, list[dict[str, Any]]]] = {}

        def bucket(student_id: str) -> dict[str, list[dict[str, Any]]]:
            return students.setdefault(student_id, {"assignments": [], "quizzes": [], "exams": []})

        if assignments:
            submissions = {
                row["id"]: row
                for row in await self.store.fetch_all(
                    Query("student_submissions").select("id", "student_id", "assignment_id").in_("assignment_id", list(assignments))
                )
            }
            if submissions:
                grades = await self.store.fetch_all(
                    Query("grades").select("score", "submission_id").in_("submission_id", list(submissions))
                )
                for grade in grades:
                    submission = submissions[grade["submission_id"]]
                    assignment = assignments.get(submission.get("assignment_id"))
                    if not submission.get("student_id") or assignment is None:
                        continue
                    bucket(submission["student_id"])["assignments"].append(
                        {
                            "title": assignment.get("title"),
                            "type": assignment.get("type"),
                            "score": grade.get("score") or 0,
                            "ta_id": assignment.get("teaching_assignment_id"),
                        }
                    )

        for kind, containers, table, key in (
            ("quizzes", quizzes, "quiz_submissions", "quiz_id"),
            ("exams", exams, "exam_submissions", "exam_id"),
        ):
            if not containers:
                continue
            rows = await self.store.fetch_all(
                Query(table).select("total_score", "student_id", key).in_(key, list(containers))
            )
            for row in rows:
                container = containers.get(row.get(key))
                if not row.get("student_id") or container is None:
                    continue
                bucket(row["student_id"])[kind].append(
                    {
                        "title": container.get("title"),
                        "score": row.get("total_score") or 0,
                        "ta_id": container.get("teaching_assignment_id"),
                    }
                )

        data = [
            {
                "student_id": student_id,
                "averages": {kind: _average(item["score"] for item in items) for kind, items in scores.items()},
                "details": {kind: len(items) for kind, items in scores.items()},
            }
            for student_id, scores in students.items()
        ]
        return {
            "meta": {
                "total_students": len(data),
                "filters": {"teacherId": teacher_id, "classId": class_id, "academicYearId": academic_year_id},
            },
            "data": data,
        }
