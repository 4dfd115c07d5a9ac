"""Academic year lifecycle.

An academic year is ``PLANNED``, ``ACTIVE`` or ``COMPLETED``; ``is_active``
mirrors ``status == ACTIVE`` and at most one year is active at a time.
Activating a year completes whichever year was active before.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any

from app.adapters.datastore import AbstractDataStore, Query, Row
from app.core.errors import NotFoundAppError, ValidationAppError
from app.schemas.academic_years import AcademicYearCreate, AcademicYearUpdate

logger = logging.getLogger(__name__)

STATUS_PLANNED = "PLANNED"
STATUS_ACTIVE = "ACTIVE"
STATUS_COMPLETED = "COMPLETED"

NOT_FOUND_MESSAGE = "Tahun ajaran tidak ditemukan"


def _iso(value: date | None) -> str | None:
    return value.isoformat() if value else None


def _ids(rows: list[Row]) -> list[Any]:
    return [row["id"] for row in rows]


class AcademicYearService:
    """CRUD plus cascade delete for ``academic_years``."""

    def __init__(self, store: AbstractDataStore) -> None:
        self.store = store

    async def list(self) -> list[Row]:
        return await self.store.fetch_all(
            Query("academic_years").order("created_at", ascending=False)
        )

    async def get(self, year_id: str) -> Row:
        year = await self.store.fetch_one(Query("academic_years").eq("id", year_id))
        if year is None:
            raise NotFoundAppError(code="academic_year_not_found", message=NOT_FOUND_MESSAGE)
        return year

    async def _deactivate_others(self, keep_id: str | None = None) -> None:
        query = Query("academic_years").eq("is_active", True)
        if keep_id is not None:
            query = query.neq("id", keep_id)
        closed = await self.store.update(query, {"is_active": False, "status": STATUS_COMPLETED})
        if closed:
            logger.info("academic_year.deactivated", extra={"count": len(closed)})

    async def create(self, payload: AcademicYearCreate) -> Row:
        if not payload.name:
            raise ValidationAppError(
                code="academic_year_name_required",
                message="Nama tahun ajaran harus diisi",
                details={"field": "name"},
            )

        status = payload.status or (STATUS_ACTIVE if payload.is_active else STATUS_PLANNED)
        is_active = bool(payload.is_active) or payload.status == STATUS_ACTIVE

        if is_active:
            await self._deactivate_others()

        rows = await self.store.insert(
            "academic_years",
            {
                "name": payload.name,
                "start_date": _iso(payload.start_date),
                "end_date": _iso(payload.end_date),
                "status": status,
                "is_active": is_active,
            },
        )
        logger.info("academic_year.created", extra={"academic_year_id": rows[0]["id"], "status": status})
        return rows[0]

    async def update(self, year_id: str, payload: AcademicYearUpdate) -> Row:
        """Apply the fields present in ``payload``.

        ``status`` and ``is_active`` are kept in sync only when at least one
        of them was supplied; renaming a year leaves its activation alone.
        """
        current = await self.get(year_id)
        supplied = payload.model_dump(exclude_unset=True)
        changes: Row = {}
        for field in ("name", "start_date", "end_date"):
            if field in supplied:
                value = supplied[field]
                changes[field] = _iso(value) if isinstance(value, date) else value

        if payload.is_active is not None or payload.status is not None:
            status = payload.status or (STATUS_ACTIVE if payload.is_active else None)
            is_active = payload.is_active if payload.is_active is not None else payload.status == STATUS_ACTIVE
            if status is not None:
                changes["status"] = status
            changes["is_active"] = is_active
            if is_active:
                await self._deactivate_others(keep_id=year_id)

        if not changes:
            return current

        rows = await self.store.update(Query("academic_years").eq("id", year_id), changes)
        if not rows:
            raise NotFoundAppError(code="academic_year_not_found", message=NOT_FOUND_MESSAGE)
        return rows[0]

    async def complete(self, year_id: str, today: date | None = None) -> Row:
        await self.get(year_id)
        rows = await self.store.update(
            Query("academic_years").eq("id", year_id),
            {
                "status": STATUS_COMPLETED,
                "is_active": False,
                "end_date": (today or date.today()).isoformat(),
            },
        )
        return rows[0]

    async def related_counts(self, year_id: str) -> dict[str, Any]:
        """Count everything a delete of this year would remove."""
        store = self.store
        classes = await store.fetch(
            Query("classes").select("id", "name", count=True).eq("academic_year_id", year_id)
        )
        teaching = await store.fetch(
            Query("teaching_assignments").select("id", count=True).eq("academic_year_id", year_id)
        )
        enrollments = await store.count(Query("student_enrollments").eq("academic_year_id", year_id))

        counts = dict.fromkeys(
            ("materials", "assignments", "quizzes", "exams", "submissions", "quiz_submissions", "exam_submissions"),
            0,
        )
        ta_ids = _ids(teaching.rows)
        if ta_ids:
            counts["materials"] = await store.count(Query("materials").in_("teaching_assignment_id", ta_ids))
            assignments = await store.fetch_all(Query("assignments").select("id").in_("teaching_assignment_id", ta_ids))
            quizzes = await store.fetch_all(Query("quizzes").select("id").in_("teaching_assignment_id", ta_ids))
            exams = await store.fetch_all(Query("exams").select("id").in_("teaching_assignment_id", ta_ids))
            counts["assignments"] = len(assignments)
            counts["quizzes"] = len(quizzes)
            counts["exams"] = len(exams)
            if assignments:
                counts["submissions"] = await store.count(
                    Query("student_submissions").in_("assignment_id", _ids(assignments))
                )
            if quizzes:
                counts["quiz_submissions"] = await store.count(Query("quiz_submissions").in_("quiz_id", _ids(quizzes)))
            if exams:
                counts["exam_submissions"] = await store.count(Query("exam_submissions").in_("exam_id", _ids(exams)))

        class_count = classes.count or 0
        teaching_count = teaching.count or 0
        return {
            "classes": {"count": class_count, "names": [row["name"] for row in classes.rows]},
            "teaching_assignments": teaching_count,
            "student_enrollments": enrollments,
            **counts,
            "total": class_count + teaching_count + enrollments + sum(counts.values()),
        }

    async def delete(self, year_id: str) -> None:
        """Delete the year and everything hanging off it, leaves first.

        Students of the removed classes are detached rather than deleted.
        """
        store = self.store
        await self.get(year_id)

        class_ids = _ids(await store.fetch_all(Query("classes").select("id").eq("academic_year_id", year_id)))
        ta_ids = _ids(
            await store.fetch_all(Query("teaching_assignments").select("id").eq("academic_year_id", year_id))
        )

        if ta_ids:
            assignment_ids = _ids(
                await store.fetch_all(Query("assignments").select("id").in_("teaching_assignment_id", ta_ids))
            )
            if assignment_ids:
                submission_ids = _ids(
                    await store.fetch_all(Query("student_submissions").select("id").in_("assignment_id", assignment_ids))
                )
                if submission_ids:
                    await store.delete(Query("grades").in_("submission_id", submission_ids))
                await store.delete(Query("student_submissions").in_("assignment_id", assignment_ids))

            quiz_ids = _ids(await store.fetch_all(Query("quizzes").select("id").in_("teaching_assignment_id", ta_ids)))
            if quiz_ids:
                await store.delete(Query("quiz_submissions").in_("quiz_id", quiz_ids))
                await store.delete(Query("quiz_questions").in_("quiz_id", quiz_ids))

            exam_ids = _ids(await store.fetch_all(Query("exams").select("id").in_("teaching_assignment_id", ta_ids)))
            if exam_ids:
                await store.delete(Query("exam_submissions").in_("exam_id", exam_ids))
                await store.delete(Query("exam_questions").in_("exam_id", exam_ids))

            for table in ("materials", "assignments", "quizzes", "exams"):
                await store.delete(Query(table).in_("teaching_assignment_id", ta_ids))

        await store.delete(Query("teaching_assignments").eq("academic_year_id", year_id))
        await store.delete(Query("student_enrollments").eq("academic_year_id", year_id))
        if class_ids:
            await store.update(Query("students").in_("class_id", class_ids), {"class_id": None})
        await store.delete(Query("classes").eq("academic_year_id", year_id))
        await store.delete(Query("academic_years").eq("id", year_id))

        logger.info(
            "academic_year.deleted",
            extra={"academic_year_id": year_id, "classes": len(class_ids), "teaching_assignments": len(ta_ids)},
        )
