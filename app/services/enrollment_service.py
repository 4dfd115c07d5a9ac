"""Moving students between classes and years.

Every move closes the student's ``ACTIVE`` enrollment (status, ``ended_at``,
notes) and, for promotions, opens a new ``ACTIVE`` one in the target class.
``students.class_id`` always follows the open enrollment; graduates have none.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable

from app.adapters.datastore import AbstractDataStore, Query, Row, many, one
from app.core.errors import AppError, NotFoundAppError, ValidationAppError
from app.schemas.students import (
    BatchError,
    BatchGraduateRequest,
    BatchPromoteRequest,
    BatchResult,
    GraduateRequest,
    PromoteRequest,
)
from app.services.student_service import NOT_FOUND_MESSAGE

logger = logging.getLogger(__name__)

ENROLLMENT_ACTIVE = "ACTIVE"
ENROLLMENT_PROMOTED = "PROMOTED"
ENROLLMENT_RETAINED = "RETAINED"
ENROLLMENT_GRADUATED = "GRADUATED"
STUDENT_GRADUATED = "GRADUATED"

ENROLLMENTS = many("enrollments", "student_enrollments", "id", "class_id", "academic_year_id", "status", foreign_key="student_id")
STUDENT_WITH_ENROLLMENTS = (
    one("user", "users", "full_name"),
    one("class", "classes", "name", "grade_level", "school_level"),
    ENROLLMENTS,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _active_enrollment(student: Row, academic_year_id: str | None = None) -> Row | None:
    for enrollment in student.get("enrollments") or []:
        if enrollment.get("status") != ENROLLMENT_ACTIVE:
            continue
        if academic_year_id is None or enrollment.get("academic_year_id") == academic_year_id:
            return enrollment
    return None


def _student_name(student: Row) -> str:
    return (student.get("user") or {}).get("full_name") or "Unknown"


class EnrollmentService:
    def __init__(self, store: AbstractDataStore, now: Callable[[], datetime] = _utcnow) -> None:
        self.store = store
        self._now = now

    async def _require(self, table: str, row_id: str | None, message: str, *columns: str) -> Row:
        row = await self.store.fetch_one(Query(table).select(*columns).eq("id", row_id)) if row_id else None
        if row is None:
            raise NotFoundAppError(code=f"{table}_not_found", message=message)
        return row

    async def _student(self, student_id: str) -> Row:
        student = await self.store.fetch_one(
            Query("students").select("*", embeds=STUDENT_WITH_ENROLLMENTS).eq("id", student_id)
        )
        if student is None:
            raise NotFoundAppError(code="student_not_found", message=NOT_FOUND_MESSAGE)
        return student

    async def _close(self, enrollment_id: str, status: str, notes: str) -> None:
        stamp = self._now().isoformat()
        await self.store.update(
            Query("student_enrollments").eq("id", enrollment_id),
            {"status": status, "ended_at": stamp, "updated_at": stamp, "notes": notes},
        )

    async def _open(self, student_id: str, class_id: str, academic_year_id: str, notes: str, previous_id: str) -> Row:
        try:
            rows = await self.store.insert(
                "student_enrollments",
                {
                    "student_id": student_id,
                    "class_id": class_id,
                    "academic_year_id": academic_year_id,
                    "status": ENROLLMENT_ACTIVE,
                    "enrolled_at": self._now().isoformat(),
                    "notes": notes,
                },
            )
        except AppError:
            await self.store.update(
                Query("student_enrollments").eq("id", previous_id),
                {"status": ENROLLMENT_ACTIVE, "ended_at": None},
            )
            raise
        return rows[0]

    async def promote(self, student_id: str, payload: PromoteRequest) -> dict[str, Any]:
        """Move one student to ``to_class_id`` for ``to_academic_year_id``.

        ``enrollment_status`` marks how the old enrollment ended
        (``PROMOTED`` by default, ``RETAINED`` when repeating a grade). If the
        new enrollment cannot be written the old one is reopened.
        """
        if not payload.to_class_id or not payload.to_academic_year_id:
            raise ValidationAppError(
                code="promotion_target_required",
                message="to_class_id and to_academic_year_id are required",
            )

        student = await self._student(student_id)
        current = _active_enrollment(student)
        if current is None:
            raise ValidationAppError(code="no_active_enrollment", message="No active enrollment found for this student")

        target_class = await self._require(
            "classes", payload.to_class_id, "Target class not found", "id", "name", "academic_year_id", "school_level"
        )
        target_year = await self._require(
            "academic_years", payload.to_academic_year_id, "Target academic year not found", "id", "name"
        )

        default_notes = (
            "Tinggal di kelas yang sama" if payload.enrollment_status == ENROLLMENT_RETAINED else "Promoted to next grade"
        )
        await self._close(current["id"], payload.enrollment_status, payload.notes or default_notes)
        enrollment = await self._open(
            student_id,
            payload.to_class_id,
            payload.to_academic_year_id,
            payload.notes or "Promoted from previous grade",
            previous_id=current["id"],
        )
        await self.store.update(
            Query("students").eq("id", student_id),
            {"class_id": payload.to_class_id, "school_level": target_class.get("school_level")},
        )

        logger.info(
            "student.promoted",
            extra={"student_id": student_id, "class_id": payload.to_class_id, "academic_year_id": payload.to_academic_year_id},
        )
        return {
            "success": True,
            "message": f"Student promoted to {target_class.get('name')} ({target_year.get('name')})",
            "enrollment": enrollment,
        }

    async def graduate(self, student_id: str, payload: GraduateRequest | None = None) -> dict[str, Any]:
        student = await self._student(student_id)
        current = _active_enrollment(student)
        if current is None:
            raise ValidationAppError(code="no_active_enrollment", message="No active enrollment found for this student")

        notes = payload.notes if payload else None
        await self._close(current["id"], ENROLLMENT_GRADUATED, notes or "Successfully graduated")
        await self.store.update(
            Query("students").eq("id", student_id),
            {"class_id": None, "status": STUDENT_GRADUATED},
        )

        student_class = student.get("class") or {}
        logger.info("student.graduated", extra={"student_id": student_id})
        return {
            "success": True,
            "message": f"Student graduated successfully from {student_class.get('name') or 'class'}",
            "graduation_level": student_class.get("school_level"),
        }

    async def batch_promote(self, payload: BatchPromoteRequest) -> BatchResult:
        """Promote every student of the mapped source classes.

        Students are processed one by one; a failure is recorded against that
        student and the batch continues.
        """
        if not payload.academic_year_from or not payload.academic_year_to or not payload.class_mappings:
            raise ValidationAppError(
                code="batch_fields_required",
                message="Required fields: academic_year_from, academic_year_to, class_mappings",
            )

        year_from = await self._require("academic_years", payload.academic_year_from, "Source academic year not found", "id", "name")
        year_to = await self._require("academic_years", payload.academic_year_to, "Target academic year not found", "id", "name")

        targets = {mapping.from_class_id: mapping.to_class_id for mapping in payload.class_mappings}
        for class_ids, message in ((set(targets), "Some source classes not found"), (set(targets.values()), "Some target classes not found")):
            found = await self.store.fetch_all(Query("classes").select("id").in_("id", class_ids))
            if len(found) != len(class_ids):
                raise NotFoundAppError(code="classes_not_found", message=message)

        query = Query("students").select("id", "class_id", embeds=STUDENT_WITH_ENROLLMENTS).in_("class_id", list(targets))
        if payload.student_ids:
            query = query.in_("id", payload.student_ids)
        students = await self.store.fetch_all(query)
        if not students:
            raise NotFoundAppError(code="students_not_found", message="No students found matching criteria")

        result = BatchResult()
        for student in students:
            error = None
            current = _active_enrollment(student, payload.academic_year_from)
            to_class_id = targets.get(student.get("class_id"))
            if current is None:
                error = "No active enrollment in source academic year"
            elif to_class_id is None:
                error = "No class mapping found"
            else:
                try:
                    await self._close(current["id"], ENROLLMENT_PROMOTED, f"Batch promoted to {year_to['name']}")
                    await self._open(
                        student["id"],
                        to_class_id,
                        payload.academic_year_to,
                        f"Batch promoted from {year_from['name']}",
                        previous_id=current["id"],
                    )
                    await self.store.update(Query("students").eq("id", student["id"]), {"class_id": to_class_id})
                except AppError as exc:
                    error = exc.message or "Unknown error"

            if error is None:
                result.promoted_count += 1
            else:
                result.failed_count += 1
                result.errors.append(BatchError(student_id=student["id"], student_name=_student_name(student), error=error))

        result.success = result.failed_count == 0
        logger.info(
            "student.batch_promoted",
            extra={"promoted": result.promoted_count, "failed": result.failed_count},
        )
        return result

    async def batch_graduate(self, payload: BatchGraduateRequest) -> BatchResult:
        if not payload.student_ids or not payload.academic_year_id:
            raise ValidationAppError(
                code="batch_fields_required",
                message="Required fields: student_ids (array), academic_year_id",
            )

        await self._require("academic_years", payload.academic_year_id, "Academic year not found", "id", "name")
        students = await self.store.fetch_all(
            Query("students").select("id", "class_id", embeds=STUDENT_WITH_ENROLLMENTS).in_("id", payload.student_ids)
        )
        if not students:
            raise NotFoundAppError(code="students_not_found", message="No students found with provided IDs")

        base_notes = payload.notes or "Batch graduation processed"
        result = BatchResult()
        for student in students:
            error = None
            current = _active_enrollment(student, payload.academic_year_id)
            if current is None:
                error = "No active enrollment in specified academic year"
            else:
                class_name = (student.get("class") or {}).get("name") or "class"
                try:
                    await self._close(current["id"], ENROLLMENT_GRADUATED, f"{base_notes} - Graduated from {class_name}")
                    await self.store.update(
                        Query("students").eq("id", student["id"]),
                        {"class_id": None, "status": STUDENT_GRADUATED},
                    )
                except AppError as exc:
                    error = exc.message or "Unknown error"

            if error is None:
                result.promoted_count += 1
            else:
                result.failed_count += 1
                result.errors.append(BatchError(student_id=student["id"], student_name=_student_name(student), error=error))

        result.success = result.failed_count == 0
        result.message = (
            f"Batch graduation completed: {result.promoted_count} graduated, {result.failed_count} failed"
        )
        return result
