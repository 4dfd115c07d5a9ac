"""Student accounts, listing and enrollment history."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from pydantic import ValidationError

from app.adapters.datastore import AbstractDataStore, Query, Row, one
from app.core.errors import AppError, NotFoundAppError, ValidationAppError
from app.schemas.students import StudentBulkItem, StudentCreate, StudentUpdate
from app.schemas.teachers import BulkItemResult
from app.services.account_service import (
    SYSTEM_ERROR_MESSAGE,
    create_account,
    ensure_username_available,
    normalize_gender,
)
from app.services.session_service import ROLE_STUDENT, hash_password
from app.services.teacher_service import MISSING_FIELDS_MESSAGE, require_array
from app.utils.pagination import PaginationParams, apply_pagination

logger = logging.getLogger(__name__)

STUDENT_STATUS_ACTIVE = "ACTIVE"
NOT_FOUND_MESSAGE = "Siswa tidak ditemukan"

STUDENT_COLUMNS = ("id", "user_id", "nis", "class_id", "angkatan", "school_level", "status", "created_at")
STUDENT_RELATIONS = (
    one("user", "users", "id", "username", "full_name", "role"),
    one("class", "classes", "id", "name", "grade_level", "school_level"),
)
ENROLLMENT_RELATIONS = (
    one("class", "classes", "id", "name", "grade_level", "school_level"),
    one("academic_year", "academic_years", "id", "name", "is_active"),
)

STUDENT_FILTERS = ("class_id", "angkatan", "school_level", "status")
PROFILE_FIELDS = ("nis", "class_id", "gender", "angkatan", "entry_year", "school_level", "status")


class StudentService:
    def __init__(self, store: AbstractDataStore) -> None:
        self.store = store

    async def list(
        self,
        filters: dict[str, str | None] | None = None,
        pagination: PaginationParams | None = None,
    ) -> tuple[list[Row], int | None]:
        query = (
            Query("students")
            .select(*STUDENT_COLUMNS, embeds=STUDENT_RELATIONS, count=pagination is not None)
            .order("created_at", ascending=False)
        )
        for column in STUDENT_FILTERS:
            value = (filters or {}).get(column)
            if value:
                query = query.eq(column, value)

        result = await self.store.fetch(apply_pagination(query, pagination))
        return result.rows, result.count

    async def get(self, student_id: str) -> Row:
        student = await self.store.fetch_one(
            Query("students").select("*", embeds=STUDENT_RELATIONS).eq("id", student_id)
        )
        if student is None:
            raise NotFoundAppError(code="student_not_found", message=NOT_FOUND_MESSAGE)
        return student

    async def create(self, payload: StudentCreate) -> Row:
        if not payload.username or not payload.password:
            raise ValidationAppError(code="credentials_required", message="Username dan password harus diisi")

        _, student = await create_account(
            self.store,
            username=payload.username,
            password=payload.password,
            full_name=payload.full_name,
            role=ROLE_STUDENT,
            profile_table="students",
            profile={
                "nis": payload.nis,
                "class_id": payload.class_id or None,
                "gender": payload.gender,
                "angkatan": payload.angkatan or None,
                "entry_year": payload.entry_year or None,
                "school_level": payload.school_level or None,
                "status": STUDENT_STATUS_ACTIVE,
            },
        )
        logger.info("student.created", extra={"student_id": student["id"]})
        return await self.get(student["id"])

    async def update(self, student_id: str, payload: StudentUpdate) -> Row:
        student = await self.get(student_id)

        account: Row = {}
        if payload.username:
            await ensure_username_available(self.store, payload.username, exclude_user_id=student.get("user_id"))
            account["username"] = payload.username
        if payload.full_name:
            account["full_name"] = payload.full_name
        if payload.password:
            account["password_hash"] = await asyncio.to_thread(hash_password, payload.password)
        if account and student.get("user_id"):
            await self.store.update(Query("users").eq("id", student["user_id"]), account)

        supplied = payload.model_dump(exclude_unset=True)
        profile = {field: supplied[field] for field in PROFILE_FIELDS if field in supplied}
        if profile:
            await self.store.update(Query("students").eq("id", student_id), profile)

        return await self.get(student_id)

    async def delete(self, student_id: str) -> None:
        """Remove the student, their enrollments and their login."""
        student = await self.get(student_id)
        await self.store.delete(Query("student_enrollments").eq("student_id", student_id))
        await self.store.delete(Query("students").eq("id", student_id))
        if student.get("user_id"):
            await self.store.delete(Query("sessions").eq("user_id", student["user_id"]))
            await self.store.delete(Query("users").eq("id", student["user_id"]))
        logger.info("student.deleted", extra={"student_id": student_id})

    async def bulk_create(self, payload: Any) -> list[BulkItemResult]:
        """Create one ``SISWA`` user plus student row per item.

        ``kelas`` is resolved against existing class names; an unknown name
        fails that item only.
        """
        items = require_array(payload)
        classes = await self.store.fetch_all(Query("classes").select("id", "name"))
        class_ids = {
            str(row["name"]).strip().lower(): row["id"] for row in classes if row.get("name")
        }

        results: list[BulkItemResult] = []
        for raw in items:
            try:
                item = StudentBulkItem.model_validate(raw)
            except ValidationError:
                item = None

            if item is None or not item.username or not item.password or not item.full_name:
                results.append(BulkItemResult(item=raw, success=False, error=MISSING_FIELDS_MESSAGE))
                continue

            class_id = None
            if item.kelas:
                class_id = class_ids.get(item.kelas.strip().lower())
                if class_id is None:
                    results.append(
                        BulkItemResult(item=raw, success=False, error=f"Kelas '{item.kelas}' tidak ditemukan di sistem")
                    )
                    continue

            try:
                await create_account(
                    self.store,
                    username=item.username,
                    password=item.password,
                    full_name=item.full_name,
                    role=ROLE_STUDENT,
                    profile_table="students",
                    profile={
                        "nis": item.nis or None,
                        "class_id": class_id,
                        "gender": normalize_gender(item.gender),
                        "angkatan": item.angkatan or None,
                        "status": STUDENT_STATUS_ACTIVE,
                    },
                )
            except AppError as exc:
                results.append(BulkItemResult(item=raw, success=False, error=exc.message or SYSTEM_ERROR_MESSAGE))
                continue

            results.append(BulkItemResult(item=raw, success=True))

        logger.info(
            "student.bulk_completed",
            extra={"total": len(results), "created": sum(1 for r in results if r.success)},
        )
        return results

    async def enrollments(self, student_id: str) -> list[Row]:
        return await self.store.fetch_all(
            Query("student_enrollments")
            .select("*", embeds=ENROLLMENT_RELATIONS)
            .eq("student_id", student_id)
            .order("enrolled_at", ascending=False)
        )
