"""Teacher listing and bulk account creation."""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from app.adapters.datastore import AbstractDataStore, Query, Row, one
from app.core.errors import AppError, ValidationAppError
from app.schemas.teachers import BulkItemResult, TeacherBulkItem
from app.services.account_service import SYSTEM_ERROR_MESSAGE, create_account, normalize_gender
from app.services.session_service import ROLE_TEACHER
from app.utils.pagination import PaginationParams, apply_pagination

logger = logging.getLogger(__name__)

MISSING_FIELDS_MESSAGE = "Nama, Username, dan Password harus diisi"

TEACHER_COLUMNS = ("id", "user_id", "nip", "gender", "created_at")
TEACHER_RELATIONS = (one("user", "users", "id", "username", "full_name", "role"),)


def require_array(payload: Any) -> list[Any]:
    if not isinstance(payload, list):
        raise ValidationAppError(code="payload_not_array", message="Payload harus berupa array")
    return payload


class TeacherService:
    def __init__(self, store: AbstractDataStore) -> None:
        self.store = store

    async def list(self, pagination: PaginationParams | None = None) -> tuple[list[Row], int | None]:
        """Return teachers newest first and, when paginated, the total count."""
        query = (
            Query("teachers")
            .select(*TEACHER_COLUMNS, embeds=TEACHER_RELATIONS, count=pagination is not None)
            .order("created_at", ascending=False)
        )
        result = await self.store.fetch(apply_pagination(query, pagination))
        return result.rows, result.count

    async def _create_one(self, item: TeacherBulkItem) -> None:
        await create_account(
            self.store,
            username=item.username,
            password=item.password,
            full_name=item.full_name,
            role=ROLE_TEACHER,
            profile_table="teachers",
            profile={"nip": item.nip or None, "gender": normalize_gender(item.gender)},
        )

    async def bulk_create(self, payload: Any) -> list[BulkItemResult]:
        """Create one ``GURU`` user plus teacher row per item.

        Items run one at a time and never affect each other; each outcome is
        reported in input order.

        Raises:
            ValidationAppError: If ``payload`` is not a list.
        """
        results: list[BulkItemResult] = []
        for raw in require_array(payload):
            try:
                item = TeacherBulkItem.model_validate(raw)
            except ValidationError:
                item = None

            if item is None or not item.username or not item.password or not item.full_name:
                results.append(BulkItemResult(item=raw, success=False, error=MISSING_FIELDS_MESSAGE))
                continue

            try:
                await self._create_one(item)
            except AppError as exc:
                if exc.code != "username_taken":
                    logger.error(
                        "teacher.bulk_item_failed",
                        extra={"username": item.username, "error_code": exc.code, "error_message": exc.message},
                    )
                results.append(BulkItemResult(item=raw, success=False, error=exc.message or SYSTEM_ERROR_MESSAGE))
                continue

            results.append(BulkItemResult(item=raw, success=True))

        logger.info(
            "teacher.bulk_completed",
            extra={"total": len(results), "created": sum(1 for r in results if r.success)},
        )
        return results
