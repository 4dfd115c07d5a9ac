"""Weekly class schedules.

A schedule is a header row (class, academic year, ``effective_from``)
plus ``schedule_entries``. Only one schedule per class and year is active;
creating a new one retires the previous one. ``day_of_week`` uses ISO
numbering: 1 is Monday and 7 is Sunday.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Any

from app.adapters.datastore import AbstractDataStore, Query, Row, many, one
from app.core.errors import NotFoundAppError, ValidationAppError
from app.schemas.schedules import ScheduleCreate, ScheduleEntryIn, ScheduleUpdate
from app.services.session_service import AuthUser

logger = logging.getLogger(__name__)

NOT_FOUND_MESSAGE = "Jadwal tidak ditemukan"

ENTRY_RELATIONS = (
    one("subject", "subjects", "id", "name"),
    one("teacher", "teachers", "id", embeds=[one("user", "users", "full_name")]),
)

SCHEDULE_DETAIL = (
    one("class", "classes", "id", "name", "grade_level", "school_level"),
    one("academic_year", "academic_years", "id", "name", "is_active"),
    one("created_by_user", "users", "full_name", key="created_by", hint="created_by"),
    many("entries", "schedule_entries", foreign_key="schedule_id", embeds=ENTRY_RELATIONS),
)


def iso_weekday(day: date | None = None) -> int:
    return (day or date.today()).isoweekday()


def _entry_row(schedule_id: str, entry: ScheduleEntryIn) -> Row:
    return {
        "schedule_id": schedule_id,
        "day_of_week": entry.day_of_week,
        "period": entry.period,
        "time_start": entry.time_start,
        "time_end": entry.time_end,
        "subject_id": entry.subject_id or None,
        "teacher_id": entry.teacher_id or None,
        "room": entry.room or None,
    }


def _sort_entries(schedule: Row) -> Row:
    entries = schedule.get("entries")
    if isinstance(entries, list):
        schedule["entries"] = sorted(
            entries, key=lambda e: (e.get("day_of_week") or 0, e.get("period") or 0)
        )
    return schedule


class ScheduleService:
    def __init__(self, store: AbstractDataStore) -> None:
        self.store = store

    async def list(
        self,
        class_id: str | None = None,
        academic_year_id: str | None = None,
        current: bool = False,
        today: date | None = None,
    ) -> list[Row]:
        """List schedules newest first.

        With ``current`` only the latest active schedule already in effect
        is returned.
        """
        query = (
            Query("schedules")
            .select("*", embeds=SCHEDULE_DETAIL)
            .order("effective_from", ascending=False)
        )
        if class_id:
            query = query.eq("class_id", class_id)
        if academic_year_id:
            query = query.eq("academic_year_id", academic_year_id)
        if current:
            query = (
                query.eq("is_active", True)
                .lte("effective_from", (today or date.today()).isoformat())
                .limit(1)
            )
        return [_sort_entries(row) for row in await self.store.fetch_all(query)]

    async def get(self, schedule_id: str) -> Row:
        schedule = await self.store.fetch_one(
            Query("schedules").select("*", embeds=SCHEDULE_DETAIL).eq("id", schedule_id)
        )
        if schedule is None:
            raise NotFoundAppError(code="schedule_not_found", message=NOT_FOUND_MESSAGE)
        return _sort_entries(schedule)

    async def create(self, payload: ScheduleCreate, user: AuthUser, today: date | None = None) -> Row:
        if not payload.class_id or not payload.academic_year_id or payload.entries is None:
            raise ValidationAppError(
                code="schedule_fields_required",
                message="class_id, academic_year_id, dan entries harus diisi",
            )

        retired = await self.store.update(
            Query("schedules")
            .eq("class_id", payload.class_id)
            .eq("academic_year_id", payload.academic_year_id)
            .eq("is_active", True),
            {"is_active": False},
        )

        effective_from = payload.effective_from or today or date.today()
        header = (
            await self.store.insert(
                "schedules",
                {
                    "class_id": payload.class_id,
                    "academic_year_id": payload.academic_year_id,
                    "effective_from": effective_from.isoformat(),
                    "notes": payload.notes or None,
                    "is_active": True,
                    "created_by": user.id,
                },
            )
        )[0]

        if payload.entries:
            await self.store.insert(
                "schedule_entries", [_entry_row(header["id"], entry) for entry in payload.entries]
            )

        logger.info(
            "schedule.created",
            extra={
                "schedule_id": header["id"],
                "class_id": payload.class_id,
                "entries": len(payload.entries),
                "retired": len(retired),
            },
        )
        return await self.get(header["id"])

    async def update(self, schedule_id: str, payload: ScheduleUpdate) -> Row:
        await self.get(schedule_id)

        supplied = payload.model_dump(exclude_unset=True)
        changes: Row = {"updated_at": datetime.now(timezone.utc).isoformat()}
        if "effective_from" in supplied:
            changes["effective_from"] = payload.effective_from.isoformat() if payload.effective_from else None
        if "notes" in supplied:
            changes["notes"] = payload.notes
        if "is_active" in supplied:
            changes["is_active"] = payload.is_active
        await self.store.update(Query("schedules").eq("id", schedule_id), changes)

        if payload.entries is not None:
            await self.store.delete(Query("schedule_entries").eq("schedule_id", schedule_id))
            if payload.entries:
                await self.store.insert(
                    "schedule_entries", [_entry_row(schedule_id, entry) for entry in payload.entries]
                )

        return await self.get(schedule_id)

    async def delete(self, schedule_id: str) -> None:
        await self.store.delete(Query("schedule_entries").eq("schedule_id", schedule_id))
        removed = await self.store.delete(Query("schedules").eq("id", schedule_id))
        if not removed:
            raise NotFoundAppError(code="schedule_not_found", message=NOT_FOUND_MESSAGE)

    async def _active_year_id(self) -> str | None:
        year = await self.store.fetch_one(
            Query("academic_years").select("id").eq("is_active", True)
        )
        return year["id"] if year else None

    async def _entries_in_effect(
        self,
        schedule_query: Query,
        today: date,
        schedule_columns: tuple[str, ...],
        schedule_embeds: tuple = (),
        teacher_id: str | None = None,
    ) -> list[Row]:
        """Entries of active schedules already in effect, each with its schedule attached."""
        schedules = await self.store.fetch_all(
            schedule_query.select(*schedule_columns, embeds=schedule_embeds)
            .eq("is_active", True)
            .lte("effective_from", today.isoformat())
        )
        if not schedules:
            return []

        by_id = {row["id"]: row for row in schedules}
        query = (
            Query("schedule_entries")
            .select("*", embeds=ENTRY_RELATIONS)
            .in_("schedule_id", list(by_id))
            .order("day_of_week")
            .order("period")
        )
        if teacher_id is not None:
            query = query.eq("teacher_id", teacher_id)

        entries = await self.store.fetch_all(query)
        for entry in entries:
            entry["schedule"] = by_id[entry["schedule_id"]]
        return entries

    async def teacher_schedule(
        self, user: AuthUser, today_only: bool = False, today: date | None = None
    ) -> list[dict[str, Any]]:
        """Entries taught by ``user`` in the active academic year."""
        today = today or date.today()
        teacher = await self.store.fetch_one(Query("teachers").select("id").eq("user_id", user.id))
        if teacher is None:
            return []
        year_id = await self._active_year_id()
        if year_id is None:
            return []

        entries = await self._entries_in_effect(
            Query("schedules").eq("academic_year_id", year_id),
            today,
            ("id", "effective_from", "is_active", "academic_year_id"),
            (one("class", "classes", "id", "name", "grade_level"),),
            teacher_id=teacher["id"],
        )
        if today_only:
            weekday = iso_weekday(today)
            entries = [entry for entry in entries if entry.get("day_of_week") == weekday]
        return entries

    async def student_schedule(self, user: AuthUser, today: date | None = None) -> list[dict[str, Any]]:
        """Today's entries for the class of the student behind ``user``."""
        today = today or date.today()
        student = await self.store.fetch_one(Query("students").select("class_id").eq("user_id", user.id))
        if not student or not student.get("class_id"):
            return []
        year_id = await self._active_year_id()
        if year_id is None:
            return []

        entries = await self._entries_in_effect(
            Query("schedules").eq("academic_year_id", year_id).eq("class_id", student["class_id"]),
            today,
            ("id", "effective_from", "is_active", "academic_year_id", "class_id"),
        )
        weekday = iso_weekday(today)
        return [entry for entry in entries if entry.get("day_of_week") == weekday]
