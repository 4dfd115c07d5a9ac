"""Pydantic schemas for schedule requests."""

from __future__ import annotations

from datetime import date

from pydantic import BaseModel, ConfigDict, Field


class ScheduleEntryIn(BaseModel):
    """One lesson slot. ``day_of_week`` is 1 (Monday) through 7 (Sunday)."""

    model_config = ConfigDict(extra="ignore")

    day_of_week: int = Field(..., ge=1, le=7)
    period: int = Field(..., ge=1)
    time_start: str | None = None
    time_end: str | None = None
    subject_id: str | None = None
    teacher_id: str | None = None
    room: str | None = None


class ScheduleCreate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    class_id: str | None = None
    academic_year_id: str | None = None
    effective_from: date | None = None
    notes: str | None = None
    entries: list[ScheduleEntryIn] | None = None


class ScheduleUpdate(BaseModel):
    """Supplying ``entries`` replaces every entry of the schedule."""

    model_config = ConfigDict(extra="ignore")

    effective_from: date | None = None
    notes: str | None = None
    is_active: bool | None = None
    entries: list[ScheduleEntryIn] | None = None
