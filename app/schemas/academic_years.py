"""Pydantic schemas for academic year requests."""

from __future__ import annotations

from datetime import date
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

AcademicYearStatus = Literal["PLANNED", "ACTIVE", "COMPLETED"]


class AcademicYearCreate(BaseModel):
    """Body of ``POST /api/academic-years``.

    ``name`` is checked by the service so a missing name yields the
    localized 400 message instead of a generic validation error.
    """

    model_config = ConfigDict(extra="ignore")

    name: str | None = Field(default=None, description="Display name, e.g. '2025/2026'.")
    start_date: date | None = None
    end_date: date | None = None
    status: AcademicYearStatus | None = None
    is_active: bool | None = None


class AcademicYearUpdate(BaseModel):
    """Body of ``PUT /api/academic-years/{id}``; only supplied fields change."""

    model_config = ConfigDict(extra="ignore")

    name: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    status: AcademicYearStatus | None = None
    is_active: bool | None = None
