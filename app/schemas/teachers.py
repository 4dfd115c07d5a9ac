"""Pydantic schemas for teacher requests and bulk results."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict


class TeacherBulkItem(BaseModel):
    """One row of a bulk teacher upload. Required fields are checked per item."""

    model_config = ConfigDict(extra="ignore")

    full_name: str | None = None
    gender: str | None = None
    nip: str | None = None
    username: str | None = None
    password: str | None = None


class BulkItemResult(BaseModel):
    item: Any
    success: bool
    error: str | None = None


class BulkResponse(BaseModel):
    results: list[BulkItemResult]
