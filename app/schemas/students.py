"""Pydantic schemas for student accounts, promotion and graduation."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class StudentCreate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    username: str | None = None
    password: str | None = None
    full_name: str | None = None
    nis: str | None = None
    class_id: str | None = None
    gender: str | None = None
    angkatan: str | None = None
    entry_year: int | None = None
    school_level: str | None = None


class StudentUpdate(BaseModel):
    """Account fields apply when non-empty; profile fields whenever present."""

    model_config = ConfigDict(extra="ignore")

    username: str | None = None
    password: str | None = None
    full_name: str | None = None
    nis: str | None = None
    class_id: str | None = None
    gender: str | None = None
    angkatan: str | None = None
    entry_year: int | None = None
    school_level: str | None = None
    status: str | None = None


class StudentBulkItem(BaseModel):
    """One spreadsheet row; ``kelas`` is a class name, matched case-insensitively."""

    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    full_name: str | None = None
    gender: str | None = None
    nis: str | None = None
    angkatan: str | None = None
    kelas: str | None = None
    username: str | None = None
    password: str | None = None


class PromoteRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    to_class_id: str | None = None
    to_academic_year_id: str | None = None
    notes: str | None = None
    enrollment_status: str = "PROMOTED"


class GraduateRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    notes: str | None = None


class ClassMapping(BaseModel):
    from_class_id: str
    to_class_id: str


class BatchPromoteRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    academic_year_from: str | None = None
    academic_year_to: str | None = None
    class_mappings: list[ClassMapping] = Field(default_factory=list)
    student_ids: list[str] | None = None


class BatchGraduateRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    student_ids: list[str] = Field(default_factory=list)
    academic_year_id: str | None = None
    notes: str | None = None


class BatchError(BaseModel):
    student_id: str
    student_name: str
    error: str


class BatchResult(BaseModel):
    success: bool = True
    promoted_count: int = 0
    failed_count: int = 0
    errors: list[BatchError] = Field(default_factory=list)
    message: str | None = None
