"""Read API for external systems, authenticated with the ``x-api-key`` header."""

from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Request

from app.adapters.datastore import AbstractDataStore
from app.adapters.datastore.factory import get_data_store
from app.core.auth import verify_external_api_key
from app.services.external_service import DEFAULT_GRADING_LIMIT, ExternalService
from app.utils.pagination import parse_int, parse_offset_window

router = APIRouter(
    prefix="/api/external",
    tags=["External"],
    dependencies=[Depends(verify_external_api_key)],
)


def get_external_service(
    store: Annotated[AbstractDataStore, Depends(get_data_store)],
) -> ExternalService:
    return ExternalService(store)


Service = Annotated[ExternalService, Depends(get_external_service)]


@router.get("/teachers")
async def external_teachers(request: Request, service: Service) -> dict[str, Any]:
    return await service.teachers(parse_offset_window(request.query_params))


@router.get("/teaching-assignments")
async def external_teaching_assignments(
    request: Request,
    service: Service,
    academic_year_id: str | None = None,
) -> dict[str, Any]:
    return await service.teaching_assignments(parse_offset_window(request.query_params), academic_year_id)


@router.get("/kpi/content")
async def kpi_content(service: Service, teacher_id: str | None = None) -> dict[str, Any]:
    return await service.content_kpi(teacher_id)


@router.get("/kpi/grading")
async def kpi_grading(request: Request, service: Service, teacher_id: str | None = None) -> dict[str, Any]:
    limit = parse_int(request.query_params.get("limit"))
    return await service.grading_kpi(teacher_id, limit if limit and limit > 0 else DEFAULT_GRADING_LIMIT)


@router.get("/kpi/student-performance")
async def kpi_student_performance(
    service: Service,
    teacher_id: str | None = None,
    class_id: str | None = None,
    academic_year_id: str | None = None,
) -> Any:
    return await service.student_performance_kpi(teacher_id, class_id, academic_year_id)
