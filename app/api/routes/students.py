from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Body, Depends, Request, Response

from app.adapters.datastore import AbstractDataStore
from app.adapters.datastore.factory import get_data_store
from app.core.auth import get_current_user, require_roles
from app.core.config import settings
from app.schemas.students import GraduateRequest, PromoteRequest, StudentCreate, StudentUpdate
from app.schemas.teachers import BulkResponse
from app.services.enrollment_service import EnrollmentService
from app.services.session_service import ROLE_ADMIN
from app.services.student_service import STUDENT_FILTERS, StudentService
from app.utils.pagination import pagination_headers, parse_pagination

router = APIRouter(
    prefix="/api/students",
    tags=["Students"],
    dependencies=[Depends(get_current_user)],
)


def get_student_service(
    store: Annotated[AbstractDataStore, Depends(get_data_store)],
) -> StudentService:
    return StudentService(store)


def get_enrollment_service(
    store: Annotated[AbstractDataStore, Depends(get_data_store)],
) -> EnrollmentService:
    return EnrollmentService(store)


Service = Annotated[StudentService, Depends(get_student_service)]
Enrollments = Annotated[EnrollmentService, Depends(get_enrollment_service)]

admin_only = [Depends(require_roles(ROLE_ADMIN))]


@router.get("")
async def list_students(request: Request, response: Response, service: Service) -> list[dict[str, Any]]:
    """List students, filtered by ``class_id``, ``angkatan``, ``school_level`` and ``status``."""
    filters = {name: request.query_params.get(name) for name in STUDENT_FILTERS}
    pagination = parse_pagination(request.query_params, default_limit=settings.app.default_page_size)
    rows, total = await service.list(filters, pagination)
    response.headers.update(pagination_headers(pagination, total))
    return rows


@router.post("", dependencies=admin_only)
async def create_student(payload: StudentCreate, service: Service) -> dict[str, Any]:
    return await service.create(payload)


@router.post("/bulk", response_model=BulkResponse, dependencies=admin_only)
async def bulk_create_students(
    service: Service,
    payload: Annotated[Any, Body(description="Array of {full_name, gender, nis, angkatan, kelas, username, password}.")],
) -> BulkResponse:
    return BulkResponse(results=await service.bulk_create(payload))


@router.get("/{student_id}")
async def get_student(student_id: str, service: Service) -> dict[str, Any]:
    return await service.get(student_id)


@router.put("/{student_id}", dependencies=admin_only)
async def update_student(student_id: str, payload: StudentUpdate, service: Service) -> dict[str, Any]:
    return await service.update(student_id, payload)


@router.delete("/{student_id}", dependencies=admin_only)
async def delete_student(student_id: str, service: Service) -> dict[str, Any]:
    await service.delete(student_id)
    return {"success": True}


@router.get("/{student_id}/enrollments")
async def student_enrollments(student_id: str, service: Service) -> dict[str, Any]:
    return {"enrollments": await service.enrollments(student_id)}


@router.put("/{student_id}/promote", dependencies=admin_only)
async def promote_student(student_id: str, payload: PromoteRequest, enrollments: Enrollments) -> dict[str, Any]:
    return await enrollments.promote(student_id, payload)


@router.put("/{student_id}/graduate", dependencies=admin_only)
async def graduate_student(
    student_id: str,
    enrollments: Enrollments,
    payload: GraduateRequest | None = None,
) -> dict[str, Any]:
    return await enrollments.graduate(student_id, payload)
