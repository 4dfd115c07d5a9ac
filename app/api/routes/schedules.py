from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Query

from app.adapters.datastore import AbstractDataStore
from app.adapters.datastore.factory import get_data_store
from app.core.auth import get_current_user, require_roles
from app.schemas.schedules import ScheduleCreate, ScheduleUpdate
from app.services.schedule_service import ScheduleService
from app.services.session_service import ROLE_ADMIN, ROLE_STUDENT, ROLE_TEACHER, AuthUser

router = APIRouter(prefix="/api/schedules", tags=["Schedules"])


def get_schedule_service(
    store: Annotated[AbstractDataStore, Depends(get_data_store)],
) -> ScheduleService:
    return ScheduleService(store)


Service = Annotated[ScheduleService, Depends(get_schedule_service)]
Admin = Annotated[AuthUser, Depends(require_roles(ROLE_ADMIN))]


@router.get("", dependencies=[Depends(get_current_user)])
async def list_schedules(
    service: Service,
    class_id: str | None = None,
    academic_year_id: str | None = None,
    current: str | None = None,
) -> list[dict[str, Any]]:
    """List schedules; ``current=true`` keeps only the schedule in effect today."""
    return await service.list(class_id=class_id, academic_year_id=academic_year_id, current=current == "true")


@router.post("")
async def create_schedule(payload: ScheduleCreate, user: Admin, service: Service) -> dict[str, Any]:
    return await service.create(payload, user)


# Literal paths are declared before "/{schedule_id}" so they are not captured by it.
@router.get("/my-schedule")
async def my_schedule(
    user: Annotated[AuthUser, Depends(require_roles(ROLE_TEACHER))],
    service: Service,
    today: Annotated[str | None, Query(description="'true' to keep only today's lessons")] = None,
) -> list[dict[str, Any]]:
    return await service.teacher_schedule(user, today_only=today == "true")


@router.get("/student-schedule")
async def student_schedule(
    user: Annotated[AuthUser, Depends(require_roles(ROLE_STUDENT))],
    service: Service,
) -> list[dict[str, Any]]:
    return await service.student_schedule(user)


@router.get("/{schedule_id}", dependencies=[Depends(get_current_user)])
async def get_schedule(schedule_id: str, service: Service) -> dict[str, Any]:
    return await service.get(schedule_id)


@router.put("/{schedule_id}")
async def update_schedule(schedule_id: str, payload: ScheduleUpdate, _: Admin, service: Service) -> dict[str, Any]:
    return await service.update(schedule_id, payload)


@router.delete("/{schedule_id}")
async def delete_schedule(schedule_id: str, _: Admin, service: Service) -> dict[str, Any]:
    await service.delete(schedule_id)
    return {"success": True}
