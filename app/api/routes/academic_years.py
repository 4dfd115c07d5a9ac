from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends

from app.adapters.datastore import AbstractDataStore
from app.adapters.datastore.factory import get_data_store
from app.core.auth import require_roles
from app.schemas.academic_years import AcademicYearCreate, AcademicYearUpdate
from app.services.academic_year_service import AcademicYearService
from app.services.session_service import ROLE_ADMIN, ROLE_TEACHER

router = APIRouter(prefix="/api/academic-years", tags=["Academic Years"])


def get_academic_year_service(
    store: Annotated[AbstractDataStore, Depends(get_data_store)],
) -> AcademicYearService:
    return AcademicYearService(store)


Service = Annotated[AcademicYearService, Depends(get_academic_year_service)]

admin_only = [Depends(require_roles(ROLE_ADMIN))]


@router.get("", dependencies=[Depends(require_roles(ROLE_ADMIN, ROLE_TEACHER))])
async def list_academic_years(service: Service) -> list[dict[str, Any]]:
    return await service.list()


@router.post("", dependencies=admin_only)
async def create_academic_year(payload: AcademicYearCreate, service: Service) -> dict[str, Any]:
    return await service.create(payload)


@router.get("/{year_id}", dependencies=admin_only)
async def get_academic_year(year_id: str, service: Service) -> dict[str, Any]:
    return await service.get(year_id)


@router.put("/{year_id}", dependencies=admin_only)
async def update_academic_year(year_id: str, payload: AcademicYearUpdate, service: Service) -> dict[str, Any]:
    return await service.update(year_id, payload)


@router.delete("/{year_id}", dependencies=admin_only)
async def delete_academic_year(year_id: str, service: Service) -> dict[str, Any]:
    """Delete the year together with its classes, teaching assignments and content."""
    await service.delete(year_id)
    return {"success": True}


@router.get("/{year_id}/related", dependencies=admin_only)
async def academic_year_related(year_id: str, service: Service) -> dict[str, Any]:
    """Preview what a delete would remove."""
    return await service.related_counts(year_id)


@router.put("/{year_id}/complete", dependencies=admin_only)
async def complete_academic_year(year_id: str, service: Service) -> dict[str, Any]:
    year = await service.complete(year_id)
    return {
        "success": True,
        "message": f"Tahun ajaran {year.get('name')} berhasil diselesaikan",
        "data": year,
    }
