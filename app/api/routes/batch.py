"""Year-end batch operations over many students at once."""

from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends

from app.adapters.datastore import AbstractDataStore
from app.adapters.datastore.factory import get_data_store
from app.core.auth import require_roles
from app.schemas.students import BatchGraduateRequest, BatchPromoteRequest
from app.services.enrollment_service import EnrollmentService
from app.services.session_service import ROLE_ADMIN

router = APIRouter(
    prefix="/api/batch",
    tags=["Batch"],
    dependencies=[Depends(require_roles(ROLE_ADMIN))],
)


def get_enrollment_service(
    store: Annotated[AbstractDataStore, Depends(get_data_store)],
) -> EnrollmentService:
    return EnrollmentService(store)


Service = Annotated[EnrollmentService, Depends(get_enrollment_service)]


@router.post("/promote")
async def batch_promote(payload: BatchPromoteRequest, service: Service) -> dict[str, Any]:
    result = await service.batch_promote(payload)
    return result.model_dump(exclude_none=True)


@router.post("/graduate")
async def batch_graduate(payload: BatchGraduateRequest, service: Service) -> dict[str, Any]:
    result = await service.batch_graduate(payload)
    return result.model_dump(exclude_none=True)
