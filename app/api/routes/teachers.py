from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Body, Depends, Request, Response

from app.adapters.datastore import AbstractDataStore
from app.adapters.datastore.factory import get_data_store
from app.core.auth import require_roles
from app.core.config import settings
from app.schemas.teachers import BulkResponse
from app.services.session_service import ROLE_ADMIN, ROLE_TEACHER
from app.services.teacher_service import TeacherService
from app.utils.pagination import pagination_headers, parse_pagination

router = APIRouter(prefix="/api/teachers", tags=["Teachers"])


def get_teacher_service(
    store: Annotated[AbstractDataStore, Depends(get_data_store)],
) -> TeacherService:
    return TeacherService(store)


Service = Annotated[TeacherService, Depends(get_teacher_service)]


@router.get("", dependencies=[Depends(require_roles(ROLE_ADMIN, ROLE_TEACHER))])
async def list_teachers(request: Request, response: Response, service: Service) -> list[dict[str, Any]]:
    """List teachers; ``page``/``limit`` switch on pagination and its headers."""
    pagination = parse_pagination(request.query_params, default_limit=settings.app.default_page_size)
    rows, total = await service.list(pagination)
    response.headers.update(pagination_headers(pagination, total))
    return rows


@router.post(
    "/bulk",
    response_model=BulkResponse,
    dependencies=[Depends(require_roles(ROLE_ADMIN))],
)
async def bulk_create_teachers(
    service: Service,
    payload: Annotated[Any, Body(description="Array of {full_name, gender, nip, username, password}.")],
) -> BulkResponse:
    return BulkResponse(results=await service.bulk_create(payload))
