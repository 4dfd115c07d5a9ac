from __future__ import annotations

from app.api.routes.academic_years import router as academic_years_router
from app.api.routes.auth import router as auth_router
from app.api.routes.batch import router as batch_router
from app.api.routes.external import router as external_router
from app.api.routes.health import router as health_router
from app.api.routes.schedules import router as schedules_router
from app.api.routes.students import router as students_router
from app.api.routes.teachers import router as teachers_router

__all__ = [
    "academic_years_router",
    "auth_router",
    "batch_router",
    "external_router",
    "health_router",
    "schedules_router",
    "students_router",
    "teachers_router",
]
