"""Application factory for the LMS API.

Centralizes app construction (metadata, lifespan, middleware, handlers,
routers) so tests can build a fresh app per module.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from app.adapters.datastore.factory import close_data_store
from app.api.routes import (
    academic_years_router,
    auth_router,
    batch_router,
    external_router,
    health_router,
    schedules_router,
    students_router,
    teachers_router,
)
from app.core.config import settings
from app.core.exception_handlers import setup_exception_handlers
from app.core.logging import configure_logging
from app.core.middleware import request_id_middleware
from app.core.openapi import apply_openapi_customizations
from app.core.rate_limit import run_rate_limit_sweeper

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Run the login limiter sweeper and release the data store on shutdown."""
    sweeper = asyncio.create_task(run_rate_limit_sweeper())
    logger.info("app.started", extra={"app_env": settings.app_env, "db_backend": settings.db.backend})
    try:
        yield
    finally:
        sweeper.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sweeper
        await close_data_store()
        logger.info("app.stopped")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application instance.

    Returns:
        Configured FastAPI app with middleware, handlers, routers and docs.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    app = FastAPI(
        title="School LMS API",
        description=(
            "Server-side API of the school learning management system: "
            "cookie sessions with role checks, academic years, teachers, "
            "schedules, students and a read-only external API for KPI "
            "dashboards protected by the x-api-key header."
        ),
        version="0.1.0",
        lifespan=lifespan,
    )

    app.middleware("http")(request_id_middleware)

    setup_exception_handlers(app)

    app.include_router(auth_router)
    app.include_router(academic_years_router)
    app.include_router(teachers_router)
    app.include_router(schedules_router)
    app.include_router(students_router)
    app.include_router(batch_router)
    app.include_router(external_router)
    app.include_router(health_router)

    # OpenAPI customizations (security schemes, tags, exemptions)
    apply_openapi_customizations(app)

    return app
