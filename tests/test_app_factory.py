"""Tests for application assembly."""

from app.core import app_factory
from app.core.app_factory import create_app


def test_module_docstring_is_kept() -> None:
    assert app_factory.__doc__ is not None
    assert app_factory.__doc__.startswith("Application factory")


def test_every_resource_router_is_mounted() -> None:
    paths = {route.path for route in create_app().routes}

    for path in (
        "/api/auth/login",
        "/api/academic-years",
        "/api/teachers/bulk",
        "/api/schedules/my-schedule",
        "/api/students/{student_id}/promote",
        "/api/batch/promote",
        "/api/batch/graduate",
        "/api/external/kpi/grading",
        "/health",
    ):
        assert path in paths, path
