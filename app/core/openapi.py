"""OpenAPI metadata and customization utilities.

Provides a helper to enrich the generated OpenAPI schema with:
- Tags metadata
- Cookie session security scheme (``session_token``) for dashboard routes
- API Key security scheme (``x-api-key``) for ``/api/external`` routes
- Per-path exemptions for health and login

This keeps documentation concerns decoupled from the app factory.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

from app.core.config import settings

EXTERNAL_PREFIX = "/api/external"
PUBLIC_PATHS = ("/health", "/api/auth/login")

TAGS = [
    {"name": "Auth", "description": "Login, logout and the current user."},
    {"name": "Academic Years", "description": "Academic year lifecycle and cascade delete."},
    {"name": "Teachers", "description": "Teacher listing and bulk account creation."},
    {"name": "Schedules", "description": "Weekly class schedules and per-user views."},
    {"name": "Students", "description": "Student accounts, enrollment history, promotion and graduation."},
    {"name": "Batch", "description": "Year-end promotion and graduation of many students."},
    {"name": "External", "description": "Read API and KPIs for external systems."},
    {"name": "Health", "description": "Liveness checks."},
]


def apply_openapi_customizations(app: FastAPI) -> None:
    """Patch FastAPI's OpenAPI generation to add metadata and security.

    - Injects the cookie and API key security schemes
    - Marks every operation as requiring the session cookie, then switches
      external operations to the API key and exempts public paths with
      ``security: []``
    - Adds tags metadata if not present
    """

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        schema = original_openapi()

        components = schema.setdefault("components", {})
        security_schemes = components.setdefault("securitySchemes", {})
        security_schemes.setdefault(
            "SessionCookie",
            {
                "type": "apiKey",
                "in": "cookie",
                "name": settings.app.session_cookie_name,
                "description": "Session token set by POST /api/auth/login.",
            },
        )
        security_schemes.setdefault(
            "ApiKeyAuth",
            {
                "type": "apiKey",
                "in": "header",
                "name": "x-api-key",
                "description": "Shared secret for the external read API.",
            },
        )

        schema.setdefault("security", [{"SessionCookie": []}])

        tags = schema.setdefault("tags", [])
        existing_tag_names = {t.get("name") for t in tags}
        for tag in TAGS:
            if tag["name"] not in existing_tag_names:
                tags.append(tag)

        for path, methods in schema.get("paths", {}).items():
            if path in PUBLIC_PATHS:
                security: list = []
            elif path.startswith(EXTERNAL_PREFIX):
                security = [{"ApiKeyAuth": []}]
            else:
                continue
            for method_obj in methods.values():
                if isinstance(method_obj, dict):
                    method_obj["security"] = security

        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]
