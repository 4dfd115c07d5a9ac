"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
Environment variables are set before anything imports ``app`` so the
settings object is built for the testing environment.
"""

import os

# CRITICAL: Set these before any imports that might load settings
os.environ["APP_ENV"] = "testing"
os.environ.setdefault("APP_EXTERNAL_API_SECRET", "external-secret-123")
os.environ.setdefault("APP_PASSWORD_HASH_ROUNDS", "4")
os.environ.setdefault("DB_BACKEND", "memory")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
from fastapi.testclient import TestClient

from app.adapters.datastore.factory import get_data_store
from app.adapters.datastore.in_memory import InMemoryDataStore
from app.core.app_factory import create_app
from app.core.rate_limit import reset_login_rate_limiter
from app.services.session_service import hash_password

PASSWORD = "rahasia123"
FAR_FUTURE = "2999-01-01T00:00:00+00:00"

TOKENS = {
    "ADMIN": "token-admin",
    "GURU": "token-guru",
    "SISWA": "token-siswa",
    "WALI": "token-wali",
}

_PASSWORD_HASH = hash_password(PASSWORD, rounds=4)


def seed_tables() -> dict:
    """A small school: one active year, one class, one teacher, one student."""
    return {
        "users": [
            {"id": "u-admin", "username": "admin", "full_name": "Admin Sekolah", "role": "ADMIN", "password_hash": _PASSWORD_HASH},
            {"id": "u-guru", "username": "guru1", "full_name": "Budi Guru", "role": "GURU", "password_hash": _PASSWORD_HASH},
            {"id": "u-siswa", "username": "siswa1", "full_name": "Siti Siswa", "role": "SISWA", "password_hash": _PASSWORD_HASH},
            {"id": "u-wali", "username": "wali1", "full_name": "Wali Siti", "role": "WALI", "password_hash": _PASSWORD_HASH},
        ],
        "sessions": [
            {"id": f"s-{role.lower()}", "user_id": f"u-{role.lower()}", "token": token, "expires_at": FAR_FUTURE}
            for role, token in TOKENS.items()
        ],
        "academic_years": [
            {"id": "y-old", "name": "2024/2025", "status": "COMPLETED", "is_active": False, "created_at": "2024-07-01T00:00:00+00:00"},
            {"id": "y-1", "name": "2025/2026", "status": "ACTIVE", "is_active": True, "created_at": "2025-07-01T00:00:00+00:00"},
        ],
        "classes": [
            {"id": "c-1", "name": "VII-A", "grade_level": 7, "school_level": "SMP", "academic_year_id": "y-1"},
        ],
        "subjects": [{"id": "sub-1", "name": "Matematika"}],
        "teachers": [
            {"id": "t-1", "user_id": "u-guru", "nip": "1987", "gender": "L", "created_at": "2025-07-02T00:00:00+00:00"},
        ],
        "students": [
            {
                "id": "st-1", "user_id": "u-siswa", "nis": "001", "class_id": "c-1", "angkatan": "2025",
                "school_level": "SMP", "status": "ACTIVE", "created_at": "2025-07-03T00:00:00+00:00",
            },
        ],
        "teaching_assignments": [
            {
                "id": "ta-1", "teacher_id": "t-1", "subject_id": "sub-1", "class_id": "c-1",
                "academic_year_id": "y-1", "created_at": "2025-07-04T00:00:00+00:00",
            },
        ],
    }


@pytest.fixture(autouse=True)
def _reset_login_limiter():
    reset_login_rate_limiter()
    yield
    reset_login_rate_limiter()


@pytest.fixture
def store() -> InMemoryDataStore:
    return InMemoryDataStore(seed_tables())


@pytest.fixture
def app(store):
    application = create_app()
    application.dependency_overrides[get_data_store] = lambda: store
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)


@pytest.fixture
def login_as(client):
    """Attach the seeded session cookie for ``role`` to the test client."""

    def _login(role: str) -> TestClient:
        client.cookies.set("session_token", TOKENS[role])
        return client

    return _login


@pytest.fixture
def api_key_headers() -> dict:
    return {"x-api-key": os.environ["APP_EXTERNAL_API_SECRET"]}
