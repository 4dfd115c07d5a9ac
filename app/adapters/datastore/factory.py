"""Factory and process-wide accessor for the data store."""

from __future__ import annotations

from app.adapters.datastore.base import AbstractDataStore
from app.adapters.datastore.in_memory import InMemoryDataStore
from app.adapters.datastore.postgrest import PostgrestDataStore
from app.core.config import settings
from app.core.errors import ValidationAppError

_store: AbstractDataStore | None = None


def create_data_store() -> AbstractDataStore:
    """Instantiate the data store selected by ``DB_BACKEND``.

    Returns:
        AbstractDataStore: Configured backend.

    Raises:
        ValidationAppError: If backend-specific settings are missing.
    """
    backend = settings.db.backend.lower()

    if backend == "memory":
        return InMemoryDataStore()

    if backend == "postgrest":
        if not settings.db.url or not settings.db.service_key:
            raise ValidationAppError(
                code="datastore_misconfigured",
                message="postgrest backend requires DB_URL and DB_SERVICE_KEY",
            )
        return PostgrestDataStore(
            base_url=settings.db.url,
            service_key=settings.db.service_key,
            timeout_seconds=settings.db.timeout_seconds,
        )

    raise ValidationAppError(
        code="datastore_unknown_backend",
        message=f"Unknown data store backend: '{backend}'. Supported: memory, postgrest",
    )


def get_data_store() -> AbstractDataStore:
    """FastAPI dependency returning the process-wide store."""
    global _store
    if _store is None:
        _store = create_data_store()
    return _store


async def close_data_store() -> None:
    global _store
    if _store is not None:
        await _store.aclose()
        _store = None
