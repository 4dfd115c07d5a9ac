"""Login accounts backed by a role-specific profile row.

Teachers and students are both a ``users`` row plus a row in their own
table. The user is written first; if the profile insert fails the user is
removed again so no orphan login survives.
"""

from __future__ import annotations

import asyncio
import logging

from app.adapters.datastore import AbstractDataStore, Query, Row
from app.core.errors import AppError, ValidationAppError
from app.services.session_service import hash_password

logger = logging.getLogger(__name__)

DUPLICATE_USERNAME_MESSAGE = "Username sudah digunakan"
SYSTEM_ERROR_MESSAGE = "Terjadi kesalahan sistem"


def normalize_gender(value: str | None) -> str | None:
    return value if value in ("L", "P") else None


async def ensure_username_available(
    store: AbstractDataStore,
    username: str,
    *,
    exclude_user_id: str | None = None,
) -> None:
    query = Query("users").select("id").eq("username", username)
    if exclude_user_id is not None:
        query = query.neq("id", exclude_user_id)
    if await store.fetch_one(query):
        raise ValidationAppError(code="username_taken", message=DUPLICATE_USERNAME_MESSAGE)


async def create_account(
    store: AbstractDataStore,
    *,
    username: str,
    password: str,
    full_name: str | None,
    role: str,
    profile_table: str,
    profile: Row,
) -> tuple[Row, Row]:
    """Create ``users`` + ``profile_table`` rows and return both.

    Raises:
        ValidationAppError: If the username is already taken.
        DataStoreError: If either insert fails; the user row is rolled back
            when the profile insert is the one failing.
    """
    await ensure_username_available(store, username)

    password_hash = await asyncio.to_thread(hash_password, password)
    user = (
        await store.insert(
            "users",
            {
                "username": username,
                "password_hash": password_hash,
                "full_name": full_name,
                "role": role,
            },
        )
    )[0]

    try:
        created = await store.insert(profile_table, {**profile, "user_id": user["id"]})
    except AppError:
        logger.warning(
            "account.profile_insert_failed",
            extra={"table": profile_table, "user_id": user["id"]},
        )
        await store.delete(Query("users").eq("id", user["id"]))
        raise
    return user, created[0]
