"""Credential and session handling.

Passwords are stored as bcrypt hashes. A login creates a row in
``sessions`` holding a random 64-hex-char token; the token travels in the
``session_token`` cookie and is exchanged for the user on every request.
Sessions slide: validating one that is close to expiry pushes its expiry
forward.
"""

from __future__ import annotations

import asyncio
import logging
import secrets
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

import bcrypt

from app.adapters.datastore import AbstractDataStore, Query, one
from app.core.config import settings
from app.core.errors import DataStoreError

logger = logging.getLogger(__name__)

ROLE_ADMIN = "ADMIN"
ROLE_TEACHER = "GURU"
ROLE_STUDENT = "SISWA"
ROLE_PARENT = "WALI"


@dataclass(frozen=True)
class AuthUser:
    id: str
    username: str
    full_name: str | None
    role: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_timestamp(value: str) -> datetime:
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def hash_password(password: str, rounds: int | None = None) -> str:
    salt = bcrypt.gensalt(rounds=rounds or settings.app.password_hash_rounds)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # malformed stored hash
        return False


def generate_session_token() -> str:
    return secrets.token_hex(32)


def session_expiry(now: datetime | None = None) -> datetime:
    return (now or _utcnow()) + timedelta(hours=settings.app.session_expiry_hours)


async def create_session(
    store: AbstractDataStore,
    user_id: str,
    *,
    now: Callable[[], datetime] = _utcnow,
) -> str | None:
    """Persist a new session for ``user_id``.

    Returns:
        The session token, or None when the row could not be stored.
    """
    token = generate_session_token()
    try:
        await store.insert(
            "sessions",
            {
                "user_id": user_id,
                "token": token,
                "expires_at": session_expiry(now()).isoformat(),
            },
        )
    except DataStoreError as exc:
        logger.error("session.create_failed", extra={"error_code": exc.code, "error_message": exc.message})
        return None
    return token


async def validate_session(
    store: AbstractDataStore,
    token: str,
    *,
    now: Callable[[], datetime] = _utcnow,
) -> AuthUser | None:
    """Exchange a session token for its user.

    Returns None for unknown or expired tokens and for sessions whose user
    no longer exists. Store failures are treated as an invalid session.
    """
    if not token:
        return None

    current = now()
    query = (
        Query("sessions")
        .select("*", embeds=[one("user", "users", "id", "username", "full_name", "role")])
        .eq("token", token)
        .gt("expires_at", current.isoformat())
    )
    try:
        session = await store.fetch_one(query)
    except DataStoreError as exc:
        logger.error("session.lookup_failed", extra={"error_code": exc.code, "error_message": exc.message})
        return None

    if not session or not session.get("user"):
        return None

    remaining = _parse_timestamp(session["expires_at"]) - current
    if remaining < timedelta(hours=settings.app.session_refresh_threshold_hours):
        try:
            await store.update(
                Query("sessions").eq("id", session["id"]),
                {"expires_at": session_expiry(current).isoformat()},
            )
        except DataStoreError as exc:
            logger.warning("session.refresh_failed", extra={"error_code": exc.code})

    user = session["user"]
    return AuthUser(
        id=user["id"],
        username=user["username"],
        full_name=user.get("full_name"),
        role=user["role"],
    )


async def delete_session(store: AbstractDataStore, token: str) -> bool:
    try:
        await store.delete(Query("sessions").eq("token", token))
    except DataStoreError:
        return False
    return True


async def delete_expired_sessions(
    store: AbstractDataStore,
    *,
    now: Callable[[], datetime] = _utcnow,
) -> int:
    removed = await store.delete(Query("sessions").lt("expires_at", now().isoformat()))
    return len(removed)


async def authenticate_user(store: AbstractDataStore, username: str, password: str) -> dict[str, Any] | None:
    """Return the user row when ``password`` matches, else None."""
    user = await store.fetch_one(Query("users").eq("username", username))
    if not user or not user.get("password_hash"):
        return None
    if not await asyncio.to_thread(verify_password, password, user["password_hash"]):
        return None
    return user
