from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Request, Response

from app.adapters.datastore import AbstractDataStore
from app.adapters.datastore.factory import get_data_store
from app.core.auth import get_current_user
from app.core.config import settings
from app.core.errors import AuthenticationAppError, SessionAppError, ValidationAppError
from app.core.rate_limit import enforce_login_rate_limit
from app.schemas.auth import LoginRequest, LoginResponse, UserOut
from app.services.session_service import (
    AuthUser,
    authenticate_user,
    create_session,
    delete_session,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Auth"])

Store = Annotated[AbstractDataStore, Depends(get_data_store)]


@router.post(
    "/login",
    response_model=LoginResponse,
    dependencies=[Depends(enforce_login_rate_limit)],
)
async def login(payload: LoginRequest, response: Response, store: Store) -> LoginResponse:
    """Exchange username and password for a session cookie.

    Each call counts against the caller's login budget before the
    credentials are looked at.
    """
    if not payload.username or not payload.password:
        raise ValidationAppError(
            code="credentials_required",
            message="Username dan password harus diisi",
        )

    user = await authenticate_user(store, payload.username, payload.password)
    if user is None:
        logger.info("auth.login_failed", extra={"username": payload.username})
        raise AuthenticationAppError(
            code="invalid_credentials",
            message="Username atau password salah",
        )

    token = await create_session(store, user["id"])
    if not token:
        raise SessionAppError(code="session_create_failed", message="Gagal membuat session")

    response.set_cookie(
        key=settings.app.session_cookie_name,
        value=token,
        max_age=settings.app.session_cookie_max_age_seconds,
        path="/",
        httponly=True,
        secure=settings.app.production,
        samesite="lax",
    )
    logger.info("auth.login_succeeded", extra={"user_id": user["id"], "role": user["role"]})
    return LoginResponse(
        success=True,
        user=UserOut(
            id=user["id"],
            username=user["username"],
            full_name=user.get("full_name"),
            role=user["role"],
        ),
    )


@router.post("/logout")
async def logout(request: Request, response: Response, store: Store) -> dict:
    token = request.cookies.get(settings.app.session_cookie_name)
    if token:
        await delete_session(store, token)
    response.delete_cookie(settings.app.session_cookie_name, path="/")
    return {"success": True}


@router.get("/me", response_model=UserOut)
async def me(user: Annotated[AuthUser, Depends(get_current_user)]) -> UserOut:
    return UserOut(**user.to_dict())
