"""Pydantic schemas for authentication."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class LoginRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    username: str | None = None
    password: str | None = None


class UserOut(BaseModel):
    id: str
    username: str
    full_name: str | None = None
    role: str


class LoginResponse(BaseModel):
    success: bool = True
    user: UserOut
