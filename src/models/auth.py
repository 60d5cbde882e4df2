"""Pydantic models for login and token verification."""

from __future__ import annotations

from pydantic import Field

from src.models.base import FlorenceBase


class LoginRequest(FlorenceBase):
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)


class UserRead(FlorenceBase):
    id: int | None = None
    username: str
    name: str | None = None
    role: str


class LoginResponse(FlorenceBase):
    success: bool = True
    token: str
    user: UserRead
