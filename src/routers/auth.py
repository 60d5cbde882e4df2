"""Login and token verification."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, HTTPException

from src.dependencies import AppSettings, CurrentUser
from src.models.auth import LoginRequest, LoginResponse, UserRead
from src.services.auth_tokens import issue_token, verify_password
from src.services.database import fetchrow

router = APIRouter(prefix="/auth", tags=["auth"])
logger = logging.getLogger("florence.auth")


@router.post("/login", response_model=LoginResponse)
async def login(body: LoginRequest, settings: AppSettings) -> Any:
    row = await fetchrow(
        "SELECT id, username, name, password_hash, role FROM users WHERE username = $1",
        body.username,
    )
    if not row or not verify_password(body.password, row["password_hash"]):
        logger.info("Failed login for %s", body.username)
        raise HTTPException(status_code=401, detail="Invalid username or password")

    token = issue_token(
        row["username"], row["role"], user_id=row["id"], name=row["name"], settings=settings
    )
    logger.info("User %s logged in (%s)", row["username"], row["role"])
    return LoginResponse(
        token=token,
        user=UserRead(id=row["id"], username=row["username"], name=row["name"], role=row["role"]),
    )


@router.get("/verify", response_model=UserRead)
async def verify(user: CurrentUser) -> Any:
    """Echo the identity carried by a still-valid bearer token."""
    return UserRead(id=user.user_id, username=user.username, name=user.name, role=user.role)
