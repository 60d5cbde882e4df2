"""Shared FastAPI dependencies injected into route handlers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends, HTTPException, Request

from src.config import Settings, get_settings

ADMIN_ROLE = "admin"


@dataclass(frozen=True)
class AuthContext:
    """Authenticated user context extracted from the bearer JWT."""

    username: str
    user_id: int | None = None
    role: str = "guide"
    name: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE


async def get_current_user(request: Request) -> AuthContext:
    """Extract the authenticated user from the request state.

    The JWT auth middleware sets ``request.state.auth`` before routes run.
    """
    auth: AuthContext | None = getattr(request.state, "auth", None)
    if auth is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return auth


async def require_admin(user: Annotated[AuthContext, Depends(get_current_user)]) -> AuthContext:
    if not user.is_admin:
        raise HTTPException(status_code=403, detail="Admin role required")
    return user


# Annotated shortcuts for route signatures
CurrentUser = Annotated[AuthContext, Depends(get_current_user)]
AdminUser = Annotated[AuthContext, Depends(require_admin)]
AppSettings = Annotated[Settings, Depends(get_settings)]
