"""Bearer token issuance/verification and password hashing.

Tokens are HS256 JWTs signed with ``Settings.jwt_secret``.  Claims:

    sub   — username
    uid   — users.id
    role  — 'admin' | 'guide' | ...
    name  — display name
    exp   — expiry (``jwt_ttl_minutes`` after issuance)
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

import bcrypt
import jwt as pyjwt

from src.config import Settings, get_settings
from src.dependencies import AuthContext

logger = logging.getLogger("florence.auth")


def issue_token(
    username: str,
    role: str,
    user_id: int | None = None,
    name: str | None = None,
    settings: Settings | None = None,
) -> str:
    s = settings or get_settings()
    now = datetime.now(timezone.utc)
    claims: dict[str, Any] = {
        "sub": username,
        "uid": user_id,
        "role": role,
        "name": name,
        "iat": now,
        "exp": now + timedelta(minutes=s.jwt_ttl_minutes),
    }
    return pyjwt.encode(claims, s.jwt_secret, algorithm=s.jwt_algorithm)


def decode_token(token: str, settings: Settings | None = None) -> AuthContext:
    """Verify a token and return the auth context it carries.

    Raises:
        jwt.ExpiredSignatureError: Token is past its ``exp``.
        jwt.InvalidTokenError:     Signature, format or claims are invalid.
    """
    s = settings or get_settings()
    payload = pyjwt.decode(
        token,
        s.jwt_secret,
        algorithms=[s.jwt_algorithm],
        options={"require": ["sub", "exp"]},
    )
    return AuthContext(
        username=payload["sub"],
        user_id=payload.get("uid"),
        role=payload.get("role") or "guide",
        name=payload.get("name"),
    )


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()


def verify_password(password: str, hashed: str | None) -> bool:
    """Check a password against a stored bcrypt hash.

    Hashes written by PHP's ``password_hash`` use the ``$2y$`` prefix, which
    is the same algorithm as ``$2b$``.
    """
    if not hashed:
        return False
    if hashed.startswith("$2y$"):
        hashed = "$2b$" + hashed[4:]
    try:
        return bcrypt.checkpw(password.encode(), hashed.encode())
    except ValueError:
        logger.warning("Stored password hash is not a valid bcrypt hash")
        return False
