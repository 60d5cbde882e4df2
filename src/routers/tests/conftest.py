"""Shared fixtures for API router tests: app, tokens and database doubles."""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from src.config import Settings, get_settings
from src.main import create_app
from src.services.auth_tokens import issue_token

TEST_SECRET = "test-secret-for-florence-back-office"


# ---------------------------------------------------------------------------
# App fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def settings() -> Settings:
    return Settings(
        jwt_secret=TEST_SECRET,
        bokun_access_key="ak",
        bokun_secret_key="sk",
        bokun_vendor_id="12345",
        rate_limit_per_minute=1000,
    )


@pytest.fixture
def app(settings: Settings) -> FastAPI:
    application = create_app(settings)
    application.dependency_overrides[get_settings] = lambda: settings
    return application


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    return TestClient(app)


@pytest.fixture
def admin_headers(settings: Settings) -> dict[str, str]:
    token = issue_token("admin", "admin", user_id=1, name="Admin", settings=settings)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def guide_headers(settings: Settings) -> dict[str, str]:
    token = issue_token("marco", "guide", user_id=2, name="Marco", settings=settings)
    return {"Authorization": f"Bearer {token}"}


# ---------------------------------------------------------------------------
# Database doubles
# ---------------------------------------------------------------------------


def patch_db(monkeypatch: pytest.MonkeyPatch, module: str, **fns: Any) -> dict[str, AsyncMock]:
    """Replace the query helpers imported by a router module with AsyncMocks.

    Keyword arguments give ``return_value`` (or ``side_effect`` when a list)
    for ``fetch``, ``fetchrow``, ``fetchval`` and ``execute``.
    """
    mocks = {}
    for name in ("fetch", "fetchrow", "fetchval", "execute"):
        value = fns.get(name)
        if isinstance(value, list) and name != "fetch":
            mock = AsyncMock(side_effect=value)
        else:
            mock = AsyncMock(return_value=value)
        monkeypatch.setattr(f"{module}.{name}", mock, raising=False)
        mocks[name] = mock
    return mocks
