"""Tests for login, token verification, the health probe and middleware."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import jwt as pyjwt
from fastapi.testclient import TestClient

from src.routers.tests.conftest import TEST_SECRET, patch_db
from src.services.auth_tokens import decode_token, hash_password, verify_password

MODULE = "src.routers.auth"


def _user_row(password: str = "secret") -> dict:
    return {
        "id": 1,
        "username": "admin",
        "name": "Admin",
        "password_hash": hash_password(password),
        "role": "admin",
    }


class TestLogin:
    def test_valid_credentials_issue_token(self, client: TestClient, settings, monkeypatch) -> None:
        patch_db(monkeypatch, MODULE, fetchrow=_user_row())
        response = client.post("/api/auth/login", json={"username": "admin", "password": "secret"})

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["user"] == {"id": 1, "username": "admin", "name": "Admin", "role": "admin"}
        assert decode_token(body["token"], settings).role == "admin"

    def test_wrong_password_is_401(self, client: TestClient, monkeypatch) -> None:
        patch_db(monkeypatch, MODULE, fetchrow=_user_row())
        response = client.post("/api/auth/login", json={"username": "admin", "password": "nope"})
        assert response.status_code == 401

    def test_unknown_user_is_401(self, client: TestClient, monkeypatch) -> None:
        patch_db(monkeypatch, MODULE, fetchrow=None)
        response = client.post("/api/auth/login", json={"username": "ghost", "password": "x"})
        assert response.status_code == 401


class TestVerify:
    def test_returns_token_identity(self, client: TestClient, guide_headers: dict) -> None:
        response = client.get("/api/auth/verify", headers=guide_headers)
        assert response.status_code == 200
        assert response.json()["username"] == "marco"
        assert response.json()["role"] == "guide"

    def test_expired_token(self, client: TestClient) -> None:
        past = datetime.now(timezone.utc) - timedelta(hours=1)
        token = pyjwt.encode({"sub": "admin", "exp": past}, TEST_SECRET, algorithm="HS256")
        response = client.get("/api/auth/verify", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401
        assert response.json()["detail"] == "Token expired"

    def test_wrong_signature(self, client: TestClient) -> None:
        future = datetime.now(timezone.utc) + timedelta(hours=1)
        token = pyjwt.encode({"sub": "admin", "exp": future}, "a-different-secret-for-florence-tests", algorithm="HS256")
        response = client.get("/api/auth/verify", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid token"


class TestPasswords:
    def test_php_prefix_is_accepted(self) -> None:
        hashed = hash_password("secret")
        assert verify_password("secret", "$2y$" + hashed[4:])

    def test_garbage_hash_is_rejected(self) -> None:
        assert verify_password("secret", "not-a-hash") is False
        assert verify_password("secret", None) is False


class TestHealthAndHeaders:
    def test_health_is_public(self, client: TestClient) -> None:
        response = client.get("/api/health")
        assert response.status_code == 200
        # No pool outside the lifespan
        assert response.json()["status"] == "degraded"
        assert response.json()["bokun"] == "configured"

    def test_health_reports_database_state(self, client: TestClient, monkeypatch) -> None:
        last_sync = datetime(2026, 6, 15, 7, 0, tzinfo=timezone.utc)
        patch_db(monkeypatch, "src.routers.health", fetchrow={"tours": 12, "last_sync": last_sync})
        body = client.get("/api/health").json()
        assert body["status"] == "healthy"
        assert body["database"] == "connected"
        assert body["tours"] == 12
        assert body["last_bokun_sync"] == last_sync.isoformat()

    def test_security_and_rate_limit_headers(self, client: TestClient) -> None:
        response = client.get("/api/health")
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "DENY"
        assert "X-RateLimit-Remaining" in response.headers

    def test_unauthorized_response_carries_security_headers(self, client: TestClient) -> None:
        response = client.get("/api/tours")
        assert response.status_code == 401
        assert response.headers["X-Content-Type-Options"] == "nosniff"
