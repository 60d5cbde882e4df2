"""Tests for the museum ticket endpoints."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from fastapi.testclient import TestClient

from src.routers.tests.conftest import patch_db

MODULE = "src.routers.tickets"

TICKET_7 = {
    "id": 7,
    "location": "Florence",
    "museum": "Uffizi",
    "ticket_type": "Skip the line",
    "date": date(2026, 6, 15),
    "time": "10:00",
    "quantity": 20,
    "price": Decimal("25.00"),
    "notes": None,
    "status": "available",
}


class TestListTickets:
    def test_lists_with_pagination(self, client: TestClient, guide_headers: dict, monkeypatch) -> None:
        patch_db(monkeypatch, MODULE, fetch=[TICKET_7], fetchval=1)
        response = client.get("/api/tickets", headers=guide_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["data"][0]["museum"] == "Uffizi"
        assert body["data"][0]["price"] == 25.0
        assert body["pagination"]["total"] == 1

    def test_requires_token(self, client: TestClient) -> None:
        assert client.get("/api/tickets").status_code == 401


class TestCreateTicket:
    def test_code_is_accepted_as_museum(self, client: TestClient, admin_headers: dict, monkeypatch) -> None:
        mocks = patch_db(monkeypatch, MODULE, fetchrow=TICKET_7)
        response = client.post(
            "/api/tickets",
            json={"location": "Florence", "code": "Uffizi", "date": "2026-06-15", "time": "9:30", "quantity": 20},
            headers=admin_headers,
        )

        assert response.status_code == 201
        assert response.json()["id"] == 7
        _, *args = mocks["fetchrow"].call_args.args
        assert args[1] == "Uffizi"
        assert args[4] == "09:30"
        assert args[8] == "available"

    def test_missing_quantity_is_422(self, client: TestClient, admin_headers: dict, monkeypatch) -> None:
        mocks = patch_db(monkeypatch, MODULE)
        response = client.post(
            "/api/tickets",
            json={"location": "Florence", "date": "2026-06-15"},
            headers=admin_headers,
        )
        assert response.status_code == 422
        mocks["fetchrow"].assert_not_called()


class TestUpdateTicket:
    def test_partial_update(self, client: TestClient, admin_headers: dict, monkeypatch) -> None:
        mocks = patch_db(monkeypatch, MODULE, fetchrow={**TICKET_7, "quantity": 12})
        response = client.put("/api/tickets/7", json={"quantity": 12}, headers=admin_headers)

        assert response.status_code == 200
        assert response.json()["quantity"] == 12
        query, *args = mocks["fetchrow"].call_args.args
        assert "quantity = $2" in query
        assert args == [7, 12]

    def test_missing_ticket_is_404(self, client: TestClient, admin_headers: dict, monkeypatch) -> None:
        patch_db(monkeypatch, MODULE, fetchrow=None)
        response = client.put("/api/tickets/99", json={"status": "sold_out"}, headers=admin_headers)
        assert response.status_code == 404

    def test_null_quantity_rejected(self, client: TestClient, admin_headers: dict, monkeypatch) -> None:
        mocks = patch_db(monkeypatch, MODULE)
        response = client.put("/api/tickets/7", json={"quantity": None}, headers=admin_headers)
        assert response.status_code == 422
        mocks["fetchrow"].assert_not_called()


class TestDeleteTicket:
    def test_delete(self, client: TestClient, admin_headers: dict, monkeypatch) -> None:
        patch_db(monkeypatch, MODULE, execute="DELETE 1")
        response = client.delete("/api/tickets/7", headers=admin_headers)
        assert response.json() == {"success": True, "id": 7, "message": "Ticket deleted"}

    def test_delete_missing(self, client: TestClient, admin_headers: dict, monkeypatch) -> None:
        patch_db(monkeypatch, MODULE, execute="DELETE 0")
        assert client.delete("/api/tickets/7", headers=admin_headers).status_code == 404
