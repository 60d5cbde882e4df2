"""Tests for the tours endpoints and list filters."""

from __future__ import annotations

from datetime import date

from fastapi.testclient import TestClient

from src.routers.tests.conftest import patch_db
from src.routers.tours import build_tour_filters

MODULE = "src.routers.tours"
TODAY = date(2026, 6, 10)

TOUR_42 = {
    "id": 42,
    "title": "Uffizi Gallery Guided Tour",
    "duration": "2 hours",
    "description": "",
    "date": date(2026, 6, 15),
    "time": "10:00",
    "guide_id": 1,
    "guide_name": "Marco",
    "paid": None,
    "cancelled": 0,
    "payment_status": None,
    "total_amount_paid": None,
}


class TestTourFilters:
    def test_no_filters(self) -> None:
        assert build_tour_filters(today=TODAY) == ("", [])

    def test_explicit_range_wins(self) -> None:
        where, params = build_tour_filters(
            filter_date=date(2026, 1, 1),
            past=True,
            start_date=date(2026, 6, 1),
            end_date=date(2026, 6, 30),
            today=TODAY,
        )
        assert where == "WHERE t.date >= $1 AND t.date <= $2"
        assert params == [date(2026, 6, 1), date(2026, 6, 30)]

    def test_past_is_last_forty_days_until_yesterday(self) -> None:
        _, params = build_tour_filters(past=True, today=TODAY)
        assert params == [date(2026, 5, 1), date(2026, 6, 9)]

    def test_upcoming_is_next_sixty_days(self) -> None:
        _, params = build_tour_filters(upcoming=True, today=TODAY)
        assert params == [TODAY, date(2026, 8, 9)]

    def test_single_date_with_guide(self) -> None:
        where, params = build_tour_filters(filter_date=TODAY, guide_id=3, today=TODAY)
        assert where == "WHERE t.date = $1 AND t.guide_id = $2"
        assert params == [TODAY, 3]


class TestListTours:
    def test_flags_are_always_booleans(
        self, client: TestClient, guide_headers: dict, monkeypatch
    ) -> None:
        patch_db(monkeypatch, MODULE, fetch=[TOUR_42], fetchval=1)
        response = client.get("/api/tours", headers=guide_headers)

        assert response.status_code == 200
        tour = response.json()["data"][0]
        assert tour["paid"] is False
        assert tour["cancelled"] is False
        assert tour["guide_name"] == "Marco"
        assert tour["payment_status"] == "unpaid"

    def test_pagination_params_reach_query(
        self, client: TestClient, guide_headers: dict, monkeypatch
    ) -> None:
        mocks = patch_db(monkeypatch, MODULE, fetch=[], fetchval=120)
        response = client.get("/api/tours?page=3&per_page=50&guide_id=1", headers=guide_headers)

        pagination = response.json()["pagination"]
        assert pagination["total_pages"] == 3
        assert pagination["has_next"] is False
        query, *args = mocks["fetch"].call_args.args
        assert "LIMIT $2 OFFSET $3" in query
        assert args == [1, 50, 100]

    def test_per_page_is_capped(self, client: TestClient, guide_headers: dict, monkeypatch) -> None:
        patch_db(monkeypatch, MODULE, fetch=[], fetchval=0)
        response = client.get("/api/tours?per_page=1000", headers=guide_headers)
        assert response.status_code == 422


class TestCreateTour:
    def test_create_normalizes_time(self, client: TestClient, admin_headers: dict, monkeypatch) -> None:
        mocks = patch_db(monkeypatch, MODULE, fetchval=[1, 42], fetchrow=TOUR_42)
        response = client.post(
            "/api/tours",
            json={"title": "Uffizi Gallery Guided Tour", "date": "2026-06-15", "time": "9:00", "guideId": 1},
            headers=admin_headers,
        )

        assert response.status_code == 201
        assert response.json()["id"] == 42
        insert_args = mocks["fetchval"].call_args_list[1].args
        assert insert_args[5] == "09:00"

    def test_unknown_guide_is_400(self, client: TestClient, admin_headers: dict, monkeypatch) -> None:
        patch_db(monkeypatch, MODULE, fetchval=[None])
        response = client.post(
            "/api/tours",
            json={"title": "Uffizi", "date": "2026-06-15", "time": "09:00", "guide_id": 7},
            headers=admin_headers,
        )
        assert response.status_code == 400


class TestUpdateTour:
    def test_empty_update_is_400(self, client: TestClient, admin_headers: dict, monkeypatch) -> None:
        patch_db(monkeypatch, MODULE)
        response = client.put("/api/tours/42", json={}, headers=admin_headers)
        assert response.status_code == 400

    def test_null_required_field_rejected(
        self, client: TestClient, admin_headers: dict, monkeypatch
    ) -> None:
        mocks = patch_db(monkeypatch, MODULE, execute="UPDATE 1", fetchrow=TOUR_42)
        for field in ("title", "date", "time"):
            response = client.put("/api/tours/42", json={field: None}, headers=admin_headers)
            assert response.status_code == 422, field
        mocks["execute"].assert_not_called()

    def test_null_optional_field_is_written(
        self, client: TestClient, admin_headers: dict, monkeypatch
    ) -> None:
        mocks = patch_db(monkeypatch, MODULE, execute="UPDATE 1", fetchrow=TOUR_42)
        response = client.put("/api/tours/42", json={"notes": None}, headers=admin_headers)

        assert response.status_code == 200
        query, *args = mocks["execute"].call_args.args
        assert "notes = $2" in query
        assert args == [42, None]

    def test_assigning_guide_clears_assignment_flag(
        self, client: TestClient, admin_headers: dict, monkeypatch
    ) -> None:
        mocks = patch_db(monkeypatch, MODULE, fetchval=1, execute="UPDATE 1", fetchrow=TOUR_42)
        response = client.put("/api/tours/42", json={"guide_id": 1}, headers=admin_headers)

        assert response.status_code == 200
        query, *args = mocks["execute"].call_args.args
        assert "needs_guide_assignment = $3" in query
        assert args == [42, 1, False]


class TestFlags:
    def test_paid_on_missing_tour_is_404(
        self, client: TestClient, admin_headers: dict, monkeypatch
    ) -> None:
        mocks = patch_db(monkeypatch, MODULE, execute="UPDATE 0")
        response = client.put("/api/tours/42/paid", json={"paid": True}, headers=admin_headers)
        assert response.status_code == 404
        mocks["fetchrow"].assert_not_called()

    def test_paid_returns_updated_tour(
        self, client: TestClient, admin_headers: dict, monkeypatch
    ) -> None:
        patch_db(monkeypatch, MODULE, execute="UPDATE 1", fetchrow={**TOUR_42, "paid": True})
        response = client.put("/api/tours/42/paid", json={"paid": True}, headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["paid"] is True

    def test_cancelled(self, client: TestClient, admin_headers: dict, monkeypatch) -> None:
        mocks = patch_db(
            monkeypatch, MODULE, execute="UPDATE 1", fetchrow={**TOUR_42, "cancelled": 1}
        )
        response = client.put(
            "/api/tours/42/cancelled", json={"cancelled": True}, headers=admin_headers
        )
        assert response.json()["cancelled"] is True
        assert mocks["execute"].call_args.args[1:] == (42, True)


class TestDeleteTour:
    def test_missing_tour_is_404(self, client: TestClient, admin_headers: dict, monkeypatch) -> None:
        patch_db(monkeypatch, MODULE, execute="DELETE 0")
        assert client.delete("/api/tours/42", headers=admin_headers).status_code == 404

    def test_delete(self, client: TestClient, admin_headers: dict, monkeypatch) -> None:
        patch_db(monkeypatch, MODULE, execute="DELETE 1")
        response = client.delete("/api/tours/42", headers=admin_headers)
        assert response.json() == {"success": True, "id": 42, "message": "Tour deleted"}
