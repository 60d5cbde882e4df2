"""Shared fixtures for Bokun client, transform and sync tests."""

from __future__ import annotations

from datetime import date
from typing import Any

import pytest

from src.config import Settings

TEST_START = date(2026, 6, 1)
TEST_END = date(2026, 6, 30)


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


@pytest.fixture
def bokun_settings() -> Settings:
    return Settings(
        bokun_access_key="test-access-key",
        bokun_secret_key="test-secret-key",
        bokun_vendor_id="12345",
        bokun_api_base_url="https://api.bokun.test",
    )


# ---------------------------------------------------------------------------
# Booking payloads
# ---------------------------------------------------------------------------


def make_booking(
    booking_id: int = 9001,
    code: str = "VIA-70001",
    start: Any = "2026-06-15T07:30:00Z",
    **product_overrides: Any,
) -> dict:
    """A realistic booking-search item with one product booking."""
    product_booking = {
        "status": "CONFIRMED",
        "startDateTime": start,
        "duration": 180,
        "product": {"id": 555, "title": "Uffizi Gallery Guided Tour"},
        "fields": {"totalParticipants": 4},
        "notes": [],
    }
    product_booking.update(product_overrides)
    return {
        "id": booking_id,
        "confirmationCode": code,
        "status": "CONFIRMED",
        "customer": {
            "firstName": "Ada",
            "lastName": "Lovelace",
            "email": "ada@example.com",
            "phoneNumber": "+44 20 0000 0000",
        },
        "channel": {"title": "Viator.com"},
        "totalPrice": 240.0,
        "productBookings": [product_booking],
    }


@pytest.fixture
def booking() -> dict:
    return make_booking()


# ---------------------------------------------------------------------------
# Database double
# ---------------------------------------------------------------------------


class FakeDatabase:
    """Records statements and answers ``fetchrow`` from a lookup table.

    ``rows`` maps a SQL fragment to the row returned by any ``fetchrow``
    whose query contains it.
    """

    def __init__(self, rows: dict[str, Any] | None = None) -> None:
        self.rows = rows or {}
        self.executed: list[tuple[str, tuple]] = []
        self.next_log_id = 1

    async def fetchrow(self, query: str, *args: Any) -> Any:
        for fragment, row in self.rows.items():
            if fragment in query:
                return row
        return None

    async def fetchval(self, query: str, *args: Any) -> Any:
        self.executed.append((query, args))
        return self.next_log_id

    async def fetch(self, query: str, *args: Any) -> list:
        return []

    async def execute(self, query: str, *args: Any) -> str:
        self.executed.append((query, args))
        return "UPDATE 1"

    def statements(self, fragment: str) -> list[tuple[str, tuple]]:
        return [(q, a) for q, a in self.executed if fragment in q]


@pytest.fixture
def enabled_db() -> FakeDatabase:
    return FakeDatabase({"FROM bokun_config": {"sync_enabled": True, "last_sync": None}})
