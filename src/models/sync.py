"""Pydantic models for the Bokun sync endpoint."""

from __future__ import annotations

from datetime import date, datetime
from typing import Literal

from pydantic import Field

from src.models.base import FlorenceBase

SyncType = Literal["manual", "auto", "full"]


class BokunConfigRead(FlorenceBase):
    configured: bool
    sync_enabled: bool = False
    vendor_id: str | None = None
    last_sync: datetime | None = None


class BokunConfigUpdate(FlorenceBase):
    sync_enabled: bool


class SyncResponse(FlorenceBase):
    success: bool
    synced_count: int = 0
    created_count: int = 0
    updated_count: int = 0
    failed_count: int = 0
    total_bookings: int = 0
    start_date: date | None = None
    end_date: date | None = None
    sync_type: SyncType | None = None
    errors: list[str] = Field(default_factory=list)
    error: str | None = None


class SyncLogRead(FlorenceBase):
    id: int
    sync_type: str
    start_date: date | None = None
    end_date: date | None = None
    status: str
    bookings_found: int = 0
    bookings_synced: int = 0
    bookings_created: int = 0
    bookings_updated: int = 0
    bookings_failed: int = 0
    error_message: str | None = None
    triggered_by: str | None = None
    duration_seconds: float | None = None
    created_at: datetime | None = None
    completed_at: datetime | None = None


class SyncHistory(FlorenceBase):
    logs: list[SyncLogRead]


class DateRange(FlorenceBase):
    start: date
    end: date


class SyncInfo(FlorenceBase):
    default_sync_days: int
    full_sync_days: int
    past_days_buffer: int
    default_date_range: DateRange
    full_sync_date_range: DateRange


class SyncRequest(FlorenceBase):
    """Body of ``POST /bokun_sync?action=sync|full-sync``."""

    type: SyncType = "manual"
    triggered_by: str = "user"
    start_date: date | None = None
    end_date: date | None = None
