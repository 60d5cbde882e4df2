"""Bokun booking sync.

One run of the workflow:
1. Check ``bokun_config.sync_enabled``
2. Open a ``sync_logs`` row with status 'started'
3. Fetch bookings for the date window from Bokun
4. Normalize each booking and upsert it into ``tours``
5. Stamp ``bokun_config.last_sync`` and close the log row

Date windows:
    auto / manual: today - past_days .. today + default_days
    full:          today - past_days .. today + full_days
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import date, timedelta
from types import ModuleType
from typing import Any

from src.bokun.client import BokunAPIError, BokunClient
from src.bokun.transform import BookingTour, booking_to_tour
from src.config import Settings, get_settings
from src.services import database

logger = logging.getLogger("florence.bokun.sync")

DISABLED_ERROR = "Bokun sync is not configured or disabled"


@dataclass
class SyncCounters:
    """Per-run booking counters.

    Attributes:
        found:   Bookings returned by Bokun.
        created: New tour rows inserted.
        updated: Existing tour rows updated.
        failed:  Bookings that could not be normalized or saved.
        errors:  One message per failed booking.
    """

    found: int = 0
    created: int = 0
    updated: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def synced(self) -> int:
        return self.created + self.updated

    @property
    def status(self) -> str:
        if self.failed == 0:
            return "completed"
        return "partial" if self.synced > 0 else "failed"


def sync_window(
    sync_type: str, settings: Settings | None = None, today: date | None = None
) -> tuple[date, date]:
    """Default (start, end) dates for a sync of the given type."""
    s = settings or get_settings()
    today = today or date.today()
    ahead = s.sync_full_days if sync_type == "full" else s.sync_default_days
    return today - timedelta(days=s.sync_past_days), today + timedelta(days=ahead)


class BookingSyncService:
    """Pull bookings from Bokun and upsert them as tours.

    Usage::

        service = BookingSyncService(BokunClient.from_settings())
        result = await service.run("manual", triggered_by="user")
    """

    def __init__(
        self,
        client: BokunClient,
        settings: Settings | None = None,
        db: ModuleType | Any = database,
    ) -> None:
        """Initialize the service.

        Args:
            client:   Bokun API client.
            settings: Sync window settings.  Defaults to ``get_settings()``.
            db:       Object exposing async ``fetchrow``/``fetchval``/``execute``.
        """
        self._client = client
        self._settings = settings or get_settings()
        self._db = db

    async def get_config(self) -> dict[str, Any]:
        """Current sync configuration.  Credentials are never included."""
        row = await self._db.fetchrow(
            "SELECT sync_enabled, last_sync FROM bokun_config ORDER BY id DESC LIMIT 1"
        )
        return {
            "configured": self._settings.bokun_configured,
            "sync_enabled": bool(row and row["sync_enabled"]),
            "vendor_id": self._settings.bokun_vendor_id or None,
            "last_sync": row["last_sync"] if row else None,
        }

    async def set_enabled(self, enabled: bool) -> dict[str, Any]:
        status = await self._db.execute(
            "UPDATE bokun_config SET sync_enabled = $1, updated_at = NOW()", enabled
        )
        if database.affected_rows(status) == 0:
            await self._db.execute(
                "INSERT INTO bokun_config (sync_enabled) VALUES ($1)", enabled
            )
        logger.info("Bokun sync %s", "enabled" if enabled else "disabled")
        return await self.get_config()

    async def is_enabled(self) -> bool:
        if not self._settings.bokun_configured:
            return False
        config = await self.get_config()
        return config["sync_enabled"]

    async def run(
        self,
        sync_type: str = "auto",
        triggered_by: str | None = None,
        start: date | None = None,
        end: date | None = None,
    ) -> dict[str, Any]:
        """Execute one sync and return the summary dict.

        Never raises for Bokun failures: they are logged, recorded in
        ``sync_logs`` and reported as ``{"success": False, "error": ...}``.
        """
        if not await self.is_enabled():
            logger.info("Bokun sync skipped: not configured or disabled")
            return {"success": False, "error": DISABLED_ERROR}

        default_start, default_end = sync_window(sync_type, self._settings)
        start = start or default_start
        end = end or default_end
        started = time.monotonic()

        log_id = await self._db.fetchval(
            """
            INSERT INTO sync_logs (sync_type, start_date, end_date, status, triggered_by)
            VALUES ($1, $2, $3, 'started', $4)
            RETURNING id
            """,
            sync_type, start, end, triggered_by,
        )
        logger.info(
            "Bokun sync [%s] started by %s: %s to %s", sync_type, triggered_by, start, end
        )

        try:
            bookings = await self._client.search_bookings(start, end)
        except BokunAPIError as exc:
            duration = round(time.monotonic() - started, 2)
            logger.error("Bokun sync [%s] failed: %s", sync_type, exc)
            await self._close_log(log_id, "failed", SyncCounters(), str(exc), duration)
            return {
                "success": False,
                "error": f"Bokun API Error: {exc}",
                "start_date": start,
                "end_date": end,
                "sync_type": sync_type,
            }

        counters = SyncCounters(found=len(bookings))
        for booking in bookings:
            try:
                tour = booking_to_tour(booking)
                if await self._upsert(tour):
                    counters.created += 1
                else:
                    counters.updated += 1
            except Exception as exc:
                counters.failed += 1
                counters.errors.append(f"Error processing booking: {exc}")
                logger.warning(
                    "Bokun booking %s skipped: %s", booking.get("confirmationCode"), exc
                )

        await self._db.execute("UPDATE bokun_config SET last_sync = NOW(), updated_at = NOW()")
        duration = round(time.monotonic() - started, 2)
        await self._close_log(
            log_id, counters.status, counters, "; ".join(counters.errors[:5]) or None, duration
        )
        logger.info(
            "Bokun sync [%s] %s: %d found, %d created, %d updated, %d failed (%.2fs)",
            sync_type, counters.status, counters.found, counters.created,
            counters.updated, counters.failed, duration,
        )

        return {
            "success": True,
            "synced_count": counters.synced,
            "created_count": counters.created,
            "updated_count": counters.updated,
            "failed_count": counters.failed,
            "total_bookings": counters.found,
            "start_date": start,
            "end_date": end,
            "sync_type": sync_type,
            "errors": counters.errors,
        }

    async def _upsert(self, tour: BookingTour) -> bool:
        """Insert or update one tour.  Returns True when a row was created."""
        existing = await self._db.fetchrow(
            """
            SELECT id, date, time, rescheduled, original_date, original_time
            FROM tours WHERE bokun_booking_id = $1 OR external_id = $2
            LIMIT 1
            """,
            tour.bokun_booking_id, tour.external_id,
        )

        if existing is None:
            await self._db.execute(
                """
                INSERT INTO tours (
                    external_id, bokun_booking_id, bokun_confirmation_code, title,
                    date, time, duration, language, customer_name, customer_email,
                    customer_phone, participants, booking_channel, total_amount_paid,
                    expected_amount, payment_status, paid, external_source,
                    needs_guide_assignment, cancelled, bokun_data, last_sync
                ) VALUES (
                    $1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13, $14,
                    $15, $16, $17, $18, $19, $20, $21::jsonb, NOW()
                )
                """,
                tour.external_id, tour.bokun_booking_id, tour.bokun_confirmation_code,
                tour.title, tour.date, tour.time, tour.duration, tour.language,
                tour.customer_name, tour.customer_email, tour.customer_phone,
                tour.participants, tour.booking_channel, tour.total_amount_paid,
                tour.expected_amount, tour.payment_status, tour.paid,
                tour.external_source, tour.needs_guide_assignment, tour.cancelled,
                tour.bokun_data,
            )
            return True

        moved = existing["date"] != tour.date or existing["time"] != tour.time
        original_date = existing["original_date"] or existing["date"]
        original_time = existing["original_time"] or existing["time"]
        if moved:
            logger.info(
                "Rescheduling detected for %s: %s %s -> %s %s",
                tour.external_id, existing["date"], existing["time"], tour.date, tour.time,
            )
            if not existing["rescheduled"]:
                original_date, original_time = existing["date"], existing["time"]

        await self._db.execute(
            """
            UPDATE tours SET
                title = $1, date = $2, time = $3, duration = $4, language = $5,
                customer_name = $6, customer_email = $7, customer_phone = $8,
                participants = $9, booking_channel = $10, total_amount_paid = $11,
                expected_amount = $12, payment_status = $13, paid = $14,
                cancelled = $15, bokun_data = $16::jsonb, last_sync = NOW(),
                rescheduled = $17, original_date = $18, original_time = $19,
                rescheduled_at = CASE WHEN $20 THEN NOW() ELSE rescheduled_at END,
                updated_at = NOW()
            WHERE id = $21
            """,
            tour.title, tour.date, tour.time, tour.duration, tour.language,
            tour.customer_name, tour.customer_email, tour.customer_phone,
            tour.participants, tour.booking_channel, tour.total_amount_paid,
            tour.expected_amount, tour.payment_status, tour.paid,
            tour.cancelled, tour.bokun_data,
            moved or bool(existing["rescheduled"]), original_date, original_time,
            moved, existing["id"],
        )
        return False

    async def _close_log(
        self,
        log_id: int | None,
        status: str,
        counters: SyncCounters,
        error_message: str | None,
        duration: float,
    ) -> None:
        if log_id is None:
            return
        await self._db.execute(
            """
            UPDATE sync_logs SET
                status = $1, bookings_found = $2, bookings_synced = $3,
                bookings_created = $4, bookings_updated = $5, bookings_failed = $6,
                error_message = $7, duration_seconds = $8, completed_at = NOW()
            WHERE id = $9
            """,
            status, counters.found, counters.synced, counters.created,
            counters.updated, counters.failed, error_message, duration, log_id,
        )

    async def history(self, limit: int = 20) -> list[dict[str, Any]]:
        rows = await self._db.fetch(
            "SELECT * FROM sync_logs ORDER BY created_at DESC LIMIT $1", limit
        )
        return [dict(r) for r in rows]

    async def test_connection(self) -> dict[str, Any]:
        return await self._client.test_connection()
