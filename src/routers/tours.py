"""CRUD endpoints for tours plus the paid / cancelled flag toggles."""

from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Any

from fastapi import APIRouter, HTTPException, Query

from src.dependencies import CurrentUser
from src.models.base import Pagination
from src.models.tours import (
    TourCancelledUpdate,
    TourCreate,
    TourList,
    TourPaidUpdate,
    TourRead,
    TourUpdate,
)
from src.services.database import affected_rows, execute, fetch, fetchrow, fetchval

router = APIRouter(prefix="/tours", tags=["tours"])
logger = logging.getLogger("florence.tours")

PAST_WINDOW_DAYS = 40
UPCOMING_WINDOW_DAYS = 60

_SELECT_TOUR = """
    SELECT t.*, g.name AS guide_name
    FROM tours t
    LEFT JOIN guides g ON t.guide_id = g.id
"""


def build_tour_filters(
    filter_date: date | None = None,
    guide_id: int | None = None,
    upcoming: bool = False,
    past: bool = False,
    start_date: date | None = None,
    end_date: date | None = None,
    today: date | None = None,
) -> tuple[str, list[Any]]:
    """Build the WHERE clause for the tour list.

    Only one date filter applies, in priority order: explicit range, past
    (last 40 days up to yesterday), upcoming (today + 60 days), single date.
    The guide filter combines with any of them.
    """
    today = today or date.today()
    conditions: list[str] = []
    params: list[Any] = []

    if start_date and end_date:
        window = (start_date, end_date)
    elif past:
        window = (today - timedelta(days=PAST_WINDOW_DAYS), today - timedelta(days=1))
    elif upcoming:
        window = (today, today + timedelta(days=UPCOMING_WINDOW_DAYS))
    else:
        window = None

    if window:
        params.extend(window)
        conditions.append(f"t.date >= ${len(params) - 1} AND t.date <= ${len(params)}")
    elif filter_date:
        params.append(filter_date)
        conditions.append(f"t.date = ${len(params)}")

    if guide_id:
        params.append(guide_id)
        conditions.append(f"t.guide_id = ${len(params)}")

    where = f"WHERE {' AND '.join(conditions)}" if conditions else ""
    return where, params


async def _tour_or_404(tour_id: int) -> dict:
    row = await fetchrow(f"{_SELECT_TOUR} WHERE t.id = $1", tour_id)
    if not row:
        raise HTTPException(status_code=404, detail="Tour not found")
    return dict(row)


async def _check_guide(guide_id: int | None) -> None:
    if guide_id is None:
        return
    if not await fetchval("SELECT 1 FROM guides WHERE id = $1", guide_id):
        raise HTTPException(status_code=400, detail=f"Guide {guide_id} does not exist")


@router.get("", response_model=TourList)
async def list_tours(
    user: CurrentUser,
    page: int = Query(default=1, ge=1),
    per_page: int = Query(default=50, ge=1, le=500),
    filter_date: date | None = Query(default=None, alias="date"),
    guide_id: int | None = Query(default=None),
    upcoming: bool = Query(default=False),
    past: bool = Query(default=False),
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
) -> Any:
    where, params = build_tour_filters(
        filter_date, guide_id, upcoming, past, start_date, end_date
    )
    total = await fetchval(f"SELECT COUNT(*) FROM tours t {where}", *params)
    n = len(params)
    rows = await fetch(
        f"{_SELECT_TOUR} {where} ORDER BY t.date ASC, t.time ASC LIMIT ${n + 1} OFFSET ${n + 2}",
        *params, per_page, (page - 1) * per_page,
    )
    return {
        "data": [dict(r) for r in rows],
        "pagination": Pagination.build(page, per_page, total or 0),
    }


@router.get("/{tour_id}", response_model=TourRead)
async def get_tour(tour_id: int, user: CurrentUser) -> Any:
    return await _tour_or_404(tour_id)


@router.post("", response_model=TourRead, status_code=201)
async def create_tour(user: CurrentUser, body: TourCreate) -> Any:
    await _check_guide(body.guide_id)
    tour_id = await fetchval(
        """
        INSERT INTO tours (
            title, duration, description, date, time, guide_id, paid, cancelled,
            booking_channel, notes, expected_amount, payment_status
        ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12)
        RETURNING id
        """,
        body.title, body.duration, body.description, body.date, body.time,
        body.guide_id, body.paid, body.cancelled, body.booking_channel,
        body.notes, body.expected_amount, body.payment_status,
    )
    logger.info("Tour %d created by %s", tour_id, user.username)
    return await _tour_or_404(tour_id)


@router.put("/{tour_id}", response_model=TourRead)
async def update_tour(tour_id: int, user: CurrentUser, body: TourUpdate) -> Any:
    updates = body.model_dump(exclude_unset=True)
    if not updates:
        raise HTTPException(status_code=400, detail="No fields to update")
    if "guide_id" in updates:
        await _check_guide(updates["guide_id"])
        # Assigning a guide clears the assignment flag on synced tours.
        updates["needs_guide_assignment"] = updates["guide_id"] is None

    set_clauses = []
    params: list[Any] = [tour_id]
    for i, (key, value) in enumerate(updates.items(), start=2):
        set_clauses.append(f"{key} = ${i}")
        params.append(value)
    set_clauses.append("updated_at = NOW()")

    status = await execute(
        f"UPDATE tours SET {', '.join(set_clauses)} WHERE id = $1", *params
    )
    if affected_rows(status) == 0:
        raise HTTPException(status_code=404, detail="Tour not found")
    logger.info("Tour %d updated: %s", tour_id, ", ".join(updates))
    return await _tour_or_404(tour_id)


@router.put("/{tour_id}/paid", response_model=TourRead)
async def set_paid(tour_id: int, user: CurrentUser, body: TourPaidUpdate) -> Any:
    status = await execute(
        "UPDATE tours SET paid = $2, updated_at = NOW() WHERE id = $1", tour_id, body.paid
    )
    if affected_rows(status) == 0:
        raise HTTPException(status_code=404, detail="Tour not found")
    logger.info("Tour %d paid=%s", tour_id, body.paid)
    return await _tour_or_404(tour_id)


@router.put("/{tour_id}/cancelled", response_model=TourRead)
async def set_cancelled(tour_id: int, user: CurrentUser, body: TourCancelledUpdate) -> Any:
    status = await execute(
        "UPDATE tours SET cancelled = $2, updated_at = NOW() WHERE id = $1",
        tour_id, body.cancelled,
    )
    if affected_rows(status) == 0:
        raise HTTPException(status_code=404, detail="Tour not found")
    logger.info("Tour %d cancelled=%s", tour_id, body.cancelled)
    return await _tour_or_404(tour_id)


@router.delete("/{tour_id}")
async def delete_tour(tour_id: int, user: CurrentUser) -> dict:
    status = await execute("DELETE FROM tours WHERE id = $1", tour_id)
    if affected_rows(status) == 0:
        raise HTTPException(status_code=404, detail="Tour not found")
    logger.info("Tour %d deleted by %s", tour_id, user.username)
    return {"success": True, "id": tour_id, "message": "Tour deleted"}
