"""CRUD endpoints for museum ticket stock."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, HTTPException, Query

from src.dependencies import CurrentUser
from src.models.base import Pagination
from src.models.tickets import TicketCreate, TicketList, TicketRead, TicketUpdate
from src.services.database import affected_rows, execute, fetch, fetchrow, fetchval

router = APIRouter(prefix="/tickets", tags=["tickets"])
logger = logging.getLogger("florence.tickets")

_COLUMNS = (
    "location", "museum", "ticket_type", "date", "time",
    "quantity", "price", "notes", "status",
)


@router.get("", response_model=TicketList)
async def list_tickets(
    user: CurrentUser,
    page: int = Query(default=1, ge=1),
    per_page: int = Query(default=100, ge=1, le=500),
) -> Any:
    total = await fetchval("SELECT COUNT(*) FROM tickets")
    rows = await fetch(
        "SELECT * FROM tickets ORDER BY date DESC, time ASC LIMIT $1 OFFSET $2",
        per_page, (page - 1) * per_page,
    )
    return {
        "data": [dict(r) for r in rows],
        "pagination": Pagination.build(page, per_page, total or 0),
    }


@router.get("/{ticket_id}", response_model=TicketRead)
async def get_ticket(ticket_id: int, user: CurrentUser) -> Any:
    row = await fetchrow("SELECT * FROM tickets WHERE id = $1", ticket_id)
    if not row:
        raise HTTPException(status_code=404, detail="Ticket not found")
    return dict(row)


@router.post("", response_model=TicketRead, status_code=201)
async def create_ticket(user: CurrentUser, body: TicketCreate) -> Any:
    fields = body.model_dump(include=set(_COLUMNS))
    row = await fetchrow(
        """
        INSERT INTO tickets (
            location, museum, ticket_type, date, time, quantity, price, notes, status
        ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
        RETURNING *
        """,
        *(fields[c] for c in _COLUMNS),
    )
    logger.info("Ticket %d created by %s", row["id"], user.username)
    return dict(row)


@router.put("/{ticket_id}", response_model=TicketRead)
async def update_ticket(ticket_id: int, user: CurrentUser, body: TicketUpdate) -> Any:
    updates = body.model_dump(exclude_unset=True)
    if not updates:
        raise HTTPException(status_code=400, detail="No fields to update")

    set_clauses = []
    params: list[Any] = [ticket_id]
    for i, (key, value) in enumerate(updates.items(), start=2):
        set_clauses.append(f"{key} = ${i}")
        params.append(value)
    set_clauses.append("updated_at = NOW()")

    row = await fetchrow(
        f"UPDATE tickets SET {', '.join(set_clauses)} WHERE id = $1 RETURNING *",
        *params,
    )
    if not row:
        raise HTTPException(status_code=404, detail="Ticket not found")
    logger.info("Ticket %d updated: %s", ticket_id, ", ".join(updates))
    return dict(row)


@router.delete("/{ticket_id}")
async def delete_ticket(ticket_id: int, user: CurrentUser) -> dict:
    status = await execute("DELETE FROM tickets WHERE id = $1", ticket_id)
    if affected_rows(status) == 0:
        raise HTTPException(status_code=404, detail="Ticket not found")
    logger.info("Ticket %d deleted by %s", ticket_id, user.username)
    return {"success": True, "id": ticket_id, "message": "Ticket deleted"}
