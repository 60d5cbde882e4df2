"""CRUD endpoints for tour guides."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, HTTPException, Query, Response

from src.dependencies import CurrentUser
from src.models.base import Pagination
from src.models.guides import GuideCreate, GuideList, GuideRead, GuideUpdate, join_languages
from src.services.database import affected_rows, execute, fetch, fetchrow, fetchval

router = APIRouter(prefix="/guides", tags=["guides"])
logger = logging.getLogger("florence.guides")

_COLUMNS = ("name", "phone", "email", "languages", "bio", "photo_url")


def _db_values(fields: dict[str, Any]) -> dict[str, Any]:
    if "languages" in fields:
        fields["languages"] = join_languages(fields["languages"])
    return fields


async def _update_guide(guide_id: int, fields: dict[str, Any]) -> Any:
    fields = _db_values(fields)
    if not fields:
        raise HTTPException(status_code=400, detail="No fields to update")

    set_clauses = []
    params: list[Any] = [guide_id]
    for i, (key, value) in enumerate(fields.items(), start=2):
        set_clauses.append(f"{key} = ${i}")
        params.append(value)
    set_clauses.append("updated_at = NOW()")

    row = await fetchrow(
        f"UPDATE guides SET {', '.join(set_clauses)} WHERE id = $1 RETURNING *",
        *params,
    )
    if not row:
        raise HTTPException(status_code=404, detail="Guide not found")
    logger.info("Guide %d updated", guide_id)
    return dict(row)


@router.get("", response_model=GuideList)
async def list_guides(
    user: CurrentUser,
    page: int = Query(default=1, ge=1),
    per_page: int = Query(default=50, ge=1, le=500),
) -> Any:
    total = await fetchval("SELECT COUNT(*) FROM guides")
    rows = await fetch(
        "SELECT * FROM guides ORDER BY id LIMIT $1 OFFSET $2",
        per_page, (page - 1) * per_page,
    )
    return {
        "data": [dict(r) for r in rows],
        "pagination": Pagination.build(page, per_page, total or 0),
    }


@router.post("", response_model=GuideRead, status_code=201)
async def create_guide(user: CurrentUser, body: GuideCreate, response: Response) -> Any:
    # A body carrying an id updates that guide instead of creating one.
    if body.id is not None:
        response.status_code = 200
        return await _update_guide(body.id, body.model_dump(include=set(_COLUMNS)))

    fields = _db_values(body.model_dump(include=set(_COLUMNS)))
    row = await fetchrow(
        """
        INSERT INTO guides (name, phone, email, languages, bio, photo_url)
        VALUES ($1, $2, $3, $4, $5, $6)
        RETURNING *
        """,
        *(fields[c] for c in _COLUMNS),
    )
    logger.info("Guide %d created", row["id"])
    return dict(row)


@router.get("/{guide_id}", response_model=GuideRead)
async def get_guide(guide_id: int, user: CurrentUser) -> Any:
    row = await fetchrow("SELECT * FROM guides WHERE id = $1", guide_id)
    if not row:
        raise HTTPException(status_code=404, detail="Guide not found")
    return dict(row)


@router.put("/{guide_id}", response_model=GuideRead)
async def update_guide(guide_id: int, user: CurrentUser, body: GuideUpdate) -> Any:
    return await _update_guide(guide_id, body.model_dump(exclude_unset=True))


@router.delete("/{guide_id}")
async def delete_guide(guide_id: int, user: CurrentUser) -> dict:
    tour_count = await fetchval("SELECT COUNT(*) FROM tours WHERE guide_id = $1", guide_id)
    if tour_count:
        raise HTTPException(
            status_code=400,
            detail="Cannot delete guide with assigned tours. Reassign or delete the tours first.",
        )
    status = await execute("DELETE FROM guides WHERE id = $1", guide_id)
    if affected_rows(status) == 0:
        raise HTTPException(status_code=404, detail="Guide not found")
    logger.info("Guide %d deleted", guide_id)
    return {"success": True, "id": guide_id, "message": "Guide deleted"}
