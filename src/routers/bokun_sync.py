"""Bokun sync endpoint (admin only).

All operations share one path and are selected with ``?action=``:

    GET  config | sync | sync-history | sync-info | test
    POST config | sync | full-sync
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Annotated, Any, AsyncGenerator

from fastapi import APIRouter, Body, Depends, HTTPException, Query
from pydantic import BaseModel, ValidationError

from src.bokun.client import BokunClient
from src.bokun.sync import BookingSyncService, sync_window
from src.dependencies import AdminUser, AppSettings
from src.models.sync import (
    BokunConfigRead,
    BokunConfigUpdate,
    SyncHistory,
    SyncInfo,
    SyncRequest,
    SyncResponse,
    SyncType,
)

router = APIRouter(prefix="/bokun_sync", tags=["bokun"])
logger = logging.getLogger("florence.bokun")


async def get_sync_service(settings: AppSettings) -> AsyncGenerator[BookingSyncService, None]:
    client = BokunClient.from_settings(settings)
    try:
        yield BookingSyncService(client, settings=settings)
    finally:
        await client.aclose()


SyncService = Annotated[BookingSyncService, Depends(get_sync_service)]


def _invalid_action(action: str) -> HTTPException:
    return HTTPException(status_code=400, detail=f"Invalid action: {action}")


def _parse(model: type[BaseModel], body: dict[str, Any] | None) -> Any:
    try:
        return model.model_validate(body or {})
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=exc.errors(include_context=False)) from exc


@router.get("")
async def bokun_get(
    user: AdminUser,
    service: SyncService,
    settings: AppSettings,
    action: str = Query(...),
    sync_type: SyncType = Query(default="manual", alias="type"),
    triggered_by: str = Query(default="user"),
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    limit: int = Query(default=20, ge=1, le=200),
) -> Any:
    if action == "config":
        return BokunConfigRead(**await service.get_config())

    if action == "sync":
        logger.info("Sync requested by %s (%s, %s)", user.username, sync_type, triggered_by)
        result = await service.run(sync_type, triggered_by, start_date, end_date)
        return SyncResponse(**result)

    if action == "sync-history":
        return SyncHistory(logs=await service.history(limit))

    if action == "sync-info":
        default_start, default_end = sync_window("auto", settings)
        full_start, full_end = sync_window("full", settings)
        return SyncInfo(
            default_sync_days=settings.sync_default_days,
            full_sync_days=settings.sync_full_days,
            past_days_buffer=settings.sync_past_days,
            default_date_range={"start": default_start, "end": default_end},
            full_sync_date_range={"start": full_start, "end": full_end},
        )

    if action == "test":
        return await service.test_connection()

    raise _invalid_action(action)


@router.post("")
async def bokun_post(
    user: AdminUser,
    service: SyncService,
    action: str = Query(...),
    body: dict[str, Any] | None = Body(default=None),
) -> Any:
    if action == "config":
        update = _parse(BokunConfigUpdate, body)
        return BokunConfigRead(**await service.set_enabled(update.sync_enabled))

    if action == "sync":
        request = _parse(SyncRequest, body)
        result = await service.run(
            request.type, request.triggered_by, request.start_date, request.end_date
        )
        return SyncResponse(**result)

    if action == "full-sync":
        request = _parse(SyncRequest, body)
        logger.info("Full sync requested by %s", user.username)
        return SyncResponse(**await service.run("full", request.triggered_by))

    raise _invalid_action(action)
