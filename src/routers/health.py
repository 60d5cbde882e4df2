"""Health check endpoint. Public, no auth required."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter

from src.dependencies import AppSettings
from src.services.database import fetchrow

router = APIRouter(tags=["system"])
logger = logging.getLogger("florence.health")


@router.get("/health")
async def health_check(settings: AppSettings) -> dict:
    """Liveness probe.  Always 200; ``status`` is "degraded" without a database.

    When the database answers, the tour count and the last Bokun sync time are
    included so a monitor can spot a stalled sync.
    """
    body: dict = {
        "status": "degraded",
        "version": settings.app_version,
        "environment": settings.environment,
        "database": "unreachable",
        "bokun": "configured" if settings.bokun_configured else "not configured",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    try:
        row = await fetchrow(
            """
            SELECT
                (SELECT COUNT(*) FROM tours) AS tours,
                (SELECT last_sync FROM bokun_config ORDER BY id DESC LIMIT 1) AS last_sync
            """
        )
    except Exception as exc:
        logger.warning("Health check DB probe failed: %s", exc)
        return body

    body.update(status="healthy", database="connected", tours=row["tours"])
    if row["last_sync"] is not None:
        body["last_bokun_sync"] = row["last_sync"].isoformat()
    return body
