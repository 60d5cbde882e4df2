"""Florence Back Office API — FastAPI application entry point.

Run locally:
    uvicorn src.main:app --reload --port 8000
"""

from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.config import Settings, get_settings
from src.middleware.auth import JWTAuthMiddleware
from src.middleware.rate_limit import RateLimitMiddleware
from src.middleware.security import SecurityHeadersMiddleware
from src.routers import auth, bokun_sync, guides, health, tickets, tours
from src.services.database import close_pool, ensure_schema, init_pool

# ---------- Logging ----------

logging.basicConfig(
    level=get_settings().log_level,
    format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    stream=sys.stdout,
)
logger = logging.getLogger("florence")


# ---------- Lifespan ----------

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup / shutdown hooks."""
    settings = get_settings()
    logger.info(
        "Starting Florence Back Office API v%s [%s]",
        settings.app_version,
        settings.environment,
    )
    await init_pool(settings)
    await ensure_schema()
    if not settings.bokun_configured:
        logger.warning("Bokun credentials not set; booking sync is unavailable")
    yield
    await close_pool()
    logger.info("Florence Back Office API shut down")


# ---------- App factory ----------

def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="Guides, tours, museum tickets and Bokun booking sync for Florence with Locals.",
        version=settings.app_version,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # ---------- Middleware (each add wraps the previous one) ----------

    # Bearer JWT authentication
    app.add_middleware(JWTAuthMiddleware, settings=settings)

    # Rate limiting, applied before authentication
    app.add_middleware(RateLimitMiddleware, settings=settings)

    # Security headers on every response, 401 and 429 included
    app.add_middleware(SecurityHeadersMiddleware, settings=settings)

    # CORS, added last so it wraps everything and answers preflight first
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-RateLimit-Limit", "X-RateLimit-Remaining", "Retry-After"],
    )

    # ---------- API routes ----------
    prefix = "/api"

    app.include_router(health.router, prefix=prefix)
    app.include_router(auth.router, prefix=prefix)
    app.include_router(guides.router, prefix=prefix)
    app.include_router(tours.router, prefix=prefix)
    app.include_router(tickets.router, prefix=prefix)
    app.include_router(bokun_sync.router, prefix=prefix)

    return app


app = create_app()
