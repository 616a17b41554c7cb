"""Ridefare Pricing API -- Main Application Entry Point

Creates the FastAPI application, configures logging and CORS middleware,
installs the pricing error handlers and registers the public and admin
pricing routers under the /api/v1 prefix.

Run with::

    uvicorn ridefare.main:app --host 0.0.0.0 --port 8000 --reload
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ridefare.api.deps import engine, get_collaborators
from ridefare.api.routes import pricing, pricingAdmin
from ridefare.core.config import settings
from ridefare.core.exceptions import register_exception_handlers

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Lifespan: startup / shutdown hooks
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan context manager.

    Shutdown:
      - Close the demand telemetry client.
      - Dispose of the database engine's connection pool.
    """
    logger.info("Starting %s %s", settings.app_name, settings.app_version)

    yield

    telemetry = get_collaborators().telemetry
    close = getattr(telemetry, "close", None)
    if close is not None:
        try:
            await close()
        except Exception:
            logger.warning("Failed to close demand telemetry client", exc_info=True)
    await engine.dispose()


# ---------------------------------------------------------------------------
# Application instance
# ---------------------------------------------------------------------------

app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    debug=settings.debug,
    lifespan=lifespan,
)

register_exception_handlers(app)


# ---------------------------------------------------------------------------
# CORS middleware
# ---------------------------------------------------------------------------

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Health check
# ---------------------------------------------------------------------------

@app.get("/health", tags=["Health"])
async def health():
    """Lightweight health check for load balancers and readiness probes."""
    return {"status": "ok", "version": settings.app_version}


# ---------------------------------------------------------------------------
# Register API route modules
# ---------------------------------------------------------------------------

_prefix = settings.api_v1_prefix

app.include_router(pricing.router, prefix=_prefix)
app.include_router(pricingAdmin.router, prefix=_prefix)
