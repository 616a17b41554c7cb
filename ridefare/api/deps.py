"""
Shared FastAPI dependencies for the ridefare API.

Provides the async database session dependency used by all route handlers,
the pricing collaborators bundle, and the acting-admin header used by the
version management routes.
"""

from __future__ import annotations

import uuid
from collections.abc import AsyncGenerator
from functools import lru_cache
from typing import Annotated, Optional

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from ridefare.core.config import settings
from ridefare.integrations.collaborators import PricingCollaborators

# ---------------------------------------------------------------------------
# Async engine & session factory
# ---------------------------------------------------------------------------
# The engine is created once at module import time.  The session factory
# produces lightweight ``AsyncSession`` instances that are scoped to a single
# request via the ``get_db`` dependency below.
# ---------------------------------------------------------------------------

engine = create_async_engine(
    settings.database_url,
    echo=settings.sql_echo,
    pool_size=settings.db_pool_size,
    max_overflow=settings.db_max_overflow,
    pool_pre_ping=True,
)

async_session_factory = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async database session that commits when the request
    succeeds and rolls back when it raises.

    Usage in a route::

        @router.get("/items")
        async def list_items(db: DBSession):
            ...
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


# ---------------------------------------------------------------------------
# Pricing collaborators
# ---------------------------------------------------------------------------

@lru_cache(maxsize=1)
def get_collaborators() -> PricingCollaborators:
    """Process-wide collaborators; the Redis telemetry client connects lazily."""
    return PricingCollaborators()


# ---------------------------------------------------------------------------
# Request metadata dependencies
# ---------------------------------------------------------------------------

def get_admin_id(
    x_admin_id: Annotated[Optional[uuid.UUID], Header()] = None,
) -> Optional[uuid.UUID]:
    """Acting admin from the ``X-Admin-Id`` header, recorded in audit entries."""
    return x_admin_id


# ---------------------------------------------------------------------------
# Annotated type aliases for convenience
# ---------------------------------------------------------------------------
DBSession = Annotated[AsyncSession, Depends(get_db)]
Collaborators = Annotated[PricingCollaborators, Depends(get_collaborators)]
AdminId = Annotated[Optional[uuid.UUID], Depends(get_admin_id)]
