"""
Pricing Administration API Routes
=================================

Version lifecycle and versioned pricing rows.  Only draft versions accept
writes; every mutation records an audit entry carrying the ``X-Admin-Id``
header and the optional ``reason`` query parameter.

  POST   /api/v1/admin/pricing/versions                     -- Create a draft
  GET    /api/v1/admin/pricing/versions                     -- List versions
  GET    /api/v1/admin/pricing/versions/{id}                -- Get a version
  PATCH  /api/v1/admin/pricing/versions/{id}                -- Edit a draft
  POST   /api/v1/admin/pricing/versions/{id}/clone          -- Copy into a new draft
  POST   /api/v1/admin/pricing/versions/{id}/activate       -- Promote a draft
  POST   /api/v1/admin/pricing/versions/{id}/archive        -- Retire a version
  POST   /api/v1/admin/pricing/versions/{id}/<rows>         -- Add a row to a draft
  GET    /api/v1/admin/pricing/versions/{id}/<rows>         -- List a version's rows
  GET    /api/v1/admin/pricing/<rows>/{row_id}              -- Get a row
  PATCH  /api/v1/admin/pricing/<rows>/{row_id}              -- Edit a draft's row
  DELETE /api/v1/admin/pricing/<rows>/{row_id}              -- Remove a draft's row
  GET    /api/v1/admin/pricing/audit-logs                   -- Audit trail
"""

import uuid
from typing import Annotated, Any, Optional

from fastapi import APIRouter, Query, status
from pydantic import BaseModel

from ridefare.api.deps import AdminId, DBSession
from ridefare.api.schemas.pricingAdmin import (
    AuditLogOut,
    EventMultiplierCreateRequest,
    EventMultiplierOut,
    EventMultiplierUpdateRequest,
    Page,
    PricingConfigIn,
    PricingConfigOut,
    SurgeThresholdCreateRequest,
    SurgeThresholdOut,
    SurgeThresholdUpdateRequest,
    TimeMultiplierCreateRequest,
    TimeMultiplierOut,
    TimeMultiplierUpdateRequest,
    VersionCloneRequest,
    VersionCreateRequest,
    VersionOut,
    VersionUpdateRequest,
    WeatherMultiplierCreateRequest,
    WeatherMultiplierOut,
    WeatherMultiplierUpdateRequest,
    ZoneFeeCreateRequest,
    ZoneFeeOut,
    ZoneFeeUpdateRequest,
)
from ridefare.core.config import settings
from ridefare.models import PricingVersionStatus
from ridefare.services import versionManager

router = APIRouter(prefix="/admin/pricing", tags=["Pricing Admin"])

Limit = Annotated[int, Query(ge=1, le=settings.max_page_size)]
Offset = Annotated[int, Query(ge=0)]
Reason = Annotated[Optional[str], Query(max_length=500, description="Recorded in the audit log")]


def _page(items: list[Any], total: int, limit: int, offset: int) -> dict[str, Any]:
    return {"items": items, "total": total, "limit": limit, "offset": offset}


# ---------------------------------------------------------------------------
# Versions
# ---------------------------------------------------------------------------

@router.post(
    "/versions",
    response_model=VersionOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create a draft pricing version",
)
async def create_version(
    body: VersionCreateRequest,
    db: DBSession,
    admin_id: AdminId,
    reason: Reason = None,
):
    return await versionManager.create_version(
        db,
        name=body.name,
        admin_id=admin_id,
        description=body.description,
        effective_from=body.effective_from,
        effective_until=body.effective_until,
        ab_test_percentage=body.ab_test_percentage,
        reason=reason,
    )


@router.get(
    "/versions",
    response_model=Page[VersionOut],
    summary="List pricing versions, newest first",
)
async def list_versions(
    db: DBSession,
    limit: Limit = settings.default_page_size,
    offset: Offset = 0,
    status_filter: Annotated[Optional[PricingVersionStatus], Query(alias="status")] = None,
):
    items, total = await versionManager.list_versions(db, limit, offset, status_filter)
    return _page(items, total, limit, offset)


@router.get(
    "/versions/{version_id}",
    response_model=VersionOut,
    summary="Get a pricing version",
)
async def get_version(version_id: uuid.UUID, db: DBSession):
    return await versionManager.get_version(db, version_id)


@router.patch(
    "/versions/{version_id}",
    response_model=VersionOut,
    summary="Edit a draft version",
)
async def update_version(
    version_id: uuid.UUID,
    body: VersionUpdateRequest,
    db: DBSession,
    admin_id: AdminId,
    reason: Reason = None,
):
    return await versionManager.update_version(
        db, version_id, body.model_dump(exclude_unset=True), admin_id, reason
    )


@router.post(
    "/versions/{version_id}/clone",
    response_model=VersionOut,
    status_code=status.HTTP_201_CREATED,
    summary="Copy a version and all its rows into a new draft",
)
async def clone_version(
    version_id: uuid.UUID,
    body: VersionCloneRequest,
    db: DBSession,
    admin_id: AdminId,
    reason: Reason = None,
):
    return await versionManager.clone_version(db, version_id, body.name, admin_id, reason)


@router.post(
    "/versions/{version_id}/activate",
    response_model=VersionOut,
    summary="Make a draft the active version",
    description=(
        "Archives the currently active version and promotes the draft in one "
        "transaction.  Only drafts can be activated."
    ),
)
async def activate_version(
    version_id: uuid.UUID,
    db: DBSession,
    admin_id: AdminId,
    reason: Reason = None,
):
    return await versionManager.activate_version(db, version_id, admin_id, reason)


@router.post(
    "/versions/{version_id}/archive",
    response_model=VersionOut,
    summary="Archive a version",
)
async def archive_version(
    version_id: uuid.UUID,
    db: DBSession,
    admin_id: AdminId,
    reason: Reason = None,
):
    return await versionManager.archive_version(db, version_id, admin_id, reason)


# ---------------------------------------------------------------------------
# Versioned rows
# ---------------------------------------------------------------------------

def _register_entity_routes(
    kind: str,
    path: str,
    label: str,
    create_schema: type[BaseModel],
    update_schema: type[BaseModel],
    out_schema: type[BaseModel],
) -> None:
    """Mount create/list under a version and get/update/delete by row id."""

    async def create_row(
        version_id: uuid.UUID,
        body: create_schema,
        db: DBSession,
        admin_id: AdminId,
        reason: Reason = None,
    ):
        return await versionManager.create_entity(
            db, kind, version_id, body.model_dump(exclude_none=True), admin_id, reason
        )

    async def list_rows(
        version_id: uuid.UUID,
        db: DBSession,
        limit: Limit = settings.default_page_size,
        offset: Offset = 0,
    ):
        items, total = await versionManager.list_entities(db, kind, version_id, limit, offset)
        return _page(items, total, limit, offset)

    async def get_row(entity_id: uuid.UUID, db: DBSession):
        return await versionManager.get_entity(db, kind, entity_id)

    async def update_row(
        entity_id: uuid.UUID,
        body: update_schema,
        db: DBSession,
        admin_id: AdminId,
        reason: Reason = None,
    ):
        return await versionManager.update_entity(
            db, kind, entity_id, body.model_dump(exclude_unset=True), admin_id, reason
        )

    async def delete_row(
        entity_id: uuid.UUID,
        db: DBSession,
        admin_id: AdminId,
        reason: Reason = None,
    ) -> None:
        await versionManager.delete_entity(db, kind, entity_id, admin_id, reason)

    router.add_api_route(
        f"/versions/{{version_id}}/{path}",
        create_row,
        methods=["POST"],
        response_model=out_schema,
        status_code=status.HTTP_201_CREATED,
        summary=f"Add a {label} to a draft version",
        name=f"create_{kind}",
    )
    router.add_api_route(
        f"/versions/{{version_id}}/{path}",
        list_rows,
        methods=["GET"],
        response_model=Page[out_schema],
        summary=f"List a version's {label}s",
        name=f"list_{kind}s",
    )
    router.add_api_route(
        f"/{path}/{{entity_id}}",
        get_row,
        methods=["GET"],
        response_model=out_schema,
        summary=f"Get a {label}",
        name=f"get_{kind}",
    )
    router.add_api_route(
        f"/{path}/{{entity_id}}",
        update_row,
        methods=["PATCH"],
        response_model=out_schema,
        summary=f"Edit a {label} of a draft version",
        name=f"update_{kind}",
    )
    router.add_api_route(
        f"/{path}/{{entity_id}}",
        delete_row,
        methods=["DELETE"],
        status_code=status.HTTP_204_NO_CONTENT,
        summary=f"Remove a {label} from a draft version",
        name=f"delete_{kind}",
    )


_register_entity_routes(
    "pricing_config", "configs", "pricing config",
    PricingConfigIn, PricingConfigIn, PricingConfigOut,
)
_register_entity_routes(
    "zone_fee", "zone-fees", "zone fee",
    ZoneFeeCreateRequest, ZoneFeeUpdateRequest, ZoneFeeOut,
)
_register_entity_routes(
    "time_multiplier", "time-multipliers", "time multiplier",
    TimeMultiplierCreateRequest, TimeMultiplierUpdateRequest, TimeMultiplierOut,
)
_register_entity_routes(
    "weather_multiplier", "weather-multipliers", "weather multiplier",
    WeatherMultiplierCreateRequest, WeatherMultiplierUpdateRequest, WeatherMultiplierOut,
)
_register_entity_routes(
    "event_multiplier", "event-multipliers", "event multiplier",
    EventMultiplierCreateRequest, EventMultiplierUpdateRequest, EventMultiplierOut,
)
_register_entity_routes(
    "surge_threshold", "surge-thresholds", "surge threshold",
    SurgeThresholdCreateRequest, SurgeThresholdUpdateRequest, SurgeThresholdOut,
)


# ---------------------------------------------------------------------------
# Audit trail
# ---------------------------------------------------------------------------

@router.get(
    "/audit-logs",
    response_model=Page[AuditLogOut],
    summary="List audit entries, newest first",
)
async def list_audit_logs(
    db: DBSession,
    limit: Limit = settings.default_page_size,
    offset: Offset = 0,
    entity_type: Optional[str] = None,
    entity_id: Optional[uuid.UUID] = None,
):
    items, total = await versionManager.list_audit_logs(db, limit, offset, entity_type, entity_id)
    return _page(items, total, limit, offset)
