"""
Pricing Config Store
====================

Persistence layer for versioned pricing: point-in-time resolution queries
used while pricing a ride, version CRUD with transactional clone and
activation, per-entity CRUD, and the append-only audit log.

Every resolution query takes an explicit ``version_id`` so that a single
fare calculation reads one consistent snapshot.  Missing rows are reported
with the ``NOT_FOUND`` sentinel; ``DependencyUnavailableError`` is reserved
for infrastructure failures and always chains the original SQLAlchemy
error.

All methods are async and accept an ``AsyncSession``.  Writes are flushed
but never committed here; the request-scoped session owns the transaction.
"""

from __future__ import annotations

import copy
import functools
import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Optional, TypeVar

from sqlalchemy import and_, func, inspect, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ridefare.core.exceptions import ConflictError, DependencyUnavailableError
from ridefare.models import (
    EventMultiplier,
    PricingAuditLog,
    PricingConfig,
    PricingVersion,
    PricingVersionStatus,
    PricingZone,
    SurgeThreshold,
    TimeMultiplier,
    WeatherMultiplier,
    ZoneFee,
)
from ridefare.services.pricingTypes import sunday_based_weekday, window_contains

logger = logging.getLogger(__name__)

T = TypeVar("T")


# ---------------------------------------------------------------------------
# Sentinel
# ---------------------------------------------------------------------------

class _NotFoundType:
    """Marker for "no such row"; falsy so ``if not row`` reads naturally."""

    _instance: Optional["_NotFoundType"] = None

    def __new__(cls) -> "_NotFoundType":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "NOT_FOUND"


NOT_FOUND = _NotFoundType()

# Child tables copied by ``clone_version``
CHILD_MODELS: tuple[type, ...] = (
    PricingConfig,
    ZoneFee,
    TimeMultiplier,
    WeatherMultiplier,
    EventMultiplier,
    SurgeThreshold,
)

# Columns never copied when cloning a row
_CLONE_SKIP_COLUMNS = frozenset({"id", "version_id", "created_at", "updated_at"})


def _store_errors(func_):
    """Wrap SQLAlchemy failures in ``DependencyUnavailableError``."""

    @functools.wraps(func_)
    async def wrapper(*args, **kwargs):
        try:
            return await func_(*args, **kwargs)
        except SQLAlchemyError as exc:
            raise DependencyUnavailableError("pricing store", exc) from exc

    return wrapper


def as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored in UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# ---------------------------------------------------------------------------
# Scope helpers
# ---------------------------------------------------------------------------

def _regional_scope_clause(
    model: Any,
    country_id: Optional[uuid.UUID],
    region_id: Optional[uuid.UUID],
    city_id: Optional[uuid.UUID],
):
    """Global rows plus rows pinned to exactly one of the given levels."""
    clauses = [
        and_(model.country_id.is_(None), model.region_id.is_(None), model.city_id.is_(None))
    ]
    if country_id is not None:
        clauses.append(
            and_(
                model.country_id == country_id,
                model.region_id.is_(None),
                model.city_id.is_(None),
            )
        )
    if region_id is not None:
        clauses.append(and_(model.region_id == region_id, model.city_id.is_(None)))
    if city_id is not None:
        clauses.append(model.city_id == city_id)
    return or_(*clauses)


def regional_scope_rank(row: Any) -> int:
    """City 3, region 2, country 1, global 0."""
    if row.city_id is not None:
        return 3
    if row.region_id is not None:
        return 2
    if row.country_id is not None:
        return 1
    return 0


# ---------------------------------------------------------------------------
# Resolution queries
# ---------------------------------------------------------------------------

@_store_errors
async def get_active_version_id(
    db: AsyncSession,
    now: Optional[datetime] = None,
) -> uuid.UUID | _NotFoundType:
    """Return the id of the version active at ``now``, or ``NOT_FOUND``."""
    now = now or datetime.now(timezone.utc)
    stmt = (
        select(PricingVersion.id)
        .where(
            and_(
                PricingVersion.status == PricingVersionStatus.ACTIVE,
                PricingVersion.effective_from <= now,
                or_(
                    PricingVersion.effective_until.is_(None),
                    PricingVersion.effective_until > now,
                ),
            )
        )
        .order_by(PricingVersion.effective_from.desc())
        .limit(1)
    )
    result = await db.execute(stmt)
    version_id = result.scalar_one_or_none()
    return NOT_FOUND if version_id is None else version_id


@_store_errors
async def configs_for(
    db: AsyncSession,
    version_id: uuid.UUID,
    country_id: Optional[uuid.UUID] = None,
    region_id: Optional[uuid.UUID] = None,
    city_id: Optional[uuid.UUID] = None,
    zone_id: Optional[uuid.UUID] = None,
    ride_type_id: Optional[uuid.UUID] = None,
) -> list[PricingConfig]:
    """Applicable configs, most specific first.

    Ordering is zone > city > region > country > global, and within one
    level ride-type-specific rows come before ride-type-agnostic ones.
    """
    scope = [
        and_(
            PricingConfig.country_id.is_(None),
            PricingConfig.region_id.is_(None),
            PricingConfig.city_id.is_(None),
            PricingConfig.zone_id.is_(None),
        )
    ]
    if country_id is not None:
        scope.append(
            and_(
                PricingConfig.country_id == country_id,
                PricingConfig.region_id.is_(None),
                PricingConfig.city_id.is_(None),
                PricingConfig.zone_id.is_(None),
            )
        )
    if region_id is not None:
        scope.append(
            and_(
                PricingConfig.region_id == region_id,
                PricingConfig.city_id.is_(None),
                PricingConfig.zone_id.is_(None),
            )
        )
    if city_id is not None:
        scope.append(
            and_(PricingConfig.city_id == city_id, PricingConfig.zone_id.is_(None))
        )
    if zone_id is not None:
        scope.append(PricingConfig.zone_id == zone_id)

    ride_type_clause = PricingConfig.ride_type_id.is_(None)
    if ride_type_id is not None:
        ride_type_clause = or_(ride_type_clause, PricingConfig.ride_type_id == ride_type_id)

    stmt = select(PricingConfig).where(
        and_(
            PricingConfig.version_id == version_id,
            PricingConfig.is_active.is_(True),
            or_(*scope),
            ride_type_clause,
        )
    )
    result = await db.execute(stmt)
    rows = list(result.scalars().all())
    rows.sort(
        key=lambda c: (c.scope_level, c.ride_type_id is not None),
        reverse=True,
    )
    return rows


@_store_errors
async def zone_fees_for(
    db: AsyncSession,
    version_id: uuid.UUID,
    pickup_zone_id: Optional[uuid.UUID],
    dropoff_zone_id: Optional[uuid.UUID],
    ride_type_id: Optional[uuid.UUID] = None,
) -> list[ZoneFee]:
    """Active fees attached to the pickup or dropoff zone."""
    zone_ids = [z for z in (pickup_zone_id, dropoff_zone_id) if z is not None]
    if not zone_ids:
        return []

    ride_type_clause = ZoneFee.ride_type_id.is_(None)
    if ride_type_id is not None:
        ride_type_clause = or_(ride_type_clause, ZoneFee.ride_type_id == ride_type_id)

    stmt = (
        select(ZoneFee)
        .where(
            and_(
                ZoneFee.version_id == version_id,
                ZoneFee.is_active.is_(True),
                ZoneFee.zone_id.in_(zone_ids),
                ride_type_clause,
            )
        )
        .order_by(ZoneFee.fee_type)
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())


@_store_errors
async def time_multiplier_for(
    db: AsyncSession,
    version_id: uuid.UUID,
    country_id: Optional[uuid.UUID],
    region_id: Optional[uuid.UUID],
    city_id: Optional[uuid.UUID],
    local_now: datetime,
) -> TimeMultiplier | _NotFoundType:
    """Nearest-scope, highest-priority window containing ``local_now``.

    ``local_now`` is the wall clock at the pickup.  Windows with
    start > end wrap midnight.
    """
    stmt = select(TimeMultiplier).where(
        and_(
            TimeMultiplier.version_id == version_id,
            TimeMultiplier.is_active.is_(True),
            _regional_scope_clause(TimeMultiplier, country_id, region_id, city_id),
        )
    )
    result = await db.execute(stmt)

    weekday = sunday_based_weekday(local_now)
    clock = local_now.strftime("%H:%M")
    matching = [
        row
        for row in result.scalars().all()
        if weekday in (row.days_of_week or [])
        and window_contains(row.start_time, row.end_time, clock)
    ]
    if not matching:
        return NOT_FOUND
    return max(matching, key=lambda row: (regional_scope_rank(row), row.priority))


@_store_errors
async def weather_multiplier_for(
    db: AsyncSession,
    version_id: uuid.UUID,
    country_id: Optional[uuid.UUID],
    region_id: Optional[uuid.UUID],
    city_id: Optional[uuid.UUID],
    condition: str,
) -> WeatherMultiplier | _NotFoundType:
    """Nearest-scope multiplier for ``condition``."""
    stmt = select(WeatherMultiplier).where(
        and_(
            WeatherMultiplier.version_id == version_id,
            WeatherMultiplier.is_active.is_(True),
            WeatherMultiplier.weather_condition == condition,
            _regional_scope_clause(WeatherMultiplier, country_id, region_id, city_id),
        )
    )
    result = await db.execute(stmt)
    rows = result.scalars().all()
    if not rows:
        return NOT_FOUND
    return max(rows, key=regional_scope_rank)


@_store_errors
async def event_multipliers_active(
    db: AsyncSession,
    version_id: uuid.UUID,
    city_id: Optional[uuid.UUID],
    zone_id: Optional[uuid.UUID],
    now: datetime,
) -> list[EventMultiplier]:
    """Events at the city or zone whose widened window contains ``now``.

    The window is the closed interval
    ``[starts_at - pre_event_minutes, ends_at + post_event_minutes]`` in UTC.
    Results are ordered by multiplier, highest first.
    """
    location = []
    if city_id is not None:
        location.append(EventMultiplier.city_id == city_id)
    if zone_id is not None:
        location.append(EventMultiplier.zone_id == zone_id)
    if not location:
        return []

    stmt = select(EventMultiplier).where(
        and_(
            EventMultiplier.version_id == version_id,
            EventMultiplier.is_active.is_(True),
            or_(*location),
        )
    )
    result = await db.execute(stmt)

    now = as_utc(now)
    active = [
        event
        for event in result.scalars().all()
        if as_utc(event.starts_at) - timedelta(minutes=event.pre_event_minutes)
        <= now
        <= as_utc(event.ends_at) + timedelta(minutes=event.post_event_minutes)
    ]
    active.sort(key=lambda event: event.multiplier, reverse=True)
    return active


@_store_errors
async def surge_thresholds_for(
    db: AsyncSession,
    version_id: uuid.UUID,
    country_id: Optional[uuid.UUID],
    region_id: Optional[uuid.UUID],
    city_id: Optional[uuid.UUID],
) -> list[SurgeThreshold]:
    """Tiers from the nearest scope that has any, by ratio_min ascending."""
    stmt = select(SurgeThreshold).where(
        and_(
            SurgeThreshold.version_id == version_id,
            SurgeThreshold.is_active.is_(True),
            _regional_scope_clause(SurgeThreshold, country_id, region_id, city_id),
        )
    )
    result = await db.execute(stmt)
    rows = list(result.scalars().all())
    if not rows:
        return []
    nearest = max(regional_scope_rank(row) for row in rows)
    tiers = [row for row in rows if regional_scope_rank(row) == nearest]
    tiers.sort(key=lambda row: row.demand_supply_ratio_min)
    return tiers


@_store_errors
async def zone_name(db: AsyncSession, zone_id: uuid.UUID) -> str | _NotFoundType:
    result = await db.execute(select(PricingZone.name).where(PricingZone.id == zone_id))
    name = result.scalar_one_or_none()
    return NOT_FOUND if name is None else name


# ---------------------------------------------------------------------------
# Versions
# ---------------------------------------------------------------------------

@_store_errors
async def next_version_number(db: AsyncSession) -> int:
    result = await db.execute(select(func.max(PricingVersion.version_number)))
    current = result.scalar_one_or_none()
    return (current or 0) + 1


@_store_errors
async def create_version(db: AsyncSession, version: PricingVersion) -> PricingVersion:
    """Insert ``version``, assigning the next version number if unset."""
    if version.version_number is None:
        version.version_number = await next_version_number(db)
    try:
        db.add(version)
        await db.flush()
    except IntegrityError as exc:
        raise ConflictError(
            f"Version number {version.version_number} already exists"
        ) from exc
    return version


@_store_errors
async def get_version(
    db: AsyncSession,
    version_id: uuid.UUID,
    for_update: bool = False,
) -> PricingVersion | _NotFoundType:
    stmt = select(PricingVersion).where(PricingVersion.id == version_id)
    if for_update:
        stmt = stmt.with_for_update()
    result = await db.execute(stmt)
    version = result.scalar_one_or_none()
    return NOT_FOUND if version is None else version


@_store_errors
async def list_versions(
    db: AsyncSession,
    limit: int,
    offset: int,
    status: Optional[PricingVersionStatus] = None,
) -> tuple[list[PricingVersion], int]:
    """Versions newest first, with the unpaginated total."""
    filters = []
    if status is not None:
        filters.append(PricingVersion.status == status)

    total = await db.scalar(
        select(func.count()).select_from(PricingVersion).where(*filters)
    )
    stmt = (
        select(PricingVersion)
        .where(*filters)
        .order_by(PricingVersion.version_number.desc())
        .limit(limit)
        .offset(offset)
    )
    result = await db.execute(stmt)
    return list(result.scalars().all()), int(total or 0)


@_store_errors
async def activate_version(
    db: AsyncSession,
    version_id: uuid.UUID,
    approver_id: Optional[uuid.UUID],
    now: Optional[datetime] = None,
) -> PricingVersion | _NotFoundType:
    """Archive every active version and promote ``version_id`` from draft.

    Runs inside the caller's transaction.  The active rows and the target
    are locked first; nothing is written unless the target is a draft, so
    a ``ConflictError`` leaves the store untouched.
    """
    now = now or datetime.now(timezone.utc)

    # Lock currently active rows, then the target
    await db.execute(
        select(PricingVersion.id)
        .where(PricingVersion.status == PricingVersionStatus.ACTIVE)
        .with_for_update()
    )
    target = await get_version(db, version_id, for_update=True)
    if target is NOT_FOUND:
        return NOT_FOUND
    if target.status != PricingVersionStatus.DRAFT:
        raise ConflictError(
            f"Only draft versions can be activated; version {version_id} is "
            f"'{target.status.value}'",
            details={"status": target.status.value},
        )

    try:
        await db.execute(
            update(PricingVersion)
            .where(PricingVersion.status == PricingVersionStatus.ACTIVE)
            .values(status=PricingVersionStatus.ARCHIVED, updated_at=now)
        )
        target.status = PricingVersionStatus.ACTIVE
        target.approved_by = approver_id
        target.approved_at = now
        await db.flush()
    except IntegrityError as exc:
        # Lost a race with a concurrent activation
        raise ConflictError("Another version was activated concurrently") from exc

    logger.info("Pricing version activated: id=%s, by=%s", version_id, approver_id)
    return target


@_store_errors
async def archive_version(db: AsyncSession, version: PricingVersion) -> PricingVersion:
    if version.status != PricingVersionStatus.ARCHIVED:
        version.status = PricingVersionStatus.ARCHIVED
        await db.flush()
    return version


@_store_errors
async def clone_version(
    db: AsyncSession,
    source_id: uuid.UUID,
    name: str,
    created_by: Optional[uuid.UUID],
) -> PricingVersion | _NotFoundType:
    """Deep-copy ``source_id`` into a new draft with fresh row ids."""
    source = await get_version(db, source_id)
    if source is NOT_FOUND:
        return NOT_FOUND

    clone = PricingVersion(
        id=uuid.uuid4(),
        version_number=await next_version_number(db),
        name=name,
        description=source.description,
        status=PricingVersionStatus.DRAFT,
        ab_test_percentage=source.ab_test_percentage,
        effective_from=source.effective_from,
        effective_until=source.effective_until,
        created_by=created_by,
    )
    db.add(clone)
    await db.flush()

    copied = 0
    for model in CHILD_MODELS:
        result = await db.execute(select(model).where(model.version_id == source_id))
        for row in result.scalars().all():
            db.add(_copy_row(model, row, clone.id))
            copied += 1
    await db.flush()

    logger.info(
        "Pricing version cloned: source=%s, clone=%s, rows=%d",
        source_id, clone.id, copied,
    )
    return clone


def _copy_row(model: type[T], row: T, version_id: uuid.UUID) -> T:
    values = {
        column.key: copy.deepcopy(getattr(row, column.key))
        for column in inspect(model).column_attrs
        if column.key not in _CLONE_SKIP_COLUMNS
    }
    return model(id=uuid.uuid4(), version_id=version_id, **values)


# ---------------------------------------------------------------------------
# Entity CRUD
# ---------------------------------------------------------------------------

@_store_errors
async def get_entity(
    db: AsyncSession, model: type[T], entity_id: uuid.UUID
) -> T | _NotFoundType:
    result = await db.execute(select(model).where(model.id == entity_id))
    row = result.scalar_one_or_none()
    return NOT_FOUND if row is None else row


@_store_errors
async def list_entities(
    db: AsyncSession,
    model: type[T],
    version_id: uuid.UUID,
    limit: int,
    offset: int,
) -> tuple[list[T], int]:
    total = await db.scalar(
        select(func.count()).select_from(model).where(model.version_id == version_id)
    )
    stmt = (
        select(model)
        .where(model.version_id == version_id)
        .order_by(model.created_at, model.id)
        .limit(limit)
        .offset(offset)
    )
    result = await db.execute(stmt)
    return list(result.scalars().all()), int(total or 0)


@_store_errors
async def add_entity(db: AsyncSession, row: T) -> T:
    db.add(row)
    await db.flush()
    return row


@_store_errors
async def update_entity(db: AsyncSession, row: T, values: dict[str, Any]) -> T:
    for key, value in values.items():
        setattr(row, key, value)
    await db.flush()
    return row


@_store_errors
async def delete_entity(db: AsyncSession, row: Any) -> None:
    await db.delete(row)
    await db.flush()


@_store_errors
async def rows_with_scope(
    db: AsyncSession,
    model: type[T],
    version_id: uuid.UUID,
    scope: dict[str, Any],
    exclude_id: Optional[uuid.UUID] = None,
) -> list[T]:
    """Rows in ``version_id`` whose columns equal ``scope`` exactly (NULL-safe)."""
    clauses = [model.version_id == version_id]
    for key, value in scope.items():
        column = getattr(model, key)
        clauses.append(column.is_(None) if value is None else column == value)
    if exclude_id is not None:
        clauses.append(model.id != exclude_id)
    result = await db.execute(select(model).where(and_(*clauses)))
    return list(result.scalars().all())


@_store_errors
async def configs_with_surge_bounds(
    db: AsyncSession,
    version_id: uuid.UUID,
    exclude_id: Optional[uuid.UUID] = None,
) -> list[PricingConfig]:
    """Active configs in ``version_id`` that set either surge bound."""
    clauses = [
        PricingConfig.version_id == version_id,
        PricingConfig.is_active.is_(True),
        or_(
            PricingConfig.surge_min_multiplier.is_not(None),
            PricingConfig.surge_max_multiplier.is_not(None),
        ),
    ]
    if exclude_id is not None:
        clauses.append(PricingConfig.id != exclude_id)
    result = await db.execute(select(PricingConfig).where(and_(*clauses)))
    return list(result.scalars().all())


# ---------------------------------------------------------------------------
# Audit log
# ---------------------------------------------------------------------------

async def insert_audit_log(db: AsyncSession, entry: PricingAuditLog) -> bool:
    """Best-effort audit write inside a savepoint.

    A failure is logged and rolled back to the savepoint so the surrounding
    mutation still commits.
    """
    try:
        async with db.begin_nested():
            db.add(entry)
            await db.flush()
    except SQLAlchemyError:
        logger.warning(
            "Audit log write failed: action=%s, entity=%s:%s",
            entry.action, entry.entity_type, entry.entity_id,
            exc_info=True,
        )
        return False
    return True


@_store_errors
async def list_audit_logs(
    db: AsyncSession,
    limit: int,
    offset: int,
    entity_type: Optional[str] = None,
    entity_id: Optional[uuid.UUID] = None,
) -> tuple[list[PricingAuditLog], int]:
    filters = []
    if entity_type is not None:
        filters.append(PricingAuditLog.entity_type == entity_type)
    if entity_id is not None:
        filters.append(PricingAuditLog.entity_id == entity_id)

    total = await db.scalar(
        select(func.count()).select_from(PricingAuditLog).where(*filters)
    )
    stmt = (
        select(PricingAuditLog)
        .where(*filters)
        .order_by(PricingAuditLog.created_at.desc(), PricingAuditLog.id)
        .limit(limit)
        .offset(offset)
    )
    result = await db.execute(stmt)
    return list(result.scalars().all()), int(total or 0)
