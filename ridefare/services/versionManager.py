"""
Pricing Version Manager
=======================

Lifecycle of pricing versions and audited CRUD of the rows they own.

Business rules:
- New versions start as ``draft``; only drafts can be edited.
- Activating a draft archives whichever version was active, in one
  transaction, and clears the resolved-pricing cache.
- Archiving is idempotent.
- Cloning deep-copies every child row into a new draft.
- Child rows (configs, zone fees, time/weather/event multipliers, surge
  thresholds) can only be created, updated or deleted inside a draft.
- Every mutation appends an audit entry with old and new values after the
  primary change is flushed.  Audit failures are logged and never abort
  the mutation.

All methods are async and accept an ``AsyncSession`` for transactional safety.
"""

from __future__ import annotations

import enum
import logging
import re
import uuid
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable, Optional

from sqlalchemy import inspect
from sqlalchemy.ext.asyncio import AsyncSession

from ridefare.core.exceptions import ConflictError, InvalidInputError, NotFoundError
from ridefare.models import (
    AuditAction,
    CancellationFeeType,
    EventMultiplier,
    PricingAuditLog,
    PricingConfig,
    PricingVersion,
    PricingVersionStatus,
    SurgeThreshold,
    TimeMultiplier,
    WeatherCondition,
    WeatherMultiplier,
    ZoneFee,
)
from ridefare.models.base import utcnow
from ridefare.services import pricingStore
from ridefare.services.pricingResolver import invalidate_cache
from ridefare.services.pricingTypes import CancellationFee

logger = logging.getLogger(__name__)

VERSION_ENTITY = "pricing_version"

_HHMM = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")

# Values accepted when editing a version
VERSION_MUTABLE_FIELDS = frozenset(
    {"name", "description", "effective_from", "effective_until", "ab_test_percentage"}
)


# ---------------------------------------------------------------------------
# Snapshots
# ---------------------------------------------------------------------------

def _jsonable(value: Any) -> Any:
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


def _columns(obj: Any) -> dict[str, Any]:
    return {
        attr.key: getattr(obj, attr.key)
        for attr in inspect(type(obj)).column_attrs
    }


def _snapshot(obj: Any) -> dict[str, Any]:
    """JSON-safe copy of every mapped column of ``obj``."""
    return {key: _jsonable(value) for key, value in _columns(obj).items()}


async def _audit(
    db: AsyncSession,
    admin_id: Optional[uuid.UUID],
    action: AuditAction,
    entity_type: str,
    entity_id: uuid.UUID,
    old_values: Optional[dict[str, Any]] = None,
    new_values: Optional[dict[str, Any]] = None,
    reason: Optional[str] = None,
) -> None:
    await pricingStore.insert_audit_log(
        db,
        PricingAuditLog(
            id=uuid.uuid4(),
            admin_id=admin_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            old_values=old_values,
            new_values=new_values,
            reason=reason,
        ),
    )


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------

def _require(condition: bool, message: str, **details: Any) -> None:
    if not condition:
        raise InvalidInputError(message, details={k: _jsonable(v) for k, v in details.items()})


def _check_scope(values: dict[str, Any], with_zone: bool = False) -> None:
    """Region needs a country, city needs a region, zone needs a city."""
    _require(
        values.get("region_id") is None or values.get("country_id") is not None,
        "region_id requires country_id",
    )
    _require(
        values.get("city_id") is None or values.get("region_id") is not None,
        "city_id requires region_id",
    )
    if with_zone:
        _require(
            values.get("zone_id") is None or values.get("city_id") is not None,
            "zone_id requires city_id",
        )


def _check_non_negative(values: dict[str, Any], *names: str) -> None:
    for name in names:
        value = values.get(name)
        _require(value is None or value >= 0, f"{name} must not be negative", **{name: value})


def _check_percentage(values: dict[str, Any], *names: str) -> None:
    for name in names:
        value = values.get(name)
        _require(
            value is None or 0 <= value <= 100,
            f"{name} must be between 0 and 100",
            **{name: value},
        )


def _check_positive(values: dict[str, Any], name: str = "multiplier") -> None:
    value = values.get(name)
    _require(value is not None and value > 0, f"{name} must be greater than 0", **{name: value})


def _check_days(days: Any, name: str = "days_of_week") -> None:
    _require(isinstance(days, list) and len(days) > 0, f"{name} must be a non-empty list")
    _require(
        all(isinstance(d, int) and 0 <= d <= 6 for d in days),
        f"{name} entries must be between 0 (Sunday) and 6 (Saturday)",
        **{name: days},
    )


def _check_clock(value: Any, name: str) -> None:
    _require(
        isinstance(value, str) and bool(_HHMM.match(value)),
        f"{name} must be a HH:MM time",
        **{name: value},
    )


def _normalize_cancellation_fees(tiers: Any) -> Optional[list[dict[str, Any]]]:
    if tiers is None:
        return None
    _require(isinstance(tiers, list), "cancellation_fees must be a list")
    normalized = []
    for raw in tiers:
        try:
            tier = CancellationFee.from_dict(raw)
        except (KeyError, TypeError, ValueError, ArithmeticError) as exc:
            raise InvalidInputError(
                "Invalid cancellation fee tier", details={"tier": _jsonable(raw)}
            ) from exc
        _require(tier.after_minutes >= 0, "after_minutes must not be negative")
        _require(tier.fee >= 0, "Cancellation fee must not be negative")
        _require(
            tier.fee_type != CancellationFeeType.PERCENTAGE or tier.fee <= 100,
            "Percentage cancellation fee must not exceed 100",
        )
        normalized.append(tier.to_dict())
    return normalized


# ---------------------------------------------------------------------------
# Per-kind validators (operate on the merged column values)
# ---------------------------------------------------------------------------

def _validate_config(values: dict[str, Any]) -> None:
    _check_scope(values, with_zone=True)
    _check_non_negative(
        values, "base_fare", "per_km_rate", "per_minute_rate", "minimum_fare", "booking_fee"
    )
    _check_percentage(values, "platform_commission_pct", "driver_incentive_pct", "tax_rate_pct")
    surge_min = values.get("surge_min_multiplier")
    surge_max = values.get("surge_max_multiplier")
    for name, value in (("surge_min_multiplier", surge_min), ("surge_max_multiplier", surge_max)):
        _require(value is None or value > 0, f"{name} must be greater than 0")
    if surge_min is not None and surge_max is not None:
        _require(
            surge_min <= surge_max,
            "surge_min_multiplier must not exceed surge_max_multiplier",
            surge_min_multiplier=surge_min,
            surge_max_multiplier=surge_max,
        )
    values["cancellation_fees"] = _normalize_cancellation_fees(values.get("cancellation_fees"))


def _validate_zone_fee(values: dict[str, Any]) -> None:
    _require(values.get("zone_id") is not None, "zone_id is required")
    _require(bool(values.get("fee_type")), "fee_type is required")
    _check_non_negative(values, "amount")
    _require(values.get("amount") is not None, "amount is required")
    if values.get("is_percentage"):
        _check_percentage(values, "amount")
    _require(
        values.get("applies_pickup", True) or values.get("applies_dropoff", True),
        "A zone fee must apply at pickup or dropoff",
    )
    schedule = values.get("schedule")
    if schedule:
        _check_days(schedule.get("days"), "schedule.days")
        _check_clock(schedule.get("start_time"), "schedule.start_time")
        _check_clock(schedule.get("end_time"), "schedule.end_time")


def _validate_time_multiplier(values: dict[str, Any]) -> None:
    _check_scope(values)
    _require(bool(values.get("name")), "name is required")
    _check_days(values.get("days_of_week", list(range(7))))
    _check_clock(values.get("start_time"), "start_time")
    _check_clock(values.get("end_time"), "end_time")
    _check_positive(values)


def _validate_weather_multiplier(values: dict[str, Any]) -> None:
    _check_scope(values)
    condition = values.get("weather_condition")
    _require(
        condition in {c.value for c in WeatherCondition},
        "Unknown weather_condition",
        weather_condition=condition,
    )
    _check_positive(values)


def _validate_event_multiplier(values: dict[str, Any]) -> None:
    _require(
        values.get("city_id") is not None or values.get("zone_id") is not None,
        "An event needs a city_id or zone_id",
    )
    _require(bool(values.get("event_name")), "event_name is required")
    _require(bool(values.get("event_type")), "event_type is required")
    starts_at, ends_at = values.get("starts_at"), values.get("ends_at")
    _require(starts_at is not None and ends_at is not None, "starts_at and ends_at are required")
    _require(
        pricingStore.as_utc(ends_at) >= pricingStore.as_utc(starts_at),
        "ends_at must not be before starts_at",
    )
    _check_non_negative(values, "pre_event_minutes", "post_event_minutes")
    _check_positive(values)


def _validate_surge_threshold(values: dict[str, Any]) -> None:
    _check_scope(values)
    ratio_min = values.get("demand_supply_ratio_min")
    ratio_max = values.get("demand_supply_ratio_max")
    _require(ratio_min is not None and ratio_min >= 0, "demand_supply_ratio_min must not be negative")
    _require(
        ratio_max is None or ratio_max > ratio_min,
        "demand_supply_ratio_max must be greater than demand_supply_ratio_min",
    )
    _check_positive(values)


# ---------------------------------------------------------------------------
# Cross-row checks within a version
# ---------------------------------------------------------------------------

_REGIONAL_SCOPE = ("country_id", "region_id", "city_id")


async def _unique_config_scope(
    db: AsyncSession, version_id: uuid.UUID, values: dict[str, Any], exclude_id: Optional[uuid.UUID]
) -> None:
    scope = {
        key: values.get(key)
        for key in ("country_id", "region_id", "city_id", "zone_id", "ride_type_id")
    }
    if await pricingStore.rows_with_scope(db, PricingConfig, version_id, scope, exclude_id):
        raise ConflictError(
            "A pricing config already exists for this scope",
            details={k: _jsonable(v) for k, v in scope.items()},
        )


_CONFIG_SCOPE = ("country_id", "region_id", "city_id", "zone_id", "ride_type_id")


def _covers(outer: dict[str, Any], inner: dict[str, Any]) -> bool:
    """True when every scope key set on ``outer`` has the same value on ``inner``."""
    return all(
        outer.get(key) is None or outer.get(key) == inner.get(key) for key in _CONFIG_SCOPE
    )


async def _surge_bounds_consistent(
    db: AsyncSession, version_id: uuid.UUID, values: dict[str, Any], exclude_id: Optional[uuid.UUID]
) -> None:
    """Reject a surge bound that crosses one set above or below it on the same path."""
    surge_min = values.get("surge_min_multiplier")
    surge_max = values.get("surge_max_multiplier")
    if surge_min is None and surge_max is None:
        return
    for other in await pricingStore.configs_with_surge_bounds(db, version_id, exclude_id):
        other_scope = {key: getattr(other, key) for key in _CONFIG_SCOPE}
        if not (_covers(other_scope, values) or _covers(values, other_scope)):
            continue
        crossed = (
            surge_min is not None
            and other.surge_max_multiplier is not None
            and surge_min > other.surge_max_multiplier
        ) or (
            surge_max is not None
            and other.surge_min_multiplier is not None
            and other.surge_min_multiplier > surge_max
        )
        if crossed:
            raise InvalidInputError(
                "Surge bounds conflict with a related pricing config in this version",
                details={
                    "conflicts_with": str(other.id),
                    "surge_min_multiplier": _jsonable(other.surge_min_multiplier),
                    "surge_max_multiplier": _jsonable(other.surge_max_multiplier),
                },
            )


async def _check_config_rows(
    db: AsyncSession, version_id: uuid.UUID, values: dict[str, Any], exclude_id: Optional[uuid.UUID]
) -> None:
    await _unique_config_scope(db, version_id, values, exclude_id)
    await _surge_bounds_consistent(db, version_id, values, exclude_id)


async def _unique_weather_scope(
    db: AsyncSession, version_id: uuid.UUID, values: dict[str, Any], exclude_id: Optional[uuid.UUID]
) -> None:
    scope = {key: values.get(key) for key in (*_REGIONAL_SCOPE, "weather_condition")}
    if await pricingStore.rows_with_scope(db, WeatherMultiplier, version_id, scope, exclude_id):
        raise ConflictError(
            "A weather multiplier already exists for this scope and condition",
            details={k: _jsonable(v) for k, v in scope.items()},
        )


async def _surge_tiers_disjoint(
    db: AsyncSession, version_id: uuid.UUID, values: dict[str, Any], exclude_id: Optional[uuid.UUID]
) -> None:
    scope = {key: values.get(key) for key in _REGIONAL_SCOPE}
    low = values["demand_supply_ratio_min"]
    high = values.get("demand_supply_ratio_max")
    for tier in await pricingStore.rows_with_scope(db, SurgeThreshold, version_id, scope, exclude_id):
        other_high = tier.demand_supply_ratio_max
        # Half-open intervals [min, max); None is unbounded
        starts_before_other_ends = other_high is None or low < other_high
        other_starts_before_end = high is None or tier.demand_supply_ratio_min < high
        if starts_before_other_ends and other_starts_before_end:
            raise InvalidInputError(
                "Surge threshold overlaps an existing tier in the same scope",
                details={"overlaps": str(tier.id)},
            )


# ---------------------------------------------------------------------------
# Entity kinds
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class EntityKind:
    name: str
    model: type
    validate: Callable[[dict[str, Any]], None]
    check_version: Optional[Callable[..., Any]] = None


ENTITY_KINDS: dict[str, EntityKind] = {
    kind.name: kind
    for kind in (
        EntityKind("pricing_config", PricingConfig, _validate_config, _check_config_rows),
        EntityKind("zone_fee", ZoneFee, _validate_zone_fee),
        EntityKind("time_multiplier", TimeMultiplier, _validate_time_multiplier),
        EntityKind(
            "weather_multiplier", WeatherMultiplier, _validate_weather_multiplier, _unique_weather_scope
        ),
        EntityKind("event_multiplier", EventMultiplier, _validate_event_multiplier),
        EntityKind("surge_threshold", SurgeThreshold, _validate_surge_threshold, _surge_tiers_disjoint),
    )
}


def _kind(name: str) -> EntityKind:
    try:
        return ENTITY_KINDS[name]
    except KeyError:
        raise InvalidInputError(f"Unknown pricing entity '{name}'") from None


# ---------------------------------------------------------------------------
# Version lookups
# ---------------------------------------------------------------------------

async def get_version(db: AsyncSession, version_id: uuid.UUID) -> PricingVersion:
    version = await pricingStore.get_version(db, version_id)
    if version is pricingStore.NOT_FOUND:
        raise NotFoundError("Pricing version", version_id)
    return version


async def list_versions(
    db: AsyncSession,
    limit: int,
    offset: int,
    status: Optional[PricingVersionStatus] = None,
) -> tuple[list[PricingVersion], int]:
    return await pricingStore.list_versions(db, limit, offset, status)


async def _draft_version(db: AsyncSession, version_id: uuid.UUID) -> PricingVersion:
    version = await pricingStore.get_version(db, version_id, for_update=True)
    if version is pricingStore.NOT_FOUND:
        raise NotFoundError("Pricing version", version_id)
    if version.status != PricingVersionStatus.DRAFT:
        raise ConflictError(
            f"Pricing version {version_id} is '{version.status.value}'; only drafts can be modified",
            details={"status": version.status.value},
        )
    return version


def _check_version_values(values: dict[str, Any]) -> None:
    _require(bool(values.get("name")), "name is required")
    percentage = values.get("ab_test_percentage")
    _require(
        percentage is None or 0 <= percentage <= 100,
        "ab_test_percentage must be between 0 and 100",
    )
    starts, ends = values.get("effective_from"), values.get("effective_until")
    _require(
        ends is None or starts is None or pricingStore.as_utc(ends) > pricingStore.as_utc(starts),
        "effective_until must be after effective_from",
    )


# ---------------------------------------------------------------------------
# Version lifecycle
# ---------------------------------------------------------------------------

async def create_version(
    db: AsyncSession,
    name: str,
    admin_id: Optional[uuid.UUID] = None,
    description: Optional[str] = None,
    effective_from: Optional[datetime] = None,
    effective_until: Optional[datetime] = None,
    ab_test_percentage: Optional[int] = None,
    reason: Optional[str] = None,
) -> PricingVersion:
    """Create a new draft version with the next version number.

    Raises:
        InvalidInputError: If the effective window or A/B percentage is invalid.
        ConflictError: If the version number was taken concurrently.
    """
    values = {
        "name": name,
        "description": description,
        "effective_from": effective_from or utcnow(),
        "effective_until": effective_until,
        "ab_test_percentage": ab_test_percentage,
    }
    _check_version_values(values)

    version = PricingVersion(
        id=uuid.uuid4(),
        status=PricingVersionStatus.DRAFT,
        created_by=admin_id,
        **values,
    )
    await pricingStore.create_version(db, version)
    await _audit(
        db, admin_id, AuditAction.CREATE, VERSION_ENTITY, version.id,
        new_values=_snapshot(version), reason=reason,
    )
    logger.info("Pricing version created: id=%s, number=%d", version.id, version.version_number)
    return version


async def update_version(
    db: AsyncSession,
    version_id: uuid.UUID,
    patch: dict[str, Any],
    admin_id: Optional[uuid.UUID] = None,
    reason: Optional[str] = None,
) -> PricingVersion:
    """Apply ``patch`` to a draft version.

    Raises:
        NotFoundError: If the version does not exist.
        ConflictError: If the version is not a draft.
        InvalidInputError: If the patch names an immutable field or the
            merged values are invalid.
    """
    unknown = set(patch) - VERSION_MUTABLE_FIELDS
    _require(not unknown, "Fields cannot be updated", fields=sorted(unknown))

    version = await _draft_version(db, version_id)
    old_values = _snapshot(version)
    merged = {key: getattr(version, key) for key in VERSION_MUTABLE_FIELDS}
    merged.update(patch)
    _check_version_values(merged)

    await pricingStore.update_entity(db, version, patch)
    await _audit(
        db, admin_id, AuditAction.UPDATE, VERSION_ENTITY, version.id,
        old_values=old_values, new_values=_snapshot(version), reason=reason,
    )
    return version


async def clone_version(
    db: AsyncSession,
    source_id: uuid.UUID,
    name: str,
    admin_id: Optional[uuid.UUID] = None,
    reason: Optional[str] = None,
) -> PricingVersion:
    """Deep-copy a version and all of its rows into a new draft."""
    _require(bool(name), "name is required")
    clone = await pricingStore.clone_version(db, source_id, name, admin_id)
    if clone is pricingStore.NOT_FOUND:
        raise NotFoundError("Pricing version", source_id)
    await _audit(
        db, admin_id, AuditAction.CLONE, VERSION_ENTITY, clone.id,
        old_values={"source_version_id": str(source_id)},
        new_values=_snapshot(clone),
        reason=reason,
    )
    return clone


async def activate_version(
    db: AsyncSession,
    version_id: uuid.UUID,
    admin_id: Optional[uuid.UUID] = None,
    reason: Optional[str] = None,
) -> PricingVersion:
    """Make a draft the single active version.

    Raises:
        NotFoundError: If the version does not exist.
        ConflictError: If the version is not a draft or another activation
            won a concurrent race.
    """
    version = await pricingStore.activate_version(db, version_id, admin_id)
    if version is pricingStore.NOT_FOUND:
        raise NotFoundError("Pricing version", version_id)
    invalidate_cache()
    await _audit(
        db, admin_id, AuditAction.ACTIVATE, VERSION_ENTITY, version.id,
        old_values={"status": PricingVersionStatus.DRAFT.value},
        new_values=_snapshot(version),
        reason=reason,
    )
    return version


async def archive_version(
    db: AsyncSession,
    version_id: uuid.UUID,
    admin_id: Optional[uuid.UUID] = None,
    reason: Optional[str] = None,
) -> PricingVersion:
    """Archive a version; archiving an archived version is a no-op."""
    version = await pricingStore.get_version(db, version_id, for_update=True)
    if version is pricingStore.NOT_FOUND:
        raise NotFoundError("Pricing version", version_id)
    if version.status == PricingVersionStatus.ARCHIVED:
        return version

    old_status = version.status.value
    await pricingStore.archive_version(db, version)
    invalidate_cache()
    await _audit(
        db, admin_id, AuditAction.ARCHIVE, VERSION_ENTITY, version.id,
        old_values={"status": old_status},
        new_values=_snapshot(version),
        reason=reason,
    )
    logger.info("Pricing version archived: id=%s, was=%s", version_id, old_status)
    return version


# ---------------------------------------------------------------------------
# Entity CRUD
# ---------------------------------------------------------------------------

async def get_entity(db: AsyncSession, kind_name: str, entity_id: uuid.UUID) -> Any:
    kind = _kind(kind_name)
    row = await pricingStore.get_entity(db, kind.model, entity_id)
    if row is pricingStore.NOT_FOUND:
        raise NotFoundError(kind.name, entity_id)
    return row


async def list_entities(
    db: AsyncSession,
    kind_name: str,
    version_id: uuid.UUID,
    limit: int,
    offset: int,
) -> tuple[list[Any], int]:
    kind = _kind(kind_name)
    await get_version(db, version_id)
    return await pricingStore.list_entities(db, kind.model, version_id, limit, offset)


async def create_entity(
    db: AsyncSession,
    kind_name: str,
    version_id: uuid.UUID,
    values: dict[str, Any],
    admin_id: Optional[uuid.UUID] = None,
    reason: Optional[str] = None,
) -> Any:
    """Validate and insert a row into a draft version."""
    kind = _kind(kind_name)
    await _draft_version(db, version_id)

    values = dict(values)
    kind.validate(values)
    if kind.check_version is not None:
        await kind.check_version(db, version_id, values, None)

    row = kind.model(id=uuid.uuid4(), version_id=version_id, **values)
    await pricingStore.add_entity(db, row)
    await _audit(
        db, admin_id, AuditAction.CREATE, kind.name, row.id,
        new_values=_snapshot(row), reason=reason,
    )
    return row


async def update_entity(
    db: AsyncSession,
    kind_name: str,
    entity_id: uuid.UUID,
    patch: dict[str, Any],
    admin_id: Optional[uuid.UUID] = None,
    reason: Optional[str] = None,
) -> Any:
    """Apply ``patch`` to a row of a draft version after validating the merged row."""
    kind = _kind(kind_name)
    _require(
        not {"id", "version_id", "created_at", "updated_at"} & set(patch),
        "Identity and timestamp fields cannot be updated",
    )
    row = await get_entity(db, kind.name, entity_id)
    await _draft_version(db, row.version_id)

    old_values = _snapshot(row)
    merged = _columns(row)
    merged.update(patch)
    kind.validate(merged)
    if kind.check_version is not None:
        await kind.check_version(db, row.version_id, merged, row.id)

    changes = {key: merged[key] for key in patch}
    await pricingStore.update_entity(db, row, changes)
    await _audit(
        db, admin_id, AuditAction.UPDATE, kind.name, row.id,
        old_values=old_values, new_values=_snapshot(row), reason=reason,
    )
    return row


async def delete_entity(
    db: AsyncSession,
    kind_name: str,
    entity_id: uuid.UUID,
    admin_id: Optional[uuid.UUID] = None,
    reason: Optional[str] = None,
) -> None:
    kind = _kind(kind_name)
    row = await get_entity(db, kind.name, entity_id)
    await _draft_version(db, row.version_id)

    old_values = _snapshot(row)
    await pricingStore.delete_entity(db, row)
    await _audit(
        db, admin_id, AuditAction.DELETE, kind.name, entity_id,
        old_values=old_values, reason=reason,
    )


# ---------------------------------------------------------------------------
# Audit trail
# ---------------------------------------------------------------------------

async def list_audit_logs(
    db: AsyncSession,
    limit: int,
    offset: int,
    entity_type: Optional[str] = None,
    entity_id: Optional[uuid.UUID] = None,
) -> tuple[list[PricingAuditLog], int]:
    return await pricingStore.list_audit_logs(db, limit, offset, entity_type, entity_id)
