"""
Pricing API Routes
==================

Rider-facing fare endpoints.

  POST /api/v1/pricing/estimate          -- Fare estimate for one ride type
  POST /api/v1/pricing/bulk-estimate     -- Estimates for every ride type at pickup
  POST /api/v1/pricing/validate          -- Check a negotiated price against the band
  POST /api/v1/pricing/quick-estimate    -- Fare from known distance and duration
  POST /api/v1/pricing/cancellation-fee  -- Fee owed for cancelling after N minutes
  GET  /api/v1/pricing/surge             -- Current surge at a point
  GET  /api/v1/pricing/config            -- Resolved pricing at a point
"""

from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, Query

from ridefare.api.deps import Collaborators, DBSession
from ridefare.api.schemas.pricing import (
    BulkEstimateOut,
    CancellationFeeOut,
    CancellationFeeRequest,
    EstimateOut,
    EstimateRequest,
    NegotiationOut,
    QuickEstimateOut,
    QuickEstimateRequest,
    ResolvedPricingOut,
    SurgeInfoOut,
    ValidatePriceRequest,
)
from ridefare.services import pricingService

router = APIRouter(prefix="/pricing", tags=["Pricing"])


# ---------------------------------------------------------------------------
# POST /pricing/estimate
# ---------------------------------------------------------------------------

@router.post(
    "/estimate",
    response_model=EstimateOut,
    summary="Estimate the fare for a trip",
    description=(
        "Resolves pricing for the pickup location, applies zone fees and the "
        "time, weather, event and surge multipliers, and returns the full "
        "breakdown together with the formatted fare."
    ),
)
async def estimate_fare(
    body: EstimateRequest,
    db: DBSession,
    collaborators: Collaborators,
) -> EstimateOut:
    estimate = await pricingService.get_estimate(db, collaborators, body.to_trip())
    return EstimateOut.model_validate(estimate)


# ---------------------------------------------------------------------------
# POST /pricing/bulk-estimate
# ---------------------------------------------------------------------------

@router.post(
    "/bulk-estimate",
    response_model=BulkEstimateOut,
    summary="Estimate the fare for every ride type at the pickup",
)
async def bulk_estimate(
    body: EstimateRequest,
    db: DBSession,
    collaborators: Collaborators,
) -> BulkEstimateOut:
    result = await pricingService.get_bulk_estimate(db, collaborators, body.to_trip())
    return BulkEstimateOut.from_result(result)


# ---------------------------------------------------------------------------
# POST /pricing/validate
# ---------------------------------------------------------------------------

@router.post(
    "/validate",
    response_model=NegotiationOut,
    summary="Validate a negotiated price",
    description=(
        "Computes a fresh estimate for the trip and checks the proposed price "
        "against the allowed negotiation band.  Prices outside the band are "
        "rejected with 412 and a reason of 'below minimum' or 'above maximum'."
    ),
)
async def validate_price(
    body: ValidatePriceRequest,
    db: DBSession,
    collaborators: Collaborators,
) -> NegotiationOut:
    check = await pricingService.validate_negotiated_price(
        db, collaborators, body.to_trip(), body.negotiated_price
    )
    return NegotiationOut.model_validate(check)


# ---------------------------------------------------------------------------
# POST /pricing/quick-estimate
# ---------------------------------------------------------------------------

@router.post(
    "/quick-estimate",
    response_model=QuickEstimateOut,
    summary="Estimate from a known distance and duration",
)
async def quick_estimate(
    body: QuickEstimateRequest,
    db: DBSession,
    collaborators: Collaborators,
) -> QuickEstimateOut:
    fare = await pricingService.quick_estimate(
        db,
        collaborators,
        body.distance_km,
        body.duration_min,
        body.latitude,
        body.longitude,
        body.ride_type_id,
    )
    return QuickEstimateOut(
        estimated_fare=fare,
        distance_km=body.distance_km,
        duration_min=body.duration_min,
    )


# ---------------------------------------------------------------------------
# POST /pricing/cancellation-fee
# ---------------------------------------------------------------------------

@router.post(
    "/cancellation-fee",
    response_model=CancellationFeeOut,
    summary="Cancellation fee after a given wait",
)
async def cancellation_fee(
    body: CancellationFeeRequest,
    db: DBSession,
    collaborators: Collaborators,
) -> CancellationFeeOut:
    fee = await pricingService.get_cancellation_fee(
        db,
        collaborators,
        body.latitude,
        body.longitude,
        body.minutes_since_request,
        body.estimated_fare,
    )
    return CancellationFeeOut(
        cancellation_fee=fee,
        minutes_since_request=body.minutes_since_request,
    )


# ---------------------------------------------------------------------------
# GET /pricing/surge
# ---------------------------------------------------------------------------

@router.get(
    "/surge",
    response_model=SurgeInfoOut,
    summary="Current surge at a location",
)
async def surge_info(
    db: DBSession,
    collaborators: Collaborators,
    latitude: float = Query(ge=-90, le=90),
    longitude: float = Query(ge=-180, le=180),
) -> SurgeInfoOut:
    info = await pricingService.get_surge_info(db, collaborators, latitude, longitude)
    return SurgeInfoOut.model_validate(info)


# ---------------------------------------------------------------------------
# GET /pricing/config
# ---------------------------------------------------------------------------

@router.get(
    "/config",
    response_model=ResolvedPricingOut,
    summary="Resolved pricing at a location",
    description=(
        "Returns the pricing that applies at the point after merging every "
        "matching config from the active version, most specific first.  "
        "``inheritance_chain`` lists the contributing layers."
    ),
)
async def resolved_pricing(
    db: DBSession,
    collaborators: Collaborators,
    latitude: float = Query(ge=-90, le=90),
    longitude: float = Query(ge=-180, le=180),
    ride_type_id: Optional[uuid.UUID] = Query(default=None),
) -> ResolvedPricingOut:
    pricing = await pricingService.get_pricing(
        db, collaborators, latitude, longitude, ride_type_id
    )
    return ResolvedPricingOut.model_validate(pricing)
