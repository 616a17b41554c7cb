"""
Unit tests for the fare calculator.

Covers the literal end-to-end scenarios against default pricing, tax
handling, negotiated overrides, zone fees and multipliers under an active
version, surge sourcing and clamping, cancellation fee tiers and the
negotiation band.
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from ridefare.core.exceptions import InvalidInputError, PreconditionFailedError
from ridefare.models import CancellationFeeType
from ridefare.services import fareCalculator, pricingStore
from ridefare.services.pricingTypes import (
    NO_VERSION_ID,
    CalculateInput,
    CancellationFee,
    round_money,
)
from ridefare.services.surgeEngine import SurgeFactors

PICKUP = (40.7128, -74.0060)
DROPOFF = (40.7580, -73.9855)


def _trip(**overrides) -> CalculateInput:
    values = dict(
        pickup_latitude=PICKUP[0],
        pickup_longitude=PICKUP[1],
        dropoff_latitude=DROPOFF[0],
        dropoff_longitude=DROPOFF[1],
        distance_km=5.9,
        duration_min=9,
    )
    values.update(overrides)
    return CalculateInput(**values)


def _factors(multiplier: str) -> SurgeFactors:
    one = Decimal("1")
    return SurgeFactors(
        multiplier=Decimal(multiplier),
        demand_ratio=1.0,
        ride_density=0,
        demand_surge=one,
        time_factor=one,
        day_factor=one,
        zone_factor=one,
    )


@pytest.fixture
def no_active_version():
    """The store reports no active version."""
    with patch(
        "ridefare.services.pricingStore.get_active_version_id",
        new_callable=AsyncMock,
        return_value=pricingStore.NOT_FOUND,
    ) as mock:
        yield mock


# ---------------------------------------------------------------------------
# Scenarios against the built-in defaults
# ---------------------------------------------------------------------------


class TestDefaultPricingScenarios:
    """Defaults: base 3.00, 1.50/km, 0.25/min, booking 1.00, minimum 5.00, 20% commission."""

    @pytest.mark.asyncio
    async def test_standard_trip(self, mock_db, collaborators, no_active_version):
        calc = await fareCalculator.calculate_fare(mock_db, _trip(), collaborators)

        assert calc.base_fare == Decimal("3.00")
        assert calc.distance_charge == Decimal("8.85")
        assert calc.time_charge == Decimal("2.25")
        assert calc.booking_fee == Decimal("1.00")
        assert calc.zone_fees_total == Decimal("0.00")
        assert calc.zone_fees_breakdown == []
        assert calc.time_multiplier == Decimal("1")
        assert calc.weather_multiplier == Decimal("1")
        assert calc.event_multiplier == Decimal("1")
        assert calc.surge_multiplier == Decimal("1")
        assert calc.total_multiplier == Decimal("1")
        assert calc.subtotal == Decimal("15.10")
        assert calc.tax_amount == Decimal("0.00")
        assert calc.total_fare == Decimal("15.10")
        assert calc.platform_commission == Decimal("3.02")
        assert calc.driver_earnings == Decimal("12.08")
        assert calc.pricing_version_id == NO_VERSION_ID
        assert calc.was_negotiated is False

    @pytest.mark.asyncio
    async def test_supplied_surge(self, mock_db, collaborators, no_active_version):
        calc = await fareCalculator.calculate_fare(
            mock_db, _trip(surge_multiplier=Decimal("1.8")), collaborators
        )

        assert calc.surge_multiplier == Decimal("1.8")
        assert calc.total_multiplier == Decimal("1.8")
        assert calc.subtotal == Decimal("27.18")
        assert calc.total_fare == Decimal("27.18")
        assert calc.platform_commission == Decimal("5.44")
        assert calc.driver_earnings == Decimal("21.74")

    @pytest.mark.asyncio
    async def test_minimum_fare_floor(self, mock_db, collaborators, no_active_version):
        calc = await fareCalculator.calculate_fare(
            mock_db,
            _trip(
                pickup_latitude=0.001,
                pickup_longitude=0.001,
                dropoff_latitude=0.001,
                dropoff_longitude=0.001,
                distance_km=0.0,
                duration_min=1,
            ),
            collaborators,
        )

        assert calc.distance_charge == Decimal("0.00")
        assert calc.time_charge == Decimal("0.25")
        assert calc.subtotal == Decimal("5.00")
        assert calc.total_fare == Decimal("5.00")
        assert calc.platform_commission == Decimal("1.00")
        assert calc.driver_earnings == Decimal("4.00")

    @pytest.mark.asyncio
    async def test_negotiated_fare_overrides_total(self, mock_db, collaborators, no_active_version):
        calc = await fareCalculator.calculate_fare(
            mock_db, _trip(negotiated_fare=Decimal("18.00")), collaborators
        )

        assert calc.subtotal == Decimal("15.10")
        assert calc.total_fare == Decimal("18.00")
        assert calc.was_negotiated is True
        assert calc.negotiated_fare == Decimal("18.00")
        assert calc.platform_commission == Decimal("3.60")
        assert calc.driver_earnings == Decimal("14.40")

    @pytest.mark.asyncio
    async def test_geo_failure_prices_with_defaults(self, mock_db, collaborators, no_active_version):
        collaborators.geo = MagicMock()
        collaborators.geo.resolve = AsyncMock(side_effect=RuntimeError("geo down"))

        calc = await fareCalculator.calculate_fare(mock_db, _trip(), collaborators)

        assert calc.total_fare == Decimal("15.10")


# ---------------------------------------------------------------------------
# Invariants
# ---------------------------------------------------------------------------


class TestInvariants:

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "distance_km, duration_min, surge",
        [
            (0.0, 0, None),
            (1.234, 3, None),
            (5.9, 9, "1.8"),
            (17.77, 41, "2.35"),
            (63.1, 88, "4.9"),
        ],
    )
    async def test_split_and_quantization(
        self, mock_db, collaborators, no_active_version, distance_km, duration_min, surge
    ):
        calc = await fareCalculator.calculate_fare(
            mock_db,
            _trip(
                distance_km=distance_km,
                duration_min=duration_min,
                surge_multiplier=Decimal(surge) if surge else None,
            ),
            collaborators,
        )

        assert calc.driver_earnings + calc.platform_commission == calc.total_fare
        assert calc.total_fare >= Decimal("5.00")
        assert calc.total_multiplier == (
            calc.time_multiplier
            * calc.weather_multiplier
            * calc.event_multiplier
            * calc.surge_multiplier
        )
        for amount in (
            calc.base_fare,
            calc.distance_charge,
            calc.time_charge,
            calc.booking_fee,
            calc.subtotal,
            calc.tax_amount,
            calc.total_fare,
            calc.platform_commission,
            calc.driver_earnings,
        ):
            assert amount.as_tuple().exponent == -2

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "overrides",
        [
            {"distance_km": -1.0},
            {"duration_min": -1},
            {"pickup_latitude": 91.0},
            {"dropoff_longitude": -180.5},
            {"negotiated_fare": Decimal("-1")},
            {"surge_multiplier": Decimal("0")},
            {"distance_km": 1e27},
            {"distance_km": float("inf")},
            {"distance_km": float("nan")},
            {"duration_min": 10_081},
            {"demand_supply_ratio": float("inf")},
            {"demand_supply_ratio": 1e6},
            {"negotiated_fare": Decimal("1e27")},
            {"negotiated_fare": Decimal("Infinity")},
            {"surge_multiplier": Decimal("NaN")},
            {"surge_multiplier": Decimal("1000")},
        ],
    )
    async def test_rejects_invalid_input(self, mock_db, collaborators, overrides):
        with pytest.raises(InvalidInputError):
            await fareCalculator.calculate_fare(mock_db, _trip(**overrides), collaborators)


# ---------------------------------------------------------------------------
# Tax
# ---------------------------------------------------------------------------


class TestTax:

    @pytest.fixture
    def flat_22(self, make_pricing):
        """Pricing whose base sum is exactly 22.00 for any trip."""

        def _pricing(tax_inclusive: bool):
            return make_pricing(
                base_fare="22.00",
                per_km_rate="0",
                per_minute_rate="0",
                booking_fee="0",
                minimum_fare="0",
                tax_rate_pct="10",
                tax_inclusive=tax_inclusive,
            )

        return _pricing

    @pytest.mark.asyncio
    async def test_inclusive_tax_is_carved_out(self, mock_db, collaborators, no_active_version, flat_22):
        with patch(
            "ridefare.services.fareCalculator.resolve_pricing",
            new_callable=AsyncMock,
            return_value=flat_22(True),
        ):
            calc = await fareCalculator.calculate_fare(mock_db, _trip(), collaborators)

        assert calc.subtotal == Decimal("22.00")
        assert calc.tax_amount == Decimal("2.00")
        assert calc.total_fare == Decimal("22.00")

    @pytest.mark.asyncio
    async def test_exclusive_tax_is_added(self, mock_db, collaborators, no_active_version, flat_22):
        with patch(
            "ridefare.services.fareCalculator.resolve_pricing",
            new_callable=AsyncMock,
            return_value=flat_22(False),
        ):
            calc = await fareCalculator.calculate_fare(mock_db, _trip(), collaborators)

        assert calc.tax_amount == Decimal("2.20")
        assert calc.total_fare == Decimal("24.20")
        assert calc.platform_commission == Decimal("4.84")
        assert calc.driver_earnings == Decimal("19.36")


# ---------------------------------------------------------------------------
# Active version: zone fees and multipliers
# ---------------------------------------------------------------------------


class TestWithActiveVersion:

    @pytest.fixture
    def version_id(self) -> uuid.UUID:
        return uuid.uuid4()

    @pytest.fixture
    def active(self, version_id, make_pricing):
        """Active version with default values, neutral event and time lookups."""
        with patch(
            "ridefare.services.fareCalculator.active_version_id",
            new_callable=AsyncMock,
            return_value=version_id,
        ), patch(
            "ridefare.services.fareCalculator.resolve_pricing",
            new_callable=AsyncMock,
            return_value=make_pricing(version_id=version_id),
        ), patch(
            "ridefare.services.multiplierResolver.time_multiplier",
            new_callable=AsyncMock,
            return_value=Decimal("1.2"),
        ), patch(
            "ridefare.services.multiplierResolver.weather_multiplier",
            new_callable=AsyncMock,
            return_value=Decimal("1.5"),
        ) as weather, patch(
            "ridefare.services.multiplierResolver.event_multiplier",
            new_callable=AsyncMock,
            return_value=Decimal("1"),
        ), patch(
            "ridefare.services.pricingStore.zone_name",
            new_callable=AsyncMock,
            return_value="JFK Airport",
        ):
            yield weather

    def _fee(self, zone_id, **overrides):
        values = dict(
            zone_id=zone_id,
            fee_type="airport",
            amount=Decimal("5.00"),
            is_percentage=False,
            applies_pickup=True,
            applies_dropoff=True,
            schedule=None,
        )
        values.update(overrides)
        return SimpleNamespace(**values)

    @pytest.mark.asyncio
    async def test_multipliers_and_zone_fees(self, mock_db, collaborators, geo, active):
        fees = [
            self._fee(geo.zone_id),
            self._fee(geo.zone_id, fee_type="congestion", amount=Decimal("10"), is_percentage=True),
            # Sunday only: not applicable on a Tuesday
            self._fee(
                geo.zone_id,
                fee_type="weekend",
                schedule={"days": [0], "start_time": "00:00", "end_time": "23:59"},
            ),
        ]
        lat, lng = geo.airport_point
        with patch(
            "ridefare.services.pricingStore.zone_fees_for",
            new_callable=AsyncMock,
            return_value=fees,
        ):
            calc = await fareCalculator.calculate_fare(
                mock_db,
                _trip(pickup_latitude=lat, pickup_longitude=lng, weather_condition="rain"),
                collaborators,
            )

        assert calc.time_multiplier == Decimal("1.2")
        assert calc.weather_multiplier == Decimal("1.5")
        assert calc.surge_multiplier == Decimal("1.0")
        assert calc.total_multiplier == Decimal("1.80")
        # 5.00 fixed + 10% of the 15.10 base sum
        assert calc.zone_fees_total == Decimal("6.51")
        assert [line.fee_type for line in calc.zone_fees_breakdown] == ["airport", "congestion"]
        assert calc.zone_fees_breakdown[0].zone_name == "JFK Airport"
        # 15.10 * 1.8 + 6.51
        assert calc.subtotal == Decimal("33.69")
        assert calc.platform_commission == Decimal("6.74")
        assert calc.driver_earnings == Decimal("26.95")

    @pytest.mark.asyncio
    async def test_fee_schedule_uses_pickup_wall_clock(self, mock_db, collaborators, geo, active):
        # Tuesday 09:00-11:00 matches the fixed 10:00 UTC clock
        fees = [
            self._fee(
                geo.zone_id,
                schedule={"days": [2], "start_time": "09:00", "end_time": "11:00"},
            )
        ]
        lat, lng = geo.airport_point
        with patch(
            "ridefare.services.pricingStore.zone_fees_for",
            new_callable=AsyncMock,
            return_value=fees,
        ):
            calc = await fareCalculator.calculate_fare(
                mock_db, _trip(pickup_latitude=lat, pickup_longitude=lng), collaborators
            )

        assert calc.zone_fees_total == Decimal("5.00")

    @pytest.mark.asyncio
    async def test_fee_for_dropoff_zone_only_when_enabled(self, mock_db, collaborators, geo, active):
        fees = [self._fee(geo.zone_id, applies_dropoff=False)]
        lat, lng = geo.airport_point
        with patch(
            "ridefare.services.pricingStore.zone_fees_for",
            new_callable=AsyncMock,
            return_value=fees,
        ):
            calc = await fareCalculator.calculate_fare(
                mock_db, _trip(dropoff_latitude=lat, dropoff_longitude=lng), collaborators
            )

        assert calc.zone_fees_total == Decimal("0.00")

    @pytest.mark.asyncio
    async def test_zone_fee_store_failure_degrades(self, mock_db, collaborators, geo, active):
        from ridefare.core.exceptions import DependencyUnavailableError

        lat, lng = geo.airport_point
        with patch(
            "ridefare.services.pricingStore.zone_fees_for",
            new_callable=AsyncMock,
            side_effect=DependencyUnavailableError("pricing store"),
        ):
            calc = await fareCalculator.calculate_fare(
                mock_db, _trip(pickup_latitude=lat, pickup_longitude=lng), collaborators
            )

        assert calc.zone_fees_total == Decimal("0.00")
        assert calc.subtotal == Decimal("27.18")


# ---------------------------------------------------------------------------
# Surge sourcing and clamping
# ---------------------------------------------------------------------------


class TestResolveSurge:

    @pytest.mark.asyncio
    async def test_engine_value_clamped_to_policy_max(self, mock_db, geo, make_pricing):
        resolved = make_pricing(version_id=uuid.uuid4(), surge_max_multiplier="2.5")
        with patch(
            "ridefare.services.fareCalculator.calculate_surge",
            new_callable=AsyncMock,
            return_value=_factors("3.1"),
        ):
            surge = await fareCalculator.resolve_surge(
                mock_db, _trip(), resolved, geo.city, MagicMock(), datetime.now(timezone.utc)
            )
        assert surge == Decimal("2.5")

    @pytest.mark.asyncio
    async def test_engine_value_clamped_to_policy_min(self, mock_db, geo, make_pricing):
        resolved = make_pricing(version_id=uuid.uuid4(), surge_min_multiplier="1.2")
        with patch(
            "ridefare.services.fareCalculator.calculate_surge",
            new_callable=AsyncMock,
            return_value=_factors("1.0"),
        ):
            surge = await fareCalculator.resolve_surge(
                mock_db, _trip(), resolved, geo.city, MagicMock(), datetime.now(timezone.utc)
            )
        assert surge == Decimal("1.2")

    @pytest.mark.asyncio
    async def test_supplied_surge_is_clamped(self, mock_db, geo, make_pricing):
        resolved = make_pricing(surge_max_multiplier="2.0")
        surge = await fareCalculator.resolve_surge(
            mock_db,
            _trip(surge_multiplier=Decimal("3")),
            resolved,
            geo.city,
            MagicMock(),
            datetime.now(timezone.utc),
        )
        assert surge == Decimal("2.0")

    @pytest.mark.asyncio
    async def test_no_version_means_no_surge(self, mock_db, geo, make_pricing):
        with patch(
            "ridefare.services.fareCalculator.calculate_surge", new_callable=AsyncMock
        ) as engine:
            surge = await fareCalculator.resolve_surge(
                mock_db, _trip(), make_pricing(), geo.city, MagicMock(), datetime.now(timezone.utc)
            )
        assert surge == Decimal("1")
        engine.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_configured_tier_wins_over_engine(self, mock_db, geo, make_pricing):
        resolved = make_pricing(version_id=uuid.uuid4())
        with patch(
            "ridefare.services.multiplierResolver.surge_tier_multiplier",
            new_callable=AsyncMock,
            return_value=Decimal("1.7"),
        ), patch(
            "ridefare.services.fareCalculator.calculate_surge", new_callable=AsyncMock
        ) as engine:
            surge = await fareCalculator.resolve_surge(
                mock_db,
                _trip(demand_supply_ratio=2.2),
                resolved,
                geo.city,
                MagicMock(),
                datetime.now(timezone.utc),
            )
        assert surge == Decimal("1.7")
        engine.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_ratio_without_tier_feeds_engine(self, mock_db, geo, make_pricing):
        resolved = make_pricing(version_id=uuid.uuid4())
        with patch(
            "ridefare.services.multiplierResolver.surge_tier_multiplier",
            new_callable=AsyncMock,
            return_value=None,
        ), patch(
            "ridefare.services.fareCalculator.calculate_surge",
            new_callable=AsyncMock,
            return_value=_factors("1.6"),
        ) as engine:
            surge = await fareCalculator.resolve_surge(
                mock_db,
                _trip(demand_supply_ratio=2.0),
                resolved,
                geo.city,
                MagicMock(),
                datetime.now(timezone.utc),
            )
        assert surge == Decimal("1.6")
        assert engine.await_args.kwargs["demand_ratio"] == 2.0


# ---------------------------------------------------------------------------
# Quick estimate
# ---------------------------------------------------------------------------


class TestQuickEstimate:

    @pytest.mark.asyncio
    async def test_base_distance_and_time(self, mock_db, collaborators, no_active_version):
        fare = await fareCalculator.quick_estimate(mock_db, collaborators, 10, 20, *PICKUP)
        # 3.00 + 10*1.50 + 20*0.25
        assert fare == Decimal("23.00")

    @pytest.mark.asyncio
    async def test_minimum_applies(self, mock_db, collaborators, no_active_version):
        fare = await fareCalculator.quick_estimate(mock_db, collaborators, 0, 0, *PICKUP)
        assert fare == Decimal("5.00")

    @pytest.mark.asyncio
    async def test_negative_distance_rejected(self, mock_db, collaborators):
        with pytest.raises(InvalidInputError):
            await fareCalculator.quick_estimate(mock_db, collaborators, -1, 5, *PICKUP)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "distance_km, duration_min",
        [(1e27, 5), (float("inf"), 5), (float("nan"), 5), (10, 10_081)],
    )
    async def test_unbounded_values_rejected(self, mock_db, collaborators, distance_km, duration_min):
        with pytest.raises(InvalidInputError):
            await fareCalculator.quick_estimate(
                mock_db, collaborators, distance_km, duration_min, *PICKUP
            )


# ---------------------------------------------------------------------------
# Cancellation fees
# ---------------------------------------------------------------------------


class TestCancellationFee:
    """Default ladder: free until 2 min, 5.00 until 5 min, then 10.00."""

    @pytest.mark.parametrize(
        "minutes, expected",
        [(0, "0.00"), (1.9, "0.00"), (2, "5.00"), (4.99, "5.00"), (5, "10.00"), (60, "10.00")],
    )
    def test_default_ladder(self, make_pricing, minutes, expected):
        fee = fareCalculator.cancellation_fee(make_pricing(), minutes, Decimal("20.00"))
        assert fee == Decimal(expected)

    def test_percentage_tier(self, make_pricing):
        resolved = make_pricing(
            cancellation_fees=[
                CancellationFee(3, Decimal("10"), CancellationFeeType.PERCENTAGE),
            ]
        )
        assert fareCalculator.cancellation_fee(resolved, 4, Decimal("25.00")) == Decimal("2.50")

    def test_no_matching_tier_is_free(self, make_pricing):
        resolved = make_pricing(cancellation_fees=[CancellationFee(3, Decimal("4.00"))])
        assert fareCalculator.cancellation_fee(resolved, 1, Decimal("25.00")) == Decimal("0.00")

    def test_unordered_tiers(self, make_pricing):
        resolved = make_pricing(
            cancellation_fees=[
                CancellationFee(10, Decimal("9.00")),
                CancellationFee(0, Decimal("1.00")),
                CancellationFee(4, Decimal("3.00")),
            ]
        )
        assert fareCalculator.cancellation_fee(resolved, 7, Decimal("0")) == Decimal("3.00")

    def test_negative_minutes_rejected(self, make_pricing):
        with pytest.raises(InvalidInputError):
            fareCalculator.cancellation_fee(make_pricing(), -1, Decimal("20.00"))

    @pytest.mark.parametrize(
        "minutes, estimated",
        [
            (float("inf"), Decimal("20.00")),
            (3, Decimal("Infinity")),
            (3, Decimal("1e27")),
        ],
    )
    def test_unbounded_values_rejected(self, make_pricing, minutes, estimated):
        with pytest.raises(InvalidInputError):
            fareCalculator.cancellation_fee(make_pricing(), minutes, estimated)


# ---------------------------------------------------------------------------
# Negotiation band
# ---------------------------------------------------------------------------


class TestNegotiatedPrice:
    """Band is [0.70, 1.50] x estimate, inclusive."""

    @pytest.mark.parametrize("proposed", ["14.00", "20.00", "30.00"])
    def test_inside_band_accepted(self, proposed):
        fareCalculator.validate_negotiated_price(Decimal("20.00"), Decimal(proposed))

    def test_below_minimum(self):
        with pytest.raises(PreconditionFailedError) as exc_info:
            fareCalculator.validate_negotiated_price(Decimal("20.00"), Decimal("13.99"))
        assert exc_info.value.details["reason"] == "below minimum"
        assert exc_info.value.details["minimum_allowed"] == "14.00"

    def test_above_maximum(self):
        with pytest.raises(PreconditionFailedError) as exc_info:
            fareCalculator.validate_negotiated_price(Decimal("20.00"), Decimal("30.01"))
        assert exc_info.value.details["reason"] == "above maximum"
        assert exc_info.value.details["maximum_allowed"] == "30.00"

    def test_negative_price_is_invalid(self):
        with pytest.raises(InvalidInputError):
            fareCalculator.validate_negotiated_price(Decimal("20.00"), Decimal("-1"))

    @pytest.mark.parametrize("proposed", [Decimal("1e27"), Decimal("Infinity"), Decimal("NaN")])
    def test_unbounded_price_is_invalid(self, proposed):
        with pytest.raises(InvalidInputError):
            fareCalculator.validate_negotiated_price(Decimal("20.00"), proposed)


# ---------------------------------------------------------------------------
# Rounding
# ---------------------------------------------------------------------------


class TestRounding:
    """Money rounds to cents with ties away from zero."""

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("2.345", "2.35"),
            ("-2.345", "-2.35"),
            ("2.344", "2.34"),
            ("2.355", "2.36"),
            ("0.005", "0.01"),
            ("15.1", "15.10"),
        ],
    )
    def test_round_money(self, raw, expected):
        assert round_money(Decimal(raw)) == Decimal(expected)
        assert round_money(Decimal(raw)).as_tuple().exponent == -2

    @pytest.mark.asyncio
    async def test_half_cent_ties_in_a_calculation(self, mock_db, collaborators, no_active_version):
        # 3.00 + 5.55*1.50 + 10*0.25 + 1.00 = 14.825; commission 20% = 2.965
        calc = await fareCalculator.calculate_fare(
            mock_db, _trip(distance_km=5.55, duration_min=10), collaborators
        )

        assert calc.distance_charge == Decimal("8.33")
        assert calc.subtotal == Decimal("14.83")
        assert calc.total_fare == Decimal("14.83")
        assert calc.platform_commission == Decimal("2.97")
        # Rounded total minus rounded commission
        assert calc.driver_earnings == Decimal("11.86")
        assert calc.minimum_fare == Decimal("5.00")
