"""
Unit tests for the time, weather, event and surge-tier modulators.

The store's window and scope selection run against rows handed back by a
mocked session; the resolver functions run against a patched store.
"""

import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from ridefare.core.exceptions import DependencyUnavailableError
from ridefare.models import EventMultiplier, SurgeThreshold, TimeMultiplier
from ridefare.services import multiplierResolver, pricingStore

VERSION_ID = uuid.UUID("50000000-0000-0000-0000-000000000005")


def _rows(session, rows) -> None:
    """Make ``session.execute`` hand back ``rows`` from ``scalars().all()``."""
    result = MagicMock()
    result.scalars.return_value.all.return_value = rows
    session.execute.return_value = result


def _window(start, end, days=(0, 1, 2, 3, 4, 5, 6), multiplier="1.50", priority=0, **scope):
    return TimeMultiplier(
        id=uuid.uuid4(),
        version_id=VERSION_ID,
        name=f"{start}-{end}",
        days_of_week=list(days),
        start_time=start,
        end_time=end,
        multiplier=Decimal(multiplier),
        priority=priority,
        is_active=True,
        **scope,
    )


def _event(starts_at, ends_at, multiplier="2.00", pre=120, post=120, **where):
    return EventMultiplier(
        id=uuid.uuid4(),
        version_id=VERSION_ID,
        event_name="Stadium concert",
        event_type="concert",
        starts_at=starts_at,
        ends_at=ends_at,
        pre_event_minutes=pre,
        post_event_minutes=post,
        multiplier=Decimal(multiplier),
        is_active=True,
        **where,
    )


def _tier(ratio_min, ratio_max, multiplier, **scope):
    return SurgeThreshold(
        id=uuid.uuid4(),
        version_id=VERSION_ID,
        demand_supply_ratio_min=Decimal(ratio_min),
        demand_supply_ratio_max=Decimal(ratio_max) if ratio_max is not None else None,
        multiplier=Decimal(multiplier),
        is_active=True,
        **scope,
    )


# ---------------------------------------------------------------------------
# Store: time windows
# ---------------------------------------------------------------------------


class TestTimeMultiplierLookup:
    """Day numbering is 0=Sunday; 2030-01-01 is a Tuesday (2)."""

    @pytest.mark.asyncio
    async def test_window_contains_clock(self, mock_db, geo):
        _rows(mock_db, [_window("09:00", "11:00", multiplier="1.30")])
        row = await pricingStore.time_multiplier_for(
            mock_db, VERSION_ID, None, None, geo.city_id, datetime(2030, 1, 1, 10, 0)
        )
        assert row.multiplier == Decimal("1.30")

    @pytest.mark.asyncio
    async def test_window_bounds_are_inclusive(self, mock_db, geo):
        _rows(mock_db, [_window("09:00", "11:00")])
        row = await pricingStore.time_multiplier_for(
            mock_db, VERSION_ID, None, None, geo.city_id, datetime(2030, 1, 1, 11, 0)
        )
        assert row is not pricingStore.NOT_FOUND

    @pytest.mark.asyncio
    async def test_wrong_day_does_not_match(self, mock_db, geo):
        _rows(mock_db, [_window("09:00", "11:00", days=(0, 6))])
        row = await pricingStore.time_multiplier_for(
            mock_db, VERSION_ID, None, None, geo.city_id, datetime(2030, 1, 1, 10, 0)
        )
        assert row is pricingStore.NOT_FOUND

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "hour, minute, matches",
        [(23, 30, True), (0, 0, True), (2, 0, True), (5, 1, False), (21, 59, False)],
    )
    async def test_window_wraps_midnight(self, mock_db, geo, hour, minute, matches):
        _rows(mock_db, [_window("22:00", "05:00")])
        row = await pricingStore.time_multiplier_for(
            mock_db, VERSION_ID, None, None, geo.city_id, datetime(2030, 1, 1, hour, minute)
        )
        assert (row is not pricingStore.NOT_FOUND) is matches

    @pytest.mark.asyncio
    async def test_nearest_scope_beats_priority(self, mock_db, geo):
        _rows(
            mock_db,
            [
                _window("00:00", "23:59", multiplier="1.10", priority=10),
                _window("00:00", "23:59", multiplier="1.40", priority=0, city_id=geo.city_id),
            ],
        )
        row = await pricingStore.time_multiplier_for(
            mock_db, VERSION_ID, geo.country_id, geo.region_id, geo.city_id, datetime(2030, 1, 1, 10, 0)
        )
        assert row.multiplier == Decimal("1.40")

    @pytest.mark.asyncio
    async def test_priority_breaks_ties_within_scope(self, mock_db, geo):
        _rows(
            mock_db,
            [
                _window("08:00", "12:00", multiplier="1.20", priority=1, city_id=geo.city_id),
                _window("09:00", "11:00", multiplier="1.60", priority=5, city_id=geo.city_id),
            ],
        )
        row = await pricingStore.time_multiplier_for(
            mock_db, VERSION_ID, None, None, geo.city_id, datetime(2030, 1, 1, 10, 0)
        )
        assert row.multiplier == Decimal("1.60")


# ---------------------------------------------------------------------------
# Store: events
# ---------------------------------------------------------------------------


class TestEventLookup:
    """Window is [starts_at - pre, ends_at + post], closed."""

    STARTS = datetime(2030, 1, 1, 20, 0, tzinfo=timezone.utc)
    ENDS = datetime(2030, 1, 1, 23, 0, tzinfo=timezone.utc)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "offset_minutes, active",
        [
            (-121, False),
            (-120, True),
            (0, True),
            (180 + 120, True),
            (180 + 121, False),
        ],
    )
    async def test_widened_window(self, mock_db, geo, offset_minutes, active):
        _rows(mock_db, [_event(self.STARTS, self.ENDS, city_id=geo.city_id)])
        now = self.STARTS + timedelta(minutes=offset_minutes)
        events = await pricingStore.event_multipliers_active(
            mock_db, VERSION_ID, geo.city_id, None, now
        )
        assert bool(events) is active

    @pytest.mark.asyncio
    async def test_naive_datetimes_are_utc(self, mock_db, geo):
        _rows(
            mock_db,
            [_event(self.STARTS.replace(tzinfo=None), self.ENDS.replace(tzinfo=None), city_id=geo.city_id)],
        )
        events = await pricingStore.event_multipliers_active(
            mock_db, VERSION_ID, geo.city_id, None, self.STARTS
        )
        assert len(events) == 1

    @pytest.mark.asyncio
    async def test_highest_multiplier_first(self, mock_db, geo):
        _rows(
            mock_db,
            [
                _event(self.STARTS, self.ENDS, multiplier="1.50", city_id=geo.city_id),
                _event(self.STARTS, self.ENDS, multiplier="2.50", zone_id=geo.zone_id),
            ],
        )
        events = await pricingStore.event_multipliers_active(
            mock_db, VERSION_ID, geo.city_id, geo.zone_id, self.STARTS
        )
        assert [e.multiplier for e in events] == [Decimal("2.50"), Decimal("1.50")]

    @pytest.mark.asyncio
    async def test_no_location_skips_query(self, mock_db):
        events = await pricingStore.event_multipliers_active(
            mock_db, VERSION_ID, None, None, self.STARTS
        )
        assert events == []
        mock_db.execute.assert_not_awaited()


# ---------------------------------------------------------------------------
# Store: surge tiers
# ---------------------------------------------------------------------------


class TestSurgeThresholdLookup:

    @pytest.mark.asyncio
    async def test_nearest_scope_only(self, mock_db, geo):
        _rows(
            mock_db,
            [
                _tier("1.0", None, "1.30"),
                _tier("2.0", None, "1.80", city_id=geo.city_id),
                _tier("1.0", "2.0", "1.20", city_id=geo.city_id),
            ],
        )
        tiers = await pricingStore.surge_thresholds_for(
            mock_db, VERSION_ID, None, None, geo.city_id
        )
        assert [t.multiplier for t in tiers] == [Decimal("1.20"), Decimal("1.80")]

    @pytest.mark.asyncio
    async def test_store_errors_are_wrapped(self, mock_db, geo):
        from sqlalchemy.exc import OperationalError

        mock_db.execute.side_effect = OperationalError("SELECT", {}, Exception("gone"))
        with pytest.raises(DependencyUnavailableError) as exc_info:
            await pricingStore.surge_thresholds_for(mock_db, VERSION_ID, None, None, geo.city_id)
        assert isinstance(exc_info.value.__cause__, OperationalError)


# ---------------------------------------------------------------------------
# Resolver functions
# ---------------------------------------------------------------------------


class TestResolverFunctions:

    @pytest.mark.asyncio
    async def test_time_multiplier_from_row(self, mock_db, geo):
        with patch(
            "ridefare.services.pricingStore.time_multiplier_for",
            new_callable=AsyncMock,
            return_value=SimpleNamespace(multiplier=Decimal("1.25")),
        ):
            value = await multiplierResolver.time_multiplier(
                mock_db, VERSION_ID, geo.city, datetime(2030, 1, 1, 8, 0)
            )
        assert value == Decimal("1.25")

    @pytest.mark.asyncio
    async def test_time_multiplier_neutral_without_row(self, mock_db, geo):
        with patch(
            "ridefare.services.pricingStore.time_multiplier_for",
            new_callable=AsyncMock,
            return_value=pricingStore.NOT_FOUND,
        ):
            value = await multiplierResolver.time_multiplier(
                mock_db, VERSION_ID, geo.city, datetime(2030, 1, 1, 8, 0)
            )
        assert value == Decimal("1")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("condition", ["", "clear", " Clear "])
    async def test_clear_weather_skips_lookup(self, mock_db, geo, condition):
        with patch(
            "ridefare.services.pricingStore.weather_multiplier_for", new_callable=AsyncMock
        ) as lookup:
            value = await multiplierResolver.weather_multiplier(mock_db, VERSION_ID, geo.city, condition)
        assert value == Decimal("1")
        lookup.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_weather_condition_is_normalized(self, mock_db, geo):
        with patch(
            "ridefare.services.pricingStore.weather_multiplier_for",
            new_callable=AsyncMock,
            return_value=SimpleNamespace(multiplier=Decimal("1.40")),
        ) as lookup:
            value = await multiplierResolver.weather_multiplier(mock_db, VERSION_ID, geo.city, "Snow")
        assert value == Decimal("1.40")
        assert lookup.await_args.args[-1] == "snow"

    @pytest.mark.asyncio
    async def test_event_multiplier_takes_top_event(self, mock_db, geo):
        events = [
            SimpleNamespace(multiplier=Decimal("2.50"), event_name="Final"),
            SimpleNamespace(multiplier=Decimal("1.50"), event_name="Fair"),
        ]
        with patch(
            "ridefare.services.pricingStore.event_multipliers_active",
            new_callable=AsyncMock,
            return_value=events,
        ):
            value = await multiplierResolver.event_multiplier(
                mock_db, VERSION_ID, geo.city_id, None, datetime.now(timezone.utc)
            )
        assert value == Decimal("2.50")

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "function, store_name, extra",
        [
            ("time_multiplier", "time_multiplier_for", (datetime(2030, 1, 1, 8, 0),)),
            ("weather_multiplier", "weather_multiplier_for", ("rain",)),
        ],
    )
    async def test_store_failure_is_neutral(self, mock_db, geo, function, store_name, extra):
        with patch(
            f"ridefare.services.pricingStore.{store_name}",
            new_callable=AsyncMock,
            side_effect=DependencyUnavailableError("pricing store"),
        ):
            value = await getattr(multiplierResolver, function)(mock_db, VERSION_ID, geo.city, *extra)
        assert value == Decimal("1")

    @pytest.mark.asyncio
    async def test_event_store_failure_is_neutral(self, mock_db, geo):
        with patch(
            "ridefare.services.pricingStore.event_multipliers_active",
            new_callable=AsyncMock,
            side_effect=DependencyUnavailableError("pricing store"),
        ):
            value = await multiplierResolver.event_multiplier(
                mock_db, VERSION_ID, geo.city_id, geo.zone_id, datetime.now(timezone.utc)
            )
        assert value == Decimal("1")


class TestSurgeTierMultiplier:
    """Tiers match ratio_min <= ratio < ratio_max; open max matches above."""

    TIERS = [
        SimpleNamespace(
            demand_supply_ratio_min=Decimal("1.5"),
            demand_supply_ratio_max=Decimal("2.0"),
            multiplier=Decimal("1.30"),
        ),
        SimpleNamespace(
            demand_supply_ratio_min=Decimal("2.0"),
            demand_supply_ratio_max=Decimal("3.0"),
            multiplier=Decimal("1.80"),
        ),
        SimpleNamespace(
            demand_supply_ratio_min=Decimal("3.0"),
            demand_supply_ratio_max=None,
            multiplier=Decimal("2.50"),
        ),
    ]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "ratio, expected",
        [(1.0, None), (1.5, "1.30"), (1.99, "1.30"), (2.0, "1.80"), (3.0, "2.50"), (40.0, "2.50")],
    )
    async def test_tier_selection(self, mock_db, geo, ratio, expected):
        with patch(
            "ridefare.services.pricingStore.surge_thresholds_for",
            new_callable=AsyncMock,
            return_value=self.TIERS,
        ):
            value = await multiplierResolver.surge_tier_multiplier(mock_db, VERSION_ID, geo.city, ratio)
        assert value == (Decimal(expected) if expected else None)

    @pytest.mark.asyncio
    async def test_store_failure_returns_none(self, mock_db, geo):
        with patch(
            "ridefare.services.pricingStore.surge_thresholds_for",
            new_callable=AsyncMock,
            side_effect=DependencyUnavailableError("pricing store"),
        ):
            value = await multiplierResolver.surge_tier_multiplier(mock_db, VERSION_ID, geo.city, 2.5)
        assert value is None


class TestClampSurge:

    @pytest.mark.parametrize(
        "value, expected",
        [("0.8", "1.0"), ("1.0", "1.0"), ("2.2", "2.2"), ("3.0", "3.0"), ("3.5", "3.0")],
    )
    def test_clamp(self, make_pricing, value, expected):
        resolved = make_pricing(surge_min_multiplier="1.0", surge_max_multiplier="3.0")
        assert multiplierResolver.clamp_surge(Decimal(value), resolved) == Decimal(expected)
