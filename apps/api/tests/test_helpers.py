"""
Unit Tests for Scoring, Geometry and Window Helpers
===================================================
"""

import time
from datetime import datetime, timedelta, timezone

import pytest

from app.errors import InvalidArgument
from app.geo import bounding_box, haversine_m, meters_to_miles, validate_coordinates
from app.ledger import parse_window, to_naive_utc
from app.middleware import InMemoryRateLimiter
from app.popularity import (
    CHECK_IN_DELTA,
    CHECK_OUT_DELTA,
    ZERO_COUNTS,
    AggregateCounts,
    AggregateDelta,
    compute_score,
)


class TestScore:

    def test_formula(self):
        assert compute_score(1, 2, 3) == 5.0 + 4.0 + 1.5

    def test_counts_score(self):
        assert AggregateCounts(recent=2, weekly=2, total=2).score == 15.0
        assert AggregateCounts(recent=0, weekly=1, total=1).score == 2.5

    def test_zero_counts(self):
        assert ZERO_COUNTS.is_zero
        assert ZERO_COUNTS.score == 0.0
        assert not AggregateCounts(recent=0, weekly=0, total=1).is_zero

    def test_incremental_deltas(self):
        """The weekly counter is only ever set by a recompute."""
        assert CHECK_IN_DELTA.weekly == 0
        assert CHECK_IN_DELTA.score == 5.0
        assert CHECK_OUT_DELTA.total == 0
        assert CHECK_OUT_DELTA.score == -2.0

    def test_total_can_never_decrease(self):
        with pytest.raises(ValueError):
            AggregateDelta(total=-1)


class TestGeometry:

    def test_haversine_zero(self):
        assert haversine_m(30.0, -97.0, 30.0, -97.0) == 0.0

    def test_haversine_one_degree_latitude(self):
        assert haversine_m(0.0, 0.0, 1.0, 0.0) == pytest.approx(111_195, rel=1e-3)

    def test_haversine_austin_to_new_york(self):
        distance = haversine_m(30.2672, -97.7431, 40.7128, -74.0060)
        assert distance == pytest.approx(2_431_000, rel=0.005)

    def test_meters_to_miles(self):
        assert meters_to_miles(1609.344) == pytest.approx(1.0, rel=1e-4)

    def test_bounding_box_contains_radius(self):
        box = bounding_box(30.0, -97.0, 1000)
        assert box.min_lat < 30.0 < box.max_lat
        assert haversine_m(30.0, -97.0, box.max_lat, -97.0) >= 1000
        assert haversine_m(30.0, -97.0, 30.0, box.max_lon) >= 1000

    def test_bounding_box_near_pole_drops_longitude(self):
        box = bounding_box(89.999, 0.0, 5000)
        assert box.max_lat == 90.0
        assert box.min_lon is None and box.max_lon is None

    def test_bounding_box_across_antimeridian_drops_longitude(self):
        box = bounding_box(0.0, 179.99, 5000)
        assert box.min_lon is None

    @pytest.mark.parametrize("lat,lon", [(None, 0.0), (0.0, None), (90.5, 0.0), (0.0, 180.5)])
    def test_invalid_coordinates(self, lat, lon):
        with pytest.raises(InvalidArgument):
            validate_coordinates(lat, lon)

    def test_boundary_coordinates_are_valid(self):
        validate_coordinates(90.0, -180.0)
        validate_coordinates(-90.0, 180.0)


class TestWindows:

    @pytest.mark.parametrize("window,expected", [
        ("30m", timedelta(minutes=30)),
        ("24h", timedelta(hours=24)),
        ("7D", timedelta(days=7)),
    ])
    def test_parse_window(self, window, expected):
        assert parse_window(window) == expected

    @pytest.mark.parametrize("window", ["", "0h", "7w", "h24", "-1d"])
    def test_invalid_window(self, window):
        with pytest.raises(InvalidArgument):
            parse_window(window)

    def test_to_naive_utc(self):
        aware = datetime(2026, 3, 1, 12, 0, tzinfo=timezone(timedelta(hours=-6)))
        assert to_naive_utc(aware) == datetime(2026, 3, 1, 18, 0)

        naive = datetime(2026, 3, 1, 12, 0)
        assert to_naive_utc(naive) is naive


class TestRateLimiter:

    def test_limit_per_client(self):
        limiter = InMemoryRateLimiter(requests_per_minute=2, burst_limit=100)

        assert limiter.is_allowed("ip:1") == (True, 1)
        assert limiter.is_allowed("ip:1") == (True, 0)
        assert limiter.is_allowed("ip:1") == (False, 0)
        assert limiter.is_allowed("ip:2") == (True, 1)

    def test_cleanup_drops_idle_clients(self):
        limiter = InMemoryRateLimiter(window_seconds=60)
        limiter._requests["ip:gone"] = [time.time() - 600]
        limiter.is_allowed("ip:here")

        limiter.cleanup()

        assert "ip:gone" not in limiter._requests
        assert "ip:here" in limiter._requests

    def test_requests_trigger_periodic_cleanup(self):
        limiter = InMemoryRateLimiter(window_seconds=60)
        limiter._requests["ip:gone"] = [time.time() - 600]
        limiter._last_cleanup = time.time() - 120

        limiter.is_allowed("ip:here")

        assert set(limiter._requests) == {"ip:here"}
