"""Root conftest for all tests.

Shared fakes and factories: an in-memory activity source that records every
upstream call, a controllable clock, and builders for Strava records.
"""

from datetime import date, datetime
from typing import Any

import pytest

from runinsight.analytics.runs import RunAnalysis
from runinsight.analytics.units import format_pace
from runinsight.cache.range_cache import RangeCache
from runinsight.core.errors import StravaAPIError
from runinsight.integrations.strava.schemas import StravaActivity, StravaLap
from runinsight.services.activity_fetcher import ActivityFetcher
from runinsight.tools.handlers import ToolContext
from runinsight.tools.registry import ToolDispatcher

TODAY = date(2024, 6, 30)
ONE_MILE_METERS = 1609.35

_next_id = iter(range(1000, 100000))


def make_activity(
    start: str | datetime,
    miles: float = 3.0,
    pace_seconds: float = 480.0,
    **overrides: Any,
) -> StravaActivity:
    """Build a Strava activity; distance and moving time derive from miles and pace."""
    start_dt = datetime.fromisoformat(start) if isinstance(start, str) else start
    distance = miles * ONE_MILE_METERS
    moving_time = int(round(miles * pace_seconds))
    fields: dict[str, Any] = {
        "id": next(_next_id),
        "name": "Morning Run",
        "type": "Run",
        "start_date_local": start_dt,
        "distance": distance,
        "moving_time": moving_time,
        "elapsed_time": moving_time,
        "total_elevation_gain": 10.0,
        "average_speed": distance / moving_time if moving_time else 0.0,
        "max_speed": 4.0,
    }
    fields.update(overrides)
    return StravaActivity(**fields)


def make_lap(lap_id: int, meters: float, seconds: int, activity_id: int | None = None, **overrides: Any) -> StravaLap:
    fields: dict[str, Any] = {
        "id": lap_id,
        "activity": {"id": activity_id} if activity_id is not None else None,
        "distance": meters,
        "moving_time": seconds,
        "elapsed_time": seconds,
        "average_speed": meters / seconds if seconds else 0.0,
    }
    fields.update(overrides)
    return StravaLap(**fields)


class FakeClock:
    """Manually advanced clock for TTL tests."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeActivitySource:
    """In-memory activity source that records each upstream call."""

    def __init__(self, activities: list[StravaActivity] | None = None, laps: dict[int, list[StravaLap]] | None = None):
        self.activities = list(activities or [])
        self.laps = dict(laps or {})
        self.failing_lap_ids: set[int] = set()
        self.calls: list[tuple] = []

    def fetch_all_activities(self) -> list[StravaActivity]:
        self.calls.append(("all",))
        return list(self.activities)

    def fetch_activities_by_date_range(self, start_date: str, end_date: str) -> list[StravaActivity]:
        self.calls.append(("range", start_date, end_date))
        return [a for a in self.activities if start_date <= a.start_date_local.date().isoformat() <= end_date]

    def fetch_activity_laps(self, activity_id: int) -> list[StravaLap]:
        self.calls.append(("laps", activity_id))
        if activity_id in self.failing_lap_ids:
            raise StravaAPIError(f"Activity {activity_id} not found", status_code=404)
        return list(self.laps.get(activity_id, []))


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock: FakeClock) -> RangeCache:
    """Range cache with a 1 hour TTL, 50 entries and a fixed today."""
    return RangeCache(ttl_seconds=3600, max_entries=50, clock=clock, today=lambda: TODAY)


@pytest.fixture
def source() -> FakeActivitySource:
    return FakeActivitySource()


@pytest.fixture
def fetcher(source: FakeActivitySource, cache: RangeCache) -> ActivityFetcher:
    return ActivityFetcher(source, cache)


@pytest.fixture
def dispatcher(fetcher: ActivityFetcher) -> ToolDispatcher:
    return ToolDispatcher(ToolContext(fetcher=fetcher))


@pytest.fixture(name="make_activity")
def make_activity_fixture():
    """Factory for Strava activities; distance and moving time derive from miles and pace."""
    return make_activity


@pytest.fixture(name="make_lap")
def make_lap_fixture():
    return make_lap


@pytest.fixture
def today() -> date:
    return TODAY


def make_run(start: str, miles: float = 3.0, pace_seconds: float = 480.0, **overrides: Any) -> RunAnalysis:
    """Build a RunAnalysis directly, bypassing unit conversion."""
    fields: dict[str, Any] = {
        "id": next(_next_id),
        "name": "Morning Run",
        "date": datetime.fromisoformat(start),
        "distance_miles": miles,
        "duration_minutes": miles * pace_seconds / 60,
        "pace_per_mile": format_pace(pace_seconds),
        "pace_seconds": pace_seconds,
        "elevation_gain_feet": 0,
        "average_speed_mph": 3600 / pace_seconds,
        "max_speed_mph": 3600 / pace_seconds,
    }
    fields.update(overrides)
    return RunAnalysis(**fields)


@pytest.fixture(name="make_run")
def make_run_fixture():
    return make_run
