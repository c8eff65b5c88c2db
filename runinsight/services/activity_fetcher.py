"""Cache-backed activity fetching.

Sits between the tool handlers and the activity source: consult the range
cache first, fall back to the source on a miss, then store the result.
"""

from __future__ import annotations

from typing import Protocol

from loguru import logger

from runinsight.cache.range_cache import FetchOptions, RangeCache
from runinsight.integrations.strava.schemas import StravaActivity, StravaLap


class ActivitySource(Protocol):
    """Upstream provider of activity records."""

    def fetch_all_activities(self) -> list[StravaActivity]: ...

    def fetch_activities_by_date_range(self, start_date: str, end_date: str) -> list[StravaActivity]: ...

    def fetch_activity_laps(self, activity_id: int) -> list[StravaLap]: ...


class ActivityFetcher:
    """Resolve activity lists through the range cache."""

    def __init__(self, source: ActivitySource, cache: RangeCache):
        self.source = source
        self.cache = cache

    def fetch_activities(self, options: FetchOptions | None = None) -> list[StravaActivity]:
        """Return activities matching the options, fetching on a cache miss.

        Args:
            options: Query shape; None means every activity

        Returns:
            Activities in source order (newest first for Strava)
        """
        options = options or FetchOptions()

        cached = self.cache.get(options)
        if cached is not None:
            logger.debug(f"Using cached activities: count={len(cached)}")
            return cached

        logger.info("Cache miss - fetching fresh activities from source")
        if options.date_filter is not None and not options.date_filter.is_empty:
            start_date, end_date = options.date_filter.date_range(self.cache.today())
            activities = self.source.fetch_activities_by_date_range(start_date, end_date)
        else:
            activities = self.source.fetch_all_activities()

        # Date scoping already happened upstream; only record filters remain
        activities = FetchOptions(
            activity_type=options.activity_type,
            include_manual=options.include_manual,
            include_private=options.include_private,
        ).apply(activities)

        self.cache.set(options, activities)
        return activities

    def fetch_activity_laps(self, activity_id: int) -> list[StravaLap]:
        """Fetch laps straight from the source; lap data is never cached."""
        return self.source.fetch_activity_laps(activity_id)
