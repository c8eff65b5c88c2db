"""Time-range-aware activity cache (in-memory only).

Holds one privileged "all time" superset entry plus a bounded set of
exact-match entries keyed by query fingerprint. Date-bounded queries are
answered from a fresh superset by filtering in memory.
"""

from __future__ import annotations

import calendar
import json
import threading
import time
from collections import OrderedDict
from collections.abc import Callable, Sequence
from dataclasses import asdict, dataclass, field
from datetime import MAXYEAR, MINYEAR, date, datetime

from loguru import logger

from runinsight.config.settings import settings
from runinsight.core.errors import ValidationError
from runinsight.integrations.strava.schemas import StravaActivity

# Earliest possible data; "after" bounds at or before this mean all time
EPOCH_FLOOR = "2000-01-01"


def parse_iso_date(value: str) -> date:
    """Parse a strict, zero-padded YYYY-MM-DD date.

    Bounds are compared as strings downstream, so compact or week-based ISO
    forms that date.fromisoformat accepts are rejected.

    Raises:
        ValueError: If the value is not exactly YYYY-MM-DD
    """
    parsed = datetime.strptime(value, "%Y-%m-%d").date()
    if parsed.isoformat() != value:
        raise ValueError(f"expected YYYY-MM-DD, got {value!r}")
    return parsed


def _parse_iso_date(value: str, field_name: str) -> date:
    try:
        return parse_iso_date(value)
    except ValueError as e:
        raise ValidationError(f"{field_name} must be a YYYY-MM-DD date, got {value!r}", field=field_name) from e


@dataclass(frozen=True)
class DateFilter:
    """Date scoping for one request.

    Attributes:
        year: Calendar year
        month: Calendar month 1-12, only meaningful with year
        before: Inclusive upper bound (YYYY-MM-DD), overrides year/month
        after: Inclusive lower bound (YYYY-MM-DD), overrides year/month
    """

    year: int | None = None
    month: int | None = None
    before: str | None = None
    after: str | None = None

    def __post_init__(self) -> None:
        if self.year is not None and not MINYEAR <= self.year <= MAXYEAR:
            raise ValidationError(f"year must be between {MINYEAR} and {MAXYEAR}, got {self.year}", field="year")
        if self.month is not None:
            if not 1 <= self.month <= 12:
                raise ValidationError(f"month must be between 1 and 12, got {self.month}", field="month")
            if self.year is None:
                raise ValidationError("month requires year", field="month")
        if self.before is not None:
            _parse_iso_date(self.before, "before")
        if self.after is not None:
            _parse_iso_date(self.after, "after")

    @property
    def is_empty(self) -> bool:
        return self.year is None and self.month is None and self.before is None and self.after is None

    def date_range(self, today: date | None = None) -> tuple[str, str]:
        """Resolve the filter to inclusive (start, end) YYYY-MM-DD bounds."""
        if self.year is not None and self.month is not None:
            last_day = calendar.monthrange(self.year, self.month)[1]
            start = date(self.year, self.month, 1).isoformat()
            end = date(self.year, self.month, last_day).isoformat()
        elif self.year is not None:
            start = date(self.year, 1, 1).isoformat()
            end = date(self.year, 12, 31).isoformat()
        else:
            start = EPOCH_FLOOR
            end = (today or date.today()).isoformat()

        if self.before is not None:
            end = self.before
        if self.after is not None:
            start = self.after
        return start, end


@dataclass(frozen=True)
class FetchOptions:
    """Query shape for an activity fetch.

    Attributes:
        date_filter: Optional date scoping; None means all time
        activity_type: Keep only activities whose type or sport_type matches
        include_manual: False drops manually entered activities
        include_private: False drops private activities
    """

    date_filter: DateFilter | None = None
    activity_type: str | None = None
    include_manual: bool | None = None
    include_private: bool | None = None

    def fingerprint(self) -> str:
        return json.dumps(asdict(self), sort_keys=True)

    @property
    def has_record_filters(self) -> bool:
        return self.activity_type is not None or self.include_manual is False or self.include_private is False

    def is_all_time(self) -> bool:
        """True when no date bound applies, or only an early "after" bound does."""
        date_filter = self.date_filter
        if date_filter is None or date_filter.is_empty:
            return True
        only_after = date_filter.year is None and date_filter.month is None and date_filter.before is None
        return only_after and date_filter.after is not None and date_filter.after <= EPOCH_FLOOR

    def apply(self, activities: Sequence[StravaActivity], today: date | None = None) -> list[StravaActivity]:
        """Filter activities in memory, preserving input order."""
        filtered = list(activities)

        if self.date_filter is not None:
            start, end = self.date_filter.date_range(today)
            filtered = [a for a in filtered if start <= a.start_date_local.date().isoformat() <= end]

        if self.activity_type is not None:
            filtered = [a for a in filtered if self.activity_type in (a.type, a.sport_type)]

        if self.include_manual is False:
            filtered = [a for a in filtered if not a.manual]

        if self.include_private is False:
            filtered = [a for a in filtered if not a.private]

        return filtered


@dataclass
class CacheEntry:
    """A cached query result.

    Attributes:
        activities: Retrieved activity list
        timestamp: Clock reading at write time
        date_span: Observed (min, max) local date, superset entry only
    """

    activities: list[StravaActivity]
    timestamp: float
    date_span: tuple[str, str] | None = field(default=None)

    def is_expired(self, now: float, ttl_seconds: float) -> bool:
        return now - self.timestamp >= ttl_seconds


class RangeCache:
    """In-memory activity cache with superset serving and bounded exact-match entries.

    Cache operations never raise; a miss returns None.
    """

    def __init__(
        self,
        ttl_seconds: float | None = None,
        max_entries: int | None = None,
        *,
        clock: Callable[[], float] = time.time,
        today: Callable[[], date] = date.today,
    ):
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else settings.cache_ttl_seconds
        self.max_entries = max_entries if max_entries is not None else settings.cache_max_entries
        self._clock = clock
        self._today = today
        self._superset: CacheEntry | None = None
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    def today(self) -> date:
        return self._today()

    @property
    def superset(self) -> CacheEntry | None:
        return self._superset

    def get(self, options: FetchOptions) -> list[StravaActivity] | None:
        """Return cached activities for the query, or None on a miss."""
        now = self._clock()
        with self._lock:
            superset = self._superset
            if superset is not None and superset.is_expired(now, self.ttl_seconds):
                logger.debug("All-time cache entry expired")
                self._superset = None
                superset = None

            if superset is not None:
                if options.is_all_time():
                    logger.debug("Serving all-time request from superset cache")
                else:
                    logger.debug("Serving date-bounded subset from superset cache")
                return options.apply(superset.activities, self._today())

            key = options.fingerprint()
            entry = self._entries.get(key)
            if entry is None:
                logger.debug(f"Cache miss: {key}")
                return None
            if entry.is_expired(now, self.ttl_seconds):
                logger.debug(f"Cache entry expired: {key}")
                del self._entries[key]
                return None

            logger.debug(f"Serving from query cache: {key}")
            return list(entry.activities)

    def set(self, options: FetchOptions, activities: Sequence[StravaActivity]) -> None:
        """Store a query result; all-time results also become the superset."""
        now = self._clock()
        stored = list(activities)
        key = options.fingerprint()

        with self._lock:
            # A type- or visibility-filtered list cannot answer other queries
            if options.is_all_time() and not options.has_record_filters:
                dates = [a.start_date_local.date().isoformat() for a in stored]
                span = (min(dates), max(dates)) if dates else None
                self._superset = CacheEntry(activities=stored, timestamp=now, date_span=span)
                logger.debug(f"Cached all-time superset: activities={len(stored)} span={span}")

            # Expired entries are replaced, not merged
            self._entries.pop(key, None)
            self._entries[key] = CacheEntry(activities=stored, timestamp=now)

            while len(self._entries) > self.max_entries:
                evicted_key, _ = self._entries.popitem(last=False)
                logger.debug(f"Evicted oldest cache entry: {evicted_key}")

    def clear(self) -> None:
        """Drop the superset and every exact-match entry."""
        with self._lock:
            self._superset = None
            self._entries.clear()
        logger.info("Activity cache cleared")
