"""Run classification and run-level aggregate statistics.

Every function here is pure: activity records in, derived views out.
"""

from __future__ import annotations

import calendar
import datetime as dt
import math
from collections.abc import Iterable, Sequence

from pydantic import BaseModel, ConfigDict

from runinsight.analytics.units import (
    KILOJOULES_TO_CALORIES,
    METERS_PER_SEC_TO_MPH,
    METERS_TO_FEET,
    METERS_TO_MILES,
    SECONDS_PER_DAY,
    format_pace,
    round_half_up,
    safe_div,
)
from runinsight.integrations.strava.schemas import StravaActivity

MIN_RUN_SECONDS = 4 * 60
MIN_RUN_MILES = 1.0

# (name, min miles, max miles), inclusive
STANDARD_DISTANCES: tuple[tuple[str, float, float], ...] = (
    ("5K", 3.1, 3.2),
    ("10K", 6.2, 6.3),
    ("Half Marathon", 13.1, 13.2),
    ("Marathon", 26.2, 26.3),
)


class RunAnalysis(BaseModel):
    """Unit-converted view of one qualifying run."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    date: dt.datetime  # local wall-clock start
    distance_miles: float
    duration_minutes: float
    pace_per_mile: str
    pace_seconds: float
    elevation_gain_feet: int
    average_heartrate: float | None = None
    average_speed_mph: float
    max_speed_mph: float
    calories: int | None = None

    @property
    def local_date(self) -> dt.date:
        return self.date.date()


def is_qualifying_run(activity: StravaActivity) -> bool:
    """A run-type activity lasting at least 4 minutes and covering at least 1 mile."""
    return (
        activity.is_run
        and activity.moving_time >= MIN_RUN_SECONDS
        and activity.distance * METERS_TO_MILES >= MIN_RUN_MILES
    )


def to_run_analysis(activity: StravaActivity) -> RunAnalysis:
    distance_miles = activity.distance * METERS_TO_MILES
    pace_seconds = safe_div(activity.moving_time, distance_miles)
    calories = None
    if activity.kilojoules:
        calories = int(round_half_up(activity.kilojoules * KILOJOULES_TO_CALORIES))

    return RunAnalysis(
        id=activity.id,
        name=activity.name,
        date=activity.start_date_local,
        distance_miles=round_half_up(distance_miles, 2),
        duration_minutes=round_half_up(activity.moving_time / 60, 2),
        pace_per_mile=format_pace(pace_seconds),
        pace_seconds=pace_seconds,
        elevation_gain_feet=int(round_half_up(activity.total_elevation_gain * METERS_TO_FEET)),
        average_heartrate=activity.average_heartrate,
        average_speed_mph=round_half_up(activity.average_speed * METERS_PER_SEC_TO_MPH, 2),
        max_speed_mph=round_half_up(activity.max_speed * METERS_PER_SEC_TO_MPH, 2),
        calories=calories,
    )


def analyze_runs(activities: Iterable[StravaActivity]) -> list[RunAnalysis]:
    """Filter activities down to qualifying runs, newest first.

    Args:
        activities: Raw activity records in any order

    Returns:
        One RunAnalysis per qualifying record, sorted by descending date
    """
    runs = [to_run_analysis(a) for a in activities if is_qualifying_run(a)]
    return sorted(runs, key=lambda run: run.date, reverse=True)


def get_fastest_runs(runs: Sequence[RunAnalysis], count: int = 5, min_distance: float = 1.0) -> list[RunAnalysis]:
    """Fastest runs by pace, among runs of at least min_distance miles."""
    eligible = [run for run in runs if run.distance_miles >= min_distance]
    return sorted(eligible, key=lambda run: run.pace_seconds)[:count]


def get_longest_runs(runs: Sequence[RunAnalysis], count: int = 5) -> list[RunAnalysis]:
    return sorted(runs, key=lambda run: run.distance_miles, reverse=True)[:count]


def average_pace_seconds(runs: Sequence[RunAnalysis]) -> float:
    """Unweighted mean of per-run pace; 0 for no runs."""
    return safe_div(sum(run.pace_seconds for run in runs), len(runs))


def weighted_pace_seconds(runs: Sequence[RunAnalysis]) -> float:
    """Distance-weighted pace (total time over total distance); 0 for no runs."""
    total_miles = sum(run.distance_miles for run in runs)
    return safe_div(sum(run.pace_seconds * run.distance_miles for run in runs), total_miles)


def _span_days(runs: Sequence[RunAnalysis]) -> int:
    if not runs:
        return 0
    dates = [run.date for run in runs]
    return math.ceil((max(dates) - min(dates)).total_seconds() / SECONDS_PER_DAY)


class RunSummary(BaseModel):
    total_runs: int
    total_distance_miles: float
    total_duration_minutes: float
    total_elevation_feet: int
    average_distance_miles: float
    average_pace: str
    average_heartrate: int | None = None
    longest_run: RunAnalysis | None = None
    fastest_run: RunAnalysis | None = None
    most_elevation_run: RunAnalysis | None = None
    weekly_average_runs: float
    monthly_average_runs: float


def get_run_summary(runs: Sequence[RunAnalysis]) -> RunSummary:
    """Aggregate totals, averages, and standout runs.

    Frequency averages divide by the observed span, floored at one week and
    one month respectively.
    """
    if not runs:
        return RunSummary(
            total_runs=0,
            total_distance_miles=0,
            total_duration_minutes=0,
            total_elevation_feet=0,
            average_distance_miles=0,
            average_pace="0:00",
            weekly_average_runs=0,
            monthly_average_runs=0,
        )

    total_distance = sum(run.distance_miles for run in runs)
    heart_rates = [run.average_heartrate for run in runs if run.average_heartrate]
    span_days = _span_days(runs)

    return RunSummary(
        total_runs=len(runs),
        total_distance_miles=round_half_up(total_distance, 2),
        total_duration_minutes=round_half_up(sum(run.duration_minutes for run in runs), 2),
        total_elevation_feet=sum(run.elevation_gain_feet for run in runs),
        average_distance_miles=round_half_up(total_distance / len(runs), 2),
        average_pace=format_pace(average_pace_seconds(runs)),
        average_heartrate=int(round_half_up(sum(heart_rates) / len(heart_rates))) if heart_rates else None,
        longest_run=max(runs, key=lambda run: run.distance_miles),
        fastest_run=min(runs, key=lambda run: run.pace_seconds),
        most_elevation_run=max(runs, key=lambda run: run.elevation_gain_feet),
        weekly_average_runs=round_half_up(len(runs) / max(1.0, span_days / 7), 1),
        monthly_average_runs=round_half_up(len(runs) / max(1.0, span_days / 30), 1),
    )


def get_personal_records(runs: Sequence[RunAnalysis]) -> dict[str, RunAnalysis | None]:
    """Fastest run inside each standard distance window, or None."""
    records: dict[str, RunAnalysis | None] = {}
    for name, min_miles, max_miles in STANDARD_DISTANCES:
        candidates = [run for run in runs if min_miles <= run.distance_miles <= max_miles]
        records[name] = min(candidates, key=lambda run: run.pace_seconds) if candidates else None
    return records


class PeriodStats(BaseModel):
    """Aggregates for a month or week of runs."""

    total_runs: int
    total_miles: float
    total_duration_minutes: float
    total_elevation_feet: int
    days_ran: int
    average_pace: str
    longest_run: RunAnalysis | None = None
    fastest_run: RunAnalysis | None = None


class WeekStats(PeriodStats):
    week_number: int
    start_date: dt.date
    end_date: dt.date


class MonthStats(PeriodStats):
    month: str  # month name
    year: int
    weekly_stats: dict[int, WeekStats]


def _period_stats(runs: Sequence[RunAnalysis]) -> dict:
    if not runs:
        return {
            "total_runs": 0,
            "total_miles": 0,
            "total_duration_minutes": 0,
            "total_elevation_feet": 0,
            "days_ran": 0,
            "average_pace": "0:00",
        }
    return {
        "total_runs": len(runs),
        "total_miles": round_half_up(sum(run.distance_miles for run in runs), 2),
        "total_duration_minutes": round_half_up(sum(run.duration_minutes for run in runs), 2),
        "total_elevation_feet": sum(run.elevation_gain_feet for run in runs),
        "days_ran": len({run.local_date for run in runs}),
        "average_pace": format_pace(weighted_pace_seconds(runs)),
        "longest_run": max(runs, key=lambda run: run.distance_miles),
        "fastest_run": min(runs, key=lambda run: run.pace_seconds),
    }


def week_number(day: dt.date) -> int:
    """Week of the year with weeks starting on Sunday; January 1 is in week 1."""
    jan_first = dt.date(day.year, 1, 1)
    sunday_offset = (jan_first.weekday() + 1) % 7
    return math.ceil(((day - jan_first).days + sunday_offset + 1) / 7)


def week_range(day: dt.date) -> tuple[dt.date, dt.date]:
    """Sunday through Saturday of the week containing day."""
    start = day - dt.timedelta(days=(day.weekday() + 1) % 7)
    return start, start + dt.timedelta(days=6)


def get_enhanced_monthly_stats(
    runs: Sequence[RunAnalysis],
    year: int | None = None,
    month: int | None = None,
) -> dict[str, MonthStats]:
    """Per-month aggregates with a Sunday-based weekly breakdown.

    Args:
        runs: Qualifying runs
        year: Keep only runs in this year
        month: Keep only runs in this month (1-12)

    Returns:
        Mapping of "YYYY-MM" to MonthStats, in order of first appearance
    """
    filtered = [
        run
        for run in runs
        if (year is None or run.date.year == year) and (month is None or run.date.month == month)
    ]

    by_month: dict[str, list[RunAnalysis]] = {}
    by_week: dict[str, dict[int, list[RunAnalysis]]] = {}
    for run in filtered:
        key = f"{run.date.year}-{run.date.month:02d}"
        by_month.setdefault(key, []).append(run)
        by_week.setdefault(key, {}).setdefault(week_number(run.local_date), []).append(run)

    result: dict[str, MonthStats] = {}
    for key, month_runs in by_month.items():
        first = month_runs[0].date
        weekly: dict[int, WeekStats] = {}
        for number, week_runs in by_week[key].items():
            start, end = week_range(week_runs[0].local_date)
            weekly[number] = WeekStats(week_number=number, start_date=start, end_date=end, **_period_stats(week_runs))
        result[key] = MonthStats(
            month=calendar.month_name[first.month],
            year=first.year,
            weekly_stats=weekly,
            **_period_stats(month_runs),
        )
    return result
