"""Training continuity and load progression: gaps between runs and month-over-month volume."""

from __future__ import annotations

import math
from collections.abc import Sequence

from pydantic import BaseModel

from runinsight.analytics.runs import RunAnalysis
from runinsight.analytics.units import SECONDS_PER_DAY, round_half_up, safe_div

DEFAULT_MIN_GAP_DAYS = 14
RAMP_UP_THRESHOLD_PERCENT = 10.0
DISTANCE_MENTION_THRESHOLD_PERCENT = 10.0


class PerformanceChange(BaseModel):
    pace_change: float  # seconds per mile, negative is faster
    distance_change: float  # percent
    description: str


class ActivityGap(BaseModel):
    start_date: str
    end_date: str
    days_off: int
    last_run_before: RunAnalysis
    first_run_after: RunAnalysis
    performance_change: PerformanceChange


def describe_gap_change(pace_change: float, distance_change: float) -> str:
    """Describe how the first run after a break compares to the last one before it."""
    direction = "faster" if pace_change < 0 else "slower"
    description = f"After the break, pace was {direction} ({abs(int(round_half_up(pace_change)))} seconds per mile). "
    if abs(distance_change) > DISTANCE_MENTION_THRESHOLD_PERCENT:
        trend = "increased" if distance_change > 0 else "decreased"
        description += f"Distance {trend} by {abs(int(round_half_up(distance_change)))}%."
    return description


def find_activity_gaps(runs: Sequence[RunAnalysis], min_gap_days: int = DEFAULT_MIN_GAP_DAYS) -> list[ActivityGap]:
    """Report breaks of at least min_gap_days between consecutive runs.

    Args:
        runs: Runs in any order
        min_gap_days: Minimum whole days between two runs to count as a gap

    Returns:
        Gaps in chronological order
    """
    ordered = sorted(runs, key=lambda run: run.date)
    gaps: list[ActivityGap] = []

    for before, after in zip(ordered, ordered[1:]):
        days_off = math.floor((after.date - before.date).total_seconds() / SECONDS_PER_DAY)
        if days_off < min_gap_days:
            continue

        pace_change = after.pace_seconds - before.pace_seconds
        distance_change = safe_div(after.distance_miles - before.distance_miles, before.distance_miles) * 100
        gaps.append(
            ActivityGap(
                start_date=before.date.isoformat(),
                end_date=after.date.isoformat(),
                days_off=days_off,
                last_run_before=before,
                first_run_after=after,
                performance_change=PerformanceChange(
                    pace_change=pace_change,
                    distance_change=distance_change,
                    description=describe_gap_change(pace_change, distance_change),
                ),
            )
        )

    return gaps


class MonthLoad(BaseModel):
    month: str  # YYYY-MM
    total_miles: float
    total_runs: int
    average_miles_per_run: float
    percent_change_from_prev_month: float
    is_over_ten_percent: bool


class RampUpPeriod(BaseModel):
    start_month: str
    end_month: str
    percentage_increase: float
    month_count: int
    average_monthly_increase: float


class MonthlyLoadProgression(BaseModel):
    monthly_stats: dict[str, MonthLoad]
    ramp_up_periods: list[RampUpPeriod]


def analyze_monthly_load_progression(runs: Sequence[RunAnalysis]) -> MonthlyLoadProgression:
    """Month-over-month distance change and ramp-up periods.

    Percent change compares each month with the previous month that has
    runs (by calendar key, not elapsed time). Consecutive months above the
    ramp-up threshold form one ramp-up period, starting at the month before
    the first increase.
    """
    totals: dict[str, tuple[float, int]] = {}
    for run in runs:
        key = f"{run.date.year}-{run.date.month:02d}"
        miles, count = totals.get(key, (0.0, 0))
        totals[key] = (miles + run.distance_miles, count + 1)

    monthly: dict[str, MonthLoad] = {}
    periods: list[RampUpPeriod] = []
    current: dict | None = None
    previous_key: str | None = None

    for key in sorted(totals):
        miles, count = totals[key]
        percent_change = 0.0
        if previous_key is not None:
            percent_change = safe_div(miles - totals[previous_key][0], totals[previous_key][0]) * 100

        is_ramp = previous_key is not None and percent_change > RAMP_UP_THRESHOLD_PERCENT
        monthly[key] = MonthLoad(
            month=key,
            total_miles=miles,
            total_runs=count,
            average_miles_per_run=safe_div(miles, count),
            percent_change_from_prev_month=round_half_up(percent_change, 1),
            is_over_ten_percent=is_ramp,
        )

        if is_ramp:
            if current is None:
                current = {"start_month": previous_key, "end_month": key, "percentage_increase": 0.0, "month_count": 0}
            current["end_month"] = key
            current["percentage_increase"] += percent_change
            current["month_count"] += 1
        elif current is not None:
            periods.append(_close_period(current))
            current = None

        previous_key = key

    if current is not None:
        periods.append(_close_period(current))

    return MonthlyLoadProgression(monthly_stats=monthly, ramp_up_periods=periods)


def _close_period(current: dict) -> RampUpPeriod:
    return RampUpPeriod(
        **current,
        average_monthly_increase=safe_div(current["percentage_increase"], current["month_count"]),
    )
