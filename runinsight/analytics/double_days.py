"""Double-day detection: calendar dates with two or more runs."""

from __future__ import annotations

import datetime as dt
from collections.abc import Sequence

from pydantic import BaseModel

from runinsight.analytics.patterns import DAY_NAMES, group_stats
from runinsight.analytics.runs import RunAnalysis
from runinsight.analytics.units import format_pace, safe_div


class DoubleDay(BaseModel):
    date: dt.date
    runs: list[RunAnalysis]  # sorted by start time
    total_distance: float
    average_pace: str


class DoubleDayFrequency(BaseModel):
    total: int
    by_month: dict[str, int]
    by_day_of_week: dict[str, int]


class DoubleDayPerformance(BaseModel):
    average_first_run_distance: float
    average_second_run_distance: float
    average_first_run_pace: str
    average_second_run_pace: str
    average_time_between_runs: float  # hours


class DoubleDayPatterns(BaseModel):
    frequency: DoubleDayFrequency
    performance: DoubleDayPerformance


class ComparisonToNormal(BaseModel):
    pace_percent_diff: float
    distance_percent_diff: float


class SubsequentDayPerformance(BaseModel):
    average_pace: str
    average_distance: float
    comparison_to_normal: ComparisonToNormal


class DoubleDayAnalysis(BaseModel):
    double_days: list[DoubleDay]
    patterns: DoubleDayPatterns
    subsequent_day_performance: SubsequentDayPerformance


def analyze_double_days(runs: Sequence[RunAnalysis]) -> DoubleDayAnalysis:
    """Find double days and compare the following day against normal days.

    First/second run averages use the two earliest runs of each double day.
    Days after a double day are compared against all runs that are neither
    on nor right after a double day. Every ratio with an empty denominator
    reports 0.
    """
    by_date: dict[dt.date, list[RunAnalysis]] = {}
    for run in runs:
        by_date.setdefault(run.local_date, []).append(run)

    double_days: list[DoubleDay] = []
    by_month: dict[str, int] = {}
    by_day_of_week = {name: 0 for name in DAY_NAMES}
    first_distance = second_distance = 0.0
    first_pace = second_pace = 0.0
    hours_between = 0.0

    for day, day_runs in by_date.items():
        if len(day_runs) < 2:
            continue

        ordered = sorted(day_runs, key=lambda run: run.date)
        first, second = ordered[0], ordered[1]
        month_key = f"{day.year}-{day.month:02d}"
        by_month[month_key] = by_month.get(month_key, 0) + 1
        by_day_of_week[DAY_NAMES[(day.weekday() + 1) % 7]] += 1

        first_distance += first.distance_miles
        second_distance += second.distance_miles
        first_pace += first.pace_seconds
        second_pace += second.pace_seconds
        hours_between += (second.date - first.date).total_seconds() / 3600

        double_days.append(
            DoubleDay(
                date=day,
                runs=ordered,
                total_distance=sum(run.distance_miles for run in ordered),
                average_pace=group_stats(ordered).average_pace,
            )
        )

    total = len(double_days)
    patterns = DoubleDayPatterns(
        frequency=DoubleDayFrequency(total=total, by_month=by_month, by_day_of_week=by_day_of_week),
        performance=DoubleDayPerformance(
            average_first_run_distance=safe_div(first_distance, total),
            average_second_run_distance=safe_div(second_distance, total),
            average_first_run_pace=format_pace(safe_div(first_pace, total)),
            average_second_run_pace=format_pace(safe_div(second_pace, total)),
            average_time_between_runs=safe_div(hours_between, total),
        ),
    )
    return DoubleDayAnalysis(
        double_days=double_days,
        patterns=patterns,
        subsequent_day_performance=subsequent_day_performance(runs, {d.date for d in double_days}),
    )


def subsequent_day_performance(runs: Sequence[RunAnalysis], double_day_dates: set[dt.date]) -> SubsequentDayPerformance:
    """Compare runs on the day after a double day with the normal baseline."""
    one_day = dt.timedelta(days=1)
    subsequent = [run for run in runs if run.local_date - one_day in double_day_dates]
    normal = [
        run
        for run in runs
        if run.local_date not in double_day_dates and run.local_date - one_day not in double_day_dates
    ]

    subsequent_stats = group_stats(subsequent)
    normal_stats = group_stats(normal)
    comparison = ComparisonToNormal(pace_percent_diff=0, distance_percent_diff=0)
    # Without both groups there is nothing to compare
    if subsequent and normal:
        comparison = ComparisonToNormal(
            pace_percent_diff=safe_div(
                subsequent_stats.average_pace_seconds - normal_stats.average_pace_seconds,
                normal_stats.average_pace_seconds,
            )
            * 100,
            distance_percent_diff=safe_div(
                subsequent_stats.average_distance - normal_stats.average_distance,
                normal_stats.average_distance,
            )
            * 100,
        )
    return SubsequentDayPerformance(
        average_pace=subsequent_stats.average_pace,
        average_distance=subsequent_stats.average_distance,
        comparison_to_normal=comparison,
    )
