"""Behavioral pattern analysis over runs: time of day, day of week, titles."""

from __future__ import annotations

import math
import re
from collections.abc import Sequence

from pydantic import BaseModel

from runinsight.analytics.runs import RunAnalysis, average_pace_seconds
from runinsight.analytics.units import SECONDS_PER_DAY, format_pace, round_half_up, safe_div

# Bucket names in display order; night wraps around midnight
TIME_OF_DAY_BUCKETS = ("early_morning", "morning", "afternoon", "evening", "night")

DAY_NAMES = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")
WEEKEND_DAYS = frozenset({"Saturday", "Sunday"})

# Weekend runner when weekday runs per weekday fall below this share of weekend runs per weekend day
WEEKEND_RUNNER_THRESHOLD = 0.8

STOP_WORDS = frozenset(
    {
        "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for", "with",
        "run", "running", "mile", "miles", "km", "morning", "evening", "afternoon",
    }
)
POSITIVE_WORDS = frozenset(
    {
        "great", "good", "awesome", "amazing", "excellent", "strong", "fast", "energetic",
        "happy", "fun", "enjoyable", "solid", "nice", "perfect", "proud", "successful",
    }
)
NEGATIVE_WORDS = frozenset(
    {
        "tired", "hard", "tough", "difficult", "slow", "bad", "rough", "exhausted",
        "struggling", "painful", "sore", "heavy", "weak", "terrible", "awful",
    }
)
TOP_WORD_COUNT = 20

_PUNCTUATION = re.compile(r"[.,/#!$%^&*;:{}=\-_`~()]")


def time_of_day_bucket(hour: int) -> str:
    """Map a local hour to its bucket name."""
    if 4 <= hour < 8:
        return "early_morning"
    if 8 <= hour < 12:
        return "morning"
    if 12 <= hour < 17:
        return "afternoon"
    if 17 <= hour < 21:
        return "evening"
    return "night"


def day_name(run: RunAnalysis) -> str:
    return DAY_NAMES[(run.date.weekday() + 1) % 7]


class RunGroupStats(BaseModel):
    count: int
    total_distance: float
    average_distance: float
    average_pace: str
    average_pace_seconds: float
    runs: list[RunAnalysis]


def group_stats(runs: Sequence[RunAnalysis]) -> RunGroupStats:
    """Count, distance and unweighted average pace for a group of runs."""
    total_distance = sum(run.distance_miles for run in runs)
    pace_seconds = average_pace_seconds(runs)
    return RunGroupStats(
        count=len(runs),
        total_distance=total_distance,
        average_distance=safe_div(total_distance, len(runs)),
        average_pace=format_pace(pace_seconds),
        average_pace_seconds=pace_seconds,
        runs=list(runs),
    )


def analyze_time_of_day(runs: Sequence[RunAnalysis]) -> dict[str, RunGroupStats]:
    """Group runs into the five local-time buckets.

    Returns:
        Mapping bucket name -> stats, every bucket present even when empty
    """
    buckets: dict[str, list[RunAnalysis]] = {name: [] for name in TIME_OF_DAY_BUCKETS}
    for run in runs:
        buckets[time_of_day_bucket(run.date.hour)].append(run)
    return {name: group_stats(bucket) for name, bucket in buckets.items()}


class DayStats(BaseModel):
    count: int
    total_distance: float
    average_distance: float
    average_pace: str
    consistency: float  # percent of available days with a run


class DayOfWeekSummary(BaseModel):
    preferred_running_days: list[str]
    is_weekend_runner: bool
    most_consistent_day: str
    least_active_day: str
    weekday_to_weekend_ratio: float
    average_runs_per_week: float


class DayOfWeekAnalysis(BaseModel):
    summary: DayOfWeekSummary
    weekday_avg: DayStats
    weekend_avg: DayStats
    by_day: dict[str, DayStats]


def analyze_day_of_week(runs: Sequence[RunAnalysis]) -> DayOfWeekAnalysis:
    """Per-weekday stats, weekday/weekend split and runner classification.

    Consistency divides run count by available days, where available days
    are the observed span in weeks (rounded up) times 5 for weekday groups
    and 2 for weekend groups. The same divisor applies to each single day.
    """
    by_day: dict[str, list[RunAnalysis]] = {name: [] for name in DAY_NAMES}
    weekday_runs: list[RunAnalysis] = []
    weekend_runs: list[RunAnalysis] = []
    for run in runs:
        name = day_name(run)
        by_day[name].append(run)
        (weekend_runs if name in WEEKEND_DAYS else weekday_runs).append(run)

    total_weeks = 0
    if runs:
        dates = [run.date for run in runs]
        total_weeks = math.ceil((max(dates) - min(dates)).total_seconds() / (7 * SECONDS_PER_DAY))

    def consistency(day_runs: Sequence[RunAnalysis], is_weekend: bool) -> float:
        available_days = total_weeks * (2 if is_weekend else 5)
        return safe_div(len(day_runs), available_days) * 100

    def day_stats(day_runs: Sequence[RunAnalysis], is_weekend: bool) -> DayStats:
        stats = group_stats(day_runs)
        return DayStats(
            count=stats.count,
            total_distance=round_half_up(stats.total_distance, 1),
            average_distance=round_half_up(stats.average_distance, 1),
            average_pace=stats.average_pace,
            consistency=round_half_up(consistency(day_runs, is_weekend), 1),
        )

    day_stats_by_name = {name: day_stats(day_runs, name in WEEKEND_DAYS) for name, day_runs in by_day.items()}
    weekday_stats = day_stats(weekday_runs, False)
    weekend_stats = day_stats(weekend_runs, True)

    # Stable: equal counts keep Sunday-first order
    ranked = sorted(day_stats_by_name.items(), key=lambda item: item[1].count, reverse=True)
    ratio = safe_div(weekday_stats.count / 5, weekend_stats.count / 2)
    # No weekend runs at all means a weekday runner, not a weekend one
    is_weekend_runner = weekend_stats.count > 0 and ratio < WEEKEND_RUNNER_THRESHOLD

    summary = DayOfWeekSummary(
        preferred_running_days=[name for name, _ in ranked[:3]],
        is_weekend_runner=is_weekend_runner,
        most_consistent_day=max(ranked, key=lambda item: item[1].consistency)[0],
        least_active_day=min(ranked, key=lambda item: item[1].count)[0],
        weekday_to_weekend_ratio=round_half_up(ratio, 2),
        average_runs_per_week=round_half_up(safe_div(len(runs), total_weeks), 1),
    )
    return DayOfWeekAnalysis(
        summary=summary,
        weekday_avg=weekday_stats,
        weekend_avg=weekend_stats,
        by_day=day_stats_by_name,
    )


def describe_day_of_week(analysis: DayOfWeekAnalysis) -> str:
    """Natural-language summary of a day-of-week analysis."""
    summary = analysis.summary
    runner_type = "weekend runner" if summary.is_weekend_runner else "weekday runner"
    weekday_consistency = int(round_half_up(analysis.weekday_avg.consistency))
    weekend_consistency = int(round_half_up(analysis.weekend_avg.consistency))
    return (
        f"You are primarily a {runner_type}, averaging {summary.average_runs_per_week} runs per week. "
        f"Your preferred running days are {', '.join(summary.preferred_running_days)}. "
        f"You are most consistent on {summary.most_consistent_day}s and least active on {summary.least_active_day}s. "
        f"Your weekday consistency is {weekday_consistency}% vs weekend consistency of {weekend_consistency}%."
    )


class WordCount(BaseModel):
    word: str
    count: int
    percentage: float


class TitleSentiment(BaseModel):
    positive: int
    negative: int
    neutral: int


class TitleWordAnalysis(BaseModel):
    word_frequency: dict[str, int]
    total_titles: int
    common_words: list[WordCount]
    sentiment: TitleSentiment


def tokenize_title(title: str) -> list[str]:
    """Lower-case, strip punctuation, split on whitespace, drop stop words."""
    words = _PUNCTUATION.sub("", title.lower()).split()
    return [word for word in words if word not in STOP_WORDS]


def analyze_run_titles(runs: Sequence[RunAnalysis]) -> TitleWordAnalysis:
    """Word frequency and lexicon-based sentiment over run titles.

    A title is positive when it has positive words and no negative ones,
    negative in the mirror case, and neutral otherwise.
    """
    frequency: dict[str, int] = {}
    positive = negative = neutral = 0

    for run in runs:
        words = tokenize_title(run.name)
        for word in words:
            frequency[word] = frequency.get(word, 0) + 1

        has_positive = any(word in POSITIVE_WORDS for word in words)
        has_negative = any(word in NEGATIVE_WORDS for word in words)
        if has_positive and not has_negative:
            positive += 1
        elif has_negative and not has_positive:
            negative += 1
        else:
            neutral += 1

    ranked = sorted(frequency.items(), key=lambda item: item[1], reverse=True)[:TOP_WORD_COUNT]
    return TitleWordAnalysis(
        word_frequency=frequency,
        total_titles=len(runs),
        common_words=[
            WordCount(word=word, count=count, percentage=safe_div(count, len(runs)) * 100) for word, count in ranked
        ],
        sentiment=TitleSentiment(positive=positive, negative=negative, neutral=neutral),
    )
