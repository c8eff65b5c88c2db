"""Tool handlers: validated arguments in, JSON-serializable payload out.

Activity-list tools resolve data through the cache-backed fetcher; the two
lap tools go to the activity source per activity, skipping any activity
whose laps cannot be fetched.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Any

from loguru import logger

from runinsight.analytics.double_days import analyze_double_days
from runinsight.analytics.laps import LapAnalysis, analyze_laps, fastest_laps, fastest_target_laps
from runinsight.analytics.patterns import (
    DayStats,
    analyze_day_of_week,
    analyze_run_titles,
    analyze_time_of_day,
    describe_day_of_week,
)
from runinsight.analytics.progression import analyze_monthly_load_progression, find_activity_gaps
from runinsight.analytics.runs import (
    RunAnalysis,
    analyze_runs,
    get_enhanced_monthly_stats,
    get_fastest_runs,
    get_longest_runs,
    get_personal_records,
    get_run_summary,
)
from runinsight.analytics.units import round_half_up, safe_div
from runinsight.cache.range_cache import DateFilter, FetchOptions
from runinsight.services.activity_fetcher import ActivityFetcher
from runinsight.tools.schemas import (
    MAX_LAP_ACTIVITIES,
    ActivityGapsArgs,
    ActivityLapsArgs,
    DateFilterArgs,
    FastestActivitiesArgs,
    FastestLapsArgs,
    LongestActivitiesArgs,
)


@dataclass
class ToolContext:
    """Capabilities shared by every handler."""

    fetcher: ActivityFetcher


def _runs_for(ctx: ToolContext, date_filter: DateFilter | None) -> list[RunAnalysis]:
    activities = ctx.fetcher.fetch_activities(FetchOptions(date_filter=date_filter))
    runs = analyze_runs(activities)
    logger.debug(f"Analyzed runs: activities={len(activities)} runs={len(runs)}")
    return runs


def _ranked_activities(runs: Sequence[RunAnalysis]) -> list[dict[str, Any]]:
    return [
        {
            "rank": index,
            "id": run.id,
            "name": run.name,
            "date": run.date.isoformat(),
            "distance_miles": run.distance_miles,
            "pace_per_mile": run.pace_per_mile,
            "average_heartrate": run.average_heartrate,
        }
        for index, run in enumerate(runs, start=1)
    ]


def _collect_laps(ctx: ToolContext, activity_ids: Iterable[int]) -> dict[int, list[LapAnalysis]]:
    """Fetch and convert laps per activity; a failed activity is logged and left out."""
    laps_by_activity: dict[int, list[LapAnalysis]] = {}
    for activity_id in activity_ids:
        try:
            laps = ctx.fetcher.fetch_activity_laps(activity_id)
        except Exception as e:
            logger.warning(f"Error fetching laps for activity {activity_id}: {e}")
            continue
        laps_by_activity[activity_id] = analyze_laps(laps, activity_id)
    return laps_by_activity


def get_fastest_activities_tool(ctx: ToolContext, args: FastestActivitiesArgs) -> dict[str, Any]:
    runs = _runs_for(ctx, args.to_date_filter())
    return {"activities": _ranked_activities(get_fastest_runs(runs, args.count, args.min_distance))}


def get_longest_activities_tool(ctx: ToolContext, args: LongestActivitiesArgs) -> dict[str, Any]:
    runs = _runs_for(ctx, args.to_date_filter())
    return {"activities": _ranked_activities(get_longest_runs(runs, args.count))}


def get_activity_laps_tool(ctx: ToolContext, args: ActivityLapsArgs) -> dict[str, Any]:
    activity_ids = args.activity_ids[:MAX_LAP_ACTIVITIES]
    if len(args.activity_ids) > MAX_LAP_ACTIVITIES:
        logger.info(f"Limiting lap analysis to first {MAX_LAP_ACTIVITIES} of {len(args.activity_ids)} activities")

    all_laps = [lap for laps in _collect_laps(ctx, activity_ids).values() for lap in laps]
    laps = fastest_target_laps(all_laps, args.target_distance_km, args.count)
    return {"laps": [{"rank": index, **lap.model_dump(mode="json")} for index, lap in enumerate(laps, start=1)]}


def find_fastest_laps_tool(ctx: ToolContext, args: FastestLapsArgs) -> dict[str, Any]:
    date_filter = DateFilter(year=args.year) if args.year is not None else None
    runs = _runs_for(ctx, date_filter)
    fastest_runs = get_fastest_runs(runs, args.activity_count)
    runs_by_id = {run.id: run for run in fastest_runs}

    all_laps = [lap for laps in _collect_laps(ctx, runs_by_id).values() for lap in laps]
    ranked = fastest_laps(all_laps, args.lap_count)

    def lap_entry(rank: int, lap: LapAnalysis) -> dict[str, Any]:
        run = runs_by_id[lap.activity_id]
        return {
            "rank": rank,
            "lap_id": lap.lap_id,
            "activity": {
                "id": run.id,
                "name": run.name,
                "date": run.date.isoformat(),
                "total_distance_miles": run.distance_miles,
                "total_pace_per_mile": run.pace_per_mile,
            },
            "lap_stats": {
                "distance_miles": lap.distance_miles,
                "duration_minutes": lap.duration_minutes,
                "pace_per_mile": lap.pace_per_mile,
                "pace_seconds": lap.pace_seconds,
                "average_heartrate": lap.average_heartrate,
            },
        }

    return {
        "analyzed_activities": len(fastest_runs),
        "total_laps_analyzed": len(all_laps),
        "laps": [lap_entry(index, lap) for index, lap in enumerate(ranked, start=1)],
    }


def get_enhanced_monthly_stats_tool(ctx: ToolContext, args: DateFilterArgs) -> dict[str, Any]:
    runs = _runs_for(ctx, args.to_date_filter())
    stats = get_enhanced_monthly_stats(runs, args.year, args.month)
    return {key: month.model_dump(mode="json") for key, month in stats.items()}


def find_time_of_day_patterns_tool(ctx: ToolContext, args: DateFilterArgs) -> dict[str, Any]:
    runs = _runs_for(ctx, args.to_date_filter())
    return {bucket: stats.model_dump(mode="json") for bucket, stats in analyze_time_of_day(runs).items()}


def get_day_of_week_analysis_tool(ctx: ToolContext, args: DateFilterArgs) -> dict[str, Any]:
    runs = _runs_for(ctx, args.to_date_filter())
    analysis = analyze_day_of_week(runs)
    weeks_observed = safe_div(len(runs), analysis.summary.average_runs_per_week)

    def group_summary(stats: DayStats) -> dict[str, Any]:
        return {
            "runs_per_week": round_half_up(safe_div(stats.count, weeks_observed), 1),
            "avg_distance": stats.average_distance,
            "avg_pace": stats.average_pace,
            "consistency": f"{int(round_half_up(stats.consistency))}%",
        }

    return {
        "summary": describe_day_of_week(analysis),
        "details": {
            "weekday_vs_weekend": {
                "weekday_avg": group_summary(analysis.weekday_avg),
                "weekend_avg": group_summary(analysis.weekend_avg),
            },
            "top_3_days": [
                {"day": day, "stats": analysis.by_day[day].model_dump(mode="json")}
                for day in analysis.summary.preferred_running_days
            ],
            "runner_profile": analysis.summary.model_dump(mode="json"),
        },
    }


def get_title_word_analysis_tool(ctx: ToolContext, args: DateFilterArgs) -> dict[str, Any]:
    runs = _runs_for(ctx, args.to_date_filter())
    return analyze_run_titles(runs).model_dump(mode="json")


def find_activity_gaps_tool(ctx: ToolContext, args: ActivityGapsArgs) -> dict[str, Any]:
    runs = _runs_for(ctx, args.to_date_filter())
    gaps = find_activity_gaps(runs, args.min_gap_days)
    return {"total_gaps": len(gaps), "gaps": [gap.model_dump(mode="json") for gap in gaps]}


def get_monthly_load_progression_tool(ctx: ToolContext, args: DateFilterArgs) -> dict[str, Any]:
    runs = _runs_for(ctx, args.to_date_filter())
    return analyze_monthly_load_progression(runs).model_dump(mode="json")


def find_double_days_tool(ctx: ToolContext, args: DateFilterArgs) -> dict[str, Any]:
    runs = _runs_for(ctx, args.to_date_filter())
    return analyze_double_days(runs).model_dump(mode="json")


def get_run_summary_tool(ctx: ToolContext, args: DateFilterArgs) -> dict[str, Any]:
    runs = _runs_for(ctx, args.to_date_filter())
    return get_run_summary(runs).model_dump(mode="json")


def get_personal_records_tool(ctx: ToolContext, args: DateFilterArgs) -> dict[str, Any]:
    runs = _runs_for(ctx, args.to_date_filter())
    records = get_personal_records(runs)
    return {
        "personal_records": {
            distance: run.model_dump(mode="json") if run is not None else None for distance, run in records.items()
        },
        "activities": _ranked_activities([run for run in records.values() if run is not None]),
    }
