"""Lap-level conversions and rankings."""

from __future__ import annotations

from collections.abc import Sequence

from pydantic import BaseModel, ConfigDict

from runinsight.analytics.units import (
    KM_TO_MILES,
    METERS_PER_SEC_TO_MPH,
    METERS_TO_MILES,
    format_pace,
    round_half_up,
    safe_div,
)
from runinsight.integrations.strava.schemas import StravaLap

# Relative distance tolerance when matching laps to a target distance
TARGET_TOLERANCE = 0.05
DEFAULT_TARGET_DISTANCE_KM = 1.609


class LapAnalysis(BaseModel):
    model_config = ConfigDict(frozen=True)

    lap_id: int
    activity_id: int
    distance_miles: float
    duration_minutes: float
    pace_per_mile: str
    pace_seconds: float
    average_speed_mph: float
    average_heartrate: float | None = None


def is_measurable(lap: StravaLap) -> bool:
    """Laps without distance or moving time have no meaningful pace."""
    return lap.distance > 0 and lap.moving_time > 0


def to_lap_analysis(lap: StravaLap, activity_id: int) -> LapAnalysis:
    distance_miles = lap.distance * METERS_TO_MILES
    pace_seconds = safe_div(lap.moving_time, distance_miles)
    return LapAnalysis(
        lap_id=lap.id,
        activity_id=activity_id,
        distance_miles=round_half_up(distance_miles, 2),
        duration_minutes=round_half_up(lap.moving_time / 60, 2),
        pace_per_mile=format_pace(pace_seconds),
        pace_seconds=pace_seconds,
        average_speed_mph=round_half_up(lap.average_speed * METERS_PER_SEC_TO_MPH, 2),
        average_heartrate=lap.average_heartrate,
    )


def analyze_laps(laps: Sequence[StravaLap], activity_id: int) -> list[LapAnalysis]:
    return [to_lap_analysis(lap, activity_id) for lap in laps if is_measurable(lap)]


def matches_target(lap: LapAnalysis, target_miles: float, tolerance: float = TARGET_TOLERANCE) -> bool:
    """True when the lap distance is within tolerance of target_miles, relatively."""
    if target_miles <= 0:
        return False
    return abs(lap.distance_miles - target_miles) / target_miles <= tolerance


def fastest_target_laps(
    laps: Sequence[LapAnalysis],
    target_distance_km: float = DEFAULT_TARGET_DISTANCE_KM,
    count: int = 5,
) -> list[LapAnalysis]:
    """Fastest laps whose distance matches the target distance.

    Args:
        laps: Candidate laps from any number of activities
        target_distance_km: Target lap distance in kilometers
        count: Maximum number of laps to return

    Returns:
        Matching laps sorted by ascending pace
    """
    target_miles = target_distance_km * KM_TO_MILES
    matching = [lap for lap in laps if matches_target(lap, target_miles)]
    return sorted(matching, key=lambda lap: lap.pace_seconds)[:count]


def fastest_laps(laps: Sequence[LapAnalysis], count: int = 5) -> list[LapAnalysis]:
    return sorted(laps, key=lambda lap: lap.pace_seconds)[:count]
