"""Unit conversions and display formatting shared by the analytics modules."""

import math

METERS_TO_MILES = 0.000621371
METERS_TO_FEET = 3.28084
METERS_PER_SEC_TO_MPH = 2.23694
KM_TO_MILES = 0.621371
KILOJOULES_TO_CALORIES = 1.05

SECONDS_PER_DAY = 24 * 60 * 60


def round_half_up(value: float, digits: int = 0) -> float:
    """Round with halves away from zero for positives, unlike Python's banker's rounding."""
    factor = 10**digits
    return math.floor(value * factor + 0.5) / factor


def safe_div(numerator: float, denominator: float) -> float:
    """Divide, returning 0 when the denominator is zero."""
    if not denominator:
        return 0.0
    return numerator / denominator


def format_pace(pace_seconds: float) -> str:
    """Format seconds-per-mile as M:SS.

    Seconds are rounded to the nearest integer; a rounded 60 rolls into the
    next minute. Non-positive or non-finite input formats as "0:00".
    """
    if not math.isfinite(pace_seconds) or pace_seconds <= 0:
        return "0:00"
    minutes = int(pace_seconds // 60)
    seconds = int(round_half_up(pace_seconds % 60))
    if seconds == 60:
        minutes += 1
        seconds = 0
    return f"{minutes}:{seconds:02d}"

