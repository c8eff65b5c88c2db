"""Argument models for each analytics tool.

Field aliases keep the wire names the model sees (``minDistance``,
``minGapDays``); the JSON schema published in the tool catalog is generated
from these models.
"""

from __future__ import annotations

from datetime import MAXYEAR, MINYEAR

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

from runinsight.analytics.laps import DEFAULT_TARGET_DISTANCE_KM
from runinsight.analytics.progression import DEFAULT_MIN_GAP_DAYS
from runinsight.cache.range_cache import DateFilter, parse_iso_date

MAX_LAP_ACTIVITIES = 10


class ToolArgs(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class DateFilterArgs(ToolArgs):
    """Shared optional date scoping; before/after override year/month bounds."""

    year: int | None = Field(default=None, ge=MINYEAR, le=MAXYEAR, description="Optional year to filter activities")
    month: int | None = Field(default=None, ge=1, le=12, description="Optional month (1-12) to filter activities")
    before: str | None = Field(default=None, description="Filter activities before this date (YYYY-MM-DD)")
    after: str | None = Field(default=None, description="Filter activities after this date (YYYY-MM-DD)")

    @field_validator("month")
    @classmethod
    def validate_month_has_year(cls, value: int | None, info: ValidationInfo) -> int | None:
        if value is not None and info.data.get("year") is None:
            raise ValueError("month requires year")
        return value

    @field_validator("before", "after")
    @classmethod
    def validate_iso_date(cls, value: str | None) -> str | None:
        if value is not None:
            parse_iso_date(value)
        return value

    def to_date_filter(self) -> DateFilter | None:
        date_filter = DateFilter(year=self.year, month=self.month, before=self.before, after=self.after)
        return None if date_filter.is_empty else date_filter


class FastestActivitiesArgs(DateFilterArgs):
    count: int = Field(default=5, ge=1, description="Number of fastest activities to return")
    min_distance: float = Field(
        default=1.0,
        ge=0,
        alias="minDistance",
        description="Minimum distance in miles to consider",
    )


class LongestActivitiesArgs(DateFilterArgs):
    count: int = Field(default=5, ge=1, description="Number of longest activities to return")


class ActivityLapsArgs(ToolArgs):
    activity_ids: list[int] = Field(
        min_length=1,
        description=f"List of activity IDs to analyze (at most {MAX_LAP_ACTIVITIES} are used)",
    )
    target_distance_km: float = Field(
        default=DEFAULT_TARGET_DISTANCE_KM,
        gt=0,
        description="Target lap distance in kilometers (default: 1.609 for 1 mile)",
    )
    count: int = Field(default=5, ge=1, description="Number of fastest laps to return")


class FastestLapsArgs(ToolArgs):
    activity_count: int = Field(default=5, ge=1, description="Number of fastest activities to analyze")
    lap_count: int = Field(default=5, ge=1, description="Number of fastest splits to return")
    year: int | None = Field(default=None, ge=MINYEAR, le=MAXYEAR, description="Optional year to filter activities")


class ActivityGapsArgs(DateFilterArgs):
    min_gap_days: int = Field(
        default=DEFAULT_MIN_GAP_DAYS,
        ge=1,
        alias="minGapDays",
        description="Minimum number of days between activities to consider as a gap",
    )
