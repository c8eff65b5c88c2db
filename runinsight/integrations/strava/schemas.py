from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

RUN_TYPES = frozenset({"Run", "VirtualRun", "TrailRun"})


class StravaActivity(BaseModel):
    """One Strava activity summary as returned by /athlete/activities.

    Immutable once fetched; downstream layers only read it.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: int
    name: str = ""
    type: str
    sport_type: str | None = None
    start_date_local: datetime  # athlete's wall-clock time, kept naive
    start_date: datetime | None = None
    distance: float = 0.0  # meters
    moving_time: int = 0  # seconds
    elapsed_time: int = 0
    total_elevation_gain: float = 0.0  # meters
    average_speed: float = 0.0  # m/s
    max_speed: float = 0.0
    average_heartrate: float | None = None
    max_heartrate: float | None = None
    kilojoules: float | None = None
    manual: bool = False
    private: bool = False

    raw: dict[str, Any] | None = None  # Store raw API response

    @field_validator("start_date_local", mode="after")
    @classmethod
    def strip_timezone(cls, value: datetime) -> datetime:
        """Strava suffixes local times with Z; the wall-clock value is what matters."""
        return value.replace(tzinfo=None)

    @property
    def is_run(self) -> bool:
        return self.type in RUN_TYPES or (self.sport_type or "") in RUN_TYPES


class StravaLap(BaseModel):
    """One lap of an activity from /activities/{id}/laps."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: int
    activity_id: int | None = None
    name: str = ""
    lap_index: int = 0
    distance: float = 0.0
    moving_time: int = 0
    elapsed_time: int = 0
    average_speed: float = 0.0
    max_speed: float = 0.0
    average_heartrate: float | None = None

    @model_validator(mode="before")
    @classmethod
    def extract_activity_id(cls, data: Any) -> Any:
        if isinstance(data, dict) and "activity_id" not in data:
            activity = data.get("activity")
            if isinstance(activity, dict) and "id" in activity:
                return {**data, "activity_id": activity["id"]}
        return data
