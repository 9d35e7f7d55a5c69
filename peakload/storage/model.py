#!/usr/bin/env python3
"""
Pydantic Data Models for Training Load Data

Canonical shapes for activities, athlete preferences, planned workouts and
weekly fitness snapshots. Provider payloads are normalized into ``Activity``
at the ingestion boundary; anything provider-specific is kept in ``raw_data``.
"""

from datetime import date, datetime, timezone
from enum import Enum
from typing import Dict, Any, Optional, List
import uuid

from pydantic import BaseModel, Field, ConfigDict, field_validator


RUNNING_TYPES = {"run", "trailrun", "virtualrun", "running", "trail_running", "treadmill_running"}
TRAIL_RUNNING_TYPES = {"trailrun", "trail_running"}


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Provider(str, Enum):
    """Activity source providers"""

    GARMIN = "garmin"
    WAHOO = "wahoo"
    STRAVA = "strava"
    MANUAL = "manual"
    OTHER = "other"


class Activity(BaseModel):
    """One completed workout in canonical form"""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), description="Canonical activity id")
    athlete_id: str = Field(..., description="Owning athlete")
    provider: str = Field(default=Provider.MANUAL.value, description="Source provider discriminant")
    provider_activity_id: Optional[str] = Field(None, description="Provider-native id")
    name: Optional[str] = None
    activity_type: str = Field(default="Ride", description="Ride, VirtualRide, Run, TrailRun, ...")
    start_time: datetime

    moving_time: Optional[float] = Field(None, ge=0, description="Moving time in seconds")
    elapsed_time: Optional[float] = Field(None, ge=0, description="Elapsed time in seconds")
    distance: Optional[float] = Field(None, ge=0, description="Distance in meters")
    total_elevation_gain: Optional[float] = Field(None, ge=0, description="Elevation gain in meters")

    average_watts: Optional[float] = Field(None, ge=0)
    max_watts: Optional[float] = Field(None, ge=0)
    kilojoules: Optional[float] = Field(None, ge=0)
    normalized_power: Optional[float] = Field(None, ge=0)
    intensity_factor: Optional[float] = Field(None, ge=0)
    average_heartrate: Optional[float] = Field(None, ge=0)
    max_heartrate: Optional[float] = Field(None, ge=0)
    average_cadence: Optional[float] = Field(None, ge=0)
    average_speed: Optional[float] = Field(None, ge=0)
    max_speed: Optional[float] = Field(None, ge=0)
    calories: Optional[float] = Field(None, ge=0)
    tss: Optional[float] = Field(None, description="Provider-declared training stress score")

    map_summary_polyline: Optional[str] = None
    power_curve_summary: Optional[Dict[str, float]] = Field(
        None, description="Best power by duration, keyed '5s', '60s', '300s', ..."
    )
    ride_analytics: Optional[Dict[str, Any]] = Field(None, description="Attached per-ride analytics")

    # Transient per-second streams, never persisted by the core
    power_stream: Optional[List[float]] = Field(None, exclude=True)
    heartrate_stream: Optional[List[float]] = Field(None, exclude=True)
    cadence_stream: Optional[List[float]] = Field(None, exclude=True)

    is_hidden: Optional[bool] = False
    duplicate_of: Optional[str] = None
    raw_data: Dict[str, Any] = Field(default_factory=dict)

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    model_config = ConfigDict(extra="allow")

    @field_validator("provider", mode="before")
    @classmethod
    def _normalize_provider(cls, value: Any) -> str:
        if value is None:
            return Provider.OTHER.value
        if isinstance(value, Provider):
            return value.value
        return str(value).lower()

    @field_validator("provider_activity_id", mode="before")
    @classmethod
    def _stringify_provider_id(cls, value: Any) -> Optional[str]:
        return None if value is None else str(value)

    @field_validator("start_time")
    @classmethod
    def _ensure_timezone(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @property
    def is_running(self) -> bool:
        return (self.activity_type or "").replace(" ", "").lower() in RUNNING_TYPES

    @property
    def is_trail_run(self) -> bool:
        return (self.activity_type or "").replace(" ", "").lower() in TRAIL_RUNNING_TYPES

    @property
    def is_canonical(self) -> bool:
        return self.duplicate_of is None

    @property
    def start_date(self) -> date:
        return self.start_time.date()


class AthletePreferences(BaseModel):
    """Athlete thresholds used by the analytics"""

    athlete_id: str
    ftp: Optional[float] = Field(None, gt=0, description="Functional threshold power in watts")
    critical_power: Optional[float] = Field(None, gt=0, description="Critical power in watts")
    max_hr: Optional[int] = Field(None, gt=0, le=250)
    resting_hr: int = Field(50, gt=0, le=150)

    model_config = ConfigDict(extra="allow")


class PlannedWorkout(BaseModel):
    """A planned workout, optionally linked to the activity that completed it"""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    athlete_id: str
    scheduled_date: date
    activity_id: Optional[str] = None
    target_duration_minutes: Optional[float] = Field(None, gt=0)
    target_tss: Optional[float] = Field(None, gt=0)
    target_intensity_factor: Optional[float] = Field(None, gt=0)
    target_distance_km: Optional[float] = Field(None, gt=0)

    model_config = ConfigDict(extra="allow")


class FitnessSnapshot(BaseModel):
    """One weekly fitness snapshot, keyed by (athlete_id, snapshot_week)"""

    athlete_id: str
    snapshot_week: date = Field(..., description="Monday of the ISO week")

    ctl: int = 0
    atl: int = 0
    tsb: int = 0
    ftp: Optional[float] = None
    ftp_source: Optional[str] = None

    weekly_tss: int = 0
    weekly_hours: float = 0.0
    weekly_ride_count: int = 0
    weekly_run_count: int = 0
    weekly_distance_km: float = 0.0
    weekly_elevation_m: int = 0
    avg_normalized_power: Optional[int] = None
    peak_20min_power: Optional[float] = None
    load_trend: str = "building"
    fitness_trend: str = "stable"
    activities_analyzed: int = 0

    estimated_ftp: Optional[int] = None
    estimated_ftp_method: Optional[str] = None
    estimated_ftp_confidence: Optional[str] = None
    training_monotony: Optional[float] = None
    training_strain: Optional[int] = None
    overtraining_risk: Optional[str] = None
    best_efforts: Dict[str, Optional[float]] = Field(default_factory=dict)
    avg_efficiency_factor: Optional[float] = None
    avg_variability_index: Optional[float] = None
    avg_execution_score: Optional[int] = None

    computed_at: datetime = Field(default_factory=utc_now)

    @property
    def key(self) -> tuple:
        return (self.athlete_id, self.snapshot_week)

    def metrics(self) -> Dict[str, Any]:
        """Snapshot fields without the computation timestamp."""
        return self.model_dump(exclude={"computed_at"})
