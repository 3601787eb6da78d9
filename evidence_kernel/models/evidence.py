"""Evidence Bundle: day-scoped sensor rows supplied by the Evidence Source."""

from datetime import datetime
from typing import Annotated, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field

from evidence_kernel.models.event import EventCategory


Timestamp = Union[datetime, str]


class LocationHourlyRow(BaseModel):
    """One hour bucket of location samples, optionally matched to a user place."""

    hour_start: Timestamp
    sample_count: int = 0
    place_id: Optional[str] = None
    place_label: Optional[str] = None
    place_category: Optional[str] = None    # e.g., "home", "office", "gym"


class ScreenTimeSessionRow(BaseModel):
    """A single foreground session of one app."""

    app_id: str
    display_name: Optional[str] = None
    started_at: Timestamp
    ended_at: Timestamp
    duration_seconds: float = 0

    @property
    def app_name(self) -> str:
        return self.display_name or self.app_id


class HealthWorkoutRow(BaseModel):
    id: str
    started_at: Timestamp
    ended_at: Timestamp
    duration_seconds: float = 0
    activity_type: Optional[str] = None


class EvidenceBundle(BaseModel):
    """
    Per user-day aggregate of evidence. Read-only to the kernel.

    Screen time arrives at whichever granularity the platform could provide:
    precise sessions, per-app hourly seconds, or a 24-length aggregate.
    """

    location_hourly: List[LocationHourlyRow] = []
    screen_time_sessions: List[ScreenTimeSessionRow] = []
    screen_time_hourly_by_app: Dict[str, Dict[int, float]] = {}    # app id -> hour -> seconds
    screen_time_hourly_seconds: List[float] = []                    # index = hour of day
    app_display_names: Dict[str, str] = {}                          # app id -> display name
    top_app_name: Optional[str] = None
    health_workouts: List[HealthWorkoutRow] = []


# --- Screen time granularity (resolved once per day) ---

class ScreenSession(BaseModel):
    """A session converted into local-day minutes."""

    app_name: str
    start_minutes: float
    end_minutes: float

    @property
    def duration_minutes(self) -> float:
        return self.end_minutes - self.start_minutes


class ScreenActivity(BaseModel):
    """A window of phone use with its per-app minutes, used for block grouping."""

    start_minutes: float
    end_minutes: float
    app_minutes: Dict[str, float] = {}

    @property
    def total_minutes(self) -> float:
        return sum(self.app_minutes.values())


class SessionScreenTime(BaseModel):
    granularity: Literal["sessions"] = "sessions"
    sessions: List[ScreenSession]


class HourlyByAppScreenTime(BaseModel):
    granularity: Literal["hourly_by_app"] = "hourly_by_app"
    hourly_by_app: Dict[str, Dict[int, float]]          # display name -> hour -> seconds


class AggregateHourlyScreenTime(BaseModel):
    granularity: Literal["aggregate_hourly"] = "aggregate_hourly"
    hourly_seconds: List[float]
    top_app_name: Optional[str] = None


ScreenTimeEvidence = Annotated[
    Union[SessionScreenTime, HourlyByAppScreenTime, AggregateHourlyScreenTime],
    Field(discriminator="granularity"),
]


class LocationBlock(BaseModel):
    """A contiguous dwell at one place, in local-day minutes."""

    start_minutes: int
    end_minutes: int
    location_label: Optional[str] = None
    location_category: Optional[str] = None
    place_key: Optional[str] = None
    total_location_samples: int = 0
    confidence_score: float = Field(ge=0.0, le=1.0, default=0.5)


class AppCategoryOverride(BaseModel):
    """User-specific reclassification of an app."""

    category: EventCategory
    confidence: float = Field(ge=0.0, le=1.0)


AppCategoryOverrides = Dict[str, AppCategoryOverride]
