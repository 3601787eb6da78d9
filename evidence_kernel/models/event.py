"""Scheduled Event: the shared event model for planned and actual timelines."""

from enum import Enum, IntEnum
from typing import Optional

from pydantic import BaseModel, Field, field_validator


MINUTES_PER_DAY = 24 * 60


class EventCategory(str, Enum):
    WORK = "work"
    HEALTH = "health"
    MEAL = "meal"
    ROUTINE = "routine"
    SLEEP = "sleep"
    FAMILY = "family"
    SOCIAL = "social"
    TRAVEL = "travel"
    FINANCE = "finance"
    COMM = "comm"
    DIGITAL = "digital"
    MEETING = "meeting"
    UNKNOWN = "unknown"
    FREE = "free"


class EventSource(str, Enum):
    """Who created the event."""
    USER = "user"
    SYSTEM = "system"
    EVIDENCE = "evidence"
    ACTUAL_ADJUST = "actual_adjust"
    DERIVED = "derived"


class DerivationKind(str, Enum):
    """Set by whichever component synthesized the event from evidence."""
    SCREEN_TIME = "screen_time"
    LOCATION = "location"
    WORKOUT = "workout"
    EVIDENCE = "evidence"


class EventPriority(IntEnum):
    """Overlap precedence. Lower number = higher priority."""
    USER_EDITED = 1
    SUPABASE_ACTUAL = 2
    DERIVED_EVIDENCE = 3
    SCREEN_TIME = 4
    UNKNOWN = 5


class TimeInterval(BaseModel):
    """A half-open [start, start + duration) window in local-day minutes."""

    start_minutes: int = Field(ge=0, lt=MINUTES_PER_DAY)
    duration: int = Field(gt=0)

    @property
    def end_minutes(self) -> int:
        return self.start_minutes + self.duration

    def overlap_minutes(self, other: "TimeInterval") -> int:
        start = max(self.start_minutes, other.start_minutes)
        end = min(self.end_minutes, other.end_minutes)
        return max(0, end - start)

    def overlaps(self, other: "TimeInterval") -> bool:
        # Touching intervals (end == start) do not overlap.
        return (
            self.start_minutes < other.end_minutes
            and other.start_minutes < self.end_minutes
        )


class EventMeta(BaseModel):
    """Metadata attached to a calendar event."""

    source: Optional[EventSource] = None
    kind: Optional[str] = None              # e.g., "screen_time", "sleep_schedule", "unknown_gap"
    confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    evidence: dict = {}                     # place label, app/minutes breakdown, workout info
    derivation_kind: Optional[DerivationKind] = None


def normalize_category(value):
    """Faith events share the routine category."""
    if isinstance(value, str) and value.lower() == "faith":
        return EventCategory.ROUTINE
    return value


class ScheduledEvent(BaseModel):
    """A planned or actual event on a single local day."""

    id: str
    title: str
    description: str = ""
    category: EventCategory = EventCategory.UNKNOWN
    start_minutes: int = Field(ge=0, lt=MINUTES_PER_DAY)
    duration: int
    meta: EventMeta = EventMeta()

    @field_validator("category", mode="before")
    @classmethod
    def _normalize_category(cls, value):
        return normalize_category(value)

    @property
    def end_minutes(self) -> int:
        return self.start_minutes + self.duration

    @property
    def has_valid_duration(self) -> bool:
        return self.duration > 0

    @property
    def interval(self) -> TimeInterval:
        return TimeInterval(start_minutes=self.start_minutes, duration=self.duration)
