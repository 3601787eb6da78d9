"""Verification models: rules, thresholds, and per-event verdicts."""

from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class EvidenceType(str, Enum):
    LOCATION = "location"
    SCREEN_TIME = "screen_time"
    HEALTH_WORKOUT = "health_workout"
    HEALTH_SLEEP = "health_sleep"


class VerificationStatus(str, Enum):
    VERIFIED = "verified"                       # Evidence strongly supports the plan
    MOSTLY_VERIFIED = "mostly_verified"
    PARTIALLY_VERIFIED = "partially_verified"
    PARTIAL = "partial"                         # Some evidence, gaps or minor contradictions
    UNVERIFIED = "unverified"                   # No relevant evidence
    CONTRADICTED = "contradicted"               # Evidence says the user was elsewhere
    DISTRACTED = "distracted"                   # Phone use when it shouldn't have been
    EARLY = "early"
    LATE = "late"
    SHORTENED = "shortened"
    EXTENDED = "extended"


class DiscrepancySeverity(str, Enum):
    MINOR = "minor"
    MODERATE = "moderate"
    MAJOR = "major"


class VerificationRule(BaseModel):
    """
    Static per-category configuration: what evidence confirms or
    contradicts an event of this category.
    """

    location_expected: List[Optional[str]] = [None]     # None = any place is acceptable
    location_required: bool = False
    allowed_apps: List[str] = []
    distraction_apps: List[str] = []                    # "*" flags any phone use
    max_screen_time_minutes: Optional[float] = None
    max_distraction_minutes: Optional[float] = None
    requires_screen_time: bool = False
    requires_workout: bool = False
    workout_contradicts_if_during: bool = False
    requires_location_change: bool = False
    verify_with: List[EvidenceType] = []
    evidence_weights: Dict[EvidenceType, float] = {}

    model_config = {"frozen": True}

    def weight_for(self, evidence_type: EvidenceType) -> float:
        return self.evidence_weights.get(evidence_type, 0.5)


class VerificationThresholds(BaseModel):
    verified_min: float = Field(ge=0.0, le=1.0, default=0.7)
    partial_min: float = Field(ge=0.0, le=1.0, default=0.3)
    mostly_verified_min: float = Field(ge=0.0, le=1.0, default=0.85)
    timing_variance_minutes: int = 15


# --- Evidence summaries ---

class LocationEvidence(BaseModel):
    place_label: Optional[str] = None
    place_category: Optional[str] = None
    sample_count: int = 0
    matches_expected: bool = False


class AppMinutes(BaseModel):
    app: str
    minutes: float


class ScreenTimeEvidenceSummary(BaseModel):
    total_minutes: float = 0.0
    distraction_minutes: float = 0.0
    top_apps: List[AppMinutes] = []
    was_distracted: bool = False


class HealthEvidence(BaseModel):
    has_workout: bool = False
    workout_type: Optional[str] = None
    workout_duration_minutes: int = 0


class EvidenceSummary(BaseModel):
    location: Optional[LocationEvidence] = None
    screen_time: Optional[ScreenTimeEvidenceSummary] = None
    health: Optional[HealthEvidence] = None


# --- Audit report ---

class EvidenceCheck(BaseModel):
    matches: bool
    detail: str
    weight: float


class Discrepancy(BaseModel):
    type: str                               # "timing" | "location" | "activity" | "duration"
    expected: str
    actual: str
    severity: DiscrepancySeverity


class VerificationReport(BaseModel):
    """Per-event audit record: evidence breakdown plus discrepancies."""

    event_id: str
    status: VerificationStatus
    confidence: float = Field(ge=0.0, le=1.0)
    evidence_breakdown: Dict[str, EvidenceCheck] = {}
    discrepancies: List[Discrepancy] = []
    suggestions: List[str] = []


class TimingDelta(BaseModel):
    early_minutes: Optional[int] = None
    late_minutes: Optional[int] = None
    extended_minutes: Optional[int] = None
    shortened_minutes: Optional[int] = None


class VerificationResult(BaseModel):
    """The verifier's verdict on one planned event."""

    event_id: str
    status: VerificationStatus
    confidence: float = Field(ge=0.0, le=1.0)
    evidence: EvidenceSummary = EvidenceSummary()
    reason: str
    suggestions: Optional[List[str]] = None
    timing: Optional[TimingDelta] = None
    report: Optional[VerificationReport] = None


class SimpleVerificationStatus(str, Enum):
    VERIFIED = "verified"
    PARTIAL = "partial"
    UNVERIFIED = "unverified"
    CONTRADICTED = "contradicted"


class SimpleVerificationResult(BaseModel):
    """Location-only verdict produced by the simple verifier."""

    event_id: str
    status: SimpleVerificationStatus
    location_match: bool = False
    location_label: Optional[str] = None
    confidence: float = Field(ge=0.0, le=1.0, default=0.0)
    overlap_ratio: float = Field(ge=0.0, le=1.0, default=0.0)
