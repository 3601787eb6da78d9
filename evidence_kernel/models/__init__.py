"""Evidence Kernel data models."""

from evidence_kernel.models.event import (
    DerivationKind,
    EventCategory,
    EventMeta,
    EventPriority,
    EventSource,
    ScheduledEvent,
    TimeInterval,
)
from evidence_kernel.models.evidence import (
    AggregateHourlyScreenTime,
    AppCategoryOverride,
    AppCategoryOverrides,
    EvidenceBundle,
    HealthWorkoutRow,
    HourlyByAppScreenTime,
    LocationBlock,
    LocationHourlyRow,
    ScreenActivity,
    ScreenSession,
    ScreenTimeEvidence,
    ScreenTimeSessionRow,
    SessionScreenTime,
)
from evidence_kernel.models.synthesis import (
    ActualBlock,
    BlockSource,
    SynthesisConfig,
    SynthesisResult,
)
from evidence_kernel.models.timeline import TimelineOverlap, TimelineValidation
from evidence_kernel.models.verification import (
    AppMinutes,
    Discrepancy,
    DiscrepancySeverity,
    EvidenceCheck,
    EvidenceSummary,
    EvidenceType,
    HealthEvidence,
    LocationEvidence,
    ScreenTimeEvidenceSummary,
    SimpleVerificationResult,
    SimpleVerificationStatus,
    TimingDelta,
    VerificationReport,
    VerificationResult,
    VerificationRule,
    VerificationStatus,
    VerificationThresholds,
)

__all__ = [
    "ActualBlock",
    "AggregateHourlyScreenTime",
    "AppCategoryOverride",
    "AppCategoryOverrides",
    "AppMinutes",
    "BlockSource",
    "DerivationKind",
    "Discrepancy",
    "DiscrepancySeverity",
    "EventCategory",
    "EventMeta",
    "EventPriority",
    "EventSource",
    "EvidenceBundle",
    "EvidenceCheck",
    "EvidenceSummary",
    "EvidenceType",
    "HealthEvidence",
    "HealthWorkoutRow",
    "HourlyByAppScreenTime",
    "LocationBlock",
    "LocationEvidence",
    "LocationHourlyRow",
    "ScheduledEvent",
    "ScreenActivity",
    "ScreenSession",
    "ScreenTimeEvidence",
    "ScreenTimeEvidenceSummary",
    "ScreenTimeSessionRow",
    "SessionScreenTime",
    "SimpleVerificationResult",
    "SimpleVerificationStatus",
    "SynthesisConfig",
    "SynthesisResult",
    "TimeInterval",
    "TimelineOverlap",
    "TimelineValidation",
    "TimingDelta",
    "VerificationReport",
    "VerificationResult",
    "VerificationRule",
    "VerificationStatus",
    "VerificationThresholds",
]
