"""
Evidence-weighted Verifier: scores planned events against a day of evidence.

Behavioral Contract:
- Looks up the event category's VerificationRule (unknown categories use the
  permissive rule, which always yields unverified)
- Scores each evidence type the rule declares; confidence is earned weight
  over applicable weight, clamped to [0, 1]
- Status order: location contradiction, then distraction, then thresholds
- Timing refinement only uses location-hourly windows
- Never raises for missing or malformed evidence; such rows are skipped
"""

import logging
from typing import Dict, List, Optional

from evidence_kernel.evidence.health import overlapping_workouts, workout_minutes
from evidence_kernel.evidence.intervals import clamp
from evidence_kernel.evidence.location import (
    HOUR_MINUTES,
    dominant_place,
    overlapping_location_rows,
)
from evidence_kernel.evidence.screen_time import (
    select_screen_time_evidence,
    top_apps,
    usage_in_window,
)
from evidence_kernel.models.event import EventCategory, ScheduledEvent
from evidence_kernel.models.evidence import (
    AppCategoryOverrides,
    EvidenceBundle,
    ScreenTimeEvidence,
)
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
    TimingDelta,
    VerificationReport,
    VerificationResult,
    VerificationRule,
    VerificationStatus,
    VerificationThresholds,
)
from evidence_kernel.verification.apps import classify_app_usage
from evidence_kernel.verification.rules import (
    DEFAULT_VERIFICATION_THRESHOLDS,
    WILDCARD,
    app_matches_list,
    get_verification_rule,
)


logger = logging.getLogger(__name__)

DEFAULT_MAX_DISTRACTION_MINUTES = 30
DEFAULT_MAX_SCREEN_TIME_MINUTES = 30

LOCATION_MISMATCH_CREDIT = 0.3
HEAVY_SCREEN_TIME_CREDIT = 0.5
NO_SCREEN_TIME_CREDIT = 0.8
COINCIDENTAL_WORKOUT_CREDIT = 0.5

TOP_APPS_LIMIT = 5


class _Scorecard:
    """Running weighted score plus the human-readable trail behind it."""

    def __init__(self):
        self.total_score = 0.0
        self.max_score = 0.0
        self.reasons: List[str] = []
        self.suggestions: List[str] = []

    def applies(self, weight: float) -> None:
        self.max_score += weight

    def earn(self, weight: float) -> None:
        self.total_score += weight

    @property
    def confidence(self) -> float:
        if self.max_score <= 0:
            return 0.0
        return clamp(self.total_score / self.max_score, 0.0, 1.0)


def is_distraction_app(
    app_name: str,
    rule: VerificationRule,
    overrides: Optional[AppCategoryOverrides] = None,
) -> bool:
    """Whether time on this app counts against an event governed by rule."""
    if rule.allowed_apps and app_matches_list(app_name, rule.allowed_apps, whole_words=True):
        return False
    if WILDCARD in rule.distraction_apps:
        return True

    classification = classify_app_usage(app_name, overrides)
    if rule.distraction_apps and app_matches_list(app_name, rule.distraction_apps):
        # A deny-listed app the user has reclassified as work is not a distraction
        return classification.category != EventCategory.WORK
    return classification.is_distraction


def _or_default(value: Optional[float], default: float) -> float:
    return default if value is None else value


# --- Per-evidence scoring ---

def _score_location(
    event: ScheduledEvent,
    rule: VerificationRule,
    located: list,
    card: _Scorecard,
) -> Optional[LocationEvidence]:
    weight = rule.weight_for(EvidenceType.LOCATION)
    card.applies(weight)

    if not located:
        card.reasons.append("No location data available")
        return None

    primary = dominant_place(located)
    place_category = primary.place_category.lower() if primary.place_category else None
    place_label = primary.place_label
    matches = None in rule.location_expected or (
        place_category is not None and place_category in rule.location_expected
    )

    where = place_label or place_category
    if matches:
        card.earn(weight)
        card.reasons.append(f"At {where or 'expected location'}")
    elif rule.location_required:
        card.reasons.append(
            f"Expected {_expected_places(rule)} but was at {where or 'unknown'}"
        )
    else:
        card.earn(weight * LOCATION_MISMATCH_CREDIT)
        card.reasons.append(f"At {where or 'unknown location'}")

    return LocationEvidence(
        place_label=place_label,
        place_category=place_category,
        sample_count=sum(row.sample_count for row, _ in located),
        matches_expected=matches,
    )


def _score_screen_time(
    event: ScheduledEvent,
    rule: VerificationRule,
    screen_time: Optional[ScreenTimeEvidence],
    overrides: Optional[AppCategoryOverrides],
    card: _Scorecard,
) -> Optional[ScreenTimeEvidenceSummary]:
    weight = rule.weight_for(EvidenceType.SCREEN_TIME)
    card.applies(weight)

    usage = usage_in_window(screen_time, event.start_minutes, event.end_minutes)
    if not usage:
        if rule.requires_screen_time:
            card.reasons.append("No screen time data available")
        else:
            # Staying off the phone supports most activities
            card.earn(weight * NO_SCREEN_TIME_CREDIT)
            card.reasons.append("No phone usage detected")
        return None

    total_minutes = sum(usage.values())
    distraction_minutes = sum(
        minutes
        for app_name, minutes in usage.items()
        if is_distraction_app(app_name, rule, overrides)
    )
    was_distracted = distraction_minutes > _or_default(
        rule.max_distraction_minutes, DEFAULT_MAX_DISTRACTION_MINUTES
    )

    if rule.requires_screen_time:
        if total_minutes > 0:
            card.earn(weight)
            card.reasons.append(f"{round(total_minutes)} min screen time")
        else:
            card.reasons.append("Expected screen time but none detected")
    elif was_distracted:
        card.reasons.append(f"{round(distraction_minutes)} min on distracting apps")
        card.suggestions.append(
            f"Consider putting phone away during {event.category.value} time"
        )
    elif total_minutes <= _or_default(rule.max_screen_time_minutes, DEFAULT_MAX_SCREEN_TIME_MINUTES):
        card.earn(weight)
        card.reasons.append("Minimal phone usage")
    else:
        card.earn(weight * HEAVY_SCREEN_TIME_CREDIT)
        card.reasons.append(f"{round(total_minutes)} min phone usage")

    return ScreenTimeEvidenceSummary(
        total_minutes=total_minutes,
        distraction_minutes=distraction_minutes,
        top_apps=[
            AppMinutes(app=app, minutes=minutes)
            for app, minutes in top_apps(usage, TOP_APPS_LIMIT)
        ],
        was_distracted=was_distracted,
    )


def _score_health(
    event: ScheduledEvent,
    rule: VerificationRule,
    evidence: EvidenceBundle,
    day_key: str,
    card: _Scorecard,
) -> Optional[HealthEvidence]:
    scored = EvidenceType.HEALTH_WORKOUT in rule.verify_with
    weight = rule.weight_for(EvidenceType.HEALTH_WORKOUT)
    if scored:
        card.applies(weight)

    workouts = overlapping_workouts(
        evidence.health_workouts, day_key, event.start_minutes, event.end_minutes
    )
    if workouts:
        workout, start, end = workouts[0]
        minutes = workout_minutes(workout, start, end)
        if rule.requires_workout:
            card.earn(weight)
            card.reasons.append(f"{workout.activity_type or 'Workout'} for {minutes} min")
        elif rule.workout_contradicts_if_during:
            card.reasons.append(f"Working out during {event.category.value}?")
        elif scored:
            card.earn(weight * COINCIDENTAL_WORKOUT_CREDIT)
            card.reasons.append(f"Also did a {workout.activity_type or 'workout'}")
        return HealthEvidence(
            has_workout=True,
            workout_type=workout.activity_type,
            workout_duration_minutes=minutes,
        )

    if rule.requires_workout:
        card.reasons.append("No workout detected")
        card.suggestions.append("Track your workout in the Health app for verification")
        return HealthEvidence()
    return None


def _checks_workouts(rule: VerificationRule) -> bool:
    return EvidenceType.HEALTH_WORKOUT in rule.verify_with or rule.workout_contradicts_if_during


def _timing(
    event: ScheduledEvent,
    located: list,
    thresholds: VerificationThresholds,
) -> Optional[TimingDelta]:
    """Coarse early/late/extended/shortened deltas from hourly location windows."""
    if not located:
        return None

    earliest = min(hour_start for _, hour_start in located)
    latest = max(hour_start + HOUR_MINUTES for _, hour_start in located)
    variance = thresholds.timing_variance_minutes

    def beyond(delta: int) -> Optional[int]:
        return delta if delta > variance else None

    return TimingDelta(
        early_minutes=beyond(event.start_minutes - earliest),
        late_minutes=beyond(earliest - event.start_minutes),
        extended_minutes=beyond(latest - event.end_minutes),
        shortened_minutes=beyond(event.end_minutes - latest),
    )


_TIMING_STATUSES = (
    ("early_minutes", VerificationStatus.EARLY),
    ("late_minutes", VerificationStatus.LATE),
    ("shortened_minutes", VerificationStatus.SHORTENED),
    ("extended_minutes", VerificationStatus.EXTENDED),
)


def _resolve_status(
    card: _Scorecard,
    summary: EvidenceSummary,
    location_contradicted: bool,
    timing: Optional[TimingDelta],
    thresholds: VerificationThresholds,
) -> VerificationStatus:
    confidence = card.confidence

    if card.max_score <= 0:
        return VerificationStatus.UNVERIFIED
    if location_contradicted:
        return VerificationStatus.CONTRADICTED
    if summary.screen_time is not None and summary.screen_time.was_distracted:
        return VerificationStatus.DISTRACTED

    if confidence >= thresholds.verified_min:
        status = VerificationStatus.VERIFIED
    elif confidence >= thresholds.partial_min:
        status = VerificationStatus.PARTIAL
    else:
        return VerificationStatus.UNVERIFIED

    if timing is not None:
        for field, timing_status in _TIMING_STATUSES:
            if getattr(timing, field) is not None:
                return timing_status

    if status == VerificationStatus.VERIFIED and confidence >= thresholds.mostly_verified_min:
        return VerificationStatus.MOSTLY_VERIFIED
    if status == VerificationStatus.PARTIAL:
        return VerificationStatus.PARTIALLY_VERIFIED
    return status


def _expected_places(rule: VerificationRule) -> str:
    return "/".join(place for place in rule.location_expected if place)


def _build_report(
    event: ScheduledEvent,
    rule: VerificationRule,
    summary: EvidenceSummary,
    status: VerificationStatus,
    confidence: float,
    location_contradicted: bool,
    timing: Optional[TimingDelta],
    suggestions: List[str],
) -> VerificationReport:
    breakdown: Dict[str, EvidenceCheck] = {}
    discrepancies: List[Discrepancy] = []
    category = event.category.value

    if summary.location is not None:
        detail = summary.location.place_label or summary.location.place_category or "Unknown"
        breakdown["location"] = EvidenceCheck(
            matches=summary.location.matches_expected,
            detail=detail,
            weight=rule.weight_for(EvidenceType.LOCATION),
        )
        if location_contradicted:
            discrepancies.append(Discrepancy(
                type="location",
                expected=_expected_places(rule) or "Expected location",
                actual=detail,
                severity=DiscrepancySeverity.MAJOR,
            ))

    if summary.screen_time is not None:
        screen = summary.screen_time
        breakdown["screen_time"] = EvidenceCheck(
            matches=screen.total_minutes > 0 if rule.requires_screen_time else not screen.was_distracted,
            detail=f"{round(screen.total_minutes)} min phone use",
            weight=rule.weight_for(EvidenceType.SCREEN_TIME),
        )
        if screen.was_distracted:
            discrepancies.append(Discrepancy(
                type="activity",
                expected=f"Stay focused during {category}",
                actual=f"{round(screen.distraction_minutes)} min distraction",
                severity=DiscrepancySeverity.MODERATE,
            ))

    if summary.health is not None:
        health = summary.health
        if rule.requires_workout:
            matches = health.has_workout
        elif rule.workout_contradicts_if_during:
            matches = not health.has_workout
        else:
            matches = True
        breakdown["health"] = EvidenceCheck(
            matches=matches,
            detail=(health.workout_type or "Workout") if health.has_workout else "No workout",
            weight=rule.weight_for(EvidenceType.HEALTH_WORKOUT),
        )
        if rule.requires_workout and not health.has_workout:
            discrepancies.append(Discrepancy(
                type="activity",
                expected="Workout detected",
                actual="No workout data",
                severity=DiscrepancySeverity.MODERATE,
            ))
        elif rule.workout_contradicts_if_during and health.has_workout:
            discrepancies.append(Discrepancy(
                type="activity",
                expected=f"No workout during {category}",
                actual=f"{health.workout_type or 'Workout'} for {health.workout_duration_minutes} min",
                severity=DiscrepancySeverity.MODERATE,
            ))

    if timing is not None:
        if timing.early_minutes is not None:
            discrepancies.append(Discrepancy(
                type="timing",
                expected="On time",
                actual=f"{timing.early_minutes} min early",
                severity=DiscrepancySeverity.MINOR,
            ))
        if timing.late_minutes is not None:
            discrepancies.append(Discrepancy(
                type="timing",
                expected="On time",
                actual=f"{timing.late_minutes} min late",
                severity=DiscrepancySeverity.MINOR,
            ))
        if timing.shortened_minutes is not None:
            discrepancies.append(Discrepancy(
                type="duration",
                expected="Full duration",
                actual=f"{timing.shortened_minutes} min shorter",
                severity=DiscrepancySeverity.MODERATE,
            ))
        if timing.extended_minutes is not None:
            discrepancies.append(Discrepancy(
                type="duration",
                expected="Planned duration",
                actual=f"{timing.extended_minutes} min longer",
                severity=DiscrepancySeverity.MODERATE,
            ))

    return VerificationReport(
        event_id=event.id,
        status=status,
        confidence=confidence,
        evidence_breakdown=breakdown,
        discrepancies=discrepancies,
        suggestions=list(suggestions),
    )


def _verify_with_screen_time(
    event: ScheduledEvent,
    evidence: EvidenceBundle,
    day_key: str,
    screen_time: Optional[ScreenTimeEvidence],
    app_category_overrides: Optional[AppCategoryOverrides],
    thresholds: VerificationThresholds,
) -> VerificationResult:
    rule = get_verification_rule(event.category)
    card = _Scorecard()
    summary = EvidenceSummary()
    uses_location = EvidenceType.LOCATION in rule.verify_with

    located = []
    if uses_location:
        located = overlapping_location_rows(
            evidence.location_hourly, day_key, event.start_minutes, event.end_minutes
        )
        summary.location = _score_location(event, rule, located, card)

    if EvidenceType.SCREEN_TIME in rule.verify_with:
        summary.screen_time = _score_screen_time(
            event, rule, screen_time, app_category_overrides, card
        )

    if _checks_workouts(rule):
        summary.health = _score_health(event, rule, evidence, day_key, card)

    timing = _timing(event, located, thresholds) if uses_location else None
    location_contradicted = (
        summary.location is not None
        and rule.location_required
        and not summary.location.matches_expected
    )

    confidence = card.confidence
    status = _resolve_status(card, summary, location_contradicted, timing, thresholds)
    report = _build_report(
        event, rule, summary, status, confidence, location_contradicted, timing, card.suggestions
    )

    logger.debug(
        "Verified %s (%s) as %s with confidence %.2f",
        event.id, event.category.value, status.value, confidence,
    )

    return VerificationResult(
        event_id=event.id,
        status=status,
        confidence=confidence,
        evidence=summary,
        reason=". ".join(card.reasons) or "No evidence available",
        suggestions=card.suggestions or None,
        timing=timing,
        report=report,
    )


def verify_event(
    event: ScheduledEvent,
    evidence: EvidenceBundle,
    day_key: str,
    app_category_overrides: Optional[AppCategoryOverrides] = None,
    thresholds: VerificationThresholds = DEFAULT_VERIFICATION_THRESHOLDS,
) -> VerificationResult:
    """Verify a single planned event against the day's evidence."""
    screen_time = select_screen_time_evidence(evidence, day_key)
    return _verify_with_screen_time(
        event, evidence, day_key, screen_time, app_category_overrides, thresholds
    )


def verify_planned_events(
    planned_events: List[ScheduledEvent],
    evidence: EvidenceBundle,
    day_key: str,
    app_category_overrides: Optional[AppCategoryOverrides] = None,
    thresholds: VerificationThresholds = DEFAULT_VERIFICATION_THRESHOLDS,
) -> Dict[str, VerificationResult]:
    """Verify every planned event for a day, keyed by event id."""
    # Granularity is chosen once for the whole day.
    screen_time = select_screen_time_evidence(evidence, day_key)
    results: Dict[str, VerificationResult] = {}
    for event in planned_events:
        results[event.id] = _verify_with_screen_time(
            event, evidence, day_key, screen_time, app_category_overrides, thresholds
        )
    return results
