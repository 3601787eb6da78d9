"""Tests for the evidence-weighted verifier."""

import pytest

from evidence_kernel.models.event import EventCategory, ScheduledEvent
from evidence_kernel.models.evidence import (
    AppCategoryOverride,
    EvidenceBundle,
    HealthWorkoutRow,
    LocationHourlyRow,
    ScreenTimeSessionRow,
)
from evidence_kernel.models.verification import DiscrepancySeverity, VerificationStatus
from evidence_kernel.verification.engine import verify_event, verify_planned_events
from evidence_kernel.verification.rules import get_verification_thresholds


DAY = "2026-03-10"


def _ts(hour: int, minute: int = 0) -> str:
    return f"{DAY}T{hour:02d}:{minute:02d}:00"


def _make_event(category: EventCategory, start: int, duration: int, event_id: str = "evt_1") -> ScheduledEvent:
    return ScheduledEvent(
        id=event_id,
        title=category.value.title(),
        category=category,
        start_minutes=start,
        duration=duration,
    )


def _location(hour: int, category: str, samples: int = 10) -> LocationHourlyRow:
    return LocationHourlyRow(
        hour_start=_ts(hour),
        sample_count=samples,
        place_label=category.title(),
        place_category=category,
    )


def _session(app: str, start: tuple, end: tuple) -> ScreenTimeSessionRow:
    return ScreenTimeSessionRow(
        app_id=f"com.{app.lower()}",
        display_name=app,
        started_at=_ts(*start),
        ended_at=_ts(*end),
    )


def _workout(start: tuple, end: tuple, minutes: int, activity: str = "Running") -> HealthWorkoutRow:
    return HealthWorkoutRow(
        id="w1",
        started_at=_ts(*start),
        ended_at=_ts(*end),
        duration_seconds=minutes * 60,
        activity_type=activity,
    )


class TestWorkVerification:
    def test_at_office_off_phone(self):
        event = _make_event(EventCategory.WORK, 540, 120)
        evidence = EvidenceBundle(location_hourly=[_location(9, "office"), _location(10, "office")])

        result = verify_event(event, evidence, DAY)

        assert result.status == VerificationStatus.MOSTLY_VERIFIED
        assert result.confidence == pytest.approx(0.92)
        assert result.evidence.location.matches_expected is True
        assert result.evidence.location.sample_count == 20
        assert result.reason == "At Office. No phone usage detected"
        assert result.report.discrepancies == []

    def test_allowed_apps_count_as_phone_usage_only(self):
        event = _make_event(EventCategory.WORK, 540, 120)
        evidence = EvidenceBundle(
            location_hourly=[_location(9, "office"), _location(10, "office")],
            screen_time_sessions=[_session("Slack", (9, 0), (10, 0))],
        )

        result = verify_event(event, evidence, DAY)

        assert result.status == VerificationStatus.VERIFIED
        assert result.confidence == pytest.approx(0.8)
        assert result.evidence.screen_time.distraction_minutes == 0
        assert result.evidence.screen_time.was_distracted is False
        assert "60 min phone usage" in result.reason

    def test_distraction_app_over_limit(self):
        event = _make_event(EventCategory.WORK, 540, 120)
        evidence = EvidenceBundle(screen_time_sessions=[_session("YouTube", (9, 0), (9, 40))])

        result = verify_event(event, evidence, DAY)

        assert result.status == VerificationStatus.DISTRACTED
        assert result.evidence.screen_time.distraction_minutes == pytest.approx(40)
        assert result.suggestions == ["Consider putting phone away during work time"]

    def test_override_reclassifies_distraction_app(self):
        event = _make_event(EventCategory.WORK, 540, 120)
        evidence = EvidenceBundle(screen_time_sessions=[_session("YouTube", (9, 0), (9, 40))])
        overrides = {"youtube": AppCategoryOverride(category=EventCategory.WORK, confidence=0.9)}

        result = verify_event(event, evidence, DAY, app_category_overrides=overrides)

        assert result.status != VerificationStatus.DISTRACTED
        assert result.evidence.screen_time.distraction_minutes == 0


class TestSleepVerification:
    def test_at_gym_is_contradicted(self):
        event = _make_event(EventCategory.SLEEP, 1380, 60)
        evidence = EvidenceBundle(location_hourly=[_location(23, "gym")])

        result = verify_event(event, evidence, DAY)

        assert result.status == VerificationStatus.CONTRADICTED
        assert result.confidence == pytest.approx(0.24 / 0.7)
        assert "Expected home but was at Gym" in result.reason
        location_issues = [d for d in result.report.discrepancies if d.type == "location"]
        assert len(location_issues) == 1
        assert location_issues[0].severity == DiscrepancySeverity.MAJOR

    def test_workout_during_sleep_is_flagged(self):
        event = _make_event(EventCategory.SLEEP, 1380, 60)
        evidence = EvidenceBundle(
            location_hourly=[_location(23, "home", samples=8)],
            health_workouts=[_workout((23, 10), (23, 40), 30)],
        )

        result = verify_event(event, evidence, DAY)

        assert result.status == VerificationStatus.MOSTLY_VERIFIED
        assert result.confidence == pytest.approx(0.64 / 0.7)
        assert "Working out during sleep?" in result.reason
        assert result.evidence.health.has_workout is True
        assert result.report.evidence_breakdown["health"].matches is False
        activity = [d for d in result.report.discrepancies if d.type == "activity"]
        assert activity[0].actual == "Running for 30 min"
        assert activity[0].severity == DiscrepancySeverity.MODERATE


class TestFamilyVerification:
    def test_any_phone_use_counts_as_distraction(self):
        event = _make_event(EventCategory.FAMILY, 1080, 60)
        evidence = EvidenceBundle(screen_time_sessions=[_session("Instagram", (18, 0), (18, 20))])

        result = verify_event(event, evidence, DAY)

        assert result.status == VerificationStatus.DISTRACTED
        assert result.reason == "No location data available. 20 min on distracting apps"
        assert result.evidence.screen_time.top_apps[0].app == "Instagram"
        activity = [d for d in result.report.discrepancies if d.type == "activity"]
        assert activity[0].actual == "20 min distraction"

    def test_hourly_granularity(self):
        event = _make_event(EventCategory.FAMILY, 1080, 60)
        evidence = EvidenceBundle(
            screen_time_hourly_by_app={"com.tiktok": {18: 1800}},
            app_display_names={"com.tiktok": "TikTok"},
        )

        result = verify_event(event, evidence, DAY)

        assert result.status == VerificationStatus.DISTRACTED
        assert result.evidence.screen_time.total_minutes == pytest.approx(30)


class TestHealthVerification:
    def test_workout_at_gym(self):
        event = _make_event(EventCategory.HEALTH, 420, 60)
        evidence = EvidenceBundle(
            location_hourly=[_location(7, "gym", samples=5)],
            health_workouts=[_workout((7, 5), (7, 50), 45)],
        )

        result = verify_event(event, evidence, DAY)

        assert result.status == VerificationStatus.MOSTLY_VERIFIED
        assert result.confidence == pytest.approx(1.0)
        assert result.evidence.health.workout_type == "Running"
        assert result.evidence.health.workout_duration_minutes == 45
        assert result.reason == "At Gym. Running for 45 min"

    def test_missing_workout(self):
        event = _make_event(EventCategory.HEALTH, 420, 60)

        result = verify_event(event, EvidenceBundle(), DAY)

        assert result.status == VerificationStatus.UNVERIFIED
        assert result.confidence == 0.0
        assert result.suggestions == ["Track your workout in the Health app for verification"]
        assert result.evidence.health.has_workout is False
        assert any(d.expected == "Workout detected" for d in result.report.discrepancies)


class TestScreenTimeCategories:
    def test_comm_without_screen_time(self):
        result = verify_event(_make_event(EventCategory.COMM, 600, 30), EvidenceBundle(), DAY)
        assert result.status == VerificationStatus.UNVERIFIED
        assert result.reason == "No screen time data available"

    def test_comm_with_messaging(self):
        evidence = EvidenceBundle(screen_time_sessions=[_session("WhatsApp", (10, 0), (10, 20))])
        result = verify_event(_make_event(EventCategory.COMM, 600, 30), evidence, DAY)
        assert result.status == VerificationStatus.MOSTLY_VERIFIED
        assert result.reason == "20 min screen time"
        assert result.timing is None


class TestTiming:
    def _work_at_office(self, start: int, duration: int, hours, strictness: str = "default"):
        event = _make_event(EventCategory.WORK, start, duration)
        evidence = EvidenceBundle(location_hourly=[_location(h, "office") for h in hours])
        return verify_event(event, evidence, DAY, thresholds=get_verification_thresholds(strictness))

    def test_late(self):
        result = self._work_at_office(480, 120, [9])
        assert result.status == VerificationStatus.LATE
        assert result.timing.late_minutes == 60
        timing = [d for d in result.report.discrepancies if d.type == "timing"]
        assert timing[0].actual == "60 min late"
        assert timing[0].severity == DiscrepancySeverity.MINOR

    def test_early(self):
        result = self._work_at_office(570, 90, [9, 10])
        assert result.status == VerificationStatus.EARLY
        assert result.timing.early_minutes == 30

    def test_shortened(self):
        result = self._work_at_office(540, 180, [9])
        assert result.status == VerificationStatus.SHORTENED
        assert result.timing.shortened_minutes == 120

    def test_extended(self):
        result = self._work_at_office(540, 30, [9, 10])
        assert result.status == VerificationStatus.EXTENDED
        assert result.timing.extended_minutes == 30
        duration = [d for d in result.report.discrepancies if d.type == "duration"]
        assert duration[0].actual == "30 min longer"
        assert duration[0].severity == DiscrepancySeverity.MODERATE

    def test_early_takes_precedence_over_extended(self):
        # Hours 9 and 10 both overlap 9:30-10:30
        result = self._work_at_office(570, 60, [9, 10])
        assert result.status == VerificationStatus.EARLY
        assert result.timing.early_minutes == 30
        assert result.timing.extended_minutes == 30
        assert {d.type for d in result.report.discrepancies} == {"timing", "duration"}

    def test_delta_equal_to_variance_is_on_time(self):
        result = self._work_at_office(555, 105, [9, 10])
        assert result.status == VerificationStatus.MOSTLY_VERIFIED
        assert result.timing.early_minutes is None

    def test_strict_variance(self):
        result = self._work_at_office(555, 105, [9, 10], strictness="strict")
        assert result.status == VerificationStatus.EARLY
        assert result.timing.early_minutes == 15


class TestStatusResolution:
    def test_partial_location_mismatch(self):
        event = _make_event(EventCategory.MEAL, 720, 60)
        evidence = EvidenceBundle(location_hourly=[_location(12, "office")])

        result = verify_event(event, evidence, DAY)

        assert result.status == VerificationStatus.PARTIALLY_VERIFIED
        assert result.confidence == pytest.approx(0.55)
        assert result.evidence.location.matches_expected is False

    @pytest.mark.parametrize("category", [EventCategory.UNKNOWN, EventCategory.FREE])
    def test_permissive_categories_are_unverified(self, category):
        evidence = EvidenceBundle(location_hourly=[_location(9, "office")])
        result = verify_event(_make_event(category, 540, 60), evidence, DAY)
        assert result.status == VerificationStatus.UNVERIFIED
        assert result.confidence == 0.0
        assert result.reason == "No evidence available"
        assert result.report.discrepancies == []

    def test_confidence_always_bounded(self):
        bundles = [
            EvidenceBundle(),
            EvidenceBundle(location_hourly=[_location(h, "gym") for h in range(24)]),
            EvidenceBundle(screen_time_hourly_seconds=[3600] * 24),
            EvidenceBundle(
                location_hourly=[_location(h, "home") for h in range(24)],
                screen_time_sessions=[_session("Slack", (0, 0), (23, 59))],
                health_workouts=[_workout((6, 0), (8, 0), 120)],
            ),
        ]
        for category in EventCategory:
            for bundle in bundles:
                result = verify_event(_make_event(category, 400, 200), bundle, DAY)
                assert 0.0 <= result.confidence <= 1.0


class TestVerifyPlannedEvents:
    def test_results_keyed_by_event_id(self):
        events = [
            _make_event(EventCategory.WORK, 540, 120, event_id="work"),
            _make_event(EventCategory.FAMILY, 1080, 60, event_id="dinner"),
        ]
        evidence = EvidenceBundle(
            location_hourly=[_location(9, "office"), _location(10, "office")],
            screen_time_sessions=[_session("Instagram", (18, 0), (18, 20))],
        )

        results = verify_planned_events(events, evidence, DAY)

        assert set(results) == {"work", "dinner"}
        assert results["work"].event_id == "work"
        assert results["dinner"].status == VerificationStatus.DISTRACTED

    def test_malformed_rows_are_skipped(self):
        evidence = EvidenceBundle(
            location_hourly=[LocationHourlyRow(hour_start="yesterday-ish", sample_count=3)],
            screen_time_sessions=[
                ScreenTimeSessionRow(app_id="x", started_at=_ts(9, 30), ended_at=_ts(9, 0)),
            ],
        )
        results = verify_planned_events([_make_event(EventCategory.WORK, 540, 60)], evidence, DAY)
        assert results["evt_1"].evidence.location is None
