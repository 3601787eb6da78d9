"""Evidence-only actual blocks: what the day's evidence shows that nothing planned covers."""

import logging
import math
from typing import List, Optional

from evidence_kernel.evidence.health import locate_workouts, workout_minutes
from evidence_kernel.evidence.intervals import clamp_minutes, intervals_overlap
from evidence_kernel.evidence.location import build_location_blocks
from evidence_kernel.evidence.screen_time import (
    PHONE_USAGE,
    activity_intervals,
    group_activity,
    select_screen_time_evidence,
    top_apps,
)
from evidence_kernel.models.event import EventCategory, ScheduledEvent
from evidence_kernel.models.evidence import AppCategoryOverrides, EvidenceBundle
from evidence_kernel.models.synthesis import ActualBlock, BlockSource, SynthesisConfig
from evidence_kernel.models.verification import (
    AppMinutes,
    EvidenceSummary,
    HealthEvidence,
    LocationEvidence,
    ScreenTimeEvidenceSummary,
)
from evidence_kernel.verification.apps import classify_app_usage


logger = logging.getLogger(__name__)

WORKOUT_CONFIDENCE = 0.85
TOP_APPS_LIMIT = 3

PLACE_CATEGORIES = {
    "home": EventCategory.ROUTINE,
    "office": EventCategory.WORK,
    "gym": EventCategory.HEALTH,
    "restaurant": EventCategory.MEAL,
    "cafe": EventCategory.MEAL,
}

# Planned categories that already account for phone use
_SCREEN_CATEGORIES = (EventCategory.DIGITAL, EventCategory.COMM)


def place_to_category(place_category: Optional[str]) -> EventCategory:
    return PLACE_CATEGORIES.get((place_category or "").lower(), EventCategory.UNKNOWN)


def _contained_in(start: float, end: float, events: List[ScheduledEvent]) -> bool:
    return any(e.start_minutes <= start and e.end_minutes >= end for e in events)


def _location_blocks(
    evidence: EvidenceBundle,
    day_key: str,
    planned_events: List[ScheduledEvent],
) -> List[ActualBlock]:
    blocks = []
    for dwell in build_location_blocks(evidence.location_hourly, day_key):
        if not dwell.location_label:
            continue
        if any(
            intervals_overlap(dwell.start_minutes, dwell.end_minutes, e.start_minutes, e.end_minutes)
            for e in planned_events
        ):
            continue
        blocks.append(
            ActualBlock(
                id=f"loc_{dwell.start_minutes}_{dwell.end_minutes}",
                title=dwell.location_label,
                description=dwell.location_category or "",
                category=place_to_category(dwell.location_category),
                start_minutes=dwell.start_minutes,
                end_minutes=dwell.end_minutes,
                source=BlockSource.LOCATION,
                confidence=dwell.confidence_score,
                evidence=EvidenceSummary(
                    location=LocationEvidence(
                        place_label=dwell.location_label,
                        place_category=dwell.location_category,
                        sample_count=dwell.total_location_samples,
                        matches_expected=True,
                    )
                ),
            )
        )
    return blocks


def _workout_blocks(
    evidence: EvidenceBundle,
    day_key: str,
    planned_events: List[ScheduledEvent],
) -> List[ActualBlock]:
    planned_health = [e for e in planned_events if e.category == EventCategory.HEALTH]
    blocks = []
    for workout, start, end in locate_workouts(evidence.health_workouts, day_key):
        start_minutes = int(clamp_minutes(math.floor(start)))
        end_minutes = int(clamp_minutes(math.floor(end)))
        if end_minutes <= start_minutes:
            continue
        if _contained_in(math.floor(start), math.floor(end), planned_health):
            continue

        minutes = workout_minutes(workout, start, end)
        blocks.append(
            ActualBlock(
                id=f"workout_{workout.id}",
                title=workout.activity_type or "Workout",
                description=f"{minutes} min",
                category=EventCategory.HEALTH,
                start_minutes=start_minutes,
                end_minutes=end_minutes,
                source=BlockSource.WORKOUT,
                confidence=WORKOUT_CONFIDENCE,
                evidence=EvidenceSummary(
                    health=HealthEvidence(
                        has_workout=True,
                        workout_type=workout.activity_type,
                        workout_duration_minutes=minutes,
                    )
                ),
            )
        )
    return blocks


def _screen_time_blocks(
    evidence: EvidenceBundle,
    day_key: str,
    planned_events: List[ScheduledEvent],
    config: SynthesisConfig,
    app_category_overrides: Optional[AppCategoryOverrides],
) -> List[ActualBlock]:
    screen_time = select_screen_time_evidence(evidence, day_key)
    planned_screen = [e for e in planned_events if e.category in _SCREEN_CATEGORIES]
    unplanned = [
        activity for activity in activity_intervals(screen_time)
        if not _contained_in(activity.start_minutes, activity.end_minutes, planned_screen)
    ]

    blocks = []
    for group in group_activity(unplanned, config.screen_time_gap_minutes):
        start = int(math.floor(group.start_minutes))
        end = int(math.ceil(group.end_minutes))
        if end - start < config.min_screen_time_block_minutes:
            continue

        ranked = top_apps(group.app_minutes, TOP_APPS_LIMIT)
        top_app = ranked[0][0] if ranked else PHONE_USAGE
        classification = classify_app_usage(top_app, app_category_overrides)
        distraction_minutes = sum(
            minutes
            for app, minutes in group.app_minutes.items()
            if classify_app_usage(app, app_category_overrides).is_distraction
        )
        blocks.append(
            ActualBlock(
                id=f"screen_{start}",
                title=classification.title,
                description=classification.description,
                category=classification.category,
                start_minutes=start,
                end_minutes=end,
                source=BlockSource.SCREEN_TIME,
                confidence=classification.confidence,
                top_app=None if top_app == PHONE_USAGE else top_app,
                evidence=EvidenceSummary(
                    screen_time=ScreenTimeEvidenceSummary(
                        total_minutes=group.total_minutes,
                        distraction_minutes=distraction_minutes,
                        top_apps=[AppMinutes(app=app, minutes=minutes) for app, minutes in ranked],
                        was_distracted=distraction_minutes > config.distraction_threshold_minutes,
                    )
                ),
            )
        )
    return blocks


def merge_overlapping_blocks(blocks: List[ActualBlock]) -> List[ActualBlock]:
    """Merge overlapping blocks that share both source and category."""
    merged: List[ActualBlock] = []
    for block in sorted(blocks, key=lambda b: b.start_minutes):
        last = merged[-1] if merged else None
        if (
            last is not None
            and block.start_minutes < last.end_minutes
            and block.source == last.source
            and block.category == last.category
        ):
            description = last.description
            if block.description and block.description not in description:
                description = f"{description}, {block.description}" if description else block.description
            merged[-1] = last.model_copy(update={
                "end_minutes": max(last.end_minutes, block.end_minutes),
                "description": description,
            })
        else:
            merged.append(block)
    return merged


def generate_actual_blocks(
    evidence: EvidenceBundle,
    day_key: str,
    planned_events: List[ScheduledEvent],
    app_category_overrides: Optional[AppCategoryOverrides] = None,
    config: Optional[SynthesisConfig] = None,
) -> List[ActualBlock]:
    """Standalone blocks for detected activity the plan does not account for."""
    config = config or SynthesisConfig()
    blocks = (
        _location_blocks(evidence, day_key, planned_events)
        + _workout_blocks(evidence, day_key, planned_events)
        + _screen_time_blocks(evidence, day_key, planned_events, config, app_category_overrides)
    )
    merged = merge_overlapping_blocks(blocks)
    logger.debug("Generated %d actual block(s) for %s", len(merged), day_key)
    return merged
