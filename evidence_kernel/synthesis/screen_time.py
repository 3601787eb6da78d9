"""
Evidence Block Synthesizer: turns screen time into annotations and standalone blocks.

Behavioral Contract:
- Events previously produced here (id prefix "st_" or derivation_kind
  screen_time) are dropped and regenerated
- Non-digital events with enough overlapping phone use get a "Distracted"
  note in their description
- Sleep is special-cased: phone use at the start delays sleep onset, phone
  use in the middle either annotates or splits the sleep event
- Standalone blocks are emitted only where no non-digital event exists;
  partial overlaps are left for the Timeline Builder to resolve
- Inputs are never mutated
"""

import logging
import math
from typing import Dict, List, Optional, Tuple

from evidence_kernel.evidence.intervals import (
    clamp,
    clamp_minutes,
    intervals_overlap,
    round_to_nearest,
)
from evidence_kernel.evidence.screen_time import (
    PHONE_USAGE,
    activity_intervals,
    group_activity,
    select_screen_time_evidence,
    top_apps,
    usage_in_window,
)
from evidence_kernel.models.event import (
    DerivationKind,
    EventCategory,
    MINUTES_PER_DAY,
    ScheduledEvent,
)
from evidence_kernel.models.evidence import (
    AppCategoryOverrides,
    EvidenceBundle,
    ScreenActivity,
    ScreenTimeEvidence,
    SessionScreenTime,
)
from evidence_kernel.models.synthesis import (
    ActualBlock,
    BlockSource,
    SynthesisConfig,
    SynthesisResult,
)
from evidence_kernel.models.verification import (
    AppMinutes,
    EvidenceSummary,
    ScreenTimeEvidenceSummary,
)
from evidence_kernel.verification.apps import classify_app_usage, to_screen_time_phrase


logger = logging.getLogger(__name__)

LEGACY_ID_PREFIX = "st_"
ROUNDING_STEP_MINUTES = 5
PRE_SLEEP_MIN_MINUTES = 5
PRE_SLEEP_MAX_MINUTES = 60
TOP_APPS_LIMIT = 3

SLEEP_ONSET_CONFIDENCE = 0.6
MID_SLEEP_CONFIDENCE = 0.7

_BLOCK_ID_TYPES = {
    "sessions": "session",
    "hourly_by_app": "hourly",
    "aggregate_hourly": "aggregate",
}


def screen_time_block_id(block_type: str, start: int, end: int, source: str) -> str:
    """Deterministic id: st:{type}:{start}:{end}:{source}."""
    return f"st:{block_type}:{start}:{end}:{source}"


def is_synthesized_screen_time(event: ScheduledEvent) -> bool:
    return (
        event.id.startswith(LEGACY_ID_PREFIX)
        or event.meta.derivation_kind == DerivationKind.SCREEN_TIME
    )


def format_minutes(minutes: float) -> str:
    if minutes <= 0:
        return "0 min"
    return f"{int(minutes)} min"


def _block_phrase(app_name: Optional[str]) -> str:
    if not app_name or app_name == PHONE_USAGE:
        return "Phone use"
    return to_screen_time_phrase(app_name)


def _dominant_app(app_minutes: Dict[str, float]) -> Optional[str]:
    ranked = top_apps(app_minutes, limit=1)
    return ranked[0][0] if ranked else None


def _overlaps_any(start: float, end: float, events: List[ScheduledEvent]) -> bool:
    return any(
        intervals_overlap(start, end, e.start_minutes, e.end_minutes) for e in events
    )


# --- Distraction annotation ---

def _distraction(
    event: ScheduledEvent,
    screen_time: ScreenTimeEvidence,
) -> Tuple[int, Optional[str]]:
    """Rounded phone minutes inside the event and the app used most."""
    start = clamp_minutes(event.start_minutes)
    end = clamp_minutes(event.end_minutes)
    usage = usage_in_window(screen_time, start, end)

    total = round_to_nearest(sum(usage.values()), ROUNDING_STEP_MINUTES)
    named = {
        app: round_to_nearest(minutes, ROUNDING_STEP_MINUTES)
        for app, minutes in usage.items()
        if app != PHONE_USAGE
    }
    named = {app: minutes for app, minutes in named.items() if minutes > 0}
    return total, _dominant_app(named)


def build_distracted_description(event: ScheduledEvent, minutes: int, app_name: Optional[str]) -> str:
    app_label = f"on {app_name}" if app_name else "on phone"
    note = f"Distracted: {format_minutes(minutes)} {app_label}"
    # Family time leads with the distraction note
    if event.category == EventCategory.FAMILY or not event.description:
        return note
    return f"{event.description} • {note}"


def build_sleep_late_description(minutes: float, app_name: Optional[str]) -> str:
    if app_name:
        return f"Started late (Stayed up scrolling on {app_name}, {format_minutes(minutes)})"
    return f"Started late (Stayed up scrolling, {format_minutes(minutes)})"


# --- Sleep handling ---

def _sessions_within(
    screen_time: SessionScreenTime,
    start: float,
    end: float,
) -> List[ScreenActivity]:
    """Sessions clipped to [start, end), as single-app activity windows."""
    clipped = []
    for session in screen_time.sessions:
        overlap_start = max(start, session.start_minutes)
        overlap_end = min(end, session.end_minutes)
        if overlap_end <= overlap_start:
            continue
        clipped.append(
            ScreenActivity(
                start_minutes=overlap_start,
                end_minutes=overlap_end,
                app_minutes={session.app_name: overlap_end - overlap_start},
            )
        )
    return sorted(clipped, key=lambda a: a.start_minutes)


def _screen_block(
    block_type: str,
    start: float,
    end: float,
    owner_id: str,
    app_name: Optional[str],
    confidence: float,
    during_sleep: bool = False,
) -> ActualBlock:
    start_minutes = int(math.floor(start))
    end_minutes = int(math.ceil(end))
    minutes = end_minutes - start_minutes
    return ActualBlock(
        id=screen_time_block_id(block_type, start_minutes, end_minutes, owner_id),
        title="Screen Time",
        description=_block_phrase(app_name),
        category=EventCategory.DIGITAL,
        start_minutes=start_minutes,
        end_minutes=end_minutes,
        source=BlockSource.SCREEN_TIME,
        confidence=confidence,
        top_app=app_name,
        evidence=EvidenceSummary(
            screen_time=ScreenTimeEvidenceSummary(
                total_minutes=minutes,
                top_apps=[AppMinutes(app=app_name, minutes=minutes)] if app_name else [],
                was_distracted=not during_sleep,
            )
        ),
    )


class _SleepOutcome:
    """What sleep processing produced: replacement sleep events, new blocks."""

    def __init__(self, events: List[ScheduledEvent], blocks: List[ActualBlock]):
        self.events = events
        self.blocks = blocks


def _delayed_onset(
    sleep: ScheduledEvent,
    screen_time: SessionScreenTime,
    config: SynthesisConfig,
) -> Optional[Tuple[ScreenActivity, int, int]]:
    """
    The last phone-use stretch near sleep start, when it pushes sleep onset.

    Returns the stretch plus the narrowed sleep (start, duration).
    """
    sleep_start = clamp_minutes(sleep.start_minutes)
    sleep_end = clamp_minutes(sleep.end_minutes)
    if sleep_end <= sleep_start:
        return None

    merged = group_activity(
        _sessions_within(screen_time, sleep_start, sleep_end),
        config.sleep_merge_gap_minutes,
    )
    candidates = [
        stretch for stretch in merged
        if stretch.end_minutes - stretch.start_minutes >= config.distraction_threshold_minutes
        and stretch.start_minutes - sleep_start <= config.sleep_max_start_offset_minutes
    ]
    if not candidates:
        return None

    stretch = candidates[-1]
    new_start = int(math.ceil(stretch.end_minutes))
    remaining = sleep.end_minutes - new_start
    if remaining < config.min_sleep_segment_minutes:
        return None
    return stretch, new_start, remaining


def _pre_sleep_block(sleep: ScheduledEvent, minutes: int, app_name: Optional[str]) -> Optional[ActualBlock]:
    duration = clamp(minutes, PRE_SLEEP_MIN_MINUTES, PRE_SLEEP_MAX_MINUTES)
    end = clamp_minutes(sleep.start_minutes)
    start = clamp_minutes(end - duration)
    if end <= start:
        return None
    return _screen_block("presleep", start, end, sleep.id, app_name, SLEEP_ONSET_CONFIDENCE)


def _split_sleep_description(
    base: str,
    total_sleep: int,
    interruption: int,
    index: int,
) -> str:
    if index > 0:
        return base or "Sleep (continued)"
    hours, mins = divmod(total_sleep, 60)
    total_label = f"{hours}h {mins}m" if mins else f"{hours}h"
    return f"{base or 'Sleep'} ({total_label} total, interrupted {format_minutes(interruption)})"


def _mid_sleep(
    sleep: ScheduledEvent,
    description: str,
    screen_time: SessionScreenTime,
    others: List[ScheduledEvent],
    config: SynthesisConfig,
) -> Optional[_SleepOutcome]:
    """
    Phone checks in the middle of the night, away from onset and wake-up.

    Blocks that collide with another event are dropped before sleep is
    carved, so sleep is only split where a block fills the gap.
    """
    sleep_start = clamp_minutes(sleep.start_minutes)
    sleep_end = clamp_minutes(sleep.end_minutes)
    window_start = sleep_start + config.mid_sleep_buffer_minutes
    window_end = max(window_start, sleep_end - config.mid_sleep_buffer_minutes)
    if window_end <= window_start:
        return None

    clipped = _sessions_within(screen_time, window_start, window_end)
    if not clipped:
        return None

    usage: Dict[str, float] = {}
    for activity in clipped:
        for app, minutes in activity.app_minutes.items():
            usage[app] = usage.get(app, 0.0) + minutes
    total = sum(usage.values())

    if total <= config.distraction_threshold_minutes:
        app_name = _dominant_app(usage)
        minutes_label = format_minutes(round(total))
        note = f"phone: {minutes_label} on {app_name}" if app_name else f"phone: {minutes_label}"
        noted = f"{description} ({note})" if description else f"Sleep ({note})"
        return _SleepOutcome([sleep.model_copy(deep=True, update={"description": noted})], [])

    blocks = [
        _screen_block(
            "midsleep",
            stretch.start_minutes,
            stretch.end_minutes,
            sleep.id,
            _dominant_app(stretch.app_minutes),
            MID_SLEEP_CONFIDENCE,
            during_sleep=True,
        )
        for stretch in group_activity(clipped, config.sleep_merge_gap_minutes)
    ]
    blocks = [
        b for b in blocks
        if not _overlaps_any(b.start_minutes, b.end_minutes, others)
    ]

    # Screen time wins here and the sleep event is carved around it
    segments: List[Tuple[int, int]] = []
    current = sleep.start_minutes
    for block in blocks:
        if block.start_minutes - current >= config.min_sleep_segment_minutes:
            segments.append((current, block.start_minutes))
        current = max(current, block.end_minutes)
    if sleep.end_minutes - current >= config.min_sleep_segment_minutes:
        segments.append((current, sleep.end_minutes))

    if not segments:
        return _SleepOutcome([sleep.model_copy(deep=True, update={"description": description})], blocks)

    if len(segments) == 1:
        start, end = segments[0]
        return _SleepOutcome(
            [sleep.model_copy(deep=True, update={
                "start_minutes": start,
                "duration": end - start,
                "description": description,
            })],
            blocks,
        )

    total_sleep = sum(end - start for start, end in segments)
    interruption = sum(block.duration for block in blocks)
    events = [
        sleep.model_copy(deep=True, update={
            "id": f"{sleep.id}:sleep_seg:{index}",
            "start_minutes": start,
            "duration": end - start,
            "description": _split_sleep_description(description, total_sleep, interruption, index),
        })
        for index, (start, end) in enumerate(segments)
    ]
    return _SleepOutcome(events, blocks)


def _process_sleep(
    sleep: ScheduledEvent,
    distracted_minutes: int,
    top_app: Optional[str],
    screen_time: ScreenTimeEvidence,
    others: List[ScheduledEvent],
    config: SynthesisConfig,
) -> _SleepOutcome:
    blocks: List[ActualBlock] = []
    adjusted = sleep
    sessions = screen_time if isinstance(screen_time, SessionScreenTime) else None

    onset = _delayed_onset(sleep, sessions, config) if sessions else None
    if onset is not None:
        stretch, new_start, new_duration = onset
        stretch_app = _dominant_app(stretch.app_minutes)
        description = build_sleep_late_description(
            round(stretch.end_minutes - stretch.start_minutes), stretch_app
        )
        block = _screen_block(
            "sleepstart", stretch.start_minutes, stretch.end_minutes,
            sleep.id, stretch_app, SLEEP_ONSET_CONFIDENCE,
        )
        adjusted = sleep.model_copy(deep=True, update={
            "start_minutes": new_start,
            "duration": new_duration,
        })
    else:
        description = build_sleep_late_description(distracted_minutes, top_app)
        block = _pre_sleep_block(sleep, distracted_minutes, top_app)

    if block is not None and not _overlaps_any(block.start_minutes, block.end_minutes, others):
        blocks.append(block)

    if sessions:
        outcome = _mid_sleep(adjusted, description, sessions, others, config)
        if outcome is not None:
            return _SleepOutcome(outcome.events, blocks + outcome.blocks)

    return _SleepOutcome(
        [adjusted.model_copy(deep=True, update={"description": description})],
        blocks,
    )


# --- Standalone blocks ---

def derive_standalone_blocks(
    screen_time: ScreenTimeEvidence,
    non_digital_events: List[ScheduledEvent],
    config: SynthesisConfig,
    app_category_overrides: Optional[AppCategoryOverrides] = None,
) -> List[ActualBlock]:
    """One block per grouped stretch of phone use that no event already covers."""
    blocks: List[ActualBlock] = []
    block_type = _BLOCK_ID_TYPES[screen_time.granularity]

    for group in group_activity(activity_intervals(screen_time), config.screen_time_gap_minutes):
        start = int(math.floor(group.start_minutes))
        end = min(MINUTES_PER_DAY, int(math.ceil(group.end_minutes)))
        if end - start < config.min_screen_time_block_minutes:
            continue
        if _overlaps_any(start, end, non_digital_events):
            continue

        app_name = _dominant_app(group.app_minutes) or PHONE_USAGE
        classification = classify_app_usage(app_name, app_category_overrides)
        distraction_minutes = sum(
            minutes
            for app, minutes in group.app_minutes.items()
            if classify_app_usage(app, app_category_overrides).is_distraction
        )

        blocks.append(
            ActualBlock(
                id=screen_time_block_id(block_type, start, end, app_name),
                title=classification.title,
                description=_block_phrase(app_name),
                category=classification.category,
                start_minutes=start,
                end_minutes=end,
                source=BlockSource.SCREEN_TIME,
                confidence=classification.confidence,
                top_app=None if app_name == PHONE_USAGE else app_name,
                evidence=EvidenceSummary(
                    screen_time=ScreenTimeEvidenceSummary(
                        total_minutes=group.total_minutes,
                        distraction_minutes=distraction_minutes,
                        top_apps=[
                            AppMinutes(app=app, minutes=minutes)
                            for app, minutes in top_apps(group.app_minutes, TOP_APPS_LIMIT)
                        ],
                        was_distracted=distraction_minutes > config.distraction_threshold_minutes,
                    )
                ),
            )
        )

    return blocks


# --- Entry point ---

def derive_actual_events_from_screen_time(
    existing_actual_events: List[ScheduledEvent],
    evidence: EvidenceBundle,
    day_key: str,
    config: Optional[SynthesisConfig] = None,
    app_category_overrides: Optional[AppCategoryOverrides] = None,
) -> SynthesisResult:
    """
    Annotate existing actual events with phone use and derive screen time blocks.

    Returns the events to keep (annotated, narrowed or split copies) and the
    new blocks; SynthesisResult.timeline_inputs() feeds both to the
    Timeline Builder.
    """
    config = config or SynthesisConfig()
    screen_time = select_screen_time_evidence(evidence, day_key)
    if screen_time is None:
        return SynthesisResult(events=[e.model_copy(deep=True) for e in existing_actual_events])

    base = [e for e in existing_actual_events if not is_synthesized_screen_time(e)]
    non_digital = [e for e in base if e.category != EventCategory.DIGITAL]

    events: List[ScheduledEvent] = []
    blocks: List[ActualBlock] = []

    for event in base:
        if event.category == EventCategory.DIGITAL:
            events.append(event.model_copy(deep=True))
            continue

        minutes, top_app = _distraction(event, screen_time)
        if minutes < config.distraction_threshold_minutes:
            events.append(event.model_copy(deep=True))
            continue

        if event.category == EventCategory.SLEEP:
            others = [e for e in non_digital if e.id != event.id]
            outcome = _process_sleep(event, minutes, top_app, screen_time, others, config)
            events.extend(outcome.events)
            blocks.extend(outcome.blocks)
            continue

        events.append(event.model_copy(deep=True, update={
            "description": build_distracted_description(event, minutes, top_app),
        }))

    blocks.extend(
        derive_standalone_blocks(screen_time, non_digital, config, app_category_overrides)
    )

    logger.debug(
        "Synthesized %d block(s) from %s screen time for %s",
        len(blocks), screen_time.granularity, day_key,
    )

    return SynthesisResult(
        events=sorted(events, key=lambda e: e.start_minutes),
        blocks=sorted(blocks, key=lambda b: b.start_minutes),
    )
