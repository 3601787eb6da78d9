"""
Simple Location Verifier: a coarse, location-only alternative to the full verifier.

Four statuses: verified, partial, unverified, contradicted.
"""

from typing import Dict, List, Tuple

from evidence_kernel.evidence.intervals import clamp, overlap_minutes
from evidence_kernel.models.event import EventCategory, ScheduledEvent
from evidence_kernel.models.evidence import LocationBlock
from evidence_kernel.models.verification import (
    SimpleVerificationResult,
    SimpleVerificationStatus,
)


# Substrings expected in the place category or label. Categories without an
# entry have nothing to contradict and always match.
CATEGORY_LOCATION_MAP: Dict[EventCategory, Tuple[str, ...]] = {
    EventCategory.WORK: ("office", "coworking"),
    EventCategory.HEALTH: ("gym", "fitness", "park", "recreation"),
    EventCategory.MEAL: ("restaurant", "cafe", "bar", "home"),
    EventCategory.ROUTINE: ("home",),
    EventCategory.SLEEP: ("home",),
}

SAMPLE_SATURATION = 12


def _find_overlapping(
    start: int,
    end: int,
    blocks: List[LocationBlock],
) -> List[Tuple[LocationBlock, int]]:
    """Blocks overlapping [start, end), largest overlap first."""
    results = []
    for block in blocks:
        overlap = overlap_minutes(start, end, block.start_minutes, block.end_minutes)
        if overlap > 0:
            results.append((block, overlap))
    # Stable sort keeps input order among equal overlaps
    results.sort(key=lambda item: -item[1])
    return results


def location_matches_category(block: LocationBlock, category: EventCategory) -> bool:
    expected = CATEGORY_LOCATION_MAP.get(category)
    if not expected:
        return True
    place_category = (block.location_category or "").lower()
    label = (block.location_label or "").lower()
    return any(exp in place_category or exp in label for exp in expected)


def _confidence(overlap_ratio: float, block: LocationBlock) -> float:
    score = overlap_ratio * 0.6
    score += min(block.total_location_samples / SAMPLE_SATURATION, 1.0) * 0.2
    score += block.confidence_score * 0.2
    return clamp(score, 0.0, 1.0)


def _classify(location_match: bool, overlap_ratio: float) -> SimpleVerificationStatus:
    if not location_match and overlap_ratio >= 0.5:
        return SimpleVerificationStatus.CONTRADICTED
    if location_match and overlap_ratio >= 0.6:
        return SimpleVerificationStatus.VERIFIED
    if overlap_ratio >= 0.3 or (location_match and overlap_ratio > 0):
        return SimpleVerificationStatus.PARTIAL
    return SimpleVerificationStatus.UNVERIFIED


def verify_planned_against_blocks(
    planned_events: List[ScheduledEvent],
    location_blocks: List[LocationBlock],
) -> Dict[str, SimpleVerificationResult]:
    """Verify each planned event against the day's location blocks."""
    results: Dict[str, SimpleVerificationResult] = {}

    for event in planned_events:
        overlapping = []
        if event.has_valid_duration:
            overlapping = _find_overlapping(event.start_minutes, event.end_minutes, location_blocks)

        if not overlapping:
            results[event.id] = SimpleVerificationResult(
                event_id=event.id,
                status=SimpleVerificationStatus.UNVERIFIED,
            )
            continue

        total_overlap = sum(overlap for _, overlap in overlapping)
        overlap_ratio = min(1.0, total_overlap / event.duration)
        primary = overlapping[0][0]
        location_match = location_matches_category(primary, event.category)

        results[event.id] = SimpleVerificationResult(
            event_id=event.id,
            status=_classify(location_match, overlap_ratio),
            location_match=location_match,
            location_label=primary.location_label,
            confidence=_confidence(overlap_ratio, primary),
            overlap_ratio=overlap_ratio,
        )

    return results
