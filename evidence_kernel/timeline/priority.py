"""
Priority classification for timeline events.

Priority order (1 = highest):
  1. User-edited actual events (source: user | actual_adjust)
  2. Stored actual events (source: system, or no source)
  3. Derived from evidence (source: evidence | derived, derivation_kind set,
     or a derived kind such as sleep_schedule)
  4. Screen time derived (kind: screen_time)
  5. Unknown / gap filler (kind: unknown_gap | pattern_gap)
"""

from evidence_kernel.models.event import EventPriority, EventSource, ScheduledEvent


USER_SOURCES = (EventSource.USER, EventSource.ACTUAL_ADJUST)
DERIVED_SOURCES = (EventSource.EVIDENCE, EventSource.DERIVED)

GAP_KINDS = ("unknown_gap", "pattern_gap")
SCREEN_TIME_KIND = "screen_time"
DERIVED_KINDS = (
    "evidence_block",
    "location_inferred",
    "planned_actual",
    "sleep_schedule",
    "sleep_interrupted",
    "sleep_late",
    "transition_commute",
    "transition_prep",
    "transition_wind_down",
)

# Legacy id markers for events synthesized before derivation_kind existed.
DERIVED_ID_PREFIXES = ("derived_actual:", "derived_evidence:", "st:")


def get_event_priority(event: ScheduledEvent) -> EventPriority:
    """Determine the priority of an event from its metadata."""
    meta = event.meta
    source = meta.source
    kind = meta.kind

    if source in USER_SOURCES:
        return EventPriority.USER_EDITED

    if kind in GAP_KINDS:
        return EventPriority.UNKNOWN

    if kind == SCREEN_TIME_KIND:
        return EventPriority.SCREEN_TIME

    if (
        source in DERIVED_SOURCES
        or meta.derivation_kind is not None
        or kind in DERIVED_KINDS
    ):
        return EventPriority.DERIVED_EVIDENCE

    if source is None or source == EventSource.SYSTEM:
        if event.id.startswith(DERIVED_ID_PREFIXES):
            return EventPriority.DERIVED_EVIDENCE
        return EventPriority.SUPABASE_ACTUAL

    return EventPriority.DERIVED_EVIDENCE
