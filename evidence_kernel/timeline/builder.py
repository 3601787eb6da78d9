"""
Actual Timeline Builder: resolves overlaps across a mixed-priority event set.

Behavioral Contract:
- Accumulates events; events with duration <= 0 never enter the builder
- build() returns a timeline with no pairwise overlaps
- A higher-priority event is always kept intact; a lower-priority event is
  split around it into before/after remainders
- Equal priorities are decided by insertion order: the first event added wins
- Adjacent (touching) intervals are not overlapping
- validate() is advisory and never raises
"""

import logging
from typing import Iterable, List, Optional, Tuple

from evidence_kernel.models.event import EventPriority, ScheduledEvent
from evidence_kernel.models.timeline import TimelineOverlap, TimelineValidation
from evidence_kernel.timeline.priority import get_event_priority


logger = logging.getLogger(__name__)


class TimelineEntry:
    """An accumulated event annotated with its priority and insertion sequence."""

    def __init__(
        self,
        event: ScheduledEvent,
        priority: EventPriority,
        sequence: int,
        start_minutes: Optional[int] = None,
        end_minutes: Optional[int] = None,
    ):
        self.event = event
        self.priority = priority
        self.sequence = sequence
        self.start_minutes = event.start_minutes if start_minutes is None else start_minutes
        self.end_minutes = event.end_minutes if end_minutes is None else end_minutes

    @property
    def duration(self) -> int:
        return self.end_minutes - self.start_minutes

    @property
    def rank(self) -> Tuple[int, int]:
        """Sort key: lower priority number first, then earlier insertion."""
        return (int(self.priority), self.sequence)

    def overlaps(self, other: "TimelineEntry") -> bool:
        return (
            self.start_minutes < other.end_minutes
            and other.start_minutes < self.end_minutes
        )

    def to_event(self, event_id: str) -> ScheduledEvent:
        if (
            event_id == self.event.id
            and self.start_minutes == self.event.start_minutes
            and self.end_minutes == self.event.end_minutes
        ):
            return self.event.model_copy(deep=True)
        return self.event.model_copy(
            deep=True,
            update={
                "id": event_id,
                "start_minutes": self.start_minutes,
                "duration": self.duration,
            },
        )


def _split_id(original_id: str, segment_index: int) -> str:
    return f"{original_id}:split:{segment_index}"


class ActualTimelineBuilder:
    """
    Builds a non-overlapping actual timeline.

    The builder owns its accumulator; it is not meant to be shared between
    threads. Inputs are never mutated.
    """

    def __init__(self, min_duration_minutes: int = 1):
        self.min_duration_minutes = min_duration_minutes
        self._entries: List[TimelineEntry] = []
        self._next_sequence = 0

    @property
    def event_count(self) -> int:
        """Number of accepted events accumulated so far."""
        return len(self._entries)

    def add_event(self, event: ScheduledEvent) -> None:
        """Accumulate an event. Invalid durations are dropped silently."""
        if not event.has_valid_duration:
            logger.debug(
                "Dropping event %s with non-positive duration %s",
                event.id, event.duration,
            )
            return

        entry = TimelineEntry(
            event=event,
            priority=get_event_priority(event),
            sequence=self._next_sequence,
        )
        self._next_sequence += 1
        self._entries.append(entry)

    def add_events(self, events: Iterable[ScheduledEvent]) -> None:
        """Accumulate events in the given order."""
        for event in events:
            self.add_event(event)

    def clear(self) -> None:
        """Remove all accumulated events."""
        self._entries = []
        self._next_sequence = 0

    def build(self) -> List[ScheduledEvent]:
        """Resolve all overlaps and return the timeline sorted by start time."""
        resolved = self._resolve()
        return [entry.to_event(event_id) for entry, event_id in resolved]

    def validate(self) -> TimelineValidation:
        """Check the resolved timeline for any remaining pairwise overlaps."""
        resolved = self._resolve()
        return validate_timeline([entry.to_event(event_id) for entry, event_id in resolved])

    def _resolve(self) -> List[Tuple[TimelineEntry, str]]:
        # Winners are placed first, so every later entry only has to be
        # carved around what is already on the timeline.
        placed: List[Tuple[TimelineEntry, str]] = []

        for entry in sorted(self._entries, key=lambda e: e.rank):
            blockers = [p for p, _ in placed if p.overlaps(entry)]
            if not blockers:
                placed.append((entry, entry.event.id))
                continue

            segments = self._carve(entry, blockers)
            if len(segments) == 1:
                placed.append((segments[0], entry.event.id))
            else:
                for index, segment in enumerate(segments):
                    placed.append((segment, _split_id(entry.event.id, index)))

            logger.debug(
                "Split %s (priority %d) around %d blocker(s) into %d segment(s)",
                entry.event.id, entry.priority, len(blockers), len(segments),
            )

        placed.sort(key=lambda item: (item[0].start_minutes, item[0].sequence))
        return placed

    def _carve(
        self,
        entry: TimelineEntry,
        blockers: List[TimelineEntry],
    ) -> List[TimelineEntry]:
        """Remove every blocker's interval from the entry, keeping long-enough remainders."""
        segments: List[TimelineEntry] = []
        current_start = entry.start_minutes

        for blocker in sorted(blockers, key=lambda b: b.start_minutes):
            if current_start < blocker.start_minutes:
                segment_end = min(blocker.start_minutes, entry.end_minutes)
                self._append_segment(segments, entry, current_start, segment_end)
            current_start = max(current_start, blocker.end_minutes)

        if current_start < entry.end_minutes:
            self._append_segment(segments, entry, current_start, entry.end_minutes)

        return segments

    def _append_segment(
        self,
        segments: List[TimelineEntry],
        entry: TimelineEntry,
        start: int,
        end: int,
    ) -> None:
        if end - start < self.min_duration_minutes:
            return
        segments.append(
            TimelineEntry(
                event=entry.event,
                priority=entry.priority,
                sequence=entry.sequence,
                start_minutes=start,
                end_minutes=end,
            )
        )


def validate_timeline(events: List[ScheduledEvent]) -> TimelineValidation:
    """Report every pair of overlapping events in a timeline."""
    overlaps: List[TimelineOverlap] = []
    ordered = sorted(events, key=lambda e: e.start_minutes)

    for i, a in enumerate(ordered):
        for b in ordered[i + 1:]:
            # Sorted by start: nothing later can overlap a.
            if b.start_minutes >= a.end_minutes:
                break
            overlaps.append(TimelineOverlap(event1=a.id, event2=b.id))

    return TimelineValidation(valid=not overlaps, overlaps=overlaps)


def build_non_overlapping_timeline(
    events: Iterable[ScheduledEvent],
    min_duration_minutes: int = 1,
) -> List[ScheduledEvent]:
    """Convenience wrapper: build a non-overlapping timeline in one call."""
    builder = ActualTimelineBuilder(min_duration_minutes)
    builder.add_events(events)
    return builder.build()
