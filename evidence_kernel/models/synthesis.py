"""Synthesis models: evidence-derived actual blocks and synthesizer configuration."""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from evidence_kernel.models.event import (
    DerivationKind,
    EventCategory,
    EventMeta,
    EventSource,
    ScheduledEvent,
)
from evidence_kernel.models.verification import EvidenceSummary


class BlockSource(str, Enum):
    LOCATION = "location"
    SCREEN_TIME = "screen_time"
    WORKOUT = "workout"
    DERIVED = "derived"


_DERIVATION_BY_SOURCE = {
    BlockSource.LOCATION: DerivationKind.LOCATION,
    BlockSource.SCREEN_TIME: DerivationKind.SCREEN_TIME,
    BlockSource.WORKOUT: DerivationKind.WORKOUT,
    BlockSource.DERIVED: DerivationKind.EVIDENCE,
}


class ActualBlock(BaseModel):
    """A synthesized, non-planned interval backed only by evidence."""

    id: str
    title: str
    description: str = ""
    category: EventCategory
    start_minutes: int
    end_minutes: int
    source: BlockSource
    confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    evidence: EvidenceSummary = EvidenceSummary()
    top_app: Optional[str] = None
    linked_planned_event_id: Optional[str] = None

    @property
    def duration(self) -> int:
        return self.end_minutes - self.start_minutes

    def to_scheduled_event(self) -> ScheduledEvent:
        """Convert into a Timeline Builder input."""
        kind = "screen_time" if self.source == BlockSource.SCREEN_TIME else "evidence_block"
        payload = self.evidence.model_dump(mode="json", exclude_none=True)
        if self.top_app:
            payload["top_app"] = self.top_app
        return ScheduledEvent(
            id=self.id,
            title=self.title,
            description=self.description,
            category=self.category,
            start_minutes=self.start_minutes,
            duration=self.duration,
            meta=EventMeta(
                source=EventSource.DERIVED,
                kind=kind,
                confidence=self.confidence,
                evidence=payload,
                derivation_kind=_DERIVATION_BY_SOURCE[self.source],
            ),
        )


class SynthesisConfig(BaseModel):
    """Thresholds for the evidence block synthesizer."""

    distraction_threshold_minutes: int = 10
    min_screen_time_block_minutes: int = 10
    screen_time_gap_minutes: int = 15
    sleep_max_start_offset_minutes: int = 120
    sleep_merge_gap_minutes: int = 5
    min_sleep_segment_minutes: int = 15
    mid_sleep_buffer_minutes: int = 30


class SynthesisResult(BaseModel):
    """
    events: the existing non-digital events, annotated (and, for sleep,
            possibly narrowed or split).
    blocks: new standalone blocks for evidence no event covers.
    """

    events: List[ScheduledEvent] = []
    blocks: List[ActualBlock] = []

    def timeline_inputs(self) -> List[ScheduledEvent]:
        """Everything the Timeline Builder should receive, ordered by start."""
        combined = list(self.events) + [b.to_scheduled_event() for b in self.blocks]
        return sorted(combined, key=lambda e: e.start_minutes)
