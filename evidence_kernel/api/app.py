"""
Evidence Kernel API: FastAPI endpoints.

A thin HTTP facade over the pure engine functions:
- Timeline building and validation
- Evidence-weighted and location-only verification
- Screen time synthesis and evidence-only actual blocks
- Verification rule catalog inspection
"""

import logging
from typing import Dict, List, Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from evidence_kernel.config import KernelSettings, configure_logging, get_settings
from evidence_kernel.evidence.location import build_location_blocks
from evidence_kernel.models.event import EventCategory, ScheduledEvent, normalize_category
from evidence_kernel.models.evidence import (
    AppCategoryOverride,
    EvidenceBundle,
    LocationBlock,
)
from evidence_kernel.models.synthesis import SynthesisConfig
from evidence_kernel.models.verification import VerificationThresholds
from evidence_kernel.synthesis.blocks import generate_actual_blocks
from evidence_kernel.synthesis.screen_time import derive_actual_events_from_screen_time
from evidence_kernel.timeline.builder import ActualTimelineBuilder
from evidence_kernel.verification.engine import verify_planned_events
from evidence_kernel.verification.rules import (
    STRICTNESS_LEVELS,
    VERIFICATION_RULES,
    get_verification_thresholds,
)
from evidence_kernel.verification.simple import verify_planned_against_blocks


logger = logging.getLogger(__name__)


# --- Request Models ---

class TimelineBuildRequest(BaseModel):
    events: List[ScheduledEvent]
    min_duration_minutes: Optional[int] = None


class VerifyRequest(BaseModel):
    events: List[ScheduledEvent]
    evidence: EvidenceBundle = EvidenceBundle()
    day_key: str
    app_category_overrides: Dict[str, AppCategoryOverride] = {}
    strictness: Optional[str] = None


class SimpleVerifyRequest(BaseModel):
    events: List[ScheduledEvent]
    location_blocks: Optional[List[LocationBlock]] = None
    evidence: Optional[EvidenceBundle] = None
    day_key: Optional[str] = None


class SynthesizeRequest(BaseModel):
    events: List[ScheduledEvent]
    evidence: EvidenceBundle = EvidenceBundle()
    day_key: str
    app_category_overrides: Dict[str, AppCategoryOverride] = {}
    distraction_threshold_minutes: Optional[int] = None
    min_screen_time_block_minutes: Optional[int] = None


class ActualBlocksRequest(BaseModel):
    events: List[ScheduledEvent]
    evidence: EvidenceBundle = EvidenceBundle()
    day_key: str
    app_category_overrides: Dict[str, AppCategoryOverride] = {}


# --- Application Factory ---

def create_app(settings: Optional[KernelSettings] = None) -> FastAPI:
    """Create and configure the FastAPI application."""

    config = settings or get_settings()
    configure_logging(config.log_level)

    app = FastAPI(
        title="Evidence Kernel API",
        description="Evidence reconciliation and timeline resolution",
        version="0.1.0",
    )
    app.state.settings = config

    def resolve_thresholds(strictness: Optional[str]) -> VerificationThresholds:
        level = strictness or config.verification_strictness
        if level not in STRICTNESS_LEVELS:
            raise HTTPException(400, f"Unknown strictness '{level}'")
        return get_verification_thresholds(level)

    def synthesis_config(
        distraction_threshold: Optional[int] = None,
        min_block: Optional[int] = None,
    ) -> SynthesisConfig:
        return SynthesisConfig(
            distraction_threshold_minutes=(
                config.distraction_threshold_minutes if distraction_threshold is None
                else distraction_threshold
            ),
            min_screen_time_block_minutes=(
                config.min_screen_time_block_minutes if min_block is None else min_block
            ),
            screen_time_gap_minutes=config.screen_time_gap_minutes,
        )

    # === TIMELINE ===

    @app.post("/timeline/build")
    def build_timeline(req: TimelineBuildRequest):
        """Resolve overlapping actual events into a non-overlapping timeline."""
        min_duration = (
            config.min_duration_minutes if req.min_duration_minutes is None
            else req.min_duration_minutes
        )
        builder = ActualTimelineBuilder(min_duration_minutes=min_duration)
        builder.add_events(req.events)
        events = builder.build()
        return {
            "events": [e.model_dump(mode="json") for e in events],
            "validation": builder.validate().model_dump(mode="json"),
        }

    # === VERIFICATION ===

    @app.post("/verify")
    def verify(req: VerifyRequest):
        """Verify planned events against the day's evidence."""
        thresholds = resolve_thresholds(req.strictness)
        results = verify_planned_events(
            req.events,
            req.evidence,
            req.day_key,
            app_category_overrides=req.app_category_overrides or None,
            thresholds=thresholds,
        )
        return {"results": {k: v.model_dump(mode="json") for k, v in results.items()}}

    @app.post("/verify/simple")
    def verify_simple(req: SimpleVerifyRequest):
        """Location-only verification against location blocks."""
        blocks = req.location_blocks
        if blocks is None:
            if req.evidence is None or not req.day_key:
                raise HTTPException(400, "Provide location_blocks or evidence with day_key")
            blocks = build_location_blocks(req.evidence.location_hourly, req.day_key)
        results = verify_planned_against_blocks(req.events, blocks)
        return {"results": {k: v.model_dump(mode="json") for k, v in results.items()}}

    # === SYNTHESIS ===

    @app.post("/synthesize")
    def synthesize(req: SynthesizeRequest):
        """Annotate actual events with screen time and derive screen time blocks."""
        result = derive_actual_events_from_screen_time(
            req.events,
            req.evidence,
            req.day_key,
            config=synthesis_config(
                req.distraction_threshold_minutes, req.min_screen_time_block_minutes
            ),
            app_category_overrides=req.app_category_overrides or None,
        )
        return result.model_dump(mode="json")

    @app.post("/actual-blocks")
    def actual_blocks(req: ActualBlocksRequest):
        """Blocks for detected activity that nothing planned covers."""
        blocks = generate_actual_blocks(
            req.evidence,
            req.day_key,
            req.events,
            app_category_overrides=req.app_category_overrides or None,
            config=synthesis_config(),
        )
        return {"blocks": [b.model_dump(mode="json") for b in blocks]}

    # === RULES ===

    @app.get("/rules")
    def list_rules():
        """The verification rule catalog, keyed by category."""
        return {
            category.value: rule.model_dump(mode="json")
            for category, rule in VERIFICATION_RULES.items()
        }

    @app.get("/rules/{category}")
    def get_rule(category: str):
        """The verification rule for one category."""
        try:
            key = EventCategory(normalize_category(category.lower()))
        except ValueError:
            raise HTTPException(404, "Category not found")
        rule = VERIFICATION_RULES.get(key)
        if rule is None:
            raise HTTPException(404, "Category not found")
        return rule.model_dump(mode="json")

    # === HEALTH ===

    @app.get("/health")
    def health():
        """Service status and effective settings."""
        return {"status": "ok", "settings": config.model_dump(mode="json")}

    logger.debug("Evidence Kernel API created")
    return app
