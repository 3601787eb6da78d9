"""Tests for screen time synthesis: annotations, sleep handling, standalone blocks."""

from evidence_kernel.models.event import (
    DerivationKind,
    EventCategory,
    EventMeta,
    ScheduledEvent,
)
from evidence_kernel.models.evidence import (
    AppCategoryOverride,
    EvidenceBundle,
    ScreenTimeSessionRow,
)
from evidence_kernel.models.synthesis import BlockSource, SynthesisConfig
from evidence_kernel.synthesis.screen_time import (
    build_distracted_description,
    derive_actual_events_from_screen_time,
    screen_time_block_id,
)
from evidence_kernel.timeline.builder import build_non_overlapping_timeline, validate_timeline


DAY = "2026-03-10"


def _ts(hour: int, minute: int = 0) -> str:
    return f"{DAY}T{hour:02d}:{minute:02d}:00"


def _session(app: str, start: tuple, end: tuple) -> ScreenTimeSessionRow:
    return ScreenTimeSessionRow(
        app_id=f"com.{app.lower()}",
        display_name=app,
        started_at=_ts(*start),
        ended_at=_ts(*end),
    )


def _make_event(
    event_id: str,
    category: EventCategory,
    start: int,
    duration: int,
    description: str = "",
    **meta,
) -> ScheduledEvent:
    return ScheduledEvent(
        id=event_id,
        title=category.value.title(),
        description=description,
        category=category,
        start_minutes=start,
        duration=duration,
        meta=EventMeta(**meta),
    )


def _sessions(*rows) -> EvidenceBundle:
    return EvidenceBundle(screen_time_sessions=list(rows))


def _hourly(hour: int, seconds: int, top_app=None) -> EvidenceBundle:
    hourly = [0] * 24
    hourly[hour] = seconds
    return EvidenceBundle(screen_time_hourly_seconds=hourly, top_app_name=top_app)


class TestBlockIds:
    def test_format(self):
        assert screen_time_block_id("session", 840, 865, "YouTube") == "st:session:840:865:YouTube"


class TestDistractionAnnotation:
    def test_work_event_annotated(self):
        work = _make_event("work", EventCategory.WORK, 540, 120, "Deep work")
        result = derive_actual_events_from_screen_time(
            [work], _sessions(_session("Instagram", (9, 10), (9, 32))), DAY
        )
        assert len(result.events) == 1
        assert result.events[0].description == "Deep work • Distracted: 20 min on Instagram"
        assert result.blocks == []
        assert work.description == "Deep work"

    def test_family_leads_with_note(self):
        dinner = _make_event("dinner", EventCategory.FAMILY, 1080, 60, "Dinner")
        result = derive_actual_events_from_screen_time(
            [dinner], _sessions(_session("Instagram", (18, 0), (18, 20))), DAY
        )
        assert result.events[0].description == "Distracted: 20 min on Instagram"

    def test_aggregate_usage_is_on_phone(self):
        routine = _make_event("evening", EventCategory.ROUTINE, 1260, 60, "Reading")
        result = derive_actual_events_from_screen_time([routine], _hourly(21, 1800), DAY)
        assert result.events[0].description == "Reading • Distracted: 30 min on phone"

    def test_below_threshold_unchanged(self):
        work = _make_event("work", EventCategory.WORK, 540, 120, "Deep work")
        result = derive_actual_events_from_screen_time(
            [work], _sessions(_session("Instagram", (9, 10), (9, 17))), DAY
        )
        assert result.events == [work]
        assert result.blocks == []

    def test_digital_events_pass_through(self):
        browsing = _make_event("browse", EventCategory.DIGITAL, 840, 60, "Browsing")
        result = derive_actual_events_from_screen_time(
            [browsing], _sessions(_session("YouTube", (14, 0), (14, 25))), DAY
        )
        assert result.events == [browsing]
        # Digital events do not suppress standalone blocks
        assert [b.id for b in result.blocks] == ["st:session:840:865:YouTube"]

    def test_previous_output_regenerated(self):
        legacy = _make_event("st_old", EventCategory.DIGITAL, 600, 30)
        derived = _make_event(
            "st:session:700:720:Slack", EventCategory.DIGITAL, 700, 20,
            derivation_kind=DerivationKind.SCREEN_TIME,
        )
        kept = _make_event("meal", EventCategory.MEAL, 720, 30)
        result = derive_actual_events_from_screen_time(
            [legacy, derived, kept], _sessions(_session("Slack", (9, 0), (9, 5))), DAY
        )
        assert [e.id for e in result.events] == ["meal"]

    def test_no_screen_time_returns_inputs(self):
        work = _make_event("work", EventCategory.WORK, 540, 120, "Deep work")
        result = derive_actual_events_from_screen_time([work], EvidenceBundle(), DAY)
        assert result.events == [work]
        assert result.blocks == []

    def test_distracted_description_without_base(self):
        event = _make_event("w", EventCategory.WORK, 0, 30)
        assert build_distracted_description(event, 15, None) == "Distracted: 15 min on phone"


class TestStandaloneBlocks:
    def test_session_block(self):
        result = derive_actual_events_from_screen_time(
            [], _sessions(_session("YouTube", (14, 0), (14, 25))), DAY
        )
        assert len(result.blocks) == 1
        block = result.blocks[0]
        assert block.id == "st:session:840:865:YouTube"
        assert block.title == "Doom Scroll"
        assert block.description == "YouTube rabbit hole"
        assert block.category == EventCategory.DIGITAL
        assert block.source == BlockSource.SCREEN_TIME
        assert block.confidence == 0.75
        assert block.top_app == "YouTube"
        assert block.evidence.screen_time.was_distracted is True

    def test_nearby_sessions_grouped(self):
        result = derive_actual_events_from_screen_time(
            [],
            _sessions(
                _session("YouTube", (14, 0), (14, 25)),
                _session("YouTube", (14, 30), (14, 35)),
            ),
            DAY,
        )
        assert [(b.start_minutes, b.end_minutes) for b in result.blocks] == [(840, 875)]

    def test_short_group_dropped(self):
        result = derive_actual_events_from_screen_time(
            [], _sessions(_session("YouTube", (14, 0), (14, 5))), DAY
        )
        assert result.blocks == []

    def test_aggregate_without_top_app(self):
        result = derive_actual_events_from_screen_time([], _hourly(21, 1800), DAY)
        block = result.blocks[0]
        assert block.id == "st:aggregate:1260:1290:Phone usage"
        assert block.title == "Screen Time"
        assert block.description == "Phone use"
        assert block.top_app is None

    def test_aggregate_with_top_app(self):
        result = derive_actual_events_from_screen_time([], _hourly(21, 1800, top_app="TikTok"), DAY)
        block = result.blocks[0]
        assert block.id == "st:aggregate:1260:1290:TikTok"
        assert block.title == "Doom Scroll"
        assert block.description == "TikTok spiral"

    def test_override_makes_block_productive(self):
        overrides = {"YouTube": AppCategoryOverride(category=EventCategory.WORK, confidence=0.9)}
        result = derive_actual_events_from_screen_time(
            [], _sessions(_session("YouTube", (14, 0), (14, 25))), DAY,
            app_category_overrides=overrides,
        )
        block = result.blocks[0]
        assert block.title == "Productive Screen Time"
        assert block.category == EventCategory.WORK
        assert block.evidence.screen_time.was_distracted is False

    def test_custom_thresholds(self):
        config = SynthesisConfig(min_screen_time_block_minutes=30)
        result = derive_actual_events_from_screen_time(
            [], _sessions(_session("YouTube", (14, 0), (14, 25))), DAY, config=config
        )
        assert result.blocks == []


class TestSleep:
    def test_delayed_onset(self):
        sleep = _make_event("sleep", EventCategory.SLEEP, 1320, 118)
        result = derive_actual_events_from_screen_time(
            [sleep], _sessions(_session("TikTok", (22, 0), (22, 40))), DAY
        )

        assert len(result.events) == 1
        adjusted = result.events[0]
        assert adjusted.id == "sleep"
        assert adjusted.start_minutes == 1360
        assert adjusted.duration == 78
        assert adjusted.description == "Started late (Stayed up scrolling on TikTok, 40 min)"

        assert [b.id for b in result.blocks] == ["st:sleepstart:1320:1360:sleep"]
        block = result.blocks[0]
        assert block.title == "Screen Time"
        assert block.description == "TikTok spiral"
        assert block.confidence == 0.6

    def test_pre_sleep_block_from_hourly_data(self):
        sleep = _make_event("sleep", EventCategory.SLEEP, 1320, 118)
        evidence = EvidenceBundle(
            screen_time_hourly_by_app={"com.tiktok": {22: 1800}},
            app_display_names={"com.tiktok": "TikTok"},
        )
        result = derive_actual_events_from_screen_time([sleep], evidence, DAY)

        assert result.events[0].start_minutes == 1320
        assert result.events[0].description == "Started late (Stayed up scrolling on TikTok, 30 min)"
        assert [b.id for b in result.blocks] == ["st:presleep:1290:1320:sleep"]

    def test_pre_sleep_block_skipped_when_it_collides(self):
        sleep = _make_event("sleep", EventCategory.SLEEP, 1320, 118)
        dinner = _make_event("dinner", EventCategory.ROUTINE, 1260, 50)
        evidence = EvidenceBundle(
            screen_time_hourly_by_app={"com.tiktok": {22: 1800}},
            app_display_names={"com.tiktok": "TikTok"},
        )
        result = derive_actual_events_from_screen_time([dinner, sleep], evidence, DAY)
        assert result.blocks == []

    def test_mid_sleep_use_splits_sleep(self):
        night = _make_event("night", EventCategory.SLEEP, 0, 480)
        result = derive_actual_events_from_screen_time(
            [night], _sessions(_session("Instagram", (3, 0), (3, 25))), DAY
        )

        assert [(e.id, e.start_minutes, e.end_minutes) for e in result.events] == [
            ("night:sleep_seg:0", 0, 180),
            ("night:sleep_seg:1", 205, 480),
        ]
        assert result.events[0].description.endswith("(7h 35m total, interrupted 25 min)")
        assert [b.id for b in result.blocks] == ["st:midsleep:180:205:night"]
        assert result.blocks[0].confidence == 0.7
        assert result.blocks[0].evidence.screen_time.was_distracted is False

    def test_brief_mid_sleep_check_is_noted(self):
        night = _make_event("night", EventCategory.SLEEP, 0, 480)
        result = derive_actual_events_from_screen_time(
            [night], _sessions(_session("Instagram", (3, 0), (3, 8))), DAY
        )
        assert len(result.events) == 1
        assert result.events[0].start_minutes == 0
        assert result.events[0].duration == 480
        assert result.events[0].description.endswith("(phone: 8 min on Instagram)")
        assert result.blocks == []

    def test_mid_sleep_use_covered_by_another_event_keeps_sleep_whole(self):
        night = _make_event("night", EventCategory.SLEEP, 0, 480)
        feed = _make_event("feed", EventCategory.ROUTINE, 175, 40)
        result = derive_actual_events_from_screen_time(
            [night, feed], _sessions(_session("Instagram", (3, 0), (3, 25))), DAY
        )

        assert not any(b.id.startswith("st:midsleep") for b in result.blocks)
        sleep = [e for e in result.events if e.category == EventCategory.SLEEP]
        assert [(e.id, e.start_minutes, e.duration) for e in sleep] == [("night", 0, 480)]


class TestTimelineHandoff:
    def test_outputs_resolve_without_overlaps(self):
        events = [
            _make_event("work", EventCategory.WORK, 540, 120, "Deep work"),
            _make_event("sleep", EventCategory.SLEEP, 1320, 118),
        ]
        evidence = _sessions(
            _session("Instagram", (9, 10), (9, 32)),
            _session("YouTube", (14, 0), (14, 25)),
            _session("TikTok", (22, 0), (22, 40)),
        )
        result = derive_actual_events_from_screen_time(events, evidence, DAY)

        inputs = result.timeline_inputs()
        assert [e.start_minutes for e in inputs] == sorted(e.start_minutes for e in inputs)
        timeline = build_non_overlapping_timeline(inputs)
        assert validate_timeline(timeline).valid
        assert {e.id for e in timeline} >= {"work", "sleep", "st:session:840:865:YouTube"}
