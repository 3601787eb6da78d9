"""App classification: decides whether a phone app counts as work or distraction."""

from typing import Optional

from pydantic import BaseModel

from evidence_kernel.models.event import EventCategory
from evidence_kernel.models.evidence import AppCategoryOverride, AppCategoryOverrides
from evidence_kernel.verification.rules import (
    DISTRACTION_APPS,
    WORK_APPS,
    app_matches_list,
)


OVERRIDE_CONFIDENCE_MIN = 0.6

PRODUCTIVE_APPS = (
    "calculator",
    "notes",
    "today matters",
    "todaymatters",
)

CATEGORY_TITLES = {
    EventCategory.ROUTINE: "Routine",
    EventCategory.WORK: "Work",
    EventCategory.MEAL: "Meal",
    EventCategory.MEETING: "Meeting",
    EventCategory.HEALTH: "Health",
    EventCategory.FAMILY: "Family",
    EventCategory.SOCIAL: "Social",
    EventCategory.TRAVEL: "Travel",
    EventCategory.FINANCE: "Finance",
    EventCategory.COMM: "Communication",
    EventCategory.DIGITAL: "Screen Time",
    EventCategory.SLEEP: "Sleep",
    EventCategory.UNKNOWN: "Unknown",
    EventCategory.FREE: "Free",
}


class AppClassification(BaseModel):
    title: str
    description: str
    category: EventCategory
    is_distraction: bool
    is_work: bool
    is_productive: bool
    confidence: float


def normalize_app_key(value: str) -> str:
    return value.strip().lower()


def _resolve_override(
    app_name: str,
    overrides: Optional[AppCategoryOverrides],
) -> Optional[AppCategoryOverride]:
    if not overrides:
        return None
    key = normalize_app_key(app_name)
    if not key:
        return None
    for candidate, override in overrides.items():
        if normalize_app_key(candidate) == key:
            return override
    return None


def classify_app_usage(
    app_name: str,
    overrides: Optional[AppCategoryOverrides] = None,
) -> AppClassification:
    """Classify an app, honoring confident user overrides first."""
    override = _resolve_override(app_name, overrides)
    if override and override.confidence >= OVERRIDE_CONFIDENCE_MIN:
        is_work = override.category == EventCategory.WORK
        return AppClassification(
            title="Productive Screen Time" if is_work else CATEGORY_TITLES.get(override.category, "Screen Time"),
            description=app_name,
            category=override.category,
            is_distraction=False,
            is_work=is_work,
            is_productive=is_work,
            confidence=override.confidence,
        )

    if app_matches_list(app_name, DISTRACTION_APPS):
        return AppClassification(
            title="Doom Scroll",
            description=app_name,
            category=EventCategory.DIGITAL,
            is_distraction=True,
            is_work=False,
            is_productive=False,
            confidence=0.75,
        )

    if app_matches_list(app_name, WORK_APPS) or app_matches_list(app_name, PRODUCTIVE_APPS):
        return AppClassification(
            title="Productive Screen Time",
            description=app_name,
            category=EventCategory.WORK,
            is_distraction=False,
            is_work=True,
            is_productive=True,
            confidence=0.7,
        )

    return AppClassification(
        title="Screen Time",
        description=app_name,
        category=EventCategory.DIGITAL,
        is_distraction=False,
        is_work=False,
        is_productive=False,
        confidence=0.55,
    )


# Friendly phrases for the usual rabbit holes
_SCREEN_TIME_PHRASES = (
    ("youtube", "YouTube rabbit hole"),
    ("instagram", "Instagram scroll"),
    ("tiktok", "TikTok spiral"),
    ("twitter", "Endless scroll"),
)


def to_screen_time_phrase(app_name: str) -> str:
    """A friendly description for a block dominated by one app."""
    name = app_name.lower()
    for needle, phrase in _SCREEN_TIME_PHRASES:
        if needle in name:
            return phrase
    if app_matches_list(app_name, ("x",)):
        return "Endless scroll"
    return app_name
