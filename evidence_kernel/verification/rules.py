"""
Verification Rule Catalog: what evidence confirms or contradicts each category.

Defined once at import time and immutable thereafter. Categories without an
entry fall back to the permissive "unknown" rule (verify_with: []).
"""

import re
from types import MappingProxyType
from typing import Iterable, Mapping, Optional

from evidence_kernel.models.event import EventCategory
from evidence_kernel.models.verification import (
    EvidenceType,
    VerificationRule,
    VerificationThresholds,
)


WILDCARD = "*"
SHORT_NAME_LENGTH = 2

# Social media, entertainment, games
DISTRACTION_APPS = (
    "instagram",
    "tiktok",
    "youtube",
    "twitter",
    "x",
    "facebook",
    "snapchat",
    "reddit",
    "netflix",
    "hulu",
    "disney+",
    "hbo",
    "candy crush",
    "clash",
    "wordle",
)

WORK_APPS = (
    "slack",
    "gmail",
    "outlook",
    "teams",
    "zoom",
    "notion",
    "figma",
    "linear",
    "jira",
    "asana",
    "trello",
    "google docs",
    "google sheets",
    "excel",
    "word",
    "powerpoint",
    "keynote",
    "numbers",
    "pages",
    "calendar",
    "meet",
)

# Navigation, rides, and listening while on the move
TRAVEL_APPS = (
    "maps",
    "google maps",
    "waze",
    "uber",
    "lyft",
    "spotify",
    "podcasts",
    "audible",
    "apple music",
    "youtube music",
)

LOCATION = EvidenceType.LOCATION
SCREEN_TIME = EvidenceType.SCREEN_TIME
HEALTH_WORKOUT = EvidenceType.HEALTH_WORKOUT
HEALTH_SLEEP = EvidenceType.HEALTH_SLEEP


VERIFICATION_RULES: Mapping[EventCategory, VerificationRule] = MappingProxyType({
    # At home, any phone use is a problem, a workout is suspicious
    EventCategory.SLEEP: VerificationRule(
        location_expected=["home"],
        location_required=True,
        max_screen_time_minutes=15,
        distraction_apps=[WILDCARD],
        workout_contradicts_if_during=True,
        verify_with=[LOCATION, SCREEN_TIME, HEALTH_SLEEP],
        evidence_weights={LOCATION: 0.4, SCREEN_TIME: 0.3, HEALTH_SLEEP: 0.3},
    ),
    EventCategory.ROUTINE: VerificationRule(
        location_expected=["home"],
        max_screen_time_minutes=30,
        distraction_apps=list(DISTRACTION_APPS),
        max_distraction_minutes=15,
        verify_with=[LOCATION, SCREEN_TIME],
    ),
    EventCategory.WORK: VerificationRule(
        location_expected=["office", "home", "cafe"],
        allowed_apps=list(WORK_APPS),
        distraction_apps=list(DISTRACTION_APPS),
        max_distraction_minutes=20,
        verify_with=[LOCATION, SCREEN_TIME],
        evidence_weights={LOCATION: 0.6, SCREEN_TIME: 0.4},
    ),
    EventCategory.MEETING: VerificationRule(
        location_expected=["office", "cafe", "restaurant", None],
        allowed_apps=["zoom", "teams", "meet", "webex", "calendar", "notes"],
        distraction_apps=list(DISTRACTION_APPS),
        max_distraction_minutes=10,
        verify_with=[LOCATION, SCREEN_TIME],
    ),
    EventCategory.MEAL: VerificationRule(
        location_expected=["restaurant", "cafe", "home"],
        max_screen_time_minutes=20,
        distraction_apps=list(DISTRACTION_APPS),
        max_distraction_minutes=15,
        verify_with=[LOCATION, SCREEN_TIME],
    ),
    # Outdoor exercise has no specific place
    EventCategory.HEALTH: VerificationRule(
        location_expected=["gym", "home", None],
        requires_workout=True,
        allowed_apps=["strava", "nike", "peloton", "fitness", "health", "spotify", "podcasts"],
        verify_with=[LOCATION, HEALTH_WORKOUT],
        evidence_weights={HEALTH_WORKOUT: 0.7, LOCATION: 0.3},
    ),
    # Screen time is the primary signal for family time
    EventCategory.FAMILY: VerificationRule(
        location_expected=["home", "restaurant", "cafe", None],
        distraction_apps=[WILDCARD],
        max_distraction_minutes=15,
        verify_with=[LOCATION, SCREEN_TIME],
        evidence_weights={SCREEN_TIME: 0.7, LOCATION: 0.3},
    ),
    EventCategory.SOCIAL: VerificationRule(
        location_expected=["restaurant", "cafe", None],
        distraction_apps=list(DISTRACTION_APPS),
        max_distraction_minutes=20,
        verify_with=[LOCATION, SCREEN_TIME],
    ),
    EventCategory.TRAVEL: VerificationRule(
        location_expected=[None],
        requires_location_change=True,
        allowed_apps=list(TRAVEL_APPS),
        verify_with=[LOCATION],
    ),
    EventCategory.FINANCE: VerificationRule(
        location_expected=["home", "office", None],
        allowed_apps=["bank", "mint", "ynab", "personal capital", "venmo", "paypal"],
        verify_with=[SCREEN_TIME],
    ),
    EventCategory.COMM: VerificationRule(
        location_expected=[None],
        allowed_apps=["phone", "messages", "whatsapp", "telegram", "signal", "facetime"],
        requires_screen_time=True,
        verify_with=[SCREEN_TIME],
    ),
    EventCategory.DIGITAL: VerificationRule(
        location_expected=[None],
        requires_screen_time=True,
        verify_with=[SCREEN_TIME],
    ),
    EventCategory.UNKNOWN: VerificationRule(location_expected=[None], verify_with=[]),
    EventCategory.FREE: VerificationRule(location_expected=[None], verify_with=[]),
})


def get_verification_rule(category) -> VerificationRule:
    """Rule for a category, falling back to the permissive 'unknown' rule."""
    try:
        key = EventCategory(category)
    except ValueError:
        return VERIFICATION_RULES[EventCategory.UNKNOWN]
    return VERIFICATION_RULES.get(key, VERIFICATION_RULES[EventCategory.UNKNOWN])


def _matches_whole_words(candidate: str, normalized: str) -> bool:
    pattern = r"(?<![a-z0-9])" + re.escape(candidate) + r"(?![a-z0-9])"
    return re.search(pattern, normalized) is not None


def app_matches_list(app_name: str, app_list: Iterable[str], whole_words: bool = False) -> bool:
    """
    Case-insensitive partial match; '*' matches any app.

    Entries of one or two characters (e.g. "x") must match a whole word,
    otherwise "x" would match every app with an x in its name. With
    whole_words, every entry must match on word boundaries ("word" does
    not match "Wordle").
    """
    normalized = app_name.lower()
    for app in app_list:
        if app == WILDCARD:
            return True
        candidate = app.lower()
        if whole_words or len(candidate) <= SHORT_NAME_LENGTH:
            if _matches_whole_words(candidate, normalized):
                return True
        elif candidate in normalized:
            return True
    return False


# --- Threshold presets ---

DEFAULT_VERIFICATION_THRESHOLDS = VerificationThresholds()

_THRESHOLD_PRESETS = {
    "default": DEFAULT_VERIFICATION_THRESHOLDS,
    "lenient": VerificationThresholds(
        verified_min=0.6,
        partial_min=0.2,
        mostly_verified_min=0.78,
        timing_variance_minutes=20,
    ),
    "strict": VerificationThresholds(
        verified_min=0.8,
        partial_min=0.4,
        mostly_verified_min=0.9,
        timing_variance_minutes=10,
    ),
}

STRICTNESS_LEVELS = tuple(_THRESHOLD_PRESETS)


def get_verification_thresholds(strictness: Optional[str]) -> VerificationThresholds:
    """Threshold preset for a strictness level; unknown levels use the default."""
    return _THRESHOLD_PRESETS.get(strictness or "default", DEFAULT_VERIFICATION_THRESHOLDS)
