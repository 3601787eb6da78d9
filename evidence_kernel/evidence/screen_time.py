"""
Screen time evidence: granularity selection and per-variant scoring.

The Evidence Source may deliver screen time as precise app sessions, as
per-app seconds per hour, or as a single 24-length aggregate. The best
available granularity is selected once per day; every consumer then calls
the scoring function registered for that variant.
"""

import logging
from collections import defaultdict
from typing import Callable, Dict, List, Optional

from evidence_kernel.evidence.intervals import (
    clamp_minutes,
    minutes_since_day_start,
    overlap_minutes,
    parse_day_key,
)
from evidence_kernel.models.event import MINUTES_PER_DAY
from evidence_kernel.models.evidence import (
    AggregateHourlyScreenTime,
    EvidenceBundle,
    HourlyByAppScreenTime,
    ScreenActivity,
    ScreenSession,
    ScreenTimeEvidence,
    SessionScreenTime,
)


logger = logging.getLogger(__name__)

PHONE_USAGE = "Phone usage"


def select_screen_time_evidence(
    bundle: EvidenceBundle,
    day_key: str,
) -> Optional[ScreenTimeEvidence]:
    """Pick the most precise screen time granularity present for the day."""
    day_start = parse_day_key(day_key)

    if bundle.screen_time_sessions and day_start is not None:
        sessions = _sessions_for_day(bundle, day_start)
        if sessions:
            return SessionScreenTime(sessions=sessions)

    if bundle.screen_time_hourly_by_app:
        by_name: Dict[str, Dict[int, float]] = defaultdict(dict)
        for app_id, hours in bundle.screen_time_hourly_by_app.items():
            name = bundle.app_display_names.get(app_id, app_id)
            for hour, seconds in hours.items():
                if 0 <= hour < 24 and seconds > 0:
                    by_name[name][hour] = by_name[name].get(hour, 0.0) + seconds
        if by_name:
            return HourlyByAppScreenTime(hourly_by_app=dict(by_name))

    if any(seconds > 0 for seconds in bundle.screen_time_hourly_seconds):
        return AggregateHourlyScreenTime(
            hourly_seconds=list(bundle.screen_time_hourly_seconds[:24]),
            top_app_name=bundle.top_app_name,
        )

    return None


def _sessions_for_day(bundle: EvidenceBundle, day_start) -> List[ScreenSession]:
    sessions = []
    for row in bundle.screen_time_sessions:
        start = minutes_since_day_start(row.started_at, day_start)
        end = minutes_since_day_start(row.ended_at, day_start)
        if start is None or end is None or end <= start:
            logger.debug("Skipping malformed screen time session for %s", row.app_id)
            continue
        if end <= 0 or start >= MINUTES_PER_DAY:
            continue
        sessions.append(
            ScreenSession(
                app_name=row.app_name,
                start_minutes=clamp_minutes(start),
                end_minutes=clamp_minutes(end),
            )
        )
    sessions.sort(key=lambda s: s.start_minutes)
    return sessions


# --- Usage inside a window: {app name: minutes} ---

def _session_usage(evidence: SessionScreenTime, start: float, end: float) -> Dict[str, float]:
    usage: Dict[str, float] = defaultdict(float)
    for session in evidence.sessions:
        overlap = overlap_minutes(start, end, session.start_minutes, session.end_minutes)
        if overlap > 0:
            usage[session.app_name] += overlap
    return dict(usage)


def _hour_fractions(start: float, end: float):
    """Yield (hour, fraction of that hour covered by the window)."""
    start = clamp_minutes(start)
    end = clamp_minutes(end)
    if end <= start:
        return
    for hour in range(int(start // 60), int((end - 1) // 60) + 1):
        covered = overlap_minutes(start, end, hour * 60, hour * 60 + 60)
        if covered > 0:
            yield hour, covered / 60.0


def _hourly_by_app_usage(evidence: HourlyByAppScreenTime, start: float, end: float) -> Dict[str, float]:
    usage: Dict[str, float] = defaultdict(float)
    for hour, fraction in _hour_fractions(start, end):
        for app_name, hours in evidence.hourly_by_app.items():
            seconds = hours.get(hour, 0.0)
            if seconds > 0:
                # Usage is assumed uniform across the hour.
                usage[app_name] += seconds * fraction / 60.0
    return dict(usage)


def _aggregate_usage(evidence: AggregateHourlyScreenTime, start: float, end: float) -> Dict[str, float]:
    total = 0.0
    for hour, fraction in _hour_fractions(start, end):
        if hour < len(evidence.hourly_seconds):
            total += max(0.0, evidence.hourly_seconds[hour]) * fraction / 60.0
    return {PHONE_USAGE: total} if total > 0 else {}


_USAGE_SCORERS: Dict[str, Callable] = {
    "sessions": _session_usage,
    "hourly_by_app": _hourly_by_app_usage,
    "aggregate_hourly": _aggregate_usage,
}


def usage_in_window(
    evidence: Optional[ScreenTimeEvidence],
    start: float,
    end: float,
) -> Dict[str, float]:
    """Per-app minutes of phone use overlapping [start, end)."""
    if evidence is None or end <= start:
        return {}
    return _USAGE_SCORERS[evidence.granularity](evidence, start, end)


# --- Activity intervals for block synthesis ---

def _session_activity(evidence: SessionScreenTime) -> List[ScreenActivity]:
    return [
        ScreenActivity(
            start_minutes=s.start_minutes,
            end_minutes=s.end_minutes,
            app_minutes={s.app_name: s.duration_minutes},
        )
        for s in evidence.sessions
    ]


def _hourly_by_app_activity(evidence: HourlyByAppScreenTime) -> List[ScreenActivity]:
    per_hour: Dict[int, Dict[str, float]] = defaultdict(dict)
    for app_name, hours in evidence.hourly_by_app.items():
        for hour, seconds in hours.items():
            per_hour[hour][app_name] = seconds / 60.0

    activities = []
    for hour in sorted(per_hour):
        apps = per_hour[hour]
        minutes = min(60.0, sum(apps.values()))
        activities.append(
            ScreenActivity(
                start_minutes=hour * 60,
                end_minutes=hour * 60 + minutes,
                app_minutes=apps,
            )
        )
    return activities


def _aggregate_activity(evidence: AggregateHourlyScreenTime) -> List[ScreenActivity]:
    app_name = evidence.top_app_name or PHONE_USAGE
    activities = []
    for hour, seconds in enumerate(evidence.hourly_seconds[:24]):
        if seconds <= 0:
            continue
        minutes = min(60.0, seconds / 60.0)
        activities.append(
            ScreenActivity(
                start_minutes=hour * 60,
                end_minutes=hour * 60 + minutes,
                app_minutes={app_name: minutes},
            )
        )
    return activities


_ACTIVITY_BUILDERS: Dict[str, Callable] = {
    "sessions": _session_activity,
    "hourly_by_app": _hourly_by_app_activity,
    "aggregate_hourly": _aggregate_activity,
}


def activity_intervals(evidence: Optional[ScreenTimeEvidence]) -> List[ScreenActivity]:
    """Windows of phone use, sorted by start."""
    if evidence is None:
        return []
    activities = _ACTIVITY_BUILDERS[evidence.granularity](evidence)
    return sorted(activities, key=lambda a: a.start_minutes)


def group_activity(activities: List[ScreenActivity], gap_minutes: float) -> List[ScreenActivity]:
    """Merge activity windows separated by at most gap_minutes."""
    groups: List[ScreenActivity] = []
    for activity in sorted(activities, key=lambda a: a.start_minutes):
        last = groups[-1] if groups else None
        if last is not None and activity.start_minutes - last.end_minutes <= gap_minutes:
            merged = dict(last.app_minutes)
            for app, minutes in activity.app_minutes.items():
                merged[app] = merged.get(app, 0.0) + minutes
            groups[-1] = ScreenActivity(
                start_minutes=last.start_minutes,
                end_minutes=max(last.end_minutes, activity.end_minutes),
                app_minutes=merged,
            )
        else:
            groups.append(activity.model_copy())
    return groups


def top_apps(usage: Dict[str, float], limit: int = 5) -> List[tuple]:
    """(app, minutes) pairs sorted by minutes descending."""
    ranked = sorted(usage.items(), key=lambda item: (-item[1], item[0]))
    return ranked[:limit]
