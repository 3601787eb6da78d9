"""Health evidence: workouts placed on the local day."""

from typing import List, Tuple

from evidence_kernel.evidence.intervals import minutes_since_day_start, parse_day_key
from evidence_kernel.models.evidence import HealthWorkoutRow


def locate_workouts(
    workouts: List[HealthWorkoutRow],
    day_key: str,
) -> List[Tuple[HealthWorkoutRow, float, float]]:
    """(workout, start minute, end minute) for every parseable workout."""
    day_start = parse_day_key(day_key)
    if day_start is None:
        return []

    located = []
    for workout in workouts:
        start = minutes_since_day_start(workout.started_at, day_start)
        end = minutes_since_day_start(workout.ended_at, day_start)
        if start is None or end is None or end <= start:
            continue
        located.append((workout, start, end))
    return located


def overlapping_workouts(
    workouts: List[HealthWorkoutRow],
    day_key: str,
    start_minutes: int,
    end_minutes: int,
) -> List[Tuple[HealthWorkoutRow, float, float]]:
    return [
        (workout, start, end)
        for workout, start, end in locate_workouts(workouts, day_key)
        if start < end_minutes and end > start_minutes
    ]


def workout_minutes(workout: HealthWorkoutRow, start: float, end: float) -> int:
    """Workout length in whole minutes, preferring the reported duration."""
    if workout.duration_seconds > 0:
        return round(workout.duration_seconds / 60)
    return round(end - start)
