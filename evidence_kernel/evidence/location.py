"""Location evidence: hourly dwell rows and the blocks built from them."""

import logging
import math
from typing import List, Optional, Tuple

from evidence_kernel.evidence.intervals import minutes_since_day_start, parse_day_key
from evidence_kernel.models.event import MINUTES_PER_DAY
from evidence_kernel.models.evidence import LocationBlock, LocationHourlyRow


logger = logging.getLogger(__name__)

HOUR_MINUTES = 60


def locate_rows(rows: List[LocationHourlyRow], day_key: str) -> List[Tuple[LocationHourlyRow, int]]:
    """Pair each row with its hour's start minute; rows outside the day are skipped."""
    day_start = parse_day_key(day_key)
    if day_start is None:
        return []

    located = []
    for row in rows:
        minutes = minutes_since_day_start(row.hour_start, day_start)
        if minutes is None:
            continue
        start = int(math.floor(minutes))
        if start < 0 or start >= MINUTES_PER_DAY:
            logger.debug("Skipping location row outside day %s: %s", day_key, row.hour_start)
            continue
        located.append((row, start))
    located.sort(key=lambda item: item[1])
    return located


def overlapping_location_rows(
    rows: List[LocationHourlyRow],
    day_key: str,
    start_minutes: int,
    end_minutes: int,
) -> List[Tuple[LocationHourlyRow, int]]:
    """Rows whose hour window overlaps [start_minutes, end_minutes)."""
    return [
        (row, hour_start)
        for row, hour_start in locate_rows(rows, day_key)
        if hour_start < end_minutes and hour_start + HOUR_MINUTES > start_minutes
    ]


def dominant_place(located: List[Tuple[LocationHourlyRow, int]]) -> Optional[LocationHourlyRow]:
    """The row for the place with the most samples; earliest row breaks ties."""
    if not located:
        return None
    totals = {}
    first_row = {}
    for row, _ in located:
        key = _place_key(row)
        totals[key] = totals.get(key, 0) + row.sample_count
        first_row.setdefault(key, row)
    best = max(totals, key=lambda k: totals[k])
    return first_row[best]


def _place_key(row: LocationHourlyRow) -> str:
    if row.place_id:
        return row.place_id
    label = row.place_label or row.place_category or ""
    return f"{label}:{row.place_category or 'unknown'}".lower()


def _sample_confidence(sample_count: int) -> float:
    return 0.7 if sample_count >= 6 else 0.55


def build_location_blocks(rows: List[LocationHourlyRow], day_key: str) -> List[LocationBlock]:
    """Merge consecutive hours spent at the same place into dwell blocks."""
    blocks: List[LocationBlock] = []
    current: Optional[LocationBlock] = None

    for row, hour_start in locate_rows(rows, day_key):
        key = _place_key(row)
        if (
            current is not None
            and current.place_key == key
            and current.end_minutes == hour_start
        ):
            current.end_minutes = hour_start + HOUR_MINUTES
            current.total_location_samples += row.sample_count
            current.confidence_score = _sample_confidence(current.total_location_samples)
            continue

        current = LocationBlock(
            start_minutes=hour_start,
            end_minutes=hour_start + HOUR_MINUTES,
            location_label=row.place_label or row.place_category,
            location_category=row.place_category,
            place_key=key,
            total_location_samples=row.sample_count,
            confidence_score=_sample_confidence(row.sample_count),
        )
        blocks.append(current)

    return blocks
