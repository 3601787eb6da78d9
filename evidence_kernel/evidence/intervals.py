"""
Interval algebra and local-day time helpers.

All reasoning happens in minutes since local midnight. Timestamps are taken
as local wall-clock time; days are pre-localized by the caller, so any
timezone offset on an incoming timestamp is ignored.
"""

import logging
import re
from datetime import date, datetime
from typing import Optional, Union

from evidence_kernel.models.event import MINUTES_PER_DAY


logger = logging.getLogger(__name__)

_DAY_KEY = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")


def overlap_minutes(a_start: float, a_end: float, b_start: float, b_end: float) -> float:
    """Length of the intersection of two half-open intervals."""
    return max(0, min(a_end, b_end) - max(a_start, b_start))


def intervals_overlap(a_start: float, a_end: float, b_start: float, b_end: float) -> bool:
    return overlap_minutes(a_start, a_end, b_start, b_end) > 0


def clamp(value: float, low: float, high: float) -> float:
    return min(high, max(low, value))


def clamp_minutes(minutes: float) -> float:
    return clamp(minutes, 0, MINUTES_PER_DAY)


def round_to_nearest(value: float, step: int) -> int:
    if step <= 0:
        return round(value)
    return int(round(value / step) * step)


def parse_day_key(day_key: str) -> Optional[datetime]:
    """Parse a YYYY-MM-DD day key into local midnight."""
    match = _DAY_KEY.match(day_key or "")
    if not match:
        return None
    try:
        return datetime(int(match.group(1)), int(match.group(2)), int(match.group(3)))
    except ValueError:
        return None


def parse_timestamp(value: Union[datetime, date, str, None]) -> Optional[datetime]:
    """Parse an evidence timestamp into a naive local datetime, or None."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.replace(tzinfo=None)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text).replace(tzinfo=None)
    except ValueError:
        logger.debug("Skipping unparseable timestamp %r", value)
        return None


def minutes_since_day_start(
    value: Union[datetime, str, None],
    day_start: datetime,
) -> Optional[float]:
    """Minutes between local midnight of the day and the timestamp."""
    moment = parse_timestamp(value)
    if moment is None:
        return None
    return (moment - day_start).total_seconds() / 60.0
