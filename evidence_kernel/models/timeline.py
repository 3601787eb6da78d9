"""Timeline validation models."""

from typing import List

from pydantic import BaseModel


class TimelineOverlap(BaseModel):
    event1: str
    event2: str


class TimelineValidation(BaseModel):
    """Advisory result of checking a timeline for pairwise overlaps."""

    valid: bool
    overlaps: List[TimelineOverlap] = []
