"""Half-open time interval arithmetic shared by conflict checks and layout."""

from __future__ import annotations

from datetime import datetime
from typing import Protocol


class Interval(Protocol):
    start_time: datetime
    end_time: datetime


def spans_overlap(
    a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime
) -> bool:
    """True when ``[a_start, a_end)`` and ``[b_start, b_end)`` share any instant.

    Touching endpoints (one ends exactly when the other starts) do not overlap.
    """
    return a_start < b_end and b_start < a_end


def overlaps(a: Interval, b: Interval) -> bool:
    return spans_overlap(a.start_time, a.end_time, b.start_time, b.end_time)
