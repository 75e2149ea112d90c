"""
Interval Overlap.
Places trips on a window's hour axis and measures how much of each slot
they occupy, including windows and trips that run past midnight.
"""
from datetime import datetime, time
from typing import Iterable, List, Optional, Tuple

from .records import TimeValue, Trip
from .window_builder import TimeWindow

Interval = Tuple[float, float]

HOURS_PER_DAY = 24.0


def overlap_hours(trip_start: float, trip_end: float, slot_start: float, slot_end: float) -> float:
    """
    Hours shared by [trip_start, trip_end) and [slot_start, slot_end).

    All values are hours on the same axis (hours since midnight of the
    window's anchor date), so ends past midnight are > 24. Reversed or
    zero-length ranges overlap nothing.
    """
    if trip_end <= trip_start or slot_end <= slot_start:
        return 0.0
    return max(0.0, min(trip_end, slot_end) - max(trip_start, slot_start))


def to_axis_hours(value: TimeValue, window: TimeWindow) -> float:
    """
    Convert a trip boundary to hours on the window axis.

    Datetimes are measured from midnight of the window's anchor date in the
    datetime's own timezone. Without an anchor date, or for hour-floats,
    only the time of day is kept.
    """
    if isinstance(value, datetime):
        if window.anchor_date is None:
            return (
                value.hour
                + value.minute / 60
                + value.second / 3600
                + value.microsecond / 3_600_000_000
            )
        midnight = datetime.combine(window.anchor_date, time.min, tzinfo=value.tzinfo)
        return (value - midnight).total_seconds() / 3600
    return float(value)


def _is_absolute(trip: Trip, window: TimeWindow) -> bool:
    return (
        window.anchor_date is not None
        and isinstance(trip.start, datetime)
        and isinstance(trip.end, datetime)
    )


def project_trip(trip: Trip, window: TimeWindow) -> Optional[Interval]:
    """
    Project a trip onto the window axis.

    Args:
        trip: Trip with datetime or hour-of-day boundaries
        window: Target window

    Returns:
        (start, end) on the window axis, or None when the trip is malformed
        (zero or negative duration)
    """
    both_datetimes = isinstance(trip.start, datetime) and isinstance(trip.end, datetime)
    if both_datetimes and trip.end <= trip.start:
        return None

    start = to_axis_hours(trip.start, window)

    if _is_absolute(trip, window):
        end = to_axis_hours(trip.end, window)
        if end <= start:
            return None
        return start, end

    if both_datetimes:
        # Keep whole days of multi-day trips
        end = start + (trip.end - trip.start).total_seconds() / 3600
    else:
        end = to_axis_hours(trip.end, window)

    # Time-of-day data: an end before the start crossed midnight
    if end < start:
        end += HOURS_PER_DAY
    if end <= start:
        return None

    # Entirely before the business-day start means the next morning
    if end <= window.start:
        start += HOURS_PER_DAY
        end += HOURS_PER_DAY

    return start, end


def merge_intervals(intervals: Iterable[Interval]) -> List[Interval]:
    """Union of intervals; overlapping or touching intervals are combined."""
    merged: List[List[float]] = []
    for start, end in sorted(intervals):
        if end <= start:
            continue
        if merged and start <= merged[-1][1]:
            merged[-1][1] = max(merged[-1][1], end)
        else:
            merged.append([start, end])
    return [(start, end) for start, end in merged]


def slot_overlaps(start: float, end: float, window: TimeWindow) -> List[float]:
    """Overlap of one interval with every slot of the window, in slot order."""
    return [overlap_hours(start, end, slot.start, slot.end) for slot in window.slots]


def clip_to_window(start: float, end: float, window: TimeWindow) -> Optional[Interval]:
    """Clamp an interval to the window, or None when it lies outside."""
    clipped_start = max(start, window.start)
    clipped_end = min(end, window.end)
    if clipped_end <= clipped_start:
        return None
    return clipped_start, clipped_end
