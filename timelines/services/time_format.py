"""
Clock and duration formatting for slot labels and report cells.
"""
from .window_builder import InvalidArgument, Slot

TIME_FORMATS = ("12h", "24h")


def validate_time_format(time_format: str) -> str:
    if time_format not in TIME_FORMATS:
        raise InvalidArgument(f"time_format must be one of {TIME_FORMATS}, got {time_format!r}")
    return time_format


def format_clock(hour: float, time_format: str = "24h") -> str:
    """
    Format an axis hour as a wall-clock time.

    Args:
        hour: Hour-float, may be >= 24 for the next day
        time_format: "12h" ("07:30 PM") or "24h" ("19:30")
    """
    validate_time_format(time_format)

    total_minutes = int(round(hour * 60)) % (24 * 60)
    hours, minutes = divmod(total_minutes, 60)

    if time_format == "24h":
        return f"{hours:02d}:{minutes:02d}"

    period = "AM" if hours < 12 else "PM"
    hours_12 = hours % 12 or 12
    return f"{hours_12:02d}:{minutes:02d} {period}"


def slot_label(slot: Slot, time_format: str = "24h") -> str:
    return f"{format_clock(slot.start, time_format)} - {format_clock(slot.end, time_format)}"


def format_hours_minutes(hours: float) -> str:
    """Format a duration in hours as HH:MM (e.g. 2.5 -> "02:30")."""
    total_minutes = int(round(max(0.0, hours) * 60))
    return f"{total_minutes // 60:02d}:{total_minutes % 60:02d}"
