"""
Business-Day Window Builder.
Builds the ordered slot grid covering one 24-hour business day that starts
at a configurable hour and may run past midnight.
"""
from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional, Tuple, Union


class InvalidArgument(ValueError):
    """Raised when a window or formatting argument is out of range."""


@dataclass(frozen=True)
class Slot:
    """
    One contiguous sub-interval of a business day.

    `start` and `end` are hours since midnight of the window's anchor date,
    so a slot after midnight carries values >= 24 instead of wrapping.
    """

    index: int
    start: float
    end: float

    @property
    def duration(self) -> float:
        return self.end - self.start

    @property
    def clock_start(self) -> float:
        return self.start % 24

    @property
    def clock_end(self) -> float:
        return self.end % 24


@dataclass(frozen=True)
class TimeWindow:
    """Ordered slots covering exactly 24 hours from `start_hour`."""

    start_hour: int
    granularity: str
    slots: Tuple[Slot, ...] = field(default_factory=tuple)
    anchor_date: Optional[date] = None

    @property
    def start(self) -> float:
        return float(self.start_hour)

    @property
    def end(self) -> float:
        return float(self.start_hour + WindowBuilder.HOURS_PER_DAY)

    @property
    def span(self) -> float:
        return sum(slot.duration for slot in self.slots)


class WindowBuilder:
    """
    Builds TimeWindow grids.

    Two granularities are supported:
    - hourly: 24 slots of 1 hour (mixer and pump Gantt calendars)
    - four_hour: 6 slots of 4 hours (truck-wise report)
    """

    HOURS_PER_DAY = 24

    HOURLY = "hourly"
    FOUR_HOUR = "four_hour"

    # Granularity name to slot length in hours
    GRANULARITIES = {
        HOURLY: 1,
        FOUR_HOUR: 4,
    }

    @classmethod
    def resolve_granularity(cls, granularity: Union[str, int]) -> str:
        """
        Normalize a granularity given as a name or as a slot count.

        Args:
            granularity: "hourly", "four_hour", 24 or 6

        Returns:
            Canonical granularity name
        """
        if isinstance(granularity, bool):
            raise InvalidArgument(f"Unsupported granularity: {granularity!r}")

        if isinstance(granularity, int):
            for name, hours in cls.GRANULARITIES.items():
                if cls.HOURS_PER_DAY // hours == granularity:
                    return name
            raise InvalidArgument(f"Unsupported slot count: {granularity}")

        if granularity in cls.GRANULARITIES:
            return granularity

        raise InvalidArgument(f"Unsupported granularity: {granularity!r}")

    @classmethod
    def validate_start_hour(cls, start_hour) -> int:
        if isinstance(start_hour, bool) or not isinstance(start_hour, int):
            raise InvalidArgument(f"start_hour must be an integer, got {start_hour!r}")
        if not 0 <= start_hour < cls.HOURS_PER_DAY:
            raise InvalidArgument(f"start_hour must be in [0, 23], got {start_hour}")
        return start_hour

    @classmethod
    def build_window(
        cls,
        start_hour: int,
        granularity: Union[str, int] = HOURLY,
        anchor_date: Optional[date] = None,
    ) -> TimeWindow:
        """
        Build the slot grid for one business day.

        Args:
            start_hour: Business-day start hour (0-23)
            granularity: "hourly" / 24 or "four_hour" / 6
            anchor_date: Calendar date the business day starts on, needed to
                place absolute timestamps on the window axis

        Returns:
            TimeWindow whose first slot starts at start_hour and whose slots
            cover exactly 24 hours
        """
        start_hour = cls.validate_start_hour(start_hour)
        name = cls.resolve_granularity(granularity)
        step = cls.GRANULARITIES[name]

        slots: List[Slot] = []
        for index in range(cls.HOURS_PER_DAY // step):
            slot_start = start_hour + index * step
            slots.append(Slot(index=index, start=float(slot_start), end=float(slot_start + step)))

        return TimeWindow(
            start_hour=start_hour,
            granularity=name,
            slots=tuple(slots),
            anchor_date=anchor_date,
        )
