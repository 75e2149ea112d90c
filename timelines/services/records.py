"""
Timeline records shared by the aggregation services.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Tuple, Union

# A trip boundary is either an aware datetime or an hour-of-day float
TimeValue = Union[datetime, float]


@dataclass(frozen=True)
class Trip:
    """One vehicle's occupied interval (plant load through return)."""

    vehicle_id: str
    start: TimeValue
    end: TimeValue
    client: str = ""
    project: str = ""
    schedule_no: str = ""


@dataclass(frozen=True)
class TaskGroup:
    """Back-to-back trips merged into one display block."""

    start: float
    end: float
    trips: Tuple[Trip, ...] = ()

    @property
    def duration(self) -> float:
        return self.end - self.start

    @property
    def clients(self) -> List[str]:
        seen = []
        for trip in self.trips:
            if trip.client and trip.client not in seen:
                seen.append(trip.client)
        return seen


@dataclass
class VehicleSchedule:
    """Aggregation result for one vehicle over one TimeWindow."""

    vehicle_id: str
    vehicle_type: str = "TM"
    name: str = ""
    plant: str = ""
    per_slot_free: List[float] = field(default_factory=list)
    per_slot_busy: List[float] = field(default_factory=list)
    free_hours: float = 24.0
    busy_hours: float = 0.0
    total_free_hours: int = 24
    total_busy_hours: int = 0
    idle_percentage: int = 100
    used_percentage: int = 0
    grouped_tasks: List[TaskGroup] = field(default_factory=list)
    trips: List[Trip] = field(default_factory=list)
    skipped_trips: int = 0
    outside_window_trips: int = 0

    @property
    def dropped_trips(self) -> int:
        """Trips left out of the totals, malformed or outside the window."""
        return self.skipped_trips + self.outside_window_trips
