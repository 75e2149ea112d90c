"""
Idle-Time Accumulator.
Reduces one vehicle's trips over a TimeWindow into per-slot free hours,
day totals and back-to-back task groups.
"""
import logging
import math
from typing import Iterable, List, Optional, Tuple

from .interval_overlap import Interval, clip_to_window, merge_intervals, project_trip, slot_overlaps
from .records import TaskGroup, Trip, VehicleSchedule
from .window_builder import TimeWindow

logger = logging.getLogger(__name__)

ProjectedTrip = Tuple[float, float, Trip]


def round_half_up(value: float) -> int:
    """Round to the nearest whole number, halves away from zero for positives."""
    return int(math.floor(value + 0.5))


class IdleAccumulator:
    """
    Builds VehicleSchedule results.

    Free time is measured against the union of a vehicle's busy intervals,
    so double-booked wall-clock time counts once. Task grouping is a
    separate display concern and never feeds the free-time arithmetic.
    """

    @classmethod
    def project_trips(
        cls, trips: Iterable[Trip], window: TimeWindow
    ) -> Tuple[List[ProjectedTrip], int, int]:
        """
        Project and sort trips on the window axis.

        Trips that do not intersect the window are left out, so the task
        groups and trip list only hold what the free-time totals count.

        Returns:
            Tuple of (projected trips sorted by start, malformed count,
            outside-window count)
        """
        projected: List[ProjectedTrip] = []
        skipped = 0
        outside = 0

        for trip in trips:
            interval = project_trip(trip, window)
            if interval is None:
                skipped += 1
                logger.warning(
                    "Skipping malformed trip for vehicle %s (schedule %s): %r -> %r",
                    trip.vehicle_id,
                    trip.schedule_no or "-",
                    trip.start,
                    trip.end,
                )
                continue
            if clip_to_window(interval[0], interval[1], window) is None:
                outside += 1
                logger.warning(
                    "Skipping trip outside the business day for vehicle %s (schedule %s): %r -> %r",
                    trip.vehicle_id,
                    trip.schedule_no or "-",
                    trip.start,
                    trip.end,
                )
                continue
            projected.append((interval[0], interval[1], trip))

        projected.sort(key=lambda item: (
            item[0], item[1], item[2].schedule_no, item[2].client, item[2].project,
        ))
        return projected, skipped, outside

    @classmethod
    def free_per_slot(cls, busy: Iterable[Interval], window: TimeWindow) -> List[float]:
        """
        Hours of each slot not covered by any busy interval.

        Args:
            busy: Busy intervals on the window axis (may overlap)
            window: Target window

        Returns:
            List parallel to window.slots, each value in [0, slot duration]
        """
        free = [slot.duration for slot in window.slots]

        for start, end in merge_intervals(busy):
            for index, overlap in enumerate(slot_overlaps(start, end, window)):
                if overlap > 0:
                    free[index] = max(0.0, free[index] - overlap)

        return [min(value, slot.duration) for value, slot in zip(free, window.slots)]

    @classmethod
    def group_tasks(cls, projected: List[ProjectedTrip]) -> List[TaskGroup]:
        """
        Merge trips where the next one starts exactly when the current ends.

        Args:
            projected: Trips on the window axis, sorted by start

        Returns:
            List of TaskGroup blocks in start order
        """
        groups: List[TaskGroup] = []
        current_start: Optional[float] = None
        current_end = 0.0
        current_trips: List[Trip] = []

        for start, end, trip in projected:
            if current_start is not None and start == current_end:
                current_end = end
                current_trips.append(trip)
                continue

            if current_start is not None:
                groups.append(TaskGroup(current_start, current_end, tuple(current_trips)))
            current_start, current_end, current_trips = start, end, [trip]

        if current_start is not None:
            groups.append(TaskGroup(current_start, current_end, tuple(current_trips)))

        return groups

    @classmethod
    def aggregate(
        cls,
        trips: Iterable[Trip],
        window: TimeWindow,
        vehicle_id: Optional[str] = None,
        vehicle_type: str = "TM",
        name: str = "",
        plant: str = "",
    ) -> VehicleSchedule:
        """
        Aggregate one vehicle's trips over a window.

        Args:
            trips: The vehicle's trips (any order)
            window: TimeWindow from WindowBuilder
            vehicle_id: Vehicle identifier; defaults to the first trip's
            vehicle_type: TM, LP or BP
            name: Display name
            plant: Plant name

        Returns:
            VehicleSchedule with exact and rounded totals
        """
        trips = list(trips)
        if vehicle_id is None:
            vehicle_id = trips[0].vehicle_id if trips else ""

        projected, skipped, outside = cls.project_trips(trips, window)
        per_slot_free = cls.free_per_slot(
            [(start, end) for start, end, _ in projected], window
        )
        per_slot_busy = [
            slot.duration - free for slot, free in zip(window.slots, per_slot_free)
        ]

        free_hours = sum(per_slot_free)
        busy_hours = window.span - free_hours
        total_free_hours = round_half_up(free_hours)
        idle_percentage = round_half_up(free_hours / window.span * 100)

        return VehicleSchedule(
            vehicle_id=vehicle_id,
            vehicle_type=vehicle_type,
            name=name,
            plant=plant,
            per_slot_free=per_slot_free,
            per_slot_busy=per_slot_busy,
            free_hours=free_hours,
            busy_hours=busy_hours,
            total_free_hours=total_free_hours,
            total_busy_hours=int(window.span) - total_free_hours,
            idle_percentage=idle_percentage,
            used_percentage=100 - idle_percentage,
            grouped_tasks=cls.group_tasks(projected),
            trips=[trip for _, _, trip in projected],
            skipped_trips=skipped,
            outside_window_trips=outside,
        )
