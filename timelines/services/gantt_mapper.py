"""
Gantt Bar Mapper.
Converts task groups to percentage offsets and widths for Gantt rendering.
"""
from typing import Dict, List

from .interval_overlap import clip_to_window
from .records import TaskGroup, VehicleSchedule
from .time_format import format_clock
from .window_builder import TimeWindow


class GanttMapper:
    """
    Maps task groups onto a window for frontend rendering.
    A bar's offset is its distance from the window start as a share of the
    24-hour span; its width is its clipped duration as the same share.
    """

    @classmethod
    def slot_indices(cls, start: float, end: float, window: TimeWindow) -> List[int]:
        """Indices of the slots an interval touches."""
        return [
            slot.index
            for slot in window.slots
            if min(end, slot.end) > max(start, slot.start)
        ]

    @classmethod
    def map_group(cls, group: TaskGroup, window: TimeWindow, time_format: str = "24h") -> Dict:
        """
        Map one task group to a Gantt bar.

        Args:
            group: TaskGroup on the window axis
            window: Target window
            time_format: "12h" or "24h" for the labels

        Returns:
            Bar dictionary, or an empty dict when the group lies outside
            the window
        """
        clipped = clip_to_window(group.start, group.end, window)
        if clipped is None:
            return {}

        start, end = clipped
        span = window.span

        return {
            "start": start,
            "end": end,
            "startLabel": format_clock(group.start, time_format),
            "endLabel": format_clock(group.end, time_format),
            "offsetPercent": round((start - window.start) / span * 100, 4),
            "widthPercent": round((end - start) / span * 100, 4),
            "slotIndices": cls.slot_indices(start, end, window),
            "durationMinutes": int(round(group.duration * 60)),
            "clients": group.clients,
            "scheduleNos": sorted({trip.schedule_no for trip in group.trips if trip.schedule_no}),
            "tripCount": len(group.trips),
        }

    @classmethod
    def map_schedule(cls, schedule: VehicleSchedule, window: TimeWindow, time_format: str = "24h") -> List[Dict]:
        """Map all of a vehicle's task groups, dropping those outside the window."""
        bars = []
        for group in schedule.grouped_tasks:
            bar = cls.map_group(group, window, time_format)
            if bar:
                bars.append(bar)
        return bars
