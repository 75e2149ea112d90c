"""
Fleet Timeline.
Runs the idle-time aggregation for every vehicle of a day and shapes the
results for the Gantt calendars and the truck-wise utilisation report.
"""
from collections import OrderedDict
from typing import Dict, List, Optional

from .gantt_mapper import GanttMapper
from .idle_accumulator import IdleAccumulator, round_half_up
from .interval_overlap import clip_to_window, project_trip
from .records import Trip, VehicleSchedule
from .time_format import format_clock, format_hours_minutes, slot_label
from .window_builder import TimeWindow


class FleetTimeline:
    """Service for fleet-wide timeline aggregation."""

    @classmethod
    def build(
        cls,
        vehicles: List[Dict],
        trips_by_vehicle: Dict[str, List[Trip]],
        window: TimeWindow,
        include_unknown: bool = True,
    ) -> List[VehicleSchedule]:
        """
        Aggregate every vehicle over the window.

        Args:
            vehicles: Vehicle descriptors with vehicle_id and optional
                vehicle_type, name, plant
            trips_by_vehicle: vehicle_id -> trips
            window: TimeWindow shared by all vehicles
            include_unknown: Also report vehicles that only appear in trip data

        Returns:
            One VehicleSchedule per vehicle; known vehicles keep their order,
            unknown ones follow sorted by id
        """
        known = OrderedDict()
        for vehicle in vehicles:
            known.setdefault(str(vehicle["vehicle_id"]), vehicle)

        order = list(known.keys())
        if include_unknown:
            order += sorted(vehicle_id for vehicle_id in trips_by_vehicle if vehicle_id not in known)

        schedules = []
        for vehicle_id in order:
            vehicle = known.get(vehicle_id, {})
            schedules.append(IdleAccumulator.aggregate(
                trips_by_vehicle.get(vehicle_id, []),
                window,
                vehicle_id=vehicle_id,
                vehicle_type=vehicle.get("vehicle_type") or "TM",
                name=vehicle.get("name") or vehicle_id,
                plant=vehicle.get("plant") or "",
            ))
        return schedules

    @classmethod
    def filter(
        cls,
        schedules: List[VehicleSchedule],
        plant: Optional[str] = None,
        vehicle_type: Optional[str] = None,
        client: Optional[str] = None,
        search: Optional[str] = None,
        vehicle_name: Optional[str] = None,
    ) -> List[VehicleSchedule]:
        """
        Narrow schedules by plant, vehicle type, client or name.
        A client filter keeps only vehicles with a trip for that client;
        search is a case-insensitive substring match on the vehicle name.
        """
        needle = (search or "").strip().lower()
        result = []
        for schedule in schedules:
            if plant and schedule.plant != plant:
                continue
            if vehicle_type and schedule.vehicle_type != vehicle_type:
                continue
            if vehicle_name and schedule.name != vehicle_name:
                continue
            if needle and needle not in schedule.name.lower():
                continue
            if client and not any(trip.client == client for trip in schedule.trips):
                continue
            result.append(schedule)
        return result

    @classmethod
    def client_stats(
        cls, schedules: List[VehicleSchedule], window: TimeWindow, time_format: str = "24h"
    ) -> List[Dict]:
        """
        Per-client summary of the scheduled trips.

        Returns:
            One entry per client, sorted by name, with in-window scheduled
            time, distinct vehicles and schedules, and first start / last end
        """
        stats: Dict[str, Dict] = {}
        for schedule in schedules:
            for trip in schedule.trips:
                if not trip.client:
                    continue
                interval = project_trip(trip, window)
                if interval is None:
                    continue
                clipped = clip_to_window(interval[0], interval[1], window)
                if clipped is None:
                    continue

                entry = stats.setdefault(trip.client, {
                    "hours": 0.0,
                    "vehicles": set(),
                    "schedules": set(),
                    "trips": 0,
                    "first_start": clipped[0],
                    "last_end": clipped[1],
                })
                entry["hours"] += clipped[1] - clipped[0]
                entry["vehicles"].add(schedule.vehicle_id)
                if trip.schedule_no:
                    entry["schedules"].add(trip.schedule_no)
                entry["trips"] += 1
                entry["first_start"] = min(entry["first_start"], clipped[0])
                entry["last_end"] = max(entry["last_end"], clipped[1])

        result = []
        for client in sorted(stats):
            entry = stats[client]
            result.append({
                "client": client,
                "totalMinutes": round_half_up(entry["hours"] * 60),
                "totalTime": format_hours_minutes(entry["hours"]),
                "vehicleCount": len(entry["vehicles"]),
                "scheduleCount": len(entry["schedules"]),
                "tripCount": entry["trips"],
                "firstStart": entry["first_start"],
                "lastEnd": entry["last_end"],
                "firstStartLabel": format_clock(entry["first_start"], time_format),
                "lastEndLabel": format_clock(entry["last_end"], time_format),
            })
        return result

    @classmethod
    def gantt_rows(cls, schedules: List[VehicleSchedule], window: TimeWindow, time_format: str = "24h") -> List[Dict]:
        """Rows for the mixer / pump Gantt calendars."""
        rows = []
        for schedule in schedules:
            rows.append({
                "vehicleId": schedule.vehicle_id,
                "name": schedule.name,
                "plant": schedule.plant,
                "vehicleType": schedule.vehicle_type,
                "bars": GanttMapper.map_schedule(schedule, window, time_format),
                "freeHours": schedule.total_free_hours,
                "skippedTrips": schedule.dropped_trips,
                "outsideWindowTrips": schedule.outside_window_trips,
            })
        return rows

    @classmethod
    def engagements(cls, schedule: VehicleSchedule, window: TimeWindow, time_format: str = "24h") -> List[Dict]:
        """
        Per-schedule breakdown of one vehicle's busy time.

        Returns:
            One entry per schedule number, in order of first trip, with the
            client, project, first start / last end labels and per-slot
            used hours for that schedule alone
        """
        by_schedule: Dict[str, List] = OrderedDict()
        for trip in schedule.trips:
            interval = project_trip(trip, window)
            if interval is None:
                continue
            by_schedule.setdefault(trip.schedule_no, []).append((interval, trip))

        result = []
        for schedule_no, items in by_schedule.items():
            intervals = [interval for interval, _ in items]
            free = IdleAccumulator.free_per_slot(intervals, window)
            first_trip = items[0][1]
            result.append({
                "scheduleNo": schedule_no,
                "client": first_trip.client or "-",
                "project": first_trip.project or "-",
                "startLabel": format_clock(min(start for start, _ in intervals), time_format),
                "endLabel": format_clock(max(end for _, end in intervals), time_format),
                "slotUsedHours": [
                    slot.duration - value for slot, value in zip(window.slots, free)
                ],
            })
        return result

    @classmethod
    def truck_wise_report(
        cls, schedules: List[VehicleSchedule], window: TimeWindow, time_format: str = "24h"
    ) -> Dict:
        """
        Build the truck-wise utilisation report.

        Returns:
            Dict with:
                - slots: slot index and label
                - rows: per vehicle used hours per slot, totals and engagements
                - slotTotals: used hours per slot summed over all vehicles
        """
        slot_totals = [0.0] * len(window.slots)
        rows = []

        for schedule in schedules:
            for index, used in enumerate(schedule.per_slot_busy):
                slot_totals[index] += used

            rows.append({
                "vehicleId": schedule.vehicle_id,
                "name": schedule.name,
                "vehicleType": schedule.vehicle_type,
                "plant": schedule.plant,
                "slotUsedHours": schedule.per_slot_busy,
                "slotUsed": [format_hours_minutes(used) for used in schedule.per_slot_busy],
                "totalUsed": format_hours_minutes(schedule.busy_hours),
                "totalUnused": format_hours_minutes(schedule.free_hours),
                "usedPercent": schedule.used_percentage,
                "engagements": cls.engagements(schedule, window, time_format),
                "skippedTrips": schedule.dropped_trips,
                "outsideWindowTrips": schedule.outside_window_trips,
            })

        return {
            "slots": [
                {"index": slot.index, "label": slot_label(slot, time_format)}
                for slot in window.slots
            ],
            "rows": rows,
            "slotTotals": slot_totals,
            "slotTotalsFormatted": [format_hours_minutes(total) for total in slot_totals],
        }
