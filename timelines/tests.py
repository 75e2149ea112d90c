"""
Tests for timelines app.
"""
import random
from datetime import date, datetime, timezone as dt_timezone
from unittest.mock import patch, MagicMock

import requests
from django.test import SimpleTestCase, override_settings
from django.urls import reverse
from rest_framework.test import APIClient

from .services.fleet_report import FleetTimeline
from .services.gantt_client import GanttClient, SchedulingAPIError
from .services.gantt_mapper import GanttMapper
from .services.idle_accumulator import IdleAccumulator, round_half_up
from .services.interval_overlap import (
    merge_intervals,
    overlap_hours,
    project_trip,
    slot_overlaps,
    to_axis_hours,
)
from .services.records import TaskGroup, Trip
from .services.time_format import format_clock, format_hours_minutes, slot_label
from .services.trip_loader import TripLoader
from .services.window_builder import InvalidArgument, WindowBuilder


def utc(*args):
    return datetime(*args, tzinfo=dt_timezone.utc)


class WindowBuilderTests(SimpleTestCase):
    """Tests for the business-day window builder."""

    def test_hourly_window_wraps_past_midnight(self):
        """Test that a 07:00 window runs to 07:00 the next day."""
        window = WindowBuilder.build_window(7)

        self.assertEqual(len(window.slots), 24)
        self.assertEqual(window.slots[0].start, 7.0)
        self.assertEqual(window.slots[0].end, 8.0)
        self.assertEqual(window.slots[-1].start, 30.0)
        self.assertEqual(window.slots[-1].clock_start, 6.0)
        self.assertEqual(window.slots[-1].clock_end, 7.0)
        self.assertEqual(window.span, 24.0)

    def test_four_hour_window(self):
        """Test 6 slots of 4 hours each."""
        window = WindowBuilder.build_window(7, "four_hour")

        self.assertEqual(len(window.slots), 6)
        self.assertEqual([slot.start for slot in window.slots], [7.0, 11.0, 15.0, 19.0, 23.0, 27.0])
        self.assertEqual(slot_label(window.slots[0], "24h"), "07:00 - 11:00")
        self.assertEqual(slot_label(window.slots[-1], "24h"), "03:00 - 07:00")

    def test_slot_count_granularity(self):
        """Test that slot counts select the matching granularity."""
        self.assertEqual(WindowBuilder.build_window(0, 24).granularity, "hourly")
        self.assertEqual(WindowBuilder.build_window(0, 6).granularity, "four_hour")

        with self.assertRaises(InvalidArgument):
            WindowBuilder.build_window(0, 12)
        with self.assertRaises(InvalidArgument):
            WindowBuilder.build_window(0, "daily")

    def test_window_coverage_for_every_start_hour(self):
        """Test that every window starts at its hour and spans 24 contiguous hours."""
        for granularity in ("hourly", "four_hour"):
            for start_hour in range(24):
                window = WindowBuilder.build_window(start_hour, granularity)

                self.assertEqual(window.slots[0].start, start_hour)
                self.assertEqual(window.span, 24.0)
                for previous, current in zip(window.slots, window.slots[1:]):
                    self.assertEqual(previous.end, current.start)

    def test_invalid_start_hour(self):
        """Test that out-of-range start hours are rejected, not clamped."""
        for value in (-1, 24, 7.5, True, "7", None):
            with self.assertRaises(InvalidArgument):
                WindowBuilder.build_window(value)

        # InvalidArgument is a ValueError
        with self.assertRaises(ValueError):
            WindowBuilder.build_window(30)


class IntervalOverlapTests(SimpleTestCase):
    """Tests for interval overlap arithmetic."""

    def test_trip_inside_slot(self):
        self.assertEqual(overlap_hours(8.25, 8.75, 8.0, 9.0), 0.5)

    def test_partial_overlap_is_clamped(self):
        """Test trips that start before or end after the slot."""
        self.assertEqual(overlap_hours(6.0, 8.5, 8.0, 9.0), 0.5)
        self.assertEqual(overlap_hours(8.5, 12.0, 8.0, 9.0), 0.5)
        self.assertEqual(overlap_hours(6.0, 12.0, 8.0, 9.0), 1.0)
        self.assertEqual(overlap_hours(10.0, 12.0, 8.0, 9.0), 0.0)

    def test_degenerate_ranges_overlap_nothing(self):
        self.assertEqual(overlap_hours(9.0, 9.0, 8.0, 10.0), 0.0)
        self.assertEqual(overlap_hours(10.0, 9.0, 8.0, 12.0), 0.0)
        self.assertEqual(overlap_hours(8.0, 10.0, 9.0, 8.0), 0.0)

    def test_overlap_bounds(self):
        """Test 0 <= overlap <= min(trip duration, slot duration) for all inputs."""
        values = [-2.0, 0.0, 1.5, 3.0, 7.0, 23.5, 24.0, 25.5]
        for a in values:
            for b in values:
                for c in values:
                    for d in values:
                        result = overlap_hours(a, b, c, d)
                        self.assertGreaterEqual(result, 0.0)
                        self.assertLessEqual(result, max(0.0, min(b - a, d - c)))

    def test_spanning_trip_shares_sum_to_duration(self):
        """Test that a multi-slot trip distributes exactly its duration."""
        window = WindowBuilder.build_window(7)
        overlaps = slot_overlaps(8.5, 12.25, window)

        self.assertAlmostEqual(sum(overlaps), 3.75)
        self.assertEqual(overlaps[1], 0.5)
        self.assertEqual(overlaps[5], 0.25)

    def test_trip_longer_than_window(self):
        window = WindowBuilder.build_window(7, "four_hour")
        self.assertAlmostEqual(sum(slot_overlaps(-5.0, 40.0, window)), 24.0)

    def test_midnight_wrap(self):
        """Test a 23:00-01:00 trip against a window starting at 22:00."""
        window = WindowBuilder.build_window(22)
        overlaps = slot_overlaps(23.0, 25.0, window)

        self.assertEqual(overlaps[1], 1.0)  # 23-24
        self.assertEqual(overlaps[2], 1.0)  # 00-01
        self.assertEqual(sum(overlaps), 2.0)
        self.assertEqual([i for i, value in enumerate(overlaps) if value > 0], [1, 2])

    def test_project_time_of_day_trips(self):
        """Test projection of hour-of-day trips onto the window axis."""
        window = WindowBuilder.build_window(7)

        self.assertEqual(project_trip(Trip("tm-1", 8.0, 10.5), window), (8.0, 10.5))
        # Before the window start: next morning
        self.assertEqual(project_trip(Trip("tm-1", 2.0, 3.0), window), (26.0, 27.0))
        # Started before the window start but still running at it
        self.assertEqual(project_trip(Trip("tm-1", 5.0, 8.0), window), (5.0, 8.0))
        # Crosses midnight
        self.assertEqual(project_trip(Trip("tm-1", 23.0, 1.0), window), (23.0, 25.0))
        # Zero duration
        self.assertIsNone(project_trip(Trip("tm-1", 9.0, 9.0), window))

    def test_project_absolute_trips(self):
        """Test projection of timestamps relative to the anchor date."""
        window = WindowBuilder.build_window(7, anchor_date=date(2025, 10, 14))

        overnight = Trip("tm-1", utc(2025, 10, 14, 23, 0), utc(2025, 10, 15, 1, 0))
        self.assertEqual(project_trip(overnight, window), (23.0, 25.0))

        previous_day = Trip("tm-1", utc(2025, 10, 13, 22, 0), utc(2025, 10, 14, 9, 0))
        self.assertEqual(project_trip(previous_day, window), (-2.0, 9.0))

        reversed_trip = Trip("tm-1", utc(2025, 10, 14, 9, 0), utc(2025, 10, 14, 8, 0))
        self.assertIsNone(project_trip(reversed_trip, window))

    def test_datetime_without_anchor_uses_time_of_day(self):
        window = WindowBuilder.build_window(7)
        self.assertEqual(to_axis_hours(utc(2025, 10, 14, 8, 30), window), 8.5)

    def test_multi_day_trip_without_anchor_keeps_duration(self):
        """Test that a 25-hour trip is not folded into one hour."""
        window = WindowBuilder.build_window(7)
        trip = Trip("tm-1", utc(2025, 10, 14, 8, 0), utc(2025, 10, 15, 9, 0))

        self.assertEqual(project_trip(trip, window), (8.0, 33.0))

        schedule = IdleAccumulator.aggregate([trip], window)
        self.assertEqual(schedule.busy_hours, 23.0)
        self.assertEqual(schedule.per_slot_free[0], 1.0)

    def test_merge_intervals(self):
        merged = merge_intervals([(10.0, 12.0), (9.0, 11.0), (13.0, 14.0), (12.0, 12.5)])
        self.assertEqual(merged, [(9.0, 12.5), (13.0, 14.0)])


class IdleAccumulatorTests(SimpleTestCase):
    """Tests for idle-time aggregation."""

    def setUp(self):
        self.window = WindowBuilder.build_window(7)

    def test_single_trip_scenario(self):
        """Test one 08:00-10:30 trip in a 07:00 window."""
        schedule = IdleAccumulator.aggregate([Trip("tm-1", 8.0, 10.5)], self.window)

        self.assertEqual(schedule.vehicle_id, "tm-1")
        self.assertEqual(schedule.per_slot_free[:4], [1.0, 0.0, 0.0, 0.5])
        self.assertEqual(schedule.per_slot_free[4:], [1.0] * 20)
        self.assertEqual(schedule.free_hours, 21.5)
        self.assertEqual(schedule.busy_hours, 2.5)
        self.assertEqual(schedule.total_free_hours, 22)
        self.assertEqual(schedule.total_busy_hours, 2)
        self.assertEqual(schedule.per_slot_busy[3], 0.5)

    def test_no_trips(self):
        """Test that a vehicle without trips is fully idle."""
        schedule = IdleAccumulator.aggregate([], self.window, vehicle_id="tm-2")

        self.assertEqual(schedule.total_free_hours, 24)
        self.assertEqual(schedule.total_busy_hours, 0)
        self.assertEqual(schedule.per_slot_free, [1.0] * 24)
        self.assertEqual(schedule.grouped_tasks, [])
        self.assertEqual(schedule.idle_percentage, 100)
        self.assertEqual(schedule.dropped_trips, 0)

    def test_back_to_back_trips_group(self):
        """Test that zero-gap trips form one block and are not double-subtracted."""
        trips = [Trip("tm-1", 10.0, 11.0, schedule_no="S-2"), Trip("tm-1", 9.0, 10.0, schedule_no="S-1")]
        schedule = IdleAccumulator.aggregate(trips, self.window)

        self.assertEqual(len(schedule.grouped_tasks), 1)
        group = schedule.grouped_tasks[0]
        self.assertEqual((group.start, group.end), (9.0, 11.0))
        self.assertEqual([trip.schedule_no for trip in group.trips], ["S-1", "S-2"])
        self.assertEqual(schedule.free_hours, 22.0)
        self.assertEqual(schedule.total_free_hours, 22)

    def test_gap_keeps_groups_apart(self):
        trips = [Trip("tm-1", 9.0, 10.0), Trip("tm-1", 10.25, 11.0)]
        schedule = IdleAccumulator.aggregate(trips, self.window)
        self.assertEqual(len(schedule.grouped_tasks), 2)

    def test_overlapping_trips_counted_once(self):
        """Test 09:00-11:00 and 10:00-12:00 give 3 busy hours, not 4."""
        trips = [Trip("tm-1", 9.0, 11.0), Trip("tm-1", 10.0, 12.0)]
        schedule = IdleAccumulator.aggregate(trips, self.window)

        self.assertEqual(schedule.busy_hours, 3.0)
        self.assertEqual(schedule.total_free_hours, 21)
        self.assertEqual(len(schedule.grouped_tasks), 2)

    def test_overlapping_trips_in_four_hour_slots(self):
        """Test partial double booking inside one coarse slot."""
        window = WindowBuilder.build_window(7, "four_hour")
        trips = [Trip("tm-1", 9.0, 11.0), Trip("tm-1", 10.0, 12.0)]
        schedule = IdleAccumulator.aggregate(trips, window)

        self.assertEqual(schedule.per_slot_free[0], 2.0)
        self.assertEqual(schedule.per_slot_free[1], 3.0)
        self.assertEqual(schedule.total_free_hours, 21)

    def test_conservation_for_non_overlapping_trips(self):
        """Test free hours == 24 - busy hours for random disjoint trips."""
        for seed in range(25):
            rng = random.Random(seed)
            points = sorted(rng.uniform(7.0, 31.0) for _ in range(2 * rng.randint(1, 6)))
            trips = [
                Trip("tm-1", points[i], points[i + 1])
                for i in range(0, len(points), 2)
                if points[i + 1] > points[i]
            ]
            busy = sum(trip.end - trip.start for trip in trips)

            for granularity in ("hourly", "four_hour"):
                window = WindowBuilder.build_window(7, granularity)
                schedule = IdleAccumulator.aggregate(trips, window)
                self.assertAlmostEqual(schedule.free_hours, 24.0 - busy, places=9)
                for free, slot in zip(schedule.per_slot_free, window.slots):
                    self.assertGreaterEqual(free, 0.0)
                    self.assertLessEqual(free, slot.duration)

    def test_wrap_around_trip(self):
        """Test a trip from 23:00 to 01:00 in a 22:00 window."""
        window = WindowBuilder.build_window(22)
        schedule = IdleAccumulator.aggregate([Trip("tm-1", 23.0, 1.0)], window)

        self.assertEqual(schedule.per_slot_free[0], 1.0)
        self.assertEqual(schedule.per_slot_free[1], 0.0)
        self.assertEqual(schedule.per_slot_free[2], 0.0)
        self.assertEqual(sum(schedule.per_slot_free[3:]), 21.0)

    def test_malformed_trips_are_skipped(self):
        """Test that malformed trips are counted and logged, not raised."""
        trips = [
            Trip("tm-1", 8.0, 10.5),
            Trip("tm-1", 9.0, 9.0),
            Trip("tm-1", utc(2025, 10, 14, 12, 0), utc(2025, 10, 14, 11, 0)),
        ]

        with self.assertLogs("timelines", level="WARNING") as logs:
            schedule = IdleAccumulator.aggregate(trips, self.window)

        self.assertEqual(schedule.skipped_trips, 2)
        self.assertEqual(len(logs.records), 2)
        self.assertEqual(schedule.free_hours, 21.5)
        self.assertEqual(len(schedule.trips), 1)

    def test_absolute_trip_from_previous_day_is_clipped(self):
        window = WindowBuilder.build_window(7, anchor_date=date(2025, 10, 14))
        trip = Trip("tm-1", utc(2025, 10, 13, 22, 0), utc(2025, 10, 14, 9, 0))
        schedule = IdleAccumulator.aggregate([trip], window)

        self.assertEqual(schedule.busy_hours, 2.0)
        self.assertEqual(schedule.per_slot_free[:3], [0.0, 0.0, 1.0])

    def test_absolute_trip_outside_window_is_excluded(self):
        """Test that a 02:00-04:00 trip on the anchor date misses a 07:00 day."""
        window = WindowBuilder.build_window(7, anchor_date=date(2025, 10, 14))
        trips = [
            Trip("tm-1", utc(2025, 10, 14, 2, 0), utc(2025, 10, 14, 4, 0), schedule_no="S-9"),
            Trip("tm-1", utc(2025, 10, 14, 8, 0), utc(2025, 10, 14, 9, 0), schedule_no="S-1"),
        ]

        with self.assertLogs("timelines", level="WARNING") as logs:
            schedule = IdleAccumulator.aggregate(trips, window)

        self.assertEqual(len(logs.records), 1)
        self.assertEqual(schedule.busy_hours, 1.0)
        self.assertEqual(schedule.outside_window_trips, 1)
        self.assertEqual(schedule.skipped_trips, 0)
        self.assertEqual(schedule.dropped_trips, 1)
        self.assertEqual([trip.schedule_no for trip in schedule.trips], ["S-1"])
        self.assertEqual(len(schedule.grouped_tasks), 1)
        self.assertEqual(schedule.grouped_tasks[0].start, 8.0)

    def test_aggregate_is_deterministic(self):
        """Test that repeated and reordered calls give identical results."""
        trips = [
            Trip("tm-1", 14.0, 15.5, client="B"),
            Trip("tm-1", 8.0, 10.5, client="A"),
            Trip("tm-1", 10.5, 12.0, client="A"),
        ]

        first = IdleAccumulator.aggregate(trips, self.window)
        second = IdleAccumulator.aggregate(trips, self.window)
        reordered = IdleAccumulator.aggregate(list(reversed(trips)), self.window)

        self.assertEqual(first, second)
        self.assertEqual(first, reordered)

    def test_round_half_up(self):
        self.assertEqual(round_half_up(21.5), 22)
        self.assertEqual(round_half_up(22.5), 23)
        self.assertEqual(round_half_up(21.49), 21)


@override_settings(TIME_ZONE="UTC")
class TripLoaderTests(SimpleTestCase):
    """Tests for trip record parsing."""

    def test_parse_time_of_day(self):
        self.assertEqual(TripLoader.parse_timestamp("08:30"), 8.5)
        self.assertAlmostEqual(TripLoader.parse_timestamp("09:12 PM"), 21.2)
        self.assertEqual(TripLoader.parse_timestamp("12:00 AM"), 0.0)
        self.assertEqual(TripLoader.parse_timestamp("12:15 PM"), 12.25)
        self.assertIsNone(TripLoader.parse_timestamp("25:00"))
        self.assertIsNone(TripLoader.parse_timestamp("13:00 PM"))
        self.assertIsNone(TripLoader.parse_timestamp("garbage"))

    def test_parse_numbers(self):
        self.assertEqual(TripLoader.parse_timestamp(7.5), 7.5)
        self.assertIsNone(TripLoader.parse_timestamp(True))
        self.assertIsNone(TripLoader.parse_timestamp(-1))
        self.assertIsNone(TripLoader.parse_timestamp(None))

    def test_parse_iso_timestamps(self):
        """Test that timestamps come back aware in the current time zone."""
        aware = TripLoader.parse_timestamp("2025-10-14T10:00:00+02:00")
        self.assertEqual(aware.hour, 8)
        self.assertIsNotNone(aware.tzinfo)

        naive = TripLoader.parse_timestamp("2025-10-14T08:00:00")
        self.assertEqual(naive.hour, 8)
        self.assertIsNotNone(naive.tzinfo)

    def test_load_groups_and_skips(self):
        """Test grouping by vehicle and skipping unreadable records."""
        records = [
            {"vehicle_id": "tm-1", "start": "08:00", "end": "10:30", "client": "Acme", "schedule_no": 101},
            {"vehicle_id": "tm-2", "start": "2025-10-14T08:00:00", "end": "2025-10-14T09:00:00"},
            {"vehicle_id": "tm-1", "start": "11:00", "end": "12:00"},
            {"vehicle_id": "", "start": "08:00", "end": "09:00"},
            {"vehicle_id": "tm-3", "start": "not a time", "end": "09:00"},
            {"vehicle_id": "tm-3", "start": "2025-10-14T08:00:00", "end": "09:00"},
        ]

        with self.assertLogs("timelines", level="WARNING"):
            trips_by_vehicle, skipped = TripLoader.load(records)

        self.assertEqual(list(trips_by_vehicle.keys()), ["tm-1", "tm-2"])
        self.assertEqual(len(trips_by_vehicle["tm-1"]), 2)
        self.assertEqual(trips_by_vehicle["tm-1"][0].schedule_no, "101")
        self.assertEqual([item["index"] for item in skipped], [3, 4, 5])
        self.assertEqual(skipped[0]["reason"], "missing vehicle id")
        self.assertEqual(skipped[1]["reason"], "unparseable timestamp")


class TimeFormatTests(SimpleTestCase):
    """Tests for clock formatting."""

    def test_format_clock(self):
        self.assertEqual(format_clock(19.5, "12h"), "07:30 PM")
        self.assertEqual(format_clock(0, "12h"), "12:00 AM")
        self.assertEqual(format_clock(12, "12h"), "12:00 PM")
        self.assertEqual(format_clock(31, "24h"), "07:00")
        self.assertEqual(format_clock(24, "24h"), "00:00")

    def test_format_hours_minutes(self):
        self.assertEqual(format_hours_minutes(2.5), "02:30")
        self.assertEqual(format_hours_minutes(21.75), "21:45")
        self.assertEqual(format_hours_minutes(-1), "00:00")

    def test_invalid_time_format(self):
        with self.assertRaises(InvalidArgument):
            format_clock(8, "am-pm")


class GanttMapperTests(SimpleTestCase):
    """Tests for Gantt bar mapping."""

    def setUp(self):
        self.window = WindowBuilder.build_window(7)

    def test_map_group(self):
        trip = Trip("tm-1", 8.0, 10.5, client="Acme", schedule_no="S-1")
        bar = GanttMapper.map_group(TaskGroup(8.0, 10.5, (trip,)), self.window)

        self.assertEqual(bar["offsetPercent"], 4.1667)
        self.assertEqual(bar["widthPercent"], 10.4167)
        self.assertEqual(bar["slotIndices"], [1, 2, 3])
        self.assertEqual(bar["durationMinutes"], 150)
        self.assertEqual(bar["clients"], ["Acme"])
        self.assertEqual(bar["startLabel"], "08:00")

    def test_group_outside_window(self):
        self.assertEqual(GanttMapper.map_group(TaskGroup(40.0, 41.0), self.window), {})

    def test_group_clipped_at_window_start(self):
        bar = GanttMapper.map_group(TaskGroup(-1.0, 8.0), self.window)

        self.assertEqual(bar["offsetPercent"], 0.0)
        self.assertEqual(bar["widthPercent"], 4.1667)
        self.assertEqual(bar["slotIndices"], [0])


class FleetTimelineTests(SimpleTestCase):
    """Tests for fleet aggregation and the truck-wise report."""

    def setUp(self):
        self.vehicles = [
            {"vehicle_id": "tm-1", "vehicle_type": "TM", "name": "KA-01", "plant": "North"},
            {"vehicle_id": "p-1", "vehicle_type": "BP", "name": "Boom 1", "plant": "South"},
        ]
        self.trips = {
            "tm-1": [
                Trip("tm-1", 8.0, 10.5, client="Acme", project="Tower A", schedule_no="S-1"),
                Trip("tm-1", 12.0, 13.0, client="Zen", project="Mall", schedule_no="S-2"),
            ],
            "tm-9": [Trip("tm-9", 9.0, 10.0, client="Acme", schedule_no="S-1")],
        }

    def test_build_orders_known_then_unknown(self):
        window = WindowBuilder.build_window(7)
        schedules = FleetTimeline.build(self.vehicles, self.trips, window)

        self.assertEqual([s.vehicle_id for s in schedules], ["tm-1", "p-1", "tm-9"])
        self.assertEqual(schedules[1].total_free_hours, 24)
        self.assertEqual(schedules[2].vehicle_type, "TM")

        known_only = FleetTimeline.build(self.vehicles, self.trips, window, include_unknown=False)
        self.assertEqual(len(known_only), 2)

    def test_filter(self):
        window = WindowBuilder.build_window(7)
        schedules = FleetTimeline.build(self.vehicles, self.trips, window)

        self.assertEqual([s.vehicle_id for s in FleetTimeline.filter(schedules, vehicle_type="BP")], ["p-1"])
        self.assertEqual([s.vehicle_id for s in FleetTimeline.filter(schedules, plant="North")], ["tm-1"])
        self.assertEqual(
            [s.vehicle_id for s in FleetTimeline.filter(schedules, client="Acme")], ["tm-1", "tm-9"]
        )

    def test_filter_by_name(self):
        window = WindowBuilder.build_window(7)
        schedules = FleetTimeline.build(self.vehicles, self.trips, window)

        self.assertEqual([s.vehicle_id for s in FleetTimeline.filter(schedules, search="boom")], ["p-1"])
        self.assertEqual([s.vehicle_id for s in FleetTimeline.filter(schedules, search="TM-9")], ["tm-9"])
        self.assertEqual(
            [s.vehicle_id for s in FleetTimeline.filter(schedules, vehicle_name="KA-01")], ["tm-1"]
        )
        self.assertEqual(FleetTimeline.filter(schedules, vehicle_name="KA"), [])

    def test_client_stats(self):
        """Test per-client scheduled time, vehicles and schedules."""
        window = WindowBuilder.build_window(7)
        schedules = FleetTimeline.build(self.vehicles, self.trips, window)
        stats = FleetTimeline.client_stats(schedules, window, "24h")

        self.assertEqual([entry["client"] for entry in stats], ["Acme", "Zen"])
        acme = stats[0]
        self.assertEqual(acme["totalMinutes"], 210)
        self.assertEqual(acme["totalTime"], "03:30")
        self.assertEqual(acme["vehicleCount"], 2)
        self.assertEqual(acme["scheduleCount"], 1)
        self.assertEqual(acme["tripCount"], 2)
        self.assertEqual(acme["firstStartLabel"], "08:00")
        self.assertEqual(acme["lastEndLabel"], "10:30")
        self.assertEqual(stats[1]["totalMinutes"], 60)

    def test_trips_outside_window_leave_report_and_filters(self):
        window = WindowBuilder.build_window(7, "four_hour", anchor_date=date(2025, 10, 14))
        trips = {
            "tm-1": [
                Trip("tm-1", utc(2025, 10, 14, 2, 0), utc(2025, 10, 14, 4, 0), client="Late", schedule_no="S-9"),
                Trip("tm-1", utc(2025, 10, 14, 8, 0), utc(2025, 10, 14, 10, 0), client="Acme", schedule_no="S-1"),
            ],
        }
        schedules = FleetTimeline.build(self.vehicles[:1], trips, window)
        row = FleetTimeline.truck_wise_report(schedules, window)["rows"][0]

        self.assertEqual([e["scheduleNo"] for e in row["engagements"]], ["S-1"])
        self.assertEqual(row["skippedTrips"], 1)
        self.assertEqual(row["outsideWindowTrips"], 1)
        self.assertEqual(FleetTimeline.filter(schedules, client="Late"), [])
        self.assertEqual(
            [entry["client"] for entry in FleetTimeline.client_stats(schedules, window)], ["Acme"]
        )

    def test_truck_wise_report(self):
        """Test per-slot used hours, totals and engagements."""
        window = WindowBuilder.build_window(7, "four_hour")
        schedules = FleetTimeline.build(self.vehicles, self.trips, window)
        report = FleetTimeline.truck_wise_report(schedules, window, "24h")

        self.assertEqual(report["slots"][0]["label"], "07:00 - 11:00")
        row = report["rows"][0]
        self.assertEqual(row["slotUsedHours"][:2], [2.5, 1.0])
        self.assertEqual(row["totalUsed"], "03:30")
        self.assertEqual(row["totalUnused"], "20:30")
        self.assertEqual(row["usedPercent"], 15)
        self.assertEqual([e["scheduleNo"] for e in row["engagements"]], ["S-1", "S-2"])
        self.assertEqual(row["engagements"][0]["startLabel"], "08:00")
        self.assertEqual(row["engagements"][0]["endLabel"], "10:30")
        self.assertEqual(row["engagements"][1]["slotUsedHours"][:2], [0.0, 1.0])
        self.assertEqual(report["slotTotals"][0], 3.5)
        self.assertEqual(report["slotTotalsFormatted"][0], "03:30")

    def test_gantt_rows(self):
        window = WindowBuilder.build_window(7)
        schedules = FleetTimeline.build(self.vehicles, self.trips, window)
        rows = FleetTimeline.gantt_rows(schedules, window)

        self.assertEqual(len(rows[0]["bars"]), 2)
        self.assertEqual(rows[1]["bars"], [])
        self.assertEqual(rows[0]["freeHours"], 21)


GANTT_PAYLOAD = {
    "success": True,
    "message": "ok",
    "data": {
        "mixers": [
            {
                "id": "tm-1",
                "name": "KA-01",
                "plant": "North",
                "tasks": [
                    {
                        "id": "t1",
                        "start": "2025-10-14T08:00:00+05:30",
                        "end": "2025-10-14T10:30:00+05:30",
                        "client": "Acme",
                        "project": "Tower A",
                        "schedule_no": "S-1",
                    }
                ],
            }
        ],
        "pumps": [
            {"id": "p-1", "name": "Boom 1", "plant": "South", "type": "boom", "tasks": []},
            {"id": "p-2", "name": "Line 1", "plant": "North", "type": "line", "tasks": []},
        ],
    },
}


@override_settings(SCHEDULING_API_BASE_URL="http://scheduler.test/api/", SCHEDULING_API_TIMEOUT=5)
class GanttClientTests(SimpleTestCase):
    """Tests for the scheduling backend client."""

    @patch("timelines.services.gantt_client.requests.post")
    def test_fetch_fleet_success(self, mock_post):
        """Test fetching and flattening mixers and pumps."""
        mock_response = MagicMock()
        mock_response.json.return_value = GANTT_PAYLOAD
        mock_response.raise_for_status = MagicMock()
        mock_post.return_value = mock_response

        vehicles, records = GanttClient.fetch_fleet(date(2025, 10, 14), authorization="Bearer abc")

        args, kwargs = mock_post.call_args
        self.assertEqual(args[0], "http://scheduler.test/api/calendar/gantt")
        self.assertEqual(kwargs["json"], {"query_date": "2025-10-14"})
        self.assertEqual(kwargs["headers"]["Authorization"], "Bearer abc")
        self.assertEqual(kwargs["timeout"], 5)

        self.assertEqual([v["vehicle_type"] for v in vehicles], ["TM", "BP", "LP"])
        self.assertEqual(len(records), 1)
        self.assertEqual(records[0]["schedule_no"], "S-1")

    @patch("timelines.services.gantt_client.requests.post")
    def test_fetch_fleet_from_start_hour(self, mock_post):
        """Test that the query covers the business day, not the calendar day."""
        mock_response = MagicMock()
        mock_response.json.return_value = GANTT_PAYLOAD
        mock_response.raise_for_status = MagicMock()
        mock_post.return_value = mock_response

        GanttClient.fetch_fleet(date(2025, 10, 14), start_hour=7)

        _, kwargs = mock_post.call_args
        self.assertEqual(kwargs["json"], {"query_date": "2025-10-14T07:00:00"})
        self.assertNotIn("Authorization", kwargs["headers"])

    @patch("timelines.services.gantt_client.requests.post")
    def test_request_failure(self, mock_post):
        mock_post.side_effect = requests.ConnectionError("connection refused")

        with self.assertRaises(SchedulingAPIError):
            GanttClient.fetch_gantt(date(2025, 10, 14))

    @patch("timelines.services.gantt_client.requests.post")
    def test_unsuccessful_envelope(self, mock_post):
        mock_response = MagicMock()
        mock_response.json.return_value = {"success": False, "message": "No data"}
        mock_response.raise_for_status = MagicMock()
        mock_post.return_value = mock_response

        with self.assertRaisesMessage(SchedulingAPIError, "No data"):
            GanttClient.fetch_gantt(date(2025, 10, 14))


@override_settings(TIME_ZONE="Asia/Kolkata", TIMELINE_DEFAULT_START_HOUR=7, TIMELINE_DEFAULT_TIME_FORMAT="24h")
class TimelineAPITests(SimpleTestCase):
    """Tests for the HTTP endpoints."""

    def setUp(self):
        self.client = APIClient()

    def test_health_check(self):
        response = self.client.get(reverse("timelines:health-check"))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["status"], "healthy")

    def test_window_endpoint(self):
        response = self.client.get(
            reverse("timelines:timeline-window"),
            {"startHour": 7, "granularity": "four_hour", "timeFormat": "12h"},
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.data["slots"]), 6)
        self.assertEqual(response.data["slots"][0]["label"], "07:00 AM - 11:00 AM")

    def test_window_endpoint_rejects_bad_hour(self):
        response = self.client.get(reverse("timelines:timeline-window"), {"startHour": 24})
        self.assertEqual(response.status_code, 400)
        self.assertIn("startHour", response.data)

    def test_aggregate_endpoint(self):
        """Test aggregation of time-of-day and timestamp trips."""
        payload = {
            "date": "2025-10-14",
            "vehicles": [{"vehicleId": "tm-1", "name": "KA-01"}],
            "trips": [
                {"vehicleId": "tm-1", "start": "2025-10-14T08:00:00+05:30", "end": "2025-10-14T10:30:00+05:30"},
                {"vehicleId": "tm-2", "start": "09:00", "end": "10:00", "scheduleNo": "S-1"},
                {"vehicleId": "tm-2", "start": "10:00", "end": "11:00", "scheduleNo": "S-2"},
                {"vehicleId": "tm-2", "start": "bad", "end": "11:00"},
            ],
        }

        response = self.client.post(reverse("timelines:timeline-aggregate"), payload, format="json")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["window"]["startHour"], 7)

        tm1, tm2 = response.data["vehicles"]
        self.assertEqual(tm1["perSlotFree"][:4], [1.0, 0.0, 0.0, 0.5])
        self.assertEqual(tm1["totals"]["freeHours"], 22)
        self.assertEqual(tm1["totals"]["freeHoursExact"], 21.5)
        self.assertEqual(len(tm1["bars"]), 1)

        self.assertEqual(tm2["totals"]["freeHours"], 22)
        self.assertEqual(len(tm2["groupedTasks"]), 1)
        self.assertEqual(tm2["groupedTasks"][0]["scheduleNos"], ["S-1", "S-2"])
        self.assertEqual(response.data["meta"]["skippedTrips"], 1)

    def test_aggregate_rejects_bad_start_hour(self):
        response = self.client.post(
            reverse("timelines:timeline-aggregate"), {"startHour": -1, "trips": []}, format="json"
        )
        self.assertEqual(response.status_code, 400)

    @patch("timelines.views.GanttClient.fetch_gantt")
    def test_gantt_endpoint(self, mock_fetch):
        mock_fetch.return_value = GANTT_PAYLOAD["data"]

        response = self.client.post(
            reverse("timelines:timeline-gantt"), {"date": "2025-10-14", "plant": "North"}, format="json"
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual([row["vehicleId"] for row in response.data["rows"]], ["tm-1", "p-2"])
        self.assertEqual(response.data["rows"][0]["bars"][0]["slotIndices"], [1, 2, 3])
        self.assertEqual(response.data["rows"][0]["freeHours"], 22)

    @patch("timelines.views.GanttClient.fetch_gantt")
    def test_gantt_endpoint_upstream_failure(self, mock_fetch):
        mock_fetch.side_effect = SchedulingAPIError("Scheduling backend request failed: timeout")

        response = self.client.post(reverse("timelines:timeline-gantt"), {"date": "2025-10-14"}, format="json")

        self.assertEqual(response.status_code, 502)
        self.assertIn("error", response.data)

    @patch("timelines.views.GanttClient.fetch_gantt")
    def test_truck_wise_report_endpoint(self, mock_fetch):
        mock_fetch.return_value = GANTT_PAYLOAD["data"]

        response = self.client.post(
            reverse("timelines:truck-wise-report"), {"date": "2025-10-14", "vehicleType": "TM"}, format="json"
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.data["slots"]), 6)
        self.assertEqual(len(response.data["rows"]), 1)
        self.assertEqual(response.data["rows"][0]["slotUsed"][0], "02:30")
        self.assertEqual(response.data["rows"][0]["usedPercent"], 10)
        self.assertEqual(response.data["date"], "2025-10-14")

    @patch("timelines.views.GanttClient.fetch_gantt")
    def test_truck_wise_report_covers_next_morning(self, mock_fetch):
        """Test that the report asks for the business day and fills its last slots."""
        mock_fetch.return_value = {
            "mixers": [
                {
                    "id": "tm-1",
                    "name": "KA-01",
                    "plant": "North",
                    "tasks": [
                        {
                            "start": "2025-10-15T02:00:00+05:30",
                            "end": "2025-10-15T04:00:00+05:30",
                            "client": "Acme",
                            "schedule_no": "S-7",
                        },
                        {
                            "start": "2025-10-14T02:00:00+05:30",
                            "end": "2025-10-14T04:00:00+05:30",
                            "client": "Acme",
                            "schedule_no": "S-6",
                        },
                    ],
                }
            ],
            "pumps": [],
        }

        response = self.client.post(
            reverse("timelines:truck-wise-report"), {"date": "2025-10-14", "startHour": 7}, format="json"
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(mock_fetch.call_args.kwargs["start_hour"], 7)

        row = response.data["rows"][0]
        self.assertEqual(row["slotUsedHours"], [0.0, 0.0, 0.0, 0.0, 1.0, 1.0])
        self.assertEqual(row["totalUsed"], "02:00")
        self.assertEqual([e["scheduleNo"] for e in row["engagements"]], ["S-7"])
        self.assertEqual(row["outsideWindowTrips"], 1)
        self.assertEqual(response.data["meta"]["skippedTrips"], 1)

    @patch("timelines.views.GanttClient.fetch_gantt")
    def test_gantt_endpoint_client_stats_and_search(self, mock_fetch):
        mock_fetch.return_value = GANTT_PAYLOAD["data"]

        response = self.client.post(
            reverse("timelines:timeline-gantt"), {"date": "2025-10-14", "search": "ka"}, format="json"
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual([row["vehicleId"] for row in response.data["rows"]], ["tm-1"])
        clients = response.data["clients"]
        self.assertEqual(len(clients), 1)
        self.assertEqual(clients[0]["client"], "Acme")
        self.assertEqual(clients[0]["totalMinutes"], 150)
        self.assertEqual(clients[0]["vehicleCount"], 1)
        self.assertEqual(clients[0]["firstStartLabel"], "08:00")
