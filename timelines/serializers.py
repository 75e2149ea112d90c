"""
Serializers for Timeline API endpoints.
"""
from rest_framework import serializers
from drf_spectacular.utils import extend_schema_serializer

from .services.gantt_mapper import GanttMapper
from .services.time_format import TIME_FORMATS, format_clock, slot_label
from .services.window_builder import WindowBuilder

VEHICLE_TYPES = ["TM", "LP", "BP"]
GRANULARITIES = list(WindowBuilder.GRANULARITIES.keys())


class TripRecordSerializer(serializers.Serializer):
    """
    Serializer for one trip record.
    Timestamps are passed through untouched; unreadable ones are counted
    as skipped trips instead of failing the request.
    """

    vehicleId = serializers.CharField(source="vehicle_id", required=False, allow_blank=True, default="")
    start = serializers.JSONField(
        required=False, allow_null=True, default=None,
        help_text="ISO-8601 timestamp, 'HH:MM' time of day or hour-float"
    )
    end = serializers.JSONField(
        required=False, allow_null=True, default=None,
        help_text="ISO-8601 timestamp, 'HH:MM' time of day or hour-float"
    )
    client = serializers.CharField(required=False, allow_blank=True, allow_null=True, default="")
    project = serializers.CharField(required=False, allow_blank=True, allow_null=True, default="")
    scheduleNo = serializers.CharField(
        source="schedule_no", required=False, allow_blank=True, allow_null=True, default=""
    )


class VehicleInputSerializer(serializers.Serializer):
    """Serializer for a vehicle descriptor."""

    vehicleId = serializers.CharField(source="vehicle_id")
    vehicleType = serializers.ChoiceField(source="vehicle_type", choices=VEHICLE_TYPES, default="TM")
    name = serializers.CharField(required=False, allow_blank=True, default="")
    plant = serializers.CharField(required=False, allow_blank=True, default="")


class WindowQuerySerializer(serializers.Serializer):
    """Serializer for window grid query parameters."""

    startHour = serializers.IntegerField(
        source="start_hour", min_value=0, max_value=23, required=False,
        help_text="Business-day start hour (0-23); defaults to the configured hour"
    )
    granularity = serializers.ChoiceField(choices=GRANULARITIES, default=WindowBuilder.HOURLY)
    timeFormat = serializers.ChoiceField(source="time_format", choices=TIME_FORMATS, required=False)


@extend_schema_serializer(
    examples=[
        {
            "date": "2025-10-14",
            "startHour": 7,
            "granularity": "hourly",
            "timeFormat": "24h",
            "vehicles": [{"vehicleId": "tm-1", "vehicleType": "TM", "name": "KA-01-1234"}],
            "trips": [
                {
                    "vehicleId": "tm-1",
                    "start": "2025-10-14T08:00:00+05:30",
                    "end": "2025-10-14T10:30:00+05:30",
                    "client": "Acme Builders",
                    "project": "Tower A",
                    "scheduleNo": "S-101",
                }
            ],
        }
    ]
)
class AggregateRequestSerializer(WindowQuerySerializer):
    """Serializer for timeline aggregation input."""

    date = serializers.DateField(
        required=False, allow_null=True, default=None,
        help_text="Business-day date; required to place absolute timestamps"
    )
    vehicles = VehicleInputSerializer(many=True, required=False, default=list)
    trips = TripRecordSerializer(many=True, required=False, default=list)
    includeUnknown = serializers.BooleanField(source="include_unknown", default=True)


class FleetQuerySerializer(serializers.Serializer):
    """Serializer for fleet Gantt and truck-wise report queries."""

    date = serializers.DateField()
    startHour = serializers.IntegerField(source="start_hour", min_value=0, max_value=23, required=False)
    timeFormat = serializers.ChoiceField(source="time_format", choices=TIME_FORMATS, required=False)
    plant = serializers.CharField(required=False, allow_blank=True, default="")
    vehicleType = serializers.ChoiceField(
        source="vehicle_type", choices=VEHICLE_TYPES, required=False, allow_blank=True, default=""
    )
    client = serializers.CharField(required=False, allow_blank=True, default="")
    vehicleName = serializers.CharField(
        source="vehicle_name", required=False, allow_blank=True, default="",
        help_text="Exact vehicle name"
    )
    search = serializers.CharField(
        required=False, allow_blank=True, default="",
        help_text="Case-insensitive vehicle name search"
    )


class SlotSerializer(serializers.Serializer):
    """Serializer for one window slot."""

    index = serializers.IntegerField()
    start = serializers.FloatField()
    end = serializers.FloatField()
    clockStart = serializers.FloatField()
    clockEnd = serializers.FloatField()
    label = serializers.CharField()

    def to_representation(self, instance):
        time_format = self.context.get("time_format", "24h")
        return {
            "index": instance.index,
            "start": instance.start,
            "end": instance.end,
            "clockStart": instance.clock_start,
            "clockEnd": instance.clock_end,
            "label": slot_label(instance, time_format),
        }


class WindowSerializer(serializers.Serializer):
    """Serializer for a TimeWindow."""

    startHour = serializers.IntegerField()
    granularity = serializers.CharField()
    date = serializers.DateField(allow_null=True)
    slots = SlotSerializer(many=True)

    def to_representation(self, instance):
        return {
            "startHour": instance.start_hour,
            "granularity": instance.granularity,
            "date": instance.anchor_date.isoformat() if instance.anchor_date else None,
            "slots": SlotSerializer(instance.slots, many=True, context=self.context).data,
        }


class TaskGroupSerializer(serializers.Serializer):
    """Serializer for a task group."""

    start = serializers.FloatField()
    end = serializers.FloatField()
    startLabel = serializers.CharField()
    endLabel = serializers.CharField()
    durationHours = serializers.FloatField()
    clients = serializers.ListField(child=serializers.CharField())
    scheduleNos = serializers.ListField(child=serializers.CharField())
    tripCount = serializers.IntegerField()

    def to_representation(self, instance):
        time_format = self.context.get("time_format", "24h")
        return {
            "start": instance.start,
            "end": instance.end,
            "startLabel": format_clock(instance.start, time_format),
            "endLabel": format_clock(instance.end, time_format),
            "durationHours": round(instance.duration, 4),
            "clients": instance.clients,
            "scheduleNos": [trip.schedule_no for trip in instance.trips if trip.schedule_no],
            "tripCount": len(instance.trips),
        }


class VehicleScheduleSerializer(serializers.Serializer):
    """Serializer for a vehicle's aggregated schedule."""

    vehicleId = serializers.CharField()
    vehicleType = serializers.CharField()
    name = serializers.CharField()
    plant = serializers.CharField()
    perSlotFree = serializers.ListField(child=serializers.FloatField())
    perSlotBusy = serializers.ListField(child=serializers.FloatField())
    totals = serializers.DictField()
    groupedTasks = TaskGroupSerializer(many=True)
    bars = serializers.ListField(child=serializers.DictField())
    skippedTrips = serializers.IntegerField()
    outsideWindowTrips = serializers.IntegerField()

    def to_representation(self, instance):
        """Convert to API response format."""
        time_format = self.context.get("time_format", "24h")
        window = self.context["window"]

        return {
            "vehicleId": instance.vehicle_id,
            "vehicleType": instance.vehicle_type,
            "name": instance.name,
            "plant": instance.plant,
            "perSlotFree": [round(value, 4) for value in instance.per_slot_free],
            "perSlotBusy": [round(value, 4) for value in instance.per_slot_busy],
            "totals": {
                "freeHours": instance.total_free_hours,
                "busyHours": instance.total_busy_hours,
                "freeHoursExact": round(instance.free_hours, 4),
                "busyHoursExact": round(instance.busy_hours, 4),
                "idlePercent": instance.idle_percentage,
                "usedPercent": instance.used_percentage,
            },
            "groupedTasks": TaskGroupSerializer(
                instance.grouped_tasks, many=True, context=self.context
            ).data,
            "bars": GanttMapper.map_schedule(instance, window, time_format),
            "skippedTrips": instance.dropped_trips,
            "outsideWindowTrips": instance.outside_window_trips,
        }
