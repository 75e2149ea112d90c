"""
API views for fleet timelines and utilisation reports.
"""
from django.conf import settings
from rest_framework import status
from rest_framework.decorators import api_view
from rest_framework.response import Response
from rest_framework.views import APIView
from drf_spectacular.utils import extend_schema, OpenApiExample, OpenApiResponse
from drf_spectacular.types import OpenApiTypes

from .serializers import (
    AggregateRequestSerializer,
    FleetQuerySerializer,
    VehicleScheduleSerializer,
    WindowQuerySerializer,
    WindowSerializer,
)
from .services.fleet_report import FleetTimeline
from .services.gantt_client import GanttClient, SchedulingAPIError
from .services.trip_loader import TripLoader
from .services.window_builder import InvalidArgument, WindowBuilder

VALIDATION_ERROR = OpenApiResponse(
    response=OpenApiTypes.OBJECT,
    description="Validation error",
    examples=[
        OpenApiExample(
            "Validation Error",
            value={"startHour": ["Ensure this value is less than or equal to 23."]}
        )
    ]
)

UPSTREAM_ERROR = OpenApiResponse(
    response=OpenApiTypes.OBJECT,
    description="Scheduling backend unavailable",
    examples=[
        OpenApiExample(
            "Upstream Error",
            value={"error": "Scheduling backend request failed: 503 Server Error"}
        )
    ]
)


def resolve_display_options(data):
    """Fill start hour and time format from settings when the query omits them."""
    start_hour = data.get("start_hour")
    if start_hour is None:
        start_hour = settings.TIMELINE_DEFAULT_START_HOUR
    time_format = data.get("time_format") or settings.TIMELINE_DEFAULT_TIME_FORMAT
    return start_hour, time_format


def skipped_count(skipped_records, schedules):
    return len(skipped_records) + sum(schedule.dropped_trips for schedule in schedules)


class TimelineWindowView(APIView):
    """Slot grid for a business-day start hour."""

    @extend_schema(
        parameters=[WindowQuerySerializer],
        responses={200: WindowSerializer, 400: VALIDATION_ERROR},
    )
    def get(self, request):
        """
        GET /api/timeline/window

        Returns the slots and labels of one business day.
        """
        serializer = WindowQuerySerializer(data=request.query_params)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        data = serializer.validated_data
        start_hour, time_format = resolve_display_options(data)

        try:
            window = WindowBuilder.build_window(start_hour, data["granularity"])
        except InvalidArgument as e:
            return Response({"error": str(e)}, status=status.HTTP_400_BAD_REQUEST)

        return Response(WindowSerializer(window, context={"time_format": time_format}).data)


class TimelineAggregateView(APIView):
    """Aggregate caller-supplied trips into per-vehicle schedules."""

    @extend_schema(
        request=AggregateRequestSerializer,
        responses={
            200: OpenApiResponse(
                response=OpenApiTypes.OBJECT,
                description="Window, per-vehicle schedules and data-quality meta",
                examples=[
                    OpenApiExample(
                        "Aggregation Response",
                        value={
                            "window": {"startHour": 7, "granularity": "hourly", "date": "2025-10-14", "slots": []},
                            "vehicles": [
                                {
                                    "vehicleId": "tm-1",
                                    "vehicleType": "TM",
                                    "name": "KA-01-1234",
                                    "plant": "",
                                    "perSlotFree": [1.0, 0.0, 0.0, 0.5],
                                    "perSlotBusy": [0.0, 1.0, 1.0, 0.5],
                                    "totals": {
                                        "freeHours": 22,
                                        "busyHours": 2,
                                        "freeHoursExact": 21.5,
                                        "busyHoursExact": 2.5,
                                        "idlePercent": 90,
                                        "usedPercent": 10
                                    },
                                    "groupedTasks": [],
                                    "bars": [],
                                    "skippedTrips": 0,
                                    "outsideWindowTrips": 0
                                }
                            ],
                            "meta": {"vehicleCount": 1, "skippedTrips": 0, "skippedRecords": []}
                        },
                    )
                ],
            ),
            400: VALIDATION_ERROR,
        },
    )
    def post(self, request):
        """
        POST /api/timeline/aggregate

        1. Validate input
        2. Build the window
        3. Parse trip records
        4. Aggregate every vehicle
        5. Return schedules with skipped-record counts
        """
        serializer = AggregateRequestSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        data = serializer.validated_data
        start_hour, time_format = resolve_display_options(data)

        try:
            window = WindowBuilder.build_window(start_hour, data["granularity"], anchor_date=data.get("date"))
        except InvalidArgument as e:
            return Response({"error": str(e)}, status=status.HTTP_400_BAD_REQUEST)

        trips_by_vehicle, skipped_records = TripLoader.load(data["trips"])
        schedules = FleetTimeline.build(
            data["vehicles"], trips_by_vehicle, window, include_unknown=data["include_unknown"]
        )

        context = {"window": window, "time_format": time_format}
        return Response({
            "window": WindowSerializer(window, context=context).data,
            "vehicles": VehicleScheduleSerializer(schedules, many=True, context=context).data,
            "meta": {
                "vehicleCount": len(schedules),
                "skippedTrips": skipped_count(skipped_records, schedules),
                "skippedRecords": skipped_records,
            },
        })


class FleetQueryMixin:
    """Shared fetch-and-aggregate flow for views backed by the scheduling API."""

    granularity = WindowBuilder.HOURLY

    def load_fleet(self, request):
        """
        Returns:
            Tuple of (response, None) on failure or
            (None, (window, schedules, skipped_records, time_format))
        """
        serializer = FleetQuerySerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST), None

        data = serializer.validated_data
        start_hour, time_format = resolve_display_options(data)

        try:
            window = WindowBuilder.build_window(start_hour, self.granularity, anchor_date=data["date"])
            vehicles, records = GanttClient.fetch_fleet(
                data["date"],
                authorization=request.headers.get("Authorization"),
                start_hour=window.start_hour,
            )
        except InvalidArgument as e:
            return Response({"error": str(e)}, status=status.HTTP_400_BAD_REQUEST), None
        except SchedulingAPIError as e:
            return Response({"error": str(e)}, status=status.HTTP_502_BAD_GATEWAY), None

        trips_by_vehicle, skipped_records = TripLoader.load(records)
        schedules = FleetTimeline.build(vehicles, trips_by_vehicle, window)
        schedules = FleetTimeline.filter(
            schedules,
            plant=data["plant"],
            vehicle_type=data["vehicle_type"],
            client=data["client"],
            search=data["search"],
            vehicle_name=data["vehicle_name"],
        )
        return None, (window, schedules, skipped_records, time_format)


class FleetGanttView(FleetQueryMixin, APIView):
    """Hourly Gantt rows for the day's mixers and pumps."""

    @extend_schema(
        request=FleetQuerySerializer,
        responses={
            200: OpenApiResponse(
                response=OpenApiTypes.OBJECT,
                description="Window and Gantt rows",
                examples=[
                    OpenApiExample(
                        "Gantt Response",
                        value={
                            "window": {"startHour": 7, "granularity": "hourly", "date": "2025-10-14", "slots": []},
                            "rows": [
                                {
                                    "vehicleId": "tm-1",
                                    "name": "KA-01-1234",
                                    "plant": "North Plant",
                                    "vehicleType": "TM",
                                    "bars": [
                                        {
                                            "start": 8.0,
                                            "end": 10.5,
                                            "startLabel": "08:00",
                                            "endLabel": "10:30",
                                            "offsetPercent": 4.1667,
                                            "widthPercent": 10.4167,
                                            "slotIndices": [1, 2, 3],
                                            "durationMinutes": 150,
                                            "clients": ["Acme Builders"],
                                            "scheduleNos": ["S-101"],
                                            "tripCount": 1
                                        }
                                    ],
                                    "freeHours": 22,
                                    "skippedTrips": 0,
                                    "outsideWindowTrips": 0
                                }
                            ],
                            "clients": [
                                {
                                    "client": "Acme Builders",
                                    "totalMinutes": 150,
                                    "totalTime": "02:30",
                                    "vehicleCount": 1,
                                    "scheduleCount": 1,
                                    "tripCount": 1,
                                    "firstStart": 8.0,
                                    "lastEnd": 10.5,
                                    "firstStartLabel": "08:00",
                                    "lastEndLabel": "10:30"
                                }
                            ],
                            "meta": {"vehicleCount": 1, "skippedTrips": 0}
                        },
                    )
                ],
            ),
            400: VALIDATION_ERROR,
            502: UPSTREAM_ERROR,
        },
    )
    def post(self, request):
        """
        POST /api/timeline/gantt

        Fetches the day's trips from the scheduling backend and returns
        hourly Gantt rows.
        """
        error, result = self.load_fleet(request)
        if error is not None:
            return error

        window, schedules, skipped_records, time_format = result
        return Response({
            "window": WindowSerializer(window, context={"time_format": time_format}).data,
            "rows": FleetTimeline.gantt_rows(schedules, window, time_format),
            "clients": FleetTimeline.client_stats(schedules, window, time_format),
            "meta": {
                "vehicleCount": len(schedules),
                "skippedTrips": skipped_count(skipped_records, schedules),
            },
        })


class TruckWiseReportView(FleetQueryMixin, APIView):
    """Four-hour truck-wise utilisation report."""

    granularity = WindowBuilder.FOUR_HOUR

    @extend_schema(
        request=FleetQuerySerializer,
        responses={
            200: OpenApiResponse(
                response=OpenApiTypes.OBJECT,
                description="Truck-wise report",
                examples=[
                    OpenApiExample(
                        "Report Response",
                        value={
                            "date": "2025-10-14",
                            "startHour": 7,
                            "slots": [{"index": 0, "label": "07:00 - 11:00"}],
                            "rows": [
                                {
                                    "vehicleId": "tm-1",
                                    "name": "KA-01-1234",
                                    "vehicleType": "TM",
                                    "plant": "North Plant",
                                    "slotUsedHours": [2.5, 0, 0, 0, 0, 0],
                                    "slotUsed": ["02:30", "00:00", "00:00", "00:00", "00:00", "00:00"],
                                    "totalUsed": "02:30",
                                    "totalUnused": "21:30",
                                    "usedPercent": 10,
                                    "engagements": [],
                                    "skippedTrips": 0,
                                    "outsideWindowTrips": 0
                                }
                            ],
                            "slotTotals": [2.5, 0, 0, 0, 0, 0],
                            "slotTotalsFormatted": ["02:30", "00:00", "00:00", "00:00", "00:00", "00:00"],
                            "meta": {"vehicleCount": 1, "skippedTrips": 0}
                        },
                    )
                ],
            ),
            400: VALIDATION_ERROR,
            502: UPSTREAM_ERROR,
        },
    )
    def post(self, request):
        """
        POST /api/reports/truck-wise

        Returns per-vehicle used hours in six 4-hour slots.
        """
        error, result = self.load_fleet(request)
        if error is not None:
            return error

        window, schedules, skipped_records, time_format = result
        report = FleetTimeline.truck_wise_report(schedules, window, time_format)
        report["date"] = window.anchor_date.isoformat()
        report["startHour"] = window.start_hour
        report["meta"] = {
            "vehicleCount": len(schedules),
            "skippedTrips": skipped_count(skipped_records, schedules),
        }
        return Response(report)


@extend_schema(
    operation_id="health_check",
    summary="Health Check",
    description="Basic health check endpoint",
    responses={
        200: OpenApiResponse(
            response=OpenApiTypes.OBJECT,
            description="Service health status",
            examples=[
                OpenApiExample(
                    "Healthy",
                    value={
                        "status": "healthy",
                        "service": "Fleet Timeline Backend"
                    }
                )
            ]
        ),
    },
)
@api_view(["GET"])
def health_check(request):
    """
    GET /api/healthcheck

    Basic health check endpoint.
    """
    return Response({
        "status": "healthy",
        "service": "Fleet Timeline Backend"
    })
