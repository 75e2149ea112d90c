"""
Trip Loader.
Turns raw trip records from the scheduling backend into Trip objects,
setting aside records whose timestamps cannot be read.
"""
import logging
import math
import re
from collections import OrderedDict
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple, Union

from django.utils import timezone
from django.utils.dateparse import parse_datetime

from .records import Trip

logger = logging.getLogger(__name__)

TIME_OF_DAY_PATTERN = re.compile(
    r"^(?P<hour>\d{1,2}):(?P<minute>\d{2})(?::(?P<second>\d{2}))?\s*(?P<period>[AaPp][Mm])?$"
)


class TripLoader:
    """Service for parsing trip records."""

    # Hour-floats beyond the next day are not time-of-day values
    MAX_HOUR_VALUE = 48.0

    @classmethod
    def parse_time_of_day(cls, value: str) -> Optional[float]:
        """
        Parse "HH:MM", "HH:MM:SS" or "HH:MM AM" into an hour-float.

        Args:
            value: Time-of-day string

        Returns:
            Hour-float in [0, 24) or None if the string is not a valid time
        """
        match = TIME_OF_DAY_PATTERN.match(value.strip())
        if not match:
            return None

        hour = int(match.group("hour"))
        minute = int(match.group("minute"))
        second = int(match.group("second") or 0)
        period = match.group("period")

        if minute > 59 or second > 59:
            return None

        if period:
            if not 1 <= hour <= 12:
                return None
            period = period.upper()
            if period == "PM" and hour != 12:
                hour += 12
            if period == "AM" and hour == 12:
                hour = 0
        elif hour > 23:
            return None

        return hour + minute / 60 + second / 3600

    @classmethod
    def parse_timestamp(cls, value) -> Optional[Union[datetime, float]]:
        """
        Parse a trip boundary.

        Accepts ISO-8601 timestamps (returned as aware datetimes in the
        current time zone), datetime objects, time-of-day strings and
        hour-floats. Returns None for anything else.
        """
        if isinstance(value, bool) or value is None:
            return None

        if isinstance(value, datetime):
            parsed = value
        elif isinstance(value, (int, float)):
            if math.isfinite(value) and 0 <= value <= cls.MAX_HOUR_VALUE:
                return float(value)
            return None
        elif isinstance(value, str):
            try:
                parsed = parse_datetime(value.strip())
            except ValueError:
                return None
            if parsed is None:
                return cls.parse_time_of_day(value)
        else:
            return None

        if timezone.is_naive(parsed):
            return timezone.make_aware(parsed)
        return timezone.localtime(parsed)

    @classmethod
    def load(cls, records: Iterable[Dict]) -> Tuple[Dict[str, List[Trip]], List[Dict]]:
        """
        Build trips grouped by vehicle.

        Args:
            records: Dicts with vehicle_id, start, end and optional client,
                project, schedule_no

        Returns:
            Tuple of (trips_by_vehicle, skipped)
            trips_by_vehicle: vehicle_id -> trips, in first-seen order
            skipped: {"index", "vehicleId", "reason"} for unreadable records
        """
        trips_by_vehicle: Dict[str, List[Trip]] = OrderedDict()
        skipped: List[Dict] = []

        for index, record in enumerate(records):
            vehicle_id = str(record.get("vehicle_id") or "").strip()
            reason = None

            start = cls.parse_timestamp(record.get("start"))
            end = cls.parse_timestamp(record.get("end"))

            if not vehicle_id:
                reason = "missing vehicle id"
            elif start is None or end is None:
                reason = "unparseable timestamp"
            elif isinstance(start, datetime) != isinstance(end, datetime):
                reason = "mixed timestamp and time-of-day values"

            if reason:
                logger.warning("Skipping trip record %d (vehicle %r): %s", index, vehicle_id, reason)
                skipped.append({"index": index, "vehicleId": vehicle_id, "reason": reason})
                continue

            trip = Trip(
                vehicle_id=vehicle_id,
                start=start,
                end=end,
                client=record.get("client") or "",
                project=record.get("project") or "",
                schedule_no=str(record.get("schedule_no") or ""),
            )
            trips_by_vehicle.setdefault(vehicle_id, []).append(trip)

        return trips_by_vehicle, skipped
