"""
Scheduling backend client.
Fetches the day's mixer and pump trips from the scheduling API's Gantt
endpoint and flattens them into vehicles and trip records.
"""
import logging
from datetime import date
from typing import Dict, List, Optional, Tuple

import requests
from django.conf import settings

logger = logging.getLogger(__name__)


class SchedulingAPIError(Exception):
    """Raised when the scheduling backend cannot serve Gantt data."""


class GanttClient:
    """Service for fetching Gantt trip data from the scheduling backend."""

    GANTT_PATH = "/calendar/gantt"

    # Pump types reported by the backend to report vehicle types
    PUMP_TYPES = {
        "boom": "BP",
        "line": "LP",
    }

    @classmethod
    def pump_type(cls, raw_type: Optional[str]) -> str:
        return cls.PUMP_TYPES.get((raw_type or "line").lower(), "LP")

    @classmethod
    def query_value(cls, query_date: date, start_hour: Optional[int] = None) -> str:
        """
        Value sent as "query_date".

        The backend returns the 24 hours following this value, so a start
        hour turns the calendar-day query into a business-day query.
        """
        if start_hour is None:
            return query_date.isoformat()
        return f"{query_date.isoformat()}T{start_hour:02d}:00:00"

    @classmethod
    def fetch_gantt(
        cls, query_date: date, authorization: Optional[str] = None, start_hour: Optional[int] = None
    ) -> Dict:
        """
        POST the Gantt query for one date.

        Args:
            query_date: Calendar date to fetch
            authorization: Authorization header forwarded from the caller
            start_hour: Business-day start hour; None fetches from midnight

        Returns:
            The response's "data" object with "mixers" and "pumps" lists
        """
        url = f"{settings.SCHEDULING_API_BASE_URL.rstrip('/')}{cls.GANTT_PATH}"
        headers = {"Content-Type": "application/json"}
        if authorization:
            headers["Authorization"] = authorization

        query_value = cls.query_value(query_date, start_hour)

        try:
            response = requests.post(
                url,
                json={"query_date": query_value},
                headers=headers,
                timeout=settings.SCHEDULING_API_TIMEOUT,
            )
            response.raise_for_status()
            payload = response.json()
        except requests.RequestException as e:
            logger.error("Gantt request to %s failed: %s", url, e)
            raise SchedulingAPIError(f"Scheduling backend request failed: {str(e)}")
        except ValueError as e:
            raise SchedulingAPIError(f"Scheduling backend returned invalid JSON: {str(e)}")

        if not isinstance(payload, dict) or not payload.get("success"):
            message = payload.get("message") if isinstance(payload, dict) else None
            raise SchedulingAPIError(message or "Scheduling backend reported failure")

        data = payload.get("data") or {}
        logger.info(
            "Fetched Gantt data for %s: %d mixers, %d pumps",
            query_value,
            len(data.get("mixers") or []),
            len(data.get("pumps") or []),
        )
        return data

    @classmethod
    def flatten(cls, data: Dict) -> Tuple[List[Dict], List[Dict]]:
        """
        Split Gantt data into vehicle descriptors and trip records.

        Returns:
            Tuple of (vehicles, records)
            vehicles: {"vehicle_id", "vehicle_type", "name", "plant"}
            records: {"vehicle_id", "start", "end", "client", "project", "schedule_no"}
        """
        vehicles: List[Dict] = []
        records: List[Dict] = []

        rows = [(mixer, "TM") for mixer in data.get("mixers") or []]
        rows += [(pump, cls.pump_type(pump.get("type"))) for pump in data.get("pumps") or []]

        for row, vehicle_type in rows:
            vehicle_id = str(row.get("id") or "")
            if not vehicle_id:
                continue

            vehicles.append({
                "vehicle_id": vehicle_id,
                "vehicle_type": vehicle_type,
                "name": row.get("name") or vehicle_id,
                "plant": row.get("plant") or "",
            })

            for task in row.get("tasks") or []:
                records.append({
                    "vehicle_id": vehicle_id,
                    "start": task.get("start"),
                    "end": task.get("end"),
                    "client": task.get("client") or "",
                    "project": task.get("project") or "",
                    "schedule_no": task.get("schedule_no") or "",
                })

        return vehicles, records

    @classmethod
    def fetch_fleet(
        cls, query_date: date, authorization: Optional[str] = None, start_hour: Optional[int] = None
    ) -> Tuple[List[Dict], List[Dict]]:
        """Fetch and flatten the fleet trips of one business day."""
        return cls.flatten(cls.fetch_gantt(query_date, authorization, start_hour=start_hour))
