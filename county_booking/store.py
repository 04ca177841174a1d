import logging
import uuid
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, List, Protocol, runtime_checkable

from county_booking import config
from county_booking.api_client import ApiClient, ApiError, unwrap_envelope
from county_booking.errors import PersistenceError, SourceUnavailable
from county_booking.models import Appointment, BookingMetadata, BusyInterval, TimeOfDay
from county_booking.timeutil import parse_time_of_day

logger = logging.getLogger(__name__)


@runtime_checkable
class BookingStore(Protocol):
    """Where appointments live. Dates are inclusive on both ends."""

    def list_appointments(self, start: date, end: date) -> List[Appointment]:
        ...

    def create_appointment(self, day: date, time: TimeOfDay, duration_minutes: int, metadata: BookingMetadata) -> str:
        ...

    def list_busy_intervals(self, start: date, end: date) -> List[BusyInterval]:
        ...


def build_appointment_payload(day: date, start: TimeOfDay, duration_minutes: int, metadata: BookingMetadata) -> Dict[str, Any]:
    """The appointment document as the backend stores it."""
    starts_at = datetime.combine(day, time(start.hour, start.minute))
    return {
        "userId": metadata.user_id,
        "name": metadata.name,
        "email": metadata.email,
        "appointmentType": metadata.appointment_type,
        "duration": duration_minutes,
        "location": metadata.location,
        "address": metadata.address,
        "selectedDate": starts_at.isoformat(),
        "selectedDateString": day.isoformat(),
        "selectedTime": str(start),
        "timeZone": metadata.time_zone,
        "notes": metadata.notes.strip(),
        "status": config.SCHEDULED_STATUS,
    }


def parse_appointment(doc: Dict) -> Appointment | None:
    """Reads a backend appointment document. Returns None when it has no date or time.

    A malformed date raises SourceUnavailable; a malformed time raises InvalidTimeFormat.
    """
    raw_date = doc.get("date") or doc.get("selectedDateString")
    raw_time = doc.get("time") or doc.get("selectedTime")
    if not raw_date or not raw_time:
        logger.warning(f"Skipping appointment without date or time: {doc}")
        return None

    try:
        day = date.fromisoformat(str(raw_date)[:10])
    except ValueError as e:
        raise SourceUnavailable(f"Appointment has a malformed date {raw_date!r}") from e

    return Appointment(
        id=str(doc["id"]) if doc.get("id") is not None else None,
        date=day,
        start=parse_time_of_day(raw_time),
        duration_minutes=doc.get("duration") or config.APPOINTMENT_DURATION_MINUTES,
        status=doc.get("status") or config.SCHEDULED_STATUS,
    )


def parse_busy_interval(doc: Dict) -> BusyInterval | None:
    if not doc.get("start") or not doc.get("end"):
        logger.warning(f"Skipping busy interval without start or end: {doc}")
        return None
    try:
        return BusyInterval(start=doc["start"], end=doc["end"])
    except ValueError as e:
        raise SourceUnavailable(f"Busy interval has a malformed instant: {doc}") from e


class HttpBookingStore:
    """Booking store backed by the office REST API."""

    def __init__(self, client: ApiClient | None = None):
        self.client = client or ApiClient()

    def list_appointments(self, start: date, end: date) -> List[Appointment]:
        params = {"start": start.isoformat(), "end": end.isoformat(), "status": config.SCHEDULED_STATUS}
        logger.info(f"Fetching appointments from {start} to {end}")
        try:
            documents = unwrap_envelope(self.client.get(config.APPOINTMENTS_ENDPOINT, params=params)) or []
        except ApiError as e:
            logger.error(f"Failed to fetch existing appointments: {e}")
            raise SourceUnavailable(f"Failed to fetch existing appointments: {e}") from e

        appointments = [a for a in (parse_appointment(doc) for doc in documents) if a is not None]
        logger.debug(f"Fetched {len(appointments)} appointment(s)")
        return appointments

    def create_appointment(self, day: date, time: TimeOfDay, duration_minutes: int, metadata: BookingMetadata) -> str:
        payload = build_appointment_payload(day, time, duration_minutes, metadata)
        try:
            data = unwrap_envelope(self.client.post(config.APPOINTMENTS_ENDPOINT, payload))
        except ApiError as e:
            logger.error(f"Error saving appointment: {e}")
            raise PersistenceError(f"Failed to schedule appointment: {e}") from e

        appointment_id = data.get("id") if isinstance(data, dict) else data
        if not appointment_id:
            raise PersistenceError("Appointment was not created: the backend returned no id.")
        logger.info(f"Appointment saved successfully with ID: {appointment_id}")
        return str(appointment_id)

    def list_busy_intervals(self, start: date, end: date) -> List[BusyInterval]:
        # The busy endpoint works on instants; cover whole days.
        params = {
            "start": datetime.combine(start, time.min).isoformat(),
            "end": datetime.combine(end + timedelta(days=1), time.min).isoformat(),
        }
        try:
            intervals = unwrap_envelope(self.client.get(config.CALENDAR_BUSY_ENDPOINT, params=params)) or []
        except ApiError as e:
            logger.error(f"Failed to fetch calendar busy intervals: {e}")
            raise SourceUnavailable(f"Failed to fetch calendar busy intervals: {e}") from e
        return [b for b in (parse_busy_interval(item) for item in intervals) if b is not None]


class InMemoryBookingStore:
    """Keeps appointments in a list. Handy for local runs and tests."""

    def __init__(self, appointments: List[Appointment] | None = None, busy: List[BusyInterval] | None = None):
        self.appointments: List[Appointment] = list(appointments or [])
        self.busy: List[BusyInterval] = list(busy or [])
        self.payloads: List[Dict[str, Any]] = []

    def list_appointments(self, start: date, end: date) -> List[Appointment]:
        return [a for a in self.appointments if start <= a.date <= end and a.status == config.SCHEDULED_STATUS]

    def create_appointment(self, day: date, time: TimeOfDay, duration_minutes: int, metadata: BookingMetadata) -> str:
        appointment_id = uuid.uuid4().hex
        self.payloads.append(build_appointment_payload(day, time, duration_minutes, metadata))
        self.appointments.append(
            Appointment(id=appointment_id, date=day, start=time, duration_minutes=duration_minutes)
        )
        return appointment_id

    def list_busy_intervals(self, start: date, end: date) -> List[BusyInterval]:
        window_start = datetime.combine(start, time.min)
        window_end = datetime.combine(end + timedelta(days=1), time.min)
        return [b for b in self.busy if b.start < window_end and b.end > window_start]
