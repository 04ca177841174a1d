import calendar
import logging
from datetime import date
from typing import Set

from county_booking import config
from county_booking.availability import validate_selection
from county_booking.calendar_grid import is_past_date, normalize_date
from county_booking.errors import ConflictError, PersistenceError, ValidationError
from county_booking.models import MINUTES_PER_DAY, Appointment, BookingMetadata, TimeOfDay
from county_booking.occupancy import slots_covered_by_appointment
from county_booking.store import BookingStore
from county_booking.timeutil import coerce_time, to_minutes

logger = logging.getLogger(__name__)


def submit(
    day: date | None,
    time: TimeOfDay | str | None,
    appointment_duration_minutes: int,
    metadata: BookingMetadata,
    occupied: Set[TimeOfDay],
    store: BookingStore,
    granularity_minutes: int = config.SLOT_GRANULARITY_MINUTES,
    today: date | None = None,
) -> Appointment:
    """Validates and stores a new appointment.

    The selection is checked against occupied again here, right before the
    write. On success the slots the new appointment covers are added to
    occupied in place, so callers see the booking before their next fetch.

    Raises ValidationError, ConflictError or PersistenceError. Nothing is
    retried.
    """
    if day is None:
        raise ValidationError("Please select a date")
    if time is None:
        raise ValidationError("Please select a time")

    day = normalize_date(day)
    start = coerce_time(time)

    if is_past_date(day, today):
        raise ValidationError("Cannot select a past date")
    if to_minutes(start) + appointment_duration_minutes > MINUTES_PER_DAY:
        raise ValidationError(f"An appointment at {start} would run past midnight")

    selection = validate_selection(day, start, occupied, appointment_duration_minutes, granularity_minutes)
    if selection.is_conflict:
        raise ConflictError(selection.conflicting_slots)

    try:
        appointment_id = store.create_appointment(day, start, appointment_duration_minutes, metadata)
    except PersistenceError:
        raise
    except Exception as e:
        logger.error(f"Error saving appointment: {e}")
        raise PersistenceError(f"Failed to schedule appointment: {e}") from e

    occupied |= slots_covered_by_appointment(start, appointment_duration_minutes, granularity_minutes)

    appointment = Appointment(id=appointment_id, date=day, start=start, duration_minutes=appointment_duration_minutes)
    logger.info(f"Booked {start} on {day} for {appointment_duration_minutes} minutes (id {appointment_id})")
    return appointment


def describe_confirmation(appointment: Appointment) -> str:
    """E.g. "Monday, October 19, 2026\\n10:00 AM"."""
    d = appointment.date
    formatted_date = f"{calendar.day_name[d.weekday()]}, {calendar.month_name[d.month]} {d.day}, {d.year}"
    return f"{formatted_date}\n{appointment.start}"
