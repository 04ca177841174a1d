import logging
import math
from datetime import date, datetime, time, timedelta
from typing import Iterable, List, Set

from county_booking import config
from county_booking.calendar_grid import normalize_date
from county_booking.models import MINUTES_PER_DAY, Appointment, BusyInterval, TimeOfDay
from county_booking.timeutil import from_minutes, to_minutes

logger = logging.getLogger(__name__)

OccupiedSlotSet = Set[TimeOfDay]


def slots_covered_by_appointment(start: TimeOfDay, duration_minutes: int, granularity_minutes: int) -> OccupiedSlotSet:
    """Returns the slots an appointment blocks: start inclusive, start + duration exclusive.

    A 45-minute appointment at 10:00 AM on a 15-minute grid blocks
    10:00 AM, 10:15 AM and 10:30 AM. Coverage stops at midnight.
    """
    if granularity_minutes <= 0:
        raise ValueError(f"Granularity must be positive, got {granularity_minutes}")

    start_minutes = to_minutes(start)
    end_minutes = min(start_minutes + duration_minutes, MINUTES_PER_DAY)
    return {from_minutes(minute) for minute in range(start_minutes, end_minutes, granularity_minutes)}


def aggregate_occupied_slots(
    appointments: Iterable[Appointment],
    granularity_minutes: int,
    on_date: date | None = None,
) -> OccupiedSlotSet:
    """Union of the slots covered by every scheduled appointment on on_date.

    With on_date None every appointment counts.
    """
    occupied: OccupiedSlotSet = set()
    for appointment in appointments:
        if on_date is not None and appointment.date != normalize_date(on_date):
            continue
        if appointment.status != config.SCHEDULED_STATUS:
            continue
        duration = appointment.duration_minutes or config.APPOINTMENT_DURATION_MINUTES
        covered = slots_covered_by_appointment(appointment.start, duration, granularity_minutes)
        logger.debug(f"Appointment at {appointment.start} ({duration} min) blocks slots: {sorted_slots(covered)}")
        occupied |= covered

    logger.debug(f"All blocked time slots: {sorted_slots(occupied)}")
    return occupied


def slots_blocked_by_interval(
    day: date,
    interval: BusyInterval,
    granularity_minutes: int,
    catalog: Iterable[TimeOfDay],
) -> OccupiedSlotSet:
    """Catalog slots whose [start, start + granularity) overlaps a busy interval on day."""
    day = normalize_date(day)
    day_start = datetime.combine(day, time.min)
    day_end = day_start + timedelta(days=1)

    busy_start = _as_local_naive(interval.start)
    busy_end = _as_local_naive(interval.end)
    if busy_end <= day_start or busy_start >= day_end:
        return set()

    # Clip to the day, in minutes since midnight.
    start_minutes = max(0, math.floor((busy_start - day_start).total_seconds() / 60))
    end_minutes = min(MINUTES_PER_DAY, math.ceil((busy_end - day_start).total_seconds() / 60))

    return {
        slot
        for slot in catalog
        if to_minutes(slot) < end_minutes and to_minutes(slot) + granularity_minutes > start_minutes
    }


def aggregate_busy_slots(
    day: date,
    intervals: Iterable[BusyInterval],
    granularity_minutes: int,
    catalog: Iterable[TimeOfDay],
) -> OccupiedSlotSet:
    catalog = list(catalog)
    blocked: OccupiedSlotSet = set()
    for interval in intervals:
        blocked |= slots_blocked_by_interval(day, interval, granularity_minutes, catalog)
    return blocked


def sorted_slots(slots: Iterable[TimeOfDay]) -> List[TimeOfDay]:
    return sorted(slots, key=to_minutes)


def _as_local_naive(moment: datetime) -> datetime:
    if moment.tzinfo is not None:
        return moment.astimezone().replace(tzinfo=None)
    return moment
