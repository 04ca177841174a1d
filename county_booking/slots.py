import logging
from typing import List

from county_booking import config
from county_booking.models import TimeOfDay
from county_booking.timeutil import from_minutes, parse_time_of_day, to_minutes

logger = logging.getLogger(__name__)


def generate_catalog(open_time: TimeOfDay, close_time: TimeOfDay, granularity_minutes: int) -> List[TimeOfDay]:
    """Generates every bookable start time from open to close inclusive.

    The close time itself is a valid start; nothing past it is emitted.
    """
    if granularity_minutes <= 0:
        raise ValueError(f"Granularity must be positive, got {granularity_minutes}")

    slots = [
        from_minutes(minute)
        for minute in range(to_minutes(open_time), to_minutes(close_time) + 1, granularity_minutes)
    ]

    logger.debug(f"Generated {len(slots)} slots from {open_time} to {close_time}")
    return slots


def default_catalog() -> List[TimeOfDay]:
    """The office-day catalog: 9:00 AM to 5:00 PM every 15 minutes unless configured otherwise."""
    return generate_catalog(
        parse_time_of_day(config.OFFICE_OPEN),
        parse_time_of_day(config.OFFICE_CLOSE),
        config.SLOT_GRANULARITY_MINUTES,
    )
