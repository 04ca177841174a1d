import logging
import re

from county_booking.errors import InvalidTimeFormat
from county_booking.models import TimeOfDay

logger = logging.getLogger(__name__)

TIME_PATTERN = re.compile(r"^(\d{1,2}):(\d{2}) (AM|PM)$", re.IGNORECASE)


def parse_time_of_day(text: str) -> TimeOfDay:
    """Parses a 12-hour clock string such as "9:00 AM" into a TimeOfDay.

    12:00 AM is midnight (minute 0) and 12:00 PM is noon (minute 720).
    Raises InvalidTimeFormat for anything else than "<H>:<MM> <AM|PM>" with
    1 <= H <= 12 and 0 <= MM <= 59.
    """
    if not isinstance(text, str):
        raise InvalidTimeFormat(f"Expected a time string, got {text!r}")

    match = TIME_PATTERN.match(text.strip())
    if not match:
        raise InvalidTimeFormat(f"Time '{text}' is not in 'H:MM AM/PM' format")

    hours = int(match.group(1))
    minutes = int(match.group(2))
    period = match.group(3).upper()

    if not 1 <= hours <= 12:
        raise InvalidTimeFormat(f"Hour out of range in '{text}'")
    if not 0 <= minutes <= 59:
        raise InvalidTimeFormat(f"Minute out of range in '{text}'")

    hour24 = hours % 12
    if period == "PM":
        hour24 += 12
    return TimeOfDay(minutes=hour24 * 60 + minutes)


def to_minutes(t: TimeOfDay) -> int:
    return t.minutes


def from_minutes(minutes: int) -> TimeOfDay:
    """Inverse of to_minutes.

    Callers must keep 0 <= minutes < 1440; values outside the day are
    rejected by model validation instead of being wrapped.
    """
    return TimeOfDay(minutes=minutes)


def format_time(t: TimeOfDay) -> str:
    """Renders a TimeOfDay as "9:00 AM"."""
    return str(t)


def coerce_time(value: TimeOfDay | str) -> TimeOfDay:
    """Accepts either a TimeOfDay or its 12-hour string form."""
    if isinstance(value, TimeOfDay):
        return value
    return parse_time_of_day(value)
