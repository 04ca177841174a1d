import logging
from datetime import date, datetime
from typing import List

from county_booking.api_client import ApiClient
from county_booking.booking import describe_confirmation
from county_booking.calendar_grid import MonthGrid, is_past_date, is_today, month_title
from county_booking.errors import BookingError, SourceUnavailable
from county_booking.models import BookingMetadata, CandidateSlot
from county_booking.restrictions import HttpRestrictionSource, weekday_name
from county_booking.session import BookingSession
from county_booking.store import HttpBookingStore

logger = logging.getLogger(__name__)

WEEKDAY_ABBREVIATIONS = ["Su", "Mo", "Tu", "We", "Th", "Fr", "Sa"]


def parse_date_arg(date_arg: str | None) -> date:
    """Parses a YYYY-MM-DD argument. Defaults to today."""
    if not date_arg:
        return date.today()
    try:
        return datetime.strptime(date_arg, "%Y-%m-%d").date()
    except ValueError as e:
        raise ValueError(f"Date must be in YYYY-MM-DD format, got '{date_arg}'") from e


def format_month_grid(grid: MonthGrid, year: int, month: int, today: date | None = None) -> str:
    """Text calendar. Adjacent-month days are dotted out and today is starred."""
    header = " ".join(f"{name} " for name in WEEKDAY_ABBREVIATIONS)
    lines = [month_title(year, month).center(len(header)).rstrip(), header.rstrip()]
    for week in grid:
        cells = []
        for d in week:
            if d.month != month:
                cells.append(" . ")
            else:
                marker = "*" if is_today(d, today) else " "
                cells.append(f"{d.day:>2}{marker}")
        lines.append(" ".join(cells).rstrip())
    return "\n".join(lines)


def print_availability_report(day: date, candidates: List[CandidateSlot]):
    """Prints the formatted availability report to stdout."""
    print(f"\n--- Availability Report for {weekday_name(day).capitalize()} {day.isoformat()} ---")

    for candidate in candidates:
        prefix = "[BOOKED]" if candidate.is_booked else "[OPEN]  "
        print(f"{prefix} {candidate.start}")

    open_count = sum(1 for c in candidates if not c.is_booked)
    if open_count:
        print(f"Summary: Found {open_count} available time slots for {day.isoformat()}!")
    else:
        print(f"Summary: No appointment times available for {day.isoformat()}.")


def run(
    date_arg: str | None = None,
    book: str | None = None,
    metadata: BookingMetadata | None = None,
    show_month: bool = False,
) -> int:
    """Loads restrictions and bookings for one date, prints its availability and optionally books a slot.

    Returns the process exit code.
    """
    try:
        day = parse_date_arg(date_arg)
    except ValueError as e:
        logger.error(str(e))
        return 1

    client = ApiClient()
    source = HttpRestrictionSource(client)
    session = BookingSession(HttpBookingStore(client), source)
    session.attach()
    try:
        try:
            source.refresh()
        except SourceUnavailable:
            logger.warning("Using cached restrictions, if any.")

        if show_month:
            print(format_month_grid(session.show_month(day.year, day.month), day.year, day.month, session.today))

        if is_past_date(day, session.today):
            logger.error(f"{day.isoformat()} is in the past.")
            return 1

        ticket = session.select_date(day)
        try:
            session.load_appointments(ticket)
        except SourceUnavailable as e:
            logger.error(f"Cannot show availability: {e}")
            return 1

        print_availability_report(day, session.candidates())

        if book:
            session.select_time(book)
            appointment = session.submit(metadata)
            print(f"\nYour appointment has been scheduled:\n\n{describe_confirmation(appointment)}")
    except BookingError as e:
        logger.error(f"Booking failed: {e}")
        return 1
    finally:
        session.detach()

    return 0
