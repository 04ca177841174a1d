"""Availability for a selected date.

Combines the day's slot catalog, the weekday's business window and the set
of slots already taken into the list of start times shown to the user, and
re-checks a chosen start time right before it is booked.
"""
import logging
from datetime import date
from typing import Iterable, List

from county_booking import config
from county_booking.models import BusinessWindow, CandidateSlot, SelectionResult, TimeOfDay
from county_booking.occupancy import OccupiedSlotSet, slots_covered_by_appointment, sorted_slots
from county_booking.timeutil import to_minutes

logger = logging.getLogger(__name__)


def fits_window(start: TimeOfDay, window: BusinessWindow, appointment_duration_minutes: int) -> bool:
    """True when the whole appointment, not just its start, lies inside the window."""
    start_minutes = to_minutes(start)
    return (
        start_minutes >= to_minutes(window.open)
        and start_minutes + appointment_duration_minutes <= to_minutes(window.close)
    )


def compute_availability(
    day: date,
    catalog: Iterable[TimeOfDay],
    window: BusinessWindow | None,
    occupied: OccupiedSlotSet,
    appointment_duration_minutes: int = config.APPOINTMENT_DURATION_MINUTES,
    granularity_minutes: int = config.SLOT_GRANULARITY_MINUTES,
) -> List[CandidateSlot]:
    """Lists the candidate start times for day in catalog order.

    Without a window every catalog slot is a candidate. With one, only
    starts whose full appointment fits between open and close survive.
    A candidate is booked when any slot it would cover is occupied.
    """
    candidates = list(catalog)

    if window is not None:
        total_before = len(candidates)
        candidates = [slot for slot in candidates if fits_window(slot, window, appointment_duration_minutes)]
        logger.debug(
            f"Filtered slots for {day}: {len(candidates)} of {total_before} fit {window.open} - {window.close}"
        )

    return [
        CandidateSlot(
            start=slot,
            is_booked=bool(
                slots_covered_by_appointment(slot, appointment_duration_minutes, granularity_minutes) & occupied
            ),
        )
        for slot in candidates
    ]


def validate_selection(
    day: date,
    time: TimeOfDay,
    occupied: OccupiedSlotSet,
    appointment_duration_minutes: int = config.APPOINTMENT_DURATION_MINUTES,
    granularity_minutes: int = config.SLOT_GRANULARITY_MINUTES,
) -> SelectionResult:
    """Checks a proposed start time against the current occupied slots.

    Call it again at submit time, the occupied set may have changed since
    the slots were rendered.
    """
    covered = slots_covered_by_appointment(time, appointment_duration_minutes, granularity_minutes)
    conflicting = sorted_slots(covered & occupied)
    if conflicting:
        logger.info(f"Selection {time} on {day} conflicts with booked slots: {', '.join(map(str, conflicting))}")
    return SelectionResult(conflicting_slots=conflicting)


def available_starts(candidates: Iterable[CandidateSlot]) -> List[TimeOfDay]:
    return [candidate.start for candidate in candidates if not candidate.is_booked]
