# Typed failures raised by the booking engine.
from typing import List, Sequence


class BookingError(Exception):
    """Base class for every failure the booking engine reports."""


class InvalidTimeFormat(BookingError, ValueError):
    """
    Raised when a time string is not of the shape "H:MM AM" / "H:MM PM".
    May be raised under the following circumstances:
        1. The text does not match the pattern at all
        2. The hour is outside 1-12
        3. The minute is outside 0-59
    """


class ValidationError(BookingError):
    """A booking request is incomplete or not allowed (missing date/time, past date)."""


class ConflictError(BookingError):
    """The requested start time overlaps an existing booking."""

    def __init__(self, conflicting_slots: Sequence, message: str | None = None):
        self.conflicting_slots: List = list(conflicting_slots)
        if message is None:
            listed = ", ".join(str(slot) for slot in self.conflicting_slots)
            message = (
                "This time slot conflicts with an existing appointment. "
                f"The following slots are already booked: {listed}."
            )
        super().__init__(message)


class PersistenceError(BookingError):
    """The booking store rejected or failed to write an appointment."""


class SourceUnavailable(BookingError):
    """A collaborator (restriction source or booking store) could not be read."""
