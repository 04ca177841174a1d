import logging
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Callable, Iterable, List, Set

from county_booking import booking, config
from county_booking.availability import compute_availability, validate_selection
from county_booking.calendar_grid import MonthGrid, build_month_grid, is_past_date, normalize_date, shift_month
from county_booking.errors import ConflictError, PersistenceError, SourceUnavailable, ValidationError
from county_booking.models import Appointment, BookingMetadata, BusinessWindow, BusyInterval, CandidateSlot, TimeOfDay
from county_booking.occupancy import aggregate_busy_slots, aggregate_occupied_slots
from county_booking.restrictions import RestrictionFeed, RestrictionTable, resolve_window
from county_booking.slots import default_catalog
from county_booking.store import BookingStore
from county_booking.timeutil import coerce_time

logger = logging.getLogger(__name__)


class BookingPhase(str, Enum):
    NO_DATE_SELECTED = "no_date_selected"
    DATE_SELECTED = "date_selected"
    SLOTS_READY = "slots_ready"
    SLOT_SELECTED = "slot_selected"
    SUBMITTING = "submitting"
    CONFIRMED = "confirmed"
    FAILED = "failed"


@dataclass(frozen=True)
class FetchTicket:
    """Identifies one appointment fetch. Responses for an outdated ticket are dropped."""

    date: date
    sequence: int


@dataclass
class BookingSessionState:
    year: int
    month: int
    selected_date: date | None = None
    selected_time: TimeOfDay | None = None
    restrictions: RestrictionTable = field(default_factory=dict)
    restrictions_loaded: bool = False
    occupied: Set[TimeOfDay] = field(default_factory=set)
    appointments_loaded: bool = False
    phase: BookingPhase = BookingPhase.NO_DATE_SELECTED
    restrictions_error: SourceUnavailable | None = None
    appointments_error: SourceUnavailable | None = None
    confirmed: Appointment | None = None
    fetch_sequence: int = 0


class BookingSession:
    """Drives one user's pass through the booking calendar.

    All derived values (month grid, candidates) are recomputed from the
    state on every call.
    """

    def __init__(
        self,
        store: BookingStore,
        restriction_source: RestrictionFeed | None = None,
        today: date | None = None,
        catalog: Iterable[TimeOfDay] | None = None,
        appointment_duration_minutes: int = config.APPOINTMENT_DURATION_MINUTES,
        granularity_minutes: int = config.SLOT_GRANULARITY_MINUTES,
    ):
        self.store = store
        self.restriction_source = restriction_source
        self._today = today
        self.catalog: List[TimeOfDay] = list(catalog) if catalog is not None else default_catalog()
        self.appointment_duration_minutes = appointment_duration_minutes
        self.granularity_minutes = granularity_minutes
        self._unsubscribe: Callable[[], None] | None = None

        start = self.today
        self.state = BookingSessionState(year=start.year, month=start.month)

    @property
    def today(self) -> date:
        return self._today or date.today()

    # --- Restrictions ---

    def attach(self):
        """Subscribes to the restriction source. Updates may arrive at any time."""
        if self.restriction_source is None or self._unsubscribe is not None:
            return
        self._unsubscribe = self.restriction_source.subscribe(self._on_restrictions, self._on_restrictions_error)

    def detach(self):
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _on_restrictions(self, table: RestrictionTable):
        self.state.restrictions = dict(table)
        self.state.restrictions_loaded = True
        self.state.restrictions_error = None
        logger.debug(f"Restrictions updated: {', '.join(sorted(table)) or 'none'}")
        self._drop_unavailable_time()

    def _drop_unavailable_time(self):
        """Clears a selected time that the current window or occupancy no longer offers."""
        state = self.state
        if state.selected_time is None or state.phase != BookingPhase.SLOT_SELECTED:
            return
        free = {candidate.start for candidate in self.candidates() if not candidate.is_booked}
        if state.selected_time in free:
            return
        logger.info(f"{state.selected_time} is no longer available on {state.selected_date}, clearing the selection")
        state.selected_time = None
        state.phase = BookingPhase.SLOTS_READY

    def _on_restrictions_error(self, error: Exception):
        # Keep the last good table.
        if not isinstance(error, SourceUnavailable):
            error = SourceUnavailable(str(error))
        self.state.restrictions_error = error
        logger.warning(f"Restriction source unavailable, keeping previous restrictions: {error}")

    # --- Month navigation ---

    def show_month(self, year: int, month: int) -> MonthGrid:
        grid = build_month_grid(year, month)
        self.state.year, self.state.month = year, month
        return grid

    def next_month(self) -> MonthGrid:
        return self.show_month(*shift_month(self.state.year, self.state.month, 1))

    def previous_month(self) -> MonthGrid:
        return self.show_month(*shift_month(self.state.year, self.state.month, -1))

    def month_grid(self) -> MonthGrid:
        return build_month_grid(self.state.year, self.state.month)

    # --- Date selection and appointment loading ---

    def select_date(self, d: date) -> FetchTicket:
        """Selects a date, clearing the selected time and the old occupancy.

        Returns the ticket the appointment fetch for this date must carry.
        """
        d = normalize_date(d)
        if is_past_date(d, self.today):
            raise ValidationError("Cannot select a past date")

        state = self.state
        state.selected_date = d
        state.selected_time = None
        state.occupied = set()
        state.appointments_loaded = False
        state.appointments_error = None
        state.confirmed = None
        state.phase = BookingPhase.DATE_SELECTED
        return self._next_ticket()

    def refresh_ticket(self) -> FetchTicket:
        """A new ticket for the current date that keeps the loaded occupancy until the answer arrives."""
        if self.state.selected_date is None:
            raise ValidationError("Please select a date")
        return self._next_ticket()

    def _next_ticket(self) -> FetchTicket:
        self.state.fetch_sequence += 1
        return FetchTicket(date=self.state.selected_date, sequence=self.state.fetch_sequence)

    def is_current(self, ticket: FetchTicket) -> bool:
        return ticket.date == self.state.selected_date and ticket.sequence == self.state.fetch_sequence

    def apply_appointments(
        self,
        ticket: FetchTicket,
        appointments: Iterable[Appointment],
        busy: Iterable[BusyInterval] = (),
    ) -> bool:
        """Applies a fetch result. Returns False when the ticket is outdated and nothing changed."""
        if not self.is_current(ticket):
            logger.debug(f"Discarding stale appointments for {ticket.date} (fetch #{ticket.sequence})")
            return False

        occupied = aggregate_occupied_slots(appointments, self.granularity_minutes, ticket.date)
        occupied |= aggregate_busy_slots(ticket.date, busy, self.granularity_minutes, self.catalog)

        state = self.state
        state.occupied = occupied
        state.appointments_loaded = True
        state.appointments_error = None
        if state.phase == BookingPhase.DATE_SELECTED:
            state.phase = BookingPhase.SLOTS_READY
        return True

    def fail_appointments(self, ticket: FetchTicket, error: Exception) -> bool:
        """Records a failed fetch, keeping whatever occupancy was loaded before."""
        if not self.is_current(ticket):
            return False
        if not isinstance(error, SourceUnavailable):
            error = SourceUnavailable(str(error))
        self.state.appointments_error = error
        return True

    def load_appointments(self, ticket: FetchTicket | None = None) -> bool:
        """Fetches the day's appointments and busy blocks from the store and applies them."""
        ticket = ticket or self.refresh_ticket()
        try:
            appointments = self.store.list_appointments(ticket.date, ticket.date)
            busy = self.store.list_busy_intervals(ticket.date, ticket.date)
        except SourceUnavailable as e:
            self.fail_appointments(ticket, e)
            raise
        return self.apply_appointments(ticket, appointments, busy)

    # --- Slots ---

    def window(self) -> BusinessWindow | None:
        if self.state.selected_date is None:
            return None
        return resolve_window(self.state.selected_date, self.state.restrictions)

    def candidates(self) -> List[CandidateSlot]:
        """Candidate start times for the selected date; the whole catalog, unbooked, before a date is picked."""
        if self.state.selected_date is None:
            return [CandidateSlot(start=slot, is_booked=False) for slot in self.catalog]
        return compute_availability(
            self.state.selected_date,
            self.catalog,
            self.window(),
            self.state.occupied,
            self.appointment_duration_minutes,
            self.granularity_minutes,
        )

    def _require_appointments(self):
        """Slots can only be offered once the day's existing appointments are known."""
        state = self.state
        if state.selected_date is None:
            raise ValidationError("Please select a date")
        if state.appointments_loaded:
            return
        if state.appointments_error is not None:
            raise ValidationError(
                f"Existing appointments for {state.selected_date} could not be loaded: {state.appointments_error}"
            )
        raise ValidationError(f"Existing appointments for {state.selected_date} are still loading")

    def _require_candidate(self, start: TimeOfDay):
        if start not in {candidate.start for candidate in self.candidates()}:
            raise ValidationError(f"{start} is not available on {self.state.selected_date}")

    def select_time(self, time: TimeOfDay | str) -> TimeOfDay:
        self._require_appointments()

        start = coerce_time(time)
        self._require_candidate(start)

        selection = validate_selection(
            self.state.selected_date,
            start,
            self.state.occupied,
            self.appointment_duration_minutes,
            self.granularity_minutes,
        )
        if selection.is_conflict:
            raise ConflictError(selection.conflicting_slots)

        self.state.selected_time = start
        self.state.phase = BookingPhase.SLOT_SELECTED
        return start

    # --- Submission ---

    def submit(self, metadata: BookingMetadata | None = None) -> Appointment:
        state = self.state
        if state.selected_date is not None:
            self._require_appointments()
            if state.selected_time is not None:
                # The window may have changed since the time was picked.
                self._require_candidate(state.selected_time)

        previous_phase = state.phase
        state.phase = BookingPhase.SUBMITTING
        try:
            appointment = booking.submit(
                state.selected_date,
                state.selected_time,
                self.appointment_duration_minutes,
                metadata or BookingMetadata(),
                state.occupied,
                self.store,
                self.granularity_minutes,
                self.today,
            )
        except ValidationError:
            state.phase = previous_phase
            raise
        except (ConflictError, PersistenceError):
            state.phase = BookingPhase.FAILED
            raise

        state.confirmed = appointment
        state.phase = BookingPhase.CONFIRMED
        return appointment
