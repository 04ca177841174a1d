from datetime import date
from unittest.mock import MagicMock

import pytest

from county_booking.errors import ConflictError, PersistenceError, SourceUnavailable, ValidationError
from county_booking.models import Appointment, BookingMetadata, BusinessWindow, BusyInterval
from county_booking.restrictions import RestrictionFeed
from county_booking.session import BookingPhase, BookingSession
from county_booking.store import InMemoryBookingStore
from county_booking.timeutil import parse_time_of_day

TODAY = date(2026, 10, 19)  # Monday
TUESDAY = date(2026, 10, 20)
WEDNESDAY = date(2026, 10, 21)
MORNING = BusinessWindow(open=parse_time_of_day("9:00 AM"), close=parse_time_of_day("12:00 PM"))


@pytest.fixture
def store():
    return InMemoryBookingStore([Appointment(id="x", date=TUESDAY, start=parse_time_of_day("10:00 AM"))])


@pytest.fixture
def feed():
    return RestrictionFeed()


@pytest.fixture
def session(store, feed):
    s = BookingSession(store, feed, today=TODAY)
    s.attach()
    yield s
    s.detach()


def _booked(session):
    return [str(c.start) for c in session.candidates() if c.is_booked]


def test_initial_state(session):
    assert session.state.phase == BookingPhase.NO_DATE_SELECTED
    assert (session.state.year, session.state.month) == (2026, 10)
    candidates = session.candidates()
    assert len(candidates) == 33
    assert not any(c.is_booked for c in candidates)


def test_month_navigation(session):
    session.show_month(2026, 12)
    grid = session.next_month()
    assert (session.state.year, session.state.month) == (2027, 1)
    assert grid[0][5] == date(2027, 1, 1)

    session.previous_month()
    session.previous_month()
    assert (session.state.year, session.state.month) == (2026, 11)
    assert session.month_grid()[0][0] == date(2026, 11, 1)


def test_select_past_date_is_rejected(session):
    with pytest.raises(ValidationError):
        session.select_date(date(2026, 10, 18))
    assert session.state.selected_date is None


def test_load_appointments_marks_booked_slots(session):
    ticket = session.select_date(TUESDAY)
    assert session.state.phase == BookingPhase.DATE_SELECTED

    assert session.load_appointments(ticket) is True

    assert session.state.phase == BookingPhase.SLOTS_READY
    assert _booked(session) == ["9:30 AM", "9:45 AM", "10:00 AM", "10:15 AM", "10:30 AM"]


def test_busy_intervals_block_slots(store, session):
    store.busy.append(BusyInterval(start="2026-10-20T14:00:00", end="2026-10-20T14:15:00"))
    session.load_appointments(session.select_date(TUESDAY))
    assert "2:00 PM" in _booked(session)
    assert "1:30 PM" in _booked(session)


def test_selecting_new_date_clears_time_and_occupancy(session):
    session.load_appointments(session.select_date(TUESDAY))
    session.select_time("9:00 AM")
    assert session.state.phase == BookingPhase.SLOT_SELECTED

    session.select_date(WEDNESDAY)

    assert session.state.selected_time is None
    assert session.state.occupied == set()
    assert session.state.phase == BookingPhase.DATE_SELECTED


def test_stale_appointment_response_is_ignored(session, store):
    first = session.select_date(TUESDAY)
    second = session.select_date(WEDNESDAY)

    assert session.apply_appointments(first, store.list_appointments(TUESDAY, TUESDAY)) is False
    assert session.state.occupied == set()
    assert session.state.appointments_loaded is False

    assert session.apply_appointments(second, []) is True
    assert session.state.appointments_loaded is True


def test_refresh_keeps_loaded_state_on_failure(session):
    session.load_appointments(session.select_date(TUESDAY))
    occupied = set(session.state.occupied)

    ticket = session.refresh_ticket()
    assert session.fail_appointments(ticket, RuntimeError("offline")) is True

    assert session.state.occupied == occupied
    assert isinstance(session.state.appointments_error, SourceUnavailable)


def test_stale_failure_is_ignored(session):
    first = session.select_date(TUESDAY)
    session.select_date(WEDNESDAY)
    assert session.fail_appointments(first, SourceUnavailable("late")) is False
    assert session.state.appointments_error is None


def test_load_appointments_failure_is_reported(feed):
    failing_store = MagicMock()
    failing_store.list_appointments.side_effect = SourceUnavailable("backend down")
    session = BookingSession(failing_store, feed, today=TODAY)

    ticket = session.select_date(TUESDAY)
    with pytest.raises(SourceUnavailable):
        session.load_appointments(ticket)

    assert session.state.appointments_error is not None
    assert session.state.phase == BookingPhase.DATE_SELECTED


def test_load_appointments_without_date(session):
    with pytest.raises(ValidationError):
        session.load_appointments()


def test_restriction_update_keeps_selection(session, feed):
    session.load_appointments(session.select_date(TUESDAY))
    session.select_time("10:45 AM")
    assert len(session.candidates()) == 33

    feed.publish({"tuesday": MORNING})

    assert session.state.selected_date == TUESDAY
    assert session.state.selected_time == parse_time_of_day("10:45 AM")
    assert session.state.phase == BookingPhase.SLOT_SELECTED
    candidates = session.candidates()
    assert len(candidates) == 10
    assert str(candidates[-1].start) == "11:15 AM"


def test_restrictions_for_other_days_leave_date_unrestricted(session, feed):
    feed.publish({"monday": MORNING})
    session.select_date(TUESDAY)
    assert session.window() is None
    assert len(session.candidates()) == 33


def test_restriction_error_keeps_previous_table(session, feed):
    feed.publish({"tuesday": MORNING})
    feed.publish_error(RuntimeError("listener failed"))

    assert session.state.restrictions == {"tuesday": MORNING}
    assert isinstance(session.state.restrictions_error, SourceUnavailable)
    assert session.state.appointments_error is None


def test_detach_stops_updates(session, feed):
    session.detach()
    feed.publish({"tuesday": MORNING})
    assert session.state.restrictions == {}
    assert session.state.restrictions_loaded is False


def test_select_time_outside_window(session, feed):
    feed.publish({"tuesday": MORNING})
    session.load_appointments(session.select_date(TUESDAY))
    with pytest.raises(ValidationError):
        session.select_time("11:30 AM")


def test_select_time_requires_date(session):
    with pytest.raises(ValidationError):
        session.select_time("9:00 AM")


def test_select_booked_time_conflicts(session):
    session.load_appointments(session.select_date(TUESDAY))
    with pytest.raises(ConflictError) as excinfo:
        session.select_time("10:15 AM")
    assert [str(t) for t in excinfo.value.conflicting_slots] == ["10:15 AM", "10:30 AM"]


def test_submit_confirms_and_blocks_slots(session, store):
    session.load_appointments(session.select_date(TUESDAY))
    session.select_time("1:00 PM")

    appointment = session.submit(BookingMetadata(name="Pat Doe"))

    assert session.state.phase == BookingPhase.CONFIRMED
    assert session.state.confirmed == appointment
    assert len(store.appointments) == 2
    assert {"1:00 PM", "1:15 PM", "1:30 PM"} <= set(_booked(session))
    with pytest.raises(ConflictError):
        session.select_time("1:15 PM")


def test_submit_without_time_keeps_phase(session):
    session.load_appointments(session.select_date(TUESDAY))
    with pytest.raises(ValidationError):
        session.submit()
    assert session.state.phase == BookingPhase.SLOTS_READY


def test_submit_rechecks_against_bookings_made_meanwhile(session):
    ticket = session.select_date(TUESDAY)
    session.load_appointments(ticket)
    session.select_time("1:00 PM")

    # Another candidate booked 12:45 PM while this one was filling in the form
    session.apply_appointments(
        session.refresh_ticket(),
        [Appointment(date=TUESDAY, start=parse_time_of_day("12:45 PM"))],
    )

    with pytest.raises(ConflictError):
        session.submit()
    assert session.state.phase == BookingPhase.FAILED


def test_submit_persistence_failure_is_retryable(feed):
    failing_store = MagicMock()
    failing_store.list_appointments.return_value = []
    failing_store.list_busy_intervals.return_value = []
    failing_store.create_appointment.side_effect = PersistenceError("write failed")
    session = BookingSession(failing_store, feed, today=TODAY)

    session.load_appointments(session.select_date(TUESDAY))
    session.select_time("9:00 AM")
    with pytest.raises(PersistenceError):
        session.submit()

    assert session.state.phase == BookingPhase.FAILED
    assert session.state.occupied == set()
    assert session.state.selected_time == parse_time_of_day("9:00 AM")


def test_select_time_while_appointments_are_loading(session, store):
    session.select_date(TUESDAY)

    with pytest.raises(ValidationError, match="still loading"):
        session.select_time("10:00 AM")
    with pytest.raises(ValidationError):
        session.submit()

    assert session.state.phase == BookingPhase.DATE_SELECTED
    assert len(store.appointments) == 1


def test_select_time_after_failed_load(session, store):
    ticket = session.select_date(TUESDAY)
    session.fail_appointments(ticket, SourceUnavailable("down"))

    with pytest.raises(ValidationError, match="could not be loaded"):
        session.select_time("10:15 AM")

    assert session.state.selected_time is None
    assert [str(a.start) for a in store.appointments] == ["10:00 AM"]


def test_submit_after_switching_to_a_date_still_loading(session, store):
    session.load_appointments(session.select_date(TUESDAY))
    session.select_time("1:00 PM")
    session.select_date(WEDNESDAY)

    with pytest.raises(ValidationError):
        session.submit()
    assert len(store.appointments) == 1


def test_appointment_load_clears_only_its_own_error(session, feed):
    feed.publish_error(RuntimeError("listener failed"))
    session.load_appointments(session.select_date(TUESDAY))

    assert session.state.appointments_error is None
    assert isinstance(session.state.restrictions_error, SourceUnavailable)


def test_restriction_update_clears_time_outside_new_window(session, feed, store):
    session.load_appointments(session.select_date(TUESDAY))
    session.select_time("3:00 PM")

    feed.publish({"tuesday": MORNING})

    assert session.state.selected_time is None
    assert session.state.phase == BookingPhase.SLOTS_READY
    with pytest.raises(ValidationError):
        session.submit()
    assert len(store.appointments) == 1


def test_submit_rejects_time_the_window_no_longer_offers(session, feed, store):
    session.load_appointments(session.select_date(TUESDAY))
    session.select_time("3:00 PM")
    session.state.restrictions = {"tuesday": MORNING}

    with pytest.raises(ValidationError, match="not available"):
        session.submit()
    assert session.state.phase == BookingPhase.SLOT_SELECTED
    assert len(store.appointments) == 1
