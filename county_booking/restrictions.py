import logging
from datetime import date, datetime
from typing import Callable, Dict, Iterable, List

from county_booking import config, persist
from county_booking.api_client import ApiClient, ApiError, unwrap_envelope
from county_booking.calendar_grid import normalize_date
from county_booking.errors import PersistenceError, SourceUnavailable
from county_booking.models import BusinessWindow
from county_booking.timeutil import parse_time_of_day

logger = logging.getLogger(__name__)

RestrictionTable = Dict[str, BusinessWindow]
UpdateCallback = Callable[[RestrictionTable], None]
ErrorCallback = Callable[[Exception], None]

WEEKDAY_NAMES = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]
WORKING_DAYS = WEEKDAY_NAMES[:5]


def weekday_name(d: date | datetime) -> str:
    """Lowercase English weekday of the local calendar date, e.g. "monday"."""
    return WEEKDAY_NAMES[normalize_date(d).weekday()]


def resolve_window(d: date | datetime, restrictions: RestrictionTable) -> BusinessWindow | None:
    """Looks up the business window for d's weekday.

    None means the weekday has no restriction and the whole catalog is open.
    """
    day = weekday_name(d)
    window = restrictions.get(day)
    if window is None:
        logger.debug(f"No restriction found for {day}, all slots are open")
    return window


def parse_restrictions(documents: Iterable[Dict]) -> RestrictionTable:
    """Builds a restriction table from {"day", "begin", "end"} documents.

    Documents missing a field are skipped. Malformed times raise
    InvalidTimeFormat.
    """
    table: RestrictionTable = {}
    for doc in documents:
        day = (doc.get("day") or "").strip().lower()
        begin = (doc.get("begin") or "").strip()
        end = (doc.get("end") or "").strip()

        if not (day and begin and end):
            logger.warning(f"Skipped invalid restriction: day={day!r}, begin={begin!r}, end={end!r}")
            continue

        table[day] = BusinessWindow(open=parse_time_of_day(begin), close=parse_time_of_day(end))
        logger.debug(f"Added restriction: {day} = {begin} - {end}")
    return table


def serialize_restrictions(table: RestrictionTable) -> List[Dict]:
    return [
        {"day": day, "begin": str(window.open), "end": str(window.close)}
        for day, window in sorted(table.items(), key=lambda item: _weekday_order(item[0]))
    ]


def _weekday_order(day: str) -> int:
    return WEEKDAY_NAMES.index(day) if day in WEEKDAY_NAMES else len(WEEKDAY_NAMES)


def default_restrictions() -> RestrictionTable:
    """Monday to Friday, office hours."""
    window = BusinessWindow(open=parse_time_of_day(config.OFFICE_OPEN), close=parse_time_of_day(config.OFFICE_CLOSE))
    return {day: window for day in WORKING_DAYS}


class RestrictionFeed:
    """In-process restriction source that pushes table updates to subscribers."""

    def __init__(self, initial: RestrictionTable | None = None):
        self._subscribers: List[tuple] = []
        self._latest: RestrictionTable | None = dict(initial) if initial is not None else None

    @property
    def latest(self) -> RestrictionTable | None:
        return self._latest

    def subscribe(self, on_update: UpdateCallback, on_error: ErrorCallback | None = None) -> Callable[[], None]:
        """Registers callbacks and returns a function that removes them.

        A subscriber joining after a publish receives the latest table right away.
        """
        entry = (on_update, on_error)
        self._subscribers.append(entry)
        if self._latest is not None:
            on_update(dict(self._latest))

        def unsubscribe():
            if entry in self._subscribers:
                self._subscribers.remove(entry)

        return unsubscribe

    def publish(self, table: RestrictionTable):
        self._latest = dict(table)
        logger.info(f"Publishing restrictions for {len(table)} day(s): {', '.join(sorted(table))}")
        for on_update, _ in list(self._subscribers):
            on_update(dict(table))

    def publish_error(self, error: Exception):
        for _, on_error in list(self._subscribers):
            if on_error is not None:
                on_error(error)


class HttpRestrictionSource(RestrictionFeed):
    """Restriction source backed by the office API, with a disk cache of the last good table."""

    def __init__(self, client: ApiClient | None = None):
        super().__init__()
        self.client = client or ApiClient()

    def subscribe(self, on_update: UpdateCallback, on_error: ErrorCallback | None = None) -> Callable[[], None]:
        if self._latest is None:
            cached = persist.load_restrictions_cache()
            if cached:
                self._latest = parse_restrictions(cached)
        return super().subscribe(on_update, on_error)

    def refresh(self) -> RestrictionTable:
        """Fetches the restriction table and pushes it to subscribers."""
        logger.info(f"Fetching restrictions from {config.RESTRICTIONS_ENDPOINT}")
        try:
            documents = unwrap_envelope(self.client.get(config.RESTRICTIONS_ENDPOINT)) or []
        except ApiError as e:
            logger.error(f"Failed to load time restrictions: {e}")
            error = SourceUnavailable(f"Failed to load time restrictions: {e}")
            self.publish_error(error)
            raise error from e

        table = parse_restrictions(documents)
        persist.save_restrictions_cache(serialize_restrictions(table))
        self.publish(table)
        return table

    def save(self, table: RestrictionTable):
        """Stores an edited restriction table and pushes it to subscribers."""
        documents = serialize_restrictions(table)
        try:
            unwrap_envelope(self.client.put(config.RESTRICTIONS_ENDPOINT, documents))
        except ApiError as e:
            logger.error(f"Failed to save appointment times: {e}")
            raise PersistenceError(f"Failed to save appointment times: {e}") from e

        persist.save_restrictions_cache(documents)
        self.publish(table)
