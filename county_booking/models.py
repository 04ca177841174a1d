from datetime import date, datetime
from typing import List

from pydantic import BaseModel, ConfigDict, Field

from county_booking import config

MINUTES_PER_DAY = 24 * 60


class TimeOfDay(BaseModel):
    """A wall-clock time as minutes since midnight."""

    model_config = ConfigDict(frozen=True)

    minutes: int = Field(ge=0, lt=MINUTES_PER_DAY)

    @property
    def hour(self) -> int:
        return self.minutes // 60

    @property
    def minute(self) -> int:
        return self.minutes % 60

    def __str__(self) -> str:
        hour12 = self.hour % 12 or 12
        period = "PM" if self.hour >= 12 else "AM"
        return f"{hour12}:{self.minute:02d} {period}"


class BusinessWindow(BaseModel):
    model_config = ConfigDict(frozen=True)

    open: TimeOfDay
    close: TimeOfDay


class Appointment(BaseModel):
    id: str | None = None
    date: date
    start: TimeOfDay
    duration_minutes: int = config.APPOINTMENT_DURATION_MINUTES
    status: str = config.SCHEDULED_STATUS


class BusyInterval(BaseModel):
    """A busy block pulled from the office's external calendar."""

    start: datetime
    end: datetime


class CandidateSlot(BaseModel):
    start: TimeOfDay
    is_booked: bool


class SelectionResult(BaseModel):
    conflicting_slots: List[TimeOfDay] = []

    @property
    def ok(self) -> bool:
        return not self.conflicting_slots

    @property
    def is_conflict(self) -> bool:
        return bool(self.conflicting_slots)


class BookingMetadata(BaseModel):
    user_id: int | None = None
    name: str = ""
    email: str = ""
    notes: str = ""
    appointment_type: str = config.APPOINTMENT_TYPE
    location: str = config.APPOINTMENT_LOCATION
    address: str = config.APPOINTMENT_ADDRESS
    time_zone: str = config.APPOINTMENT_TIME_ZONE
