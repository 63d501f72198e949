"""Shared vocabulary of the schedule reconciliation engine."""

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, field_validator

DEFAULT_SESSION_DURATION_MINUTES = 50

# day-of-week (0 = Sunday) -> sorted HH:MM labels
AvailabilityConfig = dict[int, tuple[str, ...]]


class AppointmentStatus(str, Enum):
    RESERVED = 'reserved'
    CONFIRMED = 'confirmed'
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'
    NO_SHOW = 'no_show'


class RiskLevel(str, Enum):
    LOW = 'low'
    MEDIUM = 'medium'
    HIGH = 'high'


class Appointment(BaseModel):
    """A booked session, normalized from the remote API or the local cache."""

    kind: Literal['appointment'] = 'appointment'
    id: str
    patient_name: str
    patient_id: str | None = None
    start: datetime
    duration_minutes: int = DEFAULT_SESSION_DURATION_MINUTES
    status: AppointmentStatus = AppointmentStatus.RESERVED
    risk_level: RiskLevel = RiskLevel.LOW
    homework_completed: bool = True
    is_video_call: bool = False
    notes: str = ''
    in_available_slot: bool | None = None
    source: Literal['remote', 'cache'] = 'remote'

    @field_validator('start')
    @classmethod
    def validate_start(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            raise ValueError('Appointment start must be timezone-aware.')
        return value

    @field_validator('duration_minutes')
    @classmethod
    def validate_duration(cls, value: int) -> int:
        if value <= 0:
            raise ValueError('Duration must be positive.')
        return value

    @property
    def end(self) -> datetime:
        return self.start + timedelta(minutes=self.duration_minutes)

    @property
    def at(self) -> datetime:
        return self.start


class BreakMarker(BaseModel):
    """Gap of at least an hour between two sessions."""

    kind: Literal['break'] = 'break'
    at: datetime


class UnavailableMarker(BaseModel):
    """Half-hour slot that is neither booked nor declared available."""

    kind: Literal['unavailable'] = 'unavailable'
    at: datetime
    label: str


ScheduleEntry = Annotated[
    Union[Appointment, BreakMarker, UnavailableMarker],
    Field(discriminator='kind'),
]


class DaySchedule(BaseModel):
    date: date
    entries: list[ScheduleEntry] = []
    no_data: bool = False

    @property
    def appointments(self) -> list[Appointment]:
        return [entry for entry in self.entries if isinstance(entry, Appointment)]

    @property
    def breaks(self) -> list[BreakMarker]:
        return [entry for entry in self.entries if isinstance(entry, BreakMarker)]

    @property
    def unavailable(self) -> list[UnavailableMarker]:
        return [entry for entry in self.entries if isinstance(entry, UnavailableMarker)]


@dataclass(frozen=True)
class Ok:
    value: Any = field(default_factory=list)


@dataclass(frozen=True)
class Err:
    reason: str


SourceResult = Union[Ok, Err]
