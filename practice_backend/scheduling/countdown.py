"""Next-session selection and the countdown shown on the dashboard.

Everything here takes ``now`` as an argument so the one-second display timer
can re-derive the countdown from the last schedule without touching the
reconciliation pipeline.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

from practice_backend.scheduling.time_utils import format_clock, minutes_between
from practice_backend.scheduling.types import Appointment, AppointmentStatus, DaySchedule

IN_PROGRESS_GRACE_MINUTES = 60
IMMINENT_MINUTES = 15
SOON_MINUTES = 60
MINUTES_PER_DAY = 1440


class CountdownState(str, Enum):
    NONE = 'NONE'
    FUTURE = 'FUTURE'
    LATER_TODAY = 'LATER_TODAY'
    SOON = 'SOON'
    IMMINENT = 'IMMINENT'
    NOW = 'NOW'


@dataclass(frozen=True)
class Countdown:
    target: Appointment | None
    state: CountdownState
    display: str
    minutes_until: float | None = None


def _is_candidate(appointment: Appointment) -> bool:
    return appointment.status != AppointmentStatus.CANCELLED


def _is_relevant(appointment: Appointment, now: datetime) -> bool:
    if appointment.start > now:
        return True
    return now - appointment.start < timedelta(minutes=IN_PROGRESS_GRACE_MINUTES)


def select_target(
    schedule: DaySchedule | None,
    now: datetime,
    all_appointments: Iterable[Appointment] = (),
) -> Appointment | None:
    if schedule is not None:
        for appointment in sorted(schedule.appointments, key=lambda item: item.start):
            if _is_candidate(appointment) and _is_relevant(appointment, now):
                return appointment

    upcoming = [
        appointment
        for appointment in all_appointments
        if _is_candidate(appointment) and appointment.start > now
    ]
    if not upcoming:
        return None
    return min(upcoming, key=lambda item: item.start)


def countdown_state(minutes_until: float | None) -> CountdownState:
    if minutes_until is None:
        return CountdownState.NONE
    if minutes_until <= 0:
        return CountdownState.NOW
    if minutes_until <= IMMINENT_MINUTES:
        return CountdownState.IMMINENT
    if minutes_until < SOON_MINUTES:
        return CountdownState.SOON
    if minutes_until < MINUTES_PER_DAY:
        return CountdownState.LATER_TODAY
    return CountdownState.FUTURE


def countdown_display(state: CountdownState, minutes_until: float | None, target: Appointment | None) -> str:
    if state == CountdownState.NONE:
        return ''
    if state == CountdownState.NOW:
        return 'Now'
    whole_minutes = int(minutes_until)
    if state in (CountdownState.IMMINENT, CountdownState.SOON):
        return f'{whole_minutes} min'
    if state == CountdownState.LATER_TODAY:
        hours, minutes = divmod(whole_minutes, 60)
        return f'{hours}h {minutes}m'
    return format_clock(target.start)


def next_relevant(
    schedule: DaySchedule | None,
    now: datetime,
    all_appointments: Iterable[Appointment] = (),
) -> Countdown:
    """Pick the session to count down to and classify how close it is.

    Today's schedule wins: the first session still upcoming or started less
    than an hour ago. Otherwise the nearest future appointment on any day.
    """
    target = select_target(schedule, now, all_appointments)
    if target is None:
        return Countdown(target=None, state=CountdownState.NONE, display='')

    minutes_until = minutes_between(now, target.start)
    state = countdown_state(minutes_until)
    return Countdown(
        target=target,
        state=state,
        display=countdown_display(state, minutes_until, target),
        minutes_until=minutes_until,
    )
