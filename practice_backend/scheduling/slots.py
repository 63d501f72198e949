"""Slot universe for the operating window, unavailable slots and breaks.

The operating window runs from 07:00 to 20:00 inclusive in 30 minute steps,
27 slots per day.
"""

import logging
from collections.abc import Iterable
from datetime import date, datetime, timedelta

from practice_backend.scheduling.availability import CLOSE_TIME, OPEN_TIME
from practice_backend.scheduling.time_utils import SLOT_INCREMENT_MINUTES, label_to_time, localize, slot_label
from practice_backend.scheduling.types import (
    DEFAULT_SESSION_DURATION_MINUTES,
    Appointment,
    BreakMarker,
    UnavailableMarker,
)

logger = logging.getLogger(__name__)

MIN_BREAK_MINUTES = 60
BREAK_OFFSET_MINUTES = 10


def operating_window_labels() -> list[str]:
    labels = []
    current = datetime.combine(date.min, OPEN_TIME)
    last = datetime.combine(date.min, CLOSE_TIME)

    while current <= last:
        labels.append(current.strftime('%H:%M'))
        current += timedelta(minutes=SLOT_INCREMENT_MINUTES)

    return labels


OPERATING_WINDOW = tuple(operating_window_labels())


def booked_labels(appointments: Iterable[Appointment], tz) -> set[str]:
    return {slot_label(appointment.start.astimezone(tz)) for appointment in appointments}


def unavailable_slots(
    booked: set[str],
    day_availability: Iterable[str] | None,
    target_date: date,
    tz,
    window: Iterable[str] = OPERATING_WINDOW,
) -> list[UnavailableMarker]:
    available = set(day_availability or ())
    if not available:
        logger.debug('No availability declared for %s, skipping unavailable slots', target_date)
        return []

    markers = []
    for label in window:
        if label in booked or label in available:
            continue
        markers.append(UnavailableMarker(at=localize(target_date, label_to_time(label), tz), label=label))
    return markers


def find_breaks(
    appointments: Iterable[Appointment],
    session_minutes: int = DEFAULT_SESSION_DURATION_MINUTES,
) -> list[BreakMarker]:
    """Insert a break after any session followed by an hour or more of free time."""
    ordered = sorted(appointments, key=lambda appointment: appointment.start)
    session = timedelta(minutes=session_minutes)
    min_gap = timedelta(minutes=MIN_BREAK_MINUTES)

    breaks = []
    for current, following in zip(ordered, ordered[1:]):
        session_end = current.start + session
        if following.start - session_end >= min_gap:
            breaks.append(BreakMarker(at=session_end + timedelta(minutes=BREAK_OFFSET_MINUTES)))
    return breaks
