import logging
from collections import Counter
from datetime import date, datetime

from practice_backend.scheduling.time_utils import to_local
from practice_backend.scheduling.types import Appointment

logger = logging.getLogger(__name__)


def local_date(appointment: Appointment, tz) -> date | None:
    start = getattr(appointment, 'start', None)
    if not isinstance(start, datetime):
        return None
    return to_local(start, tz).date()


def for_day(appointments: list[Appointment], target_date: date, tz) -> list[Appointment]:
    """Appointments whose local calendar date equals ``target_date``.

    Only local year/month/day are compared, never UTC components. Entries
    without a usable start are dropped.
    """
    if isinstance(target_date, datetime):
        target_date = to_local(target_date, tz).date()

    selected = []
    for appointment in appointments:
        appointment_date = local_date(appointment, tz)
        if appointment_date is None:
            logger.warning('Ignoring appointment without a start: %r', getattr(appointment, 'id', None))
            continue
        if appointment_date == target_date:
            selected.append(appointment)
    return selected


def appointments_for_date(appointments: list[Appointment], target_date: date, tz) -> list[Appointment]:
    return sorted(for_day(appointments, target_date, tz), key=lambda appointment: appointment.start)


def booked_days_in_month(appointments: list[Appointment], year: int, month: int, tz) -> dict[int, int]:
    """Map day-of-month to the number of bookings, for calendar grid markers."""
    counts: Counter[int] = Counter()
    for appointment in appointments:
        appointment_date = local_date(appointment, tz)
        if appointment_date and appointment_date.year == year and appointment_date.month == month:
            counts[appointment_date.day] += 1
    return dict(sorted(counts.items()))
