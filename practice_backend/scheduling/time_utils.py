"""Helpers for turning the assorted date encodings into aware instants."""

import logging
import re
from datetime import date, datetime, time, timedelta

import pytz

logger = logging.getLogger(__name__)

SLOT_INCREMENT_MINUTES = 30

_PURE_DATE_RE = re.compile(r'^\d{4}-\d{2}-\d{2}$')
_CLOCK_RE = re.compile(r'^(\d{1,2}):(\d{2})(?::(\d{2}))?$')


def get_timezone(tz_name: str | None):
    try:
        return pytz.timezone(tz_name or 'UTC')
    except pytz.UnknownTimeZoneError:
        logger.error("Invalid timezone '%s', falling back to UTC", tz_name)
        return pytz.UTC


def localize(day: date, clock: time, tz) -> datetime:
    return tz.localize(datetime.combine(day, clock))


def to_local(value: datetime, tz) -> datetime:
    if value.tzinfo is None:
        return tz.localize(value)
    return value.astimezone(tz)


def parse_instant(value, tz) -> datetime | None:
    """Coerce *value* into an aware ``datetime`` in ``tz``.

    Pure ``YYYY-MM-DD`` strings and ``date`` objects become local midnight so
    they never move across a UTC day boundary. Full ISO timestamps with an
    offset are converted to local time; naive ones are taken as local.
    Anything unparsable returns ``None``.
    """
    if value in (None, '', b''):
        return None
    if isinstance(value, datetime):
        return to_local(value, tz)
    if isinstance(value, date):
        return localize(value, time(0, 0), tz)
    if not isinstance(value, str):
        return None

    text = value.strip()
    if not text:
        return None

    if _PURE_DATE_RE.match(text):
        try:
            return localize(date.fromisoformat(text), time(0, 0), tz)
        except ValueError:
            return None

    normalized = text[:-1] + '+00:00' if text.endswith('Z') else text
    try:
        parsed = datetime.fromisoformat(normalized)
    except ValueError:
        return None
    return to_local(parsed, tz)


def parse_clock(value) -> time | None:
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0)
    if not isinstance(value, str):
        return None

    match = _CLOCK_RE.match(value.strip())
    if not match:
        return None

    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        return None
    return time(hour, minute)


def combine_date_and_time(date_value, time_value, tz) -> datetime | None:
    """Set hour and minute from ``time_value`` on the local date of ``date_value``."""
    day = parse_instant(date_value, tz)
    clock = parse_clock(time_value)
    if day is None or clock is None:
        return None
    return localize(day.date(), clock, tz)


def slot_label(value: datetime) -> str:
    """Return the ``HH:MM`` label of the half-hour slot containing ``value``."""
    minute = value.minute - (value.minute % SLOT_INCREMENT_MINUTES)
    return f'{value.hour:02d}:{minute:02d}'


def label_to_time(label: str) -> time | None:
    clock = parse_clock(label)
    if clock is None or clock.minute % SLOT_INCREMENT_MINUTES != 0:
        return None
    return clock


def day_of_week(value: date) -> int:
    """Day index with Sunday as 0."""
    return (value.weekday() + 1) % 7


def format_clock(value: datetime) -> str:
    return value.strftime('%H:%M')


def minutes_between(start: datetime, end: datetime) -> float:
    return (end - start) / timedelta(minutes=1)
