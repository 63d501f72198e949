"""Weekly availability parsing and appointment matching."""

import logging
from collections.abc import Mapping
from datetime import time

from practice_backend.scheduling.errors import MalformedRecord
from practice_backend.scheduling.time_utils import day_of_week, label_to_time, slot_label, to_local
from practice_backend.scheduling.types import Appointment, AvailabilityConfig, Err, Ok, SourceResult

logger = logging.getLogger(__name__)

OPEN_TIME = time(7, 0)
CLOSE_TIME = time(20, 0)


def normalize_label(value) -> str:
    clock = label_to_time(value) if isinstance(value, str) else None
    if clock is None:
        raise MalformedRecord(f'Invalid availability time {value!r}.', value)
    if clock < OPEN_TIME or clock > CLOSE_TIME:
        raise MalformedRecord(f'Availability time {value!r} is outside the operating window.', value)
    return f'{clock.hour:02d}:{clock.minute:02d}'


def normalize_day(value) -> int:
    try:
        day = int(value)
    except (TypeError, ValueError) as exc:
        raise MalformedRecord(f'Invalid day of week {value!r}.', value) from exc
    if not 0 <= day <= 6:
        raise MalformedRecord(f'Day of week {value!r} is out of range.', value)
    return day


def parse_availability(raw) -> AvailabilityConfig:
    """Build an ``AvailabilityConfig`` from stored or fetched JSON.

    Keys may be strings (JSON objects) or ints. Bad keys and labels are
    skipped; labels are deduplicated and sorted.
    """
    if not isinstance(raw, Mapping):
        if raw not in (None, {}):
            logger.warning('Ignoring availability payload of type %s', type(raw).__name__)
        return {}

    config: AvailabilityConfig = {}
    for raw_day, raw_labels in raw.items():
        try:
            day = normalize_day(raw_day)
        except MalformedRecord as exc:
            logger.warning('Skipping availability entry: %s', exc.reason)
            continue

        if isinstance(raw_labels, (str, Mapping)) or not hasattr(raw_labels, '__iter__'):
            logger.warning('Skipping availability for day %s: expected a list of times', day)
            continue

        labels: set[str] = set(config.get(day, ()))
        for raw_label in raw_labels:
            try:
                labels.add(normalize_label(raw_label))
            except MalformedRecord as exc:
                logger.warning('Skipping availability time for day %s: %s', day, exc.reason)
        config[day] = tuple(sorted(labels))

    return config


def resolve_availability(remote_result: SourceResult | None, cached: AvailabilityConfig) -> AvailabilityConfig:
    if isinstance(remote_result, Ok):
        return parse_availability(remote_result.value)
    if isinstance(remote_result, Err):
        logger.warning('Remote availability unavailable, using cached configuration: %s', remote_result.reason)
    return cached


def availability_for(availability: AvailabilityConfig, day_index: int) -> tuple[str, ...] | None:
    return availability.get(day_index)


def is_in_available_slot(appointment: Appointment, availability: AvailabilityConfig, tz) -> bool:
    start = to_local(appointment.start, tz)
    labels = availability.get(day_of_week(start.date())) or ()
    return slot_label(start) in labels


def annotate(appointments: list[Appointment], availability: AvailabilityConfig, tz) -> list[Appointment]:
    """Flag each appointment as inside or outside the declared availability."""
    return [
        appointment.model_copy(update={'in_available_slot': is_in_available_slot(appointment, availability, tz)})
        for appointment in appointments
    ]
