"""One reconciliation pass, from raw source data to the assembled day."""

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

from practice_backend.scheduling.aggregator import aggregate
from practice_backend.scheduling.availability import annotate, availability_for
from practice_backend.scheduling.countdown import Countdown, next_relevant
from practice_backend.scheduling.day_filter import for_day
from practice_backend.scheduling.slots import booked_labels, find_breaks, unavailable_slots
from practice_backend.scheduling.time_utils import day_of_week
from practice_backend.scheduling.timeline import assemble
from practice_backend.scheduling.types import (
    DEFAULT_SESSION_DURATION_MINUTES,
    Appointment,
    AvailabilityConfig,
    DaySchedule,
    SourceResult,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Reconciliation:
    appointments: list[Appointment]
    today: list[Appointment]
    schedule: DaySchedule
    availability: AvailabilityConfig
    no_data: bool
    countdown: Countdown | None = None


def build_schedule(
    appointments: list[Appointment],
    availability: AvailabilityConfig,
    target_date: date,
    tz,
    session_minutes: int = DEFAULT_SESSION_DURATION_MINUTES,
    no_data: bool = False,
) -> tuple[list[Appointment], DaySchedule]:
    """Filter to ``target_date`` and assemble the timeline for that day."""
    today = for_day(appointments, target_date, tz)
    breaks = find_breaks(today, session_minutes=session_minutes)
    unavailable = unavailable_slots(
        booked_labels(today, tz),
        availability_for(availability, day_of_week(target_date)),
        target_date,
        tz,
    )
    return today, assemble(today, breaks, unavailable, target_date, no_data=no_data)


def reconcile(
    remote_result: SourceResult,
    cached_records: Iterable[Mapping[str, Any]],
    availability: AvailabilityConfig,
    target_date: date,
    tz,
    now: datetime | None = None,
    session_minutes: int = DEFAULT_SESSION_DURATION_MINUTES,
) -> Reconciliation:
    merged = aggregate(remote_result, cached_records, tz)
    # dedupe only drops cached duplicates, so an empty merge means both sources were empty
    no_data = not merged
    if no_data:
        logger.warning('No appointment data available from remote or cache for %s', target_date)

    appointments = annotate(merged, availability, tz)
    today, schedule = build_schedule(
        appointments,
        availability,
        target_date,
        tz,
        session_minutes=session_minutes,
        no_data=no_data,
    )

    countdown = next_relevant(schedule, now, appointments) if now is not None else None
    return Reconciliation(
        appointments=appointments,
        today=today,
        schedule=schedule,
        availability=availability,
        no_data=no_data,
        countdown=countdown,
    )
