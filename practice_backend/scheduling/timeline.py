from datetime import date

from practice_backend.scheduling.types import (
    Appointment,
    BreakMarker,
    DaySchedule,
    ScheduleEntry,
    UnavailableMarker,
)

KIND_ORDER = {'appointment': 0, 'break': 1, 'unavailable': 2}


def entry_sort_key(entry: ScheduleEntry):
    return entry.at, KIND_ORDER[entry.kind]


def assemble(
    appointments: list[Appointment],
    breaks: list[BreakMarker],
    unavailable: list[UnavailableMarker],
    target_date: date,
    no_data: bool = False,
) -> DaySchedule:
    """Merge sessions and markers into one chronologically sorted day."""
    entries = sorted([*appointments, *breaks, *unavailable], key=entry_sort_key)
    return DaySchedule(date=target_date, entries=entries, no_data=no_data)
