from datetime import date, datetime, timedelta

import pytz

from practice_backend.scheduling.countdown import CountdownState
from practice_backend.scheduling.pipeline import build_schedule, reconcile
from practice_backend.scheduling.slots import OPERATING_WINDOW
from practice_backend.scheduling.time_utils import slot_label
from practice_backend.scheduling.types import Appointment, BreakMarker, Err, Ok, UnavailableMarker

UTC = pytz.UTC
MONDAY = date(2026, 1, 5)
MONDAY_MORNING = {1: ('09:00', '09:30', '10:00')}


def _record(appointment_id, start: str, **extra) -> dict:
    return {'id': appointment_id, 'start': start, 'patientName': f'Patient {appointment_id}', **extra}


def test_reconcile_monday_availability_example() -> None:
    result = reconcile(Ok([_record('a', '2026-01-05T09:00:00Z')]), [], MONDAY_MORNING, MONDAY, UTC)

    entries = result.schedule.entries
    appointments = [entry for entry in entries if isinstance(entry, Appointment)]
    unavailable_labels = [entry.label for entry in entries if isinstance(entry, UnavailableMarker)]

    assert [item.id for item in appointments] == ['a']
    assert appointments[0].in_available_slot is True
    assert '09:30' not in unavailable_labels
    assert '10:00' not in unavailable_labels
    assert '09:00' not in unavailable_labels
    assert len(unavailable_labels) == 24
    assert result.no_data is False


def test_reconcile_break_example() -> None:
    result = reconcile(
        Ok([_record('a', '2026-01-05T09:00:00Z'), _record('b', '2026-01-05T11:30:00Z')]),
        [],
        {},
        MONDAY,
        UTC,
    )

    breaks = [entry for entry in result.schedule.entries if isinstance(entry, BreakMarker)]

    assert [entry.at for entry in breaks] == [UTC.localize(datetime(2026, 1, 5, 10, 0))]
    assert result.schedule.unavailable == []


def test_reconcile_countdown_example() -> None:
    now = UTC.localize(datetime(2026, 1, 5, 8, 50))

    result = reconcile(Ok([_record('a', '2026-01-05T09:00:00Z')]), [], {}, MONDAY, UTC, now=now)

    assert result.countdown.state == CountdownState.IMMINENT
    assert result.countdown.display == '10 min'


def test_reconcile_without_now_skips_countdown() -> None:
    result = reconcile(Ok([_record('a', '2026-01-05T09:00:00Z')]), [], {}, MONDAY, UTC)

    assert result.countdown is None


def test_reconcile_has_no_duplicate_identifiers() -> None:
    result = reconcile(
        Ok([_record(1, '2026-01-05T09:00:00Z'), _record('1', '2026-01-05T09:00:00Z'), _record('2', '2026-01-05T13:00:00Z')]),
        [_record('2', '2026-01-05T13:00:00Z'), _record('3', '2026-01-05T15:00:00Z')],
        MONDAY_MORNING,
        MONDAY,
        UTC,
    )

    ids = [entry.id for entry in result.schedule.appointments]

    assert sorted(ids) == ['1', '2', '3']
    assert len(ids) == len(set(ids))


def test_reconcile_covers_every_window_slot_on_configured_days() -> None:
    result = reconcile(
        Ok([_record('a', '2026-01-05T09:00:00Z'), _record('b', '2026-01-05T16:30:00Z')]),
        [],
        MONDAY_MORNING,
        MONDAY,
        UTC,
    )

    booked = {slot_label(item.start) for item in result.schedule.appointments}
    declared = set(MONDAY_MORNING[1])
    marked = {entry.label for entry in result.schedule.unavailable}

    for label in OPERATING_WINDOW:
        assert label in booked or label in declared or label in marked


def test_reconcile_suppresses_markers_on_unconfigured_days() -> None:
    tuesday = date(2026, 1, 6)

    result = reconcile(Ok([_record('a', '2026-01-06T09:00:00Z')]), [], MONDAY_MORNING, tuesday, UTC)

    assert result.schedule.unavailable == []
    assert result.today[0].in_available_slot is False


def test_reconcile_entries_are_chronological() -> None:
    result = reconcile(
        Ok([_record('b', '2026-01-05T15:00:00Z'), _record('a', '2026-01-05T09:00:00Z')]),
        [_record('c', '2026-01-05T12:00:00Z')],
        MONDAY_MORNING,
        MONDAY,
        UTC,
    )

    instants = [entry.at for entry in result.schedule.entries]

    assert instants == sorted(instants)


def test_reconcile_degrades_to_cache_when_remote_fails() -> None:
    result = reconcile(Err('timeout'), [_record('cached', '2026-01-05T09:00:00Z')], {}, MONDAY, UTC)

    assert [item.id for item in result.today] == ['cached']
    assert result.today[0].source == 'cache'
    assert result.no_data is False


def test_reconcile_flags_no_data_when_both_sources_are_empty() -> None:
    result = reconcile(Err('timeout'), [], MONDAY_MORNING, MONDAY, UTC)

    assert result.no_data is True
    assert result.schedule.no_data is True
    assert result.schedule.appointments == []


def test_reconcile_keeps_other_days_for_calendar_views() -> None:
    result = reconcile(
        Ok([_record('today', '2026-01-05T09:00:00Z'), _record('tomorrow', '2026-01-06T09:00:00Z')]),
        [],
        {},
        MONDAY,
        UTC,
    )

    assert [item.id for item in result.appointments] == ['today', 'tomorrow']
    assert [item.id for item in result.today] == ['today']


def test_build_schedule_for_another_day_reuses_annotated_appointments() -> None:
    result = reconcile(
        Ok([_record('a', '2026-01-05T09:00:00Z'), _record('b', '2026-01-12T09:00:00Z')]),
        [],
        MONDAY_MORNING,
        MONDAY,
        UTC,
    )

    next_monday = MONDAY + timedelta(days=7)
    today, schedule = build_schedule(result.appointments, result.availability, next_monday, UTC)

    assert [item.id for item in today] == ['b']
    assert schedule.date == next_monday
    assert len(schedule.unavailable) == 24
