from datetime import datetime

import pytest
import pytz

from practice_backend.scheduling.aggregator import aggregate, normalize_record, normalize_records
from practice_backend.scheduling.dedupe import dedupe
from practice_backend.scheduling.errors import MalformedRecord
from practice_backend.scheduling.types import AppointmentStatus, Err, Ok, RiskLevel

UTC = pytz.UTC
NEW_YORK = pytz.timezone('America/New_York')


def test_normalize_record_maps_camel_case_fields() -> None:
    appointment = normalize_record(
        {
            'id': 42,
            'patientName': ' Ana Ruiz ',
            'patientId': 'p-1',
            'startTime': '2026-01-05T14:00:00Z',
            'duration': '45',
            'status': 'Confirmed',
            'riskLevel': 'HIGH',
            'isVideoCall': True,
            'notes': 'Follow up',
        },
        UTC,
    )

    assert appointment.id == '42'
    assert appointment.patient_name == 'Ana Ruiz'
    assert appointment.patient_id == 'p-1'
    assert appointment.start == UTC.localize(datetime(2026, 1, 5, 14, 0))
    assert appointment.duration_minutes == 45
    assert appointment.status == AppointmentStatus.CONFIRMED
    assert appointment.risk_level == RiskLevel.HIGH
    assert appointment.is_video_call is True
    assert appointment.notes == 'Follow up'
    assert appointment.source == 'remote'


def test_normalize_record_uses_mongo_style_identifiers_and_nested_patient() -> None:
    appointment = normalize_record(
        {
            '_id': {'_id': 'abc123'},
            'fechaHora': '2026-01-05T09:00:00',
            'estado': 'cancelled',
            'patientId': {'_id': 'p-9', 'nombre': 'Lucia', 'apellido': 'Gomez'},
        },
        UTC,
    )

    assert appointment.id == 'abc123'
    assert appointment.patient_id == 'p-9'
    assert appointment.patient_name == 'Lucia Gomez'
    assert appointment.status == AppointmentStatus.CANCELLED


def test_normalize_record_combines_separate_date_and_time_in_local_time() -> None:
    appointment = normalize_record({'id': 'a', 'date': '2026-01-05', 'time': '09:30'}, NEW_YORK)

    assert appointment.start == NEW_YORK.localize(datetime(2026, 1, 5, 9, 30))


def test_normalize_record_treats_pure_date_as_local_midnight() -> None:
    appointment = normalize_record({'id': 'a', 'start': '2026-01-05'}, NEW_YORK)

    assert appointment.start.astimezone(NEW_YORK).date().isoformat() == '2026-01-05'
    assert appointment.start.astimezone(NEW_YORK).hour == 0


def test_normalize_record_zeroes_seconds() -> None:
    appointment = normalize_record({'id': 'a', 'start': '2026-01-05T09:00:45.120Z'}, UTC)

    assert appointment.start.second == 0
    assert appointment.start.microsecond == 0


def test_normalize_record_applies_defaults() -> None:
    appointment = normalize_record({'id': 'a', 'start': '2026-01-05T09:00:00Z', 'duration': -5}, UTC)

    assert appointment.patient_name == 'Unknown patient'
    assert appointment.duration_minutes == 50
    assert appointment.status == AppointmentStatus.RESERVED
    assert appointment.risk_level == RiskLevel.LOW
    assert appointment.homework_completed is True
    assert appointment.is_video_call is False


@pytest.mark.parametrize(('raw', 'expected'), [(False, False), ('false', False), (0, False), (True, True), (None, True)])
def test_normalize_record_homework_is_done_unless_explicitly_false(raw, expected: bool) -> None:
    appointment = normalize_record(
        {'id': 'a', 'start': '2026-01-05T09:00:00Z', 'homeworkCompleted': raw},
        UTC,
    )

    assert appointment.homework_completed is expected


def test_normalize_record_unknown_status_becomes_reserved() -> None:
    appointment = normalize_record({'id': 'a', 'start': '2026-01-05T09:00:00Z', 'status': 'rescheduled'}, UTC)

    assert appointment.status == AppointmentStatus.RESERVED


@pytest.mark.parametrize(
    'record',
    [
        {'start': '2026-01-05T09:00:00Z'},
        {'id': '   ', 'start': '2026-01-05T09:00:00Z'},
        {'id': 'a'},
        {'id': 'a', 'start': 'next tuesday'},
        {'id': 'a', 'date': '2026-01-05', 'time': '25:00'},
        'not-a-record',
    ],
)
def test_normalize_record_rejects_malformed_records(record) -> None:
    with pytest.raises(MalformedRecord):
        normalize_record(record, UTC)


def test_normalize_records_skips_malformed_entries() -> None:
    appointments = normalize_records(
        [
            {'id': 'a', 'start': '2026-01-05T09:00:00Z'},
            {'id': 'b'},
            {'id': 'c', 'start': '2026-01-05T10:00:00Z'},
        ],
        UTC,
        source='cache',
    )

    assert [appointment.id for appointment in appointments] == ['a', 'c']
    assert all(appointment.source == 'cache' for appointment in appointments)


def test_dedupe_keeps_remote_entry_on_collision() -> None:
    remote = normalize_records([{'id': '1', 'start': '2026-01-05T09:00:00Z', 'patientName': 'Remote'}], UTC)
    cached = normalize_records(
        [
            {'id': '1', 'start': '2026-01-05T09:00:00Z', 'patientName': 'Cached'},
            {'id': '2', 'start': '2026-01-05T11:00:00Z'},
        ],
        UTC,
        source='cache',
    )

    merged = dedupe(remote, cached)

    assert [appointment.id for appointment in merged] == ['1', '2']
    assert merged[0].patient_name == 'Remote'


def test_dedupe_drops_repeated_ids_within_one_source() -> None:
    remote = normalize_records(
        [
            {'id': '1', 'start': '2026-01-05T09:00:00Z', 'patientName': 'First'},
            {'id': '1', 'start': '2026-01-05T10:00:00Z', 'patientName': 'Second'},
        ],
        UTC,
    )

    merged = dedupe(remote, [])

    assert len(merged) == 1
    assert merged[0].patient_name == 'First'


def test_aggregate_treats_numeric_and_string_ids_as_the_same_appointment() -> None:
    merged = aggregate(
        Ok([{'id': 7, 'start': '2026-01-05T09:00:00Z'}]),
        [{'id': '7', 'start': '2026-01-05T09:00:00Z'}],
        UTC,
    )

    assert len(merged) == 1
    assert merged[0].source == 'remote'


def test_aggregate_falls_back_to_cache_when_remote_fails() -> None:
    merged = aggregate(Err('connection refused'), [{'id': 'c1', 'start': '2026-01-05T09:00:00Z'}], UTC)

    assert [appointment.id for appointment in merged] == ['c1']
    assert merged[0].source == 'cache'


def test_aggregate_returns_empty_when_both_sources_are_empty() -> None:
    assert aggregate(Err('timeout'), [], UTC) == []
    assert aggregate(Ok([]), [], UTC) == []
