from datetime import datetime

import pytest
import pytz

from practice_backend.scheduling.availability import (
    annotate,
    is_in_available_slot,
    normalize_day,
    normalize_label,
    parse_availability,
    resolve_availability,
)
from practice_backend.scheduling.errors import MalformedRecord
from practice_backend.scheduling.types import Appointment, Err, Ok

UTC = pytz.UTC

MONDAY_MORNING = {1: ('09:00', '09:30', '10:00')}


def _appointment(appointment_id: str, start: datetime) -> Appointment:
    return Appointment(id=appointment_id, patient_name='Patient', start=UTC.localize(start))


def test_parse_availability_accepts_string_day_keys_and_sorts_labels() -> None:
    availability = parse_availability({'1': ['10:00', '09:00', '09:00'], 3: ['14:30']})

    assert availability == {1: ('09:00', '10:00'), 3: ('14:30',)}


def test_parse_availability_skips_invalid_days_and_labels() -> None:
    availability = parse_availability(
        {
            'monday': ['09:00'],
            '9': ['09:00'],
            '2': ['09:15', '06:30', 'noon', '20:00'],
            '4': '09:00',
        }
    )

    assert availability == {2: ('20:00',)}


def test_parse_availability_skips_day_given_as_mapping() -> None:
    availability = parse_availability({'1': {'09:00': True}, '2': ['09:00']})

    assert availability == {2: ('09:00',)}


def test_parse_availability_ignores_non_mapping_payload() -> None:
    assert parse_availability(None) == {}
    assert parse_availability(['09:00']) == {}


def test_parse_availability_keeps_configured_but_empty_days() -> None:
    assert parse_availability({'0': []}) == {0: ()}


def test_normalize_label_pads_hours() -> None:
    assert normalize_label('9:30') == '09:30'


@pytest.mark.parametrize('value', ['09:15', '21:00', '6:30', 'later', None])
def test_normalize_label_rejects_off_grid_or_out_of_window_times(value) -> None:
    with pytest.raises(MalformedRecord):
        normalize_label(value)


@pytest.mark.parametrize('value', ['7', -1, 'sunday', None])
def test_normalize_day_rejects_out_of_range_values(value) -> None:
    with pytest.raises(MalformedRecord):
        normalize_day(value)


def test_resolve_availability_prefers_remote_when_available() -> None:
    cached = {2: ('08:00',)}

    assert resolve_availability(Ok({'1': ['09:00']}), cached) == {1: ('09:00',)}
    assert resolve_availability(Err('offline'), cached) == cached
    assert resolve_availability(None, cached) == cached


def test_is_in_available_slot_rounds_down_to_half_hour() -> None:
    # 2026-01-05 is a Monday
    inside = _appointment('inside', datetime(2026, 1, 5, 9, 45))
    outside = _appointment('outside', datetime(2026, 1, 5, 10, 30))
    wrong_day = _appointment('tuesday', datetime(2026, 1, 6, 9, 0))

    assert is_in_available_slot(inside, MONDAY_MORNING, UTC) is True
    assert is_in_available_slot(outside, MONDAY_MORNING, UTC) is False
    assert is_in_available_slot(wrong_day, MONDAY_MORNING, UTC) is False


def test_annotate_flags_without_mutating_inputs() -> None:
    appointments = [
        _appointment('a', datetime(2026, 1, 5, 9, 0)),
        _appointment('b', datetime(2026, 1, 5, 13, 0)),
    ]

    annotated = annotate(appointments, MONDAY_MORNING, UTC)

    assert [item.in_available_slot for item in annotated] == [True, False]
    assert all(item.in_available_slot is None for item in appointments)


def test_annotate_uses_provider_local_day_of_week() -> None:
    new_york = pytz.timezone('America/New_York')
    # Tuesday 01:00 UTC is Monday 20:00 in New York
    appointment = _appointment('a', datetime(2026, 1, 6, 1, 0))

    annotated = annotate([appointment], {1: ('20:00',)}, new_york)

    assert annotated[0].in_available_slot is True
