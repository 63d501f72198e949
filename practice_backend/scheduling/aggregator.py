"""Normalization of raw appointment records from the remote API and the cache."""

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from pydantic import ValidationError

from practice_backend.scheduling.dedupe import dedupe
from practice_backend.scheduling.errors import MalformedRecord
from practice_backend.scheduling.time_utils import combine_date_and_time, parse_instant
from practice_backend.scheduling.types import (
    DEFAULT_SESSION_DURATION_MINUTES,
    Appointment,
    AppointmentStatus,
    Err,
    Ok,
    RiskLevel,
    SourceResult,
)

logger = logging.getLogger(__name__)

UNKNOWN_PATIENT_NAME = 'Unknown patient'

ID_FIELDS = ('id', '_id', 'appointmentId', 'appointment_id')
PATIENT_NAME_FIELDS = ('patientName', 'patient_name', 'nombrePaciente')
PATIENT_ID_FIELDS = ('patientId', 'patient_id')
START_FIELDS = ('start', 'startTime', 'start_time', 'fechaHora', 'dateTime')
STATUS_FIELDS = ('status', 'estado')
DURATION_FIELDS = ('duration', 'durationMinutes', 'duration_minutes')
RISK_FIELDS = ('riskLevel', 'risk_level')
HOMEWORK_FIELDS = ('homeworkCompleted', 'homework_completed')
VIDEO_FIELDS = ('isVideoCall', 'is_video_call')

STATUS_ALIASES = {
    'reserved': AppointmentStatus.RESERVED,
    'pending': AppointmentStatus.RESERVED,
    'confirmed': AppointmentStatus.CONFIRMED,
    'scheduled': AppointmentStatus.CONFIRMED,
    'booked': AppointmentStatus.CONFIRMED,
    'completed': AppointmentStatus.COMPLETED,
    'cancelled': AppointmentStatus.CANCELLED,
    'canceled': AppointmentStatus.CANCELLED,
    'no_show': AppointmentStatus.NO_SHOW,
    'no-show': AppointmentStatus.NO_SHOW,
    'noshow': AppointmentStatus.NO_SHOW,
}


def _first(record: Mapping[str, Any], fields: Iterable[str]):
    for name in fields:
        value = record.get(name)
        if value not in (None, ''):
            return value
    return None


def _normalize_id(value) -> str | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Mapping):
        return _normalize_id(_first(value, ('_id', 'id')))
    normalized = str(value).strip()
    return normalized or None


def _patient_name(record: Mapping[str, Any]) -> str:
    name = _first(record, PATIENT_NAME_FIELDS)
    if isinstance(name, str) and name.strip():
        return name.strip()

    patient = record.get('patient')
    if isinstance(patient, Mapping) and isinstance(patient.get('name'), str) and patient['name'].strip():
        return patient['name'].strip()

    patient_ref = record.get('patientId')
    if isinstance(patient_ref, Mapping) and patient_ref.get('nombre'):
        parts = [patient_ref.get('nombre'), patient_ref.get('apellido')]
        return ' '.join(str(part).strip() for part in parts if part)

    return UNKNOWN_PATIENT_NAME


def _start(record: Mapping[str, Any], tz):
    combined = _first(record, START_FIELDS)
    if combined is not None:
        return parse_instant(combined, tz)

    date_value = record.get('date')
    time_value = record.get('time')
    if date_value in (None, ''):
        return None
    if time_value in (None, ''):
        return parse_instant(date_value, tz)
    return combine_date_and_time(date_value, time_value, tz)


def _status(record: Mapping[str, Any]) -> AppointmentStatus:
    raw = _first(record, STATUS_FIELDS)
    if raw is None:
        return AppointmentStatus.RESERVED

    status = STATUS_ALIASES.get(str(raw).strip().lower())
    if status is None:
        logger.warning('Unknown appointment status %r, treating as reserved', raw)
        return AppointmentStatus.RESERVED
    return status


def _duration(record: Mapping[str, Any]) -> int:
    raw = _first(record, DURATION_FIELDS)
    if raw is None or isinstance(raw, bool):
        return DEFAULT_SESSION_DURATION_MINUTES
    try:
        minutes = int(float(raw))
    except (TypeError, ValueError):
        return DEFAULT_SESSION_DURATION_MINUTES
    return minutes if minutes > 0 else DEFAULT_SESSION_DURATION_MINUTES


def _risk(record: Mapping[str, Any]) -> RiskLevel:
    raw = _first(record, RISK_FIELDS)
    try:
        return RiskLevel(str(raw).strip().lower())
    except ValueError:
        return RiskLevel.LOW


def _flag(record: Mapping[str, Any], fields: Iterable[str], default: bool) -> bool:
    raw = _first(record, fields)
    if raw is None:
        return default
    if isinstance(raw, str):
        return raw.strip().lower() in {'1', 'true', 'yes', 'on'}
    return bool(raw)


def normalize_record(record: Mapping[str, Any], tz, source: str = 'remote') -> Appointment:
    if not isinstance(record, Mapping):
        raise MalformedRecord('Appointment record is not a mapping.', record)

    appointment_id = _normalize_id(_first(record, ID_FIELDS))
    if appointment_id is None:
        raise MalformedRecord('Appointment record has no identifier.', record)

    start = _start(record, tz)
    if start is None:
        raise MalformedRecord(f'Appointment {appointment_id} has no usable start time.', record)

    # Missing homework flags count as done; only an explicit false is pending.
    homework = _first(record, HOMEWORK_FIELDS)
    homework_completed = homework is not False and str(homework).strip().lower() not in {'false', '0', 'no'}

    try:
        return Appointment(
            id=appointment_id,
            patient_name=_patient_name(record),
            patient_id=_normalize_id(_first(record, PATIENT_ID_FIELDS)),
            start=start.replace(second=0, microsecond=0),
            duration_minutes=_duration(record),
            status=_status(record),
            risk_level=_risk(record),
            homework_completed=homework_completed,
            is_video_call=_flag(record, VIDEO_FIELDS, default=False),
            notes=str(record.get('notes') or ''),
            source=source,
        )
    except ValidationError as exc:
        raise MalformedRecord(f'Appointment {appointment_id} failed validation: {exc}', record) from exc


def normalize_records(records: Iterable[Mapping[str, Any]], tz, source: str = 'remote') -> list[Appointment]:
    appointments: list[Appointment] = []
    for record in records or []:
        try:
            appointments.append(normalize_record(record, tz, source=source))
        except MalformedRecord as exc:
            logger.warning('Skipping malformed %s appointment: %s', source, exc.reason)
    return appointments


def remote_records(remote_result: SourceResult) -> list:
    if isinstance(remote_result, Err):
        logger.warning('Remote appointments unavailable, using cache only: %s', remote_result.reason)
        return []
    if isinstance(remote_result, Ok) and isinstance(remote_result.value, list):
        return remote_result.value
    logger.warning('Remote appointments returned an unexpected payload, using cache only.')
    return []


def aggregate(remote_result: SourceResult, cached_result: Iterable[Mapping[str, Any]], tz) -> list[Appointment]:
    """Normalize both sources and merge them, the remote winning on id collisions."""
    remote = normalize_records(remote_records(remote_result), tz, source='remote')
    cached = normalize_records(cached_result, tz, source='cache')
    return dedupe(remote, cached)
