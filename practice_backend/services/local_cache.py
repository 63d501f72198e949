"""Per-provider local cache of appointments and weekly availability."""

import logging
from datetime import datetime, timezone

from sqlalchemy.orm import Session, sessionmaker

from practice_backend.models.appointment import CachedAppointment
from practice_backend.models.availability import AvailabilitySlot
from practice_backend.scheduling.availability import parse_availability
from practice_backend.scheduling.types import Appointment, AvailabilityConfig

logger = logging.getLogger(__name__)


def _to_utc_naive(value: datetime) -> datetime:
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _record_from_row(row: CachedAppointment) -> dict:
    start = row.start_time.replace(tzinfo=timezone.utc) if row.start_time else None
    return {
        'id': row.appointment_id,
        'patientName': row.patient_name,
        'patientId': row.patient_id,
        'start': start,
        'duration': row.duration_minutes,
        'status': row.status,
        'riskLevel': row.risk_level,
        'homeworkCompleted': row.homework_completed,
        'isVideoCall': row.is_video_call,
        'notes': row.notes,
    }


class LocalCache:
    """Reads and writes the cache tables through short-lived sessions."""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def _session(self) -> Session:
        return self.session_factory()

    def read_cached_appointments(self, provider_id: str) -> list[dict]:
        """Raw records for the aggregator; normalization happens there."""
        db = self._session()
        try:
            rows = db.query(CachedAppointment).filter(
                CachedAppointment.provider_id == provider_id,
            ).order_by(CachedAppointment.id.asc()).all()
            return [_record_from_row(row) for row in rows]
        finally:
            db.close()

    def write_cached_appointments(self, provider_id: str, appointments: list[Appointment]) -> None:
        """Replace the provider's cached appointments."""
        db = self._session()
        try:
            db.query(CachedAppointment).filter(CachedAppointment.provider_id == provider_id).delete()
            seen: set[str] = set()
            for appointment in appointments:
                if appointment.id in seen:
                    continue
                seen.add(appointment.id)
                db.add(
                    CachedAppointment(
                        provider_id=provider_id,
                        appointment_id=appointment.id,
                        patient_name=appointment.patient_name,
                        patient_id=appointment.patient_id,
                        start_time=_to_utc_naive(appointment.start),
                        duration_minutes=appointment.duration_minutes,
                        status=appointment.status.value,
                        risk_level=appointment.risk_level.value,
                        homework_completed=appointment.homework_completed,
                        is_video_call=appointment.is_video_call,
                        notes=appointment.notes,
                    )
                )
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def read_cached_availability(self, provider_id: str) -> AvailabilityConfig:
        db = self._session()
        try:
            rows = db.query(AvailabilitySlot.day_of_week, AvailabilitySlot.time_label).filter(
                AvailabilitySlot.provider_id == provider_id,
            ).all()
        finally:
            db.close()

        raw: dict[int, list[str]] = {}
        for day, label in rows:
            raw.setdefault(day, []).append(label)
        return parse_availability(raw)

    def write_cached_availability(self, provider_id: str, availability: AvailabilityConfig) -> None:
        db = self._session()
        try:
            db.query(AvailabilitySlot).filter(AvailabilitySlot.provider_id == provider_id).delete()
            for day, labels in sorted(availability.items()):
                for label in labels:
                    db.add(AvailabilitySlot(provider_id=provider_id, day_of_week=day, time_label=label))
            db.commit()
            logger.info('Stored availability for provider %s (%d days)', provider_id, len(availability))
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()
