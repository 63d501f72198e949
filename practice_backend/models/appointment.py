"""Cached appointment model definitions."""

from sqlalchemy import Boolean, Column, DateTime, Integer, String, UniqueConstraint
from practice_backend.database import Base


class CachedAppointment(Base):
    """Local copy of a provider's appointment, kept for offline use."""
    __tablename__ = "cached_appointments"
    __table_args__ = (
        UniqueConstraint("provider_id", "appointment_id", name="uq_cached_appointment_provider"),
    )

    id = Column(Integer, primary_key=True)
    provider_id = Column(String, index=True, nullable=False)
    appointment_id = Column(String, nullable=False)
    patient_name = Column(String)
    patient_id = Column(String)
    start_time = Column(DateTime)  # UTC, stored naive
    duration_minutes = Column(Integer, default=50)
    status = Column(String, default="reserved")
    risk_level = Column(String, default="low")
    homework_completed = Column(Boolean, default=True)
    is_video_call = Column(Boolean, default=False)
    notes = Column(String)
