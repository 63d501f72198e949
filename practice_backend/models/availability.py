"""Availability model definitions."""

from sqlalchemy import Column, Integer, String, UniqueConstraint
from practice_backend.database import Base


class AvailabilitySlot(Base):
    """One recurring half-hour slot a provider accepts bookings in."""
    __tablename__ = "availability_slots"
    __table_args__ = (
        UniqueConstraint("provider_id", "day_of_week", "time_label", name="uq_availability_slot"),
    )

    id = Column(Integer, primary_key=True)
    provider_id = Column(String, index=True, nullable=False)
    day_of_week = Column(Integer, nullable=False)  # 0 = Sunday
    time_label = Column(String, nullable=False)  # HH:MM
