from dataclasses import dataclass, field
from datetime import datetime, timedelta

from practice_backend.scheduling.day_filter import for_day
from practice_backend.scheduling.time_utils import day_of_week, localize, to_local
from practice_backend.scheduling.types import Appointment, AppointmentStatus, RiskLevel


@dataclass(frozen=True)
class DashboardStats:
    total: int
    today: int
    this_week: int
    upcoming: int
    completed: int
    completed_this_week: int
    pending: int
    high_risk_patients: list[dict] = field(default_factory=list)


def start_of_week(now: datetime, tz) -> datetime:
    """Local midnight of the most recent Sunday."""
    local_now = to_local(now, tz)
    sunday = local_now.date() - timedelta(days=day_of_week(local_now.date()))
    return localize(sunday, datetime.min.time(), tz)


def summarize(appointments: list[Appointment], now: datetime, tz) -> DashboardStats:
    week_start = start_of_week(now, tz)
    week_end = week_start + timedelta(days=7)
    today = for_day(appointments, to_local(now, tz).date(), tz)

    this_week = [item for item in appointments if week_start <= item.start < week_end]
    active = [item for item in appointments if item.status != AppointmentStatus.CANCELLED]

    high_risk = []
    for appointment in sorted(today, key=lambda item: item.start):
        if appointment.risk_level == RiskLevel.HIGH:
            high_risk.append({'patient_id': appointment.patient_id, 'patient_name': appointment.patient_name})

    return DashboardStats(
        total=len(appointments),
        today=len(today),
        this_week=len([item for item in this_week if item.status != AppointmentStatus.CANCELLED]),
        upcoming=len([item for item in active if item.start > now]),
        completed=len([item for item in appointments if item.status == AppointmentStatus.COMPLETED]),
        completed_this_week=len([item for item in this_week if item.status == AppointmentStatus.COMPLETED]),
        pending=len([item for item in appointments if item.status == AppointmentStatus.RESERVED]),
        high_risk_patients=high_risk,
    )
