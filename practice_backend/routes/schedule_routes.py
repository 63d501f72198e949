from datetime import date, datetime

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel

from practice_backend.auth.dependencies import get_current_provider, provider_key
from practice_backend.core import config
from practice_backend.models.user import User
from practice_backend.scheduling.countdown import CountdownState
from practice_backend.scheduling.day_filter import appointments_for_date, booked_days_in_month
from practice_backend.scheduling.stats import summarize
from practice_backend.scheduling.types import Appointment, DaySchedule
from practice_backend.services.scheduler import ReconciliationScheduler

router = APIRouter(tags=['schedule'])


class CountdownResponse(BaseModel):
    target: Appointment | None = None
    state: CountdownState
    display: str
    minutes_until: float | None = None
    refresh_after_seconds: int = config.COUNTDOWN_REFRESH_SECONDS


class CalendarMonthResponse(BaseModel):
    year: int
    month: int
    days: dict[int, int]


class HighRiskPatientResponse(BaseModel):
    patient_id: str | None = None
    patient_name: str


class DashboardStatsResponse(BaseModel):
    total: int
    today: int
    this_week: int
    upcoming: int
    completed: int
    completed_this_week: int
    pending: int
    high_risk_patients: list[HighRiskPatientResponse]

    class Config:
        from_attributes = True


class RefreshResponse(BaseModel):
    date: date
    appointments: int
    entries: int
    no_data: bool
    refreshed_at: datetime


async def get_scheduler(request: Request, user: User = Depends(get_current_provider)) -> ReconciliationScheduler:
    return request.app.state.schedulers.get(provider_key(user))


@router.get('/today', response_model=DaySchedule)
async def get_today_schedule(scheduler: ReconciliationScheduler = Depends(get_scheduler)):
    result = await scheduler.current()
    return result.schedule


@router.get('/days/{target_date}', response_model=DaySchedule)
async def get_day_schedule(target_date: date, scheduler: ReconciliationScheduler = Depends(get_scheduler)):
    return await scheduler.schedule_for(target_date)


@router.get('/countdown', response_model=CountdownResponse)
async def get_countdown(scheduler: ReconciliationScheduler = Depends(get_scheduler)):
    await scheduler.current()

    countdown = scheduler.countdown()
    return CountdownResponse(
        target=countdown.target,
        state=countdown.state,
        display=countdown.display,
        minutes_until=countdown.minutes_until,
    )


@router.get('/appointments', response_model=list[Appointment])
async def list_appointments_for_date(
    target_date: date = Query(..., alias='date'),
    scheduler: ReconciliationScheduler = Depends(get_scheduler),
):
    result = await scheduler.current()
    return appointments_for_date(result.appointments, target_date, scheduler.tz)


@router.get('/calendar', response_model=CalendarMonthResponse)
async def get_calendar_month(
    year: int = Query(..., ge=1970, le=2100),
    month: int = Query(..., ge=1, le=12),
    scheduler: ReconciliationScheduler = Depends(get_scheduler),
):
    result = await scheduler.current()
    return CalendarMonthResponse(
        year=year,
        month=month,
        days=booked_days_in_month(result.appointments, year, month, scheduler.tz),
    )


@router.get('/stats', response_model=DashboardStatsResponse)
async def get_dashboard_stats(scheduler: ReconciliationScheduler = Depends(get_scheduler)):
    result = await scheduler.current()
    return summarize(result.appointments, scheduler.clock(), scheduler.tz)


@router.post('/refresh', response_model=RefreshResponse)
async def refresh_schedule(scheduler: ReconciliationScheduler = Depends(get_scheduler)):
    result = await scheduler.refresh()
    return RefreshResponse(
        date=result.schedule.date,
        appointments=len(result.today),
        entries=len(result.schedule.entries),
        no_data=result.no_data,
        refreshed_at=scheduler.clock(),
    )
