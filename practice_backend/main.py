import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from practice_backend.core import config
from practice_backend.database import (
    SessionLocal,
    engine,
    ensure_availability_schema,
    ensure_cached_appointment_schema,
)
from practice_backend.models import appointment, availability, user
from practice_backend.routes import availability_routes, schedule_routes
from practice_backend.scheduling.time_utils import get_timezone
from practice_backend.services.events import AvailabilityEvents
from practice_backend.services.local_cache import LocalCache
from practice_backend.services.remote_source import RemoteAppointmentSource
from practice_backend.services.scheduler import ReconciliationScheduler, SchedulerRegistry

app = FastAPI()

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

logger = logging.getLogger(__name__)

app.state.cache = LocalCache(SessionLocal)
app.state.availability_events = AvailabilityEvents()


def build_scheduler(provider_id: str) -> ReconciliationScheduler:
    return ReconciliationScheduler(
        provider_id,
        RemoteAppointmentSource(provider_id),
        app.state.cache,
        get_timezone(config.PROVIDER_TIMEZONE),
        events=app.state.availability_events,
    )


app.state.schedulers = SchedulerRegistry(build_scheduler)


@app.on_event('startup')
def initialize_database() -> None:
    config.validate_runtime_config()

    try:
        user.Base.metadata.create_all(bind=engine)
        appointment.Base.metadata.create_all(bind=engine)
        availability.Base.metadata.create_all(bind=engine)
        ensure_cached_appointment_schema()
        ensure_availability_schema()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL.')


@app.on_event('shutdown')
async def stop_schedulers() -> None:
    await app.state.schedulers.shutdown()


@app.get('/')
def root():
    return {'status': 'Practice Schedule API Running'}


app.include_router(schedule_routes.router, prefix='/schedule')
app.include_router(availability_routes.router, prefix='/availability')
