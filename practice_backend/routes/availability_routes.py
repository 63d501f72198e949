import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError

from practice_backend.auth.dependencies import get_current_provider, provider_key
from practice_backend.database import ensure_availability_schema
from practice_backend.models.user import User
from practice_backend.scheduling.availability import normalize_day, normalize_label
from practice_backend.scheduling.errors import MalformedRecord
from practice_backend.scheduling.slots import OPERATING_WINDOW
from practice_backend.services.events import AvailabilityEvents
from practice_backend.services.local_cache import LocalCache

router = APIRouter(tags=['availability'])

logger = logging.getLogger(__name__)


class UpdateAvailabilityRequest(BaseModel):
    availability: dict[str, list[str]]

    @field_validator('availability')
    @classmethod
    def validate_availability(cls, value: dict[str, list[str]]) -> dict[str, list[str]]:
        normalized: dict[str, list[str]] = {}

        for raw_day, raw_labels in value.items():
            try:
                day = normalize_day(raw_day)
                labels = sorted({normalize_label(label) for label in raw_labels})
            except MalformedRecord as exc:
                raise ValueError(exc.reason) from exc
            normalized[str(day)] = labels

        return normalized


class AvailabilityResponse(BaseModel):
    availability: dict[int, list[str]]
    configured_days: list[int]
    slots: list[str]


def get_cache(request: Request) -> LocalCache:
    return request.app.state.cache


def get_events(request: Request) -> AvailabilityEvents:
    return request.app.state.availability_events


def ensure_database_ready() -> None:
    try:
        ensure_availability_schema()
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail='Availability storage unavailable. Verify DATABASE_URL.',
        ) from exc


def _to_response(availability) -> AvailabilityResponse:
    return AvailabilityResponse(
        availability={day: list(labels) for day, labels in sorted(availability.items())},
        configured_days=sorted(day for day, labels in availability.items() if labels),
        slots=list(OPERATING_WINDOW),
    )


@router.get('', response_model=AvailabilityResponse)
def get_availability(
    user: User = Depends(get_current_provider),
    cache: LocalCache = Depends(get_cache),
):
    ensure_database_ready()

    try:
        availability = cache.read_cached_availability(provider_key(user))
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail='Unable to load availability right now.',
        ) from exc

    return _to_response(availability)


@router.put('', response_model=AvailabilityResponse)
def update_availability(
    payload: UpdateAvailabilityRequest,
    user: User = Depends(get_current_provider),
    cache: LocalCache = Depends(get_cache),
    events: AvailabilityEvents = Depends(get_events),
):
    ensure_database_ready()

    provider_id = provider_key(user)
    availability = {int(day): tuple(labels) for day, labels in payload.availability.items()}

    try:
        cache.write_cached_availability(provider_id, availability)
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail='Unable to save availability right now.',
        ) from exc

    events.publish(provider_id)
    logger.info('Availability updated for provider %s', provider_id)

    return _to_response(availability)
