import logging
from datetime import date
from typing import Any
from urllib.parse import quote

import httpx

from practice_backend.core import config
from practice_backend.scheduling.errors import SourceUnavailable
from practice_backend.scheduling.types import Err, Ok, SourceResult

logger = logging.getLogger(__name__)


def _unwrap(payload: Any, *keys: str):
    """Strip the ``data``/``appointments`` envelopes the API wraps lists in."""
    current = payload
    for _ in range(3):
        if not isinstance(current, dict):
            break
        for key in keys:
            if key in current:
                current = current[key]
                break
        else:
            break
    return current


class RemoteAppointmentSource:
    """Client for the practice API that owns appointments and availability.

    Reads are scoped to one provider through the ``/professional/{id}`` routes.
    """

    def __init__(
        self,
        provider_id: str,
        base_url: str | None = None,
        token: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.provider_id = provider_id
        self.base_url = (base_url or config.REMOTE_API_URL).rstrip("/")
        self.token = token if token is not None else config.REMOTE_API_TOKEN
        self.timeout = timeout or config.REMOTE_TIMEOUT_SECONDS
        self.transport = transport

    def _provider_path(self, resource: str) -> str:
        return f"/{resource}/professional/{quote(str(self.provider_id), safe='')}"

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def _get_json(self, path: str, params: dict | None = None) -> Any:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.get(f"{self.base_url}{path}", headers=self._headers(), params=params)
                response.raise_for_status()
                return response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise SourceUnavailable(f"GET {path} failed: {exc}") from exc

    async def fetch_appointments(self, date_range: tuple[date, date] | None = None) -> SourceResult:
        params = None
        if date_range:
            start_date, end_date = date_range
            params = {"startDate": start_date.isoformat(), "endDate": end_date.isoformat()}

        try:
            payload = await self._get_json(self._provider_path("appointments"), params=params)
        except SourceUnavailable as exc:
            logger.warning("Remote appointments unavailable: %s", exc)
            return Err(str(exc))

        records = _unwrap(payload, "data", "appointments")
        if not isinstance(records, list):
            logger.warning("Unexpected appointments payload of type %s", type(records).__name__)
            return Err("Unexpected appointments payload")
        return Ok(records)

    async def fetch_availability(self) -> SourceResult:
        try:
            payload = await self._get_json(self._provider_path("availability"))
        except SourceUnavailable as exc:
            logger.warning("Remote availability unavailable: %s", exc)
            return Err(str(exc))

        availability = _unwrap(payload, "data", "availability")
        if not isinstance(availability, dict):
            return Err("Unexpected availability payload")
        return Ok(availability)
