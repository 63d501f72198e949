"""Polling and event-driven re-reconciliation for one provider.

A scheduler owns its polling task and stop token. Every pass fetches the
remote source under a timeout, reads the local cache in a worker thread and
runs the pure pipeline with an explicit ``now``. A refresh requested while
another pass is in flight cancels that pass, so only the newest result is
ever stored. The cache is only read here; the booking flow owns writes.
"""

import asyncio
import logging
from collections.abc import Callable
from datetime import date, datetime, timezone

from sqlalchemy.exc import SQLAlchemyError

from practice_backend.core import config
from practice_backend.scheduling.availability import resolve_availability
from practice_backend.scheduling.countdown import Countdown, CountdownState, next_relevant
from practice_backend.scheduling.pipeline import Reconciliation, build_schedule, reconcile
from practice_backend.scheduling.time_utils import to_local
from practice_backend.scheduling.types import DaySchedule, Err, SourceResult
from practice_backend.services.events import AvailabilityEvents
from practice_backend.services.local_cache import LocalCache
from practice_backend.services.remote_source import RemoteAppointmentSource

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ReconciliationScheduler:
    def __init__(
        self,
        provider_id: str,
        remote: RemoteAppointmentSource,
        cache: LocalCache,
        tz,
        events: AvailabilityEvents | None = None,
        poll_interval: float | None = None,
        remote_timeout: float | None = None,
        session_minutes: int | None = None,
        idle_polls: int | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.provider_id = provider_id
        self.remote = remote
        self.cache = cache
        self.tz = tz
        self.poll_interval = poll_interval or config.POLL_INTERVAL_SECONDS
        self.remote_timeout = remote_timeout or config.REMOTE_TIMEOUT_SECONDS
        self.session_minutes = session_minutes or config.SESSION_DURATION_MINUTES
        self.idle_timeout = self.poll_interval * (idle_polls if idle_polls is not None else config.SCHEDULER_IDLE_POLLS)
        self.clock = clock

        self.latest: Reconciliation | None = None
        self.last_used: datetime | None = None
        self.on_idle: Callable[['ReconciliationScheduler'], None] | None = None
        self._stop = asyncio.Event()
        self._poll_task: asyncio.Task | None = None
        self._pass_task: asyncio.Task | None = None
        self._unsubscribe = events.on_availability_changed(self._on_availability_changed) if events else None

    @property
    def running(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    @property
    def idle(self) -> bool:
        if not self.idle_timeout or self.last_used is None:
            return False
        return (self.clock() - self.last_used).total_seconds() >= self.idle_timeout

    def touch(self) -> None:
        self.last_used = self.clock()

    def today(self) -> date:
        return to_local(self.clock(), self.tz).date()

    async def _with_timeout(self, fetch, label: str) -> SourceResult:
        try:
            return await asyncio.wait_for(fetch(), timeout=self.remote_timeout)
        except asyncio.TimeoutError:
            logger.warning('Remote %s fetch timed out after %.1fs', label, self.remote_timeout)
            return Err(f'{label} fetch timed out')

    async def _read_cache(self, read, label: str, fallback):
        try:
            return await asyncio.to_thread(read, self.provider_id)
        except SQLAlchemyError as exc:
            logger.warning('Cached %s unavailable for provider %s: %s', label, self.provider_id, exc)
            return fallback

    async def _run_pass(self) -> Reconciliation:
        now = self.clock()
        remote_result = await self._with_timeout(self.remote.fetch_appointments, 'appointments')
        availability_result = await self._with_timeout(self.remote.fetch_availability, 'availability')

        cached = await self._read_cache(self.cache.read_cached_appointments, 'appointments', [])
        cached_availability = await self._read_cache(self.cache.read_cached_availability, 'availability', {})

        return reconcile(
            remote_result,
            cached,
            resolve_availability(availability_result, cached_availability),
            to_local(now, self.tz).date(),
            self.tz,
            now=now,
            session_minutes=self.session_minutes,
        )

    async def refresh(self) -> Reconciliation:
        """Run a pass now, cancelling any pass still in flight."""
        if self._pass_task is not None and not self._pass_task.done():
            logger.debug('Superseding in-flight reconciliation for provider %s', self.provider_id)
            self._pass_task.cancel()

        task = asyncio.ensure_future(self._run_pass())
        self._pass_task = task

        while True:
            await asyncio.wait({task})
            if not task.cancelled():
                result = task.result()
                if task is self._pass_task:
                    self.latest = result
                return result
            if self._pass_task is None or self._pass_task is task:
                raise asyncio.CancelledError()
            # a newer refresh replaced ours; hand back its result instead
            task = self._pass_task

    async def _refresh_logged(self) -> None:
        try:
            await self.refresh()
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception('Reconciliation failed for provider %s', self.provider_id)

    def request_refresh(self) -> asyncio.Future | None:
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            logger.debug('No running loop; refresh for provider %s deferred to next poll', self.provider_id)
            return None
        return asyncio.ensure_future(self._refresh_logged())

    def _on_availability_changed(self, provider_id: str) -> None:
        if provider_id == self.provider_id:
            logger.info('Availability changed for provider %s, refreshing', provider_id)
            self.request_refresh()

    def _unsubscribe_events(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    async def _poll(self) -> None:
        while not self._stop.is_set():
            if self.idle:
                logger.info('Provider %s idle for %.0fs, stopping polling', self.provider_id, self.idle_timeout)
                self._unsubscribe_events()
                if self.on_idle is not None:
                    self.on_idle(self)
                return

            await self._refresh_logged()
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self.poll_interval)
            except asyncio.TimeoutError:
                continue

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._poll_task = asyncio.ensure_future(self._poll())

    async def stop(self) -> None:
        self._stop.set()
        self._unsubscribe_events()

        tasks = [task for task in (self._poll_task, self._pass_task) if task is not None and not task.done()]
        self._pass_task = None
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._poll_task = None

    async def current(self) -> Reconciliation:
        if self.latest is None:
            return await self.refresh()
        return self.latest

    async def schedule_for(self, target_date: date) -> DaySchedule:
        result = await self.current()
        if target_date == result.schedule.date:
            return result.schedule
        _, schedule = build_schedule(
            result.appointments,
            result.availability,
            target_date,
            self.tz,
            session_minutes=self.session_minutes,
            no_data=result.no_data,
        )
        return schedule

    def countdown(self, now: datetime | None = None) -> Countdown:
        """Re-derive the countdown from the last assembled schedule."""
        if self.latest is None:
            return Countdown(target=None, state=CountdownState.NONE, display='')
        return next_relevant(self.latest.schedule, now or self.clock(), self.latest.appointments)


class SchedulerRegistry:
    """Lazily creates and starts one scheduler per provider.

    A scheduler that sees no request for its idle window stops polling and
    drops out of the registry; the next request for that provider builds a
    fresh one.
    """

    def __init__(self, factory: Callable[[str], ReconciliationScheduler], autostart: bool = True):
        self._factory = factory
        self._autostart = autostart
        self._schedulers: dict[str, ReconciliationScheduler] = {}

    def get(self, provider_id: str) -> ReconciliationScheduler:
        scheduler = self._schedulers.get(provider_id)
        if scheduler is None:
            scheduler = self._factory(provider_id)
            scheduler.on_idle = self._evict
            self._schedulers[provider_id] = scheduler
        scheduler.touch()
        if self._autostart and not scheduler.running:
            try:
                asyncio.get_running_loop()
            except RuntimeError:
                return scheduler
            scheduler.start()
        return scheduler

    def _evict(self, scheduler: ReconciliationScheduler) -> None:
        if self._schedulers.get(scheduler.provider_id) is scheduler:
            del self._schedulers[scheduler.provider_id]
            logger.info('Released idle scheduler for provider %s', scheduler.provider_id)

    def __contains__(self, provider_id: str) -> bool:
        return provider_id in self._schedulers

    def __len__(self) -> int:
        return len(self._schedulers)

    async def shutdown(self) -> None:
        schedulers = list(self._schedulers.values())
        self._schedulers.clear()
        for scheduler in schedulers:
            await scheduler.stop()
