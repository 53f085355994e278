"""
Job Scheduler - decides which pending jobs start and applies their outcomes.

Owns all mutable scheduling state:
- JobStore (jobs and their statuses)
- RateLimiter (recent dispatch timestamps)
- CancellationRegistry (in-flight jobs the user cancelled)
- the set of providers whose quota is exhausted

The tick and every dispatch resolution mutate that state only while holding
one asyncio.Lock, so a resolution never interleaves with a tick.

Per tick:
1. Do nothing while any provider is quota-halted.
2. slots = min(concurrency limit - PROCESSING count, rate limiter slots)
3. Take up to `slots` PENDING jobs in submission order whose provider has a
   credential; jobs without one stay PENDING and use no slot.
4. Mark each PROCESSING, record the dispatch, start its dispatch task.

Per resolution:
- cancelled while in flight -> dropped
- success -> COMPLETED
- QuotaExceededError -> FAILED, provider halted (halts all dispatch)
- anything else -> automatic retry, FAILED once retries run out
"""

import asyncio
import logging
from typing import TYPE_CHECKING, Callable, Iterable, Mapping, Optional, Union

from core.config import Config, get_config
from core.providers import Provider
from services.generation.errors import QuotaExceededError

from .credentials import CredentialStore
from .errors import JobError
from .models import Job, JobSpec, JobStatus
from .rate_limiter import RateLimiter
from .store import JobStore

if TYPE_CHECKING:
    from services.generation.base import ProviderDispatcher

logger = logging.getLogger(__name__)


class Scheduler:
    """
    Scheduling context and caller-facing job operations.

    Usage:
        scheduler = Scheduler(dispatchers=build_dispatchers(), credentials=CredentialStore.from_config())

        scheduler.enqueue([JobSpec(prompt="A fox in snow", model="veo-2.0-generate-001")])
        await scheduler.run_until_idle()

        for job in scheduler.snapshot():
            print(job.status, job.result_url, job.error)
    """

    def __init__(
        self,
        dispatchers: Mapping[Provider, "ProviderDispatcher"],
        credentials: CredentialStore,
        config: Optional[Config] = None,
        store: Optional[JobStore] = None,
        rate_limiter: Optional[RateLimiter] = None,
        on_update: Optional[Callable[[Job], None]] = None,
    ):
        self.config = config or get_config()
        sched = self.config.scheduler

        self.dispatchers = dict(dispatchers)
        self.credentials = credentials
        self.store = store or JobStore(max_retries=sched.max_retries)
        self.rate_limiter = rate_limiter or RateLimiter(
            limit=sched.rate_limit_count,
            window_seconds=sched.rate_limit_window_seconds,
        )
        self.max_concurrent_jobs = sched.max_concurrent_jobs
        self.tick_interval = sched.tick_interval_seconds
        self.on_update = on_update

        self.quota_exceeded_providers: set[Provider] = set()

        self._lock = asyncio.Lock()
        self._in_flight: dict[str, asyncio.Task] = {}
        self._running = False

    @property
    def cancellations(self):
        return self.store.cancellations

    @property
    def is_halted(self) -> bool:
        return bool(self.quota_exceeded_providers)

    def _emit_update(self, job: Job):
        """Notify the update callback of a changed job."""
        if self.on_update:
            try:
                self.on_update(job)
            except Exception as e:
                logger.warning(f"Job update callback failed: {e}")

    # ------------------------------------------------------------------
    # Caller-facing operations
    # ------------------------------------------------------------------

    def enqueue(self, specs: Iterable[Union[JobSpec, dict]]) -> list[Job]:
        jobs = self.store.enqueue(specs)
        for job in jobs:
            self._emit_update(job)
        return jobs

    def retry(self, job_id: str) -> Job:
        """Manually retry a FAILED job with a fresh retry budget."""
        job = self.store.manual_retry(job_id)
        self._emit_update(job)
        return job

    def cancel(self, job_id: str) -> Job:
        """Cancel a PENDING or PROCESSING job."""
        job = self.store.cancel(job_id)
        self._emit_update(job)
        return job

    def snapshot(self) -> list[Job]:
        return self.store.snapshot()

    def get_job(self, job_id: str) -> Job:
        return self.store.get(job_id)

    def clear_finished(self) -> int:
        return self.store.clear_finished()

    def update_credential(self, provider: Union[Provider, str], key: str) -> bool:
        """Save a provider key; a new key lifts that provider's quota halt."""
        provider = Provider(provider)
        if not self.credentials.save(provider, key):
            return False
        self.clear_quota(provider)
        return True

    def clear_quota(self, provider: Union[Provider, str]):
        provider = Provider(provider)
        if provider in self.quota_exceeded_providers:
            self.quota_exceeded_providers.discard(provider)
            logger.info(f"Quota halt cleared for {provider.value}")

    # ------------------------------------------------------------------
    # Tick
    # ------------------------------------------------------------------

    def _is_eligible(self, job: Job) -> bool:
        provider = job.provider
        if provider is None or provider not in self.dispatchers:
            return False
        # A cancelled dispatch for this job may still be running
        if job.id in self._in_flight:
            return False
        return self.credentials.lookup(provider) is not None

    async def tick(self) -> list[str]:
        """
        Start as many pending jobs as the budgets allow.

        Returns:
            Ids of the jobs started by this tick, in start order
        """
        async with self._lock:
            if self.quota_exceeded_providers:
                return []

            concurrency_slots = self.max_concurrent_jobs - self.store.count(JobStatus.PROCESSING)
            rate_slots = self.rate_limiter.available_slots()
            slots = min(concurrency_slots, rate_slots)
            if slots <= 0:
                return []

            selected = []
            for job in self.store.pending():
                if len(selected) >= slots:
                    break
                if self._is_eligible(job):
                    selected.append(job)

            started = []
            for job in selected:
                provider = job.provider
                credential = self.credentials.lookup(provider)
                dispatched = self.store.begin_processing(job.id)
                self.rate_limiter.record_dispatch()

                task = asyncio.create_task(
                    self._run_dispatch(dispatched, provider, credential),
                    name=f"dispatch-{job.id}",
                )
                task.add_done_callback(
                    lambda t, job_id=job.id: self._forget_dispatch(job_id, t)
                )
                self._in_flight[job.id] = task
                started.append(job.id)
                self._emit_update(dispatched)

        if started:
            logger.info(
                f"Tick started {len(started)} job(s) "
                f"(concurrency slots={concurrency_slots}, rate slots={rate_slots})"
            )
        return started

    # ------------------------------------------------------------------
    # Dispatch resolution
    # ------------------------------------------------------------------

    def _forget_dispatch(self, job_id: str, task: asyncio.Task):
        """Done callback: drop a finished dispatch task from the in-flight map."""
        if self._in_flight.get(job_id) is task:
            self._in_flight.pop(job_id)
        # Cancelled tasks (possibly before their first step) never apply an outcome
        if task.cancelled():
            self.cancellations.discard(job_id)

    async def _run_dispatch(self, job: Job, provider: Provider, credential: str):
        """Run one dispatch to completion and apply its outcome."""
        dispatcher = self.dispatchers[provider]
        result = None
        error: Optional[Exception] = None

        try:
            result = await dispatcher.dispatch(job, credential)
        except Exception as e:
            error = e

        async with self._lock:
            self._in_flight.pop(job.id, None)
            try:
                updated = self._apply_outcome(job.id, provider, result, error)
            except JobError as e:
                logger.warning(f"Could not apply result of job {job.id}: {e}")
                return

        if updated is not None:
            self._emit_update(updated)

    def _apply_outcome(
        self,
        job_id: str,
        provider: Provider,
        result,
        error: Optional[Exception],
    ) -> Optional[Job]:
        if self.cancellations.is_cancelled(job_id):
            logger.warning(f"Discarding result of cancelled job {job_id}")
            return None

        if error is None:
            return self.store.complete(job_id, result)

        message = str(error) or type(error).__name__

        if isinstance(error, QuotaExceededError):
            self.quota_exceeded_providers.add(provider)
            logger.error(
                f"Quota exhausted for {provider.value}; all dispatch halted until new credentials"
            )
            return self.store.fail_terminal(job_id, message)

        return self.store.fail_transient(job_id, message)

    async def wait_for_dispatches(self):
        """Wait until every dispatch started so far has resolved."""
        while True:
            tasks = [task for task in self._in_flight.values() if not task.done()]
            if not tasks:
                return
            await asyncio.gather(*tasks, return_exceptions=True)

    # ------------------------------------------------------------------
    # Loop
    # ------------------------------------------------------------------

    def _can_progress(self) -> bool:
        """Whether waiting could still change any job's status."""
        if self._in_flight:
            return True
        if self.quota_exceeded_providers:
            return False
        return any(self._is_eligible(job) for job in self.store.pending())

    async def run(self, stop_event: Optional[asyncio.Event] = None):
        """Tick on a fixed cadence until stopped."""
        self._running = True
        logger.info(f"Scheduler started (tick every {self.tick_interval}s)")

        try:
            while self._running and not (stop_event and stop_event.is_set()):
                if self.store.has_pending() and not self.quota_exceeded_providers:
                    await self.tick()
                await asyncio.sleep(self.tick_interval)
        finally:
            self._running = False
            logger.info("Scheduler stopped")

    async def run_until_idle(self):
        """Tick until no job can make further progress, then return."""
        self._running = True
        try:
            while self._running:
                if self.store.has_pending() and not self.quota_exceeded_providers:
                    await self.tick()
                if not self._can_progress():
                    break
                await asyncio.sleep(self.tick_interval)
        finally:
            self._running = False

        if self.quota_exceeded_providers:
            names = ", ".join(sorted(p.value for p in self.quota_exceeded_providers))
            logger.warning(f"Scheduling halted: quota exhausted for {names}")

    def stop(self):
        self._running = False

    async def shutdown(self):
        """Stop the loop and abandon any dispatch still running."""
        self.stop()
        tasks = list(self._in_flight.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def close(self):
        """Shut down and release dispatcher resources."""
        await self.shutdown()
        for dispatcher in self.dispatchers.values():
            await dispatcher.close()

    def get_status(self) -> dict:
        """Get current status as a dictionary."""
        return {
            "running": self._running,
            "halted": self.is_halted,
            "quota_exceeded_providers": sorted(p.value for p in self.quota_exceeded_providers),
            "max_concurrent_jobs": self.max_concurrent_jobs,
            "in_flight": len(self._in_flight),
            "jobs": self.store.counts(),
            "rate_limit": self.rate_limiter.get_status(),
            "credentials": [p.value for p in self.credentials.providers()],
        }
