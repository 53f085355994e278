"""
Job Store - Authoritative in-memory collection of jobs.

Job lifecycle:
    PENDING -> PROCESSING -> COMPLETED | PENDING (automatic retry) | FAILED
    PENDING -> FAILED (cancel)
    FAILED  -> PENDING (manual retry)

Every mutation goes through one of the transition methods below. Illegal
transitions raise InvalidStateTransitionError and leave the job untouched.
"""

import logging
from typing import Iterable, Optional, Union

from .cancellation import CancellationRegistry
from .errors import InvalidStateTransitionError, JobNotFoundError
from .models import Job, JobResult, JobSpec, JobStatus

logger = logging.getLogger(__name__)

CANCELLED_MESSAGE = "Cancelled by user"
AUTO_RETRY_MESSAGE = "Retrying automatically..."


class JobStore:
    """
    Holds jobs in submission order and applies status transitions.

    Usage:
        store = JobStore(max_retries=3)

        jobs = store.enqueue([JobSpec(prompt="A fox in snow", model="veo-2.0-generate-001")])
        store.begin_processing(jobs[0].id)
        store.complete(jobs[0].id, JobResult(result_url="https://..."))
    """

    def __init__(
        self,
        max_retries: int = 3,
        cancellations: Optional[CancellationRegistry] = None,
    ):
        self.max_retries = max_retries
        self.cancellations = cancellations or CancellationRegistry()
        # dicts keep insertion order, which is the FIFO order
        self._jobs: dict[str, Job] = {}

    def _get(self, job_id: str) -> Job:
        try:
            return self._jobs[job_id]
        except KeyError:
            raise JobNotFoundError(job_id) from None

    def _require(self, job: Job, target: JobStatus, *allowed: JobStatus):
        if job.status not in allowed:
            raise InvalidStateTransitionError(job.id, job.status.value, target.value)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def enqueue(self, specs: Iterable[Union[JobSpec, dict]]) -> list[Job]:
        """Create a PENDING job per spec and return copies of them."""
        created = []
        for spec in specs:
            if not isinstance(spec, JobSpec):
                spec = JobSpec.model_validate(spec)
            job = Job.from_spec(spec)
            self._jobs[job.id] = job
            created.append(job.copy())

        if created:
            logger.info(f"Enqueued {len(created)} job(s)")
        return created

    def begin_processing(self, job_id: str) -> Job:
        job = self._get(job_id)
        self._require(job, JobStatus.PROCESSING, JobStatus.PENDING)
        job.status = JobStatus.PROCESSING
        logger.info(f"Job {job_id} processing (attempt {job.retry_count + 1})")
        return job.copy()

    def complete(self, job_id: str, result: JobResult) -> Job:
        job = self._get(job_id)
        self._require(job, JobStatus.COMPLETED, JobStatus.PROCESSING)
        job.status = JobStatus.COMPLETED
        job.result_url = result.result_url
        job.result_urls = list(result.result_urls) if result.result_urls is not None else None
        job.error = None
        logger.info(f"Job {job_id} completed")
        return job.copy()

    def fail_transient(self, job_id: str, message: str) -> Job:
        """
        Record a retryable failure.

        Goes back to PENDING while the retry budget lasts, then to FAILED.
        """
        job = self._get(job_id)
        self._require(job, JobStatus.PENDING, JobStatus.PROCESSING)

        if job.retry_count < self.max_retries:
            job.retry_count += 1
            job.status = JobStatus.PENDING
            job.error = AUTO_RETRY_MESSAGE
            logger.warning(
                f"Job {job_id} failed ({message}); "
                f"retry {job.retry_count}/{self.max_retries}"
            )
        else:
            job.status = JobStatus.FAILED
            job.error = message or "Unknown error"
            logger.error(f"Job {job_id} failed after {job.retry_count} retries: {job.error}")
        return job.copy()

    def fail_terminal(self, job_id: str, message: str) -> Job:
        job = self._get(job_id)
        self._require(job, JobStatus.FAILED, JobStatus.PENDING, JobStatus.PROCESSING)
        job.status = JobStatus.FAILED
        job.error = message or "Unknown error"
        logger.error(f"Job {job_id} failed: {job.error}")
        return job.copy()

    def manual_retry(self, job_id: str) -> Job:
        job = self._get(job_id)
        self._require(job, JobStatus.PENDING, JobStatus.FAILED)
        job.status = JobStatus.PENDING
        job.retry_count = 0
        job.error = None
        job.result_url = None
        job.result_urls = None
        logger.info(f"Job {job_id} queued for manual retry")
        return job.copy()

    def cancel(self, job_id: str) -> Job:
        """
        Fail a PENDING or PROCESSING job immediately.

        A PROCESSING job still has a dispatch in flight; its id is registered
        so that the eventual result is discarded.
        """
        job = self._get(job_id)
        self._require(job, JobStatus.FAILED, JobStatus.PENDING, JobStatus.PROCESSING)
        if job.status == JobStatus.PROCESSING:
            self.cancellations.mark_cancelled(job_id)
        job.status = JobStatus.FAILED
        job.error = CANCELLED_MESSAGE
        logger.info(f"Job {job_id} cancelled by user")
        return job.copy()

    def clear_finished(self) -> int:
        """Drop COMPLETED and FAILED jobs. Returns how many were removed."""
        finished = [job_id for job_id, job in self._jobs.items() if job.is_terminal]
        for job_id in finished:
            del self._jobs[job_id]
        if finished:
            logger.info(f"Cleared {len(finished)} finished job(s)")
        return len(finished)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, job_id: str) -> Job:
        return self._get(job_id).copy()

    def snapshot(self) -> list[Job]:
        """Copies of all jobs in submission order."""
        return [job.copy() for job in self._jobs.values()]

    def pending(self) -> list[Job]:
        """PENDING jobs in submission order."""
        return [job.copy() for job in self._jobs.values() if job.status == JobStatus.PENDING]

    def count(self, status: JobStatus) -> int:
        return sum(1 for job in self._jobs.values() if job.status == status)

    def has_pending(self) -> bool:
        return any(job.status == JobStatus.PENDING for job in self._jobs.values())

    def counts(self) -> dict[str, int]:
        return {status.value: self.count(status) for status in JobStatus}

    def __contains__(self, job_id: str) -> bool:
        return job_id in self._jobs

    def __len__(self) -> int:
        return len(self._jobs)
