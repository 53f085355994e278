"""
Job Scheduling Service

Tracks batches of generation jobs from submission to a terminal state:
- JobStore: ordered jobs and their status transitions
- RateLimiter: sliding-window dispatch budget
- CancellationRegistry: drops results of jobs cancelled in flight
- Scheduler: tick loop, dispatch and outcome handling
"""

from .cancellation import CancellationRegistry
from .credentials import CredentialStore
from .errors import InvalidStateTransitionError, JobError, JobNotFoundError
from .models import (
    ImagePayload,
    InputKind,
    Job,
    JobResult,
    JobSpec,
    JobStatus,
    build_batch,
    parse_bulk_prompts,
)
from .rate_limiter import RateLimiter
from .store import AUTO_RETRY_MESSAGE, CANCELLED_MESSAGE, JobStore
from .scheduler import Scheduler

__all__ = [
    "CancellationRegistry",
    "CredentialStore",
    "JobError",
    "JobNotFoundError",
    "InvalidStateTransitionError",
    "ImagePayload",
    "InputKind",
    "Job",
    "JobResult",
    "JobSpec",
    "JobStatus",
    "build_batch",
    "parse_bulk_prompts",
    "RateLimiter",
    "JobStore",
    "AUTO_RETRY_MESSAGE",
    "CANCELLED_MESSAGE",
    "Scheduler",
]
