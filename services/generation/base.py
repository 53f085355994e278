"""
Provider dispatcher interface.

Every provider implements the same two capabilities. A capability the provider
does not offer raises UnsupportedCapabilityError.
"""

import logging

from core.providers import Provider
from services.jobs.models import InputKind, Job, JobResult

from .errors import UnsupportedCapabilityError

logger = logging.getLogger(__name__)


class ProviderDispatcher:
    """
    Base class for provider integrations.

    Subclasses override generate_video and/or generate_images. Both receive a
    detached copy of the job and the provider's API key.
    """

    provider: Provider

    async def generate_video(self, job: Job, credential: str) -> str:
        """Generate one video and return a reference to it."""
        raise UnsupportedCapabilityError(
            f"{self.provider.value} does not support video generation",
            provider=self.provider.value,
        )

    async def generate_images(self, job: Job, credential: str) -> list[str]:
        """Generate ``job.output_count`` images and return references in order."""
        raise UnsupportedCapabilityError(
            f"{self.provider.value} does not support image generation",
            provider=self.provider.value,
        )

    async def dispatch(self, job: Job, credential: str) -> JobResult:
        """Route a job to the capability its input kind selects."""
        logger.info(
            f"Dispatching job {job.id} to {self.provider.value} "
            f"({job.input_kind.value}, model={job.model})"
        )
        if job.input_kind is InputKind.TEXT_TO_IMAGE:
            return JobResult(result_urls=await self.generate_images(job, credential))
        return JobResult(result_url=await self.generate_video(job, credential))

    async def close(self):
        """Release any held resources."""
        pass


class UnsupportedDispatcher(ProviderDispatcher):
    """A provider whose generation API is not publicly available yet."""

    def __init__(self, provider: Provider, reason: str = "API is not publicly available yet"):
        self.provider = provider
        self.reason = reason

    async def generate_video(self, job: Job, credential: str) -> str:
        raise UnsupportedCapabilityError(
            f"{self.provider.value} video {self.reason}", provider=self.provider.value
        )

    async def generate_images(self, job: Job, credential: str) -> list[str]:
        raise UnsupportedCapabilityError(
            f"{self.provider.value} image {self.reason}", provider=self.provider.value
        )
