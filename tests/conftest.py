"""Shared fixtures and fakes for the MediaQueue tests."""

import asyncio
import os
import sys
from typing import Optional

import pytest

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.config import Config
from core.providers import Provider
from services.generation.base import ProviderDispatcher
from services.jobs import CredentialStore, JobResult, RateLimiter, Scheduler


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class ScriptedDispatcher(ProviderDispatcher):
    """
    Dispatcher whose calls stay in flight until the test resolves them.

    Each attempt parks on a future keyed by job id. succeed()/fail() may run
    before the dispatch task has taken its first step; the attempt then picks
    up the already resolved future.
    """

    def __init__(self, provider: Provider):
        self.provider = provider
        self.calls: list[str] = []
        self.credentials_seen: list[str] = []
        self._futures: dict[str, asyncio.Future] = {}

    def _future_for(self, job_id: str) -> asyncio.Future:
        future = self._futures.get(job_id)
        if future is None:
            future = asyncio.get_running_loop().create_future()
            self._futures[job_id] = future
        return future

    async def dispatch(self, job, credential):
        self.calls.append(job.id)
        self.credentials_seen.append(credential)
        future = self._future_for(job.id)
        try:
            return await future
        finally:
            # The next attempt for this job gets a fresh future
            if self._futures.get(job.id) is future:
                del self._futures[job.id]

    def succeed(self, job_id: str, result: Optional[JobResult] = None):
        self._future_for(job_id).set_result(
            result or JobResult(result_url=f"https://cdn/{job_id}.mp4")
        )

    def fail(self, job_id: str, error: Exception):
        self._future_for(job_id).set_exception(error)


async def settle():
    """Let resolved dispatch tasks run their completion handling."""
    for _ in range(5):
        await asyncio.sleep(0)


def make_config(
    max_concurrent_jobs: int = 4,
    rate_limit_count: int = 4,
    rate_limit_window_seconds: float = 60.0,
    max_retries: int = 3,
    tick_interval_seconds: float = 1.0,
) -> Config:
    config = Config()
    config.scheduler.max_concurrent_jobs = max_concurrent_jobs
    config.scheduler.rate_limit_count = rate_limit_count
    config.scheduler.rate_limit_window_seconds = rate_limit_window_seconds
    config.scheduler.max_retries = max_retries
    config.scheduler.tick_interval_seconds = tick_interval_seconds
    config.polling.video_poll_interval_seconds = 0.0
    return config


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def dispatchers():
    return {provider: ScriptedDispatcher(provider) for provider in Provider}


@pytest.fixture
def credentials():
    return CredentialStore(keys={Provider.GEMINI: "gemini-key", Provider.DEEPAI: "deepai-key"})


@pytest.fixture
def make_scheduler(dispatchers, credentials, clock):
    """Build a scheduler with fake dispatchers and a fake clock."""

    def _make(on_update=None, **overrides) -> Scheduler:
        config = make_config(**overrides)
        limiter = RateLimiter(
            limit=config.scheduler.rate_limit_count,
            window_seconds=config.scheduler.rate_limit_window_seconds,
            clock=clock,
        )
        return Scheduler(
            dispatchers=dispatchers,
            credentials=credentials,
            config=config,
            rate_limiter=limiter,
            on_update=on_update,
        )

    return _make


VEO = "veo-2.0-generate-001"
IMAGEN = "imagen-4.0-generate-001"
DEEPAI_VIDEO = "deepai-video"
KLING = "kling-1"


def video_spec(prompt: str = "A fox running through snow", model: str = VEO) -> dict:
    return {"prompt": prompt, "model": model, "input_kind": "text_to_video"}
