"""
Result Downloader - saves completed job outputs to local storage.

Videos are written as video_<id>.mp4 and images as image_<id>_<n>.jpeg,
where <id> is the first 8 characters of the job id. Results are either
data: URIs (decoded in place) or HTTP(S) URLs (fetched).
"""

import base64
import logging
from pathlib import Path
from typing import Iterable, Optional

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from core.providers import Provider
from services.jobs.credentials import CredentialStore
from services.jobs.models import Job, JobStatus

logger = logging.getLogger(__name__)


def decode_data_uri(uri: str) -> bytes:
    """Decode a base64 data: URI."""
    header, _, payload = uri.partition(",")
    if not header.startswith("data:") or ";base64" not in header:
        raise ValueError("Only base64 data URIs are supported")
    return base64.b64decode(payload)


class ResultDownloader:
    """
    Writes the results of completed jobs to a directory.

    Usage:
        downloader = ResultDownloader(credentials)
        paths = await downloader.download_all(scheduler.snapshot(), Path("output"))
    """

    def __init__(
        self,
        credentials: Optional[CredentialStore] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.credentials = credentials
        self._http_client = http_client

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=600.0)
        return self._http_client

    async def close(self):
        """Close the HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type(httpx.TransportError),
        reraise=True,
    )
    async def _fetch(self, url: str, params: Optional[dict] = None) -> bytes:
        client = await self._get_client()
        response = await client.get(url, params=params, follow_redirects=True)
        response.raise_for_status()
        return response.content

    async def _read(self, job: Job, reference: str) -> bytes:
        if reference.startswith("data:"):
            return decode_data_uri(reference)

        params = None
        # Gemini file links need the API key to download
        if job.provider == Provider.GEMINI and self.credentials is not None:
            key = self.credentials.lookup(Provider.GEMINI)
            if key:
                params = {"key": key}
        return await self._fetch(reference, params=params)

    async def download_job(self, job: Job, output_dir: Path) -> list[Path]:
        """Save one completed job's results. Returns the written paths."""
        if job.status != JobStatus.COMPLETED:
            return []

        output_dir.mkdir(parents=True, exist_ok=True)
        short_id = job.id[:8]
        targets: list[tuple[str, Path]] = []

        if job.result_url:
            targets.append((job.result_url, output_dir / f"video_{short_id}.mp4"))
        for index, url in enumerate(job.result_urls or [], start=1):
            targets.append((url, output_dir / f"image_{short_id}_{index}.jpeg"))

        written = []
        for reference, path in targets:
            content = await self._read(job, reference)
            path.write_bytes(content)
            logger.info(f"Saved {path} ({len(content) / 1024:.1f} KB)")
            written.append(path)
        return written

    async def download_all(self, jobs: Iterable[Job], output_dir: Path) -> list[Path]:
        """
        Save the results of every completed job.

        A job whose download fails is logged and skipped so the rest still
        get saved.
        """
        written = []
        for job in jobs:
            try:
                written.extend(await self.download_job(job, output_dir))
            except (httpx.HTTPError, ValueError, OSError) as e:
                logger.error(f"Failed to download results of job {job.id}: {e}")
        return written
