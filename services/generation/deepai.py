"""DeepAI dispatcher (text-to-video only)."""

import logging
from typing import Optional

import httpx

from core.config import Config, get_config
from core.providers import Provider
from services.jobs.models import InputKind, Job

from .base import ProviderDispatcher
from .errors import ProviderError, QuotaExceededError, UnsupportedCapabilityError

logger = logging.getLogger(__name__)


class DeepAIDispatcher(ProviderDispatcher):
    """Submits text-to-video requests to DeepAI's synchronous endpoint."""

    provider = Provider.DEEPAI

    def __init__(
        self,
        config: Optional[Config] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.config = config or get_config()
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

    async def generate_video(self, job: Job, credential: str) -> str:
        if job.input_kind is InputKind.IMAGE_TO_VIDEO:
            raise UnsupportedCapabilityError(
                "Image-to-video is not supported by DeepAI",
                provider=self.provider.value,
            )

        client = await self._get_client()
        try:
            response = await client.post(
                f"{self.config.api.deepai_api_base}/api/text2video",
                headers={"api-key": credential},
                files={"text": (None, job.prompt)},
            )
        except httpx.TimeoutException as e:
            raise ProviderError(
                f"DeepAI timeout: {type(e).__name__}",
                provider=self.provider.value,
                error_code="TIMEOUT",
            ) from e
        except httpx.RequestError as e:
            raise ProviderError(
                f"DeepAI request failed: {type(e).__name__}: {e}",
                provider=self.provider.value,
                error_code="REQUEST_ERROR",
            ) from e

        if response.status_code == 429:
            raise QuotaExceededError(
                "DeepAI quota exhausted or requests are being sent too quickly.",
                provider=self.provider.value,
            )

        if not response.is_success:
            message = f"HTTP error: {response.reason_phrase or response.status_code}"
            try:
                body = response.json()
                if isinstance(body, dict) and body.get("err"):
                    message = body["err"]
            except ValueError:
                pass
            raise ProviderError(
                f"DeepAI error: {message}",
                provider=self.provider.value,
                error_code=f"HTTP_{response.status_code}",
            )

        data = response.json()
        video_url = data.get("output_url")
        if not video_url:
            raise ProviderError(
                "DeepAI did not return a video URL",
                provider=self.provider.value,
                error_code="NO_OUTPUT_URL",
            )

        logger.info(f"DeepAI video ready for job {job.id}")
        return video_url
