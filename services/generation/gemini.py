"""
Gemini dispatcher (Veo video, Imagen images) via the google-genai SDK.

Video generation is a long-running operation: the submit call returns an
operation handle that is polled until done, then the first generated video's
URI is the result. Image generation is synchronous and returns the image
bytes, which are handed back as data URIs.
"""

import base64
import logging
from typing import Any, Callable, Optional

from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from core.config import Config, get_config
from core.providers import Provider
from services.jobs.models import InputKind, Job

from .base import ProviderDispatcher
from .errors import GenerationError, ProviderError, QuotaExceededError
from .polling import poll_until_done

logger = logging.getLogger(__name__)

IMAGE_MIME_TYPE = "image/jpeg"


def _default_client_factory(api_key: str) -> genai.Client:
    return genai.Client(api_key=api_key)


class GeminiDispatcher(ProviderDispatcher):
    """
    Generates videos and images through the Gemini API.

    Usage:
        dispatcher = GeminiDispatcher()
        result = await dispatcher.dispatch(job, api_key)
    """

    provider = Provider.GEMINI

    def __init__(
        self,
        config: Optional[Config] = None,
        client_factory: Callable[[str], Any] = _default_client_factory,
    ):
        self.config = config or get_config()
        self._client_factory = client_factory
        # One client per API key; a saved replacement key gets its own
        self._clients: dict[str, Any] = {}

    def _get_client(self, api_key: str):
        """Get or create the SDK client for a key."""
        client = self._clients.get(api_key)
        if client is None:
            client = self._client_factory(api_key)
            self._clients[api_key] = client
        return client

    async def close(self):
        """Close every SDK client this dispatcher created."""
        clients = list(self._clients.values())
        self._clients.clear()
        for client in clients:
            try:
                await client.aio.aclose()
            except Exception as e:
                logger.warning(f"Failed to close Gemini client: {e}")

    def _map_error(self, error: genai_errors.APIError, what: str) -> GenerationError:
        message = error.message or str(error) or f"Unknown error while generating {what}"
        if (
            error.code == 429
            or error.status == "RESOURCE_EXHAUSTED"
            or "quota" in message.lower()
        ):
            return QuotaExceededError("Gemini API quota exhausted.", provider=self.provider.value)
        return ProviderError(message, provider=self.provider.value, error_code=f"HTTP_{error.code}")

    async def generate_video(self, job: Job, credential: str) -> str:
        client = self._get_client(credential)
        polling = self.config.polling

        request: dict[str, Any] = {
            "model": job.model,
            "prompt": job.prompt,
            "config": types.GenerateVideosConfig(
                number_of_videos=job.output_count,
                aspect_ratio=job.aspect_ratio,
            ),
        }
        if job.input_kind is InputKind.IMAGE_TO_VIDEO and job.image is not None:
            request["image"] = types.Image(
                image_bytes=job.image.data,
                mime_type=job.image.mime_type,
            )

        try:
            operation = await client.aio.models.generate_videos(**request)
            logger.info(f"Gemini video operation started for job {job.id}: {operation.name}")

            operation = await poll_until_done(
                operation,
                refresh=lambda op: client.aio.operations.get(op),
                is_done=lambda op: bool(op.done),
                interval=polling.video_poll_interval_seconds,
                max_duration=polling.video_poll_timeout_seconds,
                provider=self.provider.value,
            )
        except genai_errors.APIError as e:
            raise self._map_error(e, "video") from e

        if operation.error:
            message = operation.error.get("message") or "Video generation failed"
            if "quota" in message.lower():
                raise QuotaExceededError("Gemini API quota exhausted.", provider=self.provider.value)
            raise ProviderError(message, provider=self.provider.value, error_code="OPERATION_FAILED")

        response = operation.response
        videos = response.generated_videos if response else None
        uri = videos[0].video.uri if videos and videos[0].video else None
        if not uri:
            raise ProviderError(
                "No download link in the completed video operation",
                provider=self.provider.value,
                error_code="NO_VIDEO_URI",
            )

        logger.info(f"Gemini video ready for job {job.id}")
        return uri

    async def generate_images(self, job: Job, credential: str) -> list[str]:
        client = self._get_client(credential)

        try:
            response = await client.aio.models.generate_images(
                model=job.model,
                prompt=job.prompt,
                config=types.GenerateImagesConfig(
                    number_of_images=job.output_count,
                    output_mime_type=IMAGE_MIME_TYPE,
                    aspect_ratio=job.aspect_ratio,
                ),
            )
        except genai_errors.APIError as e:
            raise self._map_error(e, "images") from e

        images = [
            generated.image.image_bytes
            for generated in (response.generated_images or [])
            if generated.image and generated.image.image_bytes
        ]
        if not images:
            raise ProviderError(
                "Gemini returned no images (the prompt may have been filtered)",
                provider=self.provider.value,
                error_code="NO_IMAGES",
            )

        return [
            f"data:{IMAGE_MIME_TYPE};base64,{base64.b64encode(data).decode('ascii')}"
            for data in images
        ]
