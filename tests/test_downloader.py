"""
Result Downloader Tests

Run with:
    python -m pytest tests/test_downloader.py -v
"""

import base64
import os
import sys

import httpx
import pytest

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from conftest import IMAGEN, VEO
from core.providers import Provider
from services.generation import ResultDownloader
from services.generation.downloader import decode_data_uri
from services.jobs import CredentialStore, InputKind, Job, JobStatus


def completed_video(url: str, model: str = VEO) -> Job:
    return Job(
        prompt="A fox",
        model=model,
        input_kind=InputKind.TEXT_TO_VIDEO,
        status=JobStatus.COMPLETED,
        result_url=url,
    )


class TestDecodeDataUri:

    def test_decodes_base64(self):
        uri = "data:image/jpeg;base64," + base64.b64encode(b"pixels").decode()
        assert decode_data_uri(uri) == b"pixels"

    def test_rejects_non_base64(self):
        with pytest.raises(ValueError):
            decode_data_uri("data:text/plain,hello")


class TestResultDownloader:

    def make_downloader(self, handler, keys=None):
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        return ResultDownloader(CredentialStore(keys=keys or {}), http_client=client)

    @pytest.mark.asyncio
    async def test_video_with_gemini_key(self, tmp_path):
        seen = {}

        def handler(request):
            seen["key"] = request.url.params.get("key")
            return httpx.Response(200, content=b"mp4-bytes")

        downloader = self.make_downloader(handler, keys={Provider.GEMINI: "gemini-key"})
        job = completed_video("https://generativelanguage.googleapis.com/v1/files/abc:download")

        paths = await downloader.download_job(job, tmp_path)
        await downloader.close()

        assert paths == [tmp_path / f"video_{job.id[:8]}.mp4"]
        assert paths[0].read_bytes() == b"mp4-bytes"
        assert seen["key"] == "gemini-key"

    @pytest.mark.asyncio
    async def test_other_providers_get_no_key(self, tmp_path):
        seen = {}

        def handler(request):
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, content=b"video")

        downloader = self.make_downloader(handler, keys={Provider.GEMINI: "gemini-key"})
        await downloader.download_job(completed_video("https://deepai/v.mp4", model="deepai-video"), tmp_path)

        assert seen["params"] == {}

    @pytest.mark.asyncio
    async def test_images_from_data_uris(self, tmp_path):
        downloader = self.make_downloader(lambda request: httpx.Response(500))
        job = Job(
            prompt="A lighthouse",
            model=IMAGEN,
            input_kind=InputKind.TEXT_TO_IMAGE,
            status=JobStatus.COMPLETED,
            result_urls=[
                "data:image/jpeg;base64," + base64.b64encode(b"first").decode(),
                "data:image/jpeg;base64," + base64.b64encode(b"second").decode(),
            ],
        )

        paths = await downloader.download_job(job, tmp_path)

        short_id = job.id[:8]
        assert [p.name for p in paths] == [f"image_{short_id}_1.jpeg", f"image_{short_id}_2.jpeg"]
        assert paths[1].read_bytes() == b"second"

    @pytest.mark.asyncio
    async def test_download_all_skips_unfinished_and_failed_downloads(self, tmp_path):
        def handler(request):
            if "broken" in request.url.path:
                return httpx.Response(404)
            return httpx.Response(200, content=b"ok")

        downloader = self.make_downloader(handler)
        good = completed_video("https://cdn/good.mp4", model="deepai-video")
        broken = completed_video("https://cdn/broken.mp4", model="deepai-video")
        pending = Job(prompt="x", model=VEO, input_kind=InputKind.TEXT_TO_VIDEO)

        paths = await downloader.download_all([broken, pending, good], tmp_path)

        assert paths == [tmp_path / f"video_{good.id[:8]}.mp4"]
