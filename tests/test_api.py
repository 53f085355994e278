"""
API Server Tests - FastAPI endpoints over a scheduler with fake dispatchers.

The scheduler loop is not started; these tests exercise the caller-facing
operations only.

Run with:
    python -m pytest tests/test_api.py -v
"""

import base64
import os
import sys

import pytest
from fastapi.testclient import TestClient

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from conftest import VEO, ScriptedDispatcher, make_config
from core.providers import Provider
from services.api import create_app
from services.jobs import CredentialStore, JobStatus, Scheduler


@pytest.fixture
def scheduler():
    return Scheduler(
        dispatchers={p: ScriptedDispatcher(p) for p in Provider},
        credentials=CredentialStore(keys={Provider.GEMINI: "gemini-key-123456"}),
        config=make_config(),
    )


@pytest.fixture
def client(scheduler):
    return TestClient(create_app(scheduler, run_loop=False))


def submit(client, **body):
    return client.post("/jobs", json=body)


class TestInfoEndpoints:

    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["service"] == "MediaQueue"

    def test_health(self, client, scheduler):
        assert client.get("/health").json()["status"] == "healthy"
        scheduler.quota_exceeded_providers.add(Provider.GEMINI)
        assert client.get("/health").json()["status"] == "halted"

    def test_models(self, client):
        data = client.get("/models").json()
        assert {"id": VEO, "name": "Veo 2 (Gemini)", "provider": "gemini"} in data["video"]
        assert any(m["id"] == "imagen-4.0-generate-001" for m in data["image"])

    def test_status(self, client):
        data = client.get("/status").json()
        assert data["halted"] is False
        assert data["rate_limit"]["limit"] == 4
        assert data["credentials"] == ["gemini"]


class TestJobEndpoints:

    def test_enqueue_templates_and_bulk_prompts(self, client):
        response = submit(
            client,
            jobs=[{"prompt": "A fox", "model": VEO, "aspect_ratio": "9:16"}, {"prompt": "", "model": VEO}],
            bulk_prompts="A cat\n\nA dog",
        )

        assert response.status_code == 201
        data = response.json()
        assert data["enqueued"] == 3
        assert [j["prompt"] for j in data["jobs"]] == ["A fox", "A cat", "A dog"]
        assert all(j["status"] == "pending" and j["provider"] == "gemini" for j in data["jobs"])

        listing = client.get("/jobs").json()
        assert listing["total"] == 3
        assert listing["halted"] is False

    def test_image_to_video_upload(self, client):
        image = base64.b64encode(b"\x89PNG").decode()
        response = submit(
            client,
            jobs=[{
                "prompt": "Slow zoom",
                "model": VEO,
                "input_kind": "image_to_video",
                "image": {"data_base64": image, "mime_type": "image/png", "name": "cat.png"},
            }],
        )

        assert response.status_code == 201
        assert response.json()["jobs"][0]["image"] == {"name": "cat.png", "mime_type": "image/png"}

    def test_invalid_job_rejects_whole_batch(self, client):
        response = submit(
            client,
            jobs=[{"prompt": "ok", "model": VEO}, {"prompt": "bad", "model": "no-such-model"}],
        )
        assert response.status_code == 422
        assert client.get("/jobs").json()["total"] == 0

    def test_bad_base64_image(self, client):
        response = submit(
            client,
            jobs=[{
                "prompt": "x",
                "model": VEO,
                "input_kind": "image_to_video",
                "image": {"data_base64": "not base64!!"},
            }],
        )
        assert response.status_code == 422

    def test_empty_batch(self, client):
        assert submit(client, jobs=[{"prompt": "  ", "model": VEO}]).status_code == 422

    def test_bulk_without_template(self, client):
        assert submit(client, bulk_prompts="A cat").status_code == 422

    def test_get_job(self, client):
        job_id = submit(client, jobs=[{"prompt": "A fox", "model": VEO}]).json()["jobs"][0]["id"]

        assert client.get(f"/jobs/{job_id}").json()["id"] == job_id
        assert client.get("/jobs/missing").status_code == 404

    def test_cancel_then_retry(self, client, scheduler):
        job_id = submit(client, jobs=[{"prompt": "A fox", "model": VEO}]).json()["jobs"][0]["id"]

        cancelled = client.post(f"/jobs/{job_id}/cancel")
        assert cancelled.status_code == 200
        assert cancelled.json()["status"] == "failed"
        assert cancelled.json()["error"] == "Cancelled by user"

        assert client.post(f"/jobs/{job_id}/cancel").status_code == 409

        retried = client.post(f"/jobs/{job_id}/retry")
        assert retried.status_code == 200
        assert retried.json()["status"] == "pending"
        assert scheduler.get_job(job_id).status == JobStatus.PENDING

    def test_retry_pending_conflicts(self, client):
        job_id = submit(client, jobs=[{"prompt": "A fox", "model": VEO}]).json()["jobs"][0]["id"]
        assert client.post(f"/jobs/{job_id}/retry").status_code == 409
        assert client.post("/jobs/missing/retry").status_code == 404

    def test_clear_finished(self, client):
        jobs = submit(client, jobs=[{"prompt": "a", "model": VEO}, {"prompt": "b", "model": VEO}]).json()["jobs"]
        client.post(f"/jobs/{jobs[0]['id']}/cancel")

        response = client.delete("/jobs")
        assert response.json() == {"status": "cleared", "removed": 1}
        assert client.get("/jobs").json()["total"] == 1


class TestKeyEndpoints:

    def test_list_keys_masked(self, client):
        data = client.get("/keys").json()
        assert data["keys"]["gemini"] == "gemi...3456"
        assert data["keys"]["deepai"] is None
        assert data["quota_exceeded"] == []

    def test_save_key_lifts_quota_halt(self, client, scheduler):
        scheduler.quota_exceeded_providers.add(Provider.DEEPAI)

        response = client.put("/keys/deepai", json={"api_key": "new-deepai-key"})
        assert response.status_code == 200
        assert scheduler.credentials.lookup(Provider.DEEPAI) == "new-deepai-key"
        assert not scheduler.is_halted

    def test_save_key_errors(self, client):
        assert client.put("/keys/nope", json={"api_key": "x"}).status_code == 404
        assert client.put("/keys/gemini", json={"api_key": "   "}).status_code == 422
