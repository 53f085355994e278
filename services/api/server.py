"""
MediaQueue API server.

FastAPI app exposing the caller-facing scheduler operations. The scheduler
loop runs in the background for the lifetime of the app.

Run with:
    uvicorn services.api.server:app --port 8765
    # or
    python main.py server
"""

import asyncio
import base64
import binascii
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from pydantic import BaseModel, Field, ValidationError

from core.config import get_config
from core.providers import IMAGE_MODELS, VIDEO_MODELS, Provider
from services.generation import build_dispatchers
from services.jobs import (
    CredentialStore,
    InputKind,
    InvalidStateTransitionError,
    JobNotFoundError,
    Scheduler,
    build_batch,
)

logger = logging.getLogger(__name__)


class ImageUpload(BaseModel):
    """Image attached to an image-to-video job (base64 encoded)."""
    data_base64: str
    mime_type: str = "image/png"
    name: str = "image"


class JobTemplate(BaseModel):
    """One job row of the submission form."""
    prompt: str = ""
    model: str
    input_kind: InputKind = InputKind.TEXT_TO_VIDEO
    aspect_ratio: str = "16:9"
    output_count: int = 1
    image: Optional[ImageUpload] = None

    def to_spec_dict(self) -> dict:
        data = self.model_dump(exclude={"image"})
        if self.image is not None:
            try:
                raw = base64.b64decode(self.image.data_base64, validate=True)
            except (binascii.Error, ValueError):
                raise HTTPException(status_code=422, detail="image.data_base64 is not valid base64")
            data["image"] = {
                "data": raw,
                "mime_type": self.image.mime_type,
                "name": self.image.name,
            }
        return data


class EnqueueRequest(BaseModel):
    """A batch of jobs: explicit templates plus optional bulk prompts."""
    jobs: list[JobTemplate] = Field(default_factory=list)
    bulk_prompts: str = ""


class KeyRequest(BaseModel):
    api_key: str


def _get_scheduler(request: Request) -> Scheduler:
    return request.app.state.scheduler


def create_app(scheduler: Optional[Scheduler] = None, run_loop: bool = True) -> FastAPI:
    """
    Build the API app.

    Args:
        scheduler: Scheduler to expose (built from config on startup if None)
        run_loop: Start the scheduler's tick loop in the app lifespan
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup and shutdown events."""
        if getattr(app.state, "scheduler", None) is None:
            config = get_config()
            for issue in config.validate():
                logger.warning(f"Config: {issue}")
            app.state.scheduler = Scheduler(
                dispatchers=build_dispatchers(config),
                credentials=CredentialStore.from_config(config),
                config=config,
            )

        loop_task = None
        if run_loop:
            logger.info("Starting scheduler loop...")
            loop_task = asyncio.create_task(app.state.scheduler.run())

        yield

        logger.info("Shutting down scheduler...")
        if loop_task:
            app.state.scheduler.stop()
            loop_task.cancel()
            try:
                await loop_task
            except asyncio.CancelledError:
                pass
        await app.state.scheduler.close()

    app = FastAPI(title="MediaQueue", version="1.0.0", lifespan=lifespan)
    app.state.scheduler = scheduler

    @app.get("/")
    async def root():
        """Root endpoint with API info."""
        return {
            "service": "MediaQueue",
            "version": "1.0.0",
            "endpoints": {
                "POST /jobs": "Enqueue a batch of jobs",
                "GET /jobs": "Snapshot of all jobs",
                "GET /jobs/{job_id}": "One job",
                "POST /jobs/{job_id}/retry": "Retry a failed job",
                "POST /jobs/{job_id}/cancel": "Cancel a pending or processing job",
                "DELETE /jobs": "Clear completed and failed jobs",
                "GET /keys": "Configured providers (masked keys)",
                "PUT /keys/{provider}": "Save a provider API key",
                "GET /models": "Model catalog",
                "GET /status": "Scheduler status",
                "GET /health": "Health check",
            },
        }

    @app.get("/health")
    async def health(request: Request):
        """Health check endpoint."""
        scheduler = _get_scheduler(request)
        return {
            "status": "halted" if scheduler.is_halted else "healthy",
            "jobs": scheduler.store.counts(),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    @app.get("/models")
    async def models():
        return {
            "video": [
                {"id": m.id, "name": m.name, "provider": m.provider.value} for m in VIDEO_MODELS
            ],
            "image": [
                {"id": m.id, "name": m.name, "provider": m.provider.value} for m in IMAGE_MODELS
            ],
        }

    @app.post("/jobs", status_code=201)
    async def enqueue_jobs(body: EnqueueRequest, request: Request):
        """Validate and enqueue a batch; nothing is enqueued if any job is invalid."""
        try:
            specs = build_batch(
                [template.to_spec_dict() for template in body.jobs],
                body.bulk_prompts,
            )
        except ValidationError as e:
            raise HTTPException(
                status_code=422,
                detail=e.errors(include_url=False, include_context=False, include_input=False),
            )
        except ValueError as e:
            raise HTTPException(status_code=422, detail=str(e))

        if not specs:
            raise HTTPException(status_code=422, detail="No jobs with a prompt were submitted")

        jobs = _get_scheduler(request).enqueue(specs)
        return {"enqueued": len(jobs), "jobs": [job.to_dict() for job in jobs]}

    @app.get("/jobs")
    async def list_jobs(request: Request):
        scheduler = _get_scheduler(request)
        jobs = scheduler.snapshot()
        return {
            "total": len(jobs),
            "halted": scheduler.is_halted,
            "jobs": [job.to_dict() for job in jobs],
        }

    @app.get("/jobs/{job_id}")
    async def get_job(job_id: str, request: Request):
        try:
            return _get_scheduler(request).get_job(job_id).to_dict()
        except JobNotFoundError:
            raise HTTPException(status_code=404, detail="Job not found")

    @app.post("/jobs/{job_id}/retry")
    async def retry_job(job_id: str, request: Request):
        try:
            return _get_scheduler(request).retry(job_id).to_dict()
        except JobNotFoundError:
            raise HTTPException(status_code=404, detail="Job not found")
        except InvalidStateTransitionError as e:
            raise HTTPException(status_code=409, detail=str(e))

    @app.post("/jobs/{job_id}/cancel")
    async def cancel_job(job_id: str, request: Request):
        try:
            return _get_scheduler(request).cancel(job_id).to_dict()
        except JobNotFoundError:
            raise HTTPException(status_code=404, detail="Job not found")
        except InvalidStateTransitionError as e:
            raise HTTPException(status_code=409, detail=str(e))

    @app.delete("/jobs")
    async def clear_jobs(request: Request):
        removed = _get_scheduler(request).clear_finished()
        return {"status": "cleared", "removed": removed}

    @app.get("/keys")
    async def list_keys(request: Request):
        scheduler = _get_scheduler(request)
        return {
            "keys": scheduler.credentials.masked(),
            "quota_exceeded": sorted(p.value for p in scheduler.quota_exceeded_providers),
        }

    @app.put("/keys/{provider}")
    async def save_key(provider: str, body: KeyRequest, request: Request):
        try:
            provider_enum = Provider(provider)
        except ValueError:
            raise HTTPException(status_code=404, detail=f"Unknown provider: {provider}")

        if not _get_scheduler(request).update_credential(provider_enum, body.api_key):
            raise HTTPException(status_code=422, detail="API key must not be blank")
        return {"status": "saved", "provider": provider_enum.value}

    @app.get("/status")
    async def status(request: Request):
        return _get_scheduler(request).get_status()

    return app


app = create_app()


# Module-level run function for main.py
def run_server(host: str = "0.0.0.0", port: int = 8765):
    """Run the server using uvicorn."""
    import uvicorn
    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    run_server()
