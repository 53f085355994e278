"""
Job data model.

A Job is one user-submitted generation request. Request parameters are fixed
at creation; status, retry count, results and error are mutated only through
JobStore transitions.
"""

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterable, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from core.providers import ASPECT_RATIOS, ModelInfo, Provider, find_model


class JobStatus(str, Enum):
    """Lifecycle status of a job."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class InputKind(str, Enum):
    """Which provider capability a job invokes."""
    TEXT_TO_VIDEO = "text_to_video"
    IMAGE_TO_VIDEO = "image_to_video"
    TEXT_TO_IMAGE = "text_to_image"

    @property
    def output_kind(self) -> Literal["video", "image"]:
        return "image" if self is InputKind.TEXT_TO_IMAGE else "video"


class ImagePayload(BaseModel):
    """Source image for image-to-video jobs."""
    model_config = ConfigDict(frozen=True)

    data: bytes
    mime_type: str = "image/png"
    name: str = "image"


class JobSpec(BaseModel):
    """Validated parameters for a new job."""

    prompt: str = Field(min_length=1)
    model: str
    input_kind: InputKind = InputKind.TEXT_TO_VIDEO
    aspect_ratio: str = "16:9"
    output_count: int = Field(default=1, ge=1, le=4)
    image: Optional[ImagePayload] = None

    @field_validator("prompt")
    @classmethod
    def _strip_prompt(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("prompt must not be blank")
        return value

    @field_validator("aspect_ratio")
    @classmethod
    def _known_aspect_ratio(cls, value: str) -> str:
        if value not in ASPECT_RATIOS:
            raise ValueError(f"aspect_ratio must be one of {', '.join(ASPECT_RATIOS)}")
        return value

    @model_validator(mode="after")
    def _check_model_and_image(self) -> "JobSpec":
        kind = self.input_kind.output_kind
        if find_model(self.model, kind) is None:
            raise ValueError(f"Unknown {kind} model: {self.model}")
        if self.input_kind is InputKind.IMAGE_TO_VIDEO and self.image is None:
            raise ValueError("image is required for image_to_video jobs")
        if self.input_kind is not InputKind.IMAGE_TO_VIDEO:
            self.image = None
        return self


@dataclass
class JobResult:
    """Outcome of a successful dispatch: one video or an ordered list of images."""
    result_url: Optional[str] = None
    result_urls: Optional[list[str]] = None


@dataclass
class Job:
    """A generation request tracked through its lifecycle."""

    prompt: str
    model: str
    input_kind: InputKind
    aspect_ratio: str = "16:9"
    output_count: int = 1
    image: Optional[ImagePayload] = None

    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    # Lifecycle
    status: JobStatus = JobStatus.PENDING
    retry_count: int = 0
    result_url: Optional[str] = None
    result_urls: Optional[list[str]] = None
    error: Optional[str] = None

    @classmethod
    def from_spec(cls, spec: JobSpec) -> "Job":
        return cls(
            prompt=spec.prompt,
            model=spec.model,
            input_kind=spec.input_kind,
            aspect_ratio=spec.aspect_ratio,
            output_count=spec.output_count,
            image=spec.image,
        )

    @property
    def model_info(self) -> Optional[ModelInfo]:
        return find_model(self.model, self.input_kind.output_kind)

    @property
    def provider(self) -> Optional[Provider]:
        """Provider resolved from the model catalog."""
        info = self.model_info
        return info.provider if info else None

    @property
    def is_terminal(self) -> bool:
        return self.status in (JobStatus.COMPLETED, JobStatus.FAILED)

    def copy(self) -> "Job":
        """Detached copy safe to hand to callers and dispatchers."""
        return replace(
            self,
            result_urls=list(self.result_urls) if self.result_urls is not None else None,
        )

    def to_dict(self) -> dict[str, Any]:
        """Serializable view (image bytes are summarized, not included)."""
        data = {
            "id": self.id,
            "prompt": self.prompt,
            "model": self.model,
            "provider": self.provider.value if self.provider else None,
            "input_kind": self.input_kind.value,
            "aspect_ratio": self.aspect_ratio,
            "output_count": self.output_count,
            "status": self.status.value,
            "retry_count": self.retry_count,
            "created_at": self.created_at.isoformat(),
        }
        if self.image:
            data["image"] = {"name": self.image.name, "mime_type": self.image.mime_type}
        if self.result_url:
            data["result_url"] = self.result_url
        if self.result_urls is not None:
            data["result_urls"] = list(self.result_urls)
        if self.error:
            data["error"] = self.error
        return data


def parse_bulk_prompts(text: str) -> list[str]:
    """Split a block of text into one prompt per non-blank line."""
    return [line.strip() for line in text.splitlines() if line.strip()]


def build_batch(templates: Iterable[dict[str, Any]], bulk_prompts: str = "") -> list[JobSpec]:
    """
    Turn form templates plus a block of bulk prompts into job specs.

    Templates with a blank prompt are skipped. Each bulk prompt becomes a job
    with the first template's settings.
    """
    templates = list(templates)
    specs = [
        JobSpec.model_validate(template)
        for template in templates
        if str(template.get("prompt") or "").strip()
    ]

    prompts = parse_bulk_prompts(bulk_prompts or "")
    if prompts:
        if not templates:
            raise ValueError("Bulk prompts need a template to take the model from")
        base = templates[0]
        specs.extend(JobSpec.model_validate({**base, "prompt": prompt}) for prompt in prompts)

    return specs
