"""
Provider catalog.

Static mapping from model identifiers to the provider that serves them.
Used to resolve which credential and which dispatcher a job needs.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Literal, Optional


class Provider(str, Enum):
    """Generative-media providers known to the scheduler."""
    GEMINI = "gemini"
    SORA = "sora"        # OpenAI (Sora video, DALL-E images)
    KLING = "kling"
    MINIMAX = "minimax"
    DEEPAI = "deepai"
    AZURE = "azure"


@dataclass(frozen=True)
class ModelInfo:
    """A selectable model and the provider behind it."""
    id: str
    name: str
    provider: Provider
    kind: Literal["video", "image"]


VIDEO_MODELS: tuple[ModelInfo, ...] = (
    ModelInfo("veo-2.0-generate-001", "Veo 2 (Gemini)", Provider.GEMINI, "video"),
    ModelInfo("sora-openai", "Sora (OpenAI)", Provider.SORA, "video"),
    ModelInfo("sora-azure", "Sora (Azure)", Provider.AZURE, "video"),
    ModelInfo("kling-1", "Kling", Provider.KLING, "video"),
    ModelInfo("minimax-v1", "Minimax", Provider.MINIMAX, "video"),
    ModelInfo("deepai-video", "Video Generator (DeepAI)", Provider.DEEPAI, "video"),
)

IMAGE_MODELS: tuple[ModelInfo, ...] = (
    ModelInfo("imagen-4.0-generate-001", "Imagen 4 (Gemini)", Provider.GEMINI, "image"),
    ModelInfo("dalle-3", "DALL-E 3 (OpenAI)", Provider.SORA, "image"),
)

ASPECT_RATIOS: tuple[str, ...] = ("1:1", "16:9", "9:16", "4:3", "3:4")


def find_model(model_id: str, kind: Literal["video", "image"]) -> Optional[ModelInfo]:
    """Look up a model in the catalog for the given output kind."""
    catalog = IMAGE_MODELS if kind == "image" else VIDEO_MODELS
    for info in catalog:
        if info.id == model_id:
            return info
    return None
