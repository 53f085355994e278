"""
MediaQueue Core Components

Foundational pieces shared by the scheduler and the provider dispatchers:
- Configuration loaded from the environment
- Provider and model catalog
"""

from .config import Config, get_config, reload_config
from .providers import ASPECT_RATIOS, IMAGE_MODELS, VIDEO_MODELS, ModelInfo, Provider, find_model

__all__ = [
    "Config",
    "get_config",
    "reload_config",
    "Provider",
    "ModelInfo",
    "VIDEO_MODELS",
    "IMAGE_MODELS",
    "ASPECT_RATIOS",
    "find_model",
]
