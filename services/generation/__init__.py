"""
Generation Service

Provider dispatchers behind one capability interface:
- Gemini: Veo video (polled long-running operation), Imagen images
- DeepAI: text-to-video
- Sora, Kling, Minimax, Azure: not publicly available yet

Plus the result downloader used by "download all".
"""

from .base import ProviderDispatcher, UnsupportedDispatcher
from .deepai import DeepAIDispatcher
from .dispatchers import build_dispatchers, check_coverage
from .downloader import ResultDownloader
from .errors import (
    GenerationError,
    PollTimeoutError,
    ProviderError,
    QuotaExceededError,
    UnsupportedCapabilityError,
)
from .gemini import GeminiDispatcher
from .polling import poll_until_done

__all__ = [
    "ProviderDispatcher",
    "UnsupportedDispatcher",
    "GeminiDispatcher",
    "DeepAIDispatcher",
    "build_dispatchers",
    "check_coverage",
    "ResultDownloader",
    "GenerationError",
    "QuotaExceededError",
    "ProviderError",
    "UnsupportedCapabilityError",
    "PollTimeoutError",
    "poll_until_done",
]
