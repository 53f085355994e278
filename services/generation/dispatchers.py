"""
Dispatcher registry.

One dispatcher per Provider member. build_dispatchers refuses to return a
mapping that leaves any provider without an implementation.
"""

from typing import Mapping, Optional

from core.config import Config, get_config
from core.providers import Provider

from .base import ProviderDispatcher, UnsupportedDispatcher
from .deepai import DeepAIDispatcher
from .gemini import GeminiDispatcher


def check_coverage(dispatchers: Mapping[Provider, ProviderDispatcher]):
    """Raise ValueError if any provider has no dispatcher."""
    missing = [p.value for p in Provider if p not in dispatchers]
    if missing:
        raise ValueError(f"No dispatcher configured for: {', '.join(missing)}")


def build_dispatchers(config: Optional[Config] = None) -> dict[Provider, ProviderDispatcher]:
    """Create the default dispatcher for every provider."""
    config = config or get_config()
    dispatchers: dict[Provider, ProviderDispatcher] = {
        Provider.GEMINI: GeminiDispatcher(config),
        Provider.DEEPAI: DeepAIDispatcher(config),
        Provider.SORA: UnsupportedDispatcher(Provider.SORA),
        Provider.KLING: UnsupportedDispatcher(Provider.KLING),
        Provider.MINIMAX: UnsupportedDispatcher(Provider.MINIMAX),
        Provider.AZURE: UnsupportedDispatcher(Provider.AZURE),
    }
    check_coverage(dispatchers)
    return dispatchers
