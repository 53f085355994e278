"""
Configuration management for MediaQueue.

Centralizes all configuration including:
- Provider API keys and endpoints
- Scheduling budgets (concurrency, rate limit, retries)
- Video polling cadence
- Local storage paths
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from .providers import Provider


def _optional_seconds(name: str, default: str) -> Optional[float]:
    value = os.getenv(name, default).strip().lower()
    if value in ("", "0", "none", "off"):
        return None
    return float(value)


@dataclass
class APIConfig:
    """API keys and endpoints for the generation providers."""

    gemini_api_key: str = field(
        default_factory=lambda: os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_API_KEY", "")
    )
    deepai_api_key: str = field(default_factory=lambda: os.getenv("DEEPAI_API_KEY", ""))
    deepai_api_base: str = field(
        default_factory=lambda: os.getenv("DEEPAI_API_BASE", "https://api.deepai.org")
    )

    # Providers without a public generation API yet
    openai_api_key: str = field(default_factory=lambda: os.getenv("OPENAI_API_KEY", ""))
    kling_api_key: str = field(default_factory=lambda: os.getenv("KLING_API_KEY", ""))
    minimax_api_key: str = field(default_factory=lambda: os.getenv("MINIMAX_API_KEY", ""))
    azure_api_key: str = field(default_factory=lambda: os.getenv("AZURE_API_KEY", ""))

    def keys_by_provider(self) -> dict[Provider, str]:
        """Keys configured through the environment, by provider."""
        keys = {
            Provider.GEMINI: self.gemini_api_key,
            Provider.DEEPAI: self.deepai_api_key,
            Provider.SORA: self.openai_api_key,
            Provider.KLING: self.kling_api_key,
            Provider.MINIMAX: self.minimax_api_key,
            Provider.AZURE: self.azure_api_key,
        }
        return {provider: key for provider, key in keys.items() if key}


@dataclass
class SchedulerConfig:
    """Global scheduling budgets."""
    max_concurrent_jobs: int = field(
        default_factory=lambda: int(os.getenv("MAX_CONCURRENT_JOBS", "4"))
    )
    rate_limit_count: int = field(
        default_factory=lambda: int(os.getenv("RATE_LIMIT_COUNT", "4"))
    )
    rate_limit_window_seconds: float = field(
        default_factory=lambda: float(os.getenv("RATE_LIMIT_WINDOW_SECONDS", "60"))
    )
    max_retries: int = field(default_factory=lambda: int(os.getenv("MAX_RETRIES", "3")))
    tick_interval_seconds: float = field(
        default_factory=lambda: float(os.getenv("TICK_INTERVAL_SECONDS", "1"))
    )


@dataclass
class PollingConfig:
    """Polling of long-running video operations."""
    video_poll_interval_seconds: float = field(
        default_factory=lambda: float(os.getenv("VIDEO_POLL_INTERVAL_SECONDS", "10"))
    )
    # None polls until the provider reports done
    video_poll_timeout_seconds: Optional[float] = field(
        default_factory=lambda: _optional_seconds("VIDEO_POLL_TIMEOUT_SECONDS", "1800")
    )


@dataclass
class StorageConfig:
    """Local paths for saved keys and downloaded results."""
    credentials_path: Path = field(
        default_factory=lambda: Path(
            os.getenv("CREDENTIALS_PATH", str(Path.home() / ".mediaqueue" / "api-keys.json"))
        )
    )
    output_dir: Path = field(default_factory=lambda: Path(os.getenv("OUTPUT_DIR", "output")))


@dataclass
class Config:
    """Main configuration class."""

    api: APIConfig = field(default_factory=APIConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    polling: PollingConfig = field(default_factory=PollingConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables."""
        return cls()

    def validate(self) -> list[str]:
        """Validate configuration and return list of issues."""
        issues = []
        sched = self.scheduler

        if sched.max_concurrent_jobs < 1:
            issues.append("MAX_CONCURRENT_JOBS must be at least 1")
        if sched.rate_limit_count < 1:
            issues.append("RATE_LIMIT_COUNT must be at least 1")
        if sched.rate_limit_window_seconds <= 0:
            issues.append("RATE_LIMIT_WINDOW_SECONDS must be positive")
        if sched.max_retries < 0:
            issues.append("MAX_RETRIES cannot be negative")
        if sched.tick_interval_seconds <= 0:
            issues.append("TICK_INTERVAL_SECONDS must be positive")
        if self.polling.video_poll_interval_seconds <= 0:
            issues.append("VIDEO_POLL_INTERVAL_SECONDS must be positive")

        if not self.api.keys_by_provider() and not self.storage.credentials_path.exists():
            issues.append("No provider API key configured (jobs will stay pending)")

        return issues


# Global config instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = Config.from_env()
    return _config


def reload_config():
    """Reload configuration from environment."""
    global _config
    _config = Config.from_env()
