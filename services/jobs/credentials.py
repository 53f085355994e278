"""
Credential Store - API keys per provider.

Keys come from two places:
- the environment (via APIConfig), read once at startup
- a JSON file of keys saved by the user, which takes precedence

The scheduler only ever calls lookup(); a missing key means the provider's
jobs are not eligible for dispatch yet.
"""

import json
import logging
from pathlib import Path
from typing import Optional, Union

from core.config import Config, get_config
from core.providers import Provider

logger = logging.getLogger(__name__)


class CredentialStore:
    """
    Provider API keys, optionally persisted to disk.

    Usage:
        store = CredentialStore.from_config()
        key = store.lookup(Provider.GEMINI)
        store.save(Provider.DEEPAI, "new-key")
    """

    def __init__(
        self,
        keys: Optional[dict[Provider, str]] = None,
        path: Optional[Path] = None,
    ):
        self.path = path
        self._keys: dict[Provider, str] = {p: k for p, k in (keys or {}).items() if k}
        if path is not None:
            self._keys.update(self._load(path))

    @classmethod
    def from_config(cls, config: Optional[Config] = None) -> "CredentialStore":
        config = config or get_config()
        return cls(keys=config.api.keys_by_provider(), path=config.storage.credentials_path)

    @staticmethod
    def _load(path: Path) -> dict[Provider, str]:
        if not path.exists():
            return {}
        try:
            raw = json.loads(path.read_text())
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Could not read saved API keys from {path}: {e}")
            return {}

        keys = {}
        for name, key in raw.items():
            try:
                provider = Provider(name)
            except ValueError:
                logger.warning(f"Ignoring saved key for unknown provider: {name}")
                continue
            if key:
                keys[provider] = key
        return keys

    def _persist(self):
        if self.path is None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        data = {provider.value: key for provider, key in self._keys.items()}
        self.path.write_text(json.dumps(data, indent=2))

    def lookup(self, provider: Union[Provider, str]) -> Optional[str]:
        """Key for the provider, or None when none is configured."""
        return self._keys.get(Provider(provider))

    def save(self, provider: Union[Provider, str], key: str) -> bool:
        """
        Store a key for a provider.

        Returns False (and changes nothing) for a blank key.
        """
        key = (key or "").strip()
        if not key:
            return False
        provider = Provider(provider)
        self._keys[provider] = key
        self._persist()
        logger.info(f"Saved API key for {provider.value}")
        return True

    def providers(self) -> list[Provider]:
        """Providers that currently have a key."""
        return [p for p in Provider if p in self._keys]

    def masked(self) -> dict[str, Optional[str]]:
        """Every provider with its key masked, for display."""
        masked = {}
        for provider in Provider:
            key = self._keys.get(provider)
            if key is None:
                masked[provider.value] = None
            elif len(key) <= 8:
                masked[provider.value] = "****"
            else:
                masked[provider.value] = f"{key[:4]}...{key[-4:]}"
        return masked
