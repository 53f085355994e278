"""Errors raised by provider dispatchers."""

from typing import Optional


class GenerationError(Exception):
    """Base class for generation failures."""

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        error_code: Optional[str] = None,
    ):
        self.provider = provider
        self.error_code = error_code
        super().__init__(message)


class QuotaExceededError(GenerationError):
    """The provider reported exhausted quota or too many requests."""

    def __init__(self, message: str, provider: Optional[str] = None):
        super().__init__(message, provider=provider, error_code="QUOTA_EXCEEDED")


class ProviderError(GenerationError):
    """Any other provider-side failure."""
    pass


class UnsupportedCapabilityError(ProviderError):
    """The provider cannot serve this kind of job."""

    def __init__(self, message: str, provider: Optional[str] = None):
        super().__init__(message, provider=provider, error_code="UNSUPPORTED")


class PollTimeoutError(ProviderError):
    """A long-running operation did not finish within the allowed time."""

    def __init__(self, message: str, provider: Optional[str] = None):
        super().__init__(message, provider=provider, error_code="POLL_TIMEOUT")
