from __future__ import annotations
from enum import Enum
from typing import Optional


class FlickPickError(Exception):
    """Base class for errors raised by the recommendation service."""


class ProviderErrorKind(str, Enum):
    TIMEOUT = "timeout"
    RATE_LIMITED = "rate_limited"
    INVALID_RESPONSE = "invalid_response"
    UNAVAILABLE = "unavailable"


class ProviderError(FlickPickError):
    """
    A single provider could not produce a usable answer.
    The resolver swallows these and moves on to the next provider.
    """

    def __init__(self, kind: ProviderErrorKind, message: str = "", retryable: Optional[bool] = None) -> None:
        super().__init__(message or kind.value)
        self.kind: ProviderErrorKind = kind
        if retryable is None:
            retryable = kind is not ProviderErrorKind.RATE_LIMITED
        self.retryable: bool = retryable


class AllProvidersExhausted(FlickPickError):
    """Every provider in the chain failed."""

    def __init__(self, last_kind: Optional[ProviderErrorKind], attempts: int) -> None:
        label = last_kind.value if last_kind else "none"
        super().__init__(f"all {attempts} providers failed (last error: {label})")
        self.last_kind: Optional[ProviderErrorKind] = last_kind
        self.attempts: int = attempts


class CacheStoreError(FlickPickError):
    """Cache backend failure. Never surfaced to API callers."""


class InvalidInput(FlickPickError):
    def __init__(self, message: str, details: Optional[str] = None) -> None:
        super().__init__(message)
        self.message: str = message
        self.details: Optional[str] = details


class RateLimitExceeded(FlickPickError):
    def __init__(self, client: str, endpoint: str) -> None:
        super().__init__(f"rate limit exceeded for {client} on {endpoint}")
        self.client: str = client
        self.endpoint: str = endpoint


class TMDBError(FlickPickError):
    def __init__(self, status: int, path: str, body: str = "") -> None:
        super().__init__(f"TMDB {path} {status} :: {body[:300]}")
        self.status: int = status
        self.path: str = path
