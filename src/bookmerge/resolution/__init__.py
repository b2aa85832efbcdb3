"""Resolution layer for fetching metadata from external providers."""

from bookmerge.resolution.backoff import Backoff, RetryConfig
from bookmerge.resolution.base import AbstractProvider, ProviderConfig, ProviderResult
from bookmerge.resolution.fanout import FanOutConfig, FanOutResult, ProviderFanOut
from bookmerge.resolution.ratelimit import RateLimitConfig, RateLimiter, RateLimitStatus
from bookmerge.resolution.registry import ProviderRegistry

__all__ = [
    # Base
    "AbstractProvider",
    "ProviderConfig",
    "ProviderResult",
    # Rate limiting and retries
    "Backoff",
    "RateLimitConfig",
    "RateLimitStatus",
    "RateLimiter",
    "RetryConfig",
    # Fan-out
    "FanOutConfig",
    "FanOutResult",
    "ProviderFanOut",
    # Registry
    "ProviderRegistry",
]
