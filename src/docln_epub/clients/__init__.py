"""Rate-limited access to the source site."""

from .exceptions import (
    FetchError,
    FetchTimeoutError,
    HttpStatusError,
    TransportError,
)
from .fetcher import DEFAULT_BASE_URL, RateLimitedFetcher
from .rate_limiter import RateLimiter

__all__ = [
    "DEFAULT_BASE_URL",
    "RateLimitedFetcher",
    "RateLimiter",
    "FetchError",
    "FetchTimeoutError",
    "HttpStatusError",
    "TransportError",
]
