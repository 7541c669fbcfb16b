"""In-process rate limiting and temporary bans keyed by client identifier."""

from .cleanup import CleanupThread
from .client import Client, ClientView
from .defender import FACTOR, Defender
from .limiter import LimiterFactory, RateLimiter, TokenBucketLimiter

__all__ = [
    "FACTOR",
    "CleanupThread",
    "Client",
    "ClientView",
    "Defender",
    "LimiterFactory",
    "RateLimiter",
    "TokenBucketLimiter",
]
