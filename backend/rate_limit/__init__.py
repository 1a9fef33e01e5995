"""
Rate Limit Module
限流模块

Fixed-window request limiting keyed per client.

Features:
- Shared in-memory store owned by the app lifespan
- Independent windows per limiter name
- FastAPI dependency for per-route limits
"""

from .memory_store import RateLimitStore, RateWindowEntry
from .limiter import (
    RateLimiter,
    RateLimitDecision,
    client_key_from_request,
    rate_limit_response,
    rate_limited,
)

__all__ = [
    "RateLimitStore",
    "RateWindowEntry",
    "RateLimiter",
    "RateLimitDecision",
    "client_key_from_request",
    "rate_limit_response",
    "rate_limited",
]
