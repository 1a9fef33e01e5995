"""
Fixed-Window Rate Limiter

Each limiter owns a (limit, window) rule and counts requests per client key
in a shared RateLimitStore. Routes stack a per-route limiter on top of the
global ingress limiter, so one request may be rejected by either window.
"""

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, Optional

from fastapi import Request
from fastapi.responses import JSONResponse

from core.config import RateLimitRule
from core.errors import RateLimitExceeded
from .memory_store import RateLimitStore

logger = logging.getLogger(__name__)

UNKNOWN_CLIENT = "unknown"


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of one limiter check."""
    allowed: bool
    limit: int
    remaining: int
    reset_at_ms: int
    retry_after_seconds: int = 0

    @property
    def status(self) -> int:
        return 200 if self.allowed else 429

    @property
    def reset_iso(self) -> str:
        return datetime.fromtimestamp(self.reset_at_ms / 1000, tz=timezone.utc).isoformat()

    @property
    def reset_epoch_seconds(self) -> int:
        return math.ceil(self.reset_at_ms / 1000)

    def headers(self) -> Dict[str, str]:
        return {
            "Retry-After": str(self.retry_after_seconds),
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(self.reset_epoch_seconds),
        }


def client_key_from_request(request: Request) -> str:
    """
    Derive the client identity from X-Forwarded-For.

    Without the header every client shares the "unknown" bucket.
    """
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        ip = forwarded_for.split(",")[0].strip()
        if ip:
            return ip
    return UNKNOWN_CLIENT


class RateLimiter:
    """
    Fixed-window request counter.

    Usage:
        limiter = RateLimiter("images", store, limit=300, window_ms=60_000)
        decision = limiter.check("203.0.113.7")
    """

    def __init__(
        self,
        name: str,
        store: RateLimitStore,
        limit: int = 60,
        window_ms: int = 60_000,
        message: str = "Too many requests, please try again later.",
        key_generator: Callable[[Request], str] = client_key_from_request,
    ):
        self.name = name
        self.store = store
        self.limit = limit
        self.window_ms = window_ms
        self.message = message
        self.key_generator = key_generator

    @classmethod
    def from_rule(cls, name: str, store: RateLimitStore, rule: RateLimitRule) -> "RateLimiter":
        return cls(name, store, limit=rule.limit, window_ms=rule.window_ms, message=rule.message)

    def check(self, client_key: str, now_ms: Optional[int] = None) -> RateLimitDecision:
        """Count one request for `client_key` and decide whether it may proceed."""
        now = self.store.now_ms() if now_ms is None else now_ms
        entry = self.store.hit(f"{self.name}:{client_key}", self.window_ms, now)

        if entry.count > self.limit:
            retry_after = math.ceil((entry.window_reset_at_ms - now) / 1000)
            logger.warning(
                f"[RateLimiter] {self.name} rejected {client_key} "
                f"({entry.count}/{self.limit}, retry in {retry_after}s)"
            )
            return RateLimitDecision(
                allowed=False,
                limit=self.limit,
                remaining=0,
                reset_at_ms=entry.window_reset_at_ms,
                retry_after_seconds=retry_after,
            )

        return RateLimitDecision(
            allowed=True,
            limit=self.limit,
            remaining=self.limit - entry.count,
            reset_at_ms=entry.window_reset_at_ms,
        )

    def check_request(self, request: Request) -> RateLimitDecision:
        return self.check(self.key_generator(request))

    def enforce(self, request: Request) -> RateLimitDecision:
        """Check a request and raise RateLimitExceeded when rejected."""
        decision = self.check_request(request)
        if not decision.allowed:
            raise RateLimitExceeded(decision, self.message)
        return decision


def rate_limit_response(decision: RateLimitDecision, message: str) -> JSONResponse:
    """Render a rejection as the 429 payload with retry headers."""
    return JSONResponse(
        status_code=429,
        content={
            "success": False,
            "error": message,
            "limit": decision.limit,
            "remaining": 0,
            "reset": decision.reset_iso,
            "retryAfter": decision.retry_after_seconds,
        },
        headers=decision.headers(),
    )


def rate_limited(name: str) -> Callable[[Request], None]:
    """
    Build a route dependency enforcing the limiter registered as `name`.

    Limiters live on `app.state.services.rate_limiters`, created by the
    app lifespan.
    """

    def dependency(request: Request) -> None:
        limiter = request.app.state.services.rate_limiters[name]
        limiter.enforce(request)

    dependency.__name__ = f"rate_limit_{name}"
    return dependency
