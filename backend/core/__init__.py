"""
Core Module

Configuration, error taxonomy and logging shared by every feature module.
"""

from .config import AppConfig, RateLimitRule, DEFAULT_RATE_LIMITS
from .errors import (
    ServiceError,
    ValidationError,
    AuthError,
    NotFoundError,
    StorageError,
    UpstreamError,
    PayloadTooLarge,
    RateLimitExceeded,
    ImageLoadError,
    LoadTimeout,
    DecodeError,
)
from .logging_setup import configure_logging

__all__ = [
    "AppConfig",
    "RateLimitRule",
    "DEFAULT_RATE_LIMITS",
    "ServiceError",
    "ValidationError",
    "AuthError",
    "NotFoundError",
    "StorageError",
    "UpstreamError",
    "PayloadTooLarge",
    "RateLimitExceeded",
    "ImageLoadError",
    "LoadTimeout",
    "DecodeError",
    "configure_logging",
]
