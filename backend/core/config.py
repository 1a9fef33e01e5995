"""
Application Configuration

All settings come from environment variables, read once when the app is
created. Rate limiter rules can be overridden per limiter with
RATE_LIMIT_<NAME>_LIMIT and RATE_LIMIT_<NAME>_WINDOW_MS.
"""

import os
import logging
from dataclasses import dataclass, field
from typing import Dict, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitRule:
    """Fixed-window rule for one limiter."""
    limit: int
    window_ms: int
    message: str = "Too many requests, please try again later."


# Default limiter table, keyed by limiter name
DEFAULT_RATE_LIMITS: Dict[str, RateLimitRule] = {
    "global": RateLimitRule(1000, 60_000, "Too many requests to the API. Please try again later."),
    "images": RateLimitRule(300, 60_000, "Too many image upload requests. Please try again later."),
    "cleanup": RateLimitRule(5, 60_000, "Too many cleanup requests. Please try again later."),
    "healthcheck": RateLimitRule(30, 60_000, "Too many healthcheck requests. Please try again later."),
    "proxy": RateLimitRule(600, 60_000, "Too many proxy requests. Please try again later."),
    "serve_image": RateLimitRule(600, 60_000, "Too many image requests. Please try again later."),
    "scrape": RateLimitRule(30, 60_000, "Too many scrape requests. Please try again later."),
}


def _env_int(name: str, default: int, env: Optional[Dict[str, str]] = None) -> int:
    env = os.environ if env is None else env
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"[Config] Invalid integer for {name}={raw!r}, using {default}")
        return default


@dataclass
class AppConfig:
    """Runtime settings for the normalization service."""
    # Storage
    upload_dir: str = "./public/uploads"
    public_prefix: str = "/uploads"
    keep_file: str = ".gitkeep"
    max_upload_size_mb: int = 20

    # Sweeps
    cleanup_api_key: str = "change-this-to-a-secure-key"
    upload_max_age_minutes: int = 60
    sweep_interval_minutes: int = 60
    rate_limit_sweep_interval_seconds: int = 300

    # Network
    image_load_timeout_seconds: float = 15.0
    proxy_timeout_seconds: float = 30.0
    max_batch_images: int = 50

    log_level: str = "INFO"

    rate_limits: Dict[str, RateLimitRule] = field(
        default_factory=lambda: dict(DEFAULT_RATE_LIMITS)
    )

    @property
    def upload_max_age_ms(self) -> int:
        return self.upload_max_age_minutes * 60 * 1000

    @property
    def max_upload_size_bytes(self) -> int:
        return self.max_upload_size_mb * 1024 * 1024

    def rule(self, name: str) -> RateLimitRule:
        return self.rate_limits.get(name) or DEFAULT_RATE_LIMITS[name]

    @classmethod
    def from_env(cls, env: Optional[Dict[str, str]] = None) -> "AppConfig":
        """Build settings from environment variables."""
        env = dict(os.environ) if env is None else env

        rate_limits = {}
        for name, rule in DEFAULT_RATE_LIMITS.items():
            prefix = f"RATE_LIMIT_{name.upper()}"
            rate_limits[name] = RateLimitRule(
                limit=_env_int(f"{prefix}_LIMIT", rule.limit, env),
                window_ms=_env_int(f"{prefix}_WINDOW_MS", rule.window_ms, env),
                message=rule.message,
            )

        return cls(
            upload_dir=env.get("UPLOAD_DIR", "./public/uploads"),
            public_prefix=env.get("UPLOAD_PUBLIC_PREFIX", "/uploads"),
            max_upload_size_mb=_env_int("MAX_UPLOAD_SIZE_MB", 20, env),
            cleanup_api_key=env.get("CLEANUP_API_KEY", "change-this-to-a-secure-key"),
            upload_max_age_minutes=_env_int("UPLOAD_MAX_AGE_MINUTES", 60, env),
            sweep_interval_minutes=_env_int("SWEEP_INTERVAL_MINUTES", 60, env),
            rate_limit_sweep_interval_seconds=_env_int("RATE_LIMIT_SWEEP_INTERVAL_SECONDS", 300, env),
            image_load_timeout_seconds=float(_env_int("IMAGE_LOAD_TIMEOUT_SECONDS", 15, env)),
            proxy_timeout_seconds=float(_env_int("PROXY_TIMEOUT_SECONDS", 30, env)),
            max_batch_images=_env_int("MAX_BATCH_IMAGES", 50, env),
            log_level=env.get("LOG_LEVEL", "INFO"),
            rate_limits=rate_limits,
        )
