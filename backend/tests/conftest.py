"""
Test configuration

Shared fixtures and helpers:
- Fake clocks for the rate limiter and sweeper
- In-memory PNG/JPEG payloads built with Pillow
- httpx.MockTransport backed app factory (no network access)
"""

import base64
import sys
from io import BytesIO
from pathlib import Path
from typing import Callable, Dict, Optional, Tuple

import httpx
import pytest
from PIL import Image

# Make the backend packages importable without installation
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

from core.config import AppConfig, RateLimitRule, DEFAULT_RATE_LIMITS  # noqa: E402
from core.services import build_services  # noqa: E402
from main import create_app  # noqa: E402


# ============================================
# Clocks
# ============================================

class FakeClock:
    """Manually advanced clock returning epoch milliseconds."""

    def __init__(self, start_ms: int = 1_700_000_000_000):
        self.now = start_ms

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@pytest.fixture
def clock():
    return FakeClock()


# ============================================
# Image payloads
# ============================================

def make_image_bytes(
    size: Tuple[int, int],
    color=(200, 30, 30),
    mode: str = "RGB",
    fmt: str = "PNG",
) -> bytes:
    image = Image.new(mode, size, color)
    output = BytesIO()
    image.save(output, format=fmt)
    return output.getvalue()


def make_data_url(data: bytes, mime: str = "image/png") -> str:
    return f"data:{mime};base64,{base64.b64encode(data).decode('ascii')}"


def open_png(data: bytes) -> Image.Image:
    image = Image.open(BytesIO(data))
    image.load()
    return image


# ============================================
# App fixtures
# ============================================

Routes = Dict[str, Tuple[int, bytes, Dict[str, str]]]


def mock_transport(routes: Routes) -> httpx.MockTransport:
    """
    Serve canned responses keyed by full URL; anything else is a 404.
    """

    def handler(request: httpx.Request) -> httpx.Response:
        key = str(request.url)
        if key not in routes:
            return httpx.Response(404, content=b"not found")
        status, body, headers = routes[key]
        return httpx.Response(status, content=body, headers=headers)

    return httpx.MockTransport(handler)


@pytest.fixture
def upload_dir(tmp_path) -> Path:
    path = tmp_path / "uploads"
    path.mkdir()
    (path / ".gitkeep").write_text("")
    return path


@pytest.fixture
def make_config(upload_dir) -> Callable[..., AppConfig]:
    def factory(rate_limits: Optional[Dict[str, RateLimitRule]] = None, **overrides) -> AppConfig:
        limits = dict(DEFAULT_RATE_LIMITS)
        limits.update(rate_limits or {})
        settings = dict(
            upload_dir=str(upload_dir),
            cleanup_api_key="test-key",
            sweep_interval_minutes=0,
            rate_limit_sweep_interval_seconds=0,
            image_load_timeout_seconds=2.0,
            rate_limits=limits,
        )
        settings.update(overrides)
        return AppConfig(**settings)

    return factory


@pytest.fixture
def make_app(make_config):
    """Build an app whose outbound HTTP is served by `routes`."""

    def factory(routes: Optional[Routes] = None, **config_overrides):
        config = make_config(**config_overrides)
        transport = mock_transport(routes or {})
        return create_app(config, services_factory=lambda cfg: build_services(cfg, transport=transport))

    return factory
