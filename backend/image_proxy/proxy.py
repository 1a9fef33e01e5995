"""
Image Fetch Proxy Core Logic

Fetches remote images with browser-shaped headers so that hosts with
hot-link protection serve the bytes, and reports upstream failures with
their original status.
"""

import logging
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlparse

import httpx

from core.errors import PayloadTooLarge, UpstreamError, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"
CACHE_CONTROL = "public, max-age=86400"  # Browser cache 24h

# Complete browser-like headers to bypass anti-hotlinking
BROWSER_HEADERS = {
    "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Accept": "image/avif,image/webp,image/apng,image/svg+xml,image/*,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
    "Sec-Fetch-Dest": "image",
    "Sec-Fetch-Mode": "no-cors",
    "Sec-Fetch-Site": "cross-site",
}


@dataclass
class ProxiedImage:
    """Bytes fetched from a remote image URL."""
    url: str
    data: bytes
    content_type: str

    @property
    def size(self) -> int:
        return len(self.data)


def origin_of(url: str) -> str:
    parsed = urlparse(url)
    return f"{parsed.scheme}://{parsed.netloc}"


class ImageFetchProxy:
    """
    Fetches remote images on behalf of the normalizer and the /proxy route.

    Usage:
        proxy = ImageFetchProxy(max_bytes=20 * 1024 * 1024)
        image = await proxy.fetch("https://example.com/photo.jpg")
        await proxy.close()
    """

    def __init__(
        self,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
        max_bytes: Optional[int] = None,
    ):
        """
        Args:
            timeout: httpx timeout for the default client
            client: Pre-built client (shared transport, tests)
            max_bytes: Largest body accepted from upstream; None disables the cap
        """
        self.timeout = timeout
        self.max_bytes = max_bytes
        self.http_client = client or httpx.AsyncClient(
            timeout=timeout,
            follow_redirects=True,
            headers=BROWSER_HEADERS,
        )

    async def close(self) -> None:
        """Close HTTP client."""
        await self.http_client.aclose()

    @staticmethod
    def validate_url(url: str) -> None:
        try:
            parsed = urlparse(url)
        except ValueError as e:
            raise ValidationError("Invalid URL", str(e)) from e
        if parsed.scheme not in ("http", "https"):
            raise ValidationError("Invalid URL", f"Unsupported URL scheme: {parsed.scheme or 'none'}")
        if not parsed.netloc:
            raise ValidationError("Invalid URL", "URL has no host")

    @staticmethod
    def request_headers(url: str) -> dict:
        """Per-request headers; Referer is the target's own origin."""
        return {**BROWSER_HEADERS, "Referer": origin_of(url)}

    def _check_size(self, size: int, url: str) -> None:
        if self.max_bytes is not None and size > self.max_bytes:
            logger.error(f"[ImageProxy] Body over {self.max_bytes} bytes: {url[:60]}...")
            raise PayloadTooLarge("Remote image too large", f"max {self.max_bytes} bytes")

    async def fetch(self, url: str) -> ProxiedImage:
        """
        Fetch a remote resource.

        The body is read in chunks and abandoned as soon as it passes
        `max_bytes`.

        Raises:
            ValidationError: URL is not an absolute http(s) URL
            UpstreamError: Upstream answered with a non-success status
            PayloadTooLarge: Body is larger than `max_bytes`
            httpx.RequestError: Network failure or timeout
        """
        self.validate_url(url)

        logger.info(f"[ImageProxy] Fetching: {url[:80]}...")
        async with self.http_client.stream("GET", url, headers=self.request_headers(url)) as response:
            if not response.is_success:
                logger.error(f"[ImageProxy] HTTP error {response.status_code}: {url[:60]}...")
                raise UpstreamError(response.status_code, response.reason_phrase, url)

            declared = response.headers.get("content-length")
            if declared and declared.isdigit():
                self._check_size(int(declared), url)

            content_type = response.headers.get("content-type") or DEFAULT_CONTENT_TYPE
            chunks = []
            received = 0
            async for chunk in response.aiter_bytes():
                received += len(chunk)
                self._check_size(received, url)
                chunks.append(chunk)

        data = b"".join(chunks)
        logger.info(f"[ImageProxy] Proxied: {url[:60]}... ({len(data)} bytes)")
        return ProxiedImage(url=url, data=data, content_type=content_type)
