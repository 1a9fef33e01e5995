"""
Page Image Scraper

Fetches an HTML page and collects absolute image URLs from:
- <img src>, <img data-src> (lazy loading), <img srcset>
- style="background: url(...)" attributes
- <picture><source srcset>

Candidates are resolved against the page origin (or a caller override),
filtered to likely image URLs and deduplicated in discovery order.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional
from urllib.parse import urljoin, urlparse

import httpx
from bs4 import BeautifulSoup

from core.errors import UpstreamError, ValidationError
from normalizer.models import SourceImageRef, filename_from_url

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".gif", ".webp", ".bmp", ".tiff")
# Many CDNs serve images through extensionless URLs
IMAGE_KEYWORDS = ("image", "img", "photo", "picture", "asset")

BACKGROUND_URL_RE = re.compile(r"""url\(\s*['"]?([^'"()]+)['"]?\s*\)""", re.IGNORECASE)

DOCUMENT_HEADERS = {
    "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,image/apng,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
    "Sec-Fetch-Dest": "document",
    "Sec-Fetch-Mode": "navigate",
    "Sec-Fetch-Site": "none",
    "Sec-Fetch-User": "?1",
    "Upgrade-Insecure-Requests": "1",
}


@dataclass
class ScrapeResult:
    """Image URLs discovered on one page."""
    page_url: str
    base_url: str
    urls: List[str] = field(default_factory=list)
    logs: List[str] = field(default_factory=list)

    @property
    def images(self) -> List[SourceImageRef]:
        return [
            SourceImageRef(url=url, filename=filename_from_url(url, f"image-{index + 1}"))
            for index, url in enumerate(self.urls)
        ]


def srcset_urls(srcset: str) -> List[str]:
    """First token of every comma-separated srcset candidate."""
    urls = []
    for candidate in srcset.split(","):
        parts = candidate.strip().split()
        if parts:
            urls.append(parts[0])
    return urls


def looks_like_image(url: str) -> bool:
    path = urlparse(url).path.lower()
    if any(ext in path for ext in IMAGE_EXTENSIONS):
        return True
    return any(keyword in path for keyword in IMAGE_KEYWORDS)


def resolve_candidate(src: str, base_url: str, logs: Optional[List[str]] = None) -> Optional[str]:
    """
    Turn a raw attribute value into an absolute image URL, or None.

    data: URIs and SVGs are rejected before resolution.
    """
    logs = logs if logs is not None else []
    src = src.strip()
    if not src:
        return None

    if src.startswith("data:"):
        logs.append(f"Skipping data URL: {src[:30]}...")
        return None
    if src.lower().endswith(".svg"):
        logs.append(f"Skipping SVG: {src[:30]}...")
        return None

    try:
        full_url = urljoin(base_url, src)
    except ValueError as e:
        logs.append(f"Invalid URL combination: {base_url} + {src}, {e}")
        return None

    if full_url != src:
        logs.append(f"Converted relative URL: {src} -> {full_url}")

    if not looks_like_image(full_url):
        logs.append(f"Skipping URL without image extension or keyword: {full_url}")
        return None

    return full_url


def extract_image_urls(html: str, base_url: str, logs: Optional[List[str]] = None) -> List[str]:
    """
    Parse HTML and return deduplicated absolute image URLs in discovery order.
    """
    logs = logs if logs is not None else []
    soup = BeautifulSoup(html, "html.parser")
    found: List[str] = []

    def add(src: str) -> None:
        url = resolve_candidate(src, base_url, logs)
        if url is None:
            return
        if url in found:
            logs.append(f"Skipping duplicate URL: {url}")
            return
        found.append(url)
        logs.append(f"Added image URL: {url}")

    logs.append("Searching for <img> tags...")
    for img in soup.find_all("img"):
        if img.get("src"):
            add(img["src"])
        if img.get("data-src"):
            add(img["data-src"])
        if img.get("srcset"):
            for url in srcset_urls(img["srcset"]):
                add(url)

    logs.append("Searching for background images in style attributes...")
    for element in soup.find_all(style=re.compile("background", re.IGNORECASE)):
        for match in BACKGROUND_URL_RE.findall(element.get("style", "")):
            add(match)

    logs.append("Searching for <picture> elements...")
    for source in soup.select("picture source"):
        if source.get("srcset"):
            for url in srcset_urls(source["srcset"]):
                add(url)

    return found


class PageImageScraper:
    """
    Discovers image URLs on a web page.

    Usage:
        scraper = PageImageScraper()
        result = await scraper.scrape("https://example.com/gallery")
    """

    def __init__(self, timeout: float = 30.0, client: Optional[httpx.AsyncClient] = None):
        self.http_client = client or httpx.AsyncClient(
            timeout=timeout,
            follow_redirects=True,
            headers=DOCUMENT_HEADERS,
        )

    async def close(self) -> None:
        await self.http_client.aclose()

    async def scrape(self, page_url: str, base_url: Optional[str] = None) -> ScrapeResult:
        """
        Fetch `page_url` and extract its image URLs.

        Raises:
            ValidationError: page_url is not an absolute http(s) URL
            UpstreamError: Page fetch answered with a non-success status
            httpx.RequestError: Network failure or timeout
        """
        parsed = urlparse(page_url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValidationError("Invalid page URL", page_url)

        resolved_base = base_url or f"{parsed.scheme}://{parsed.netloc}"
        result = ScrapeResult(page_url=page_url, base_url=resolved_base)
        result.logs.append(f"Starting to fetch URL: {page_url}")
        result.logs.append(f"Using base URL: {resolved_base}")

        response = await self.http_client.get(page_url, headers=DOCUMENT_HEADERS)
        result.logs.append(f"Response status: {response.status_code} {response.reason_phrase}")
        if not response.is_success:
            logger.error(f"[Scraper] HTTP error {response.status_code}: {page_url[:60]}...")
            raise UpstreamError(response.status_code, response.reason_phrase, page_url)

        html = response.text
        result.logs.append(f"HTML content length: {len(html)} characters")

        result.urls = extract_image_urls(html, resolved_base, result.logs)
        result.logs.append(f"Found {len(result.urls)} unique images")
        logger.info(f"[Scraper] {page_url[:60]}... -> {len(result.urls)} images")
        return result
