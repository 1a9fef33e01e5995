"""
Scraper API Routes

Provides endpoints for:
- Discovering image URLs on a web page
"""

import logging
from typing import List, Optional

import httpx
from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from core.errors import ValidationError
from rate_limit import rate_limited

logger = logging.getLogger(__name__)


# ============================================
# Response Models
# ============================================

class ScrapedImage(BaseModel):
    url: str
    filename: str
    width: Optional[int] = None
    height: Optional[int] = None
    sizeClass: str


class ScrapeResponse(BaseModel):
    success: bool
    urls: List[str]
    images: List[ScrapedImage]
    logs: List[str]
    error: Optional[str] = None


# ============================================
# Router
# ============================================

router = APIRouter(prefix="/api", tags=["Scraper"])


@router.get("/scrape", response_model=ScrapeResponse, dependencies=[Depends(rate_limited("scrape"))])
async def scrape_page(
    request: Request,
    url: Optional[str] = Query(None, description="Page to scan for images"),
    baseUrl: Optional[str] = Query(None, description="Base URL for resolving relative paths"),
    probe: bool = Query(False, description="Load each image to report its dimensions and size class"),
):
    """
    Scan a page for image URLs.

    Example:
        GET /api/scrape?url=https://example.com/gallery&probe=true

    With probe=true every image is loaded, one after another.
    """
    if not url:
        raise ValidationError("URL parameter is required")

    scraper = request.app.state.services.scraper
    try:
        result = await scraper.scrape(url, baseUrl)
    except httpx.RequestError as e:
        logger.error(f"[Scraper] Fetch error: {e}")
        return JSONResponse(
            status_code=500,
            content={"success": False, "message": "Failed to fetch images from the URL", "error": str(e)},
        )

    refs = result.images
    if probe:
        normalizer = request.app.state.services.normalizer
        refs = [await normalizer.probe(ref) for ref in refs]

    images = [
        ScrapedImage(
            url=ref.url,
            filename=ref.filename,
            width=ref.width,
            height=ref.height,
            sizeClass=ref.size_class.value,
        )
        for ref in refs
    ]
    return ScrapeResponse(
        success=bool(result.urls),
        urls=result.urls,
        images=images,
        logs=result.logs,
        error=None if result.urls else "No images found on the page",
    )
