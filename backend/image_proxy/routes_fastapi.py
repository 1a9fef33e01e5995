"""
Image Proxy API Routes

Provides endpoints for:
- Proxying external images (bypasses CORS and hot-link protection)
"""

import logging
from typing import Optional

import httpx
from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import Response, JSONResponse

from core.errors import ValidationError
from rate_limit import rate_limited
from .proxy import CACHE_CONTROL

logger = logging.getLogger(__name__)

# ============================================
# Router
# ============================================

router = APIRouter(prefix="/api", tags=["Image Proxy"])


# ============================================
# Endpoints
# ============================================

@router.get("/proxy", dependencies=[Depends(rate_limited("proxy"))])
async def proxy_image(
    request: Request,
    url: Optional[str] = Query(None, description="URL of the image to proxy"),
):
    """
    Proxy an external image.

    Upstream non-success statuses are forwarded as-is; bodies over the
    upload size cap answer 413; network failures answer 500.

    Example:
        GET /api/proxy?url=https://example.com/image.jpg
    """
    if not url:
        raise ValidationError("URL parameter is required")

    proxy = request.app.state.services.proxy
    try:
        image = await proxy.fetch(url)
    except httpx.InvalidURL as e:
        raise ValidationError("Invalid URL", str(e)) from e
    except httpx.RequestError as e:
        logger.error(f"[ImageProxy] Fetch error: {e}")
        return JSONResponse(
            status_code=500,
            content={"success": False, "message": "Failed to proxy image", "error": str(e)},
        )

    return Response(
        content=image.data,
        media_type=image.content_type,
        headers={
            "Cache-Control": CACHE_CONTROL,
            "Access-Control-Allow-Origin": "*",
        },
    )
