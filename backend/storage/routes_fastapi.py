"""
Storage API Routes

Provides endpoints for:
- Saving images (data URL, uploaded files, image URLs, scraped pages)
- Serving stored images
- Deleting stored images
- Triggering the upload sweep
"""

import asyncio
import logging
import secrets
from typing import Any, Dict, List, Optional

import httpx
from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import Response

from core.data_url import parse_data_url
from core.errors import AuthError, DecodeError, ServiceError, StorageError, ValidationError
from normalizer import decode_image
from rate_limit import rate_limited
from .upload_requests import (
    DataUrlUpload,
    FormUpload,
    UnsupportedUpload,
    parse_upload_request,
)

logger = logging.getLogger(__name__)

CACHE_CONTROL = "public, max-age=86400"

# ============================================
# Router
# ============================================

router = APIRouter(prefix="/api", tags=["Storage"])


def _check_api_key(request: Request, key: Optional[str]) -> None:
    expected = request.app.state.services.config.cleanup_api_key
    # Byte comparison: compare_digest rejects non-ASCII str
    if not key or not secrets.compare_digest(key.encode("utf-8"), expected.encode("utf-8")):
        raise AuthError("Unauthorized")


# ============================================
# Upload handlers (one per request kind)
# ============================================

async def _handle_data_url(upload: DataUrlUpload, services) -> Dict[str, Any]:
    parsed = parse_data_url(upload.data_url)
    if len(parsed.data) > services.config.max_upload_size_bytes:
        raise ValidationError("Image too large", f"max {services.config.max_upload_size_mb}MB")
    try:
        await asyncio.to_thread(decode_image, parsed.data)
    except DecodeError as e:
        raise ValidationError("Invalid data URL format", f"Payload is not a decodable image: {e}") from e

    stored = await asyncio.to_thread(services.gateway.save, parsed.data, parsed.extension)
    return {
        "success": True,
        "message": "Image saved successfully",
        "url": stored.url,
        "apiUrl": stored.api_url,
    }


async def _persist(services, raster, entry: Dict[str, Any]) -> Dict[str, Any]:
    try:
        stored = await asyncio.to_thread(services.gateway.save_raster, raster)
    except StorageError as e:
        return {**entry, "processedUrl": None, "success": False, "message": e.detail or e.message}
    return {
        **entry,
        "processedUrl": stored.url,
        "apiUrl": stored.api_url,
        "success": True,
        "placeholder": raster.is_placeholder,
    }


async def _handle_form(upload: FormUpload, services) -> Dict[str, Any]:
    if upload.is_empty:
        raise ValidationError("No images provided")

    images: List[Dict[str, Any]] = []
    urls: List[str] = list(upload.image_urls)

    if upload.web_url:
        logger.info(f"[Storage] Processing images from web URL: {upload.web_url}")
        try:
            result = await services.scraper.scrape(upload.web_url)
        except (ServiceError, httpx.RequestError) as e:
            images.append({
                "originalUrl": upload.web_url,
                "processedUrl": None,
                "success": False,
                "message": f"Failed to fetch images from the URL: {e}",
            })
        else:
            if not result.urls:
                images.append({
                    "originalUrl": upload.web_url,
                    "processedUrl": None,
                    "success": False,
                    "message": "No images found on the page",
                })
            urls.extend(result.urls)

    # Dedupe, keep order, cap the batch
    urls = list(dict.fromkeys(urls))
    limit = services.config.max_batch_images
    if len(urls) > limit:
        logger.warning(f"[Storage] Batch of {len(urls)} URLs capped to {limit}")
        urls = urls[:limit]

    async for raster in services.normalizer.normalize_batch(urls):
        images.append(await _persist(services, raster, {"originalUrl": raster.source_url}))

    for upload_file in upload.files:
        raster = await services.normalizer.normalize_bytes(upload_file.data, upload_file.name)
        images.append(await _persist(services, raster, {"originalName": upload_file.name}))

    processed = sum(1 for image in images if image["success"])
    failed = len(images) - processed
    logger.info(f"[Storage] Completed processing. {processed} of {len(images)} images saved")

    return {
        "success": processed > 0,
        "message": f"Processed {processed} of {len(images)} images",
        "processed": processed,
        "failed": failed,
        "images": images,
    }


# ============================================
# Endpoints
# ============================================

@router.post("/images", dependencies=[Depends(rate_limited("images"))])
async def save_images(request: Request):
    """
    Save images from a data URL (JSON) or from form fields.

    Example:
        POST /api/images
        {"dataUrl": "data:image/png;base64,iVBORw0..."}
    """
    services = request.app.state.services
    upload = await parse_upload_request(request)

    if isinstance(upload, DataUrlUpload):
        return await _handle_data_url(upload, services)
    if isinstance(upload, FormUpload):
        return await _handle_form(upload, services)

    if not isinstance(upload, UnsupportedUpload):
        raise TypeError(f"Unhandled upload kind: {type(upload).__name__}")
    raise ValidationError(
        "Unsupported content type",
        f"Content type '{upload.content_type}' is not supported. "
        "Use 'application/json' or 'multipart/form-data'.",
    )


@router.delete("/images/{filename}", dependencies=[Depends(rate_limited("images"))])
async def delete_image(request: Request, filename: str, key: Optional[str] = Query(None)):
    """Delete a stored image (requires the cleanup key)."""
    _check_api_key(request, key)
    deleted = await asyncio.to_thread(request.app.state.services.gateway.delete, filename)
    return {
        "success": deleted,
        "message": f"Deleted {filename}" if deleted else f"File not found: {filename}",
    }


@router.get("/serve-image", dependencies=[Depends(rate_limited("serve_image"))])
async def serve_image(request: Request, file: Optional[str] = Query(None)):
    """
    Stream a stored image.

    Example:
        GET /api/serve-image?file=3f9c...e1.png
    """
    if not file:
        raise ValidationError("No filename provided")

    data, content_type = await asyncio.to_thread(request.app.state.services.gateway.read, file)
    return Response(
        content=data,
        media_type=content_type,
        headers={"Cache-Control": CACHE_CONTROL},
    )


@router.get("/cleanup", dependencies=[Depends(rate_limited("cleanup"))])
async def cleanup_uploads(
    request: Request,
    key: Optional[str] = Query(None),
    maxAge: Optional[str] = Query(None, description="Max age in minutes (default 60)"),
):
    """
    Delete uploads older than `maxAge` minutes.

    Example:
        GET /api/cleanup?key=<secret>&maxAge=30
    """
    _check_api_key(request, key)

    try:
        max_age_minutes = int(maxAge) if maxAge else 60
    except ValueError as e:
        raise ValidationError("Invalid maxAge", maxAge) from e
    if max_age_minutes < 0:
        raise ValidationError("Invalid maxAge", maxAge)

    result = await request.app.state.services.sweeper.sweep_async(max_age_minutes * 60 * 1000)
    return {
        "success": True,
        "message": f"Cleanup complete. Deleted {result.deleted} files, encountered {result.errors} errors.",
        **result.to_dict(),
    }
