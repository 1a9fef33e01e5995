"""
Image Normalizer Core Logic

Handles:
- Loading a source through the image proxy (bounded by a load timeout)
- Classifying its background
- Placing it on the canonical 1500x1500 canvas and encoding PNG
- Falling back to a placeholder when the source cannot be loaded

`normalize()` never raises for an unusable source: a failed load still
yields a canonical raster, so batches keep going.
"""

import asyncio
import logging
from io import BytesIO
from typing import AsyncIterator, List, Optional

import httpx
from PIL import Image, ImageOps

from core.data_url import parse_data_url
from core.errors import DecodeError, ImageLoadError, LoadTimeout, ServiceError
from image_proxy.proxy import ImageFetchProxy
from .background import has_white_background
from .models import NormalizedRaster, PlaceholderSpec, SourceImageRef
from .placeholder import render_placeholder
from .placement import classify_and_place

logger = logging.getLogger(__name__)

DEFAULT_LOAD_TIMEOUT = 15.0
CORRUPT_IMAGE_REASON = "Unsupported or Corrupt Image"


def decode_image(data: bytes, max_bytes: Optional[int] = None) -> Image.Image:
    """
    Decode raw bytes into a fully loaded PIL image.

    Raises:
        DecodeError: Not a decodable raster image, or over the size cap
    """
    if not data:
        raise DecodeError("Empty image payload")
    if max_bytes is not None and len(data) > max_bytes:
        raise DecodeError(f"Image too large ({len(data)} bytes)")
    try:
        image = Image.open(BytesIO(data))
        image.load()
        # Match browser rendering of EXIF-rotated photos
        return ImageOps.exif_transpose(image)
    except (OSError, ValueError, Image.DecompressionBombError) as e:
        raise DecodeError(str(e)) from e


def encode_png(image: Image.Image) -> bytes:
    output = BytesIO()
    image.save(output, format="PNG")
    return output.getvalue()


class Normalizer:
    """
    Turns source image URLs into canonical rasters.

    Usage:
        normalizer = Normalizer(ImageFetchProxy())
        raster = await normalizer.normalize("https://example.com/photo.jpg")
    """

    def __init__(
        self,
        proxy: ImageFetchProxy,
        load_timeout: float = DEFAULT_LOAD_TIMEOUT,
        max_source_bytes: Optional[int] = None,
    ):
        self.proxy = proxy
        self.load_timeout = load_timeout
        self.max_source_bytes = max_source_bytes

    # ============================================
    # Loading
    # ============================================

    async def _fetch_bytes(self, url: str) -> bytes:
        if url.startswith("data:"):
            return parse_data_url(url).data
        image = await self.proxy.fetch(url)
        return image.data

    async def _load(self, url: str) -> Image.Image:
        try:
            data = await self._fetch_bytes(url)
        except (ServiceError, httpx.HTTPError, httpx.InvalidURL, ValueError) as e:
            raise DecodeError(str(e)) from e
        return await asyncio.to_thread(decode_image, data, self.max_source_bytes)

    async def load_image(self, url: str) -> Image.Image:
        """
        Load and decode a source image.

        Raises:
            LoadTimeout: Not loaded within the load timeout
            DecodeError: Fetch failed or bytes are not an image
        """
        try:
            return await asyncio.wait_for(self._load(url), timeout=self.load_timeout)
        except asyncio.TimeoutError as e:
            raise LoadTimeout(f"Timeout loading image after {self.load_timeout}s") from e

    # ============================================
    # Rendering
    # ============================================

    @staticmethod
    def render_source(image: Image.Image, source_url: str) -> NormalizedRaster:
        """Classify the background and place `image` on a new canvas."""
        white_background = has_white_background(image)
        canvas, placement = classify_and_place(image, white_background)
        logger.info(
            f"[Normalizer] {image.width}x{image.height} "
            f"({'white background' if white_background else 'no white background'}) "
            f"-> {placement.strategy.value} {placement.width:.0f}x{placement.height:.0f} "
            f"at ({placement.x:.0f}, {placement.y:.0f})"
        )
        return NormalizedRaster(
            data=encode_png(canvas),
            source_url=source_url,
            placement=placement,
            white_background=white_background,
        )

    @staticmethod
    def render_placeholder(spec: PlaceholderSpec) -> NormalizedRaster:
        """
        Render the placeholder card and place it like a non-white portrait.

        The card's light-gray fill would classify as white, so
        classification is skipped.
        """
        card = render_placeholder(spec)
        canvas, placement = classify_and_place(card, white_background=False)
        return NormalizedRaster(
            data=encode_png(canvas),
            source_url=spec.source_url,
            placement=placement,
            white_background=False,
            is_placeholder=True,
        )

    # ============================================
    # Public API
    # ============================================

    async def _placeholder(self, spec: PlaceholderSpec) -> NormalizedRaster:
        return await asyncio.to_thread(self.render_placeholder, spec)

    async def _render(self, image: Image.Image, source_url: str, spec: PlaceholderSpec) -> NormalizedRaster:
        try:
            return await asyncio.to_thread(self.render_source, image, source_url)
        except (OSError, ValueError) as e:
            # Decoded headers can still hide a truncated or unsupported pixel stream
            logger.warning(f"[Normalizer] Render failed for {source_url[:60]}...: {e}; using placeholder")
            return await self._placeholder(spec)

    async def normalize(self, source_url: str) -> NormalizedRaster:
        """Normalize one source URL; unusable sources yield a placeholder."""
        try:
            image = await self.load_image(source_url)
        except ImageLoadError as e:
            logger.warning(f"[Normalizer] Load failed for {source_url[:60]}...: {e}; using placeholder")
            return await self._placeholder(PlaceholderSpec.for_url(source_url, e.reason_text))

        return await self._render(image, source_url, PlaceholderSpec.for_url(source_url, CORRUPT_IMAGE_REASON))

    async def normalize_bytes(self, data: bytes, name: str) -> NormalizedRaster:
        """Normalize an uploaded file; undecodable bytes yield a placeholder naming it."""
        spec = PlaceholderSpec(source_url=name, filename=name, reason_text=CORRUPT_IMAGE_REASON)
        try:
            image = await asyncio.to_thread(decode_image, data, self.max_source_bytes)
        except DecodeError as e:
            logger.warning(f"[Normalizer] Could not decode upload {name}: {e}; using placeholder")
            return await self._placeholder(spec)

        return await self._render(image, name, spec)

    async def normalize_batch(self, urls: List[str]) -> AsyncIterator[NormalizedRaster]:
        """
        Normalize URLs one after another, yielding each raster in order.

        The caller handles (e.g. persists) each raster before the next
        source is loaded, so at most one canvas is alive at a time.
        """
        placeholders = 0
        for index, url in enumerate(urls):
            logger.info(f"[Normalizer] Processing image {index + 1}/{len(urls)}: {url[:60]}...")
            raster = await self.normalize(url)
            if raster.is_placeholder:
                placeholders += 1
            yield raster
        logger.info(f"[Normalizer] Batch complete: {len(urls)} rasters, {placeholders} placeholders")

    async def probe(self, ref: SourceImageRef) -> SourceImageRef:
        """Fill in width/height of a discovered image; unknown if it cannot load."""
        try:
            image = await self.load_image(ref.url)
        except ImageLoadError as e:
            logger.debug(f"[Normalizer] Probe failed for {ref.url[:60]}...: {e}")
            return ref
        return ref.with_dimensions(image.width, image.height)
