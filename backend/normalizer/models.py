"""
Normalizer Models

Data shapes flowing through the normalization pipeline.
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional

CANVAS_SIZE = 1500
WHITE_BACKGROUND_PADDING = 300
PNG_CONTENT_TYPE = "image/png"


# ============================================
# Enums
# ============================================

class SizeClass(str, Enum):
    """Coarse size bucket derived from pixel area"""
    SMALL = "small"        # area < 90 000 (under 300x300)
    MEDIUM = "medium"      # area < 360 000 (under 600x600)
    LARGE = "large"
    UNKNOWN = "unknown"

    @classmethod
    def from_dimensions(cls, width: Optional[int], height: Optional[int]) -> "SizeClass":
        if not width or not height:
            return cls.UNKNOWN
        area = width * height
        if area < 90_000:
            return cls.SMALL
        if area < 360_000:
            return cls.MEDIUM
        return cls.LARGE


class PlacementStrategy(str, Enum):
    """How a source is mapped onto the canonical canvas"""
    PADDED = "padded"          # white background, 300px margin
    SQUARE = "square"          # stretched to the full canvas
    LANDSCAPE = "landscape"    # full width, centered vertically
    PORTRAIT = "portrait"      # full height, centered horizontally


# ============================================
# Models
# ============================================

def filename_from_url(url: str, default: str = "image") -> str:
    """Last path segment of a URL, without its query string."""
    name = url.split("/")[-1].split("?")[0]
    return name or default


@dataclass(frozen=True)
class SourceImageRef:
    """
    A discovered source image.

    Width and height are filled in once, by probing; use `with_dimensions`
    to get the probed copy.
    """
    url: str
    filename: str
    width: Optional[int] = None
    height: Optional[int] = None

    @property
    def size_class(self) -> SizeClass:
        return SizeClass.from_dimensions(self.width, self.height)

    def with_dimensions(self, width: int, height: int) -> "SourceImageRef":
        if self.width is not None or self.height is not None:
            raise ValueError(f"Dimensions already probed for {self.url}")
        return replace(self, width=width, height=height)

    def to_dict(self) -> dict:
        return {
            "url": self.url,
            "filename": self.filename,
            "width": self.width,
            "height": self.height,
            "sizeClass": self.size_class.value,
        }


@dataclass(frozen=True)
class Placement:
    """Destination rectangle of the source on the canvas."""
    x: float
    y: float
    width: float
    height: float
    strategy: PlacementStrategy


@dataclass(frozen=True)
class NormalizedRaster:
    """A canonical 1500x1500 PNG produced by one normalization attempt."""
    data: bytes
    source_url: str
    placement: Placement
    white_background: bool
    is_placeholder: bool = False
    width: int = CANVAS_SIZE
    height: int = CANVAS_SIZE
    content_type: str = PNG_CONTENT_TYPE

    @property
    def extension(self) -> str:
        return "png"


@dataclass(frozen=True)
class PlaceholderSpec:
    """What the placeholder raster should say about a failed source."""
    source_url: str
    filename: str
    reason_text: str = "CORS Protection or Access Restricted"

    @classmethod
    def for_url(cls, source_url: str, reason_text: Optional[str] = None) -> "PlaceholderSpec":
        if reason_text is None:
            return cls(source_url=source_url, filename=filename_from_url(source_url))
        return cls(
            source_url=source_url,
            filename=filename_from_url(source_url),
            reason_text=reason_text,
        )
