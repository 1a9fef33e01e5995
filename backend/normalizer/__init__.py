"""
Normalizer Module

Maps arbitrary source images onto the canonical 1500x1500 canvas.

Features:
- Multi-region white-background classification
- Orientation-aware placement (padded / square / landscape / portrait)
- Placeholder rendering for sources that fail to load
"""

from .models import (
    CANVAS_SIZE,
    NormalizedRaster,
    Placement,
    PlacementStrategy,
    PlaceholderSpec,
    SizeClass,
    SourceImageRef,
)
from .background import has_white_background, sample_background
from .placement import classify_and_place, compute_placement
from .normalizer import Normalizer, decode_image

__all__ = [
    "CANVAS_SIZE",
    "NormalizedRaster",
    "Placement",
    "PlacementStrategy",
    "PlaceholderSpec",
    "SizeClass",
    "SourceImageRef",
    "has_white_background",
    "sample_background",
    "classify_and_place",
    "compute_placement",
    "Normalizer",
    "decode_image",
]
