"""
White Background Classification

Samples five regions of the source (four edge strips plus the central
50% block), every 4th pixel within each, and counts pixels that are
near-white (all channels > 240) or mostly transparent (alpha < 50).
The image has a white background when the white ratio is strictly
above 0.85, high enough that photos with large light areas stay
non-white.
"""

import logging
from dataclasses import dataclass
from typing import List, Tuple

import numpy as np
from PIL import Image

logger = logging.getLogger(__name__)

WHITE_CHANNEL_MIN = 240
TRANSPARENT_ALPHA_MAX = 50
WHITE_RATIO_THRESHOLD = 0.85
PIXEL_STRIDE = 4

Region = Tuple[int, int, int, int]  # x, y, width, height


@dataclass(frozen=True)
class BackgroundSample:
    white_pixels: int
    total_pixels: int

    @property
    def ratio(self) -> float:
        if self.total_pixels == 0:
            return 0.0
        return self.white_pixels / self.total_pixels

    @property
    def is_white(self) -> bool:
        return is_white_ratio(self.ratio)


def is_white_ratio(ratio: float, threshold: float = WHITE_RATIO_THRESHOLD) -> bool:
    """The boundary is exclusive: exactly 0.85 is not white."""
    return ratio > threshold


def strip_size(width: int, height: int) -> int:
    """Edge strip thickness: 5% of the shorter side, at least 10px."""
    return max(10, int(min(width, height) * 0.05))


def sample_regions(width: int, height: int) -> List[Region]:
    s = strip_size(width, height)
    return [
        (0, 0, width, s),                                   # top
        (0, height - s, width, s),                          # bottom
        (0, s, s, height - 2 * s),                          # left
        (width - s, s, s, height - 2 * s),                  # right
        (int(width * 0.25), int(height * 0.25), int(width * 0.5), int(height * 0.5)),  # center
    ]


def sample_background(image: Image.Image) -> BackgroundSample:
    """Count white/transparent pixels over the sampled regions."""
    rgba = np.asarray(image.convert("RGBA"))
    height, width = rgba.shape[:2]

    white = 0
    total = 0
    for x, y, w, h in sample_regions(width, height):
        if w <= 0 or h <= 0:
            continue
        block = rgba[max(y, 0):y + h, max(x, 0):x + w]
        pixels = block.reshape(-1, 4)[::PIXEL_STRIDE]
        if pixels.size == 0:
            continue
        is_white = np.all(pixels[:, :3] > WHITE_CHANNEL_MIN, axis=1) | (pixels[:, 3] < TRANSPARENT_ALPHA_MAX)
        white += int(np.count_nonzero(is_white))
        total += len(pixels)

    return BackgroundSample(white_pixels=white, total_pixels=total)


def has_white_background(image: Image.Image) -> bool:
    sample = sample_background(image)
    logger.debug(
        f"[Normalizer] Background detection: {sample.white_pixels}/{sample.total_pixels} "
        f"white pixels ({sample.ratio * 100:.2f}%)"
    )
    return sample.is_white
