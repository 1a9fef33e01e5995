"""
Placeholder Synthesis

Draws an 800x1000 "image not available" card for a source that could not
be loaded: light-gray fill, border, a mountain-and-sun glyph, then the
message, filename, reason and (truncated) URL at fixed offsets below the
glyph. Never fails.
"""

from PIL import Image, ImageDraw, ImageFont

from .models import PlaceholderSpec

PLACEHOLDER_WIDTH = 800
PLACEHOLDER_HEIGHT = 1000

FILL_COLOR = "#f5f5f5"
BORDER_COLOR = "#dddddd"
ICON_COLOR = "#aaaaaa"
TEXT_COLOR = "#666666"

ICON_SIZE = 100
MESSAGE = "Image Not Available"
MAX_URL_CHARS = 60


def truncate_url(url: str, limit: int = MAX_URL_CHARS) -> str:
    if len(url) > limit:
        return url[: limit - 3] + "..."
    return url


def _font(size: int) -> ImageFont.ImageFont:
    return ImageFont.load_default(size=size)


def render_placeholder(spec: PlaceholderSpec) -> Image.Image:
    image = Image.new("RGB", (PLACEHOLDER_WIDTH, PLACEHOLDER_HEIGHT), FILL_COLOR)
    draw = ImageDraw.Draw(image)

    draw.rectangle(
        [(0, 0), (PLACEHOLDER_WIDTH - 1, PLACEHOLDER_HEIGHT - 1)],
        outline=BORDER_COLOR,
        width=2,
    )

    # Glyph
    x = (PLACEHOLDER_WIDTH - ICON_SIZE) / 2
    y = (PLACEHOLDER_HEIGHT - ICON_SIZE) / 2 - 50
    draw.polygon(
        [
            (x, y + ICON_SIZE),
            (x + ICON_SIZE * 0.3, y + ICON_SIZE * 0.5),
            (x + ICON_SIZE * 0.5, y + ICON_SIZE * 0.7),
            (x + ICON_SIZE * 0.7, y + ICON_SIZE * 0.3),
            (x + ICON_SIZE, y + ICON_SIZE),
        ],
        fill=ICON_COLOR,
    )
    sun_x, sun_y, sun_r = x + ICON_SIZE * 0.8, y + ICON_SIZE * 0.2, ICON_SIZE * 0.1
    draw.ellipse([(sun_x - sun_r, sun_y - sun_r), (sun_x + sun_r, sun_y + sun_r)], fill=ICON_COLOR)

    # Text, centered on x at fixed baselines below the glyph
    center = PLACEHOLDER_WIDTH / 2
    lines = [
        (MESSAGE, 16, 40),
        (spec.filename, 14, 70),
        (spec.reason_text, 12, 100),
        (truncate_url(spec.source_url), 10, 130),
    ]
    for text, size, offset in lines:
        font = _font(size)
        # Top-left anchor works for bitmap and FreeType fonts alike
        left = center - draw.textlength(text, font=font) / 2
        draw.text((left, y + ICON_SIZE + offset - size), text, fill=TEXT_COLOR, font=font)

    return image
