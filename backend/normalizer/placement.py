"""
Canonical Canvas Placement

Maps a source of any size onto the 1500x1500 white canvas:

- White background: scale the longer side to 900 (300px margin) and center
- Square:           stretch to the full canvas
- Landscape:        full width, height scaled, centered vertically
- Portrait:         full height, width scaled, centered horizontally

The same `classify_and_place` renders both loaded sources and
failure placeholders.
"""

from PIL import Image

from .models import CANVAS_SIZE, WHITE_BACKGROUND_PADDING, Placement, PlacementStrategy


def compute_placement(
    width: int,
    height: int,
    white_background: bool,
    canvas_size: int = CANVAS_SIZE,
    padding: int = WHITE_BACKGROUND_PADDING,
) -> Placement:
    if width <= 0 or height <= 0:
        raise ValueError(f"Invalid source dimensions: {width}x{height}")

    if white_background:
        object_size = max(width, height)
        max_size = canvas_size - padding * 2
        scale = max_size / object_size
        new_width = width * scale
        new_height = height * scale
        return Placement(
            x=(canvas_size - new_width) / 2,
            y=(canvas_size - new_height) / 2,
            width=new_width,
            height=new_height,
            strategy=PlacementStrategy.PADDED,
        )

    if width == height:
        return Placement(0, 0, canvas_size, canvas_size, PlacementStrategy.SQUARE)

    if width > height:
        new_height = height * canvas_size / width
        return Placement(
            x=0,
            y=(canvas_size - new_height) / 2,
            width=canvas_size,
            height=new_height,
            strategy=PlacementStrategy.LANDSCAPE,
        )

    new_width = width * canvas_size / height
    return Placement(
        x=(canvas_size - new_width) / 2,
        y=0,
        width=new_width,
        height=canvas_size,
        strategy=PlacementStrategy.PORTRAIT,
    )


def classify_and_place(
    source: Image.Image,
    white_background: bool,
    canvas_size: int = CANVAS_SIZE,
) -> tuple[Image.Image, Placement]:
    """
    Render `source` onto a freshly allocated white canvas.

    Returns:
        Tuple of (canvas, placement)
    """
    width, height = source.size
    placement = compute_placement(width, height, white_background, canvas_size)

    canvas = Image.new("RGB", (canvas_size, canvas_size), (255, 255, 255))

    target_size = (max(1, round(placement.width)), max(1, round(placement.height)))
    resized = source.convert("RGBA").resize(target_size, Image.Resampling.LANCZOS)
    # Alpha composites over the white fill
    canvas.paste(resized, (round(placement.x), round(placement.y)), resized)

    return canvas, placement
