"""Parsing of base64 `data:` URLs carrying raster images."""

import base64
import binascii
import re
from dataclasses import dataclass

from .errors import ValidationError

DATA_URL_RE = re.compile(r"^data:([A-Za-z0-9\-+/.]+);base64,(.+)$", re.DOTALL)

# Only these types are stored; the suffix decides how the file is served back
IMAGE_EXTENSIONS = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/gif": "gif",
    "image/webp": "webp",
}


@dataclass(frozen=True)
class DataUrl:
    mime_type: str
    data: bytes

    @property
    def extension(self) -> str:
        return IMAGE_EXTENSIONS[self.mime_type]


def parse_data_url(value: str) -> DataUrl:
    """
    Decode `data:image/<type>;base64,<payload>`.

    Raises:
        ValidationError: not a base64 data URL, not a supported image
            type, or payload is not base64
    """
    match = DATA_URL_RE.match(value.strip())
    if not match:
        raise ValidationError("Invalid data URL format")
    mime_type = match.group(1).lower()
    if mime_type not in IMAGE_EXTENSIONS:
        raise ValidationError("Invalid data URL format", f"Unsupported image type: {mime_type}")
    try:
        data = base64.b64decode(match.group(2), validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValidationError("Invalid data URL format", str(e)) from e
    return DataUrl(mime_type=mime_type, data=data)
