"""
Storage Gateway

Flat-directory storage for normalized images.

Directory structure:
upload_dir/
├── .gitkeep
├── 3f9c...e1.png      (random 32-hex-char names)
└── ...

Each saved file is reachable through two equivalent URLs:
- /uploads/<name>                 (static files)
- /api/serve-image?file=<name>    (API route)
"""

import logging
import os
import secrets
from dataclasses import dataclass
from pathlib import Path
from typing import Tuple
from urllib.parse import quote

from core.errors import NotFoundError, StorageError, ValidationError

logger = logging.getLogger(__name__)

SERVE_IMAGE_PATH = "/api/serve-image"

CONTENT_TYPES = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".webp": "image/webp",
}
DEFAULT_CONTENT_TYPE = "application/octet-stream"


def content_type_for(filename: str) -> str:
    """Content type from the file extension."""
    return CONTENT_TYPES.get(Path(filename).suffix.lower(), DEFAULT_CONTENT_TYPE)


@dataclass(frozen=True)
class StoredImage:
    """A file persisted by the gateway."""
    filename: str
    path: Path
    url: str
    api_url: str
    size_bytes: int


class StorageGateway:
    """
    Persists encoded images under random names and serves them back.

    Usage:
        gateway = StorageGateway("./public/uploads")
        stored = gateway.save(png_bytes, "png")
    """

    def __init__(
        self,
        upload_dir: str | Path,
        public_prefix: str = "/uploads",
        keep_file: str = ".gitkeep",
    ):
        self.upload_dir = Path(upload_dir)
        self.public_prefix = public_prefix.rstrip("/")
        self.keep_file = keep_file

    def ensure_dir(self) -> Path:
        """Create the upload directory if needed."""
        try:
            if not self.upload_dir.exists():
                self.upload_dir.mkdir(parents=True, exist_ok=True)
                logger.info(f"[Storage] Created uploads directory at: {self.upload_dir}")
        except OSError as e:
            logger.error(f"[Storage] Error creating uploads directory: {e}")
            raise StorageError("Failed to prepare uploads directory", str(e)) from e
        return self.upload_dir

    @staticmethod
    def _generate_filename(extension: str) -> str:
        ext = extension.lstrip(".").lower() or "png"
        return f"{secrets.token_hex(16)}.{ext}"

    def urls_for(self, filename: str) -> Tuple[str, str]:
        return (
            f"{self.public_prefix}/{filename}",
            f"{SERVE_IMAGE_PATH}?file={quote(filename)}",
        )

    def save(self, data: bytes, extension: str = "png") -> StoredImage:
        """
        Write `data` under a fresh random name.

        The bytes land in a temporary sibling first and are moved into place
        with os.replace, so a returned URL never points at a partial file.

        Raises:
            StorageError: Directory or write failure
        """
        self.ensure_dir()
        filename = self._generate_filename(extension)
        path = self.upload_dir / filename
        tmp_path = self.upload_dir / f".{filename}.tmp"

        try:
            with open(tmp_path, "wb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, path)
        except OSError as e:
            logger.error(f"[Storage] Error writing file {path}: {e}")
            try:
                tmp_path.unlink(missing_ok=True)
            except OSError:
                logger.warning(f"[Storage] Could not remove temp file {tmp_path}")
            raise StorageError("Failed to save image", str(e)) from e

        url, api_url = self.urls_for(filename)
        logger.info(f"[Storage] Saved {filename} ({len(data)} bytes)")
        return StoredImage(filename=filename, path=path, url=url, api_url=api_url, size_bytes=len(data))

    def save_raster(self, raster) -> StoredImage:
        """Persist a NormalizedRaster."""
        return self.save(raster.data, raster.extension)

    def resolve(self, filename: str) -> Path:
        """
        Map a client-supplied name to a path inside the upload directory.

        Raises:
            ValidationError: Empty name, path separators, or reserved names
        """
        if not filename:
            raise ValidationError("No filename provided")
        if (
            "/" in filename
            or "\\" in filename
            or filename in (".", "..")
            or filename.startswith(".")
            or filename == self.keep_file
        ):
            raise ValidationError("Invalid filename", filename)
        return self.upload_dir / filename

    def read(self, filename: str) -> Tuple[bytes, str]:
        """
        Read a stored file.

        Returns:
            Tuple of (data, content_type)

        Raises:
            ValidationError / NotFoundError / StorageError
        """
        path = self.resolve(filename)
        if not path.is_file():
            logger.error(f"[Storage] File not found: {path}")
            raise NotFoundError("File not found")
        try:
            data = path.read_bytes()
        except OSError as e:
            logger.error(f"[Storage] Error serving image {path}: {e}")
            raise StorageError("Failed to serve image", str(e)) from e
        return data, content_type_for(filename)

    def delete(self, filename: str) -> bool:
        """
        Delete a stored file.

        Returns:
            True if deleted, False if it did not exist
        """
        path = self.resolve(filename)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.error(f"[Storage] Error deleting {path}: {e}")
            raise StorageError("Failed to delete image", str(e)) from e
        logger.info(f"[Storage] Deleted {filename}")
        return True
