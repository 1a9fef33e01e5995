"""
Service Error Taxonomy

Every failure that can reach an HTTP caller is a ServiceError subclass
carrying its status code. Image-load failures (LoadTimeout, DecodeError)
are not ServiceErrors: the normalizer recovers from them
locally by rendering a placeholder.
"""

from typing import Any, Optional


class ServiceError(Exception):
    """Base class for errors rendered as JSON error responses."""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        detail: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.detail = detail
        if status_code is not None:
            self.status_code = status_code

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"success": False, "message": self.message}
        if self.detail:
            payload["error"] = self.detail
        return payload


class ValidationError(ServiceError):
    """Missing or malformed input. Never retried."""
    status_code = 400


class AuthError(ServiceError):
    """Bad or missing API key."""
    status_code = 401


class NotFoundError(ServiceError):
    status_code = 404


class StorageError(ServiceError):
    """Filesystem read/write failure on a single-file operation."""
    status_code = 500


class UpstreamError(ServiceError):
    """
    A remote fetch answered with a non-success status.

    The upstream status code is forwarded to the caller unchanged.
    """

    def __init__(self, status_code: int, status_text: str = "", url: str = ""):
        self.status_text = status_text
        self.url = url
        super().__init__(
            f"Failed to fetch: {status_text or 'upstream error'} ({status_code})",
            detail=status_text or None,
            status_code=status_code,
        )


class PayloadTooLarge(ServiceError):
    """A remote body exceeded the configured size cap."""
    status_code = 413


class RateLimitExceeded(ServiceError):
    """Raised by route dependencies when a limiter rejects the request."""
    status_code = 429

    def __init__(self, decision, message: str):
        super().__init__(message)
        self.decision = decision


# ============================================
# Image load failures (recovered, never surfaced)
# ============================================

class ImageLoadError(Exception):
    """Source image could not be turned into pixels."""

    reason_text = "CORS Protection or Access Restricted"


class LoadTimeout(ImageLoadError):
    reason_text = "Image Load Timed Out"


class DecodeError(ImageLoadError):
    reason_text = "CORS Protection or Access Restricted"
