"""
Image Proxy Module

Provides a proxy endpoint and client for loading external images.
Bypasses CORS and hot-link restrictions by fetching images through the
backend server with browser-like headers.
"""

from .routes_fastapi import router
from .proxy import ImageFetchProxy, ProxiedImage

__all__ = ["router", "ImageFetchProxy", "ProxiedImage"]
