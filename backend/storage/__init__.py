"""
Storage Module

Flat-directory storage for normalized images plus age-based eviction.

Features:
- Random-name saves with atomic writes
- Serve / delete by name
- Scheduled and on-demand upload sweeps
"""

from .routes_fastapi import router
from .gateway import StorageGateway, StoredImage, content_type_for
from .sweeper import UploadSweeper, SweepResult

__all__ = [
    "router",
    "StorageGateway",
    "StoredImage",
    "content_type_for",
    "UploadSweeper",
    "SweepResult",
]
