"""Logging configuration."""

import logging


def configure_logging(level: str = "INFO") -> None:
    """Configure the root logger once for the whole service."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
