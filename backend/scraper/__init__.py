"""
Scraper Module

Discovers image URLs on web pages (img, lazy-load attributes, srcset,
inline background images, picture sources).
"""

from .routes_fastapi import router
from .page_scraper import PageImageScraper, ScrapeResult, extract_image_urls

__all__ = ["router", "PageImageScraper", "ScrapeResult", "extract_image_urls"]
