"""
Service Container

Everything with process lifetime (HTTP clients, the rate limit store,
limiters, storage) is built here once per app and torn down at shutdown.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Optional

import httpx

from core.config import AppConfig
from image_proxy.proxy import BROWSER_HEADERS, ImageFetchProxy
from normalizer.normalizer import Normalizer
from rate_limit import RateLimiter, RateLimitStore
from scraper.page_scraper import DOCUMENT_HEADERS, PageImageScraper
from storage.gateway import StorageGateway
from storage.sweeper import UploadSweeper

logger = logging.getLogger(__name__)


@dataclass
class Services:
    config: AppConfig
    store: RateLimitStore
    proxy: ImageFetchProxy
    scraper: PageImageScraper
    normalizer: Normalizer
    gateway: StorageGateway
    sweeper: UploadSweeper
    rate_limiters: Dict[str, RateLimiter] = field(default_factory=dict)

    async def start(self) -> None:
        self.gateway.ensure_dir()
        self.store.start_purge(self.config.rate_limit_sweep_interval_seconds)
        self.sweeper.start(self.config.sweep_interval_minutes * 60)
        logger.info(f"[Services] Started (uploads: {self.gateway.upload_dir})")

    async def stop(self) -> None:
        await self.sweeper.stop()
        await self.store.stop_purge()
        await self.proxy.close()
        await self.scraper.close()
        logger.info("[Services] Stopped")


def build_services(
    config: AppConfig,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    store: Optional[RateLimitStore] = None,
) -> Services:
    """
    Construct the service graph.

    Args:
        config: Application settings
        transport: Optional httpx transport shared by the outbound clients
        store: Optional pre-built rate limit store (e.g. with a fake clock)
    """
    store = store or RateLimitStore()

    proxy = ImageFetchProxy(
        client=httpx.AsyncClient(
            timeout=config.proxy_timeout_seconds,
            follow_redirects=True,
            headers=BROWSER_HEADERS,
            transport=transport,
        ),
        max_bytes=config.max_upload_size_bytes,
    )
    scraper = PageImageScraper(
        client=httpx.AsyncClient(
            timeout=config.proxy_timeout_seconds,
            follow_redirects=True,
            headers=DOCUMENT_HEADERS,
            transport=transport,
        )
    )
    normalizer = Normalizer(
        proxy,
        load_timeout=config.image_load_timeout_seconds,
        max_source_bytes=config.max_upload_size_bytes,
    )
    gateway = StorageGateway(config.upload_dir, config.public_prefix, config.keep_file)
    sweeper = UploadSweeper(
        config.upload_dir,
        keep_file=config.keep_file,
        default_max_age_ms=config.upload_max_age_ms,
    )

    rate_limiters = {
        name: RateLimiter.from_rule(name, store, config.rule(name))
        for name in config.rate_limits
    }

    return Services(
        config=config,
        store=store,
        proxy=proxy,
        scraper=scraper,
        normalizer=normalizer,
        gateway=gateway,
        sweeper=sweeper,
        rate_limiters=rate_limiters,
    )
