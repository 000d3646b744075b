"""
Image Proxy Service

Owns the proxy's shared state (cache, rate limiter, fetcher) so it can be
created at application startup and injected into the routes, instead of
living in module globals.
"""

import logging
from typing import Optional

import httpx

from .cache_manager import ImageCacheManager
from .config import ImageProxyConfig
from .fetcher import ImageFetcher
from .rate_limiter import RateLimiter

logger = logging.getLogger(__name__)


class ImageProxyService:
    """
    Container for the proxy's stateful components.

    Usage:
        service = ImageProxyService(ImageProxyConfig.from_env())
        await service.start()
        ...
        await service.close()
    """

    def __init__(
        self,
        config: Optional[ImageProxyConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        cache: Optional[ImageCacheManager] = None,
        rate_limiter: Optional[RateLimiter] = None,
    ):
        self.config = config or ImageProxyConfig()

        self.cache = cache or ImageCacheManager(
            default_ttl=self.config.cache_ttl_seconds,
            max_entries=self.config.cache_max_entries,
        )
        self.rate_limiter = rate_limiter or RateLimiter(
            limit=self.config.rate_limit_max,
            window_seconds=self.config.rate_limit_window_seconds,
            sweep_interval=self.config.rate_limit_sweep_seconds,
        )
        self.fetcher = ImageFetcher(self.config, self.cache, transport=transport)

    async def start(self) -> None:
        """Start background maintenance."""
        self.rate_limiter.start()
        logger.info(
            f"[ImageProxy] Started (ttl={self.config.cache_ttl_seconds}s, "
            f"limit={self.config.rate_limit_max}/{self.config.rate_limit_window_seconds}s, "
            f"max_size={self.config.max_image_size_mb}MB)"
        )

    async def close(self) -> None:
        """Stop background maintenance and release the HTTP client."""
        await self.rate_limiter.stop()
        await self.fetcher.close()
        logger.info(f"[ImageProxy] Stopped ({len(self.cache)} entries in cache)")
