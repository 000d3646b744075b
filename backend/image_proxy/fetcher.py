"""
Image Fetcher

Fetches images from upstream hosts with:
- Cache lookup before any network activity
- Hard timeout on the whole upstream exchange
- Content-type allowlist
- Byte ceiling checked against Content-Length and against bytes read
- Redirects followed manually, each hop re-validated
- Single-flight: concurrent misses for one URL share one upstream request
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple
from urllib.parse import urljoin

import httpx

from .cache_manager import CachedImage, ImageCacheManager, cache_key_for
from .config import ImageProxyConfig
from .errors import (
    InvalidContentType,
    PayloadTooLarge,
    UpstreamHttpError,
    UpstreamTimeout,
    UpstreamUnreachable,
)
from .http_utils import generate_request_id
from .url_validator import is_valid_image_url

logger = logging.getLogger(__name__)


@dataclass
class FetchRequest:
    """Per-request bookkeeping, discarded once the response is written."""
    target_url: str
    request_id: str = field(default_factory=generate_request_id)
    started_at: float = field(default_factory=time.monotonic)

    def elapsed_ms(self) -> int:
        return int((time.monotonic() - self.started_at) * 1000)


@dataclass
class FetchResult:
    """Fetched image and whether it came from the cache."""
    image: CachedImage
    cache_hit: bool


def parse_media_type(content_type: str) -> str:
    """Media type without parameters, e.g. "image/png; q=1" -> "image/png"."""
    return content_type.split(";")[0].strip().lower()


class ImageFetcher:
    """
    Fetches and caches upstream images.

    Usage:
        fetcher = ImageFetcher(config, cache)
        result = await fetcher.fetch("https://example.com/a.png")
        await fetcher.close()
    """

    def __init__(
        self,
        config: ImageProxyConfig,
        cache: ImageCacheManager,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config
        self.cache = cache

        self.http_client = httpx.AsyncClient(
            timeout=config.fetch_timeout,
            follow_redirects=False,
            headers={
                "User-Agent": config.user_agent,
                "Accept": "image/*,*/*;q=0.8",
            },
            transport=transport,
        )

        # Cache key -> upstream fetch in progress
        self._inflight: Dict[str, asyncio.Task] = {}

    async def close(self) -> None:
        """Wait for in-flight fetches, then close the HTTP client."""
        pending = list(self._inflight.values())
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        await self.http_client.aclose()

    @property
    def inflight_count(self) -> int:
        return len(self._inflight)

    async def fetch(self, url: str) -> FetchResult:
        """
        Return the image for a URL, from cache or upstream.

        cache_hit is True only when this call found the entry in the cache.
        Callers that join an in-flight fetch for the same URL are reported
        as misses (cache_hit=False), like the caller that started it.

        Raises:
            ImageFetchError subclass on any upstream failure.
        """
        key = cache_key_for(url)

        cached = self.cache.get(key)
        if cached is not None:
            logger.debug(f"[ImageFetcher] Cache hit: {url[:60]}...")
            return FetchResult(image=cached, cache_hit=True)

        task = self._inflight.get(key)
        if task is None:
            task = asyncio.create_task(self._fetch_and_store(url, key))
            self._inflight[key] = task
            task.add_done_callback(lambda t: self._on_fetch_done(key, t))
        else:
            logger.debug(f"[ImageFetcher] Joining in-flight fetch: {url[:60]}...")

        # Shielded so a disconnecting client does not abort the shared fetch;
        # it still completes (bounded by the timeout) and warms the cache.
        image = await asyncio.shield(task)
        return FetchResult(image=image, cache_hit=False)

    def _on_fetch_done(self, key: str, task: asyncio.Task) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]
        # Mark the exception retrieved when every waiter has gone away
        if not task.cancelled():
            task.exception()

    async def _fetch_and_store(self, url: str, key: str) -> CachedImage:
        timeout = self.config.fetch_timeout
        logger.info(f"[ImageFetcher] Fetching: {url[:80]}...")

        try:
            payload, content_type = await asyncio.wait_for(self._download(url), timeout=timeout)
        except (asyncio.TimeoutError, httpx.TimeoutException):
            logger.error(f"[ImageFetcher] Timeout: {url[:60]}...")
            raise UpstreamTimeout(timeout)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.error(f"[ImageFetcher] Fetch error: {e}")
            raise UpstreamUnreachable(f"Failed to fetch image: {e}") from e

        image = self.cache.set(
            key,
            payload,
            content_type,
            ttl=self.config.cache_ttl_seconds,
            url=url,
        )
        logger.info(f"[ImageFetcher] Fetched: {url[:60]}... ({image.size_bytes} bytes)")
        return image

    async def _download(self, url: str) -> Tuple[bytes, str]:
        current_url = url

        for _ in range(self.config.max_redirects + 1):
            async with self.http_client.stream("GET", current_url) as response:
                if response.is_redirect:
                    current_url = self._next_hop(current_url, response)
                    continue
                return await self._read_image(response)

        raise UpstreamUnreachable(
            f"Too many redirects (limit: {self.config.max_redirects})"
        )

    def _next_hop(self, current_url: str, response: httpx.Response) -> str:
        next_url = urljoin(current_url, response.headers["location"])
        if not is_valid_image_url(next_url, self.config.block_full_private_172):
            logger.warning(f"[ImageFetcher] Blocked redirect: {next_url[:60]}...")
            raise UpstreamUnreachable(f"Redirect to blocked URL: {next_url}")
        return next_url

    async def _read_image(self, response: httpx.Response) -> Tuple[bytes, str]:
        if not response.is_success:
            raise UpstreamHttpError(response.status_code, response.reason_phrase)

        raw_content_type = response.headers.get("content-type", "")
        content_type = parse_media_type(raw_content_type)
        if content_type not in self.config.allowed_content_types:
            raise InvalidContentType(raw_content_type)

        max_size = self.config.max_image_size_bytes

        # Fail fast on the declared length before reading the body
        declared = response.headers.get("content-length")
        if declared:
            try:
                declared_size = int(declared)
            except ValueError:
                declared_size = None
            if declared_size is not None and declared_size > max_size:
                raise PayloadTooLarge(declared_size, max_size)

        # Header may be missing or understated; stop reading past the ceiling
        received = bytearray()
        async for chunk in response.aiter_bytes():
            received.extend(chunk)
            if len(received) > max_size:
                raise PayloadTooLarge(len(received), max_size)

        return bytes(received), content_type
