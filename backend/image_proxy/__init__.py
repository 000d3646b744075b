"""
Image Proxy Module

Provides a proxy endpoint for loading external images from browsers that
cannot make cross-origin requests directly.

Features:
- In-memory caching with per-entry TTL
- Per-client fixed-window rate limiting
- Lexical SSRF blocklist for loopback/private hosts
- Content-type allowlist and size ceiling on upstream images
- Single-flight upstream fetches
"""

from .cache_manager import CachedImage, ImageCacheManager, cache_key_for
from .config import ImageProxyConfig
from .errors import (
    ImageFetchError,
    InvalidContentType,
    PayloadTooLarge,
    UpstreamHttpError,
    UpstreamTimeout,
    UpstreamUnreachable,
)
from .fetcher import FetchRequest, FetchResult, ImageFetcher
from .rate_limiter import RateLimiter, RateLimitEntry, client_key_from_headers
from .routes_fastapi import create_router, get_image_proxy_service
from .service import ImageProxyService
from .url_validator import is_valid_image_url

__all__ = [
    "create_router",
    "get_image_proxy_service",
    "ImageProxyConfig",
    "ImageProxyService",
    "ImageCacheManager",
    "CachedImage",
    "cache_key_for",
    "ImageFetcher",
    "FetchRequest",
    "FetchResult",
    "RateLimiter",
    "RateLimitEntry",
    "client_key_from_headers",
    "is_valid_image_url",
    "ImageFetchError",
    "InvalidContentType",
    "PayloadTooLarge",
    "UpstreamHttpError",
    "UpstreamTimeout",
    "UpstreamUnreachable",
]
