"""
Image Proxy API Routes

Provides endpoints for:
- Proxying external images (bypasses CORS)
- CORS preflight
- Cache statistics
- Cache management (cleanup, clear, single-URL invalidation)
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse, Response

from .cache_manager import cache_key_for
from .errors import ImageFetchError
from .fetcher import FetchRequest
from .http_utils import (
    error_response,
    get_permissive_cors_headers,
    preflight_response,
)
from .rate_limiter import client_key_from_headers
from .service import ImageProxyService
from .url_validator import is_valid_image_url

logger = logging.getLogger(__name__)


def get_image_proxy_service(request: Request) -> ImageProxyService:
    """Service instance attached to the app at startup."""
    return request.app.state.image_proxy


def create_router(prefix: str = "/api/image-proxy") -> APIRouter:
    """Build the image proxy router mounted at `prefix`."""
    router = APIRouter(prefix=prefix, tags=["Image Proxy"])

    # ============================================
    # Proxy
    # ============================================

    @router.options("")
    @router.options("/")
    async def proxy_image_preflight():
        """CORS preflight. Answered before any other processing."""
        return preflight_response()

    @router.get("")
    @router.get("/")
    async def proxy_image(
        request: Request,
        url: Optional[str] = Query(None, description="URL of the image to proxy"),
        service: ImageProxyService = Depends(get_image_proxy_service),
    ):
        """
        Proxy an external image to bypass CORS restrictions.

        This endpoint:
        1. Applies the per-client rate limit
        2. Validates the target URL
        3. Serves the image from cache, or fetches and caches it

        Example:
            GET /api/image-proxy?url=https://example.com/image.jpg
        """
        fetch_request = FetchRequest(target_url=url or "")
        request_id = fetch_request.request_id
        config = service.config

        try:
            client_key = client_key_from_headers(request.headers)
            limiter = service.rate_limiter

            if not limiter.admit(client_key):
                logger.warning(f"[ImageProxy] [{request_id}] Rate limited: {client_key}")
                return error_response(
                    429,
                    "Rate limit exceeded",
                    request_id,
                    extra={"limit": limiter.limit, "window": limiter.window_label},
                    headers={"Retry-After": str(limiter.retry_after(client_key))},
                )

            if not url:
                return error_response(400, "Missing 'url' query parameter", request_id)

            if not is_valid_image_url(url, config.block_full_private_172):
                return error_response(400, "Invalid or blocked URL", request_id)

            result = await service.fetcher.fetch(url)
            image = result.image
            cache_status = "HIT" if result.cache_hit else "MISS"
            duration_ms = fetch_request.elapsed_ms()

            logger.info(
                f"[ImageProxy] [{request_id}] Served {image.size_bytes} bytes "
                f"in {duration_ms}ms (cache: {cache_status})"
            )

            headers = get_permissive_cors_headers()
            headers.update({
                "Content-Length": str(image.size_bytes),
                "Cache-Control": f"public, max-age={config.browser_max_age}",
                "X-Request-Id": request_id,
                "X-Cache": cache_status,
                "X-Response-Time": f"{duration_ms}ms",
            })
            return Response(content=image.payload, media_type=image.content_type, headers=headers)

        except ImageFetchError as e:
            logger.error(
                f"[ImageProxy] [{request_id}] Error after {fetch_request.elapsed_ms()}ms: {e}"
            )
            return error_response(
                500, str(e), request_id,
                extra={"cacheStats": service.cache.get_stats()},
            )
        except Exception as e:
            logger.exception(
                f"[ImageProxy] [{request_id}] Unexpected error after {fetch_request.elapsed_ms()}ms"
            )
            return error_response(
                500, str(e) or "Unknown error", request_id,
                extra={"cacheStats": service.cache.get_stats()},
            )

    # ============================================
    # Cache management
    # ============================================

    @router.get("/stats")
    async def get_cache_stats(service: ImageProxyService = Depends(get_image_proxy_service)):
        """
        Get cache and rate limiter statistics.
        """
        return JSONResponse(content={
            "success": True,
            "stats": service.cache.get_stats(),
            "rate_limiter": service.rate_limiter.stats(),
            "inflight_fetches": service.fetcher.inflight_count,
        })

    @router.get("/entries")
    async def list_cache_entries(service: ImageProxyService = Depends(get_image_proxy_service)):
        """List live cache entries (metadata only, newest first)."""
        entries = service.cache.list_entries()
        return JSONResponse(content={
            "success": True,
            "count": len(entries),
            "items": entries,
        })

    @router.post("/cleanup")
    async def cleanup_cache(service: ImageProxyService = Depends(get_image_proxy_service)):
        """
        Clean up expired cache entries and stale rate limit windows.

        Expired entries are already invisible to lookups; this only
        reclaims their memory early.
        """
        removed = service.cache.cleanup_expired()
        swept = service.rate_limiter.sweep()
        return JSONResponse(content={
            "success": True,
            "removed_entries": removed,
            "swept_rate_limits": swept,
            "current_stats": service.cache.get_stats(),
        })

    @router.delete("/cache")
    async def invalidate_cached_image(
        url: str = Query(..., description="URL whose cached image should be dropped"),
        service: ImageProxyService = Depends(get_image_proxy_service),
    ):
        """Drop the cached copy of one image."""
        removed = service.cache.invalidate(cache_key_for(url))
        return JSONResponse(content={
            "success": True,
            "removed": removed,
        })

    @router.delete("/clear")
    async def clear_cache(service: ImageProxyService = Depends(get_image_proxy_service)):
        """
        Clear all cached images.

        Use with caution - every following request becomes a cache miss.
        """
        removed = service.cache.clear()
        return JSONResponse(content={
            "success": True,
            "removed_entries": removed,
            "message": "Cache cleared successfully",
        })

    @router.get("/health")
    async def health_check(service: ImageProxyService = Depends(get_image_proxy_service)):
        """Health check endpoint."""
        return JSONResponse(content={
            "status": "healthy",
            "service": "image-proxy",
            "cache_stats": service.cache.get_stats(),
        })

    return router
