"""
Image Cache Manager

In-memory caching for proxied images with:
- Per-entry TTL, evaluated lazily on lookup
- Explicit invalidation and manual cleanup
- Hit/miss counters for diagnostics
- Maximum entry limit (entries closest to expiry evicted first)
"""

import logging
import time
from dataclasses import dataclass
from threading import Lock
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

CACHE_KEY_PREFIX = "img:"


def cache_key_for(url: str) -> str:
    """Cache key for a target URL. Independent of any request metadata."""
    return f"{CACHE_KEY_PREFIX}{url}"


@dataclass(frozen=True)
class CachedImage:
    """A cached image payload. Never mutated, only replaced or evicted."""
    payload: bytes
    content_type: str
    size_bytes: int
    expires_at: float
    created_at: float = 0.0
    url: Optional[str] = None

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at

    def to_summary(self, now: float) -> Dict[str, Any]:
        return {
            "url": self.url,
            "content_type": self.content_type,
            "size_bytes": self.size_bytes,
            "age_seconds": round(now - self.created_at, 1),
            "expires_in_seconds": round(max(0.0, self.expires_at - now), 1),
        }


class ImageCacheManager:
    """
    Thread-safe in-memory image cache.

    Expired entries are invisible to get() even while still stored; they
    are dropped on lookup, on cleanup_expired(), or when space is needed.
    """

    def __init__(
        self,
        default_ttl: float = 3600.0,
        max_entries: int = 1000,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.default_ttl = default_ttl
        self.max_entries = max_entries
        self._clock = clock

        self._entries: Dict[str, CachedImage] = {}
        self._lock = Lock()
        self._hits = 0
        self._misses = 0

    def get(self, key: str) -> Optional[CachedImage]:
        """
        Get a cached image by key.

        Returns:
            CachedImage if present and not expired, None otherwise.
        """
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)

            if entry is None:
                self._misses += 1
                return None

            if entry.is_expired(now):
                del self._entries[key]
                self._misses += 1
                return None

            self._hits += 1
            return entry

    def set(
        self,
        key: str,
        payload: bytes,
        content_type: str,
        ttl: Optional[float] = None,
        url: Optional[str] = None,
    ) -> CachedImage:
        """
        Store an image, replacing any existing entry for the key.

        Args:
            key: Cache key (see cache_key_for)
            payload: Image bytes
            content_type: MIME type of the image
            ttl: Seconds to keep the entry, defaults to default_ttl
            url: Original image URL, kept for listings

        Returns:
            The stored CachedImage.
        """
        now = self._clock()
        image = CachedImage(
            payload=payload,
            content_type=content_type,
            size_bytes=len(payload),
            expires_at=now + (self.default_ttl if ttl is None else ttl),
            created_at=now,
            url=url,
        )

        with self._lock:
            if key not in self._entries:
                self._ensure_space(now)
            self._entries[key] = image

        logger.debug(f"[ImageCache] Cached: {key[:60]} ({image.size_bytes} bytes)")
        return image

    def invalidate(self, key: str) -> bool:
        """
        Remove a single entry.

        Returns:
            True if an entry was removed.
        """
        with self._lock:
            removed = self._entries.pop(key, None) is not None
        if removed:
            logger.debug(f"[ImageCache] Invalidated: {key[:60]}")
        return removed

    def cleanup_expired(self) -> int:
        """
        Remove all expired entries.

        Returns:
            Number of entries removed.
        """
        now = self._clock()
        with self._lock:
            removed = self._remove_expired(now)

        if removed:
            logger.info(f"[ImageCache] Cleaned up {removed} expired entries")
        return removed

    def clear(self) -> int:
        """
        Clear all cached images.

        Returns:
            Number of entries removed.
        """
        with self._lock:
            count = len(self._entries)
            self._entries.clear()

        logger.info(f"[ImageCache] Cleared all {count} entries")
        return count

    def list_entries(self) -> List[Dict[str, Any]]:
        """Summaries of live entries, newest first."""
        now = self._clock()
        with self._lock:
            live = [e for e in self._entries.values() if not e.is_expired(now)]
        live.sort(key=lambda e: -e.created_at)
        return [e.to_summary(now) for e in live]

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        with self._lock:
            entries = list(self._entries.values())
            hits = self._hits
            misses = self._misses

        total_size = sum(e.size_bytes for e in entries)
        lookups = hits + misses
        return {
            "entry_count": len(entries),
            "hit_count": hits,
            "miss_count": misses,
            "hit_rate": round(hits / lookups, 3) if lookups else 0.0,
            "total_size_bytes": total_size,
            "total_size_mb": round(total_size / (1024 * 1024), 2),
            "max_entries": self.max_entries,
            "default_ttl_seconds": self.default_ttl,
        }

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    # Internal helpers below assume the lock is held

    def _remove_expired(self, now: float) -> int:
        expired = [k for k, e in self._entries.items() if e.is_expired(now)]
        for k in expired:
            del self._entries[k]
        return len(expired)

    def _ensure_space(self, now: float) -> None:
        """Make room for one new entry."""
        if len(self._entries) < self.max_entries:
            return

        self._remove_expired(now)

        while self._entries and len(self._entries) >= self.max_entries:
            victim = min(self._entries, key=lambda k: self._entries[k].expires_at)
            del self._entries[victim]
            logger.info(f"[ImageCache] Evicted: {victim[:60]}")
