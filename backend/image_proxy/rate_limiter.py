"""
Rate Limiter

Fixed-window request counter per client key, with a background task that
sweeps entries whose window has already elapsed.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from threading import Lock
from typing import Any, Callable, Dict, Mapping, Optional

logger = logging.getLogger(__name__)

UNKNOWN_CLIENT = "unknown"


@dataclass
class RateLimitEntry:
    """Request count for one client in the current window."""
    client_key: str
    count: int
    window_reset_at: float


def client_key_from_headers(headers: Mapping[str, str]) -> str:
    """
    Derive the rate-limit key for a request.

    Uses the first X-Forwarded-For address, then X-Real-IP, then the
    shared "unknown" bucket. Behind a proxy that does not set either header
    every caller lands in the same bucket and the limit becomes global.
    The headers are client-controlled unless a trusted proxy overwrites them.
    """
    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first

    real_ip = headers.get("x-real-ip")
    if real_ip and real_ip.strip():
        return real_ip.strip()

    return UNKNOWN_CLIENT


class RateLimiter:
    """
    Fixed-window rate limiter.

    A window opens on the first request from a client and lasts
    window_seconds. Up to `limit` requests are admitted per window; the
    count resets only once the window has elapsed.
    """

    def __init__(
        self,
        limit: int = 100,
        window_seconds: float = 60.0,
        sweep_interval: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.limit = limit
        self.window_seconds = window_seconds
        self.sweep_interval = sweep_interval
        self._clock = clock

        self._entries: Dict[str, RateLimitEntry] = {}
        self._lock = Lock()
        self._sweep_task: Optional[asyncio.Task] = None

    def admit(self, client_key: str) -> bool:
        """
        Count a request against the client's window.

        Returns:
            True if the request is within the limit, False otherwise.
        """
        now = self._clock()
        with self._lock:
            entry = self._entries.get(client_key)

            if entry is None or now >= entry.window_reset_at:
                self._entries[client_key] = RateLimitEntry(
                    client_key=client_key,
                    count=1,
                    window_reset_at=now + self.window_seconds,
                )
                return True

            if entry.count < self.limit:
                entry.count += 1
                return True

            return False

    def retry_after(self, client_key: str) -> int:
        """Seconds until the client's current window resets."""
        now = self._clock()
        with self._lock:
            entry = self._entries.get(client_key)
            if entry is None or now >= entry.window_reset_at:
                return 0
            remaining = entry.window_reset_at - now
        return max(1, int(remaining + 0.999))

    def sweep(self) -> int:
        """
        Remove entries whose window has elapsed.

        Returns:
            Number of entries removed.
        """
        now = self._clock()
        with self._lock:
            stale = [
                key for key, entry in self._entries.items()
                if now >= entry.window_reset_at
            ]
            for key in stale:
                del self._entries[key]

        if stale:
            logger.debug(f"[RateLimiter] Swept {len(stale)} stale entries")
        return len(stale)

    def reset(self) -> None:
        with self._lock:
            self._entries.clear()

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            tracked = len(self._entries)
        return {
            "tracked_clients": tracked,
            "limit": self.limit,
            "window_seconds": self.window_seconds,
        }

    @property
    def window_label(self) -> str:
        """Human readable window length, e.g. "1 minute"."""
        seconds = int(self.window_seconds)
        if seconds % 60 == 0:
            minutes = seconds // 60
            return f"{minutes} minute" if minutes == 1 else f"{minutes} minutes"
        return f"{seconds} seconds"

    # ============================================
    # Background sweep
    # ============================================

    def start(self) -> None:
        """Start the periodic sweep on the running event loop."""
        if self._sweep_task is None or self._sweep_task.done():
            self._sweep_task = asyncio.create_task(self._sweep_loop())
            logger.info(f"[RateLimiter] Sweep started (every {self.sweep_interval:g}s)")

    async def stop(self) -> None:
        """Cancel the periodic sweep and wait for it to exit."""
        task = self._sweep_task
        self._sweep_task = None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("[RateLimiter] Sweep stopped")

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval)
            try:
                self.sweep()
            except Exception as e:
                logger.error(f"[RateLimiter] Sweep failed: {e}")
