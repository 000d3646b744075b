"""
Image Proxy Configuration

Defaults for the proxy service, overridable through IMAGE_PROXY_* environment
variables.
"""

import os
from dataclasses import dataclass, field


ALLOWED_CONTENT_TYPES = frozenset({
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/gif",
    "image/webp",
    "image/svg+xml",
})


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class ImageProxyConfig:
    """Configuration for the image proxy service."""
    # Cache settings
    cache_ttl_seconds: int = 3600           # 1 hour
    cache_max_entries: int = 1000

    # Fetch settings
    max_image_size_mb: int = 10
    fetch_timeout: float = 10.0             # Upstream timeout in seconds
    max_redirects: int = 5
    user_agent: str = "ImageProxy/1.0"
    allowed_content_types: frozenset = field(default=ALLOWED_CONTENT_TYPES)

    # Rate limiting
    rate_limit_max: int = 100               # Requests per client per window
    rate_limit_window_seconds: int = 60
    rate_limit_sweep_seconds: int = 300     # Stale entry sweep interval

    # URL validation
    block_full_private_172: bool = False

    # Response settings
    browser_max_age: int = 3600
    route_prefix: str = "/api/image-proxy"

    @property
    def max_image_size_bytes(self) -> int:
        return self.max_image_size_mb * 1024 * 1024

    @classmethod
    def from_env(cls) -> "ImageProxyConfig":
        """Build a config from IMAGE_PROXY_* environment variables."""
        defaults = cls()
        return cls(
            cache_ttl_seconds=int(os.getenv("IMAGE_PROXY_CACHE_TTL_SECONDS", defaults.cache_ttl_seconds)),
            cache_max_entries=int(os.getenv("IMAGE_PROXY_CACHE_MAX_ENTRIES", defaults.cache_max_entries)),
            max_image_size_mb=int(os.getenv("IMAGE_PROXY_MAX_IMAGE_SIZE_MB", defaults.max_image_size_mb)),
            fetch_timeout=float(os.getenv("IMAGE_PROXY_FETCH_TIMEOUT", defaults.fetch_timeout)),
            max_redirects=int(os.getenv("IMAGE_PROXY_MAX_REDIRECTS", defaults.max_redirects)),
            user_agent=os.getenv("IMAGE_PROXY_USER_AGENT", defaults.user_agent),
            rate_limit_max=int(os.getenv("IMAGE_PROXY_RATE_LIMIT_MAX", defaults.rate_limit_max)),
            rate_limit_window_seconds=int(
                os.getenv("IMAGE_PROXY_RATE_LIMIT_WINDOW_SECONDS", defaults.rate_limit_window_seconds)
            ),
            rate_limit_sweep_seconds=int(
                os.getenv("IMAGE_PROXY_RATE_LIMIT_SWEEP_SECONDS", defaults.rate_limit_sweep_seconds)
            ),
            block_full_private_172=_env_bool("IMAGE_PROXY_BLOCK_FULL_172", defaults.block_full_private_172),
            browser_max_age=int(os.getenv("IMAGE_PROXY_BROWSER_MAX_AGE", defaults.browser_max_age)),
            route_prefix=os.getenv("IMAGE_PROXY_ROUTE_PREFIX", defaults.route_prefix),
        )
