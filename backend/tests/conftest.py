"""
Image proxy test configuration.

Fixtures:
- clock: controllable time source for cache and rate limiter
- upstream: fake upstream server built on httpx.MockTransport
- make_client: FastAPI TestClient around a freshly built app
"""

import sys
from pathlib import Path
from typing import Callable, Dict, Optional

import httpx
import pytest
from fastapi.testclient import TestClient

# Make the backend packages importable
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

from image_proxy import ImageProxyConfig  # noqa: E402

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


# ============================================
# Time
# ============================================

class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


# ============================================
# Fake upstream
# ============================================

class FakeUpstream:
    """
    Routes upstream requests to canned responses by URL.

    Unknown URLs answer with a small PNG. Every request is recorded so
    tests can assert how many upstream calls were made.
    """

    def __init__(self):
        self.routes: Dict[str, Callable[[httpx.Request], httpx.Response]] = {}
        self.requests = []

    @property
    def call_count(self) -> int:
        return len(self.requests)

    def add(self, url: str, handler: Callable[[httpx.Request], httpx.Response]) -> None:
        self.routes[url] = handler

    def add_image(self, url: str, content: bytes = PNG_BYTES, content_type: str = "image/png") -> None:
        self.add(url, lambda request: httpx.Response(
            200, content=content, headers={"content-type": content_type},
        ))

    async def handle(self, request: httpx.Request):
        self.requests.append(request)
        handler = self.routes.get(str(request.url))
        if handler is None:
            return httpx.Response(200, content=PNG_BYTES, headers={"content-type": "image/png"})
        response = handler(request)
        if not isinstance(response, httpx.Response):
            response = await response
        return response

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)


@pytest.fixture
def upstream():
    return FakeUpstream()


@pytest.fixture
def config():
    return ImageProxyConfig()


# ============================================
# App
# ============================================

@pytest.fixture
def make_client(upstream):
    """
    Factory for a TestClient with lifespan running.

    Usage:
        client = make_client(ImageProxyConfig(rate_limit_max=2))
    """
    from main import create_app

    clients = []

    def _factory(config: Optional[ImageProxyConfig] = None) -> TestClient:
        app = create_app(config or ImageProxyConfig(), transport=upstream.transport)
        client = TestClient(app)
        client.__enter__()
        clients.append(client)
        return client

    yield _factory

    for client in clients:
        client.__exit__(None, None, None)
