"""
Image Proxy Server

FastAPI application hosting the image proxy.

Run:
    cd backend
    uvicorn main:app --port 8000
"""

import logging
import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import httpx
from fastapi import FastAPI

from image_proxy import ImageProxyConfig, ImageProxyService, create_router

logger = logging.getLogger(__name__)


def create_app(
    config: Optional[ImageProxyConfig] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """
    Build the application.

    Args:
        config: Proxy configuration, read from the environment if omitted
        transport: Optional httpx transport for upstream requests (tests)
    """
    config = config or ImageProxyConfig.from_env()
    service = ImageProxyService(config, transport=transport)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        await service.start()
        try:
            yield
        finally:
            await service.close()

    app = FastAPI(
        title="Image Proxy",
        description="Caching CORS proxy for remote images",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.image_proxy = service
    app.include_router(create_router(config.route_prefix))

    return app


logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = create_app()
