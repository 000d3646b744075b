"""
HTTP helpers shared by the proxy routes: CORS headers, request ids and the
JSON error envelope.
"""

import uuid
from typing import Any, Dict, Optional

from fastapi.responses import JSONResponse, Response

PERMISSIVE_CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, OPTIONS",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
    "Access-Control-Expose-Headers": "Content-Length, X-Request-Id, X-Cache, X-Response-Time",
}

PREFLIGHT_MAX_AGE = "86400"


def get_permissive_cors_headers() -> Dict[str, str]:
    """CORS headers attached to every proxy response."""
    return dict(PERMISSIVE_CORS_HEADERS)


def preflight_response() -> Response:
    """Empty 204 answer to a CORS preflight request."""
    headers = get_permissive_cors_headers()
    headers["Access-Control-Max-Age"] = PREFLIGHT_MAX_AGE
    return Response(status_code=204, headers=headers)


def generate_request_id() -> str:
    """Unique id for correlating a request with its log lines."""
    return uuid.uuid4().hex


def error_response(
    status_code: int,
    error: str,
    request_id: str,
    extra: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    """
    Render the JSON error envelope.

    Body: {"error": ..., "requestId": ..., **extra}
    """
    content: Dict[str, Any] = {"error": error, "requestId": request_id}
    if extra:
        content.update(extra)

    response_headers = get_permissive_cors_headers()
    response_headers["X-Request-Id"] = request_id
    if headers:
        response_headers.update(headers)

    return JSONResponse(status_code=status_code, content=content, headers=response_headers)
