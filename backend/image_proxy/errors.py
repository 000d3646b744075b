"""
Image Fetch Errors

Failures raised by the fetch pipeline. The route layer catches
ImageFetchError and renders it as a 500 JSON envelope.
"""


class ImageFetchError(Exception):
    """Base class for upstream fetch failures."""


class UpstreamUnreachable(ImageFetchError):
    """Connection to the upstream host failed."""


class UpstreamTimeout(ImageFetchError):
    """Upstream did not answer within the fetch timeout."""

    def __init__(self, timeout: float):
        self.timeout = timeout
        super().__init__(f"Image fetch timed out after {timeout:g}s")


class UpstreamHttpError(ImageFetchError):
    """Upstream answered with a non-2xx status."""

    def __init__(self, status: int, reason: str = ""):
        self.status = status
        self.reason = reason
        message = f"Failed to fetch image: {status}"
        if reason:
            message = f"{message} {reason}"
        super().__init__(message)


class InvalidContentType(ImageFetchError):
    """Upstream content type is not an allowed image type."""

    def __init__(self, content_type: str):
        self.content_type = content_type
        super().__init__(f"Invalid content type: {content_type or '(none)'}")


class PayloadTooLarge(ImageFetchError):
    """Image exceeds the configured byte ceiling."""

    def __init__(self, size: int, max_size: int):
        self.size = size
        self.max_size = max_size
        super().__init__(f"Image too large: {size} bytes (max {max_size})")
