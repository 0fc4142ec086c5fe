"""
Error taxonomy shared by the upstream client, services and HTTP layer.

Every error the proxy raises on purpose is an APIError carrying the HTTP
status it should be answered with.
"""

import functools
from typing import Any, Awaitable, Callable, Optional, TypeVar

from loguru import logger

# ============================================================================
# STATUS CODES AND MESSAGES
# ============================================================================

HTTP_OK = 200
HTTP_BAD_REQUEST = 400
HTTP_NOT_FOUND = 404
HTTP_INTERNAL_SERVER_ERROR = 500
HTTP_SERVICE_UNAVAILABLE = 503

INVALID_DATE_FORMAT = "Invalid date format. Use YYYY-MM-DD"
DATE_RANGE_EXCEEDED = "Date range cannot exceed 7 days"
REQUIRED_PARAMETERS = "start_date and end_date parameters are required"
NASA_API_ERROR = "Failed to fetch data from NASA API"
NASA_API_TIMEOUT = "NASA API request timed out"
EXTERNAL_SERVICE_UNAVAILABLE = "External service unavailable"
APOD_ERROR = "Failed to fetch Astronomy Picture of the Day"
NEO_ERROR = "Failed to fetch Near Earth Objects data"
MARS_ROVER_ERROR = "Error fetching Mars Rover photos"
EPIC_ERROR = "Error fetching EPIC images"
IMAGE_LIBRARY_ERROR = "Error searching NASA Image Library"
INTERNAL_SERVER_ERROR = "Internal server error"

# ============================================================================
# EXCEPTIONS
# ============================================================================


class APIError(Exception):
    """Base error with the HTTP status the caller should see."""

    status_code = HTTP_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, status_code={self.status_code})"


class ValidationError(APIError):
    """Caller supplied a bad parameter. Never retried."""

    status_code = HTTP_BAD_REQUEST


class UpstreamError(APIError):
    """NASA answered with an error, timed out, or could not be reached."""


class ServiceUnavailableError(APIError):
    """The circuit breaker refused the call before it was dispatched."""

    status_code = HTTP_SERVICE_UNAVAILABLE

    def __init__(self, message: str = EXTERNAL_SERVICE_UNAVAILABLE):
        super().__init__(message, HTTP_SERVICE_UNAVAILABLE)


class InternalError(APIError):
    """Unexpected failure, reported with a fixed message."""

    status_code = HTTP_INTERNAL_SERVER_ERROR


# ============================================================================
# SERVICE BOUNDARY
# ============================================================================

T = TypeVar("T")


def service_boundary(message: str) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """
    Wrap an async service method so callers only ever see APIError.

    Known errors pass through unchanged; anything else is logged and
    replaced with InternalError(message). The wrapped exception stays
    available as __cause__ for development stack traces.
    """

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            try:
                return await func(*args, **kwargs)
            except APIError:
                raise
            except Exception as e:
                logger.exception("{} failed unexpectedly: {}", func.__qualname__, e)
                raise InternalError(message) from e

        return wrapper

    return decorator
