"""
Single chokepoint for outbound calls to one upstream host.

Wraps an httpx.AsyncClient with the base URL, request timeout and default
api_key query parameter, and gates every call through a CircuitBreaker.
"""

import asyncio
from typing import Any, Dict, Optional

import httpx
from loguru import logger

from circuit_breaker import CircuitBreaker
from config import DEMO_KEY
from errors import (
    EXTERNAL_SERVICE_UNAVAILABLE,
    HTTP_INTERNAL_SERVER_ERROR,
    HTTP_SERVICE_UNAVAILABLE,
    NASA_API_ERROR,
    NASA_API_TIMEOUT,
    ServiceUnavailableError,
    UpstreamError,
)

DEFAULT_TIMEOUT_MS = 10_000


def extract_error_message(response: httpx.Response) -> str:
    """
    Best human-readable message from an upstream error body.

    Preference: a plain string body, then error.message, msg, message of a
    JSON object, then a generic fallback.
    """
    try:
        body: Any = response.json()
    except ValueError:
        body = response.text

    if isinstance(body, str) and body.strip():
        return body.strip()

    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and isinstance(error.get("message"), str) and error["message"]:
            return error["message"]
        for key in ("msg", "message"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value

    return NASA_API_ERROR


class UpstreamClient:
    """
    Breaker-gated HTTP client for one upstream base URL.

    api_key=None disables key injection, for hosts such as the Image
    Library that do not take one.
    """

    def __init__(
        self,
        base_url: str,
        *,
        api_key: Optional[str] = DEMO_KEY,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        breaker: Optional[CircuitBreaker] = None,
        name: str = "nasa-api",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.name = name
        self.base_url = base_url
        self._breaker = breaker or CircuitBreaker(name=name)

        params = {"api_key": api_key} if api_key else {}
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=httpx.Timeout(timeout_ms / 1000),
            params=params,
            follow_redirects=True,
            transport=transport,
        )

    @property
    def breaker(self) -> CircuitBreaker:
        return self._breaker

    async def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> httpx.Response:
        """
        GET path relative to the base URL.

        Returns the raw response on 2xx. Raises ServiceUnavailableError when
        the breaker is open, UpstreamError for anything else that goes wrong.
        """
        if not self._breaker.allow_request():
            logger.warning("{} call to {} blocked, circuit is {}", self.name, path, self._breaker.state.value)
            raise ServiceUnavailableError()

        try:
            response = await self._client.get(path, params=params)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            self._breaker.record_failure()
            message = extract_error_message(e.response)
            logger.error(
                "{} GET {} failed with {}: {}",
                self.name, path, e.response.status_code, message,
            )
            raise UpstreamError(message, e.response.status_code) from e
        except httpx.TimeoutException as e:
            self._breaker.record_failure()
            logger.error("{} GET {} timed out: {!r}", self.name, path, e)
            raise UpstreamError(NASA_API_TIMEOUT, HTTP_SERVICE_UNAVAILABLE) from e
        except httpx.ConnectError as e:
            self._breaker.record_failure()
            logger.error("{} GET {} could not connect: {!r}", self.name, path, e)
            raise UpstreamError(EXTERNAL_SERVICE_UNAVAILABLE, HTTP_SERVICE_UNAVAILABLE) from e
        except httpx.HTTPError as e:
            self._breaker.record_failure()
            logger.error("{} GET {} failed: {!r}", self.name, path, e)
            raise UpstreamError(NASA_API_ERROR, HTTP_INTERNAL_SERVER_ERROR) from e
        except asyncio.CancelledError:
            self._breaker.release()
            raise
        except Exception as e:
            self._breaker.record_failure()
            logger.error("{} GET {} failed unexpectedly: {!r}", self.name, path, e)
            raise

        self._breaker.record_success()
        return response

    async def aclose(self) -> None:
        await self._client.aclose()
