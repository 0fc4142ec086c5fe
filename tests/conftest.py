from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import httpx
import pytest

from circuit_breaker import BreakerOptions, CircuitBreaker
from config import Settings
from services import NasaServices, build_services
from upstream import UpstreamClient

Route = Union[Tuple[int, Any], Callable[[httpx.Request], httpx.Response]]


class FakeUpstream:
    """Answers requests by URL path and records every request it sees."""

    def __init__(self, routes: Optional[Dict[str, Route]] = None) -> None:
        self.routes: Dict[str, Route] = dict(routes or {})
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get(request.url.path)
        if route is None:
            return httpx.Response(404, json={"msg": f"No route for {request.url.path}"})
        if callable(route):
            return route(request)
        status, body = route
        if isinstance(body, str):
            return httpx.Response(status, text=body)
        return httpx.Response(status, json=body)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)

    @property
    def paths(self) -> List[str]:
        return [request.url.path for request in self.requests]

    def params(self, index: int = -1) -> Dict[str, str]:
        return dict(self.requests[index].url.params)


class FakeClock:
    """Monotonic clock in seconds, stepped in whole milliseconds."""

    def __init__(self, start_ms: int = 1_000_000) -> None:
        self.ms = start_ms

    def __call__(self) -> float:
        return self.ms / 1000

    def advance(self, ms: int) -> None:
        self.ms += ms


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture
def make_client(fake_upstream: FakeUpstream, clock: FakeClock) -> Callable[..., UpstreamClient]:
    def factory(
        base_url: str = "https://api.nasa.gov",
        api_key: Optional[str] = "TEST_KEY",
        options: Optional[BreakerOptions] = None,
    ) -> UpstreamClient:
        breaker = CircuitBreaker(options or BreakerOptions(), name="test", clock=clock)
        return UpstreamClient(
            base_url,
            api_key=api_key,
            breaker=breaker,
            name="test",
            transport=fake_upstream.transport,
        )

    return factory


@pytest.fixture
def settings() -> Settings:
    return Settings(nasa_api_key="TEST_KEY", breaker_failure_threshold=2)


@pytest.fixture
def services(settings: Settings, fake_upstream: FakeUpstream) -> NasaServices:
    return build_services(settings, transport=fake_upstream.transport)
