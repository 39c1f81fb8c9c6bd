"""Shared test fixtures and fake collaborators."""
import asyncio
from typing import Any, Dict, List, Optional, Tuple

import pytest

from querysync.cache import QueryOptions, create_cache


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class CountingFetcher:
    """
    Fetcher that returns queued results in order and counts calls.

    The last result repeats once the queue runs dry. Exceptions in the
    queue are raised instead of returned.
    """

    def __init__(self, *results: Any):
        self.results = list(results)
        self.calls = 0

    async def __call__(self) -> Any:
        self.calls += 1
        result = self.results.pop(0) if len(self.results) > 1 else self.results[0]
        if isinstance(result, BaseException):
            raise result
        return result


class GatedFetcher:
    """Fetcher whose every call blocks until the test resolves its future."""

    def __init__(self):
        self.calls: List[asyncio.Future] = []

    async def __call__(self) -> Any:
        future = asyncio.get_running_loop().create_future()
        self.calls.append(future)
        return await future


class DummyResponse:
    """Dummy requests.Response for testing."""

    def __init__(self, data: object, status: int = 200, reason: str = "OK"):
        self._data = data
        self.status_code = status
        self.reason = reason
        self.text = "" if data is None else str(data)
        self.ok = 200 <= status < 400

    def json(self) -> object:
        if isinstance(self._data, str):
            raise ValueError("not json")
        return self._data


class DummySession:
    """
    Dummy requests.Session routing (method, path suffix) to responses.

    A route value may be a DummyResponse, an exception to raise, or a
    list of either consumed in order.
    """

    def __init__(self, routes: Optional[Dict[Tuple[str, str], Any]] = None):
        self.routes = routes or {}
        self.requests: List[Dict[str, Any]] = []

    def request(self, method: str, url: str, **kwargs: Any) -> DummyResponse:
        self.requests.append({"method": method, "url": url, **kwargs})
        for (route_method, suffix), value in self.routes.items():
            if route_method == method and url.endswith(suffix):
                if isinstance(value, list):
                    value = value.pop(0) if len(value) > 1 else value[0]
                if isinstance(value, BaseException):
                    raise value
                return value
        return DummyResponse({"success": False, "error": {"message": "not found"}}, 404, "Not Found")

    def close(self) -> None:
        pass


async def settle(rounds: int = 10) -> None:
    """Let scheduled tasks and callbacks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return create_cache(clock=clock)


@pytest.fixture
def options():
    """Five minute freshness, no polling, no eviction."""
    return QueryOptions(cache_time=300, gc_time=None)
