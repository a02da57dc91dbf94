"""
Shared test fixtures for the priority fee watcher test suite.
All tests run offline with a scripted fee fetcher or a fake aiohttp session.
"""

import asyncio

import pytest

from fee_watcher.priority_fee import (
    MarketRef,
    PriorityFeeLevels,
    PriorityFeeSubscriberMap,
    PriorityFeeSubscriberMapConfig,
)

ENDPOINT = "https://fees.test"


class ScriptedFetcher:
    """
    Stand-in for fetch_priority_fees.

    Each call consumes the next scripted result: a list of fee levels is
    returned, an exception is raised. The last result repeats once the
    script runs out. Scripted failures raise at once; successful
    results wait on `gate` when one is set.
    """

    def __init__(self, *results):
        self.results = list(results)
        self.calls = []
        self.gate = None  # set to an asyncio.Event to hold calls in flight
        self.in_flight = asyncio.Event()

    async def __call__(self, endpoint, market_types, market_indexes):
        self.calls.append((endpoint, list(market_types), list(market_indexes)))
        self.in_flight.set()

        result = self.results.pop(0) if len(self.results) > 1 else self.results[0]
        if isinstance(result, BaseException):
            raise result
        if self.gate is not None:
            await self.gate.wait()
        return result


async def wait_until(predicate, timeout=2.0, poll=0.005):
    """Poll until predicate() is true, failing the test after timeout seconds"""
    async def _wait():
        while not predicate():
            await asyncio.sleep(poll)
    await asyncio.wait_for(_wait(), timeout=timeout)


class FakeResponse:
    def __init__(self, status=200, payload=None, text=""):
        self.status = status
        self._payload = payload
        self._text = text

    async def json(self, content_type="application/json"):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload

    async def text(self):
        return self._text

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


class FakeSession:
    """Replays responses (or raises exceptions) for successive GETs"""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []
        self.closed = False

    def get(self, url, params=None):
        self.calls.append((url, params))
        response = self.responses.pop(0)
        if isinstance(response, BaseException):
            raise response
        return response

    async def close(self):
        self.closed = True


@pytest.fixture
def make_fees():
    """Factory for PriorityFeeLevels"""
    def _factory(market_type="perp", market_index=0, **levels):
        if not levels:
            levels = {"low": 1, "medium": 10, "high": 100}
        return PriorityFeeLevels(market_type, market_index, levels)
    return _factory


@pytest.fixture
async def make_fee_map():
    """
    Factory for subscriber maps; every map created is unsubscribed
    at teardown so no polling task outlives its test.
    """
    maps = []

    def _factory(fetcher, markets=None, frequency_ms=50, endpoint=ENDPOINT):
        config = PriorityFeeSubscriberMapConfig(
            endpoint=endpoint,
            frequency_ms=frequency_ms,
            drift_markets=markets,
        )
        fee_map = PriorityFeeSubscriberMap(config, fetcher=fetcher)
        maps.append(fee_map)
        return fee_map

    yield _factory

    for fee_map in maps:
        await fee_map.unsubscribe()


@pytest.fixture
def perp0():
    return MarketRef("perp", 0)
