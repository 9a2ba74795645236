"""Tests for the rate matrix provider: cache freshness, pivot cascade, fallback, coalescing."""
import asyncio

import pytest

from app.core.errors import StoreError
from app.models.rates import RateMatrix
from app.services.rate_service import RateMatrixProvider, candidate_pivots
from app.services.rates.base import RateMatrixCache, RateSourceError
from app.services.rates.cache_service import InMemoryRateMatrixCache
from app.services.rates.providers import FALLBACK_RATES

from conftest import FakeRateSource

HOUR_MS = 3600 * 1000


class Clock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def cop_matrix() -> RateMatrix:
    return RateMatrix("COP", {"COP": 1.0, "USD": 0.00025, "EUR": 0.00023})


def usd_matrix() -> RateMatrix:
    return RateMatrix("USD", {"USD": 1.0, "COP": 4000.0, "EUR": 0.92})


def make_provider(source, cache=None, clock=None) -> RateMatrixProvider:
    return RateMatrixProvider(
        source=source,
        cache=cache if cache is not None else InMemoryRateMatrixCache(),
        ttl_seconds=3600,
        fallbacks=("USD", "EUR"),
        clock=clock or Clock(),
    )


def test_candidate_pivots_dedupes_in_order():
    assert candidate_pivots("usd", ["USD", "EUR"]) == ["USD", "EUR"]
    assert candidate_pivots("COP", ["USD", "EUR", "usd"]) == ["COP", "USD", "EUR"]


@pytest.mark.asyncio
async def test_fresh_cache_entry_skips_network():
    clock = Clock()
    cache = InMemoryRateMatrixCache()
    cache.put("COP", cop_matrix(), int(clock() * 1000) - HOUR_MS + 1000)
    source = FakeRateSource({"COP": cop_matrix()})
    provider = make_provider(source, cache, clock)

    matrix = await provider.get_rate_matrix("COP")

    assert source.calls == []
    assert matrix.pivot == "COP"
    assert matrix.source == "cache"


@pytest.mark.asyncio
async def test_expired_cache_entry_triggers_fetch():
    clock = Clock()
    cache = InMemoryRateMatrixCache()
    cache.put("COP", cop_matrix(), int(clock() * 1000) - HOUR_MS)
    source = FakeRateSource({"COP": cop_matrix()})
    provider = make_provider(source, cache, clock)

    matrix = await provider.get_rate_matrix("COP")

    assert source.calls == ["COP"]
    assert matrix.source == "network"


@pytest.mark.asyncio
async def test_cascade_falls_through_to_next_pivot_and_caches_actual_pivot():
    cache = InMemoryRateMatrixCache()
    source = FakeRateSource({"USD": usd_matrix()})
    provider = make_provider(source, cache)

    matrix = await provider.get_rate_matrix("COP")

    assert source.calls == ["COP", "USD"]
    assert matrix.pivot == "USD"
    assert cache.get("USD") is not None
    assert cache.get("COP") is None


@pytest.mark.asyncio
async def test_each_candidate_is_tried_once_then_fallback():
    source = FakeRateSource({"EUR": RateSourceError("timeout")})
    provider = make_provider(source)

    matrix = await provider.get_rate_matrix("COP")

    assert source.calls == ["COP", "USD", "EUR"]
    assert matrix.source == "fallback"
    assert matrix.pivot == "USD"
    assert dict(matrix.rates) == FALLBACK_RATES


@pytest.mark.asyncio
async def test_unexpected_source_exception_never_escapes():
    source = FakeRateSource({"COP": RuntimeError("boom"), "USD": usd_matrix()})
    provider = make_provider(source)

    matrix = await provider.get_rate_matrix("COP")

    assert matrix.pivot == "USD"


@pytest.mark.asyncio
async def test_empty_matrix_counts_as_failure():
    source = FakeRateSource({"COP": RateMatrix("COP", {}), "USD": usd_matrix()})
    provider = make_provider(source)

    matrix = await provider.get_rate_matrix("COP")

    assert source.calls == ["COP", "USD"]
    assert matrix.pivot == "USD"


@pytest.mark.asyncio
async def test_no_source_configured_goes_straight_to_fallback():
    provider = make_provider(None)
    matrix = await provider.get_rate_matrix("EUR")
    assert matrix.source == "fallback"


class BrokenCache(RateMatrixCache):
    def get(self, pivot):
        raise StoreError("Could not read local settings. Please try again.")

    def put(self, pivot, matrix, timestamp_ms):
        raise StoreError("Could not save local settings. Please try again.")

    def delete(self, pivot):
        raise StoreError("Could not clear local settings. Please try again.")


@pytest.mark.asyncio
async def test_unreadable_cache_is_a_miss_not_an_error():
    source = FakeRateSource({"COP": cop_matrix()})
    provider = make_provider(source, BrokenCache())

    matrix = await provider.get_rate_matrix("COP")

    assert matrix.pivot == "COP"
    assert source.calls == ["COP"]


class SlowSource(FakeRateSource):
    async def fetch_latest(self, pivot):
        await asyncio.sleep(0.01)
        return await super().fetch_latest(pivot)


@pytest.mark.asyncio
async def test_concurrent_requests_share_one_cascade():
    source = SlowSource({"COP": cop_matrix()})
    provider = make_provider(source)

    results = await asyncio.gather(*(provider.get_rate_matrix("COP") for _ in range(5)))

    assert source.calls == ["COP"]
    assert {m.pivot for m in results} == {"COP"}


@pytest.mark.asyncio
async def test_overrides_are_applied_in_matrix_pivot():
    source = FakeRateSource({"COP": cop_matrix()})
    provider = make_provider(source)
    provider.overrides.set("EUR", 0.5, ttl_seconds=60)

    matrix = await provider.get_rate_matrix("COP")

    # 0.5 EUR per USD, 0.00025 USD per COP
    assert matrix.rate("EUR") == pytest.approx(0.000125)
    assert matrix.rate("COP") == 1.0


@pytest.mark.asyncio
async def test_invalidate_forces_refetch():
    source = FakeRateSource({"COP": cop_matrix()})
    provider = make_provider(source)

    await provider.get_rate_matrix("COP")
    await provider.get_rate_matrix("COP")
    provider.invalidate("cop")
    await provider.get_rate_matrix("COP")

    assert source.calls == ["COP", "COP"]
