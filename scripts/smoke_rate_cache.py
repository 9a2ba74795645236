"""Smoke script for the rate matrix cache and pivot cascade.

Demonstrates:
 1. First access runs the cascade (source fetch, or static fallback without a key).
 2. Subsequent access within TTL is served from the cache (source == "cache").
 3. Invalidating the pivot forces a refetch.
 4. Concurrent requests for one pivot share a single lookup.

Uses the configured settings (EXCHANGE_RATE_API_KEY etc.) and an in-memory
cache, so nothing is written to the database.

NOTE: This is a lightweight diagnostic and not a formal test.
"""

import asyncio
from pprint import pprint

from app.core.config import get_settings
from app.services.rate_service import build_rate_matrix_provider
from app.services.rates.cache_service import InMemoryRateMatrixCache


def _describe(matrix):
    return {
        "pivot": matrix.pivot,
        "source": matrix.source,
        "fetched_at": matrix.fetched_at.isoformat(),
        "COP": matrix.rate("COP"),
        "EUR": matrix.rate("EUR"),
    }


async def run():
    settings = get_settings()
    provider = build_rate_matrix_provider(settings, InMemoryRateMatrixCache())
    out = {"initial": {}, "second": {}, "forced_refresh": {}, "concurrent": []}

    for pivot in ("COP", "USD"):
        out["initial"][pivot] = _describe(await provider.get_rate_matrix(pivot))

    for pivot in ("COP", "USD"):
        out["second"][pivot] = _describe(await provider.get_rate_matrix(pivot))

    for pivot in ("COP", "USD"):
        provider.invalidate(pivot)
        out["forced_refresh"][pivot] = _describe(await provider.get_rate_matrix(pivot))

    provider.invalidate("EUR")
    matrices = await asyncio.gather(*(provider.get_rate_matrix("EUR") for _ in range(3)))
    out["concurrent"] = [_describe(m) for m in matrices]

    pprint(out)


if __name__ == "__main__":
    asyncio.run(run())
