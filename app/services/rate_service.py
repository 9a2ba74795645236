"""Rate matrix provider: cache check, pivot cascade, static fallback.

Contract (`get_rate_matrix(preferred_pivot)`):
  1. Fresh cache entry for the preferred pivot (younger than the TTL) is
     returned without touching the network. Corrupt entries count as a miss.
  2. Otherwise each candidate pivot (preferred, then the configured fallbacks)
     is tried once, in order, until one succeeds. Any source failure moves on
     to the next candidate; there is no backoff.
  3. A success is cached under the pivot the source actually used.
  4. If nothing succeeds (or no source is configured) the built-in USD table
     is returned. This method never raises.

Concurrent callers asking for the same pivot share one in-flight lookup.
"""

from __future__ import annotations

import asyncio
import logging
import time
from functools import lru_cache
from typing import Callable, Dict, List, Optional, Sequence

from app.core.config import Settings, get_settings
from app.core.errors import StoreError
from app.models.rates import RateMatrix
from app.services.rates.base import RateMatrixCache, RateSource, RateSourceAuthError, RateSourceError
from app.services.rates.cache_service import InMemoryRateMatrixCache, RateOverrideStore
from app.services.rates.providers import fallback_matrix, make_rate_source

logger = logging.getLogger("app.rates")


def candidate_pivots(preferred: str, fallbacks: Sequence[str]) -> List[str]:
    out: List[str] = []
    for code in [preferred, *fallbacks]:
        code = code.strip().upper()
        if code and code not in out:
            out.append(code)
    return out


class RateMatrixProvider:
    def __init__(
        self,
        source: Optional[RateSource],
        cache: RateMatrixCache,
        ttl_seconds: int = 3600,
        fallbacks: Sequence[str] = ("USD", "EUR"),
        overrides: Optional[RateOverrideStore] = None,
        clock: Callable[[], float] = time.time,
    ):
        self._source = source
        self._cache = cache
        self._ttl_ms = int(ttl_seconds * 1000)
        self._fallbacks = list(fallbacks)
        self._clock = clock
        self.overrides = overrides or RateOverrideStore()
        self._inflight: Dict[str, "asyncio.Task[RateMatrix]"] = {}

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    # Internal --------------------------------------------------
    def _cached(self, pivot: str) -> Optional[RateMatrix]:
        try:
            entry = self._cache.get(pivot)
        except StoreError:
            logger.warning("rate cache unreadable for %s; treating as miss", pivot)
            return None
        if entry is None or not entry.rates:
            return None
        age = self._now_ms() - entry.timestamp
        if age < 0 or age >= self._ttl_ms:
            logger.debug("rate cache for %s expired (%d ms old)", pivot, age)
            return None
        return entry.to_matrix()

    def _store(self, matrix: RateMatrix) -> None:
        try:
            self._cache.put(matrix.pivot, matrix, self._now_ms())
        except StoreError:
            logger.warning("could not persist rate matrix for %s", matrix.pivot)

    async def _cascade(self, preferred: str) -> RateMatrix:
        if self._source is None:
            return fallback_matrix()
        for pivot in candidate_pivots(preferred, self._fallbacks):
            try:
                matrix = await self._source.fetch_latest(pivot)
            except RateSourceAuthError as e:
                logger.info("rate source refused pivot %s: %s", pivot, e)
                continue
            except RateSourceError as e:
                logger.warning("rate fetch for pivot %s failed: %s", pivot, e)
                continue
            except Exception:
                # get_rate_matrix never raises
                logger.exception("unexpected rate source failure for pivot %s", pivot)
                continue
            if matrix.is_empty:
                logger.warning("rate source returned an empty matrix for %s", pivot)
                continue
            if matrix.pivot != preferred:
                logger.info("using %s-pivoted rates in place of %s", matrix.pivot, preferred)
            self._store(matrix)
            return matrix
        logger.warning("all rate sources failed for %s; using static fallback rates", preferred)
        return fallback_matrix()

    async def _lookup(self, preferred: str) -> RateMatrix:
        cached = self._cached(preferred)
        if cached is not None:
            return cached
        return await self._cascade(preferred)

    # Public API -----------------------------------------------
    async def get_rate_matrix(self, preferred_pivot: str) -> RateMatrix:
        preferred = preferred_pivot.strip().upper()
        task = self._inflight.get(preferred)
        if task is None or task.get_loop() is not asyncio.get_running_loop():
            task = asyncio.ensure_future(self._lookup(preferred))
            self._inflight[preferred] = task
            task.add_done_callback(lambda t, key=preferred: self._forget(key, t))
        matrix = await asyncio.shield(task)
        return self.overrides.apply(matrix)

    def _forget(self, key: str, task: "asyncio.Task[RateMatrix]") -> None:
        if self._inflight.get(key) is task:
            self._inflight.pop(key, None)

    def invalidate(self, pivot: str) -> None:
        try:
            self._cache.delete(pivot.strip().upper())
        except StoreError:
            logger.warning("could not clear rate cache for %s", pivot)


def build_rate_matrix_provider(
    settings: Settings, cache: Optional[RateMatrixCache] = None
) -> RateMatrixProvider:
    return RateMatrixProvider(
        source=make_rate_source(settings.exchange_rate_provider, settings),
        cache=cache or InMemoryRateMatrixCache(),
        ttl_seconds=settings.rates_cache_ttl_seconds,
        fallbacks=settings.pivot_fallbacks,
    )


# Singleton used when no app state is available (scripts)
@lru_cache
def get_default_rate_matrix_provider() -> RateMatrixProvider:
    return build_rate_matrix_provider(get_settings())
