from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional, Protocol

from app.models.rates import RateMatrix
from .base import CacheEntry, RateMatrixCache

"""Rate matrix cache stores and manual overrides.

Purpose:
    Persist whole rate matrices keyed by pivot with an epoch-ms timestamp so
    the provider can skip the network while an entry is fresh.

Design:
    - Entries have the shape {"rates": {...}, "timestamp": <ms>, "pivot": "USD"}.
    - Freshness is decided by the provider, not the store; stores only
      validate shape. Unreadable entries are dropped and reported as a miss.
    - MetadataRateMatrixCache keeps entries in the metadata table under
      `rates_cache:<PIVOT>` so they survive restarts; InMemoryRateMatrixCache
      is the process-local variant.

Overrides:
    Manual per-currency rates (units per 1 USD) with an expiry, applied by the
    provider on top of whatever matrix it returns.
"""

logger = logging.getLogger("app.rates.cache")

CACHE_KEY_PREFIX = "rates_cache:"


class _MetadataStore(Protocol):  # minimal protocol satisfied by app.db.dal.Database
    def get_metadata(self, key: str) -> Optional[str]: ...

    def set_metadata(self, key: str, value: str) -> None: ...

    def delete_metadata(self, key: str) -> bool: ...


def parse_entry(raw: object) -> Optional[CacheEntry]:
    """Validate a decoded cache blob; None when it is not a usable entry."""
    if not isinstance(raw, dict):
        return None
    rates = raw.get("rates")
    timestamp = raw.get("timestamp")
    pivot = raw.get("pivot")
    if not isinstance(rates, dict) or not rates:
        return None
    if not isinstance(timestamp, (int, float)) or isinstance(timestamp, bool):
        return None
    if not isinstance(pivot, str) or not pivot:
        return None
    try:
        clean = {str(k).upper(): float(v) for k, v in rates.items()}
    except (TypeError, ValueError):
        return None
    return CacheEntry(rates=clean, timestamp=int(timestamp), pivot=pivot.upper())


def serialize_entry(matrix: RateMatrix, timestamp_ms: int) -> str:
    return json.dumps(
        {"rates": dict(matrix.rates), "timestamp": timestamp_ms, "pivot": matrix.pivot},
        separators=(",", ":"),
    )


class InMemoryRateMatrixCache(RateMatrixCache):
    def __init__(self) -> None:
        self._entries: Dict[str, str] = {}

    def get(self, pivot: str) -> Optional[CacheEntry]:
        key = pivot.upper()
        raw = self._entries.get(key)
        if raw is None:
            return None
        try:
            entry = parse_entry(json.loads(raw))
        except ValueError:
            entry = None
        if entry is None:
            logger.warning("discarding corrupt rate cache entry for %s", key)
            self._entries.pop(key, None)
        return entry

    def put(self, pivot: str, matrix: RateMatrix, timestamp_ms: int) -> None:
        self._entries[pivot.upper()] = serialize_entry(matrix, timestamp_ms)

    def delete(self, pivot: str) -> None:
        self._entries.pop(pivot.upper(), None)

    def put_raw(self, pivot: str, raw: str) -> None:
        """Store an arbitrary blob (diagnostics / tests of corrupt entries)."""
        self._entries[pivot.upper()] = raw


class MetadataRateMatrixCache(RateMatrixCache):
    def __init__(self, store: _MetadataStore):
        self._store = store

    @staticmethod
    def _key(pivot: str) -> str:
        return f"{CACHE_KEY_PREFIX}{pivot.upper()}"

    def get(self, pivot: str) -> Optional[CacheEntry]:
        raw = self._store.get_metadata(self._key(pivot))
        if raw is None:
            return None
        try:
            entry = parse_entry(json.loads(raw))
        except ValueError:
            entry = None
        if entry is None:
            logger.warning("discarding corrupt rate cache entry for %s", pivot.upper())
            self._store.delete_metadata(self._key(pivot))
        return entry

    def put(self, pivot: str, matrix: RateMatrix, timestamp_ms: int) -> None:
        self._store.set_metadata(self._key(pivot), serialize_entry(matrix, timestamp_ms))

    def delete(self, pivot: str) -> None:
        self._store.delete_metadata(self._key(pivot))


@dataclass
class _OverrideEntry:
    rate: float
    expires_at: datetime


class RateOverrideStore:
    """Manual per-currency overrides, in-memory; process restart clears them."""

    def __init__(self) -> None:
        self._overrides: Dict[str, _OverrideEntry] = {}

    def _purge_expired(self) -> None:
        now = datetime.now(timezone.utc)
        expired = [k for k, v in self._overrides.items() if v.expires_at <= now]
        for k in expired:
            self._overrides.pop(k, None)

    def set(self, currency: str, rate: float, ttl_seconds: int) -> None:
        currency = currency.strip().upper()
        if rate <= 0:
            raise ValueError("override rate must be positive")
        if ttl_seconds <= 0:
            raise ValueError("override ttl must be positive seconds")
        if currency == "USD":
            raise ValueError("USD is the override reference currency")
        self._overrides[currency] = _OverrideEntry(
            rate=rate,
            expires_at=datetime.now(timezone.utc) + timedelta(seconds=ttl_seconds),
        )

    def clear(self, currency: str) -> bool:
        return self._overrides.pop(currency.strip().upper(), None) is not None

    def active(self) -> Dict[str, float]:
        self._purge_expired()
        return {c: v.rate for c, v in self._overrides.items()}

    def list(self) -> Dict[str, Dict[str, str | float]]:
        self._purge_expired()
        return {
            c: {"rate": v.rate, "expires_at": v.expires_at.isoformat()}
            for c, v in self._overrides.items()
        }

    def apply(self, matrix: RateMatrix) -> RateMatrix:
        """Re-express USD-relative overrides in the matrix's pivot."""
        overrides = self.active()
        if not overrides:
            return matrix
        usd = matrix.rate("USD")
        if not usd or usd <= 0:
            logger.warning(
                "cannot apply rate overrides: matrix pivoted at %s has no USD rate",
                matrix.pivot,
            )
            return matrix
        rates = dict(matrix.rates)
        for currency, per_usd in overrides.items():
            if currency == matrix.pivot:
                continue  # pivot stays at 1 by construction
            rates[currency] = per_usd * usd
        return RateMatrix(matrix.pivot, rates, matrix.fetched_at, matrix.source)
