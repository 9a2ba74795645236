from __future__ import annotations

"""Rate source and rate cache abstractions.

A RateSource fetches a whole matrix for a requested pivot; a RateMatrixCache
persists matrices keyed by the pivot they are expressed in. The provider
(app.services.rate_service) composes both.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Optional

from app.models.rates import RateMatrix


class RateSourceError(Exception):
    """A rate fetch failed (network, HTTP status, malformed payload)."""


class RateSourceAuthError(RateSourceError):
    """The source refused the request (bad key, plan restriction on pivots)."""


class RateSource(ABC):
    name: str = "abstract"

    @abstractmethod
    async def fetch_latest(self, pivot: str) -> RateMatrix:
        """Return the latest matrix for `pivot`.

        The returned matrix's pivot is the one the source actually used, which
        may differ from the request. Raises RateSourceError on any failure.
        """
        raise NotImplementedError


@dataclass(frozen=True)
class CacheEntry:
    rates: Dict[str, float]
    timestamp: int  # epoch milliseconds
    pivot: str

    def to_matrix(self) -> RateMatrix:
        return RateMatrix(
            pivot=self.pivot,
            rates=self.rates,
            fetched_at=datetime.fromtimestamp(self.timestamp / 1000, tz=timezone.utc),
            source="cache",
        )


class RateMatrixCache(ABC):
    @abstractmethod
    def get(self, pivot: str) -> Optional[CacheEntry]:
        """Return the stored entry or None (absent or unreadable)."""
        raise NotImplementedError

    @abstractmethod
    def put(self, pivot: str, matrix: RateMatrix, timestamp_ms: int) -> None:
        raise NotImplementedError

    @abstractmethod
    def delete(self, pivot: str) -> None:
        raise NotImplementedError
