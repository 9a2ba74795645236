from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, Field

"""Exchange rate matrix types.

A matrix holds rates for many currencies expressed against one pivot
(rates[pivot] == 1). The pivot is carried explicitly so a fallback pivot
substituted during fetching stays visible to callers and to the cache.
"""


@dataclass(frozen=True)
class RateMatrix:
    pivot: str
    rates: Mapping[str, float]
    fetched_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    source: str = "network"  # network | cache | fallback

    def __post_init__(self) -> None:
        object.__setattr__(self, "pivot", self.pivot.upper())
        object.__setattr__(
            self,
            "rates",
            MappingProxyType({k.upper(): float(v) for k, v in self.rates.items()}),
        )

    @property
    def is_empty(self) -> bool:
        return not self.rates

    def rate(self, currency: str) -> Optional[float]:
        return self.rates.get(currency.strip().upper())

    def with_source(self, source: str) -> "RateMatrix":
        return RateMatrix(self.pivot, dict(self.rates), self.fetched_at, source)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "pivot": self.pivot,
            "rates": dict(self.rates),
            "fetched_at": self.fetched_at.isoformat(),
            "source": self.source,
        }


class RateMatrixOut(BaseModel):
    pivot: str
    rates: Dict[str, float]
    fetched_at: datetime
    source: str


class ConversionOut(BaseModel):
    original_amount: float
    from_currency: str
    to_currency: str
    amount: float
    rate: Optional[float]
    converted: bool
    formatted: str


class OverrideSetPayload(BaseModel):
    currency: str = Field(..., description="Quote currency (e.g. COP, EUR)")
    rate: float = Field(..., gt=0, description="Units of currency per 1 USD")
    ttl_seconds: int = Field(
        900,
        gt=0,
        le=86400,
        description="Override TTL seconds (default 900 = 15m, max 24h)",
    )
