from __future__ import annotations

"""Concrete rate sources and factory.

'exchangerate-api' fetches `{base_url}/{api_key}/latest/{pivot}`. Free plans
restrict which pivots may be requested; those refusals come back as
`result: error` payloads (or 401/403) and are raised as RateSourceAuthError so
the provider can move on to the next candidate pivot.

'static' always answers with the built-in USD-pivoted table.
"""
import logging
from datetime import datetime, timezone
from typing import Callable, Dict, Optional

import httpx

from app.core.config import Settings
from app.models.rates import RateMatrix
from app.services.http_client import HttpError, get_json
from .base import RateSource, RateSourceAuthError, RateSourceError

logger = logging.getLogger("app.rates")

FALLBACK_PIVOT = "USD"

# Approximate units per 1 USD; used only when no live or cached matrix exists.
FALLBACK_RATES: Dict[str, float] = {
    "USD": 1.0,
    "COP": 4000.0,
    "EUR": 0.92,
    "MXN": 17.0,
    "GBP": 0.79,
    "BRL": 5.0,
    "ARS": 850.0,
    "CLP": 950.0,
    "PEN": 3.75,
    "CAD": 1.36,
}

AUTH_ERROR_TYPES = {
    "unsupported-code",
    "invalid-key",
    "inactive-account",
    "plan-upgrade-required",
    "quota-reached",
}


def fallback_matrix() -> RateMatrix:
    return RateMatrix(
        pivot=FALLBACK_PIVOT,
        rates=FALLBACK_RATES,
        fetched_at=datetime.now(timezone.utc),
        source="fallback",
    )


class StaticRateSource(RateSource):
    name = "static"

    async def fetch_latest(self, pivot: str) -> RateMatrix:  # type: ignore[override]
        # Pivot is ignored: the table is always USD based and says so.
        return fallback_matrix().with_source("network")


class ExchangeRateApiSource(RateSource):
    name = "exchangerate-api"

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._base_url = str(base_url).rstrip("/")
        self._api_key = api_key
        self._timeout = timeout
        self._transport = transport

    async def fetch_latest(self, pivot: str) -> RateMatrix:  # type: ignore[override]
        pivot = pivot.upper()
        url = f"{self._base_url}/{self._api_key}/latest/{pivot}"
        try:
            data = await get_json(url, timeout=self._timeout, transport=self._transport)
        except HttpError as e:
            if e.status_code in (401, 403):
                raise RateSourceAuthError(str(e)) from e
            raise RateSourceError(str(e)) from e

        if data.get("result") != "success":
            error_type = str(data.get("error-type", "unknown"))
            if error_type in AUTH_ERROR_TYPES:
                raise RateSourceAuthError(f"pivot {pivot} refused: {error_type}")
            raise RateSourceError(f"pivot {pivot} failed: {error_type}")

        rates = data.get("conversion_rates")
        if not isinstance(rates, dict) or not rates:
            raise RateSourceError(f"pivot {pivot}: payload without conversion_rates")
        try:
            clean = {str(k).upper(): float(v) for k, v in rates.items()}
        except (TypeError, ValueError) as e:
            raise RateSourceError(f"pivot {pivot}: non-numeric rate in payload") from e
        actual = str(data.get("base_code") or pivot).upper()
        updated = data.get("time_last_update_unix")
        fetched_at = (
            datetime.fromtimestamp(int(updated), tz=timezone.utc)
            if isinstance(updated, (int, float))
            else datetime.now(timezone.utc)
        )
        return RateMatrix(pivot=actual, rates=clean, fetched_at=fetched_at, source="network")


def _make_exchangerate_api(settings: Settings) -> Optional[RateSource]:
    if not settings.exchange_rate_api_key:
        logger.warning("exchange rate API key is missing; using static fallback rates")
        return None
    return ExchangeRateApiSource(
        base_url=str(settings.exchange_api_base_url),
        api_key=settings.exchange_rate_api_key,
        timeout=settings.http_timeout_seconds,
    )


_SOURCE_REGISTRY: Dict[str, Callable[[Settings], Optional[RateSource]]] = {
    "exchangerate-api": _make_exchangerate_api,
    "static": lambda settings: StaticRateSource(),
}


def make_rate_source(kind: str, settings: Settings) -> Optional[RateSource]:
    """Build the configured source; None means 'no credential, use fallback'."""
    factory = _SOURCE_REGISTRY.get(kind)
    if not factory:
        raise ValueError(f"Unknown rate provider kind '{kind}'")
    return factory(settings)
