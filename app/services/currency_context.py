"""Display-currency context.

The display currency is an explicit input to every conversion: handlers
resolve it once per request (query override, profile, local cache, default)
and capture it together with a rate matrix in an immutable `DisplayContext`.
An aggregation pass only ever sees that one snapshot.

`CurrencySession` is the long-lived counterpart for a client that keeps a
selection open (a dashboard connection, a script): switching currency tags
the next refresh with the new code and late responses for an old code, or
for a closed session, are dropped.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional, Protocol

from app.models.rates import RateMatrix
from app.services.money import format_currency
from app.services.rates.conversion import ConversionResult, convert_detailed

logger = logging.getLogger("app.currency")

PREFERENCE_KEY_PREFIX = "display_currency:"


class _ProfileStore(Protocol):
    def get_profile(self, user_id: str): ...

    def set_profile_currency(self, user_id: str, currency: str) -> None: ...

    def get_metadata(self, key: str) -> Optional[str]: ...

    def set_metadata(self, key: str, value: str) -> None: ...


class _MatrixProvider(Protocol):
    async def get_rate_matrix(self, preferred_pivot: str) -> RateMatrix: ...


@dataclass(frozen=True)
class DisplayContext:
    currency: str
    matrix: RateMatrix
    default_currency: str = "COP"

    def convert_detailed(self, amount: float, original_currency: Optional[str] = None) -> ConversionResult:
        return convert_detailed(
            amount, original_currency or self.default_currency, self.currency, self.matrix
        )

    def convert(self, amount: float, original_currency: Optional[str] = None) -> float:
        return self.convert_detailed(amount, original_currency).amount

    def format(self, amount: float) -> str:
        return format_currency(amount, self.currency)

    def convert_and_format(self, amount: float, original_currency: Optional[str] = None) -> str:
        return self.format(self.convert(amount, original_currency))


# ---------------- Preference persistence -----------------


def _preference_key(user_id: str) -> str:
    return f"{PREFERENCE_KEY_PREFIX}{user_id}"


def resolve_display_currency(
    store: _ProfileStore,
    user_id: str,
    supported: Iterable[str],
    default_currency: str,
    override: Optional[str] = None,
) -> str:
    """Pick the display currency: explicit override, profile, local cache, default."""
    allowed = {c.upper() for c in supported}
    if override and override.strip().upper() in allowed:
        return override.strip().upper()
    profile = store.get_profile(user_id)
    if profile and profile.get("currency") and profile["currency"].upper() in allowed:
        return profile["currency"].upper()
    cached = store.get_metadata(_preference_key(user_id))
    if cached and cached.upper() in allowed:
        return cached.upper()
    return default_currency


def save_display_currency(store: _ProfileStore, user_id: str, currency: str) -> None:
    """Persist to the local cache first, then the profile (last write wins)."""
    store.set_metadata(_preference_key(user_id), currency)
    store.set_profile_currency(user_id, currency)


async def build_display_context(
    provider: _MatrixProvider, currency: str, default_currency: str
) -> DisplayContext:
    matrix = await provider.get_rate_matrix(currency)
    return DisplayContext(currency=currency, matrix=matrix, default_currency=default_currency)


# ---------------- Long-lived selection -----------------


class CurrencySession:
    def __init__(
        self,
        provider: _MatrixProvider,
        currency: str,
        default_currency: str = "COP",
        store: Optional[_ProfileStore] = None,
        user_id: Optional[str] = None,
    ):
        self._provider = provider
        self._store = store
        self._user_id = user_id
        self._default_currency = default_currency
        self._currency = currency.upper()
        self._context: Optional[DisplayContext] = None
        self._alive = True

    @property
    def currency(self) -> str:
        return self._currency

    @property
    def alive(self) -> bool:
        return self._alive

    def set_currency(self, currency: str) -> None:
        """Switch selection; the persisted preference follows when a store is wired."""
        self._currency = currency.strip().upper()
        if self._store is not None and self._user_id is not None:
            save_display_currency(self._store, self._user_id, self._currency)

    async def refresh(self) -> Optional[DisplayContext]:
        """Fetch rates for the current selection.

        Returns the new snapshot, or None when the response was discarded
        because the selection changed or the session closed meanwhile.
        """
        requested = self._currency
        matrix = await self._provider.get_rate_matrix(requested)
        if not self._alive:
            logger.debug("session closed; dropping %s rates", requested)
            return None
        if requested != self._currency:
            logger.debug("selection moved %s -> %s; dropping stale rates", requested, self._currency)
            return None
        self._context = DisplayContext(requested, matrix, self._default_currency)
        return self._context

    def snapshot(self) -> Optional[DisplayContext]:
        ctx = self._context
        if ctx is not None and ctx.currency != self._currency:
            return None
        return ctx

    def close(self) -> None:
        self._alive = False
