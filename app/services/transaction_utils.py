"""Transaction write/read helpers.

`amount` on a stored row is always in the currency of record. Amounts entered
in another currency are converted on write with the current rate matrix and
the user-entered pair is kept next to it (`original_amount`,
`original_currency`) together with the rate used (`exchange_rate`, record
units per original unit).
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Mapping

from app.models.rates import RateMatrix
from app.models.transaction import TransactionIn, TransactionOut, TransactionUpdateIn
from app.services.analytics_utils import transaction_conversion
from app.services.currency_context import DisplayContext
from app.services.money import format_currency, round2
from app.services.rates.conversion import convert_detailed


class UnconvertibleAmountError(ValueError):
    """No usable rate to express an amount in the currency of record."""


def to_record_currency(
    amount: float, currency: str, record_currency: str, matrix: RateMatrix
) -> Dict[str, Any]:
    """Stored money columns for an amount entered in `currency`."""
    result = convert_detailed(amount, currency, record_currency, matrix)
    if not result.converted:
        raise UnconvertibleAmountError(f"No exchange rate available for {result.from_currency}")
    return {
        "amount": result.amount,
        "original_amount": round2(amount),
        "original_currency": result.from_currency,
        "exchange_rate": result.rate,
    }


def build_transaction_values(
    payload: TransactionIn, record_currency: str, matrix: RateMatrix
) -> Dict[str, Any]:
    values = payload.model_dump(exclude={"amount", "currency"})
    values["date"] = payload.date or datetime.now(timezone.utc)
    values.update(
        to_record_currency(
            payload.amount, payload.currency or record_currency, record_currency, matrix
        )
    )
    return values


def build_transaction_changes(
    existing: Mapping[str, Any],
    payload: TransactionUpdateIn,
    record_currency: str,
    matrix: RateMatrix,
) -> Dict[str, Any]:
    """Column changes for a partial update.

    Touching `amount` or `currency` re-derives every money column; the missing
    half of the pair is taken from the stored row.
    """
    changes = payload.model_dump(exclude_unset=True, exclude={"amount", "currency"})
    if "amount" in payload.model_fields_set or "currency" in payload.model_fields_set:
        amount = payload.amount
        if amount is None:
            amount = existing.get("original_amount") or existing["amount"]
        currency = payload.currency or existing.get("original_currency") or record_currency
        changes.update(to_record_currency(float(amount), currency, record_currency, matrix))
    return changes


def transaction_out(row: Mapping[str, Any], ctx: DisplayContext) -> TransactionOut:
    result = transaction_conversion(row, ctx)
    # unconverted values keep their own currency label
    shown_in = result.to_currency if result.converted else result.from_currency
    return TransactionOut(
        **dict(row),
        display_amount=result.amount,
        display_currency=shown_in,
        formatted=format_currency(result.amount, shown_in),
        converted=result.converted,
    )
