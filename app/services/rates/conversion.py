from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Mapping, Optional, Union

from app.models.rates import RateMatrix
from app.services.money import round2

"""Cross-rate conversion.

Every rate in a matrix is "units of currency per 1 pivot", so
(amount / rate[from]) * rate[to] is correct whichever currency the pivot is:
the pivot cancels out. Rounding (round2) is applied once, on the result.

Degraded mode: same currency, missing matrix, or a missing/unusable rate
returns the amount unchanged. `convert_detailed` reports that through
`converted=False` so presentation can flag the value; `convert` only logs.
"""

logger = logging.getLogger("app.conversion")

MatrixLike = Union[RateMatrix, Mapping[str, float], None]


@dataclass(frozen=True)
class ConversionResult:
    original_amount: float
    from_currency: str
    to_currency: str
    amount: float
    rate: Optional[float]  # to-units per from-unit; None when unconverted
    converted: bool


def _lookup(matrix: MatrixLike, currency: str) -> Optional[float]:
    if matrix is None:
        return None
    if isinstance(matrix, RateMatrix):
        value = matrix.rate(currency)
    else:
        value = matrix.get(currency)
        if value is None:
            value = matrix.get(currency.lower())
    if value is None:
        return None
    try:
        value = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(value) or value <= 0:
        return None
    return value


def _is_empty(matrix: MatrixLike) -> bool:
    if matrix is None:
        return True
    if isinstance(matrix, RateMatrix):
        return matrix.is_empty
    return not matrix


def convert_detailed(
    amount: float, from_currency: str, to_currency: str, matrix: MatrixLike
) -> ConversionResult:
    src = from_currency.strip().upper()
    dst = to_currency.strip().upper()
    if src == dst:
        return ConversionResult(amount, src, dst, amount, 1.0, True)
    if _is_empty(matrix):
        logger.warning("no exchange rates loaded; showing %s %s unconverted", amount, src)
        return ConversionResult(amount, src, dst, amount, None, False)
    rate_from = _lookup(matrix, src)
    rate_to = _lookup(matrix, dst)
    if rate_from is None or rate_to is None:
        missing = ", ".join(c for c, r in ((src, rate_from), (dst, rate_to)) if r is None)
        logger.warning(
            "missing exchange rate for %s; showing %s %s unconverted", missing, amount, src
        )
        return ConversionResult(amount, src, dst, amount, None, False)
    converted = round2((amount / rate_from) * rate_to)
    return ConversionResult(amount, src, dst, converted, rate_to / rate_from, True)


def convert(amount: float, from_currency: str, to_currency: str, matrix: MatrixLike) -> float:
    return convert_detailed(amount, from_currency, to_currency, matrix).amount
