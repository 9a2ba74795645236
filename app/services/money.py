"""Money / rounding / display helpers.

Centralized so analytics, conversion, and endpoints use identical rounding
and formatting semantics. Formatting never converts; callers pass an amount
already expressed in the display currency.
"""

from __future__ import annotations
from decimal import Decimal, ROUND_HALF_UP

from app.models.constants import CURRENCY_FORMATS, CurrencyFormat


def round2(value: float) -> float:
    return float(Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def currency_format(currency: str) -> CurrencyFormat:
    """Formatting config for a currency; unknown codes use the first configured one."""
    fmt = CURRENCY_FORMATS.get(currency.strip().upper())
    if fmt is None:
        fmt = next(iter(CURRENCY_FORMATS.values()))
    return fmt


def _group(digits: str, sep: str) -> str:
    out = []
    while len(digits) > 3:
        out.insert(0, digits[-3:])
        digits = digits[:-3]
    out.insert(0, digits)
    return sep.join(out)


def format_currency(amount: float, currency: str) -> str:
    """Locale-style rendering: '$ 1.234.568' (COP), '$1,234.5' (USD), '1.234,56 €' (EUR)."""
    fmt = currency_format(currency)
    quant = Decimal(1) if fmt.max_decimals == 0 else Decimal(1).scaleb(-fmt.max_decimals)
    value = Decimal(str(amount)).quantize(quant, rounding=ROUND_HALF_UP)
    negative = value < 0
    text = f"{abs(value):f}"
    whole, _, frac = text.partition(".")
    frac = frac.rstrip("0")  # 0 to max_decimals fraction digits
    number = _group(whole, fmt.thousands_sep)
    if frac:
        number = f"{number}{fmt.decimal_sep}{frac}"
    space = " " if fmt.symbol_space else ""
    if fmt.symbol_after:
        rendered = f"{number}{space}{fmt.symbol}"
    else:
        rendered = f"{fmt.symbol}{space}{number}"
    return f"-{rendered}" if negative and value != 0 else rendered
