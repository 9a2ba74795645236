"""Domain constants and enumerations for validation.

Accounts and categories are suggestions for clients; both remain free text
on the transaction record. Pillars are a closed set.
"""

from dataclasses import dataclass
from typing import Dict, List, Tuple

EARN = "Earn"
SPEND = "Spend"
SAVE = "Save"
INVEST = "Invest"

PILLARS: Tuple[str, ...] = (EARN, SPEND, SAVE, INVEST)

ACCOUNTS: List[str] = [
    "Cash",
    "Bancolombia",
    "Nequi",
    "Davivienda",
    "Nu Bank",
    "Credit Card",
]

OTHER_CATEGORY = "Other"
NO_ACCOUNT = "No account"

CATEGORIES: List[str] = [
    "Home",
    "Transport",
    "Food",
    "Leisure",
    "Health",
    "Education",
    "Utilities",
    OTHER_CATEGORY,
]


@dataclass(frozen=True)
class CurrencyFormat:
    code: str
    locale: str
    label: str
    symbol: str
    thousands_sep: str
    decimal_sep: str
    symbol_after: bool = False
    symbol_space: bool = False
    max_decimals: int = 2


CURRENCY_FORMATS: Dict[str, CurrencyFormat] = {
    "COP": CurrencyFormat(
        "COP", "es-CO", "Colombian Peso ($)", "$", ".", ",", symbol_space=True, max_decimals=0
    ),
    "USD": CurrencyFormat("USD", "en-US", "US Dollar ($)", "$", ",", "."),
    "EUR": CurrencyFormat(
        "EUR", "es-ES", "Euro (€)", "€", ".", ",", symbol_after=True, symbol_space=True
    ),
    "MXN": CurrencyFormat("MXN", "es-MX", "Mexican Peso ($)", "$", ",", "."),
}
