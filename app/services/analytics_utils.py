from __future__ import annotations

import logging
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime, timezone, tzinfo
from typing import Any, Dict, Iterable, List, Mapping, Optional

from app.db.dal import from_storage_ts
from app.models.constants import EARN, INVEST, NO_ACCOUNT, OTHER_CATEGORY, PILLARS, SAVE, SPEND
from app.services.currency_context import DisplayContext
from app.services.money import round2
from app.services.rates.conversion import ConversionResult

"""Dashboard aggregation helpers.

Scopes implemented:
    - Pillar totals (Earn / Spend / Save / Invest)
    - Account balances (Earn in, everything else out)
    - Monthly cash flow (Earn vs Spend per calendar month)
    - Category breakdown (Spend only)
    - Savings-rate health score
    - Filter summary (income vs expenses of a filtered list)

Design notes:
    All functions are pure folds over transaction rows plus one DisplayContext
    captured by the caller, so a whole pass converts with a single rate
    snapshot. Conversion never fails: unconverted values are counted, not
    raised.
"""

logger = logging.getLogger("app.analytics")

Transaction = Mapping[str, Any]


def transaction_conversion(t: Transaction, ctx: DisplayContext) -> ConversionResult:
    """Display value of one transaction.

    The user-entered amount/currency pair wins when both are recorded; legacy
    rows only have `amount`, which is in the currency of record.
    """
    original_amount = t.get("original_amount")
    original_currency = t.get("original_currency")
    if original_amount is not None and original_currency:
        return ctx.convert_detailed(float(original_amount), original_currency)
    return ctx.convert_detailed(float(t.get("amount") or 0.0))


def transaction_display_amount(t: Transaction, ctx: DisplayContext) -> float:
    return transaction_conversion(t, ctx).amount


def _as_datetime(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, str) and value:
        try:
            return from_storage_ts(value)
        except ValueError:
            logger.warning("skipping transaction with unreadable date %r", value)
            return None
    return None


# ---------------- Pillar totals -----------------
@dataclass(frozen=True)
class PillarTotals:
    earn: float
    spend: float
    save: float
    invest: float
    currency: str
    unconverted: int = 0

    def as_dict(self) -> Dict[str, float]:
        return {EARN: self.earn, SPEND: self.spend, SAVE: self.save, INVEST: self.invest}


def compute_pillar_totals(
    transactions: Iterable[Transaction], ctx: DisplayContext
) -> PillarTotals:
    sums = {p: 0.0 for p in PILLARS}
    unconverted = 0
    for t in transactions:
        pillar = t.get("pillar")
        if pillar not in sums:
            continue
        result = transaction_conversion(t, ctx)
        if not result.converted:
            unconverted += 1
        sums[pillar] += result.amount
    return PillarTotals(
        earn=round2(sums[EARN]),
        spend=round2(sums[SPEND]),
        save=round2(sums[SAVE]),
        invest=round2(sums[INVEST]),
        currency=ctx.currency,
        unconverted=unconverted,
    )


# ---------------- Account balances -----------------
@dataclass(frozen=True)
class AccountBalance:
    account: str
    balance: float

    @property
    def negative(self) -> bool:
        return self.balance < 0


def compute_account_balances(
    transactions: Iterable[Transaction], ctx: DisplayContext
) -> List[AccountBalance]:
    """Per-account net: Earn flows in, Spend/Save/Invest flow out of the account."""
    balances: "OrderedDict[str, float]" = OrderedDict()
    for t in transactions:
        pillar = t.get("pillar")
        if pillar not in PILLARS:
            continue
        account = (t.get("account") or "").strip() or NO_ACCOUNT
        amount = transaction_display_amount(t, ctx)
        balances.setdefault(account, 0.0)
        balances[account] += amount if pillar == EARN else -amount
    return [AccountBalance(account=a, balance=round2(b)) for a, b in balances.items()]


# ---------------- Monthly cash flow -----------------
MONTH_LABELS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


@dataclass(frozen=True)
class MonthlyFlow:
    month: str  # YYYY-MM
    earn: float
    spend: float

    @property
    def label(self) -> str:
        year, month = self.month.split("-")
        return f"{MONTH_LABELS[int(month) - 1]} {year}"


def compute_monthly_cash_flow(
    transactions: Iterable[Transaction], ctx: DisplayContext, tz: tzinfo = timezone.utc
) -> List[MonthlyFlow]:
    """Earn and Spend per local calendar month; months without activity are absent."""
    buckets: Dict[str, Dict[str, float]] = {}
    for t in transactions:
        pillar = t.get("pillar")
        if pillar not in (EARN, SPEND):
            continue
        when = _as_datetime(t.get("date"))
        if when is None:
            continue
        key = when.astimezone(tz).strftime("%Y-%m")
        bucket = buckets.setdefault(key, {EARN: 0.0, SPEND: 0.0})
        bucket[pillar] += transaction_display_amount(t, ctx)
    return [
        MonthlyFlow(month=k, earn=round2(v[EARN]), spend=round2(v[SPEND]))
        for k, v in sorted(buckets.items())
    ]


# ---------------- Category breakdown -----------------
@dataclass(frozen=True)
class CategoryBreakdownItem:
    category: str
    total: float
    percent: float


def compute_category_breakdown(
    transactions: Iterable[Transaction], ctx: DisplayContext
) -> List[CategoryBreakdownItem]:
    """Spend totals per category (empty category -> 'Other'), largest first."""
    totals: Dict[str, float] = {}
    for t in transactions:
        if t.get("pillar") != SPEND:
            continue
        category = (t.get("category") or "").strip() or OTHER_CATEGORY
        totals[category] = totals.get(category, 0.0) + transaction_display_amount(t, ctx)
    grand = sum(totals.values())
    items = [
        CategoryBreakdownItem(
            category=c,
            total=round2(v),
            percent=round2(v / grand * 100) if grand > 0 else 0.0,
        )
        for c, v in totals.items()
    ]
    items.sort(key=lambda i: (-i.total, i.category))
    return items


# ---------------- Savings-rate health score -----------------
EXCELLENT_THRESHOLD = 30
STABLE_THRESHOLD = 10
HEALTH_MESSAGES: Dict[str, str] = {
    "excellent": "You are building wealth!",
    "stable": "You are on the right track.",
    "critical": "You need to save more.",
}


@dataclass(frozen=True)
class HealthScore:
    score: float
    status: str
    earn: float
    save: float
    invest: float

    @property
    def message(self) -> str:
        return HEALTH_MESSAGES[self.status]


def health_status(score: float) -> str:
    if score >= EXCELLENT_THRESHOLD:
        return "excellent"
    if score >= STABLE_THRESHOLD:
        return "stable"
    return "critical"


def compute_health_score(totals: PillarTotals) -> HealthScore:
    """Savings rate (Save + Invest over Earn) as a 0..100 score.

    With no recorded income the denominator is 1, so any saving scores high
    instead of zero.
    """
    denom = totals.earn if totals.earn > 0 else 1.0
    raw = (totals.save + totals.invest) / denom * 100
    score = round2(min(100.0, max(0.0, raw)))
    return HealthScore(
        score=score,
        status=health_status(score),
        earn=totals.earn,
        save=totals.save,
        invest=totals.invest,
    )


# ---------------- Filter summary -----------------
@dataclass(frozen=True)
class FilterSummaryResult:
    income: float
    expenses: float
    balance: float


def compute_filter_summary(
    transactions: Iterable[Transaction], ctx: DisplayContext
) -> FilterSummaryResult:
    """Income vs expenses of a (filtered) list; Save/Invest are left out."""
    income = expenses = 0.0
    for t in transactions:
        pillar = t.get("pillar")
        if pillar == EARN:
            income += transaction_display_amount(t, ctx)
        elif pillar == SPEND:
            expenses += transaction_display_amount(t, ctx)
    return FilterSummaryResult(
        income=round2(income), expenses=round2(expenses), balance=round2(income - expenses)
    )
