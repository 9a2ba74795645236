"""Goal helpers: progress, recent savings, completion projection, simulator.

Goal progress depends only on the goal's own amounts. The projection adds a
savings pace taken from recent Save transactions; with no pace the result is
explicitly undetermined rather than infinite.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional

from app.models.constants import SAVE
from app.services.analytics_utils import _as_datetime, transaction_display_amount
from app.services.currency_context import DisplayContext
from app.services.money import round2

DEFAULT_SAVINGS_WINDOW_DAYS = 30


def compute_goal_progress(current: float, target: float) -> int:
    """Whole percent in [0, 100]; a non-positive target counts as 1."""
    safe_target = target if target > 0 else 1.0
    return int(min(100, max(0, round(current / safe_target * 100))))


def compute_recent_monthly_savings(
    transactions: Iterable[Mapping[str, Any]],
    ctx: DisplayContext,
    as_of: Optional[datetime] = None,
    window_days: int = DEFAULT_SAVINGS_WINDOW_DAYS,
) -> float:
    """Sum of Save transactions dated within (as_of - window, as_of]."""
    as_of = as_of or datetime.now(timezone.utc)
    if as_of.tzinfo is None:
        as_of = as_of.replace(tzinfo=timezone.utc)
    window_start = as_of - timedelta(days=window_days)
    total = 0.0
    for t in transactions:
        if t.get("pillar") != SAVE:
            continue
        when = _as_datetime(t.get("date"))
        if when is None or not (window_start < when <= as_of):
            continue
        total += transaction_display_amount(t, ctx)
    return round2(total)


@dataclass(frozen=True)
class GoalProjection:
    remaining: float
    monthly_savings: float
    months: Optional[int]  # None: undetermined

    @property
    def determined(self) -> bool:
        return self.months is not None


def compute_goal_projection(
    target: float, current: float, monthly_savings: float
) -> GoalProjection:
    remaining = round2(max(0.0, target - current))
    if remaining == 0:
        return GoalProjection(remaining=0.0, monthly_savings=monthly_savings, months=0)
    if monthly_savings <= 0:
        return GoalProjection(remaining=remaining, monthly_savings=monthly_savings, months=None)
    return GoalProjection(
        remaining=remaining,
        monthly_savings=monthly_savings,
        months=math.ceil(remaining / monthly_savings),
    )


# ---------------- Compound interest simulator -----------------
@dataclass(frozen=True)
class CompoundInterestResult:
    yearly: List[Dict[str, int]]
    total_invested: int
    total_interest: int
    final_balance: int


def simulate_compound_interest(
    initial_amount: float,
    monthly_contribution: float,
    annual_rate_pct: float,
    years: int,
) -> CompoundInterestResult:
    """Month-by-month compounding with contributions added before interest.

    Yearly snapshots start at year 0 (initial amount only); values are rounded
    to whole currency units for display.
    """
    balance = float(initial_amount)
    invested = float(initial_amount)
    monthly_rate = annual_rate_pct / 100 / 12
    yearly: List[Dict[str, int]] = []
    for year in range(years + 1):
        yearly.append(
            {
                "year": year,
                "invested": round(invested),
                "interest": round(balance - invested),
                "balance": round(balance),
            }
        )
        if year < years:
            for _ in range(12):
                balance = (balance + monthly_contribution) * (1 + monthly_rate)
                invested += monthly_contribution
    return CompoundInterestResult(
        yearly=yearly,
        total_invested=round(invested),
        total_interest=round(balance - invested),
        final_balance=round(balance),
    )
