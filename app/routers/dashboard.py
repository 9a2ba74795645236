from __future__ import annotations

from typing import Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from app.core.config import Settings
from app.db.dal import Database
from app.routers.deps import get_app_settings, get_db, get_display_context, get_user_id
from app.services.analytics_utils import (
    compute_account_balances,
    compute_category_breakdown,
    compute_health_score,
    compute_monthly_cash_flow,
    compute_pillar_totals,
)
from app.services.currency_context import DisplayContext

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


class AccountBalanceOut(BaseModel):
    account: str
    balance: float
    negative: bool
    formatted: str


class HealthOut(BaseModel):
    score: float
    status: str
    message: str
    earn: float
    save: float
    invest: float


class DashboardOut(BaseModel):
    currency: str
    totals: Dict[str, float]
    formatted_totals: Dict[str, str]
    unconverted: int
    accounts: List[AccountBalanceOut]
    health: HealthOut
    rates_pivot: str
    rates_source: str


class MonthlyFlowOut(BaseModel):
    month: str
    label: str
    earn: float
    spend: float


class CategoryBreakdownOut(BaseModel):
    category: str
    total: float
    percent: float
    formatted: str


def _health_out(totals) -> HealthOut:
    health = compute_health_score(totals)
    return HealthOut(
        score=health.score,
        status=health.status,
        message=health.message,
        earn=health.earn,
        save=health.save,
        invest=health.invest,
    )


@router.get("", response_model=DashboardOut, summary="Pillar totals, account balances and health")
async def dashboard(
    user_id: str = Depends(get_user_id),
    db: Database = Depends(get_db),
    ctx: DisplayContext = Depends(get_display_context),
):
    """Whole-dashboard snapshot; every figure comes from one rate matrix."""
    rows = db.list_transactions(user_id)
    totals = compute_pillar_totals(rows, ctx)
    accounts = compute_account_balances(rows, ctx)
    return DashboardOut(
        currency=ctx.currency,
        totals=totals.as_dict(),
        formatted_totals={k: ctx.format(v) for k, v in totals.as_dict().items()},
        unconverted=totals.unconverted,
        accounts=[
            AccountBalanceOut(
                account=a.account,
                balance=a.balance,
                negative=a.negative,
                formatted=ctx.format(a.balance),
            )
            for a in accounts
        ],
        health=_health_out(totals),
        rates_pivot=ctx.matrix.pivot,
        rates_source=ctx.matrix.source,
    )


@router.get("/cash-flow", response_model=List[MonthlyFlowOut], summary="Earn vs Spend per month")
async def cash_flow(
    user_id: str = Depends(get_user_id),
    db: Database = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
    ctx: DisplayContext = Depends(get_display_context),
):
    rows = db.list_transactions(user_id)
    return [
        MonthlyFlowOut(month=m.month, label=m.label, earn=m.earn, spend=m.spend)
        for m in compute_monthly_cash_flow(rows, ctx, settings.tz)
    ]


@router.get(
    "/categories",
    response_model=List[CategoryBreakdownOut],
    summary="Spend by category (largest first)",
)
async def categories(
    category: Optional[str] = None,
    user_id: str = Depends(get_user_id),
    db: Database = Depends(get_db),
    ctx: DisplayContext = Depends(get_display_context),
):
    rows = db.list_transactions(user_id, category=category or None)
    return [
        CategoryBreakdownOut(
            category=i.category, total=i.total, percent=i.percent, formatted=ctx.format(i.total)
        )
        for i in compute_category_breakdown(rows, ctx)
    ]


@router.get("/health", response_model=HealthOut, summary="Savings-rate health score")
async def health_score(
    user_id: str = Depends(get_user_id),
    db: Database = Depends(get_db),
    ctx: DisplayContext = Depends(get_display_context),
):
    return _health_out(compute_pillar_totals(db.list_transactions(user_id), ctx))
