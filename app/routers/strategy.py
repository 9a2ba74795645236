from typing import Dict, List

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from app.routers.deps import get_display_context
from app.services.currency_context import DisplayContext
from app.services.goal_utils import simulate_compound_interest

router = APIRouter(prefix="/strategy", tags=["strategy"])


class CompoundInterestIn(BaseModel):
    initial_amount: float = Field(1_000_000, ge=0)
    monthly_contribution: float = Field(200_000, ge=0)
    annual_rate_pct: float = Field(10, ge=0, le=100, description="Effective annual rate, percent")
    years: int = Field(10, ge=0, le=60)


class CompoundInterestOut(BaseModel):
    currency: str
    yearly: List[Dict[str, int]]
    total_invested: int
    total_interest: int
    final_balance: int
    formatted_final_balance: str


@router.post(
    "/compound-interest",
    response_model=CompoundInterestOut,
    summary="Simulate compound growth with monthly contributions",
)
async def compound_interest(
    payload: CompoundInterestIn,
    ctx: DisplayContext = Depends(get_display_context),
):
    """Amounts are taken as-is in the display currency; nothing is converted."""
    result = simulate_compound_interest(
        payload.initial_amount,
        payload.monthly_contribution,
        payload.annual_rate_pct,
        payload.years,
    )
    return CompoundInterestOut(
        currency=ctx.currency,
        yearly=result.yearly,
        total_invested=result.total_invested,
        total_interest=result.total_interest,
        final_balance=result.final_balance,
        formatted_final_balance=ctx.format(result.final_balance),
    )
