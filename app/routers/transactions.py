from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from app.core.config import Settings
from app.core.errors import NotFoundError
from app.db.dal import Database
from app.models.transaction import FilterSummary, TransactionIn, TransactionOut, TransactionUpdateIn
from app.routers.deps import get_app_settings, get_db, get_display_context, get_rate_provider, get_user_id
from app.services.analytics_utils import compute_filter_summary
from app.services.currency_context import DisplayContext
from app.services.rate_service import RateMatrixProvider
from app.services.reset_utils import reset_user_data
from app.services.transaction_utils import (
    UnconvertibleAmountError,
    build_transaction_changes,
    build_transaction_values,
    transaction_out,
)

router = APIRouter(prefix="/transactions", tags=["transactions"])


# Request / Response Models ---------------------------------------
class ResetResponse(BaseModel):
    status: str
    deleted: int
    goals_deleted: int = 0


class TransactionFilters(BaseModel):
    category: Optional[str] = None
    tag: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None


# Dependencies -----------------------------------------------------


def get_filters(
    category: Optional[str] = Query(None, description="Filter: exact category"),
    tag: Optional[str] = Query(None, description="Filter: tag contains"),
    start_date: Optional[date] = Query(None, description="Filter: start date inclusive"),
    end_date: Optional[date] = Query(None, description="Filter: end date inclusive"),
) -> TransactionFilters:
    if start_date and end_date and start_date > end_date:
        raise HTTPException(status_code=400, detail="start_date cannot be after end_date")
    return TransactionFilters(
        category=category or None, tag=tag or None, start_date=start_date, end_date=end_date
    )


# Helpers ----------------------------------------------------------


def _require_transaction(db: Database, user_id: str, transaction_id: int) -> dict:
    row = db.get_transaction(user_id, transaction_id)
    if not row:
        raise NotFoundError(f"transaction {transaction_id} not found")
    return row


# Routes -----------------------------------------------------------
@router.get("", response_model=List[TransactionOut], summary="List transactions with optional filters")
async def list_transactions(
    filters: TransactionFilters = Depends(get_filters),
    user_id: str = Depends(get_user_id),
    db: Database = Depends(get_db),
    ctx: DisplayContext = Depends(get_display_context),
):
    rows = db.list_transactions(user_id, **filters.model_dump())
    return [transaction_out(r, ctx) for r in rows]


@router.get("/summary", response_model=FilterSummary, summary="Income vs expenses of the filtered list")
async def transactions_summary(
    filters: TransactionFilters = Depends(get_filters),
    user_id: str = Depends(get_user_id),
    db: Database = Depends(get_db),
    ctx: DisplayContext = Depends(get_display_context),
):
    rows = db.list_transactions(user_id, **filters.model_dump())
    summary = compute_filter_summary(rows, ctx)
    return FilterSummary(
        income=summary.income,
        expenses=summary.expenses,
        balance=summary.balance,
        currency=ctx.currency,
        formatted_income=ctx.format(summary.income),
        formatted_expenses=ctx.format(summary.expenses),
        formatted_balance=ctx.format(summary.balance),
    )


@router.post("", response_model=TransactionOut, status_code=201, summary="Record a transaction")
async def create_transaction(
    payload: TransactionIn,
    user_id: str = Depends(get_user_id),
    db: Database = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
    provider: RateMatrixProvider = Depends(get_rate_provider),
    ctx: DisplayContext = Depends(get_display_context),
):
    # 1. Express the amount in the currency of record
    matrix = await provider.get_rate_matrix(settings.default_currency)
    try:
        values = build_transaction_values(payload, settings.default_currency, matrix)
    except UnconvertibleAmountError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    # 2. Persist and read back
    transaction_id = db.insert_transaction(user_id, values)
    return transaction_out(_require_transaction(db, user_id, transaction_id), ctx)


@router.get("/{transaction_id}", response_model=TransactionOut, summary="Get one transaction")
async def get_transaction(
    transaction_id: int,
    user_id: str = Depends(get_user_id),
    db: Database = Depends(get_db),
    ctx: DisplayContext = Depends(get_display_context),
):
    return transaction_out(_require_transaction(db, user_id, transaction_id), ctx)


@router.patch("/{transaction_id}", response_model=TransactionOut, summary="Edit a transaction (partial)")
async def patch_transaction(
    transaction_id: int,
    payload: TransactionUpdateIn,
    user_id: str = Depends(get_user_id),
    db: Database = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
    provider: RateMatrixProvider = Depends(get_rate_provider),
    ctx: DisplayContext = Depends(get_display_context),
):
    existing = _require_transaction(db, user_id, transaction_id)
    matrix = await provider.get_rate_matrix(settings.default_currency)
    try:
        changes = build_transaction_changes(existing, payload, settings.default_currency, matrix)
    except UnconvertibleAmountError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    if changes:
        db.update_transaction(user_id, transaction_id, changes)
    return transaction_out(_require_transaction(db, user_id, transaction_id), ctx)


@router.delete("/{transaction_id}", status_code=204, summary="Delete a transaction")
async def delete_transaction(
    transaction_id: int,
    user_id: str = Depends(get_user_id),
    db: Database = Depends(get_db),
):
    if not db.delete_transaction(user_id, transaction_id):
        raise NotFoundError(f"transaction {transaction_id} not found")


@router.delete("", response_model=ResetResponse, summary="Reset: delete every transaction of the user")
async def reset_transactions(
    wipe_all: bool = Query(False, description="Also delete goals and the saved display currency"),
    user_id: str = Depends(get_user_id),
    db: Database = Depends(get_db),
):
    summary = reset_user_data(db, user_id, wipe_all=wipe_all)
    return ResetResponse(status="reset", deleted=summary.transactions, goals_deleted=summary.goals)
