from datetime import date, datetime, timezone
from typing import List

from fastapi import APIRouter, Depends

from app.core.config import Settings
from app.core.errors import NotFoundError
from app.db.dal import Database
from app.models.goal import GoalIn, GoalOut, GoalProjectionOut, GoalUpdateIn
from app.routers.deps import get_app_settings, get_db, get_display_context, get_user_id
from app.services.currency_context import DisplayContext
from app.services.goal_utils import (
    GoalProjection,
    compute_goal_progress,
    compute_goal_projection,
    compute_recent_monthly_savings,
)
from app.services.money import format_currency, round2

"""Goals router.

Goal amounts are stored in the currency of record and converted to the
display currency on the way out, like transactions. The projection uses the
savings pace of the trailing window (settings.savings_window_days).
"""

router = APIRouter(prefix="/goals", tags=["goals"])


def _goal_out(row: dict, ctx: DisplayContext, monthly_savings: float) -> GoalOut:
    target_result = ctx.convert_detailed(float(row["target_amount"]))
    current_result = ctx.convert_detailed(float(row["current_amount"]))
    converted = target_result.converted and current_result.converted
    target, current = target_result.amount, current_result.amount
    if converted:
        shown_in = ctx.currency
        projection = compute_goal_projection(target, current, monthly_savings)
    else:
        # shown in the currency of record; no projection across currencies
        shown_in = target_result.from_currency
        projection = GoalProjection(
            remaining=round2(max(0.0, target - current)),
            monthly_savings=monthly_savings,
            months=None,
        )
    return GoalOut(
        id=row["id"],
        name=row["name"],
        target_amount=target,
        current_amount=current,
        deadline=date.fromisoformat(row["deadline"]),
        color=row.get("color"),
        currency=shown_in,
        # progress is currency independent; use stored values
        progress=compute_goal_progress(float(row["current_amount"]), float(row["target_amount"])),
        formatted_target=format_currency(target, shown_in),
        formatted_current=format_currency(current, shown_in),
        converted=converted,
        projection=GoalProjectionOut(
            remaining=projection.remaining,
            monthly_savings=projection.monthly_savings,
            months=projection.months,
            determined=projection.determined,
        ),
    )


def _monthly_savings(db: Database, user_id: str, ctx: DisplayContext, settings: Settings) -> float:
    rows = db.list_transactions(user_id)
    return compute_recent_monthly_savings(
        rows, ctx, as_of=datetime.now(timezone.utc), window_days=settings.savings_window_days
    )


def _require_goal(db: Database, user_id: str, goal_id: int) -> dict:
    row = db.get_goal(user_id, goal_id)
    if not row:
        raise NotFoundError(f"goal {goal_id} not found")
    return row


@router.get("", response_model=List[GoalOut], summary="List goals by deadline")
async def list_goals(
    user_id: str = Depends(get_user_id),
    db: Database = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
    ctx: DisplayContext = Depends(get_display_context),
):
    monthly = _monthly_savings(db, user_id, ctx, settings)
    return [_goal_out(r, ctx, monthly) for r in db.list_goals(user_id)]


@router.post("", response_model=GoalOut, status_code=201, summary="Create a goal")
async def create_goal(
    payload: GoalIn,
    user_id: str = Depends(get_user_id),
    db: Database = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
    ctx: DisplayContext = Depends(get_display_context),
):
    goal_id = db.insert_goal(user_id, payload.model_dump())
    monthly = _monthly_savings(db, user_id, ctx, settings)
    return _goal_out(_require_goal(db, user_id, goal_id), ctx, monthly)


@router.patch("/{goal_id}", response_model=GoalOut, summary="Edit a goal (partial)")
async def patch_goal(
    goal_id: int,
    payload: GoalUpdateIn,
    user_id: str = Depends(get_user_id),
    db: Database = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
    ctx: DisplayContext = Depends(get_display_context),
):
    _require_goal(db, user_id, goal_id)
    db.update_goal(user_id, goal_id, payload.model_dump(exclude_unset=True))
    monthly = _monthly_savings(db, user_id, ctx, settings)
    return _goal_out(_require_goal(db, user_id, goal_id), ctx, monthly)


@router.delete("/{goal_id}", status_code=204, summary="Delete a goal")
async def delete_goal(
    goal_id: int,
    user_id: str = Depends(get_user_id),
    db: Database = Depends(get_db),
):
    if not db.delete_goal(user_id, goal_id):
        raise NotFoundError(f"goal {goal_id} not found")
