from __future__ import annotations

from typing import Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from app.core.config import Settings
from app.models.rates import ConversionOut, OverrideSetPayload, RateMatrixOut
from app.routers.deps import get_app_settings, get_rate_provider, get_user_id
from app.services.money import format_currency
from app.services.rate_service import RateMatrixProvider
from app.services.rates.conversion import convert_detailed

"""Rates router: current matrix, one-off conversion and manual overrides.

Endpoints:
    - GET /rates/matrix?pivot=           -> rate matrix (pivot may differ when a fallback served it)
    - GET /rates/convert?amount&from&to  -> converted amount (unconverted flagged, never an error)
    - GET /rates/overrides               -> list active overrides
    - POST /rates/overrides              -> set override {currency, rate, ttl_seconds}
    - DELETE /rates/overrides/{currency} -> clear override

Override endpoints are guarded by settings.enable_rate_override. Overrides
are in-memory only; process restart clears them. Suitable for manual
fallback when the external API is down.
"""

router = APIRouter(prefix="/rates", tags=["rates"], dependencies=[Depends(get_user_id)])


def require_override_enabled(settings: Settings = Depends(get_app_settings)):
    if not settings.enable_rate_override:
        raise HTTPException(status_code=403, detail="rate override feature disabled")
    return True


@router.get("/matrix", response_model=RateMatrixOut, summary="Current rate matrix")
async def rate_matrix(
    pivot: Optional[str] = Query(None, description="Preferred pivot (defaults to currency of record)"),
    settings: Settings = Depends(get_app_settings),
    provider: RateMatrixProvider = Depends(get_rate_provider),
):
    matrix = await provider.get_rate_matrix(pivot or settings.default_currency)
    return RateMatrixOut(
        pivot=matrix.pivot,
        rates=dict(matrix.rates),
        fetched_at=matrix.fetched_at,
        source=matrix.source,
    )


@router.get("/convert", response_model=ConversionOut, summary="Convert an amount between currencies")
async def convert_amount(
    amount: float = Query(...),
    from_currency: str = Query(..., alias="from", min_length=3, max_length=3),
    to_currency: str = Query(..., alias="to", min_length=3, max_length=3),
    provider: RateMatrixProvider = Depends(get_rate_provider),
):
    matrix = await provider.get_rate_matrix(to_currency)
    result = convert_detailed(amount, from_currency, to_currency, matrix)
    shown_in = result.to_currency if result.converted else result.from_currency
    return ConversionOut(
        original_amount=result.original_amount,
        from_currency=result.from_currency,
        to_currency=result.to_currency,
        amount=result.amount,
        rate=result.rate,
        converted=result.converted,
        formatted=format_currency(result.amount, shown_in),
    )


@router.get("/overrides", summary="List active manual rate overrides")
async def list_overrides(
    _: bool = Depends(require_override_enabled),
    provider: RateMatrixProvider = Depends(get_rate_provider),
) -> Dict[str, Dict[str, str | float]]:
    return provider.overrides.list()


@router.post("/overrides", summary="Set a manual rate override")
async def set_override(
    payload: OverrideSetPayload,
    _: bool = Depends(require_override_enabled),
    provider: RateMatrixProvider = Depends(get_rate_provider),
):
    try:
        provider.overrides.set(payload.currency, payload.rate, payload.ttl_seconds)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    return {
        "status": "ok",
        "override": provider.overrides.list().get(payload.currency.strip().upper()),
    }


@router.delete("/overrides/{currency}", summary="Clear a manual rate override")
async def clear_override(
    currency: str,
    _: bool = Depends(require_override_enabled),
    provider: RateMatrixProvider = Depends(get_rate_provider),
):
    removed = provider.overrides.clear(currency)
    if not removed:
        raise HTTPException(status_code=404, detail="override not found")
    return {"status": "deleted", "currency": currency.upper()}
