"""Shared request dependencies for the routers."""

from __future__ import annotations

from typing import Optional

from fastapi import Depends, Header, HTTPException, Query, Request

from app.core.config import Settings, get_settings
from app.db.dal import Database
from app.services.currency_context import DisplayContext, build_display_context, resolve_display_currency
from app.services.rate_service import RateMatrixProvider, get_default_rate_matrix_provider


def get_app_settings(request: Request) -> Settings:
    return getattr(request.app.state, "settings", None) or get_settings()


def get_db(settings: Settings = Depends(get_app_settings)) -> Database:
    return Database(settings.db_path, settings.tz)  # type: ignore[arg-type]


def get_rate_provider(request: Request) -> RateMatrixProvider:
    return getattr(request.app.state, "rate_provider", None) or get_default_rate_matrix_provider()


def get_user_id(x_user_id: Optional[str] = Header(None, alias="X-User-Id")) -> str:
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=400, detail="X-User-Id header is required")
    return x_user_id.strip()


async def get_display_context(
    currency: Optional[str] = Query(
        None, description="Display currency override (defaults to the saved preference)"
    ),
    user_id: str = Depends(get_user_id),
    db: Database = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
    provider: RateMatrixProvider = Depends(get_rate_provider),
) -> DisplayContext:
    """One display currency and one rate snapshot for the whole request."""
    display = resolve_display_currency(
        db, user_id, settings.supported_currencies, settings.default_currency, override=currency
    )
    return await build_display_context(provider, display, settings.default_currency)
