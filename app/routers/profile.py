from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from app.core.config import Settings
from app.db.dal import Database
from app.models.constants import ACCOUNTS, CATEGORIES, PILLARS
from app.models.profile import (
    CurrencyPreferenceIn,
    CurrencyPreferenceOut,
    FormOptions,
    OnboardingIn,
    Profile,
)
from app.routers.deps import get_app_settings, get_db, get_user_id
from app.services.currency_context import resolve_display_currency, save_display_currency
from app.services.money import currency_format

"""Profile router: onboarding state and display-currency preference.

A user without a profile row is a first-time user (onboarding pending);
the row is created lazily by the first write.
"""

router = APIRouter(prefix="/profile", tags=["profile"])


def _preference_out(currency: str, settings: Settings) -> CurrencyPreferenceOut:
    fmt = currency_format(currency)
    return CurrencyPreferenceOut(
        currency=currency,
        locale=fmt.locale,
        label=fmt.label,
        available=list(settings.supported_currencies),
    )


@router.get("", response_model=Profile, summary="Current user's profile")
async def get_profile(user_id: str = Depends(get_user_id), db: Database = Depends(get_db)):
    row = db.get_profile(user_id)
    if row is None:
        return Profile(id=user_id)
    return Profile(**row)


@router.put("/onboarding", response_model=Profile, summary="Complete onboarding")
async def complete_onboarding(
    payload: OnboardingIn,
    user_id: str = Depends(get_user_id),
    db: Database = Depends(get_db),
):
    db.upsert_profile(
        user_id,
        full_name=payload.full_name.strip(),
        email=payload.email,
        onboarding_completed=True,
    )
    return Profile(**db.get_profile(user_id))  # type: ignore[arg-type]


@router.get("/currency", response_model=CurrencyPreferenceOut, summary="Display currency preference")
async def get_currency(
    user_id: str = Depends(get_user_id),
    db: Database = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    currency = resolve_display_currency(
        db, user_id, settings.supported_currencies, settings.default_currency
    )
    return _preference_out(currency, settings)


@router.put("/currency", response_model=CurrencyPreferenceOut, summary="Change display currency")
async def set_currency(
    payload: CurrencyPreferenceIn,
    user_id: str = Depends(get_user_id),
    db: Database = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    if payload.currency not in settings.supported_currencies:
        raise HTTPException(
            status_code=400,
            detail=f"Unsupported currency {payload.currency}. Allowed: {', '.join(settings.supported_currencies)}",
        )
    save_display_currency(db, user_id, payload.currency)
    return _preference_out(payload.currency, settings)


@router.get("/form-options", response_model=FormOptions, summary="Choices for transaction forms")
async def form_options(
    user_id: str = Depends(get_user_id),
    settings: Settings = Depends(get_app_settings),
):
    return FormOptions(
        pillars=list(PILLARS),
        accounts=sorted(ACCOUNTS),
        categories=sorted(CATEGORIES),
        currencies=list(settings.supported_currencies),
    )
