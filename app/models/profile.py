from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field, field_validator

from .transaction import normalize_currency_code


class Profile(BaseModel):
    id: str
    email: Optional[str] = None
    full_name: Optional[str] = None
    onboarding_completed: bool = False
    currency: Optional[str] = None


class OnboardingIn(BaseModel):
    full_name: str = Field(..., min_length=1, max_length=120)
    email: Optional[str] = Field(None, max_length=254)


class CurrencyPreferenceIn(BaseModel):
    currency: str

    @field_validator("currency")
    @classmethod
    def valid_currency(cls, v: str) -> str:
        return normalize_currency_code(v)  # type: ignore[return-value]


class CurrencyPreferenceOut(BaseModel):
    currency: str
    locale: str
    label: str
    available: list[str]


class FormOptions(BaseModel):
    """Choices a client offers when entering a transaction."""

    pillars: list[str]
    accounts: list[str]
    categories: list[str]
    currencies: list[str]
