from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .constants import PILLARS


def normalize_currency_code(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    code = v.strip().upper()
    if len(code) != 3 or not code.isalpha():
        raise ValueError("currency must be a 3-letter code")
    return code


class TransactionIn(BaseModel):
    amount: float = Field(..., gt=0)
    currency: Optional[str] = Field(
        None, description="Currency the amount was entered in (defaults to currency of record)"
    )
    pillar: str
    account: str = Field(..., min_length=1, max_length=80)
    category: Optional[str] = Field(None, max_length=80)
    tag: Optional[str] = Field(None, max_length=80)
    description: Optional[str] = Field(None, max_length=200)
    date: Optional[datetime] = None

    @field_validator("currency")
    @classmethod
    def valid_currency(cls, v: Optional[str]) -> Optional[str]:
        return normalize_currency_code(v)

    @field_validator("pillar")
    @classmethod
    def valid_pillar(cls, v: str) -> str:
        if v not in PILLARS:
            raise ValueError(f"pillar must be one of {', '.join(PILLARS)}")
        return v

    @field_validator("date")
    @classmethod
    def aware_date(cls, v: Optional[datetime]) -> Optional[datetime]:
        # Naive timestamps are taken as UTC so storage comparisons stay consistent
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v


class TransactionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    date: datetime
    description: Optional[str] = None
    amount: float
    pillar: str
    account: str
    category: Optional[str] = None
    tag: Optional[str] = None
    original_currency: Optional[str] = None
    original_amount: Optional[float] = None
    exchange_rate: Optional[float] = None
    created_at: datetime
    updated_at: datetime
    # Presentation values in the requested display currency
    display_amount: float
    display_currency: str
    formatted: str
    converted: bool


# category, tag and description may be cleared; these may not
NOT_NULL_FIELDS = ("amount", "currency", "pillar", "account", "date")


class TransactionUpdateIn(BaseModel):
    """Partial update model.

    All fields optional; at least one must be provided. When `amount` or
    `currency` changes the canonical amount is recomputed from the current
    rate matrix.
    """

    amount: Optional[float] = Field(None, gt=0)
    currency: Optional[str] = None
    pillar: Optional[str] = None
    account: Optional[str] = Field(None, min_length=1, max_length=80)
    category: Optional[str] = Field(None, max_length=80)
    tag: Optional[str] = Field(None, max_length=80)
    description: Optional[str] = Field(None, max_length=200)
    date: Optional[datetime] = None

    @field_validator("currency")
    @classmethod
    def valid_currency(cls, v):  # type: ignore[override]
        return normalize_currency_code(v)

    @field_validator("pillar")
    @classmethod
    def valid_pillar(cls, v):  # type: ignore[override]
        if v is not None and v not in PILLARS:
            raise ValueError(f"pillar must be one of {', '.join(PILLARS)}")
        return v

    @field_validator("date")
    @classmethod
    def aware_date(cls, v):  # type: ignore[override]
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @model_validator(mode="after")
    def at_least_one(self):  # type: ignore[override]
        cleared = sorted(
            f for f in NOT_NULL_FIELDS if f in self.model_fields_set and getattr(self, f) is None
        )
        if cleared:
            raise ValueError(f"{', '.join(cleared)} cannot be null")
        if not any(getattr(self, f) is not None for f in self.model_fields_set):
            raise ValueError("at least one field must be provided for update")
        return self


class FilterSummary(BaseModel):
    income: float
    expenses: float
    balance: float
    currency: str
    formatted_income: str
    formatted_expenses: str
    formatted_balance: str
