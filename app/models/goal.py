from __future__ import annotations

from datetime import date
from typing import Optional

from pydantic import BaseModel, Field, model_validator


class GoalIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    target_amount: float = Field(..., gt=0)
    current_amount: float = Field(0, ge=0)
    deadline: date
    color: Optional[str] = Field(None, max_length=32)


# stored columns an update may change but never clear
NOT_NULL_FIELDS = ("name", "target_amount", "current_amount", "deadline")


class GoalUpdateIn(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=120)
    target_amount: Optional[float] = Field(None, gt=0)
    current_amount: Optional[float] = Field(None, ge=0)
    deadline: Optional[date] = None
    color: Optional[str] = Field(None, max_length=32)

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


class GoalProjectionOut(BaseModel):
    remaining: float
    monthly_savings: float
    months: Optional[int]
    determined: bool


class GoalOut(BaseModel):
    id: int
    name: str
    target_amount: float
    current_amount: float
    deadline: date
    color: Optional[str] = None
    currency: str
    progress: int
    formatted_target: str
    formatted_current: str
    converted: bool = True
    projection: GoalProjectionOut
