"""Pydantic domain models for the Finance Tracker API."""

from .constants import (
    PILLARS,
    EARN,
    SPEND,
    SAVE,
    INVEST,
    ACCOUNTS,
    CATEGORIES,
    CURRENCY_FORMATS,
)  # re-export
from .transaction import TransactionIn, TransactionOut, TransactionUpdateIn
from .goal import GoalIn, GoalOut, GoalUpdateIn
from .profile import Profile, OnboardingIn, CurrencyPreferenceIn
from .rates import RateMatrix

__all__ = [
    "PILLARS",
    "EARN",
    "SPEND",
    "SAVE",
    "INVEST",
    "ACCOUNTS",
    "CATEGORIES",
    "CURRENCY_FORMATS",
    "TransactionIn",
    "TransactionOut",
    "TransactionUpdateIn",
    "GoalIn",
    "GoalOut",
    "GoalUpdateIn",
    "Profile",
    "OnboardingIn",
    "CurrencyPreferenceIn",
    "RateMatrix",
]
