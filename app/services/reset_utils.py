"""Utilities to reset a user's data ("reset application").

The reset operation removes the user's transactions while preserving
configuration (profile, display-currency preference, cached rates).

By default only transactions are deleted. Callers can also drop the user's
goals and stored preferences via the `wipe_all` flag if they explicitly need a
clean slate. Cached rate matrices are shared by every user and always kept.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging

from app.services.currency_context import PREFERENCE_KEY_PREFIX

logger = logging.getLogger("app.store")


@dataclass(frozen=True)
class ResetSummary:
    transactions: int
    goals: int = 0
    preferences: int = 0


def reset_user_data(db, user_id: str, wipe_all: bool = False) -> ResetSummary:
    """Reset a user's data.

    Parameters
    ----------
    db: Database instance (duck-typed).
    user_id: str
        Owner of the data; other users are never touched.
    wipe_all: bool
        When True, also remove goals and the stored display-currency
        preference (the profile row itself is kept).
    """
    transactions, goals, preferences = db.reset_user(
        user_id, wipe_all=wipe_all, metadata_keys=(f"{PREFERENCE_KEY_PREFIX}{user_id}",)
    )
    summary = ResetSummary(transactions, goals, preferences)
    logger.info(
        "reset data for user: %d transactions, %d goals, %d preferences",
        summary.transactions,
        summary.goals,
        summary.preferences,
    )
    return summary


__all__ = ["ResetSummary", "reset_user_data"]
