"""Data Access Layer for the finance tracker record store.

Responsibilities
----------------
- CRUD helpers for transactions, goals and profiles, always scoped to a
  user id (the opaque identity handed over by the auth layer).
- Filtered transaction queries (category exact match, tag substring, date
  range on local-calendar-day boundaries).
- A small metadata key/value API used by the rate matrix cache and the
  display-currency local cache.

Every sqlite failure is logged and re-raised as `StoreError` with a message
that can be shown to the user as-is.
"""

from __future__ import annotations

from contextlib import contextmanager
from datetime import date, datetime, time, timedelta, timezone, tzinfo
import logging
from pathlib import Path
import sqlite3
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

from app.core.errors import StoreError

UTC_NOW_SQL = "strftime('%Y-%m-%dT%H:%M:%fZ','now')"
TS_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"

TRANSACTION_COLUMNS = (
    "date",
    "description",
    "amount",
    "pillar",
    "account",
    "category",
    "tag",
    "original_currency",
    "original_amount",
    "exchange_rate",
)
GOAL_COLUMNS = ("name", "target_amount", "current_amount", "deadline", "color")

logger = logging.getLogger("app.store")


def to_storage_ts(value: datetime) -> str:
    """Serialize an aware datetime as a fixed-width UTC string (sortable as text)."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime(TS_FORMAT)


def from_storage_ts(value: str) -> datetime:
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def day_bounds_utc(
    start_date: Optional[date], end_date: Optional[date], tz: tzinfo
) -> tuple[Optional[str], Optional[str]]:
    """Convert an inclusive local-day range to [start, end) UTC storage strings."""
    lower = upper = None
    if start_date is not None:
        lower = to_storage_ts(datetime.combine(start_date, time.min, tzinfo=tz))
    if end_date is not None:
        upper = to_storage_ts(
            datetime.combine(end_date + timedelta(days=1), time.min, tzinfo=tz)
        )
    return lower, upper


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class Database:
    def __init__(self, db_path: Path, tz: Optional[tzinfo] = None):
        self.db_path = db_path
        self.tz = tz or timezone.utc

    # ------------------------------------------------------------------
    # Connection helpers
    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def _session(self, action: str) -> Iterator[sqlite3.Cursor]:
        """Yield a cursor inside a transaction; map driver errors to StoreError."""
        try:
            conn = self._connect()
        except sqlite3.Error as e:
            logger.error("could not open record store for %s", action, exc_info=True)
            raise StoreError(f"Could not {action}. Please try again.") from e
        try:
            with conn:
                yield conn.cursor()
        except sqlite3.Error as e:
            logger.error("record store failure while trying to %s", action, exc_info=True)
            raise StoreError(f"Could not {action}. Please try again.") from e
        finally:
            conn.close()

    # ------------------------------------------------------------------
    # Transactions
    def list_transactions(
        self,
        user_id: str,
        category: Optional[str] = None,
        tag: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> List[Dict[str, Any]]:
        clauses = ["user_id = ?"]
        params: List[Any] = [user_id]
        if category:
            clauses.append("category = ?")
            params.append(category)
        if tag:
            clauses.append("tag LIKE ? ESCAPE '\\'")
            params.append(f"%{_escape_like(tag)}%")
        lower, upper = day_bounds_utc(start_date, end_date, self.tz)
        if lower:
            clauses.append("date >= ?")
            params.append(lower)
        if upper:
            clauses.append("date < ?")
            params.append(upper)
        where = " WHERE " + " AND ".join(clauses)
        with self._session("load transactions") as cur:
            cur.execute(
                f"SELECT * FROM transactions{where} ORDER BY date DESC, id DESC", params
            )
            return [dict(r) for r in cur.fetchall()]

    def get_transaction(self, user_id: str, transaction_id: int) -> Optional[Dict[str, Any]]:
        with self._session("load the transaction") as cur:
            cur.execute(
                "SELECT * FROM transactions WHERE id = ? AND user_id = ?",
                (transaction_id, user_id),
            )
            row = cur.fetchone()
            return dict(row) if row else None

    def insert_transaction(self, user_id: str, values: Mapping[str, Any]) -> int:
        data = {k: values.get(k) for k in TRANSACTION_COLUMNS}
        if isinstance(data["date"], datetime):
            data["date"] = to_storage_ts(data["date"])
        columns = ", ".join(("user_id",) + TRANSACTION_COLUMNS)
        placeholders = ", ".join("?" for _ in range(len(TRANSACTION_COLUMNS) + 1))
        with self._session("save the transaction") as cur:
            cur.execute(
                f"INSERT INTO transactions ({columns}) VALUES ({placeholders})",
                [user_id] + [data[k] for k in TRANSACTION_COLUMNS],
            )
            return int(cur.lastrowid)

    def update_transaction(
        self, user_id: str, transaction_id: int, changes: Mapping[str, Any]
    ) -> bool:
        fields = {k: v for k, v in changes.items() if k in TRANSACTION_COLUMNS}
        if not fields:
            return False
        if isinstance(fields.get("date"), datetime):
            fields["date"] = to_storage_ts(fields["date"])
        assignments = ", ".join(f"{k} = ?" for k in fields)
        with self._session("update the transaction") as cur:
            cur.execute(
                f"UPDATE transactions SET {assignments}, updated_at = ({UTC_NOW_SQL}) "
                "WHERE id = ? AND user_id = ?",
                list(fields.values()) + [transaction_id, user_id],
            )
            return cur.rowcount > 0

    def delete_transaction(self, user_id: str, transaction_id: int) -> bool:
        with self._session("delete the transaction") as cur:
            cur.execute(
                "DELETE FROM transactions WHERE id = ? AND user_id = ?",
                (transaction_id, user_id),
            )
            return cur.rowcount > 0

    def reset_user(
        self, user_id: str, wipe_all: bool = False, metadata_keys: Sequence[str] = ()
    ) -> Tuple[int, int, int]:
        """Delete the user's transactions in one transaction.

        With `wipe_all` the user's goals, the given metadata keys and the saved
        profile currency go too. Returns (transactions, goals, metadata) counts.
        """
        with self._session("reset your data") as cur:
            cur.execute("DELETE FROM transactions WHERE user_id = ?", (user_id,))
            transactions = int(cur.rowcount)
            if not wipe_all:
                return transactions, 0, 0
            cur.execute("DELETE FROM goals WHERE user_id = ?", (user_id,))
            goals = int(cur.rowcount)
            metadata = 0
            for key in metadata_keys:
                cur.execute("DELETE FROM metadata WHERE key = ?", (key,))
                metadata += int(cur.rowcount)
            cur.execute("UPDATE profiles SET currency = NULL WHERE id = ?", (user_id,))
            return transactions, goals, metadata

    # ------------------------------------------------------------------
    # Goals
    def list_goals(self, user_id: str) -> List[Dict[str, Any]]:
        with self._session("load goals") as cur:
            cur.execute(
                "SELECT * FROM goals WHERE user_id = ? ORDER BY deadline ASC, id ASC",
                (user_id,),
            )
            return [dict(r) for r in cur.fetchall()]

    def get_goal(self, user_id: str, goal_id: int) -> Optional[Dict[str, Any]]:
        with self._session("load the goal") as cur:
            cur.execute(
                "SELECT * FROM goals WHERE id = ? AND user_id = ?", (goal_id, user_id)
            )
            row = cur.fetchone()
            return dict(row) if row else None

    def insert_goal(self, user_id: str, values: Mapping[str, Any]) -> int:
        data = {k: values.get(k) for k in GOAL_COLUMNS}
        if isinstance(data["deadline"], date):
            data["deadline"] = data["deadline"].isoformat()
        if data["current_amount"] is None:
            data["current_amount"] = 0.0
        with self._session("save the goal") as cur:
            cur.execute(
                "INSERT INTO goals (user_id, name, target_amount, current_amount, deadline, color) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                [user_id] + [data[k] for k in GOAL_COLUMNS],
            )
            return int(cur.lastrowid)

    def update_goal(self, user_id: str, goal_id: int, changes: Mapping[str, Any]) -> bool:
        fields = {k: v for k, v in changes.items() if k in GOAL_COLUMNS}
        if not fields:
            return False
        if isinstance(fields.get("deadline"), date):
            fields["deadline"] = fields["deadline"].isoformat()
        assignments = ", ".join(f"{k} = ?" for k in fields)
        with self._session("update the goal") as cur:
            cur.execute(
                f"UPDATE goals SET {assignments}, updated_at = ({UTC_NOW_SQL}) "
                "WHERE id = ? AND user_id = ?",
                list(fields.values()) + [goal_id, user_id],
            )
            return cur.rowcount > 0

    def delete_goal(self, user_id: str, goal_id: int) -> bool:
        with self._session("delete the goal") as cur:
            cur.execute("DELETE FROM goals WHERE id = ? AND user_id = ?", (goal_id, user_id))
            return cur.rowcount > 0

    # ------------------------------------------------------------------
    # Profiles
    def get_profile(self, user_id: str) -> Optional[Dict[str, Any]]:
        with self._session("load your profile") as cur:
            cur.execute("SELECT * FROM profiles WHERE id = ?", (user_id,))
            row = cur.fetchone()
            if not row:
                return None
            profile = dict(row)
            profile["onboarding_completed"] = bool(profile["onboarding_completed"])
            return profile

    def upsert_profile(
        self,
        user_id: str,
        full_name: Optional[str] = None,
        email: Optional[str] = None,
        onboarding_completed: Optional[bool] = None,
    ) -> None:
        """Update the profile row, inserting it when the update touched nothing."""
        changes: Dict[str, Any] = {}
        if full_name is not None:
            changes["full_name"] = full_name
        if email is not None:
            changes["email"] = email
        if onboarding_completed is not None:
            changes["onboarding_completed"] = 1 if onboarding_completed else 0
        with self._session("save your profile") as cur:
            updated = 0
            if changes:
                assignments = ", ".join(f"{k} = ?" for k in changes)
                cur.execute(
                    f"UPDATE profiles SET {assignments}, updated_at = ({UTC_NOW_SQL}) WHERE id = ?",
                    list(changes.values()) + [user_id],
                )
                updated = cur.rowcount
            if not updated:
                cur.execute(
                    "INSERT OR IGNORE INTO profiles (id, email, full_name, onboarding_completed) "
                    "VALUES (?, ?, ?, ?)",
                    (
                        user_id,
                        email,
                        full_name,
                        changes.get("onboarding_completed", 0),
                    ),
                )

    def set_profile_currency(self, user_id: str, currency: str) -> None:
        with self._session("save your currency preference") as cur:
            cur.execute(
                f"UPDATE profiles SET currency = ?, updated_at = ({UTC_NOW_SQL}) WHERE id = ?",
                (currency, user_id),
            )
            if cur.rowcount == 0:
                cur.execute(
                    "INSERT INTO profiles (id, currency) VALUES (?, ?)", (user_id, currency)
                )

    # ------------------------------------------------------------------
    # Metadata key/value
    def get_metadata(self, key: str) -> Optional[str]:
        with self._session("read local settings") as cur:
            cur.execute("SELECT value FROM metadata WHERE key = ?", (key,))
            row = cur.fetchone()
            return row[0] if row else None

    def set_metadata(self, key: str, value: str) -> None:
        with self._session("save local settings") as cur:
            cur.execute(
                "INSERT INTO metadata (key, value) VALUES (?, ?) "
                f"ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = ({UTC_NOW_SQL})",
                (key, value),
            )

    def delete_metadata(self, key: str) -> bool:
        with self._session("clear local settings") as cur:
            cur.execute("DELETE FROM metadata WHERE key = ?", (key,))
            return cur.rowcount > 0
