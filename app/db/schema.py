"""Database schema DDL definitions and initialization utilities.

Tables:
  - profiles: one row per user id (name, onboarding flag, display currency)
  - transactions: pillar-classified money movements; `amount` is stored in the
    currency of record, `original_*` columns keep what the user entered
  - goals: savings goals (target/current amounts, deadline)
  - metadata: key/value store (schema version, rate matrix cache entries,
    display-currency local cache)
"""

from __future__ import annotations
import sqlite3
from typing import Sequence
from pathlib import Path

BASIC_UTC_NOW = "strftime('%Y-%m-%dT%H:%M:%fZ','now')"

PROFILES_DDL = f"""
CREATE TABLE IF NOT EXISTS profiles (
    id TEXT PRIMARY KEY,
    email TEXT,
    full_name TEXT,
    onboarding_completed INTEGER NOT NULL DEFAULT 0,
    currency TEXT,
    created_at TEXT NOT NULL DEFAULT ({BASIC_UTC_NOW}),
    updated_at TEXT NOT NULL DEFAULT ({BASIC_UTC_NOW})
);
"""

TRANSACTIONS_DDL = f"""
CREATE TABLE IF NOT EXISTS transactions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL,
    date TEXT NOT NULL, -- UTC ISO timestamp (YYYY-MM-DDTHH:MM:SS.ffffffZ)
    description TEXT,
    amount REAL NOT NULL, -- currency of record
    pillar TEXT NOT NULL CHECK (pillar IN ('Earn','Spend','Save','Invest')),
    account TEXT NOT NULL,
    category TEXT,
    tag TEXT,
    original_currency TEXT,
    original_amount REAL,
    exchange_rate REAL,
    created_at TEXT NOT NULL DEFAULT ({BASIC_UTC_NOW}),
    updated_at TEXT NOT NULL DEFAULT ({BASIC_UTC_NOW})
);
"""

GOALS_DDL = f"""
CREATE TABLE IF NOT EXISTS goals (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL,
    name TEXT NOT NULL,
    target_amount REAL NOT NULL,
    current_amount REAL NOT NULL DEFAULT 0,
    deadline TEXT NOT NULL, -- ISO date (YYYY-MM-DD)
    color TEXT,
    created_at TEXT NOT NULL DEFAULT ({BASIC_UTC_NOW}),
    updated_at TEXT NOT NULL DEFAULT ({BASIC_UTC_NOW})
);
"""

METADATA_DDL = f"""
CREATE TABLE IF NOT EXISTS metadata (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TEXT NOT NULL DEFAULT ({BASIC_UTC_NOW})
);
"""

TRANSACTIONS_USER_DATE_INDEX_DDL = (
    "CREATE INDEX IF NOT EXISTS idx_transactions_user_date ON transactions(user_id, date);"
)
GOALS_USER_INDEX_DDL = (
    "CREATE INDEX IF NOT EXISTS idx_goals_user_deadline ON goals(user_id, deadline);"
)

DDL_ORDER: Sequence[str] = (
    PROFILES_DDL,
    TRANSACTIONS_DDL,
    GOALS_DDL,
    METADATA_DDL,
)


def init_db(path: Path) -> None:
    """Create any missing table or index in the database file at `path`."""
    conn = sqlite3.connect(path)
    try:
        with conn:
            for statement in DDL_ORDER:
                conn.execute(statement)
            _ensure_indexes(conn.cursor())
    finally:
        conn.close()


def _ensure_indexes(cur: sqlite3.Cursor) -> None:
    for statement in (TRANSACTIONS_USER_DATE_INDEX_DDL, GOALS_USER_INDEX_DDL):
        try:
            cur.execute(statement)
        except sqlite3.OperationalError:
            # hand-made tables without user_id; the store cannot scope them anyway
            continue
