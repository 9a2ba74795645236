"""Schema upgrades for the finance store.

The version lives in the metadata table under ``schema_version``. A database
without that key is treated as version 1 (single-currency transactions).

  2 - transactions gain original_currency / original_amount / exchange_rate.
      Rows written before the upgrade keep NULLs there and are read back as
      already being in the currency of record.
"""

from __future__ import annotations
from pathlib import Path
import sqlite3
from typing import Callable, Dict, Optional, Set

from . import schema as schema_def

SCHEMA_VERSION_KEY = "schema_version"
MULTI_CURRENCY_COLUMNS = (
    ("original_currency", "TEXT"),
    ("original_amount", "REAL"),
    ("exchange_rate", "REAL"),
)


def _existing_columns(cur: sqlite3.Cursor, table: str) -> Set[str]:
    return {info[1] for info in cur.execute(f"PRAGMA table_info({table})")}


def _add_multi_currency_columns(cur: sqlite3.Cursor) -> None:
    present = _existing_columns(cur, "transactions")
    for column, sql_type in MULTI_CURRENCY_COLUMNS:
        if column not in present:
            cur.execute(f"ALTER TABLE transactions ADD COLUMN {column} {sql_type}")
    schema_def._ensure_indexes(cur)


# target version -> step that brings the previous version up to it
MIGRATIONS: Dict[int, Callable[[sqlite3.Cursor], None]] = {
    2: _add_multi_currency_columns,
}
CURRENT_SCHEMA_VERSION = max(MIGRATIONS)


def read_schema_version(conn: sqlite3.Connection) -> Optional[int]:
    try:
        found = conn.execute(
            "SELECT value FROM metadata WHERE key=?", (SCHEMA_VERSION_KEY,)
        ).fetchone()
    except sqlite3.OperationalError:
        # no metadata table yet
        return None
    return int(found[0]) if found else None


def _record_version(cur: sqlite3.Cursor, version: int) -> None:
    cur.execute(
        "INSERT INTO metadata (key, value) VALUES (?, ?) "
        "ON CONFLICT(key) DO UPDATE SET value=excluded.value, "
        f"updated_at=({schema_def.BASIC_UTC_NOW})",
        (SCHEMA_VERSION_KEY, str(version)),
    )


def apply_migrations(db_path: Path) -> int:
    """Bring the database at ``db_path`` up to CURRENT_SCHEMA_VERSION.

    Tables are created first when missing. Each pending step runs in its own
    transaction together with the version bump, so a failed step leaves the
    previous version recorded. Returns the version the database ends at.
    """
    schema_def.init_db(db_path)
    conn = sqlite3.connect(db_path)
    try:
        version = read_schema_version(conn) or 1
        for target in sorted(MIGRATIONS):
            if target <= version:
                continue
            with conn:
                cur = conn.cursor()
                MIGRATIONS[target](cur)
                _record_version(cur, target)
            version = target
        with conn:
            _record_version(conn.cursor(), version)
        return version
    finally:
        conn.close()
