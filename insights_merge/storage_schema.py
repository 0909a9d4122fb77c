from __future__ import annotations

import sqlite3
from datetime import datetime, timezone

SCHEMA_VERSION = 2


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def initialize_sqlite(conn: sqlite3.Connection) -> None:
    """
    Initialize the dataset database with a small migration system.

    This function is idempotent: it can be called on every startup.
    """
    _configure_connection(conn)
    _apply_migrations(conn)


def _configure_connection(conn: sqlite3.Connection) -> None:
    conn.execute("PRAGMA busy_timeout = 5000")

    # WAL is best-effort (e.g., in-memory DBs won't use it).
    try:
        conn.execute("PRAGMA journal_mode = WAL")
        conn.execute("PRAGMA synchronous = NORMAL")
    except sqlite3.DatabaseError:
        pass


_MIGRATIONS: dict[int, str] = {
    1: """
CREATE TABLE IF NOT EXISTS schema_migrations (
  version INTEGER PRIMARY KEY,
  applied_at TEXT NOT NULL
);

-- Canonical post rows; position preserves dedupe output order.
CREATE TABLE IF NOT EXISTS dataset_rows (
  position INTEGER PRIMARY KEY,
  row_key TEXT NOT NULL,
  platform TEXT,
  row_json TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_dataset_rows_row_key
  ON dataset_rows(row_key);

CREATE TABLE IF NOT EXISTS accounts (
  account_id TEXT PRIMARY KEY,
  position INTEGER NOT NULL,
  platform TEXT,
  account_json TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS file_records (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  filename TEXT NOT NULL,
  row_count INTEGER NOT NULL,
  duplicate_count INTEGER NOT NULL,
  account_count INTEGER NOT NULL,
  date_start TEXT,
  date_end TEXT,
  platform TEXT,
  uploaded_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS column_mappings (
  position INTEGER PRIMARY KEY,
  raw_header TEXT NOT NULL UNIQUE,
  canonical TEXT NOT NULL
);
""".strip(),
    2: """
-- Present once a mapping set has been saved, even an empty one.
CREATE TABLE IF NOT EXISTS mapping_state (
  id INTEGER PRIMARY KEY CHECK (id = 1),
  saved_at TEXT NOT NULL
);

INSERT OR IGNORE INTO mapping_state(id, saved_at)
  SELECT 1, strftime('%Y-%m-%dT%H:%M:%SZ', 'now')
  WHERE EXISTS (SELECT 1 FROM column_mappings);
""".strip(),
}


def _apply_migrations(conn: sqlite3.Connection) -> None:
    with conn:
        conn.execute(
            "CREATE TABLE IF NOT EXISTS schema_migrations (version INTEGER PRIMARY KEY, applied_at TEXT NOT NULL)"
        )

    rows = conn.execute("SELECT version FROM schema_migrations").fetchall()
    applied: set[int] = {int(r[0]) for r in rows}

    for version in range(1, SCHEMA_VERSION + 1):
        if version in applied:
            continue

        script = _MIGRATIONS.get(version)
        if not script:
            raise RuntimeError(f"Missing migration script for version={version}")

        with conn:
            conn.executescript(script)
            conn.execute(
                "INSERT INTO schema_migrations(version, applied_at) VALUES (?, ?)",
                (version, _utc_now_iso()),
            )
