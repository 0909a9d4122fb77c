from __future__ import annotations

import json
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping, Sequence

from .aggregate import AccountAggregate
from .dedupe import dedupe_key
from .errors import StorageError
from .mapper import CanonicalRow
from .records import FileRecord
from .storage_schema import initialize_sqlite


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _json_dumps(value: Any) -> str:
    return json.dumps(
        value,
        ensure_ascii=False,
        separators=(",", ":"),
        default=str,
    )


def _loads_object(raw: str, *, what: str) -> dict[str, Any]:
    try:
        value = json.loads(raw)
    except ValueError as e:
        raise StorageError(f"Stored {what} could not be parsed: {e}") from e
    if not isinstance(value, dict):
        raise StorageError(f"Stored {what} was not an object")
    return value


class SQLiteDatasetStore:
    """
    Local persistence for the merged dataset: canonical rows, account aggregates,
    file records, and the user's column mappings.

    save_batch replaces rows and accounts in a single transaction, so a batch is either
    fully persisted or not at all.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn
        self._conn.row_factory = sqlite3.Row

    @classmethod
    def open(cls, path: str | Path) -> "SQLiteDatasetStore":
        db_path = str(path)
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)

        try:
            conn = sqlite3.connect(db_path)
        except sqlite3.DatabaseError as e:
            raise StorageError(f"Failed to open sqlite database: {db_path}: {e}") from e

        try:
            initialize_sqlite(conn)
        except Exception as e:
            conn.close()
            raise StorageError(f"Failed to initialize sqlite schema: {e}") from e

        return cls(conn)

    def close(self) -> None:
        self._conn.close()

    def __enter__(self) -> "SQLiteDatasetStore":
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        self.close()

    @property
    def conn(self) -> sqlite3.Connection:
        return self._conn

    def load_rows(self) -> list[CanonicalRow]:
        rows = self._conn.execute(
            "SELECT row_json FROM dataset_rows ORDER BY position ASC"
        ).fetchall()
        return [_loads_object(str(r["row_json"]), what="row") for r in rows]

    def load_accounts(self) -> list[AccountAggregate]:
        rows = self._conn.execute(
            "SELECT account_json FROM accounts ORDER BY position ASC"
        ).fetchall()
        return [
            AccountAggregate.from_record(_loads_object(str(r["account_json"]), what="account"))
            for r in rows
        ]

    def save_batch(
        self,
        accounts: Sequence[AccountAggregate],
        rows: Sequence[CanonicalRow],
        file_record: FileRecord | None = None,
    ) -> FileRecord | None:
        """Replace the stored dataset with accounts/rows and append the file record."""
        row_params = [
            (i, dedupe_key(row), _platform_of(row), _json_dumps(dict(row)))
            for i, row in enumerate(rows)
        ]
        account_params = [
            (a.account_id, i, a.platform, _json_dumps(a.to_record()))
            for i, a in enumerate(accounts)
        ]

        stored: FileRecord | None = None
        if file_record is not None:
            stored = FileRecord(
                filename=file_record.filename,
                row_count=file_record.row_count,
                duplicate_count=file_record.duplicate_count,
                account_count=file_record.account_count,
                date_range=file_record.date_range,
                platform=file_record.platform,
                uploaded_at=file_record.uploaded_at or _utc_now_iso(),
            )

        try:
            with self._conn:
                self._conn.execute("DELETE FROM dataset_rows")
                self._conn.executemany(
                    "INSERT INTO dataset_rows(position, row_key, platform, row_json) VALUES (?, ?, ?, ?)",
                    row_params,
                )
                self._conn.execute("DELETE FROM accounts")
                self._conn.executemany(
                    "INSERT INTO accounts(account_id, position, platform, account_json) VALUES (?, ?, ?, ?)",
                    account_params,
                )
                if stored is not None:
                    self._insert_file_record(stored)
        except sqlite3.DatabaseError as e:
            raise StorageError(f"Failed to save batch: {e}") from e

        return stored

    def _insert_file_record(self, record: FileRecord) -> None:
        data = record.to_dict()
        self._conn.execute(
            """
            INSERT INTO file_records(
              filename, row_count, duplicate_count, account_count,
              date_start, date_end, platform, uploaded_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """.strip(),
            (
                data["filename"],
                data["row_count"],
                data["duplicate_count"],
                data["account_count"],
                data["date_start"],
                data["date_end"],
                data["platform"],
                data["uploaded_at"],
            ),
        )

    def list_files(self) -> list[FileRecord]:
        rows = self._conn.execute(
            """
            SELECT filename, row_count, duplicate_count, account_count,
                   date_start, date_end, platform, uploaded_at
            FROM file_records
            ORDER BY id ASC
            """.strip()
        ).fetchall()
        return [FileRecord.from_dict({k: r[k] for k in r.keys()}) for r in rows]

    def remove_file(self, index: int) -> bool:
        """Delete the file record at a zero-based position in list_files() order."""
        if index < 0:
            return False

        row = self._conn.execute(
            "SELECT id FROM file_records ORDER BY id ASC LIMIT 1 OFFSET ?",
            (int(index),),
        ).fetchone()
        if row is None:
            return False

        try:
            with self._conn:
                self._conn.execute("DELETE FROM file_records WHERE id = ?", (int(row["id"]),))
        except sqlite3.DatabaseError as e:
            raise StorageError(f"Failed to remove file record: {e}") from e
        return True

    def clear(self) -> None:
        """Drop all rows, accounts and file records. Column mappings are kept."""
        try:
            with self._conn:
                self._conn.execute("DELETE FROM dataset_rows")
                self._conn.execute("DELETE FROM accounts")
                self._conn.execute("DELETE FROM file_records")
        except sqlite3.DatabaseError as e:
            raise StorageError(f"Failed to clear dataset: {e}") from e

    def load_mappings(self) -> dict[str, str] | None:
        """Stored column mappings ({} when an empty set was saved), or None when never saved."""
        saved = self._conn.execute("SELECT 1 FROM mapping_state WHERE id = 1").fetchone()
        if saved is None:
            return None
        rows = self._conn.execute(
            "SELECT raw_header, canonical FROM column_mappings ORDER BY position ASC"
        ).fetchall()
        return {str(r["raw_header"]): str(r["canonical"]) for r in rows}

    def save_mappings(self, mappings: Mapping[str, str]) -> None:
        params: list[tuple[int, str, str]] = []
        for i, (raw, canonical) in enumerate(mappings.items()):
            r = (raw or "").strip()
            c = (canonical or "").strip()
            if not r or not c:
                raise ValueError("raw header and canonical name must be non-empty")
            params.append((i, r, c))

        try:
            with self._conn:
                self._conn.execute("DELETE FROM column_mappings")
                self._conn.executemany(
                    "INSERT INTO column_mappings(position, raw_header, canonical) VALUES (?, ?, ?)",
                    params,
                )
                self._conn.execute(
                    "INSERT OR REPLACE INTO mapping_state(id, saved_at) VALUES (1, ?)",
                    (_utc_now_iso(),),
                )
        except sqlite3.DatabaseError as e:
            raise StorageError(f"Failed to save column mappings: {e}") from e

    def clear_mappings(self) -> None:
        try:
            with self._conn:
                self._conn.execute("DELETE FROM column_mappings")
                self._conn.execute("DELETE FROM mapping_state")
        except sqlite3.DatabaseError as e:
            raise StorageError(f"Failed to clear column mappings: {e}") from e

    def row_count(self) -> int:
        row = self._conn.execute("SELECT COUNT(1) AS n FROM dataset_rows").fetchone()
        return int(row["n"]) if row is not None else 0

    def account_count(self) -> int:
        row = self._conn.execute("SELECT COUNT(1) AS n FROM accounts").fetchone()
        return int(row["n"]) if row is not None else 0


def _platform_of(row: Mapping[str, Any]) -> str | None:
    value = row.get("platform")
    return str(value) if value else None

