from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping, Sequence

import yaml

from .aggregate import AccountAggregate, compute_date_range, unique_account_names
from .config_schema import AppConfig
from .csv_codec import collect_headers
from .errors import ExportError
from .records import FileRecord
from .storage import SQLiteDatasetStore


_EXCEL_FORMULA_PREFIXES = ("=", "+", "-", "@")

_SHEETS = ("posts", "accounts", "files", "metadata")


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _safe_excel_text(value: Any) -> Any:
    if value is None or isinstance(value, (bool, int, float)):
        return value
    s = str(value)
    if not s:
        return s
    if s.startswith(_EXCEL_FORMULA_PREFIXES):
        return "'" + s
    return s


def _safe_row(row: Mapping[str, Any], columns: Sequence[str]) -> dict[str, Any]:
    return {col: _safe_excel_text(row.get(col)) for col in columns}


def _db_scalar_int(store: SQLiteDatasetStore, sql: str) -> int:
    row = store.conn.execute(sql).fetchone()
    if row is None or row[0] is None:
        return 0
    return int(row[0])


def _post_rows(rows: Sequence[Mapping[str, Any]]) -> list[dict[str, Any]]:
    columns = collect_headers(rows)
    return [_safe_row(r, columns) for r in rows]


def _account_rows(accounts: Sequence[AccountAggregate]) -> list[dict[str, Any]]:
    out: list[dict[str, Any]] = []
    for a in accounts:
        record = a.to_record()
        out.append({k: _safe_excel_text(v) for k, v in record.items()})
    return out


def _file_rows(files: Sequence[FileRecord]) -> list[dict[str, Any]]:
    return [{k: _safe_excel_text(v) for k, v in f.to_dict().items()} for f in files]


def export_dataset_workbook(
    config: AppConfig,
    store: SQLiteDatasetStore,
    out_path: str | Path,
) -> Path:
    """
    Write the stored dataset to an .xlsx workbook with posts, accounts, files and
    metadata sheets.
    """
    try:
        import pandas as pd
    except ImportError as e:
        raise ExportError("pandas is required for Excel export") from e

    out = Path(out_path)

    rows = store.load_rows()
    if not rows:
        raise ExportError("No data to export; import at least one CSV file first")

    accounts = store.load_accounts()
    files = store.list_files()
    date_range = compute_date_range(rows)

    schema_version = _db_scalar_int(store, "SELECT MAX(version) FROM schema_migrations")
    config_yaml = yaml.safe_dump(
        config.model_dump(mode="json"),
        sort_keys=True,
        allow_unicode=True,
    )

    meta_rows: list[dict[str, Any]] = [
        {"key": "exported_at_utc", "value": _safe_excel_text(_utc_now_iso())},
        {"key": "sqlite_schema_version", "value": schema_version},
        {"key": "counts.rows", "value": len(rows)},
        {"key": "counts.accounts", "value": len(accounts)},
        {"key": "counts.files", "value": len(files)},
        {"key": "date_range.start", "value": _safe_excel_text(date_range.start)},
        {"key": "date_range.end", "value": _safe_excel_text(date_range.end)},
        {"key": "account_names", "value": _safe_excel_text(" | ".join(unique_account_names(rows)))},
        {"key": "config_yaml", "value": _safe_excel_text(config_yaml)},
        {"key": "output_path", "value": _safe_excel_text(str(out))},
    ]

    df_posts = pd.DataFrame(_post_rows(rows))
    df_accounts = pd.DataFrame(_account_rows(accounts))
    df_files = pd.DataFrame(_file_rows(files))
    df_meta = pd.DataFrame(meta_rows)

    try:
        out.parent.mkdir(parents=True, exist_ok=True)
        with pd.ExcelWriter(out, engine="openpyxl") as writer:
            df_posts.to_excel(writer, sheet_name="posts", index=False)
            df_accounts.to_excel(writer, sheet_name="accounts", index=False)
            df_files.to_excel(writer, sheet_name="files", index=False)
            df_meta.to_excel(writer, sheet_name="metadata", index=False)

            wb = writer.book
            for name in _SHEETS:
                if name in wb.sheetnames:
                    wb[name].freeze_panes = "A2"
    except (OSError, ValueError) as e:
        raise ExportError(f"Failed to write workbook: {out}: {e}") from e

    return out
