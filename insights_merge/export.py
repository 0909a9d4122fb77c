from __future__ import annotations

import re
from datetime import date
from pathlib import Path
from typing import Any, Iterable, Mapping, Sequence

from .aggregate import DateRange
from .csv_codec import collect_headers, write_csv
from .errors import ExportError
from .fields import FieldDictionary
from .records import FileRecord

_UNSAFE_FILENAME_RE = re.compile(r"[/:\\]")


def to_original_format(
    rows: Iterable[Mapping[str, Any]],
    dictionary: FieldDictionary,
) -> list[dict[str, Any]]:
    """
    Rename canonical keys back to a source header, so the export re-imports like a native one.

    Keys without a reverse mapping, and keys whose source header is already taken in the
    row, are kept as they are.
    """
    out: list[dict[str, Any]] = []
    for row in rows:
        renamed: dict[str, Any] = {}
        for key, value in row.items():
            target = dictionary.reverse_lookup(key) or key
            if target != key and (target in row or target in renamed):
                target = key
            renamed[target] = value
        out.append(renamed)
    return out


def export_date_range(file_records: Sequence[FileRecord]) -> DateRange:
    merged = DateRange()
    for record in file_records:
        merged = merged.merge(record.date_range)
    return merged


def export_filename(
    prefix: str,
    file_records: Sequence[FileRecord],
    *,
    today: date | None = None,
) -> str:
    """Base name "<prefix> <start>_<end>", or "<prefix> <today>" when no file carries dates."""
    dr = export_date_range(file_records)
    if dr.start and dr.end:
        stamp = f"{dr.start}_{dr.end}"
    else:
        stamp = (today or date.today()).isoformat()
    stamp = _UNSAFE_FILENAME_RE.sub("-", stamp)

    p = (prefix or "").strip()
    return f"{p} {stamp}" if p else stamp


def export_csv(
    rows: Sequence[Mapping[str, Any]],
    out_path: str | Path,
    *,
    dictionary: FieldDictionary | None = None,
    preserve_format: bool = True,
    bom: bool = True,
) -> Path:
    if not rows:
        raise ExportError("No data to export; import at least one CSV file first")

    data: Sequence[Mapping[str, Any]] = rows
    if preserve_format and dictionary is not None:
        data = to_original_format(rows, dictionary)

    text = write_csv(data, collect_headers(data), bom=bom)

    out = Path(out_path)
    try:
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_text(text, encoding="utf-8", newline="")
    except OSError as e:
        raise ExportError(f"Failed to write CSV export: {out}: {e}") from e
    return out
