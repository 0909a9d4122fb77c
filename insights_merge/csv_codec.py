from __future__ import annotations

import csv
import io
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Sequence

from .errors import ParseError, ValidationError

_BOM = "\ufeff"
_DELIMITERS = (",", ";", "\t")
_HEADER_SCAN_ROWS = 5


@dataclass(frozen=True)
class CsvTable:
    headers: list[str]
    rows: list[dict[str, str]]
    delimiter: str = ","


def detect_delimiter(text: str) -> str:
    """Pick the delimiter that splits the first non-blank line into the most cells."""
    for line in text.splitlines():
        if line.strip():
            counts = {d: line.count(d) for d in _DELIMITERS}
            best = max(_DELIMITERS, key=lambda d: counts[d])
            return best if counts[best] > 0 else ","
    return ","


def _is_blank(row: Sequence[str]) -> bool:
    return all(not (cell or "").strip() for cell in row)


def _filled(row: Sequence[str]) -> int:
    return sum(1 for cell in row if (cell or "").strip())


def _unique_headers(raw: Sequence[str]) -> list[str]:
    out: list[str] = []
    taken: set[str] = set()
    for i, name in enumerate(raw):
        base = name if (name or "").strip() else f"column_{i + 1}"
        h, n = base, 1
        while h in taken:
            h = f"{base}_{n}"
            n += 1
        taken.add(h)
        out.append(h)
    return out


def _header_index(records: Sequence[Sequence[str]]) -> int:
    # Title lines above the header (a single filled cell) are skipped when a wider row follows.
    window = records[:_HEADER_SCAN_ROWS]
    widest = max(_filled(r) for r in window)
    for i, record in enumerate(window):
        if _filled(record) > 1 or widest <= 1:
            return i
    return 0


def _read_records(text: str, delimiter: str, limit: int | None = None) -> list[list[str]]:
    reader = csv.reader(io.StringIO(text, newline=""), delimiter=delimiter, strict=True)
    records: list[list[str]] = []
    try:
        for record in reader:
            if not _is_blank(record):
                records.append(record)
                if limit is not None and len(records) >= limit:
                    break
    except csv.Error as e:
        raise ParseError(f"Malformed CSV near line {reader.line_num}: {e}") from e
    return records


def parse_csv(
    text: str | None,
    *,
    delimiter: str | None = None,
    max_rows: int | None = None,
) -> CsvTable:
    """
    Parse CSV text into header -> string cell rows.

    Short rows are padded with "", cells beyond the header get generated column names.
    max_rows stops reading early, for previews. Raises ValidationError for empty input and
    ParseError for malformed quoting.
    """
    if text is None or not text.strip():
        raise ValidationError("CSV file is empty")

    if text.startswith(_BOM):
        text = text[len(_BOM):]

    delim = delimiter or detect_delimiter(text)
    limit = max_rows + _HEADER_SCAN_ROWS if max_rows is not None else None
    records = _read_records(text, delim, limit)
    if not records:
        raise ValidationError("CSV file is empty")

    start = _header_index(records)
    body = records[start + 1:]
    if max_rows is not None:
        body = body[:max_rows]
    if not body:
        raise ValidationError("No data rows found in the CSV file")

    width = max(len(r) for r in records[start:])
    header_cells = list(records[start]) + [""] * (width - len(records[start]))
    headers = _unique_headers(header_cells)

    rows: list[dict[str, str]] = []
    for record in body:
        row = {h: "" for h in headers}
        for h, cell in zip(headers, record):
            row[h] = cell
        rows.append(row)

    return CsvTable(headers=headers, rows=rows, delimiter=delim)


def read_headers(text: str | None) -> list[str]:
    return parse_csv(text, max_rows=1).headers


def _cell(value: Any) -> Any:
    if value is None:
        return ""
    return value


def collect_headers(rows: Iterable[Mapping[str, Any]]) -> list[str]:
    out: list[str] = []
    seen: set[str] = set()
    for row in rows:
        for key in row:
            if key not in seen:
                seen.add(key)
                out.append(key)
    return out


def write_csv(
    rows: Sequence[Mapping[str, Any]],
    headers: Sequence[str] | None = None,
    *,
    bom: bool = False,
    delimiter: str = ",",
) -> str:
    """Serialize rows to CSV text with minimal RFC 4180 quoting."""
    columns = list(headers) if headers is not None else collect_headers(rows)

    buf = io.StringIO(newline="")
    writer = csv.writer(buf, delimiter=delimiter, quoting=csv.QUOTE_MINIMAL, lineterminator="\r\n")
    writer.writerow(columns)
    for row in rows:
        writer.writerow([_cell(row.get(col)) for col in columns])

    out = buf.getvalue()
    return _BOM + out if bom else out
