from __future__ import annotations

import math
import re
from datetime import date, datetime
from typing import Any, Union

Value = Union[str, int, float, None]

_DECIMAL_RE = re.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")
_INTEGER_RE = re.compile(r"[+-]?\d+")

_DATETIME_FORMATS = (
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%m/%d/%Y %H:%M:%S",
    "%m/%d/%Y %H:%M",
    "%m/%d/%Y",
    "%Y/%m/%d %H:%M",
    "%Y/%m/%d",
    "%Y%m%d",
)


def coerce(value: Any) -> Value:
    """
    Parse a cell into a typed value without ever raising.

    Strings become numbers only when the whole (trimmed) string is a plain decimal literal.
    Thousands separators, "1_000", "nan" and "inf" stay strings.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value
    if not isinstance(value, str):
        return value

    s = value.strip()
    if not _DECIMAL_RE.fullmatch(s):
        return value

    if _INTEGER_RE.fullmatch(s):
        return int(s)

    try:
        num = float(s)
    except ValueError:
        return value
    if not math.isfinite(num):
        return value
    return num


def to_number(value: Any) -> int | float | None:
    """Return a finite number for a cell, or None when it does not parse as one."""
    v = coerce(value)
    if isinstance(v, bool) or not isinstance(v, (int, float)):
        return None
    if isinstance(v, float) and not math.isfinite(v):
        return None
    return v


def parse_date(value: Any) -> date | None:
    """Best-effort calendar date from an export timestamp; None when unparseable."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    s = str(value).strip()
    if not s:
        return None

    iso = s[:-1] + "+00:00" if s.endswith("Z") else s
    try:
        return datetime.fromisoformat(iso).date()
    except ValueError:
        pass

    for fmt in _DATETIME_FORMATS:
        try:
            return datetime.strptime(s, fmt).date()
        except ValueError:
            continue
    return None
