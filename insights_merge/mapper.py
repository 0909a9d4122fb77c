from __future__ import annotations

from typing import Any, Mapping

from .classify import Platform
from .coerce import Value
from .fields import FieldDictionary
from .text import normalize_text

CanonicalRow = dict[str, Value]

# Platform-specific columns that are copied straight into a canonical field before the
# dictionary is consulted. A dictionary hit on the same canonical field never overwrites these.
_DERIVATIONS: dict[str, tuple[tuple[str, str], ...]] = {
    "facebook": (
        ("Titel", "description"),
        ("Title", "description"),
        ("Visningar", "views"),
        ("Sid-id", "account_id"),
        ("Sidnamn", "account_name"),
    ),
    "instagram": (
        ("Bildtext", "description"),
        ("Caption", "description"),
    ),
}

_DERIVATION_TABLES: dict[str, dict[str, str]] = {
    platform: {normalize_text(raw): canonical for raw, canonical in pairs}
    for platform, pairs in _DERIVATIONS.items()
}


def map_row(raw_row: Mapping[str, Any], dictionary: FieldDictionary, platform: Platform) -> CanonicalRow:
    """
    Rewrite one raw CSV row into canonical fields.

    Every input value lands under some key: unresolved headers pass through verbatim, and a
    column whose canonical slot was already filled by a platform derivation keeps its raw header.
    A source column named "platform" moves to "platform_raw" so the platform tag can take its place.
    Values are not coerced here.
    """
    out: CanonicalRow = {}
    derived: set[str] = set()
    consumed: set[str] = set()

    table = _DERIVATION_TABLES.get(platform, {})
    for column, value in raw_row.items():
        canonical = table.get(normalize_text(column))
        if canonical is None or canonical in derived:
            continue
        out[canonical] = value
        derived.add(canonical)
        consumed.add(column)

    for column, value in raw_row.items():
        if column in consumed:
            continue

        target = dictionary.resolve(column) or column
        if target in derived:
            target = column if column not in derived else _free_key(out, f"{column}_raw")
        out[target] = value

    if "platform" in out:
        out[_free_key(out, "platform_raw")] = out.pop("platform")
    out["platform"] = platform
    return out


def _free_key(row: Mapping[str, Any], key: str) -> str:
    candidate, n = key, 1
    while candidate in row:
        candidate = f"{key}_{n}"
        n += 1
    return candidate


def map_rows(
    raw_rows: list[Mapping[str, Any]], dictionary: FieldDictionary, platform: Platform
) -> list[CanonicalRow]:
    return [map_row(row, dictionary, platform) for row in raw_rows]
