from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Sequence

from .fields import field_value
from .mapper import CanonicalRow


def post_id_of(row: Mapping[str, Any]) -> str | None:
    value = field_value(row, "post_id")
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    s = str(value).strip()
    return s or None


def dedupe_key(row: Mapping[str, Any]) -> str:
    """
    Identity key of a canonical row.

    Rows without a post id are identified by their full content, so only exact copies collapse.
    """
    post_id = post_id_of(row)
    if post_id:
        return f"id:{post_id}"
    payload = json.dumps(
        dict(row),
        ensure_ascii=False,
        sort_keys=True,
        separators=(",", ":"),
        default=str,
    )
    return f"row:{payload}"


@dataclass
class DedupIndex:
    """Ordered identity key -> row map; the first row seen for a key keeps the slot."""

    rows: dict[str, CanonicalRow] = field(default_factory=dict)

    def has(self, key: str) -> bool:
        return key in self.rows

    def add(self, row: CanonicalRow) -> bool:
        key = dedupe_key(row)
        if key in self.rows:
            return False
        self.rows[key] = row
        return True

    def update(self, rows: Iterable[CanonicalRow]) -> None:
        for row in rows:
            self.add(row)

    def values(self) -> list[CanonicalRow]:
        return list(self.rows.values())


@dataclass(frozen=True)
class DedupeResult:
    rows: list[CanonicalRow]
    new_rows: list[CanonicalRow]
    duplicate_count: int
    duplicate_ids: Sequence[str]


def dedupe_rows(
    new_rows: Iterable[CanonicalRow],
    existing_rows: Iterable[CanonicalRow] = (),
) -> DedupeResult:
    """
    Drop rows whose identity already exists, in the existing data or earlier in the batch.

    Existing rows are seeded first, so they always keep their slot; output order is
    existing rows followed by the retained new rows.
    """
    index = DedupIndex()
    index.update(existing_rows)

    kept: list[CanonicalRow] = []
    duplicate_count = 0
    duplicate_ids: list[str] = []
    seen_ids: set[str] = set()

    for row in new_rows:
        if index.add(row):
            kept.append(row)
            continue

        duplicate_count += 1
        post_id = post_id_of(row)
        if post_id and post_id not in seen_ids:
            seen_ids.add(post_id)
            duplicate_ids.append(post_id)

    return DedupeResult(
        rows=index.values(),
        new_rows=kept,
        duplicate_count=duplicate_count,
        duplicate_ids=tuple(duplicate_ids),
    )
