from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Sequence

from .aggregate import AccountAggregate, DateRange, IngestState, compute_date_range, count_accounts
from .classify import Classification, Platform, PlatformDecision, classify, resolve_platform
from .coerce import coerce
from .csv_codec import parse_csv
from .dedupe import dedupe_rows
from .fields import FIELD_ALIASES, NON_SUMMARIZABLE_COLUMNS, FieldDictionary, display_name
from .mapper import CanonicalRow, map_rows
from .records import FileRecord

PREVIEW_ROWS = 5

# Identity and text fields, aliases included, keep their source text; "00123" must stay a string post id.
_TEXT_FIELDS = frozenset(NON_SUMMARIZABLE_COLUMNS).union(
    *(FIELD_ALIASES.get(name, ()) for name in NON_SUMMARIZABLE_COLUMNS)
)


@dataclass(frozen=True)
class Analysis:
    header_names: list[str]
    row_count_estimate: int
    platform_guess: Classification
    sample_rows: list[dict[str, str]]


@dataclass(frozen=True)
class IngestStats:
    file_rows: int
    existing_rows: int
    total_rows: int
    new_rows: int
    duplicate_count: int
    duplicate_ids: Sequence[str]
    account_count: int
    date_range: DateRange
    platform: Platform
    decision: PlatformDecision
    warnings: Sequence[str] = ()


@dataclass(frozen=True)
class IngestResult:
    accounts: list[AccountAggregate]
    rows: list[CanonicalRow]
    stats: IngestStats
    file_record: FileRecord
    state: IngestState


@dataclass(frozen=True)
class MissingField:
    canonical: str
    display_name: str
    examples: Sequence[str] = ()


@dataclass(frozen=True)
class FoundHeader:
    header: str
    canonical: str
    display_name: str


@dataclass(frozen=True)
class HeaderValidation:
    is_valid: bool
    missing: list[MissingField] = field(default_factory=list)
    found: list[FoundHeader] = field(default_factory=list)
    unknown: list[str] = field(default_factory=list)


def _estimate_rows(text: str) -> int:
    lines = [line for line in text.splitlines() if line.strip()]
    return max(0, len(lines) - 1)


def analyze(csv_text: str, *, preview_rows: int = PREVIEW_ROWS) -> Analysis:
    """
    Quick look at a file before importing it: headers, a rough row count, the platform
    guess and the first few rows. Only the preview rows are parsed.
    """
    table = parse_csv(csv_text, max_rows=preview_rows)
    guess = classify(table.headers, sample_row=table.rows[0] if table.rows else None)
    return Analysis(
        header_names=list(table.headers),
        row_count_estimate=_estimate_rows(csv_text),
        platform_guess=guess,
        sample_rows=[dict(r) for r in table.rows],
    )


def coerce_row(row: Mapping[str, Any]) -> CanonicalRow:
    out: CanonicalRow = {}
    for key, value in row.items():
        out[key] = value if key in _TEXT_FIELDS else coerce(value)
    return out


def ingest(
    csv_text: str,
    dictionary: FieldDictionary,
    merge_with_existing: bool = True,
    platform_hint: str | None = None,
    *,
    existing: IngestState | None = None,
    filename: str = "import.csv",
    unknown_default: Platform = "facebook",
    strong_signal_weight: int = 2,
) -> IngestResult:
    """
    Parse, classify, map, dedupe and aggregate one CSV export.

    existing is the accumulated dataset; with merge_with_existing=False it is ignored and the
    file is ingested into an empty dataset. Nothing here touches storage.
    """
    table = parse_csv(csv_text)

    classification = classify(
        table.headers,
        sample_row=table.rows[0] if table.rows else None,
        strong_signal_weight=strong_signal_weight,
    )
    decision = resolve_platform(classification, hint=platform_hint, unknown_default=unknown_default)
    platform = decision.platform

    mapped = [coerce_row(r) for r in map_rows(table.rows, dictionary, platform)]

    base = existing if (merge_with_existing and existing is not None) else IngestState()
    deduped = dedupe_rows(mapped, base.rows)
    state = base.apply(deduped.new_rows)

    file_record = FileRecord(
        filename=filename,
        row_count=len(mapped),
        duplicate_count=deduped.duplicate_count,
        account_count=count_accounts(mapped),
        date_range=compute_date_range(mapped),
        platform=platform,
    )

    stats = IngestStats(
        file_rows=len(mapped),
        existing_rows=len(base.rows),
        total_rows=len(state.rows),
        new_rows=len(deduped.new_rows),
        duplicate_count=deduped.duplicate_count,
        duplicate_ids=deduped.duplicate_ids,
        account_count=len(state.accounts),
        date_range=state.date_range,
        platform=platform,
        decision=decision,
        warnings=tuple(decision.warnings),
    )

    return IngestResult(
        accounts=list(state.accounts),
        rows=list(state.rows),
        stats=stats,
        file_record=file_record,
        state=state,
    )


def validate_headers(
    header_names: Iterable[str],
    dictionary: FieldDictionary,
    required: Iterable[str] | None = None,
) -> HeaderValidation:
    """
    Check which canonical fields a header set can fill.

    required defaults to every canonical field the dictionary maps to.
    """
    found: list[FoundHeader] = []
    unknown: list[str] = []
    covered: set[str] = set()

    for header in header_names:
        canonical = dictionary.resolve(header)
        if canonical is None:
            unknown.append(header)
            continue
        covered.add(canonical)
        found.append(FoundHeader(header=header, canonical=canonical, display_name=display_name(canonical)))

    wanted = list(required) if required is not None else dictionary.canonical_fields()
    missing = [
        MissingField(
            canonical=c,
            display_name=display_name(c),
            examples=tuple(dictionary.known_names(c)),
        )
        for c in wanted
        if c not in covered
    ]

    return HeaderValidation(is_valid=not missing, missing=missing, found=found, unknown=unknown)
