from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date
from typing import Any, Iterable, Mapping, Sequence

from .coerce import parse_date, to_number
from .fields import SUMMARIZABLE_COLUMNS, field_value
from .mapper import CanonicalRow

UNKNOWN_ACCOUNT_ID = "unknown"
UNKNOWN_ACCOUNT_NAME = "Unknown account"


def _as_text(value: Any) -> str:
    if value is None or isinstance(value, bool):
        return ""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


@dataclass(frozen=True)
class DateRange:
    start: str | None = None
    end: str | None = None

    @classmethod
    def from_dates(cls, dates: Iterable[date]) -> "DateRange":
        values = list(dates)
        if not values:
            return cls()
        return cls(start=min(values).isoformat(), end=max(values).isoformat())

    def merge(self, other: "DateRange") -> "DateRange":
        starts = [d for d in (self.start, other.start) if d]
        ends = [d for d in (self.end, other.end) if d]
        return DateRange(
            start=min(starts) if starts else None,
            end=max(ends) if ends else None,
        )

    def as_dict(self) -> dict[str, str | None]:
        return {"start": self.start, "end": self.end}


@dataclass
class AccountAggregate:
    account_id: str
    account_name: str = UNKNOWN_ACCOUNT_NAME
    account_username: str = ""
    platform: str | None = None
    metrics: dict[str, int | float] = field(
        default_factory=lambda: {col: 0 for col in SUMMARIZABLE_COLUMNS}
    )

    def copy(self) -> "AccountAggregate":
        return replace(self, metrics=dict(self.metrics))

    def add_row(self, row: Mapping[str, Any]) -> None:
        for col in SUMMARIZABLE_COLUMNS:
            num = to_number(field_value(row, col))
            if num is not None:
                self.metrics[col] = self.metrics.get(col, 0) + num

    def to_record(self) -> dict[str, Any]:
        record: dict[str, Any] = {
            "account_id": self.account_id,
            "account_name": self.account_name,
            "account_username": self.account_username,
            "platform": self.platform,
        }
        record.update(self.metrics)
        return record

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "AccountAggregate":
        metrics: dict[str, int | float] = {}
        for col in SUMMARIZABLE_COLUMNS:
            num = to_number(record.get(col))
            metrics[col] = num if num is not None else 0
        platform = _as_text(record.get("platform")) or None
        return cls(
            account_id=_as_text(record.get("account_id")) or UNKNOWN_ACCOUNT_ID,
            account_name=_as_text(record.get("account_name")) or UNKNOWN_ACCOUNT_NAME,
            account_username=_as_text(record.get("account_username")),
            platform=platform,
            metrics=metrics,
        )


def account_id_of(row: Mapping[str, Any]) -> str:
    return _as_text(field_value(row, "account_id")) or UNKNOWN_ACCOUNT_ID


def aggregate(
    rows: Iterable[Mapping[str, Any]],
    prior_accounts: Iterable[AccountAggregate] = (),
) -> list[AccountAggregate]:
    """
    Fold canonical rows into per-account running sums.

    prior_accounts are copied, never mutated; rows without an account id are summed under
    the "unknown" account rather than dropped.
    """
    accounts: dict[str, AccountAggregate] = {}
    for prior in prior_accounts:
        accounts[prior.account_id] = prior.copy()

    for row in rows:
        account_id = account_id_of(row)
        account = accounts.get(account_id)
        if account is None:
            account = AccountAggregate(
                account_id=account_id,
                account_name=_as_text(field_value(row, "account_name")) or UNKNOWN_ACCOUNT_NAME,
                account_username=_as_text(field_value(row, "account_username")),
                platform=_as_text(row.get("platform")) or None,
            )
            accounts[account_id] = account
        account.add_row(row)

    return list(accounts.values())


# Untranslated date headers, read when no mapped date field parses.
_RAW_DATE_HEADERS = ("Publiceringstid", "Datum")


def publish_date_of(row: Mapping[str, Any]) -> date | None:
    for value in (field_value(row, "publish_time"), field_value(row, "date")):
        d = parse_date(value)
        if d is not None:
            return d
    for header in _RAW_DATE_HEADERS:
        d = parse_date(row.get(header))
        if d is not None:
            return d
    return None


def compute_date_range(rows: Iterable[Mapping[str, Any]]) -> DateRange:
    """Min/max publish date; rows with unparseable dates are left out of the range."""
    dates: list[date] = []
    for row in rows:
        d = publish_date_of(row)
        if d is not None:
            dates.append(d)
    return DateRange.from_dates(dates)


def count_accounts(rows: Iterable[Mapping[str, Any]]) -> int:
    return len({account_id_of(row) for row in rows})


def unique_account_names(rows: Iterable[Mapping[str, Any]]) -> list[str]:
    names = {_as_text(field_value(row, "account_name")) for row in rows}
    return sorted(n for n in names if n)


@dataclass(frozen=True)
class IngestState:
    """
    Accumulator threaded through every file of an import batch.

    Each step returns a new state; a file that fails leaves the previous state untouched.
    """

    accounts: Sequence[AccountAggregate] = ()
    rows: Sequence[CanonicalRow] = ()
    date_range: DateRange = field(default_factory=DateRange)

    @classmethod
    def from_dataset(
        cls,
        rows: Sequence[CanonicalRow],
        accounts: Sequence[AccountAggregate],
    ) -> "IngestState":
        return cls(
            accounts=tuple(a.copy() for a in accounts),
            rows=tuple(rows),
            date_range=compute_date_range(rows),
        )

    def apply(self, new_rows: Sequence[CanonicalRow]) -> "IngestState":
        return IngestState(
            accounts=tuple(aggregate(new_rows, self.accounts)),
            rows=tuple(self.rows) + tuple(new_rows),
            date_range=self.date_range.merge(compute_date_range(new_rows)),
        )
