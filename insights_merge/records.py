from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

from .aggregate import DateRange


@dataclass(frozen=True)
class FileRecord:
    """Metadata for one ingested file; produced once per successful ingestion."""

    filename: str
    row_count: int = 0
    duplicate_count: int = 0
    account_count: int = 0
    date_range: DateRange = field(default_factory=DateRange)
    platform: str | None = None
    uploaded_at: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "filename": self.filename,
            "row_count": self.row_count,
            "duplicate_count": self.duplicate_count,
            "account_count": self.account_count,
            "date_start": self.date_range.start,
            "date_end": self.date_range.end,
            "platform": self.platform,
            "uploaded_at": self.uploaded_at,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "FileRecord":
        return cls(
            filename=str(data.get("filename") or ""),
            row_count=int(data.get("row_count") or 0),
            duplicate_count=int(data.get("duplicate_count") or 0),
            account_count=int(data.get("account_count") or 0),
            date_range=DateRange(
                start=data.get("date_start") or None,
                end=data.get("date_end") or None,
            ),
            platform=data.get("platform") or None,
            uploaded_at=data.get("uploaded_at") or None,
        )
