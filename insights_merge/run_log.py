from __future__ import annotations

import json
import traceback
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, TextIO


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _truncate(text: str, *, limit: int) -> str:
    s = str(text or "")
    if limit <= 0:
        return ""
    if len(s) <= limit:
        return s
    return s[: max(0, limit - 1)] + "…"


class ImportLog:
    """
    JSONL event log for import batches.

    Each line is one JSON object (ts, level, event, session_id, optional batch_id/file, data).
    Without a path, records are only kept in memory, which is what library callers and
    tests get by default.
    """

    def __init__(
        self,
        path: str | Path | None = None,
        *,
        overwrite: bool = False,
        session_id: str | None = None,
        keep_records: bool | None = None,
    ) -> None:
        self._path = Path(path) if path is not None else None
        self._overwrite = bool(overwrite)
        self._session_id = (session_id or "").strip() or uuid.uuid4().hex
        self._batch_id: str | None = None
        self._fp: TextIO | None = None
        self._opened = False
        keep = self._path is None if keep_records is None else keep_records
        self.records: list[dict[str, Any]] | None = [] if keep else None

    @classmethod
    def open(
        cls,
        path: str | Path | None,
        *,
        overwrite: bool = False,
        session_id: str | None = None,
    ) -> "ImportLog":
        log = cls(path, overwrite=overwrite, session_id=session_id)
        log._ensure_open()
        return log

    def close(self) -> None:
        if self._fp is not None:
            try:
                self._fp.flush()
            finally:
                self._fp.close()
            self._fp = None

    def __enter__(self) -> "ImportLog":
        self._ensure_open()
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        self.close()

    @property
    def path(self) -> Path | None:
        return self._path

    def set_batch_id(self, batch_id: str) -> None:
        bid = (batch_id or "").strip()
        if bid:
            self._batch_id = bid

    def events(self) -> list[str]:
        return [str(r.get("event")) for r in (self.records or [])]

    def info(self, event: str, *, file: str | None = None, **data: Any) -> None:
        self.log("INFO", event, file=file, **data)

    def warning(self, event: str, *, file: str | None = None, **data: Any) -> None:
        self.log("WARN", event, file=file, **data)

    def error(self, event: str, *, file: str | None = None, **data: Any) -> None:
        self.log("ERROR", event, file=file, **data)

    def exception(
        self,
        event: str,
        *,
        exc: BaseException,
        file: str | None = None,
        **data: Any,
    ) -> None:
        err = {
            "type": type(exc).__name__,
            "message": _truncate(str(exc), limit=2000),
            "traceback": _truncate(
                "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
                limit=12000,
            ),
        }
        self.log("ERROR", event, file=file, error=err, **data)

    def log(self, level: str, event: str, *, file: str | None = None, **data: Any) -> None:
        record: dict[str, Any] = {
            "ts": _utc_now_iso(),
            "level": (level or "").strip().upper() or "INFO",
            "event": (event or "").strip() or "event",
            "session_id": self._session_id,
        }

        if self._batch_id:
            record["batch_id"] = self._batch_id

        name = (file or "").strip()
        if name:
            record["file"] = name

        if data:
            record["data"] = data

        self._write(record)

    def _ensure_open(self) -> None:
        if self._fp is not None or self._path is None:
            return

        self._path.parent.mkdir(parents=True, exist_ok=True)
        mode = "w" if self._overwrite and not self._opened else "a"
        self._fp = self._path.open(mode, encoding="utf-8", newline="\n")
        self._opened = True

    def _write(self, record: dict[str, Any]) -> None:
        if self.records is not None:
            self.records.append(record)

        if self._path is None:
            return

        self._ensure_open()
        payload = json.dumps(
            record,
            ensure_ascii=False,
            sort_keys=True,
            separators=(",", ":"),
            default=str,
        )
        if self._fp is not None:
            self._fp.write(payload + "\n")
            self._fp.flush()
