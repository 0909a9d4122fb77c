from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable

from .aggregate import IngestState
from .classify import PLATFORMS
from .config_schema import AppConfig
from .errors import ParseError, ReadError, ValidationError
from .fields import FieldDictionary
from .pipeline import IngestResult, ingest
from .reader import read_text
from .records import FileRecord
from .run_log import ImportLog
from .storage import SQLiteDatasetStore

# Per-file failures: the file is skipped and the batch continues.
_FILE_ERRORS = (ReadError, ParseError, ValidationError)


@dataclass(frozen=True)
class FileFailure:
    path: str
    error_type: str
    message: str


@dataclass(frozen=True)
class ImportResult:
    batch_id: str
    files: list[FileRecord] = field(default_factory=list)
    failures: list[FileFailure] = field(default_factory=list)
    state: IngestState = field(default_factory=IngestState)
    warnings: list[str] = field(default_factory=list)

    @property
    def row_count(self) -> int:
        return len(self.state.rows)

    @property
    def account_count(self) -> int:
        return len(self.state.accounts)


def import_files(
    paths: Iterable[str | Path],
    store: SQLiteDatasetStore,
    dictionary: FieldDictionary,
    *,
    config: AppConfig | None = None,
    merge_with_existing: bool | None = None,
    platform_hint: str | None = None,
    stop_on_error: bool | None = None,
    log: ImportLog | None = None,
) -> ImportResult:
    """
    Import CSV exports one after another into the stored dataset.

    The stored dataset is loaded once, then every file is folded into it in order and the
    result is saved after each file. A file that cannot be read or parsed is logged and
    skipped; the accumulated state and the store stay as they were before that file.
    Keyword arguments override the matching config values.
    """
    cfg = config or AppConfig()
    merge = cfg.ingest.merge_with_existing if merge_with_existing is None else bool(merge_with_existing)
    stop = cfg.ingest.stop_on_error if stop_on_error is None else bool(stop_on_error)
    logger = log or ImportLog()

    files = [Path(p) for p in paths]
    if not files:
        raise ValidationError("No files selected for import")
    hint = (platform_hint or "").strip().lower() or None
    if hint is not None and hint not in PLATFORMS:
        raise ValidationError(f"Unknown platform hint: {platform_hint!r}")

    batch_id = uuid.uuid4().hex
    logger.set_batch_id(batch_id)
    logger.info(
        "import_started",
        file_count=len(files),
        merge_with_existing=merge,
        platform_hint=hint,
    )

    if merge:
        state = IngestState.from_dataset(store.load_rows(), store.load_accounts())
    else:
        state = IngestState()

    records: list[FileRecord] = []
    failures: list[FileFailure] = []
    warnings: list[str] = []

    for path in files:
        name = path.name
        try:
            text = read_text(path)
            logger.info("file_read", file=name, chars=len(text))

            # Files later in a batch always merge with the earlier ones.
            result = ingest(
                text,
                dictionary,
                merge_with_existing=True,
                platform_hint=hint,
                existing=state,
                filename=name,
                unknown_default=cfg.platform.unknown_default,
                strong_signal_weight=cfg.platform.strong_signal_weight,
            )
        except _FILE_ERRORS as e:
            logger.error("file_failed", file=name, error_type=type(e).__name__, message=str(e))
            failures.append(FileFailure(path=str(path), error_type=type(e).__name__, message=str(e)))
            if stop:
                break
            continue

        _log_platform(logger, name, result)
        warnings.extend(f"{name}: {w}" for w in result.stats.warnings)

        stored = store.save_batch(result.accounts, result.rows, result.file_record)
        if stored is not None:
            records.append(stored)
        state = result.state

        logger.info(
            "file_ingested",
            file=name,
            rows=result.stats.file_rows,
            new_rows=result.stats.new_rows,
            duplicate_count=result.stats.duplicate_count,
            duplicate_ids=list(result.stats.duplicate_ids),
            total_rows=result.stats.total_rows,
        )

    logger.info(
        "import_completed",
        imported=len(records),
        failed=len(failures),
        total_rows=len(state.rows),
        accounts=len(state.accounts),
        date_range=state.date_range.as_dict(),
    )

    return ImportResult(
        batch_id=batch_id,
        files=records,
        failures=failures,
        state=state,
        warnings=warnings,
    )


def _log_platform(logger: ImportLog, name: str, result: IngestResult) -> None:
    decision = result.stats.decision
    logger.info(
        "platform_detected",
        file=name,
        platform=decision.platform,
        source=decision.source,
        detected=decision.classification.platform,
        confidence=decision.classification.confidence,
    )
    for warning in decision.warnings:
        logger.warning("platform_warning", file=name, message=warning)

