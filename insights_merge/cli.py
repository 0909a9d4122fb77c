from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Sequence

from .aggregate import unique_account_names
from .config import config_sha256, load_config
from .config_schema import AppConfig
from .csv_codec import read_headers
from .errors import ConfigError, ExportError, ParseError, ReadError, StorageError, ValidationError
from .export import export_csv, export_filename
from .export_excel import export_dataset_workbook
from .fields import FieldDictionary, MappingCache, display_name
from .importer import import_files
from .pipeline import analyze, validate_headers
from .reader import read_text
from .run_log import ImportLog
from .storage import SQLiteDatasetStore


def _build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config",
        default=None,
        help="Path to YAML config file (defaults are used when omitted).",
    )

    parser = argparse.ArgumentParser(prog="insights_merge")
    subparsers = parser.add_subparsers(dest="command", required=True)

    an = subparsers.add_parser(
        "analyze",
        parents=[common],
        help="Show headers, estimated row count and platform guess for a CSV export.",
    )
    an.add_argument("file", help="CSV file to inspect.")
    an.set_defaults(_handler=_cmd_analyze)

    val = subparsers.add_parser(
        "validate",
        parents=[common],
        help="Check which canonical fields a CSV export's headers can fill.",
    )
    val.add_argument("file", help="CSV file to check.")
    val.add_argument(
        "--all-fields",
        action="store_true",
        help="Require every canonical field instead of ingest.required_fields.",
    )
    val.set_defaults(_handler=_cmd_validate)

    imp = subparsers.add_parser(
        "import",
        parents=[common],
        help="Import one or more CSV exports into the stored dataset.",
    )
    imp.add_argument("files", nargs="+", help="CSV files, processed in the given order.")
    imp.add_argument(
        "--platform",
        choices=("facebook", "instagram"),
        default=None,
        help="Treat every file as this platform instead of detecting it.",
    )
    imp.add_argument(
        "--replace",
        action="store_true",
        help="Start from an empty dataset instead of merging with the stored one.",
    )
    imp.add_argument(
        "--stop-on-error",
        action="store_true",
        help="Stop at the first file that fails instead of skipping it.",
    )
    imp.set_defaults(_handler=_cmd_import)

    files = subparsers.add_parser(
        "files",
        parents=[common],
        help="List imported files.",
    )
    files.set_defaults(_handler=_cmd_files)

    rm = subparsers.add_parser(
        "remove-file",
        parents=[common],
        help="Remove one file record by its index in `files` output.",
    )
    rm.add_argument("index", type=int)
    rm.set_defaults(_handler=_cmd_remove_file)

    clear = subparsers.add_parser(
        "clear",
        parents=[common],
        help="Delete all stored rows, accounts and file records.",
    )
    clear.set_defaults(_handler=_cmd_clear)

    exp = subparsers.add_parser(
        "export",
        parents=[common],
        help="Export the merged dataset as CSV or Excel.",
    )
    exp.add_argument(
        "--format",
        choices=("csv", "xlsx"),
        default="csv",
        help="Output format.",
    )
    exp.add_argument(
        "--out",
        default=None,
        help="Output file. Defaults to '<prefix> <start>_<end>' in the current directory.",
    )
    exp.add_argument(
        "--canonical",
        action="store_true",
        help="Keep canonical column names instead of the original export headers.",
    )
    exp.set_defaults(_handler=_cmd_export)

    maps = subparsers.add_parser(
        "mappings",
        help="Show or edit the column mappings.",
    )
    maps_sub = maps.add_subparsers(dest="mappings_command", required=True)

    show = maps_sub.add_parser("show", parents=[common], help="List raw header -> canonical field.")
    show.set_defaults(_handler=_cmd_mappings_show)

    set_ = maps_sub.add_parser("set", parents=[common], help="Map a raw header to a canonical field.")
    set_.add_argument("raw_header")
    set_.add_argument("canonical")
    set_.set_defaults(_handler=_cmd_mappings_set)

    remove = maps_sub.add_parser("remove", parents=[common], help="Remove the mapping for a raw header.")
    remove.add_argument("raw_header")
    remove.set_defaults(_handler=_cmd_mappings_remove)

    reset = maps_sub.add_parser("reset", parents=[common], help="Restore the built-in mappings.")
    reset.set_defaults(_handler=_cmd_mappings_reset)

    return parser


def _eprint(message: str) -> None:
    print(message, file=sys.stderr)


def _open_store(cfg: AppConfig) -> SQLiteDatasetStore:
    return SQLiteDatasetStore.open(cfg.storage.db_path)


def _open_log(cfg: AppConfig) -> ImportLog:
    return ImportLog.open(cfg.logging.log_path, overwrite=cfg.logging.overwrite)


def _load_dictionary(store: SQLiteDatasetStore) -> FieldDictionary:
    return FieldDictionary.from_mappings(store.load_mappings(), cache=MappingCache())


def _cmd_analyze(args: argparse.Namespace) -> int:
    load_config(args.config)
    result = analyze(read_text(args.file))
    guess = result.platform_guess

    print(f"file={args.file}")
    print(f"row_count_estimate={result.row_count_estimate}")
    print(f"platform_guess={guess.platform}")
    print(f"confidence={guess.confidence:.2f}")
    print(f"headers={len(result.header_names)}")
    for name in result.header_names:
        print(f"  {name}")
    return 0


def _cmd_validate(args: argparse.Namespace) -> int:
    cfg = load_config(args.config)
    headers = read_headers(read_text(args.file))

    with _open_store(cfg) as store:
        dictionary = _load_dictionary(store)

    if args.all_fields or not cfg.ingest.required_fields:
        required = None
    else:
        required = cfg.ingest.required_fields

    result = validate_headers(headers, dictionary, required=required)

    print(f"valid={str(result.is_valid).lower()}")
    for f in result.found:
        print(f"found: {f.header} -> {f.canonical}")
    for m in result.missing:
        examples = ", ".join(m.examples[:3])
        print(f"missing: {m.canonical} ({m.display_name}){' e.g. ' + examples if examples else ''}")
    for u in result.unknown:
        print(f"unknown: {u}")

    return 0 if result.is_valid else 4


def _cmd_import(args: argparse.Namespace) -> int:
    cfg = load_config(args.config)

    with _open_log(cfg) as log:
        log.info(
            "config_loaded",
            config_path=str(args.config) if args.config else None,
            config_sha256=config_sha256(cfg),
            db_path=cfg.storage.db_path,
        )

        try:
            with _open_store(cfg) as store:
                dictionary = _load_dictionary(store)
                result = import_files(
                    args.files,
                    store,
                    dictionary,
                    config=cfg,
                    merge_with_existing=False if args.replace else None,
                    platform_hint=args.platform,
                    stop_on_error=True if args.stop_on_error else None,
                    log=log,
                )
        except Exception as e:
            log.exception("import_command_failed", exc=e)
            raise

    for record in result.files:
        print(
            f"imported={record.filename} platform={record.platform} rows={record.row_count} "
            f"duplicates={record.duplicate_count}"
        )
    for failure in result.failures:
        _eprint(f"failed={failure.path} error={failure.error_type}: {failure.message}")
    for warning in result.warnings:
        _eprint(f"warning={warning}")

    print(f"total_rows={result.row_count}")
    print(f"accounts={result.account_count}")
    print(f"date_start={result.state.date_range.start or ''}")
    print(f"date_end={result.state.date_range.end or ''}")
    if cfg.logging.log_path:
        print(f"import_log={cfg.logging.log_path}")

    return 0 if not result.failures else 4


def _cmd_files(args: argparse.Namespace) -> int:
    cfg = load_config(args.config)
    with _open_store(cfg) as store:
        records = store.list_files()
        rows = store.load_rows()

    for i, r in enumerate(records):
        dr = r.date_range
        print(
            f"[{i}] {r.filename} platform={r.platform or ''} rows={r.row_count} "
            f"duplicates={r.duplicate_count} accounts={r.account_count} "
            f"dates={dr.start or ''}..{dr.end or ''} uploaded_at={r.uploaded_at or ''}"
        )
    print(f"files={len(records)}")
    print(f"total_rows={len(rows)}")
    names = unique_account_names(rows)
    if names:
        print(f"account_names={' | '.join(names)}")
    return 0


def _cmd_remove_file(args: argparse.Namespace) -> int:
    cfg = load_config(args.config)
    with _open_store(cfg) as store:
        removed = store.remove_file(int(args.index))

    print(f"removed={str(removed).lower()}")
    return 0 if removed else 4


def _cmd_clear(args: argparse.Namespace) -> int:
    cfg = load_config(args.config)
    with _open_log(cfg) as log, _open_store(cfg) as store:
        rows = store.row_count()
        store.clear()
        log.info("dataset_cleared", rows=rows)

    print(f"cleared_rows={rows}")
    return 0


def _cmd_export(args: argparse.Namespace) -> int:
    cfg = load_config(args.config)
    ext = ".xlsx" if args.format == "xlsx" else ".csv"

    with _open_store(cfg) as store:
        if args.out:
            out = Path(args.out)
        else:
            out = Path(export_filename(cfg.export.filename_prefix, store.list_files()) + ext)

        if args.format == "xlsx":
            path = export_dataset_workbook(cfg, store, out)
        else:
            dictionary = _load_dictionary(store)
            path = export_csv(
                store.load_rows(),
                out,
                dictionary=dictionary,
                preserve_format=cfg.export.preserve_format and not args.canonical,
                bom=cfg.export.bom,
            )

    print(f"exported={path}")
    return 0


def _cmd_mappings_show(args: argparse.Namespace) -> int:
    cfg = load_config(args.config)
    with _open_store(cfg) as store:
        dictionary = _load_dictionary(store)

    for raw, canonical in dictionary.as_dict().items():
        print(f"{raw} -> {canonical} ({display_name(canonical)})")
    return 0


def _cmd_mappings_set(args: argparse.Namespace) -> int:
    cfg = load_config(args.config)
    with _open_store(cfg) as store:
        dictionary = _load_dictionary(store)
        dictionary.set_override(args.raw_header, args.canonical)
        store.save_mappings(dictionary.as_dict())

    print(f"mapped={args.raw_header.strip()} -> {args.canonical.strip()}")
    return 0


def _cmd_mappings_remove(args: argparse.Namespace) -> int:
    cfg = load_config(args.config)
    with _open_store(cfg) as store:
        dictionary = _load_dictionary(store)
        removed = dictionary.remove(args.raw_header)
        if removed:
            store.save_mappings(dictionary.as_dict())

    print(f"removed={str(removed).lower()}")
    return 0 if removed else 4


def _cmd_mappings_reset(args: argparse.Namespace) -> int:
    cfg = load_config(args.config)
    with _open_store(cfg) as store:
        store.clear_mappings()

    print("mappings=defaults")
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    try:
        handler = getattr(args, "_handler")
        return int(handler(args))
    except (ConfigError, ValidationError) as e:
        _eprint(str(e))
        return 2
    except (ReadError, ParseError, StorageError, ExportError) as e:
        _eprint(str(e))
        return 3
    except KeyboardInterrupt:
        _eprint("Interrupted")
        return 130
    except Exception as e:
        _eprint(f"Unexpected error: {e}")
        return 1
