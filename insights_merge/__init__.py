from __future__ import annotations

from .aggregate import AccountAggregate, DateRange, IngestState, aggregate
from .classify import Classification, classify, resolve_platform
from .coerce import coerce
from .config import config_sha256, load_config
from .config_schema import AppConfig
from .dedupe import dedupe_rows
from .errors import (
    ConfigError,
    ExportError,
    ParseError,
    ReadError,
    StorageError,
    ValidationError,
)
from .fields import FieldDictionary, MappingCache
from .importer import ImportResult, import_files
from .pipeline import analyze, ingest, validate_headers
from .records import FileRecord
from .storage import SQLiteDatasetStore
from .text import normalize_text

__all__ = [
    "AccountAggregate",
    "AppConfig",
    "Classification",
    "ConfigError",
    "DateRange",
    "ExportError",
    "FieldDictionary",
    "FileRecord",
    "ImportResult",
    "IngestState",
    "MappingCache",
    "ParseError",
    "ReadError",
    "SQLiteDatasetStore",
    "StorageError",
    "ValidationError",
    "aggregate",
    "analyze",
    "classify",
    "coerce",
    "config_sha256",
    "dedupe_rows",
    "import_files",
    "ingest",
    "load_config",
    "normalize_text",
    "resolve_platform",
    "validate_headers",
]
