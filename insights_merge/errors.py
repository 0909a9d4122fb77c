from __future__ import annotations


class ConfigError(RuntimeError):
    """Raised when configuration is missing or invalid."""


class ValidationError(ValueError):
    """Raised for rejected input: a bad mapping edit, an empty CSV, or no files selected."""


class ReadError(OSError):
    """Raised when a source file cannot be read or decoded."""


class ParseError(RuntimeError):
    """Raised when CSV text is malformed beyond recovery."""


class StorageError(RuntimeError):
    """Raised when reading or writing the dataset in SQLite fails."""


class ExportError(RuntimeError):
    """Raised when writing an export file fails."""
