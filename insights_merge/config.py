from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any, Mapping

import yaml
from pydantic import ValidationError as PydanticValidationError

from .config_schema import AppConfig
from .errors import ConfigError


def load_config(path: str | Path | None) -> AppConfig:
    """
    Load the merge tool's YAML config into a typed AppConfig.

    Without a path every section takes its defaults, the same as an empty file.
    """
    if path is None:
        return config_from_mapping({})
    p = Path(path)
    return config_from_mapping(_read_yaml_mapping(p), source=str(p))


def config_from_mapping(data: Mapping[str, Any], *, source: str = "<defaults>") -> AppConfig:
    try:
        return AppConfig.model_validate(dict(data))
    except PydanticValidationError as e:
        raise ConfigError(_describe_errors(e, source)) from e


def _read_yaml_mapping(p: Path) -> dict[str, Any]:
    try:
        raw_text = p.read_text(encoding="utf-8")
    except FileNotFoundError as e:
        raise ConfigError(f"Config file not found: {p}") from e
    except OSError as e:
        raise ConfigError(f"Failed to read config file: {p}") from e

    try:
        data = yaml.safe_load(raw_text)
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse YAML in {p}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Top-level YAML in {p} must be a mapping of sections")
    return data


def config_sha256(config: AppConfig) -> str:
    """Stable SHA-256 of the effective config values; recorded with every import run."""
    payload = json.dumps(
        config.model_dump(mode="json"),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    ).encode("utf-8")
    return hashlib.sha256(payload).hexdigest()


def _describe_errors(err: PydanticValidationError, source: str) -> str:
    problems = [
        f"- {'.'.join(str(part) for part in item.get('loc', ())) or '<root>'}: "
        f"{item.get('msg', 'invalid value')}"
        for item in err.errors()
    ]
    return "\n".join([f"Invalid configuration in {source}:", *problems])
