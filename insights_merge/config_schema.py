from __future__ import annotations

from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

PositiveInt = Annotated[int, Field(ge=1)]


def _normalize_field_list(values: list[str]) -> list[str]:
    out: list[str] = []
    seen: set[str] = set()

    for item in values:
        name = (item or "").strip()
        if not name or name in seen:
            continue
        seen.add(name)
        out.append(name)
    return out


class StorageConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    db_path: str = "insights.sqlite"

    @field_validator("db_path")
    @classmethod
    def _db_path_must_be_set(cls, v: str) -> str:
        path = (v or "").strip()
        if not path:
            raise ValueError("must be a non-empty path")
        return path


class LoggingConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    log_path: str | None = "import.log"
    overwrite: bool = False


class IngestConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    merge_with_existing: bool = True
    stop_on_error: bool = False
    # Empty means every canonical field the dictionary knows about.
    required_fields: list[str] = Field(default_factory=lambda: ["post_id", "account_id"])

    @field_validator("required_fields")
    @classmethod
    def _normalize_required(cls, v: list[str]) -> list[str]:
        return _normalize_field_list(v)


class PlatformConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    unknown_default: Literal["facebook", "instagram"] = "facebook"
    strong_signal_weight: PositiveInt = 2


class ExportConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    bom: bool = True
    preserve_format: bool = True
    filename_prefix: str = "Merged"


class AppConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    storage: StorageConfig = Field(default_factory=StorageConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    ingest: IngestConfig = Field(default_factory=IngestConfig)
    platform: PlatformConfig = Field(default_factory=PlatformConfig)
    export: ExportConfig = Field(default_factory=ExportConfig)
