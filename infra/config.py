"""Centralized application configuration with schema validation.

This module is intentionally compatibility-first:
- Supports flat environment names (for example ``STUDIO_LOG_LEVEL``).
- Supports nested names (for example ``LOGGING__LEVEL``) for consistency.
- Optionally reads a local ``.env`` file before process env values.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path
from threading import Lock

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

_PARQUET_COMPRESSIONS = {"none", "snappy", "gzip", "brotli", "lz4", "zstd"}


def _parse_bool(value: object, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text == "":
        return default
    if text in {"1", "true", "yes", "on"}:
        return True
    if text in {"0", "false", "no", "off"}:
        return False
    return default


class LoggingSettings(BaseModel):
    """Repository-wide logging settings."""

    model_config = ConfigDict(frozen=True)

    level: str = Field(default="INFO")
    json_logs: bool = Field(default=False)
    override_root_handlers: bool = Field(default=False)

    @field_validator("level")
    @classmethod
    def _normalize_level(cls, value: str) -> str:
        text = str(value or "").strip().upper()
        if text in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            return text
        return "INFO"


class CodecConfig(BaseModel):
    """Parquet encode settings applied on save."""

    model_config = ConfigDict(frozen=True)

    compression: str = Field(default="zstd")
    use_dictionary: bool = Field(default=True)
    write_statistics: bool = Field(default=True)

    @field_validator("compression")
    @classmethod
    def _normalize_compression(cls, value: str) -> str:
        text = str(value or "").strip().lower()
        if text not in _PARQUET_COMPRESSIONS:
            raise ValueError(f"codec.compression must be one of {sorted(_PARQUET_COMPRESSIONS)}")
        return text

    @field_validator("use_dictionary", "write_statistics", mode="before")
    @classmethod
    def _normalize_flags(cls, value: object) -> bool:
        return _parse_bool(value, True)


class CommitConfig(BaseModel):
    """Commit pipeline tuning."""

    model_config = ConfigDict(frozen=True)

    workers: int = Field(default=1, ge=1, le=64)


class ExportSettings(BaseModel):
    """Defaults for the flat exporters."""

    model_config = ConfigDict(frozen=True)

    csv_delimiter: str = Field(default=",", min_length=1, max_length=1)
    json_indent: int = Field(default=2, ge=0, le=8)
    sheet_name: str = Field(default="Data")

    @field_validator("sheet_name")
    @classmethod
    def _normalize_sheet_name(cls, value: str) -> str:
        # Excel caps sheet titles at 31 characters
        text = str(value or "").strip()[:31]
        return text or "Data"


class SessionConfig(BaseModel):
    """Session-level state (recent files)."""

    model_config = ConfigDict(frozen=True)

    state_file: str = Field(default=str(Path.home() / ".parquet_studio" / "recent.json"))
    max_recent_files: int = Field(default=10, ge=1, le=100)

    @field_validator("state_file", mode="before")
    @classmethod
    def _expand_state_file(cls, value: object) -> str:
        text = str(value or "").strip()
        if not text:
            return str(Path.home() / ".parquet_studio" / "recent.json")
        return str(Path(text).expanduser())


class Settings(BaseModel):
    """Top-level settings model."""

    model_config = ConfigDict(frozen=True)

    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    codec: CodecConfig = Field(default_factory=CodecConfig)
    commit: CommitConfig = Field(default_factory=CommitConfig)
    export: ExportSettings = Field(default_factory=ExportSettings)
    session: SessionConfig = Field(default_factory=SessionConfig)

    @classmethod
    def from_env(
        cls,
        *,
        env: Mapping[str, str] | None = None,
        env_file: str = ".env",
    ) -> Settings:
        """Build settings from `.env` then environment variables."""
        runtime_env = os.environ if env is None else env
        merged_env = _merge_env(_load_dotenv(Path(env_file)), runtime_env)
        payload = _build_payload(merged_env)
        return cls.model_validate(payload)


def _load_dotenv(path: Path) -> dict[str, str]:
    """Parse a minimal `.env` file format."""
    if not path.exists() or not path.is_file():
        return {}

    values: dict[str, str] = {}
    for raw_line in path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if "=" not in line:
            continue
        key, raw_value = line.split("=", 1)
        key_clean = key.strip()
        value = raw_value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in {"'", '"'}:
            value = value[1:-1]
        if key_clean:
            values[key_clean] = value
    return values


def _merge_env(dotenv_values: Mapping[str, str], runtime_env: Mapping[str, str]) -> dict[str, str]:
    """Return env map where process env overrides `.env` values."""
    merged = {str(k): str(v) for k, v in dotenv_values.items()}
    for key, value in runtime_env.items():
        merged[str(key)] = str(value)
    return merged


def _first_non_empty(env: Mapping[str, str], *keys: str) -> str | None:
    """Return the first non-empty value for the provided keys."""
    for key in keys:
        value = str(env.get(key, "")).strip()
        if value:
            return value
    return None


def _build_payload(env: Mapping[str, str]) -> dict[str, object]:
    """Build nested settings payload from env values."""
    logging_settings = {
        "level": _first_non_empty(env, "LOGGING__LEVEL", "STUDIO_LOG_LEVEL"),
        "json_logs": _first_non_empty(env, "LOGGING__JSON_LOGS", "STUDIO_LOG_JSON"),
        "override_root_handlers": _first_non_empty(
            env, "LOGGING__OVERRIDE_ROOT_HANDLERS", "STUDIO_LOG_OVERRIDE"
        ),
    }
    codec = {
        "compression": _first_non_empty(env, "CODEC__COMPRESSION", "PARQUET_COMPRESSION"),
        "use_dictionary": _first_non_empty(env, "CODEC__USE_DICTIONARY", "PARQUET_USE_DICTIONARY"),
        "write_statistics": _first_non_empty(env, "CODEC__WRITE_STATISTICS", "PARQUET_WRITE_STATISTICS"),
    }
    commit = {
        "workers": _first_non_empty(env, "COMMIT__WORKERS", "COMMIT_WORKERS"),
    }
    export = {
        # Whitespace delimiters (tab) must survive, so no strip here
        "csv_delimiter": env.get("EXPORT__CSV_DELIMITER") or env.get("EXPORT_CSV_DELIMITER") or None,
        "json_indent": _first_non_empty(env, "EXPORT__JSON_INDENT", "EXPORT_JSON_INDENT"),
        "sheet_name": _first_non_empty(env, "EXPORT__SHEET_NAME", "EXPORT_SHEET_NAME"),
    }
    session = {
        "state_file": _first_non_empty(env, "SESSION__STATE_FILE", "STUDIO_STATE_FILE"),
        "max_recent_files": _first_non_empty(env, "SESSION__MAX_RECENT_FILES", "STUDIO_MAX_RECENT_FILES"),
    }
    return {
        "logging": {k: v for k, v in logging_settings.items() if v is not None},
        "codec": {k: v for k, v in codec.items() if v is not None},
        "commit": {k: v for k, v in commit.items() if v is not None},
        "export": {k: v for k, v in export.items() if v is not None},
        "session": {k: v for k, v in session.items() if v is not None},
    }


_SETTINGS_LOCK = Lock()
_SETTINGS_CACHE: Settings | None = None


def get_settings(*, reload: bool = False) -> Settings:
    """Return cached settings, optionally forcing reload from env."""
    global _SETTINGS_CACHE
    with _SETTINGS_LOCK:
        if reload or _SETTINGS_CACHE is None:
            _SETTINGS_CACHE = Settings.from_env()
        return _SETTINGS_CACHE


def clear_settings_cache() -> None:
    """Clear in-process settings cache."""
    global _SETTINGS_CACHE
    with _SETTINGS_LOCK:
        _SETTINGS_CACHE = None


__all__ = [
    "CodecConfig",
    "CommitConfig",
    "ExportSettings",
    "LoggingSettings",
    "SessionConfig",
    "Settings",
    "get_settings",
    "clear_settings_cache",
    "ValidationError",
]
