from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Literal, Mapping, TypeAlias

from pydantic import BaseModel, Field, ValidationError, field_validator

from protols.exceptions import ConfigError

DEFAULT_CONFIG_NAME = "protols.toml"
ENV_PREFIX = "PROTOBUF_LSP_"

TomlTable: TypeAlias = dict[str, object]

LogFormat = Literal["console", "json"]

_LOG_LEVELS = ("DEBUG", "INFO", "WARN", "WARNING", "ERROR")


class ServerConfig(BaseModel):
    address: str = ""
    port: int = Field(default=0, ge=0, le=65535)


class LogConfig(BaseModel):
    level: str = "INFO"
    file: str | None = None
    format: LogFormat = "console"

    @field_validator("level")
    @classmethod
    def _validate_level(cls, value: str) -> str:
        normalized = value.strip().upper()
        if normalized not in _LOG_LEVELS:
            raise ValueError(f"undefined log level: {value}")
        return normalized


class WorkspaceConfig(BaseModel):
    include_paths: list[str] = Field(default_factory=list)
    preload: bool = True
    exclude_dirs: list[str] = Field(default_factory=lambda: ["node_modules"])


class ProtolsConfig(BaseModel):
    server: ServerConfig = Field(default_factory=ServerConfig)
    log: LogConfig = Field(default_factory=LogConfig)
    workspace: WorkspaceConfig = Field(default_factory=WorkspaceConfig)


def _load_toml(path: Path) -> TomlTable:
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return {}
    except OSError as exc:
        raise ConfigError.parse_error(str(path), str(exc)) from exc
    try:
        data = tomllib.loads(raw)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError.parse_error(str(path), str(exc)) from exc
    return data


def _env_overrides(environ: Mapping[str, str]) -> dict[str, dict[str, object]]:
    overrides: dict[str, dict[str, object]] = {}
    mapping = (
        ("LOG_LEVEL", "log", "level"),
        ("LOG_FILE", "log", "file"),
        ("ADDRESS", "server", "address"),
        ("PORT", "server", "port"),
    )
    for suffix, section, key in mapping:
        value = environ.get(ENV_PREFIX + suffix, "").strip()
        if value:
            overrides.setdefault(section, {})[key] = value
    return overrides


def merge_sections(base: TomlTable, override: Mapping[str, object]) -> TomlTable:
    merged = dict(base)
    for key, value in override.items():
        if value is None:
            continue
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, Mapping):
            merged[key] = merge_sections(current, value)
        else:
            merged[key] = value
    return merged


def load_config(
    root: Path | None = None,
    config_path: Path | None = None,
    *,
    environ: Mapping[str, str] | None = None,
    overrides: Mapping[str, object] | None = None,
) -> ProtolsConfig:
    """Load configuration from file, environment and explicit overrides.

    Later sources win: file, then ``PROTOBUF_LSP_*`` variables, then
    ``overrides`` (command line flags).
    """
    if config_path is None:
        base = root if root is not None else Path.cwd()
        config_path = base / DEFAULT_CONFIG_NAME
    data = _load_toml(config_path)
    data = merge_sections(data, _env_overrides(os.environ if environ is None else environ))
    if overrides:
        data = merge_sections(data, overrides)
    try:
        return ProtolsConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError.parse_error(str(config_path), str(exc)) from exc
