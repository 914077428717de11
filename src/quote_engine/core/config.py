"""Configuration loading, validation, and access."""

from __future__ import annotations

import os
from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from quote_engine.core.exceptions import ConfigError


class RemoteConfig(BaseModel):
    """Remote price source (Yahoo Finance) access configuration."""

    model_config = ConfigDict(frozen=True)

    base_url: str = "https://query1.finance.yahoo.com"
    request_timeout: float = 30.0
    retry_attempts: int = 3
    retry_delay_ms: int = 1000
    rate_limit: int = 5
    user_agent: str = "Mozilla/5.0 (compatible; quote-engine/0.1)"

    @field_validator("base_url")
    @classmethod
    def base_url_is_http(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("base_url must start with http:// or https://")
        return v.rstrip("/")

    @field_validator("request_timeout")
    @classmethod
    def timeout_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("request_timeout must be > 0")
        return v

    @field_validator("retry_attempts")
    @classmethod
    def attempts_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("retry_attempts must be >= 1")
        return v

    @field_validator("retry_delay_ms")
    @classmethod
    def delay_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("retry_delay_ms must be >= 0")
        return v

    @field_validator("rate_limit")
    @classmethod
    def rate_limit_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("rate_limit must be >= 1")
        return v


class StorageConfig(BaseModel):
    """Quote store configuration."""

    model_config = ConfigDict(frozen=True)

    sqlite_path: str = "./data/quote_engine.db"


class CleanupConfig(BaseModel):
    """Retention for persisted quotes."""

    model_config = ConfigDict(frozen=True)

    days_to_keep: int = 3650

    @field_validator("days_to_keep")
    @classmethod
    def days_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("days_to_keep must be >= 1")
        return v


class QuoteEngineConfig(BaseModel):
    """Root configuration for quote-engine."""

    model_config = ConfigDict(frozen=True)

    remote: RemoteConfig = RemoteConfig()
    storage: StorageConfig = StorageConfig()
    cleanup: CleanupConfig = CleanupConfig()


CONFIG_ENV_VAR = "QUOTE_ENGINE_CONFIG"
DEFAULT_CONFIG_FILE = "quote-engine.yml"

_BOOLEANS = {"true": True, "false": False}


def load_config(
    config_path: str | None = None,
    env_prefix: str = "QUOTE_ENGINE_",
) -> QuoteEngineConfig:
    """Build the configuration from three layers, later ones winning.

    1. Built-in defaults
    2. The YAML file: ``config_path``, else ``$QUOTE_ENGINE_CONFIG``, else
       ``./quote-engine.yml`` when present
    3. ``{env_prefix}SECTION__FIELD`` environment variables, e.g.
       ``QUOTE_ENGINE_REMOTE__RETRY_DELAY_MS=250``

    Raises:
        ConfigError: For a missing or unreadable file, or invalid values.
    """
    path = _find_config_file(config_path)
    settings = _read_yaml(path) if path is not None else {}
    settings = _deep_merge(settings, _env_overrides(env_prefix))
    try:
        return QuoteEngineConfig.model_validate(settings)
    except ValidationError as e:
        raise ConfigError(
            f"Invalid configuration: {e}",
            context={"source": str(path) if path is not None else "environment"},
        ) from e


def _find_config_file(explicit: str | None) -> Path | None:
    if explicit is not None:
        candidate, origin = Path(explicit), "config_path"
    elif os.environ.get(CONFIG_ENV_VAR):
        candidate, origin = Path(os.environ[CONFIG_ENV_VAR]), CONFIG_ENV_VAR
    else:
        default = Path(DEFAULT_CONFIG_FILE)
        return default if default.is_file() else None

    if not candidate.is_file():
        raise ConfigError(
            f"Config file not found: {candidate}",
            context={"field": origin, "value": str(candidate)},
        )
    return candidate


def _read_yaml(path: Path) -> dict:
    try:
        data = yaml.safe_load(path.read_text())
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(
            f"Failed to read YAML config {path}: {e}",
            context={"field": "config_file", "value": str(path)},
        ) from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(
            f"YAML config must be a mapping, got {type(data).__name__}",
            context={"field": "config_file", "value": str(path)},
        )
    return data


def _env_overrides(prefix: str) -> dict:
    """Nest ``{prefix}A__B=value`` variables into ``{"a": {"b": value}}``.

    Variables naming no config field, such as the config file variable
    itself, end up as unknown keys that validation ignores.
    """
    overrides: dict = {}
    for name, raw in os.environ.items():
        if not name.startswith(prefix):
            continue
        *sections, leaf = name[len(prefix):].lower().split("__")
        node = overrides
        for section in sections:
            node = node.setdefault(section, {})
            if not isinstance(node, dict):
                raise ConfigError(
                    f"{name} nests under a scalar setting",
                    context={"field": name, "value": raw},
                )
        node[leaf] = _coerce(raw)
    return overrides


def _deep_merge(base: dict, overrides: dict) -> dict:
    """Return ``base`` updated recursively with ``overrides``; inputs untouched."""
    merged = dict(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _coerce(raw: str) -> bool | int | float | str:
    """Turn an environment string into a bool or number where it reads as one."""
    if raw.strip().lower() in _BOOLEANS:
        return _BOOLEANS[raw.strip().lower()]
    for cast in (int, float):
        try:
            return cast(raw)
        except ValueError:
            continue
    return raw
