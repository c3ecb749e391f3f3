from __future__ import annotations

import json
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from ..models.config_models import (
    DEFAULT_BASE_URL,
    AppConfig,
    MatchSettings,
    ResortConfig,
    SheetsConfig,
)

"""Config loader for the resort registry (config/resorts.yml).

Responsibilities:
- Load YAML with ``yaml.safe_load``
- Validate against the packaged JSON schema (resorts_schema.json)
- Apply defaults for the optional ``sheets`` / ``matching`` sections
- Apply environment overrides (SHEETS_BASE_URL, SHEETS_TIMEOUT)
"""

__all__ = [
    "ConfigError",
    "SCHEMA_PATH",
    "load_config",
    "build_config",
]

SCHEMA_PATH = Path(__file__).parent / "resorts_schema.json"

ENV_BASE_URL = "SHEETS_BASE_URL"
ENV_TIMEOUT = "SHEETS_TIMEOUT"


class ConfigError(Exception):
    pass


def _validate_config_schema(data: Any) -> None:
    """Validate config data against the JSON schema.

    Raises:
        ConfigError: schema file missing or invalid, or data violating the schema
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")
    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        where = "/".join(str(p) for p in e.absolute_path)
        raise ConfigError(f"config validation failed: {where + ': ' if where else ''}{e.message}") from e


def _sheets_config(raw: Mapping[str, Any], env: Mapping[str, str]) -> SheetsConfig:
    defaults = SheetsConfig()
    base_url = env.get(ENV_BASE_URL) or raw.get("base_url", DEFAULT_BASE_URL)
    timeout = raw.get("timeout_seconds", defaults.timeout_seconds)
    env_timeout = env.get(ENV_TIMEOUT)
    if env_timeout:
        try:
            timeout = float(env_timeout)
        except ValueError as e:
            raise ConfigError(f"{ENV_TIMEOUT} must be a number: {env_timeout!r}") from e
        if timeout <= 0:
            raise ConfigError(f"{ENV_TIMEOUT} must be positive: {env_timeout!r}")
    return SheetsConfig(
        base_url=str(base_url),
        timeout_seconds=float(timeout),
        retry_attempts=int(raw.get("retry_attempts", defaults.retry_attempts)),
        retry_backoff_seconds=float(raw.get("retry_backoff_seconds", defaults.retry_backoff_seconds)),
        throttle_seconds=float(raw.get("throttle_seconds", defaults.throttle_seconds)),
    )


def _match_settings(raw: Mapping[str, Any]) -> MatchSettings:
    defaults = MatchSettings()
    return MatchSettings(
        feedback_title=str(raw.get("feedback_title", defaults.feedback_title)),
        overall_column=int(raw.get("overall_column", defaults.overall_column)),
        feedback_fallback_column=int(raw.get("feedback_fallback_column", defaults.feedback_fallback_column)),
        agency_similarity=float(raw.get("agency_similarity", defaults.agency_similarity)),
    )


def build_config(data: Mapping[str, Any], env: Mapping[str, str] | None = None) -> AppConfig:
    """Validate an already-parsed mapping and build AppConfig."""
    _validate_config_schema(data)
    env = os.environ if env is None else env
    resorts = {
        str(rid): ResortConfig(
            resort_id=str(rid),
            name=str(entry["name"]),
            sheet_id=str(entry["sheet_id"]),
            matrice_gid=str(entry["matrice_gid"]) if entry.get("matrice_gid") is not None else None,
        )
        for rid, entry in data["resorts"].items()
    }
    return AppConfig(
        resorts=resorts,
        sheets=_sheets_config(data.get("sheets") or {}, env),
        matching=_match_settings(data.get("matching") or {}),
    )


def load_config(path: Path, env: Mapping[str, str] | None = None) -> AppConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    return build_config(data, env)
