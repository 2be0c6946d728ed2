"""Configuration loading utilities for the migration tools."""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Mapping, MutableMapping

import yaml

from . import paths
from .exceptions import ConfigurationError


@dataclass(frozen=True, slots=True)
class DatabaseSettings:
    """Target store configuration."""

    path: Path
    apply_schema: bool


@dataclass(frozen=True, slots=True)
class MigrationSettings:
    """Defaults used when source rows leave fields out."""

    default_category_name: str
    default_category_colour: str
    default_title: str
    default_icon: str
    wallet_decimals: int
    series_marker: str


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Top-level application configuration."""

    source_path: Path
    database: DatabaseSettings
    migration: MigrationSettings

    def with_database_path(self, new_path: str | Path) -> AppConfig:
        """Return a copy with an updated database path."""
        resolved = paths.resolve_path(new_path)
        return replace(self, database=replace(self.database, path=resolved))


def _default_config(env: Mapping[str, str]) -> dict[str, Any]:
    return {
        "database": {
            "path": str(paths.default_database_path(env=env)),
            "apply_schema": True,
        },
        "migration": {
            "default_category_name": "Uncategorized",
            "default_category_colour": "0xff999999",
            "default_title": "Unnamed Transaction",
            "default_icon": "image.png",
            "wallet_decimals": 2,
            "series_marker": "::predict::",
        },
    }


ENV_OVERRIDE_SPEC: dict[str, tuple[str, type]] = {
    "database.path": (paths.DATABASE_PATH_ENV, str),
    "database.apply_schema": ("FINMIGRATE_APPLY_SCHEMA", bool),
    "migration.default_category_name": ("FINMIGRATE_DEFAULT_CATEGORY", str),
    "migration.default_title": ("FINMIGRATE_DEFAULT_TITLE", str),
    "migration.default_icon": ("FINMIGRATE_DEFAULT_ICON", str),
    "migration.wallet_decimals": ("FINMIGRATE_WALLET_DECIMALS", int),
}


def load_config(
    config_path: str | Path | None = None,
    env: Mapping[str, str] | None = None,
) -> AppConfig:
    """Load configuration from defaults, YAML file, and env overrides."""
    env = dict(env or os.environ)
    resolved_config_path = _resolve_config_path(config_path, env)
    file_data = _load_yaml(resolved_config_path)
    merged: dict[str, Any] = _deep_merge(_default_config(env), file_data)
    merged = _apply_env_overrides(merged, env)
    return _build_config(merged, resolved_config_path)


def _resolve_config_path(config_path: str | Path | None, env: Mapping[str, str]) -> Path:
    if config_path:
        return paths.resolve_path(config_path)
    return paths.default_config_path(env=env)


def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as handle:
        try:
            data = yaml.safe_load(handle) or {}
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Config file at {path} is not valid YAML: {exc}") from exc
        if not isinstance(data, MutableMapping):
            raise ConfigurationError(f"Config file at {path} must define a mapping root object.")
        return dict(data)


def _deep_merge(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    result = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], Mapping) and isinstance(value, Mapping):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _apply_env_overrides(config: dict[str, Any], env: Mapping[str, str]) -> dict[str, Any]:
    config_copy = _deep_merge(config, {})
    for dotted_key, (env_key, expected_type) in ENV_OVERRIDE_SPEC.items():
        if env_key not in env:
            continue
        raw_value = env[env_key]
        try:
            value = _coerce_env_value(raw_value, expected_type)
        except ValueError as exc:
            raise ConfigurationError(
                f"Environment override {env_key} has invalid value '{raw_value}': {exc}"
            ) from exc
        _assign_nested(config_copy, dotted_key.split("."), value)
    return config_copy


def _coerce_env_value(raw: str, expected_type: type) -> Any:
    cleaned = raw.strip()
    if expected_type is bool:
        lowered = cleaned.lower()
        if lowered in {"1", "true", "yes", "on"}:
            return True
        if lowered in {"0", "false", "no", "off"}:
            return False
        raise ValueError("expected boolean (true/false)")
    if expected_type is int:
        return int(cleaned)
    return cleaned


def _assign_nested(target: MutableMapping[str, Any], keys: list[str], value: Any) -> None:
    current = target
    for key in keys[:-1]:
        if key not in current or not isinstance(current[key], MutableMapping):
            current[key] = {}
        current = current[key]  # type: ignore[assignment]
    current[keys[-1]] = value


def _build_config(data: Mapping[str, Any], source_path: Path) -> AppConfig:
    try:
        db_cfg = data["database"]
        database = DatabaseSettings(
            path=paths.resolve_path(db_cfg["path"]),
            apply_schema=bool(db_cfg["apply_schema"]),
        )
        mig_cfg = data["migration"]
        migration = MigrationSettings(
            default_category_name=str(mig_cfg["default_category_name"]).strip(),
            default_category_colour=str(mig_cfg["default_category_colour"]),
            default_title=str(mig_cfg["default_title"]),
            default_icon=str(mig_cfg["default_icon"]),
            wallet_decimals=int(mig_cfg["wallet_decimals"]),
            series_marker=str(mig_cfg["series_marker"]),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid configuration structure: {exc}") from exc

    if not migration.default_category_name:
        raise ConfigurationError("migration.default_category_name must not be empty.")
    if not migration.series_marker:
        raise ConfigurationError("migration.series_marker must not be empty.")

    return AppConfig(source_path=source_path, database=database, migration=migration)
