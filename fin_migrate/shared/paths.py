"""Utilities for resolving application paths."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Mapping

DEFAULT_CONFIG_DIR = "~/.finmigrate"
DEFAULT_DATABASE_PATH = "~/.finmigrate/target.db"
DEFAULT_CONFIG_FILE = "config.yaml"

CONFIG_DIR_ENV = "FINMIGRATE_CONFIG_DIR"
CONFIG_FILE_ENV = "FINMIGRATE_CONFIG_PATH"
DATABASE_PATH_ENV = "FINMIGRATE_DATABASE_PATH"


def _expand(path_str: str) -> Path:
    """Return a Path with user and environment variables expanded."""
    return Path(os.path.expandvars(path_str)).expanduser()


def get_config_dir(create: bool = False, env: Mapping[str, str] | None = None) -> Path:
    """Return the configuration directory, optionally creating it."""
    env = env or os.environ
    path = _expand(env.get(CONFIG_DIR_ENV, DEFAULT_CONFIG_DIR))
    if create:
        path.mkdir(parents=True, exist_ok=True)
    return path


def default_config_path(env: Mapping[str, str] | None = None) -> Path:
    env = env or os.environ
    override = env.get(CONFIG_FILE_ENV)
    if override:
        return _expand(override)
    return get_config_dir(env=env) / DEFAULT_CONFIG_FILE


def default_database_path(create_parents: bool = False, env: Mapping[str, str] | None = None) -> Path:
    """Return the default target database path, optionally ensuring parent dirs exist."""
    env = env or os.environ
    override = env.get(DATABASE_PATH_ENV)
    path = _expand(override) if override else _expand(DEFAULT_DATABASE_PATH)
    if create_parents:
        path.parent.mkdir(parents=True, exist_ok=True)
    return path


def resolve_path(path_str: str | Path) -> Path:
    """Expand user and environment variables for arbitrary paths."""
    return _expand(str(path_str))
