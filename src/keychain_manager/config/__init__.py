"""Configuration loader for keychain-manager.

Loads settings from a YAML file with built-in defaults. Supports environment
variable overrides using the KEYCHAIN_MANAGER_ prefix with double-underscore
nesting (e.g., KEYCHAIN_MANAGER_VAULT__BACKEND=sqlite).
"""

from __future__ import annotations

import os
import pathlib
from collections.abc import Mapping
from typing import Any

import yaml
from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Config sub-models
# ---------------------------------------------------------------------------

class KeychainConfig(BaseModel):
    service: str = "keychain-manager"
    access_group: str | None = None


class VaultConfig(BaseModel):
    # memory | encrypted_file | sqlite | security_cli
    backend: str = "memory"
    path: str = "./data/vault.enc"
    master_password: str | None = None
    security_binary: str = "security"
    keychain_path: str | None = None


class LoggingConfig(BaseModel):
    level: str = "WARNING"


# ---------------------------------------------------------------------------
# Top-level settings
# ---------------------------------------------------------------------------

class Settings(BaseModel):
    keychain: KeychainConfig = Field(default_factory=KeychainConfig)
    vault: VaultConfig = Field(default_factory=VaultConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


# ---------------------------------------------------------------------------
# Deep merge helper
# ---------------------------------------------------------------------------

def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge *override* into *base*, returning a new dict."""
    merged = dict(base)
    for key, value in override.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


# ---------------------------------------------------------------------------
# Environment variable overrides
# ---------------------------------------------------------------------------

_ENV_PREFIX = "KEYCHAIN_MANAGER_"


def _collect_env_overrides(environ: Mapping[str, str] | None = None) -> dict[str, Any]:
    """Turn KEYCHAIN_MANAGER_* variables into a nested dict.

    KEYCHAIN_MANAGER_VAULT__MASTER_PASSWORD=1234 becomes
    {"vault": {"master_password": "1234"}}. Values stay strings; the
    models do any conversion, so numeric-looking secrets survive intact.
    """
    environ = os.environ if environ is None else environ
    overrides: dict[str, Any] = {}
    for name in sorted(environ):
        if not name.startswith(_ENV_PREFIX):
            continue
        *sections, field = name.removeprefix(_ENV_PREFIX).lower().split("__")
        target = overrides
        for section in sections:
            target = target.setdefault(section, {})
        target[field] = environ[name]
    return overrides


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------

_BUILTIN_DEFAULTS_PATH = pathlib.Path(__file__).resolve().parents[3] / "config" / "keychain_defaults.yaml"


def _read_yaml(path: pathlib.Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    data = yaml.safe_load(path.read_text())
    return data if isinstance(data, dict) else {}


def load_settings(config_path: pathlib.Path | None = None) -> Settings:
    """Load settings with layered overrides.

    Layer 1: model defaults
    Layer 2: YAML file (*config_path*, or the repository defaults file)
    Layer 3: KEYCHAIN_MANAGER_* environment variables
    """
    layers = (
        _read_yaml(config_path if config_path is not None else _BUILTIN_DEFAULTS_PATH),
        _collect_env_overrides(),
    )
    merged: dict[str, Any] = Settings().model_dump()
    for layer in layers:
        merged = _deep_merge(merged, layer)
    return Settings.model_validate(merged)
