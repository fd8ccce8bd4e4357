"""
Settings loader (``tea_config.loader``).

Responsibility
--------------
Reads the optional YAML settings file and the environment, and merges
them over the defaults in ``Settings``.  Runtime callers go through
``tea_config.get_active_settings()``, not this module.

Invariants enforced
-------------------
* Precedence: defaults < YAML file < environment variables.
* Unknown YAML keys are rejected rather than silently ignored.
* Integer settings given as text must parse as integers.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown key, non-mapping document, bad integer  -> ``ValueError``.
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from tea_config.schema import Settings

CONFIG_FILE_ENV = "TEA_CONFIG_FILE"

# Setting name -> environment variable
ENV_VARS: dict[str, str] = {
    "database_url": "DATABASE_URL",
    "jwt_secret": "JWT_SECRET",
    "token_ttl_days": "TEA_TOKEN_TTL_DAYS",
    "admin_username": "TEA_ADMIN_USERNAME",
    "admin_default_password": "TEA_ADMIN_DEFAULT_PASSWORD",
    "min_password_length": "TEA_MIN_PASSWORD_LENGTH",
    "bcrypt_rounds": "TEA_BCRYPT_ROUNDS",
    "pool_size": "TEA_POOL_SIZE",
    "log_level": "TEA_LOG_LEVEL",
}

INT_SETTINGS = frozenset(
    {"token_ttl_days", "min_password_length", "bcrypt_rounds", "pool_size"}
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a YAML settings file.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the document is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Settings file {path} must contain a mapping")
    return data


def parse_int(name: str, value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError(f"{name} must be an integer, got {value!r}")
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}") from None


def parse_settings(
    file_values: Mapping[str, Any],
    environ: Mapping[str, str],
) -> Settings:
    """Merge file and environment values over the defaults."""
    unknown = sorted(set(file_values) - set(Settings.field_names()))
    if unknown:
        raise ValueError(f"Unknown settings: {', '.join(unknown)}")

    merged: dict[str, Any] = dict(file_values)
    for name, var in ENV_VARS.items():
        raw = environ.get(var)
        if raw is not None and raw != "":
            merged[name] = raw

    for name in INT_SETTINGS & set(merged):
        merged[name] = parse_int(name, merged[name])
    for name in set(merged) - INT_SETTINGS:
        merged[name] = str(merged[name])

    return Settings(**merged)
