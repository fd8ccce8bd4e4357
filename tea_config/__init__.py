"""
tea_config -- single public entrypoint for runtime settings.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_settings()``.  No other component reads settings files
    or environment variables directly.

Architecture position:
    Configuration.  Sits above ``tea_kernel`` and below ``tea_services``.
    The kernel MUST NEVER import from ``tea_config``; ``bridges`` turns
    Settings into kernel-compatible inputs.

Failure modes:
    - ``FileNotFoundError`` -- an explicit settings file does not exist.
    - ``ValueError`` -- unknown keys or out-of-range values.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path

from tea_config.loader import CONFIG_FILE_ENV, load_yaml_file, parse_settings
from tea_config.schema import DEFAULT_JWT_SECRET, Settings

_logger = logging.getLogger("tea_kernel.config")

__all__ = ["DEFAULT_JWT_SECRET", "Settings", "get_active_settings"]


def get_active_settings(
    config_path: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
) -> Settings:
    """The ONLY public settings entrypoint.

    Args:
        config_path: Optional YAML settings file.  Defaults to the file
            named by ``TEA_CONFIG_FILE``, if set.
        environ: Environment mapping.  Defaults to ``os.environ``.

    Returns:
        Frozen Settings.

    Raises:
        FileNotFoundError: If the settings file does not exist.
        ValueError: If validation fails.
    """
    env = os.environ if environ is None else environ
    path = config_path or env.get(CONFIG_FILE_ENV) or None

    file_values = load_yaml_file(Path(path)) if path else {}
    settings = parse_settings(file_values, env)

    _logger.info(
        "settings_loaded",
        extra={
            "settings_file": str(path) if path else None,
            "backend": settings.backend,
            "uses_default_secret": settings.uses_default_secret,
        },
    )
    return settings
