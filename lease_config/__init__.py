"""
lease_config -- single public entrypoint for lease core configuration.

Responsibility:
    Provides the runtime way to obtain configuration through
    ``get_active_config()``.  Services receive the returned
    ``LeaseCoreConfig``; they never read files or environment variables.

Architecture position:
    Configuration -- sits above ``lease_kernel`` and below
    ``lease_services`` / ``lease_modules``.  The kernel never imports
    from ``lease_config``.

Failure modes:
    - ``FileNotFoundError`` -- the configured file does not exist.
    - ``ValueError`` -- unknown keys or invalid values.
"""

from __future__ import annotations

import logging
import os
from dataclasses import replace
from pathlib import Path

from lease_config.loader import load_config, load_yaml_file, parse_config
from lease_config.schema import (
    ApprovalConfig,
    DatabaseConfig,
    LeaseCoreConfig,
    NotificationConfig,
    TriggerEvents,
)

_logger = logging.getLogger("lease_kernel.config")

CONFIG_PATH_ENV = "LEASE_CORE_CONFIG"
DATABASE_URL_ENV = "LEASE_CORE_DATABASE_URL"

_DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"


def get_active_config(path: Path | str | None = None) -> LeaseCoreConfig:
    """Load the active configuration.

    Resolution order for the file: explicit ``path``, then the
    ``LEASE_CORE_CONFIG`` environment variable, then the packaged
    ``defaults.yaml``.  ``LEASE_CORE_DATABASE_URL``, when set, replaces
    ``database.url``.
    """
    resolved = Path(path or os.environ.get(CONFIG_PATH_ENV) or _DEFAULT_CONFIG_PATH)
    config = load_config(resolved)

    database_url = os.environ.get(DATABASE_URL_ENV)
    if database_url:
        config = replace(config, database=replace(config.database, url=database_url))

    _logger.info(
        "LEASE_CONFIG_TRACE",
        extra={
            "trace_type": "LEASE_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "source": str(resolved),
        },
    )
    return config


__all__ = [
    "get_active_config",
    "load_config",
    "load_yaml_file",
    "parse_config",
    "LeaseCoreConfig",
    "DatabaseConfig",
    "ApprovalConfig",
    "NotificationConfig",
    "TriggerEvents",
]
