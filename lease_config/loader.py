"""
Configuration Loader (``lease_config.loader``).

Responsibility
--------------
Loads YAML documents and parses them into typed ``lease_config.schema``
dataclass instances.  Runtime callers go through
``lease_config.get_active_config()``.

Architecture position
---------------------
**Config layer** -- infrastructure tooling.  No dependency on kernel,
engines, modules or services.

Invariants enforced
-------------------
* Every parsed object is a frozen dataclass from ``schema.py``.
* Unknown top-level or section keys raise ``ValueError`` so typos never
  silently fall back to defaults.
* ``compute_checksum`` produces a deterministic SHA-256 hash for
  configuration identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Invalid values (currency, log level, pool sizes)  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
import logging
from pathlib import Path
from typing import Any

import yaml

from lease_config.schema import (
    ApprovalConfig,
    DatabaseConfig,
    LeaseCoreConfig,
    NotificationConfig,
    TriggerEvents,
)

_TOP_LEVEL_KEYS = frozenset({
    "config_id",
    "version",
    "base_currency",
    "log_level",
    "database",
    "approvals",
    "notifications",
})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the document is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Configuration {path} must be a mapping, got {type(data).__name__}")
    return data


def _check_keys(section: str, data: dict[str, Any], allowed: set[str] | frozenset[str]) -> None:
    unknown = set(data) - set(allowed)
    if unknown:
        raise ValueError(f"Unknown keys in {section}: {', '.join(sorted(unknown))}")


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    value = data.get(name) or {}
    if not isinstance(value, dict):
        raise ValueError(f"Section {name!r} must be a mapping")
    return value


def _field_names(cls: type) -> set[str]:
    return set(cls.__dataclass_fields__)


def parse_database(data: dict[str, Any]) -> DatabaseConfig:
    _check_keys("database", data, _field_names(DatabaseConfig))
    config = DatabaseConfig(**data)
    if not config.url:
        raise ValueError("database.url must not be empty")
    if config.pool_size < 1:
        raise ValueError(f"database.pool_size must be >= 1, got {config.pool_size}")
    if config.max_overflow < 0:
        raise ValueError(f"database.max_overflow must be >= 0, got {config.max_overflow}")
    return config


def parse_approvals(data: dict[str, Any]) -> ApprovalConfig:
    _check_keys("approvals", data, _field_names(ApprovalConfig))
    for key, value in data.items():
        if not isinstance(value, bool):
            raise ValueError(f"approvals.{key} must be true or false, got {value!r}")
    return ApprovalConfig(**data)


def parse_notifications(data: dict[str, Any]) -> NotificationConfig:
    _check_keys("notifications", data, _field_names(NotificationConfig))
    triggers_data = data.get("triggers") or {}
    _check_keys("notifications.triggers", triggers_data, _field_names(TriggerEvents))
    return NotificationConfig(
        enabled=bool(data.get("enabled", True)),
        sender=data.get("sender", NotificationConfig.sender),
        triggers=TriggerEvents(**triggers_data),
    )


def parse_config(data: dict[str, Any]) -> LeaseCoreConfig:
    """
    Parse a ``LeaseCoreConfig`` from a dict.

    Postconditions:
        Returns a frozen ``LeaseCoreConfig`` whose ``checksum`` is the
        SHA-256 of the canonical input document.
    Raises:
        ValueError: on unknown keys or invalid values.
    """
    _check_keys("configuration", data, _TOP_LEVEL_KEYS)

    base_currency = str(data.get("base_currency", "AED")).upper()
    if len(base_currency) != 3 or not base_currency.isalpha():
        raise ValueError(f"base_currency must be a 3-letter code, got {base_currency!r}")

    log_level = str(data.get("log_level", "INFO")).upper()
    if not isinstance(logging.getLevelName(log_level), int):
        raise ValueError(f"Unknown log_level {log_level!r}")

    return LeaseCoreConfig(
        config_id=str(data.get("config_id", "default")),
        version=int(data.get("version", 1)),
        base_currency=base_currency,
        log_level=log_level,
        database=parse_database(_section(data, "database")),
        approvals=parse_approvals(_section(data, "approvals")),
        notifications=parse_notifications(_section(data, "notifications")),
        checksum=compute_checksum(data),
    )


def load_config(path: Path) -> LeaseCoreConfig:
    """Load and parse one YAML configuration file."""
    return parse_config(load_yaml_file(path))


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
