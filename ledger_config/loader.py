"""
Configuration Loader (``ledger_config.loader``).

Responsibility
--------------
Loads a YAML configuration file, applies environment overrides and parses
the result into ``ledger_config.schema`` dataclasses.  Runtime callers use
``ledger_config.get_active_config()`` rather than this module.

Invariants enforced
-------------------
* Every parsed object is a frozen dataclass from ``schema.py``.
* Environment overrides (``LEDGER_DATABASE_URL``, ``LEDGER_LOG_LEVEL``) are
  applied before parsing, so they go through the same validation.
* ``compute_checksum`` is a deterministic SHA-256 over the effective
  settings.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Wrong value types or unknown log level  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
from pathlib import Path
from typing import Any, Mapping

import yaml

from ledger_config.schema import (
    ClosingConfig,
    DatabaseConfig,
    IntakeConfig,
    LedgerConfig,
    LoggingConfig,
)

ENV_DATABASE_URL = "LEDGER_DATABASE_URL"
ENV_LOG_LEVEL = "LEDGER_LOG_LEVEL"

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


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
        raise ValueError(f"Configuration root must be a mapping: {path}")
    return data


def apply_env_overrides(
    data: dict[str, Any], environ: Mapping[str, str] | None = None
) -> dict[str, Any]:
    """Return a copy of ``data`` with environment overrides applied."""
    environ = os.environ if environ is None else environ
    merged = {key: dict(value) if isinstance(value, dict) else value for key, value in data.items()}

    url = environ.get(ENV_DATABASE_URL)
    if url:
        merged.setdefault("database", {})["url"] = url

    level = environ.get(ENV_LOG_LEVEL)
    if level:
        merged.setdefault("logging", {})["level"] = level
    return merged


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    section = data.get(name) or {}
    if not isinstance(section, dict):
        raise ValueError(f"Configuration section '{name}' must be a mapping")
    return section


def _str(section: dict[str, Any], key: str, default: str) -> str:
    value = section.get(key, default)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        value = str(value)
    if not isinstance(value, str) or not value:
        raise ValueError(f"'{key}' must be a non-empty string, got {value!r}")
    return value


def _int(section: dict[str, Any], key: str, default: int) -> int:
    value = section.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValueError(f"'{key}' must be a non-negative integer, got {value!r}")
    return value


def _bool(section: dict[str, Any], key: str, default: bool) -> bool:
    value = section.get(key, default)
    if not isinstance(value, bool):
        raise ValueError(f"'{key}' must be a boolean, got {value!r}")
    return value


def parse_database(data: dict[str, Any]) -> DatabaseConfig:
    defaults = DatabaseConfig()
    return DatabaseConfig(
        url=_str(data, "url", defaults.url),
        echo=_bool(data, "echo", defaults.echo),
        pool_size=_int(data, "pool_size", defaults.pool_size),
        max_overflow=_int(data, "max_overflow", defaults.max_overflow),
    )


def parse_logging(data: dict[str, Any]) -> LoggingConfig:
    level = _str(data, "level", LoggingConfig().level).upper()
    if level not in _LOG_LEVELS:
        raise ValueError(f"Unknown log level {level!r}; expected one of {_LOG_LEVELS}")
    return LoggingConfig(level=level)


def parse_intake(data: dict[str, Any]) -> IntakeConfig:
    defaults = IntakeConfig()
    return IntakeConfig(
        reference_prefix=_str(data, "reference_prefix", defaults.reference_prefix),
        tombstone_marker=_str(data, "tombstone_marker", defaults.tombstone_marker),
    )


def parse_closing(data: dict[str, Any]) -> ClosingConfig:
    return ClosingConfig(
        equity_account_number=_str(
            data, "equity_account_number", ClosingConfig().equity_account_number
        ),
    )


def parse_config(data: dict[str, Any]) -> LedgerConfig:
    """Parse an (override-applied) mapping into a LedgerConfig."""
    return LedgerConfig(
        config_id=_str(data, "config_id", "default"),
        version=_int(data, "version", 1),
        database=parse_database(_section(data, "database")),
        logging=parse_logging(_section(data, "logging")),
        intake=parse_intake(_section(data, "intake")),
        closing=parse_closing(_section(data, "closing")),
        checksum=compute_checksum(data),
    )


def log_level(config: LedgerConfig) -> int:
    """Numeric logging level for ``configure_logging``."""
    return logging.getLevelName(config.logging.level)


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
