"""
Configuration schema (``ledger_config.schema``).

Frozen dataclasses produced by ``ledger_config.loader``.  Every field has a
default so an empty YAML file yields a usable development configuration.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class DatabaseConfig:
    """Connection settings handed to ledger_kernel.db.engine."""

    url: str = "sqlite:///ledger.db"
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"


@dataclass(frozen=True)
class IntakeConfig:
    """Bulk intake settings: batch reference prefix and tombstone marker."""

    reference_prefix: str = "REF"
    tombstone_marker: str = "DELETED"


@dataclass(frozen=True)
class ClosingConfig:
    """Period closing: Detail account number that receives the net result."""

    equity_account_number: str = "3203"


@dataclass(frozen=True)
class LedgerConfig:
    """Root configuration object returned by ``get_active_config()``."""

    config_id: str = "default"
    version: int = 1
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    intake: IntakeConfig = field(default_factory=IntakeConfig)
    closing: ClosingConfig = field(default_factory=ClosingConfig)
    checksum: str = ""
