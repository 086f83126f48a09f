"""
ledger_config -- single public entrypoint for ledger configuration.

Responsibility:
    ``get_active_config()`` is the ONLY way to obtain configuration at
    runtime.  No other component reads configuration files or environment
    variables.

Architecture position:
    Configuration sits above ``ledger_kernel``.  The kernel never imports
    from this package; callers (the CLI, tests) pass the parsed settings in.

Failure modes:
    - ``FileNotFoundError`` -- configuration file missing.
    - ``yaml.YAMLError`` -- malformed YAML.
    - ``ValueError`` -- wrong value types or unknown log level.

Audit relevance:
    Every successful call emits a ``ledger_config_loaded`` log entry with
    the config id, version and checksum of the effective settings.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Mapping

from ledger_config.loader import apply_env_overrides, load_yaml_file, parse_config
from ledger_config.schema import LedgerConfig

_logger = logging.getLogger("ledger_kernel.config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"


def get_active_config(
    config_path: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
) -> LedgerConfig:
    """
    Load, override and parse the active configuration.

    Args:
        config_path: YAML file to load.  Defaults to ledger_config/sets/default.yaml.
        environ: Environment mapping for overrides.  Defaults to os.environ.
    """
    path = Path(config_path) if config_path is not None else DEFAULT_CONFIG_PATH
    data = apply_env_overrides(load_yaml_file(path), environ)
    config = parse_config(data)

    _logger.info(
        "ledger_config_loaded",
        extra={
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "config_path": str(path),
        },
    )
    return config


__all__ = ["LedgerConfig", "get_active_config", "DEFAULT_CONFIG_PATH"]
