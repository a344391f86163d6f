"""
warehouse_config -- single public entrypoint for warehouse configuration.

Responsibility:
    ``get_active_config()`` is the only way runtime code obtains settings
    and the rate-code pattern table.  YAML loading is internal.

Architecture position:
    Configuration -- sits above ``warehouse_kernel`` and the engines and
    below ``warehouse_services``.  The kernel never imports this package;
    ``warehouse_config.bridges`` translates config into engine inputs.

Failure modes:
    - ``FileNotFoundError`` -- a YAML file is missing from the config dir.
    - ``ValueError`` / ``KeyError`` -- malformed configuration.

Audit relevance:
    Every successful call emits a ``WAREHOUSE_CONFIG_TRACE`` log record with
    the checksum and pattern-table version in force.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path

from warehouse_config.loader import load_config
from warehouse_config.schema import (
    RateCodePatternDef,
    RateCodePatternSet,
    WarehouseConfig,
    WarehouseSettings,
)

_logger = logging.getLogger("warehouse_kernel.config")

_DEFAULT_CONFIG_DIR = Path(__file__).parent / "data"


def get_active_config(
    config_dir: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> WarehouseConfig:
    """Load, validate and return the active configuration.

    Args:
        config_dir: Directory holding settings.yaml and
            rate_code_patterns.yaml.  Defaults to warehouse_config/data/.
        environ: Environment used for overrides.  Defaults to os.environ.
    """
    config = load_config(config_dir or _DEFAULT_CONFIG_DIR, environ)

    _logger.info(
        "WAREHOUSE_CONFIG_TRACE",
        extra={
            "trace_type": "WAREHOUSE_CONFIG_TRACE",
            "checksum": config.checksum,
            "pattern_version": config.rate_code_patterns.version,
            "transfer_ttl_hours": config.settings.transfer_ttl_hours,
        },
    )
    return config


__all__ = [
    "RateCodePatternDef",
    "RateCodePatternSet",
    "WarehouseConfig",
    "WarehouseSettings",
    "get_active_config",
]
