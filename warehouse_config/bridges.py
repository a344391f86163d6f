"""
Config -> Engine Bridges.

Converts parsed configuration into engine inputs.  Lives here because the
engines must never import warehouse_config.

Usage:
    from warehouse_config.bridges import build_pattern_table

    config = get_active_config()
    table = build_pattern_table(config)
"""

from __future__ import annotations

from datetime import timedelta

from warehouse_config.schema import WarehouseConfig
from warehouse_engines.rate_codes import CodeRole, RateCodePattern, RateCodePatternTable


def build_pattern_table(config: WarehouseConfig) -> RateCodePatternTable:
    """RateCodePatternTable from the configured pattern set."""
    patterns = config.rate_code_patterns
    return RateCodePatternTable(
        version=patterns.version,
        entries=tuple(
            RateCodePattern(role=CodeRole(entry.role), patterns=entry.patterns)
            for entry in patterns.entries
        ),
    )


def transfer_ttl(config: WarehouseConfig) -> timedelta:
    return timedelta(hours=config.settings.transfer_ttl_hours)
