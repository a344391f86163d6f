"""
Warehouse configuration schema.

Frozen dataclasses the YAML fragments are parsed into.  The loader builds
them; warehouse_config.get_active_config() hands a WarehouseConfig to the
runtime.
"""

from __future__ import annotations

from dataclasses import dataclass

# ---------------------------------------------------------------------------
# Runtime settings
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class WarehouseSettings:
    """Database and protocol settings."""

    database_url: str
    transfer_ttl_hours: int = 72
    echo: bool = False


# ---------------------------------------------------------------------------
# Rate-code patterns
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RateCodePatternDef:
    """Regex patterns serving one settlement role, in priority order."""

    role: str
    patterns: tuple[str, ...]


@dataclass(frozen=True)
class RateCodePatternSet:
    version: str
    entries: tuple[RateCodePatternDef, ...]


# ---------------------------------------------------------------------------
# Assembled configuration
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class WarehouseConfig:
    settings: WarehouseSettings
    rate_code_patterns: RateCodePatternSet
    checksum: str
