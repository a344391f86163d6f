"""
Configuration Loader (``warehouse_config.loader``).

Responsibility
--------------
Loads the YAML files under ``warehouse_config/data`` and parses them into
the frozen dataclasses of ``warehouse_config.schema``.  Runtime callers use
``warehouse_config.get_active_config()`` instead of this module.

Invariants enforced
-------------------
* Parse errors raise ``ValueError`` or ``KeyError`` with descriptive
  messages; required fields have no silent defaults.
* Every pattern is compiled once here, so a bad regex fails at load time.
* ``compute_checksum`` is a deterministic SHA-256 over the parsed data.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown role or invalid regex  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
import os
import re
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from warehouse_config.schema import (
    RateCodePatternDef,
    RateCodePatternSet,
    WarehouseConfig,
    WarehouseSettings,
)

KNOWN_ROLES = frozenset(
    {
        "socket",
        "connection",
        "modem_net",
        "modem_tel",
        "decoder_1way",
        "decoder_2way",
        "riser",
        "trunk",
    }
)

ENV_DATABASE_URL = "WAREHOUSE_DATABASE_URL"
ENV_TRANSFER_TTL_HOURS = "WAREHOUSE_TRANSFER_TTL_HOURS"


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def parse_settings(
    data: dict[str, Any],
    environ: Mapping[str, str] | None = None,
) -> WarehouseSettings:
    """
    Parse WarehouseSettings, applying environment overrides.

    Raises:
        KeyError: ``database.url`` missing and no override set.
        ValueError: TTL is not a positive integer.
    """
    env = os.environ if environ is None else environ
    database = data.get("database", {})
    transfers = data.get("transfers", {})

    url = env.get(ENV_DATABASE_URL) or database["url"]
    ttl_raw = env.get(ENV_TRANSFER_TTL_HOURS, transfers.get("ttl_hours", 72))
    try:
        ttl = int(ttl_raw)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"transfer TTL must be an integer, got {ttl_raw!r}") from exc
    if ttl <= 0:
        raise ValueError(f"transfer TTL must be positive, got {ttl}")

    return WarehouseSettings(
        database_url=url,
        transfer_ttl_hours=ttl,
        echo=bool(database.get("echo", False)),
    )


def parse_rate_code_patterns(data: dict[str, Any]) -> RateCodePatternSet:
    """
    Parse the versioned rate-code pattern table.

    Raises:
        KeyError: ``version`` or an entry's ``role`` missing.
        ValueError: unknown role, duplicate role, empty or invalid pattern.
    """
    entries: list[RateCodePatternDef] = []
    seen: set[str] = set()
    for raw in data.get("roles", []):
        role = raw["role"]
        if role not in KNOWN_ROLES:
            raise ValueError(f"Unknown rate-code role {role!r}")
        if role in seen:
            raise ValueError(f"Duplicate rate-code role {role!r}")
        seen.add(role)
        patterns = tuple(str(p) for p in raw.get("patterns", ()))
        if not patterns:
            raise ValueError(f"Role {role!r} has no patterns")
        for pattern in patterns:
            try:
                re.compile(pattern)
            except re.error as exc:
                raise ValueError(f"Invalid pattern {pattern!r} for role {role!r}: {exc}") from exc
        entries.append(RateCodePatternDef(role=role, patterns=patterns))

    return RateCodePatternSet(version=str(data["version"]), entries=tuple(entries))


def compute_checksum(
    settings: WarehouseSettings,
    patterns: RateCodePatternSet,
) -> str:
    """Deterministic SHA-256 of the parsed configuration."""
    payload = {
        "settings": {
            "transfer_ttl_hours": settings.transfer_ttl_hours,
            "echo": settings.echo,
        },
        "patterns": {
            "version": patterns.version,
            "entries": [[e.role, list(e.patterns)] for e in patterns.entries],
        },
    }
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def load_config(
    config_dir: Path,
    environ: Mapping[str, str] | None = None,
) -> WarehouseConfig:
    """Load settings.yaml and rate_code_patterns.yaml from ``config_dir``."""
    settings = parse_settings(load_yaml_file(config_dir / "settings.yaml"), environ)
    patterns = parse_rate_code_patterns(
        load_yaml_file(config_dir / "rate_code_patterns.yaml")
    )
    return WarehouseConfig(
        settings=settings,
        rate_code_patterns=patterns,
        checksum=compute_checksum(settings, patterns),
    )
