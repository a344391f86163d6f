"""
warehouse_engines.rate_codes -- Rate-code resolution through a pattern table.

Responsibility:
    Map a settlement role (socket, connection, modem, decoder, riser,
    trunk) to one concrete rate code of the tenant's rate catalog.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    The table itself is configuration (warehouse_config/data/
    rate_code_patterns.yaml); DEFAULT_PATTERN_TABLE mirrors it so the
    engine is usable without the config layer.

Invariants enforced:
    - Patterns of a role are tried in their listed priority; for each
      pattern the rate codes are scanned in rate-table order and the first
      case-insensitive regex match wins.
    - Resolution is deterministic for a given (codes, table).

Failure modes:
    - No match returns None.  The caller omits the code.

Known fragility:
    Two differently named rate codes that both match a role's pattern
    collide silently; the one earlier in rate-table order wins.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache


class CodeRole(str, Enum):
    """What a settlement line pays for."""

    SOCKET = "socket"
    CONNECTION = "connection"
    MODEM_NET = "modem_net"
    MODEM_TEL = "modem_tel"
    DECODER_1WAY = "decoder_1way"
    DECODER_2WAY = "decoder_2way"
    RISER = "riser"
    TRUNK = "trunk"


@dataclass(frozen=True)
class RateCodePattern:
    role: CodeRole
    patterns: tuple[str, ...]


@dataclass(frozen=True)
class RateCodePatternTable:
    """Versioned priority table of code patterns."""

    version: str
    entries: tuple[RateCodePattern, ...]

    def patterns_for(self, role: CodeRole) -> tuple[str, ...]:
        for entry in self.entries:
            if entry.role == role:
                return entry.patterns
        return ()


DEFAULT_PATTERN_TABLE = RateCodePatternTable(
    version="1",
    entries=(
        RateCodePattern(CodeRole.SOCKET, ("gniaz",)),
        RateCodePattern(CodeRole.CONNECTION, ("przy[lł]",)),
        RateCodePattern(CodeRole.MODEM_NET, ("net",)),
        RateCodePattern(CodeRole.MODEM_TEL, ("tel", "net")),
        RateCodePattern(CodeRole.DECODER_1WAY, ("1[-_ ]?way",)),
        RateCodePattern(CodeRole.DECODER_2WAY, ("2[-_ ]?way",)),
        RateCodePattern(CodeRole.RISER, ("pion",)),
        RateCodePattern(CodeRole.TRUNK, ("listw",)),
    ),
)


@lru_cache(maxsize=256)
def _compile(pattern: str) -> re.Pattern[str]:
    return re.compile(pattern, re.IGNORECASE)


def resolve_code(
    codes: Sequence[str],
    role: CodeRole,
    table: RateCodePatternTable = DEFAULT_PATTERN_TABLE,
) -> str | None:
    """
    Resolve the rate code serving ``role``.

    Args:
        codes: Rate codes in rate-table order.
        role: Settlement role to resolve.
        table: Pattern table to use.

    Returns:
        The first matching code, or None.
    """
    for pattern in table.patterns_for(role):
        regex = _compile(pattern)
        for code in codes:
            if regex.search(code):
                return code
    return None
