"""
Module: warehouse_engines
Responsibility:
    Pure calculation engines of the warehouse: rate-code resolution and the
    Settlement Computer.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May import warehouse_kernel domain values and exceptions only.
    MUST NOT import warehouse_services.

Invariants enforced:
    - Engines never read the clock or the database.
    - Determinism: identical inputs always produce identical outputs.

Usage:
    from warehouse_engines import ServiceInput, compute_settlement

    lines = compute_settlement(
        services=[ServiceInput("NET"), ServiceInput("DTV", "DECODER_1_WAY")],
        rate_codes=["GNIAZDO", "PRZYLACZE", "MODEM_NET_TEL", "DEKODER_1WAY"],
    )
"""

from warehouse_engines.rate_codes import (
    DEFAULT_PATTERN_TABLE,
    CodeRole,
    RateCodePattern,
    RateCodePatternTable,
    resolve_code,
)
from warehouse_engines.settlement import (
    ServiceInput,
    compute_settlement,
    settlement_total,
)
from warehouse_engines.tracer import compute_input_fingerprint, traced_engine

__all__ = [
    "DEFAULT_PATTERN_TABLE",
    "CodeRole",
    "RateCodePattern",
    "RateCodePatternTable",
    "ServiceInput",
    "compute_input_fingerprint",
    "compute_settlement",
    "resolve_code",
    "settlement_total",
    "traced_engine",
]
