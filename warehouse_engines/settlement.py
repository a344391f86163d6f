"""
warehouse_engines.settlement -- Settlement Computer for completed orders.

Responsibility:
    Turn the activated services of an order plus the tenant rate catalog
    into the ordered list of billable (code, quantity) lines, and price
    such a list.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Invoked by warehouse_kernel.services.settlement_service, which loads the
    order and rates and persists the result.

Algorithm:
    1. Every activated service (ATV included) adds sockets: 1, plus for NET
       one per secondary device and one per extra device.
    2. One connection code per order.
    3. Every service except ATV adds one device code: NET -> modem (net),
       TEL -> modem (tel), DTV -> decoder 1-way or 2-way by device
       category.
    4. Riser and trunk counts, when given, are set as exact quantities and
       replace any count already on the same code.
    5. Lines keep first-insertion order; zero counts are omitted.

Invariants enforced:
    - Determinism: identical inputs always produce identical outputs.
    - Unresolved rate codes are omitted, never raised.  Each omission is
      logged as ``settlement_code_unresolved``.

Failure modes:
    - settlement_total raises RateDefinitionNotFoundError for a line whose
      code is not in the catalog.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal

from warehouse_engines.rate_codes import (
    DEFAULT_PATTERN_TABLE,
    CodeRole,
    RateCodePatternTable,
    resolve_code,
)
from warehouse_engines.tracer import traced_engine
from warehouse_kernel.domain.dtos import RateInfo
from warehouse_kernel.exceptions import RateDefinitionNotFoundError
from warehouse_kernel.logging_config import get_logger

logger = get_logger("engines.settlement")

_DECODER_ROLES = {
    "DECODER_1_WAY": CodeRole.DECODER_1WAY,
    "DECODER_2_WAY": CodeRole.DECODER_2WAY,
}


@dataclass(frozen=True)
class ServiceInput:
    """One activated service of an order, as the engine sees it."""

    service_type: str
    device_category: str | None = None
    has_secondary_device: bool = False
    extra_device_count: int = 0

    @property
    def socket_count(self) -> int:
        if self.service_type == "NET":
            return 1 + int(self.has_secondary_device) + max(self.extra_device_count, 0)
        return 1

    @property
    def device_role(self) -> CodeRole | None:
        match self.service_type:
            case "NET":
                return CodeRole.MODEM_NET
            case "TEL":
                return CodeRole.MODEM_TEL
            case "DTV":
                return _DECODER_ROLES.get(self.device_category or "")
            case _:
                return None


class _Accumulator:
    """Ordered code -> quantity map that logs unresolved roles."""

    def __init__(self, codes: Sequence[str], table: RateCodePatternTable):
        self._codes = codes
        self._table = table
        self.counts: dict[str, int] = {}

    def _resolve(self, role: CodeRole) -> str | None:
        code = resolve_code(self._codes, role, self._table)
        if code is None:
            logger.warning(
                "settlement_code_unresolved",
                extra={"role": role.value, "pattern_version": self._table.version},
            )
        return code

    def add(self, role: CodeRole, quantity: int) -> None:
        if quantity <= 0:
            return
        code = self._resolve(role)
        if code is not None:
            self.counts[code] = self.counts.get(code, 0) + quantity

    def put(self, role: CodeRole, quantity: int) -> None:
        """Set a manually entered quantity, replacing any count for the code."""
        if quantity <= 0:
            return
        code = self._resolve(role)
        if code is not None:
            self.counts[code] = quantity


@traced_engine("settlement", "1.0", fingerprint_fields=("services", "rate_codes"))
def compute_settlement(
    *,
    services: Sequence[ServiceInput],
    rate_codes: Sequence[str],
    riser_count: int | None = None,
    trunk_count: int | None = None,
    patterns: RateCodePatternTable = DEFAULT_PATTERN_TABLE,
) -> tuple[tuple[str, int], ...]:
    """
    Compute the settlement lines of one order.

    Args:
        services: Activated services in order position.
        rate_codes: Tenant rate codes in rate-table order.
        riser_count: Manually entered riser quantity, if any.
        trunk_count: Manually entered trunk quantity, if any.
        patterns: Rate-code pattern table.

    Returns:
        (code, quantity) pairs in first-insertion order, zeros omitted.
    """
    acc = _Accumulator(list(rate_codes), patterns)

    for service in services:
        acc.add(CodeRole.SOCKET, service.socket_count)

    acc.add(CodeRole.CONNECTION, 1)

    for service in services:
        role = service.device_role
        if role is not None:
            acc.add(role, 1)

    if riser_count:
        acc.put(CodeRole.RISER, riser_count)
    if trunk_count:
        acc.put(CodeRole.TRUNK, trunk_count)

    return tuple((code, qty) for code, qty in acc.counts.items() if qty > 0)


def settlement_total(
    entries: Sequence[tuple[str, int]],
    rates: Sequence[RateInfo],
) -> Decimal:
    """Price settlement lines against the rate catalog."""
    amounts = {rate.code: rate.amount for rate in rates}
    total = Decimal("0")
    for code, quantity in entries:
        if code not in amounts:
            raise RateDefinitionNotFoundError(code)
        total += amounts[code] * quantity
    return total
