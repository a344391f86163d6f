"""
Tests for the Settlement Computer (warehouse_engines.settlement).

Covers:
- socket, connection and device codes per service type
- NET secondary / extra devices, ATV socket-only
- riser / trunk quantities
- unresolved codes omitted and logged
- rate-code resolution priority and pattern tables
- settlement_total pricing
"""

from decimal import Decimal

import pytest

from warehouse_engines.rate_codes import (
    DEFAULT_PATTERN_TABLE,
    CodeRole,
    RateCodePattern,
    RateCodePatternTable,
    resolve_code,
)
from warehouse_engines.settlement import ServiceInput, compute_settlement, settlement_total
from warehouse_kernel.domain.dtos import RateInfo
from warehouse_kernel.exceptions import RateDefinitionNotFoundError

CODES = [
    "GNIAZDO",
    "PRZYLACZE",
    "MODEM_NET_TEL",
    "DEKODER_1WAY",
    "DEKODER_2WAY",
    "PION",
    "LISTWA",
]


def _settle(services, codes=CODES, **kwargs):
    return compute_settlement(services=services, rate_codes=codes, **kwargs)


class TestComputeSettlement:
    def test_net_and_one_way_decoder(self):
        result = _settle(
            [ServiceInput("NET"), ServiceInput("DTV", "DECODER_1_WAY")],
            codes=["GNIAZDO", "PRZYLACZE", "MODEM_NET_TEL", "DEKODER_1WAY"],
        )

        assert result == (
            ("GNIAZDO", 2),
            ("PRZYLACZE", 1),
            ("MODEM_NET_TEL", 1),
            ("DEKODER_1WAY", 1),
        )

    def test_tel_shares_modem_code(self):
        result = _settle([ServiceInput("NET"), ServiceInput("TEL")])

        assert dict(result)["MODEM_NET_TEL"] == 2
        assert dict(result)["GNIAZDO"] == 2

    def test_two_way_decoder(self):
        result = _settle([ServiceInput("DTV", "DECODER_2_WAY")])

        assert dict(result) == {"GNIAZDO": 1, "PRZYLACZE": 1, "DEKODER_2WAY": 1}

    def test_atv_counts_socket_only(self):
        result = _settle([ServiceInput("ATV")])

        assert result == (("GNIAZDO", 1), ("PRZYLACZE", 1))

    def test_connection_added_once(self):
        services = [ServiceInput("NET"), ServiceInput("TEL"), ServiceInput("ATV")]

        assert dict(_settle(services))["PRZYLACZE"] == 1

    def test_net_secondary_and_extra_devices_add_sockets(self):
        result = _settle([ServiceInput("NET", has_secondary_device=True, extra_device_count=2)])

        assert dict(result)["GNIAZDO"] == 4
        assert dict(result)["MODEM_NET_TEL"] == 1

    def test_dtv_without_known_category_has_no_device_code(self):
        result = _settle([ServiceInput("DTV")])

        assert dict(result) == {"GNIAZDO": 1, "PRZYLACZE": 1}

    def test_riser_and_trunk_exact_quantities(self):
        result = _settle([ServiceInput("NET")], riser_count=3, trunk_count=7)

        assert result[-2:] == (("PION", 3), ("LISTWA", 7))

    def test_riser_quantity_replaces_shared_code(self):
        # riser and socket both resolve to the same catalog code
        table = RateCodePatternTable(
            version="shared",
            entries=(
                RateCodePattern(CodeRole.SOCKET, ("gniaz",)),
                RateCodePattern(CodeRole.CONNECTION, ("przy",)),
                RateCodePattern(CodeRole.RISER, ("gniaz",)),
            ),
        )
        result = _settle(
            [ServiceInput("ATV"), ServiceInput("ATV")],
            codes=["GNIAZDO_PION", "PRZYLACZE"],
            riser_count=5,
            patterns=table,
        )

        assert result == (("GNIAZDO_PION", 5), ("PRZYLACZE", 1))

    def test_zero_riser_omitted(self):
        result = _settle([ServiceInput("NET")], riser_count=0, trunk_count=None)

        assert "PION" not in dict(result)
        assert "LISTWA" not in dict(result)

    def test_unresolved_code_is_omitted_and_logged(self, captured_logs):
        result = _settle([ServiceInput("NET")], codes=["GNIAZDO", "PRZYLACZE"])

        assert result == (("GNIAZDO", 1), ("PRZYLACZE", 1))
        unresolved = [r for r in captured_logs() if r["message"] == "settlement_code_unresolved"]
        assert [r["role"] for r in unresolved] == ["modem_net"]

    def test_no_rates_yields_empty(self):
        assert _settle([ServiceInput("NET")], codes=[]) == ()

    def test_emits_engine_trace(self, captured_logs):
        _settle([ServiceInput("NET")])

        traces = [r for r in captured_logs() if r["message"] == "WAREHOUSE_ENGINE_TRACE"]
        assert traces
        assert traces[0]["engine_name"] == "settlement"
        assert len(traces[0]["input_fingerprint"]) == 16


class TestResolveCode:
    def test_case_insensitive(self):
        assert resolve_code(["gniazdo_abonenckie"], CodeRole.SOCKET) == "gniazdo_abonenckie"

    def test_first_match_by_rate_order(self):
        codes = ["GNIAZDO_B", "GNIAZDO_A"]
        assert resolve_code(codes, CodeRole.SOCKET) == "GNIAZDO_B"

    def test_pattern_priority_beats_rate_order(self):
        codes = ["MODEM_NET", "TERMINAL_TEL"]
        assert resolve_code(codes, CodeRole.MODEM_TEL) == "TERMINAL_TEL"
        assert resolve_code(["MODEM_NET"], CodeRole.MODEM_TEL) == "MODEM_NET"

    def test_connection_accepts_polish_letter(self):
        assert resolve_code(["PRZYŁĄCZE"], CodeRole.CONNECTION) == "PRZYŁĄCZE"

    def test_custom_table(self):
        table = RateCodePatternTable(
            version="custom",
            entries=(RateCodePattern(CodeRole.SOCKET, ("^SOCKET$",)),),
        )
        assert resolve_code(["GNIAZDO", "SOCKET"], CodeRole.SOCKET, table) == "SOCKET"
        assert resolve_code(["GNIAZDO"], CodeRole.CONNECTION, table) is None

    def test_default_table_covers_every_role(self):
        for role in CodeRole:
            assert DEFAULT_PATTERN_TABLE.patterns_for(role)


class TestSettlementTotal:
    def test_prices_lines(self):
        rates = [RateInfo("GNIAZDO", Decimal("5")), RateInfo("PRZYLACZE", Decimal("10.50"))]

        total = settlement_total([("GNIAZDO", 2), ("PRZYLACZE", 1)], rates)

        assert total == Decimal("20.50")

    def test_unknown_code_raises(self):
        with pytest.raises(RateDefinitionNotFoundError):
            settlement_total([("MISSING", 1)], [])
