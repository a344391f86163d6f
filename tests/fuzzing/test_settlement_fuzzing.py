"""
Property tests for the Settlement Computer.

Properties:
- determinism: identical inputs give identical output
- socket count equals the sum of per-service socket counts
- exactly one connection line whenever the connection code exists
- no zero or negative quantities
- ATV never contributes a device code
"""

from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from warehouse_engines.settlement import ServiceInput, compute_settlement

CODES = ["GNIAZDO", "PRZYLACZE", "MODEM_NET_TEL", "DEKODER_1WAY", "DEKODER_2WAY", "PION", "LISTWA"]

service_inputs = st.builds(
    ServiceInput,
    service_type=st.sampled_from(["NET", "TEL", "DTV", "ATV"]),
    device_category=st.sampled_from([None, "DECODER_1_WAY", "DECODER_2_WAY", "MODEM"]),
    has_secondary_device=st.booleans(),
    extra_device_count=st.integers(min_value=0, max_value=3),
)
service_lists = st.lists(service_inputs, max_size=6)
counts = st.one_of(st.none(), st.integers(min_value=0, max_value=20))


class TestSettlementProperties:
    @given(services=service_lists, riser=counts, trunk=counts)
    @settings(max_examples=200, deadline=None, suppress_health_check=[HealthCheck.function_scoped_fixture])
    def test_deterministic(self, services, riser, trunk):
        first = compute_settlement(
            services=services, rate_codes=CODES, riser_count=riser, trunk_count=trunk
        )
        second = compute_settlement(
            services=list(services), rate_codes=list(CODES), riser_count=riser, trunk_count=trunk
        )
        assert first == second

    @given(services=service_lists)
    @settings(max_examples=200, deadline=None, suppress_health_check=[HealthCheck.function_scoped_fixture])
    def test_socket_count(self, services):
        result = dict(compute_settlement(services=services, rate_codes=CODES))
        expected = sum(s.socket_count for s in services)
        assert result.get("GNIAZDO", 0) == expected

    @given(services=service_lists)
    @settings(max_examples=100, deadline=None, suppress_health_check=[HealthCheck.function_scoped_fixture])
    def test_single_connection(self, services):
        result = dict(compute_settlement(services=services, rate_codes=CODES))
        assert result["PRZYLACZE"] == 1

    @given(services=service_lists, riser=counts, trunk=counts)
    @settings(max_examples=200, deadline=None, suppress_health_check=[HealthCheck.function_scoped_fixture])
    def test_quantities_positive_and_codes_unique(self, services, riser, trunk):
        result = compute_settlement(
            services=services, rate_codes=CODES, riser_count=riser, trunk_count=trunk
        )
        codes = [code for code, _ in result]
        assert len(codes) == len(set(codes))
        assert all(qty > 0 for _, qty in result)

    @given(atv_count=st.integers(min_value=1, max_value=5))
    @settings(max_examples=20, deadline=None, suppress_health_check=[HealthCheck.function_scoped_fixture])
    def test_atv_adds_no_device_code(self, atv_count):
        services = [ServiceInput("ATV")] * atv_count
        result = dict(compute_settlement(services=services, rate_codes=CODES))
        assert set(result) == {"GNIAZDO", "PRZYLACZE"}
        assert result["GNIAZDO"] == atv_count
