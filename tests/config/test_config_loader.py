"""
Tests for warehouse_config: YAML loading, validation, environment
overrides, and the bridges that feed the settlement engine.
"""

from datetime import timedelta
from pathlib import Path

import pytest
import yaml

from warehouse_config import get_active_config
from warehouse_config.bridges import build_pattern_table, transfer_ttl
from warehouse_config.loader import (
    ENV_DATABASE_URL,
    ENV_TRANSFER_TTL_HOURS,
    load_config,
    parse_rate_code_patterns,
    parse_settings,
)
from warehouse_engines.rate_codes import DEFAULT_PATTERN_TABLE, CodeRole, resolve_code

_DATA_DIR = Path(__file__).resolve().parents[2] / "warehouse_config" / "data"


def _write_config(tmp_path: Path, settings: dict, patterns: dict) -> Path:
    (tmp_path / "settings.yaml").write_text(yaml.safe_dump(settings))
    (tmp_path / "rate_code_patterns.yaml").write_text(yaml.safe_dump(patterns))
    return tmp_path


_SETTINGS = {"database": {"url": "sqlite:///w.db"}, "transfers": {"ttl_hours": 24}}
_PATTERNS = {"version": "7", "roles": [{"role": "socket", "patterns": ["gniaz"]}]}


class TestShippedConfig:
    def test_loads(self):
        config = load_config(_DATA_DIR, environ={})

        assert config.settings.transfer_ttl_hours == 72
        assert config.rate_code_patterns.version == "1"
        assert {e.role for e in config.rate_code_patterns.entries} == {r.value for r in CodeRole}

    def test_matches_builtin_table(self):
        table = build_pattern_table(load_config(_DATA_DIR, environ={}))

        assert table.version == DEFAULT_PATTERN_TABLE.version
        for role in CodeRole:
            assert table.patterns_for(role) == DEFAULT_PATTERN_TABLE.patterns_for(role)

    def test_checksum_is_stable(self):
        assert load_config(_DATA_DIR, environ={}).checksum == (
            load_config(_DATA_DIR, environ={}).checksum
        )

    def test_active_config_emits_trace(self, captured_logs):
        config = get_active_config(environ={})

        traces = [r for r in captured_logs() if r["message"] == "WAREHOUSE_CONFIG_TRACE"]
        assert len(traces) == 1
        assert traces[0]["checksum"] == config.checksum
        assert traces[0]["pattern_version"] == "1"


class TestSettings:
    def test_environment_overrides(self):
        settings = parse_settings(
            _SETTINGS,
            environ={ENV_DATABASE_URL: "postgresql://x/y", ENV_TRANSFER_TTL_HOURS: "6"},
        )
        assert settings.database_url == "postgresql://x/y"
        assert settings.transfer_ttl_hours == 6

    def test_ttl_bridge(self, tmp_path):
        config = load_config(_write_config(tmp_path, _SETTINGS, _PATTERNS), environ={})
        assert transfer_ttl(config) == timedelta(hours=24)

    @pytest.mark.parametrize("ttl", ["soon", 0, -5])
    def test_bad_ttl(self, ttl):
        with pytest.raises(ValueError):
            parse_settings({"database": {"url": "sqlite://"}, "transfers": {"ttl_hours": ttl}}, {})

    def test_missing_url(self):
        with pytest.raises(KeyError):
            parse_settings({}, environ={})


class TestRateCodePatterns:
    def test_unknown_role(self):
        with pytest.raises(ValueError, match="Unknown"):
            parse_rate_code_patterns({"version": "1", "roles": [{"role": "antenna", "patterns": ["a"]}]})

    def test_duplicate_role(self):
        roles = [{"role": "riser", "patterns": ["pion"]}, {"role": "riser", "patterns": ["x"]}]
        with pytest.raises(ValueError, match="Duplicate"):
            parse_rate_code_patterns({"version": "1", "roles": roles})

    def test_empty_patterns(self):
        with pytest.raises(ValueError):
            parse_rate_code_patterns({"version": "1", "roles": [{"role": "trunk", "patterns": []}]})

    def test_invalid_regex(self):
        with pytest.raises(ValueError, match="Invalid pattern"):
            parse_rate_code_patterns({"version": "1", "roles": [{"role": "trunk", "patterns": ["("]}]})

    def test_custom_table_drives_resolution(self, tmp_path):
        patterns = {
            "version": "2",
            "roles": [{"role": "riser", "patterns": ["^RISER$"]}],
        }
        table = build_pattern_table(
            load_config(_write_config(tmp_path, _SETTINGS, patterns), environ={})
        )

        assert resolve_code(["PION", "riser"], CodeRole.RISER, table) == "riser"
        assert resolve_code(["PION"], CodeRole.RISER, table) is None

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path, environ={})
