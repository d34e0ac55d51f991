"""
Tests for configuration loading.
"""

from decimal import Decimal

import pytest

from ledger_recon.config import generate_default_config, get_default_config, load_config
from ledger_recon.utils.exceptions import ConfigurationError


class TestLoadConfig:
    """YAML loading on top of defaults."""

    def test_defaults(self):
        config = load_config(None)
        assert config.matching.cleared_lookback_days == 60
        assert config.tip.max_amount == Decimal("50.00")
        assert config.posting.split_tolerance == Decimal("0.02")
        assert config.account_codes.flip_gain_on_sale == "41500"
        assert config.config_file_path is None

    def test_missing_file_uses_defaults(self, tmp_path):
        config = load_config(tmp_path / "absent.yaml")
        assert config.matching.date_tolerance_days == 3

    def test_partial_override_is_deep_merged(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("tip:\n  max_amount: 40\nmatching:\n  date_tolerance_days: 5\n")

        config = load_config(path)

        assert config.tip.max_amount == Decimal("40")
        assert config.tip.min_amount == Decimal("1.00")
        assert config.tip.vendor_patterns
        assert config.matching.date_tolerance_days == 5
        assert config.matching.cleared_lookback_days == 60
        assert config.config_file_path == str(path)

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("tip: [unclosed\n")
        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            load_config(path)

    def test_root_must_be_mapping(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("- just\n- a list\n")
        with pytest.raises(ConfigurationError, match="mapping"):
            load_config(path)

    def test_invalid_value(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("matching:\n  date_tolerance_days: soon\n")
        with pytest.raises(ConfigurationError, match="Invalid configuration"):
            load_config(path)


class TestGenerateDefaultConfig:
    def test_generated_file_loads_back(self, tmp_path):
        path = tmp_path / "nested" / "config.yaml"
        generate_default_config(path)

        assert path.read_text().startswith("# Ledger reconciliation")
        config = load_config(path)
        assert config.model_dump(exclude={"config_file_path"}) == load_config(None).model_dump(
            exclude={"config_file_path"}
        )

    def test_default_dict_has_no_file_path(self):
        assert "config_file_path" not in get_default_config()
