"""
Tests for the configuration loader.
"""
import pytest
import tempfile
from pathlib import Path

from itcost.config import ItCostConfig, get_config, ConfigurationError


class TestItCostConfig:
    """Tests for ItCostConfig class."""

    def test_load_default_config(self):
        """Test loading the default configuration file."""
        config = get_config()
        assert config.version == "1.0.0"
        assert len(config.service_types) == 4

    def test_service_types(self):
        config = get_config()
        assert config.is_valid_service_type("Bastjänst IT infrastruktur")
        assert not config.is_valid_service_type("Okänd tjänst")

    def test_parameter_components(self):
        """Each infrastructure parameter maps to a price type."""
        config = get_config()
        assert config.get_component_price_type("cpu") == "CPU"
        assert config.get_component_price_type("storage") == "Lagring"
        assert config.get_component_price_type("server") == "Server"
        assert config.get_component_price_type("operation") == "Drifttimme"
        assert config.get_component_price_type("gpu") is None

    def test_pricing_defaults(self):
        config = get_config()
        assert config.default_pricing_category == "Övrigt"
        assert config.default_cost_owner == "Produktion"


class TestImportConfig:
    """Tests for CSV import configuration."""

    def test_budget_import(self):
        config = get_config()
        assert config.budget_import_batch_size == 500
        assert config.budget_required_headers == ["ANSVAR", "UKONTO"]
        assert len(config.budget_columns) == 12
        assert config.budget_columns[5] == "objekt"
        assert config.budget_columns[6] == "mot"

    def test_ci_header_aliases(self):
        config = get_config()
        assert "ci nummer" in config.get_ci_header_aliases("ci_number")
        assert "objekt" in config.get_ci_header_aliases("object_number")
        assert config.ci_required_fields == ["ci_number", "system_name"]

    def test_ledger_matching_fields(self):
        config = get_config()
        assert config.ledger_info_field == "mot"
        assert config.ledger_comparison_field == "objekt"


class TestUsersAndAudit:

    def test_password_policy(self):
        assert get_config().min_password_length == 12

    def test_auth(self):
        config = get_config()
        assert config.jwt_algorithm == "HS256"
        assert config.access_token_minutes > 0

    def test_audit_retention_disabled_by_default(self):
        assert get_config().audit_retention_days == 0

    def test_currency_config(self):
        currency = get_config().currency_config
        assert currency["code"] == "SEK"
        assert currency["decimal_places"] == 2


class TestConfigLoading:

    def test_missing_file_raises(self):
        with pytest.raises(ConfigurationError):
            ItCostConfig(Path("/nonexistent/itcost_config.yaml"))

    def test_custom_file(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "config.yaml"
            path.write_text('version: "9.9"\nservice_types: ["A"]\n', encoding="utf-8")
            config = ItCostConfig(path)
            assert config.version == "9.9"
            assert config.service_types == ["A"]
            # Sections absent from the file fall back to defaults
            assert config.budget_import_batch_size == 500

    def test_invalid_yaml_raises(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "config.yaml"
            path.write_text("version: [unclosed", encoding="utf-8")
            with pytest.raises(ConfigurationError):
                ItCostConfig(path)

    def test_non_mapping_raises(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "config.yaml"
            path.write_text("- just\n- a list\n", encoding="utf-8")
            with pytest.raises(ConfigurationError):
                ItCostConfig(path)
