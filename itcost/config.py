"""
Configuration loader for the IT Cost Calculation service.

Loads settings from itcost_config.yaml and provides typed access
to all configuration sections. Deployment settings (database URL,
token secret) come from the environment.
"""
import os
from pathlib import Path
from typing import Optional
from functools import lru_cache

import yaml


# Default config path relative to project root
DEFAULT_CONFIG_PATH = Path(__file__).parent.parent / "itcost_config.yaml"

DEFAULT_DATABASE_URL = "sqlite:///./itcost.db"


class ConfigurationError(Exception):
    """Raised when configuration loading or validation fails."""
    pass


class ItCostConfig:
    """
    Configuration manager for the IT Cost Calculation service.

    Loads YAML configuration and provides typed access to all sections.
    Use get_config() to obtain the singleton instance.
    """

    def __init__(self, config_path: Optional[Path] = None):
        env_path = os.getenv("ITCOST_CONFIG")
        self._config_path = config_path or (Path(env_path) if env_path else DEFAULT_CONFIG_PATH)
        self._config: dict = {}
        self._load()

    def _load(self) -> None:
        """Load configuration from YAML file."""
        if not self._config_path.exists():
            raise ConfigurationError(f"Config file not found: {self._config_path}")

        try:
            with open(self._config_path, 'r', encoding='utf-8') as f:
                self._config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in config file: {e}")

        if not isinstance(self._config, dict):
            raise ConfigurationError("Config file must contain a YAML mapping")

    @property
    def version(self) -> str:
        """Configuration file version."""
        return self._config.get("version", "unknown")

    # =========================================================================
    # Deployment
    # =========================================================================

    @property
    def database_url(self) -> str:
        return os.getenv("ITCOST_DATABASE_URL", DEFAULT_DATABASE_URL)

    @property
    def jwt_secret(self) -> str:
        secret = os.getenv("ITCOST_JWT_SECRET")
        if not secret:
            # Development fallback; deployments must set ITCOST_JWT_SECRET
            return "itcost-development-secret"
        return secret

    # =========================================================================
    # Service Types
    # =========================================================================

    @property
    def service_types(self) -> list[str]:
        """Service types a calculation can be made for."""
        return self._config.get("service_types", [])

    def is_valid_service_type(self, service_type: str) -> bool:
        return service_type in self.service_types

    # =========================================================================
    # Pricing
    # =========================================================================

    @property
    def parameter_components(self) -> dict:
        """
        Infrastructure parameter definitions.

        Returns:
            Dict of component key -> {'field': ..., 'price_type': ...}
        """
        return self._config.get("parameter_components", {})

    def get_component_price_type(self, component: str) -> Optional[str]:
        """Get the price type a parameter component is priced against."""
        entry = self.parameter_components.get(component)
        return entry.get("price_type") if entry else None

    @property
    def pricing(self) -> dict:
        return self._config.get("pricing", {})

    @property
    def default_pricing_category(self) -> str:
        return self.pricing.get("default_category", "Övrigt")

    @property
    def default_cost_owner(self) -> str:
        return self.pricing.get("default_cost_owner", "Produktion")

    # =========================================================================
    # CSV Imports
    # =========================================================================

    @property
    def budget_import(self) -> dict:
        """Budget/outcome ledger import configuration."""
        return self._config.get("budget_import", {})

    @property
    def budget_import_batch_size(self) -> int:
        return self.budget_import.get("batch_size", 500)

    @property
    def budget_required_headers(self) -> list[str]:
        return self.budget_import.get("required_headers", ["ANSVAR", "UKONTO"])

    @property
    def budget_columns(self) -> list[str]:
        """Positional ledger columns, in file order."""
        return self.budget_import.get("columns", [])

    @property
    def budget_numeric_columns(self) -> list[str]:
        return self.budget_import.get("numeric_columns", [])

    @property
    def configuration_item_import(self) -> dict:
        return self._config.get("configuration_item_import", {})

    def get_ci_header_aliases(self, field: str) -> list[str]:
        """Get accepted (lowercase) header names for a configuration item field."""
        aliases = self.configuration_item_import.get("header_aliases", {})
        return aliases.get(field, [])

    @property
    def ci_header_fields(self) -> list[str]:
        return list(self.configuration_item_import.get("header_aliases", {}).keys())

    @property
    def ci_required_fields(self) -> list[str]:
        return self.configuration_item_import.get("required", ["ci_number", "system_name"])

    # =========================================================================
    # Ledger Matching
    # =========================================================================

    @property
    def ledger_matching(self) -> dict:
        return self._config.get("ledger_matching", {})

    @property
    def ledger_info_field(self) -> str:
        """Ledger field matched against object numbers in the calculator info panel."""
        return self.ledger_matching.get("info_field", "mot")

    @property
    def ledger_comparison_field(self) -> str:
        """Ledger field matched against object numbers in budget comparison."""
        return self.ledger_matching.get("comparison_field", "objekt")

    @property
    def ci_search(self) -> dict:
        return self._config.get("configuration_item_search", {})

    @property
    def ci_search_min_score(self) -> int:
        return self.ci_search.get("min_score", 60)

    @property
    def ci_search_limit(self) -> int:
        return self.ci_search.get("limit", 20)

    # =========================================================================
    # Users & Auth
    # =========================================================================

    @property
    def users(self) -> dict:
        return self._config.get("users", {})

    @property
    def min_password_length(self) -> int:
        return self.users.get("min_password_length", 12)

    @property
    def default_role(self) -> str:
        return self.users.get("default_role", "user")

    @property
    def default_permission_level(self) -> str:
        return self.users.get("default_permission_level", "read_write")

    @property
    def auth(self) -> dict:
        return self._config.get("auth", {})

    @property
    def access_token_minutes(self) -> int:
        return self.auth.get("access_token_minutes", 480)

    @property
    def jwt_algorithm(self) -> str:
        return self.auth.get("algorithm", "HS256")

    # =========================================================================
    # Audit Configuration
    # =========================================================================

    @property
    def audit(self) -> dict:
        """Audit trail configuration."""
        return self._config.get("audit", {})

    @property
    def audit_retention_days(self) -> int:
        """Number of days to retain audit records (0 keeps everything)."""
        return self.audit.get("retention_days", 0)

    @property
    def audit_purge_hour(self) -> int:
        return self.audit.get("purge_hour", 2)

    # =========================================================================
    # UI Configuration
    # =========================================================================

    @property
    def ui(self) -> dict:
        return self._config.get("ui", {})

    @property
    def currency_config(self) -> dict:
        """Currency formatting configuration."""
        return self.ui.get("currency", {
            "code": "SEK",
            "suffix": " kr",
            "decimal_places": 2
        })


@lru_cache(maxsize=1)
def get_config(config_path: Optional[str] = None) -> ItCostConfig:
    """
    Get the singleton configuration instance.

    Args:
        config_path: Optional path to config file. Only used on first call.

    Returns:
        ItCostConfig singleton instance
    """
    path = Path(config_path) if config_path else None
    return ItCostConfig(path)
