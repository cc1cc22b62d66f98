"""
Repository implementations for data access layer.
"""
from .base_repository import BaseRepository
from .pricing_repository import PricingRepository
from .calculation_repository import CalculationRepository
from .reference_repository import (
    CustomerRepository,
    OrganizationRepository,
    OwningOrganizationRepository,
)
from .configuration_item_repository import ConfigurationItemRepository
from .budget_outcome_repository import BudgetOutcomeRepository
from .user_repository import UserRepository
from .audit_repository import AuditRepository

__all__ = [
    'BaseRepository',
    'PricingRepository',
    'CalculationRepository',
    'CustomerRepository',
    'OrganizationRepository',
    'OwningOrganizationRepository',
    'ConfigurationItemRepository',
    'BudgetOutcomeRepository',
    'UserRepository',
    'AuditRepository',
]
