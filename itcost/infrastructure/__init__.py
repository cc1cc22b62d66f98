"""
Infrastructure Layer - repository implementations and security helpers.
"""

from .repositories import (
    BaseRepository,
    PricingRepository,
    CalculationRepository,
    CustomerRepository,
    OrganizationRepository,
    OwningOrganizationRepository,
    ConfigurationItemRepository,
    BudgetOutcomeRepository,
    UserRepository,
    AuditRepository,
)

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
