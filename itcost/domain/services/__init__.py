"""
Domain Services - Business logic for pricing, calculations, approvals and ledger reconciliation.
"""

from .audit_service import AuditService
from .pricing_service import PricingService, line_total
from .calculation_service import CalculationService
from .approval_service import ApprovalService, can_approve_for
from .budget_service import BudgetService
from .reference_service import ReferenceDataService
from .configuration_item_service import ConfigurationItemService
from .analytics_service import AnalyticsService
from .user_service import UserService

__all__ = [
    'AuditService',
    'PricingService',
    'line_total',
    'CalculationService',
    'ApprovalService',
    'can_approve_for',
    'BudgetService',
    'ReferenceDataService',
    'ConfigurationItemService',
    'AnalyticsService',
    'UserService',
]
