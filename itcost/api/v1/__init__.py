"""
API v1 - REST endpoints for IT cost calculations.

- Auth endpoints (login, current user, password change)
- Calculation endpoints (save, lifecycle, versions, comparison, print)
- Approval endpoints (queue, details, approve)
- Pricing, reference data and configuration item maintenance
- Budget/outcome ledger import
- Analytics, user administration and audit trail
"""
from fastapi import APIRouter

from .auth import router as auth_router
from .calculations import router as calculations_router
from .approvals import router as approvals_router
from .pricing import router as pricing_router
from .reference_data import customers_router, organizations_router, owning_organizations_router
from .configuration_items import router as configuration_items_router
from .budget_outcomes import router as budget_outcomes_router
from .analytics import router as analytics_router
from .users import router as users_router
from .audit import router as audit_router

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(auth_router, prefix="/auth", tags=["Authentication"])
api_router.include_router(calculations_router, prefix="/calculations", tags=["Calculations"])
api_router.include_router(approvals_router, prefix="/approvals", tags=["Approvals"])
api_router.include_router(pricing_router, prefix="/pricing", tags=["Pricing"])
api_router.include_router(customers_router, prefix="/customers", tags=["Customers"])
api_router.include_router(organizations_router, prefix="/organizations", tags=["Organizations"])
api_router.include_router(owning_organizations_router, prefix="/owning-organizations", tags=["Owning Organizations"])
api_router.include_router(configuration_items_router, prefix="/configuration-items", tags=["Configuration Items"])
api_router.include_router(budget_outcomes_router, prefix="/budget-outcomes", tags=["Budget Outcomes"])
api_router.include_router(analytics_router, prefix="/analytics", tags=["Analytics"])
api_router.include_router(users_router, prefix="/users", tags=["Users"])
api_router.include_router(audit_router, prefix="/audit", tags=["Audit"])
