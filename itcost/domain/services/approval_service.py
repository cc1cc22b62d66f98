"""
Approval Service - Approval queue and approval of pending calculations.

An approver needs can_approve. Their approval_organizations list
restricts which owning organizations they may approve for; an empty
list means all organizations.
"""
import logging
from datetime import datetime
from decimal import Decimal
from typing import List, Dict, Any

from sqlalchemy.orm import Session

from itcost.models import Calculation, CalculationStatus, Profile
from itcost.infrastructure.repositories import (
    CalculationRepository,
    PricingRepository,
    BudgetOutcomeRepository,
)
from itcost.domain.entities import to_decimal
from itcost.domain.exceptions import (
    ApprovalScopeError,
    PermissionDeniedError,
)
from itcost.config import get_config
from itcost.modules.etl import match_ledger_rows
from .calculation_service import CalculationService

logger = logging.getLogger(__name__)

NO_UKONTO = "-"


def can_approve_for(approver: Profile, owning_organization: str) -> bool:
    """Check an approver's organization scope."""
    if not approver.can_approve:
        return False
    scope = approver.approval_organizations or []
    return not scope or owning_organization in scope


class ApprovalService:
    """Service for the approval queue."""

    def __init__(self, session: Session):
        self.session = session
        self.calc_repo = CalculationRepository(session)
        self.pricing_repo = PricingRepository(session)
        self.ledger_repo = BudgetOutcomeRepository(session)
        self.calculations = CalculationService(session)

    def _require_approver(self, user: Profile) -> None:
        if not user.can_approve:
            raise PermissionDeniedError("User is not allowed to approve calculations")

    def pending_for(self, approver: Profile) -> List[Calculation]:
        """Pending calculations within the approver's organization scope."""
        self._require_approver(approver)
        return self.calc_repo.list_pending(approver.approval_organizations or None)

    def approve(self, calculation_id: int, approver: Profile) -> Calculation:
        """
        Approve a pending calculation.

        Raises:
            PermissionDeniedError: Approver lacks can_approve
            CalculationNotFoundError: Unknown calculation
            InvalidStatusTransitionError: Calculation is not pending approval
            ApprovalScopeError: Owning organization outside approver scope
        """
        self._require_approver(approver)
        calculation = self.calculations.get_calculation(calculation_id)

        if not can_approve_for(approver, calculation.owning_organization):
            logger.warning(
                f"User {approver.id} tried to approve calculation {calculation.id} "
                f"outside scope ({calculation.owning_organization})"
            )
            raise ApprovalScopeError(calculation.id, calculation.owning_organization)

        self.calculations.transition(
            calculation,
            CalculationStatus.APPROVED.value,
            CalculationStatus.PENDING_APPROVAL.value,
            approver,
        )
        calculation.approved_by = approver.id
        calculation.approved_by_name = approver.display_name
        calculation.approved_at = datetime.utcnow()
        self.session.commit()
        logger.info(f"Calculation {calculation.id} approved by {approver.display_name}")
        return calculation

    def approval_details(self, calculation_id: int, user: Profile) -> Dict[str, Any]:
        """
        Details shown before approving.

        Returns:
            calculation, object number of the linked CI, calculated cost per
            ukonto of the referenced price rows, and ledger totals per ukonto
            for rows matched on the object number
        """
        calculation = self.calculations.get_visible(calculation_id, user)

        pricing = {row.id: row for row in self.pricing_repo.get_many(i.pricing_config_id for i in calculation.items)}
        costs_by_ukonto: Dict[str, Decimal] = {}
        for item in calculation.items:
            row = pricing.get(item.pricing_config_id)
            ukonto = (row.ukonto if row and row.ukonto else NO_UKONTO)
            costs_by_ukonto[ukonto] = costs_by_ukonto.get(ukonto, Decimal("0.00")) + to_decimal(item.total_price)

        object_number = calculation.configuration_item.object_number if calculation.configuration_item else None
        ledger_by_ukonto: Dict[str, Dict[str, Decimal]] = {}
        if object_number:
            field = get_config().ledger_comparison_field
            for row in match_ledger_rows(self.ledger_repo.rows_with_field(field), object_number, field):
                totals = ledger_by_ukonto.setdefault(row.ukonto or NO_UKONTO, {
                    "budget_2025": Decimal("0.00"),
                    "budget_2026": Decimal("0.00"),
                    "utfall_ack": Decimal("0.00"),
                })
                totals["budget_2025"] += to_decimal(row.budget_2025)
                totals["budget_2026"] += to_decimal(row.budget_2026)
                totals["utfall_ack"] += to_decimal(row.utfall_ack)

        return {
            "calculation": calculation,
            "object_number": object_number,
            "costs_by_ukonto": costs_by_ukonto,
            "ledger_by_ukonto": ledger_by_ukonto,
        }
