"""
Calculation Service - Saving, lifecycle transitions and version history.

Lifecycle:
    draft -> pending_approval -> approved -> closed

Saving an approved or closed calculation sends it back to
pending_approval and clears the approval fields. Every save and every
status transition appends a version snapshot; snapshots are never
modified afterwards.
"""
import logging
from decimal import Decimal
from typing import Optional, List, Dict, Any

from sqlalchemy.orm import Session

from itcost.config import get_config
from itcost.models import (
    Calculation, CalculationItem, CalculationVersion, CalculationStatus, Profile
)
from itcost.infrastructure.repositories import (
    CalculationRepository,
    CustomerRepository,
    OrganizationRepository,
    OwningOrganizationRepository,
    ConfigurationItemRepository,
)
from itcost.domain.entities import PriceSheet, to_decimal
from itcost.domain.exceptions import (
    CalculationNotFoundError,
    EntityNotFoundError,
    InvalidStatusTransitionError,
    InvariantViolationError,
    PermissionDeniedError,
    ValidationError,
)
from .pricing_service import PricingService
from .audit_service import AuditService

logger = logging.getLogger(__name__)

SAVEABLE_STATUSES = (CalculationStatus.DRAFT.value, CalculationStatus.PENDING_APPROVAL.value)
REAPPROVAL_STATUSES = (CalculationStatus.APPROVED.value, CalculationStatus.CLOSED.value)


def items_as_dicts(calculation: Calculation) -> List[Dict[str, Any]]:
    """Serialize stored price lines for a version snapshot."""
    return [
        {
            "pricing_config_id": item.pricing_config_id,
            "price_type": item.price_type,
            "quantity": str(to_decimal(item.quantity)),
            "unit_price": str(to_decimal(item.unit_price)),
            "total_price": str(to_decimal(item.total_price)),
            "comment": item.comment,
        }
        for item in calculation.items
    ]


class CalculationService:
    """
    Service for calculations and their lifecycle.

    Access rules:
    - Saving requires read_write permission
    - Editing, submitting and deleting require ownership or admin role
    - Closing requires admin role
    """

    def __init__(self, session: Session):
        self.session = session
        self.config = get_config()
        self.calc_repo = CalculationRepository(session)
        self.customer_repo = CustomerRepository(session)
        self.organization_repo = OrganizationRepository(session)
        self.owning_org_repo = OwningOrganizationRepository(session)
        self.ci_repo = ConfigurationItemRepository(session)
        self.pricing = PricingService(session)
        self.audit = AuditService(session)

    # =========================================================================
    # Access
    # =========================================================================

    def get_calculation(self, calculation_id: int) -> Calculation:
        calculation = self.calc_repo.get_by_id(calculation_id)
        if calculation is None:
            raise CalculationNotFoundError(calculation_id)
        return calculation

    def get_visible(self, calculation_id: int, user: Profile) -> Calculation:
        """Owner, admins and approvers may view a calculation."""
        calculation = self.get_calculation(calculation_id)
        if calculation.user_id != user.id and not user.is_admin and not user.can_approve:
            raise PermissionDeniedError("Not allowed to view this calculation")
        return calculation

    def _require_owner_or_admin(self, calculation: Calculation, user: Profile) -> None:
        if calculation.user_id != user.id and not user.is_admin:
            raise PermissionDeniedError("Only the owner or an admin may change this calculation")

    def list_for(self, user: Profile, year: Optional[int] = None, status: Optional[str] = None) -> List[Calculation]:
        """Admins see every calculation; other users see their own."""
        user_id = None if user.is_admin else user.id
        return self.calc_repo.list_calculations(user_id=user_id, year=year, status=status)

    # =========================================================================
    # Save
    # =========================================================================

    def _validate(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Validate save input and resolve reference rows.

        Returns:
            Dict of resolved customer, organization, owning organization and CI
        """
        if not (data.get("name") or "").strip():
            raise ValidationError("name", "is required")
        if not (data.get("ci_identity") or "").strip():
            raise ValidationError("ci_identity", "is required")
        service_type = data.get("service_type")
        if not service_type:
            raise ValidationError("service_type", "is required")
        if not self.config.is_valid_service_type(service_type):
            raise ValidationError("service_type", f"unknown service type '{service_type}'")
        year = data.get("calculation_year")
        if not year or int(year) < 1900:
            raise ValidationError("calculation_year", "is required")

        status = data.get("status") or CalculationStatus.DRAFT.value
        if status not in SAVEABLE_STATUSES:
            raise ValidationError("status", f"must be one of {', '.join(SAVEABLE_STATUSES)}")

        if data.get("customer_id") is None:
            raise ValidationError("customer_id", "is required")
        customer = self.customer_repo.get_by_id(data["customer_id"])
        if customer is None:
            raise EntityNotFoundError("Customer", data["customer_id"])

        if data.get("owning_organization_id") is None:
            raise ValidationError("owning_organization_id", "is required")
        owning_org = self.owning_org_repo.get_by_id(data["owning_organization_id"])
        if owning_org is None:
            raise EntityNotFoundError("OwningOrganization", data["owning_organization_id"])

        organization = None
        if data.get("organization_id") is not None:
            organization = self.organization_repo.get_by_id(data["organization_id"])
            if organization is None:
                raise EntityNotFoundError("Organization", data["organization_id"])

        configuration_item = None
        if data.get("configuration_item_id") is not None:
            configuration_item = self.ci_repo.get_by_id(data["configuration_item_id"])
            if configuration_item is None:
                raise EntityNotFoundError("ConfigurationItem", data["configuration_item_id"])

        return {
            "customer": customer,
            "owning_organization": owning_org,
            "organization": organization,
            "configuration_item": configuration_item,
            "status": status,
        }

    def _price(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Price parameter components and explicit lines into one sheet."""
        priced = self.pricing.price_parameters(data)
        sheet: PriceSheet = priced["sheet"]
        for item in data.get("items") or []:
            sheet.add(self.pricing.build_line(
                price_type=item.get("price_type"),
                quantity=item.get("quantity", 1),
                pricing_config_id=item.get("pricing_config_id"),
                comment=item.get("comment"),
            ))

        if sheet.is_empty():
            raise ValidationError("items", "at least one price line is required")
        return {"sheet": sheet, "costs": priced["costs"]}

    def _apply(self, calculation: Calculation, data: Dict[str, Any], refs: Dict[str, Any], priced: Dict[str, Any]) -> None:
        sheet: PriceSheet = priced["sheet"]
        calculation.name = data["name"].strip()
        calculation.ci_identity = data["ci_identity"].strip()
        calculation.configuration_item_id = refs["configuration_item"].id if refs["configuration_item"] else None
        calculation.service_type = data["service_type"]
        calculation.customer_id = refs["customer"].id
        calculation.municipality = refs["customer"].name
        calculation.organization_id = refs["organization"].id if refs["organization"] else None
        calculation.owning_organization_id = refs["owning_organization"].id
        calculation.owning_organization = refs["owning_organization"].name
        calculation.calculation_year = int(data["calculation_year"])
        for component, definition in self.config.parameter_components.items():
            setattr(calculation, definition["field"], to_decimal(data.get(definition["field"])))
            setattr(calculation, f"{component}_cost", priced["costs"].get(f"{component}_cost", Decimal("0.00")))
        calculation.total_cost = sheet.total

        items = [
            CalculationItem(
                pricing_config_id=line.pricing_config_id,
                price_type=line.price_type,
                quantity=line.quantity,
                unit_price=line.unit_price,
                total_price=line.total_price,
                comment=line.comment,
            )
            for line in sheet.lines
        ]
        self.calc_repo.replace_items(calculation, items)
        self._check_total(calculation)

    def _check_total(self, calculation: Calculation) -> None:
        items_total = sum((to_decimal(i.total_price) for i in calculation.items), Decimal("0.00"))
        if to_decimal(calculation.total_cost) != items_total:
            raise InvariantViolationError(
                "total_cost equals sum of line totals",
                str(items_total),
                str(calculation.total_cost),
            )

    def save(self, data: Dict[str, Any], user: Profile, calculation_id: Optional[int] = None) -> Calculation:
        """
        Create or update a calculation.

        Args:
            data: Calculation fields, parameter quantities and explicit 'items'
            user: Acting user (needs read_write permission)
            calculation_id: Existing calculation to update, None to create

        Returns:
            The saved calculation
        """
        if not user.has_write_permission:
            raise PermissionDeniedError("Read-only users cannot save calculations")

        refs = self._validate(data)
        priced = self._price(data)

        if calculation_id is None:
            return self._create(data, user, refs, priced)
        return self._update(calculation_id, data, user, refs, priced)

    def _create(self, data, user: Profile, refs, priced) -> Calculation:
        calculation = Calculation(
            status=refs["status"],
            version=1,
            user_id=user.id,
            created_by_name=user.display_name,
        )
        self._apply(calculation, data, refs, priced)
        self.calc_repo.add(calculation)
        self.session.flush()

        self.append_snapshot(calculation, user)
        self.audit.log_audit(
            "create", "calculations", calculation.id, None,
            {"name": calculation.name, "total_cost": calculation.total_cost,
             "status": calculation.status, "version": calculation.version},
            user.id,
        )
        self.session.commit()
        logger.info(f"Created calculation {calculation.id} ({calculation.status}) total {calculation.total_cost}")
        return calculation

    def _update(self, calculation_id: int, data, user: Profile, refs, priced) -> Calculation:
        calculation = self.get_calculation(calculation_id)
        self._require_owner_or_admin(calculation, user)

        old_values = {
            "name": calculation.name,
            "total_cost": calculation.total_cost,
            "status": calculation.status,
            "version": calculation.version,
        }

        if calculation.status in REAPPROVAL_STATUSES:
            new_status = CalculationStatus.PENDING_APPROVAL.value
            calculation.approved_by = None
            calculation.approved_by_name = None
            calculation.approved_at = None
            logger.info(f"Calculation {calculation.id} edited after {calculation.status}, re-approval required")
        else:
            new_status = refs["status"]

        self._apply(calculation, data, refs, priced)
        calculation.status = new_status
        calculation.version = (calculation.version or 0) + 1
        calculation.updated_by_name = user.display_name
        self.session.flush()

        self.append_snapshot(calculation, user)
        self.audit.log_audit(
            "update", "calculations", calculation.id, old_values,
            {"name": calculation.name, "total_cost": calculation.total_cost,
             "status": calculation.status, "version": calculation.version},
            user.id,
        )
        self.session.commit()
        logger.info(f"Updated calculation {calculation.id} to version {calculation.version}")
        return calculation

    # =========================================================================
    # Transitions
    # =========================================================================

    def transition(self, calculation: Calculation, target: str, allowed_from: str, user: Profile) -> Calculation:
        """Move a calculation between statuses and snapshot the result."""
        if calculation.status != allowed_from:
            logger.warning(
                f"Rejected transition of calculation {calculation.id}: {calculation.status} -> {target}"
            )
            raise InvalidStatusTransitionError(calculation.id, calculation.status, target)

        old_status = calculation.status
        calculation.status = target
        calculation.updated_by_name = user.display_name
        self.session.flush()
        self.append_snapshot(calculation, user)
        self.audit.log_audit(
            self._action_for(target), "calculations", calculation.id,
            {"status": old_status}, {"status": target}, user.id,
        )
        return calculation

    @staticmethod
    def _action_for(target: str) -> str:
        return {
            CalculationStatus.PENDING_APPROVAL.value: "submit",
            CalculationStatus.APPROVED.value: "approve",
            CalculationStatus.CLOSED.value: "close",
        }.get(target, "update")

    def submit(self, calculation_id: int, user: Profile) -> Calculation:
        """draft -> pending_approval."""
        calculation = self.get_calculation(calculation_id)
        self._require_owner_or_admin(calculation, user)
        self.transition(
            calculation, CalculationStatus.PENDING_APPROVAL.value, CalculationStatus.DRAFT.value, user
        )
        self.session.commit()
        logger.info(f"Calculation {calculation.id} submitted for approval")
        return calculation

    def close(self, calculation_id: int, user: Profile) -> Calculation:
        """approved -> closed. Admin only."""
        if not user.is_admin:
            raise PermissionDeniedError("Only admins may close calculations")
        calculation = self.get_calculation(calculation_id)
        self.transition(calculation, CalculationStatus.CLOSED.value, CalculationStatus.APPROVED.value, user)
        self.session.commit()
        logger.info(f"Calculation {calculation.id} closed")
        return calculation

    def delete(self, calculation_id: int, user: Profile) -> None:
        calculation = self.get_calculation(calculation_id)
        self._require_owner_or_admin(calculation, user)
        old_values = {"name": calculation.name, "total_cost": calculation.total_cost}
        self.calc_repo.delete(calculation)
        self.audit.log_audit("delete", "calculations", calculation_id, old_values, None, user.id)
        self.session.commit()
        logger.info(f"Deleted calculation {calculation_id}")

    # =========================================================================
    # Version history
    # =========================================================================

    def append_snapshot(self, calculation: Calculation, user: Profile) -> CalculationVersion:
        """Append a version row capturing the calculation as it is now."""
        snapshot = CalculationVersion(
            calculation_id=calculation.id,
            version=calculation.version,
            status=calculation.status,
            name=calculation.name,
            ci_identity=calculation.ci_identity,
            service_type=calculation.service_type,
            municipality=calculation.municipality,
            owning_organization=calculation.owning_organization,
            customer_id=calculation.customer_id,
            organization_id=calculation.organization_id,
            owning_organization_id=calculation.owning_organization_id,
            calculation_year=calculation.calculation_year,
            total_cost=calculation.total_cost,
            items=items_as_dicts(calculation),
            created_by=user.id,
            created_by_name=user.display_name,
        )
        return self.calc_repo.append_version(snapshot)

    def versions(self, calculation_id: int) -> List[CalculationVersion]:
        self.get_calculation(calculation_id)
        return self.calc_repo.get_versions(calculation_id)

    def get_version(self, calculation_id: int, version_id: int) -> CalculationVersion:
        version = self.calc_repo.get_version(version_id)
        if version is None or version.calculation_id != calculation_id:
            raise EntityNotFoundError("CalculationVersion", version_id)
        return version

    def last_approved_version(self, calculation_id: int) -> Optional[CalculationVersion]:
        self.get_calculation(calculation_id)
        return self.calc_repo.last_approved_version(calculation_id)
