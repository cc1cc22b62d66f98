"""
Pricing Service - Price resolution and price list maintenance.

Resolution rule: for a price type and date, the applicable row is the
one with the latest effective_from among rows whose range covers the
date (effective_to null = open-ended).
"""
import logging
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, List, Dict, Any

from sqlalchemy.orm import Session

from itcost.config import get_config
from itcost.models import CalculationItem, PricingConfig, Profile
from itcost.infrastructure.repositories import PricingRepository
from itcost.domain.entities import PriceLine, PriceSheet, to_decimal
from itcost.domain.entities.price_line import CENT
from itcost.domain.exceptions import (
    EntityNotFoundError,
    PricingNotFoundError,
    InvalidEffectiveRangeError,
    PermissionDeniedError,
    ReferenceInUseError,
    ValidationError,
)
from .audit_service import AuditService

logger = logging.getLogger(__name__)

PRICING_FIELDS = (
    "price_type", "price_per_unit", "unit", "category", "comment", "cost_owner",
    "ukonto", "internal_account", "external_account", "service_types",
    "disallowed_service_types", "effective_from", "effective_to",
)


def line_total(quantity, unit_price) -> Decimal:
    """quantity x unit price, rounded to whole cents."""
    return (to_decimal(quantity) * to_decimal(unit_price)).quantize(CENT, rounding=ROUND_HALF_UP)


def pricing_snapshot(row: PricingConfig) -> Dict[str, Any]:
    return {field: getattr(row, field) for field in PRICING_FIELDS}


class PricingService:
    """
    Service for resolving prices and maintaining the price list.

    All writes are audited on the 'pricing_config' table.
    """

    def __init__(self, session: Session):
        self.session = session
        self.config = get_config()
        self.pricing_repo = PricingRepository(session)
        self.audit = AuditService(session)

    # =========================================================================
    # Resolution
    # =========================================================================

    def resolve_price(self, price_type: str, on_date: Optional[date] = None) -> PricingConfig:
        """
        Resolve the applicable price row for a price type.

        Args:
            price_type: Component/price type name
            on_date: Date to resolve for (default today)

        Returns:
            The covering row with the latest effective_from

        Raises:
            PricingNotFoundError: If no row covers the date
        """
        on_date = on_date or date.today()
        rows = self.pricing_repo.effective_on(on_date, price_type=price_type)
        if not rows:
            raise PricingNotFoundError(price_type, on_date)
        return rows[0]

    def current_pricing(self, on_date: Optional[date] = None) -> Dict[str, PricingConfig]:
        """One resolved row per price type, for a date."""
        resolved: Dict[str, PricingConfig] = {}
        for row in self.pricing_repo.effective_on(on_date or date.today()):
            # Rows arrive latest effective_from first
            resolved.setdefault(row.price_type, row)
        return resolved

    def build_line(
        self,
        price_type: Optional[str],
        quantity,
        pricing_config_id: Optional[int] = None,
        comment: Optional[str] = None,
        on_date: Optional[date] = None
    ) -> PriceLine:
        """
        Price one line.

        The unit price comes from the referenced price row when one is given,
        otherwise from resolving the price type on the date.

        Raises:
            EntityNotFoundError: Referenced price row does not exist
            PricingNotFoundError: Price type cannot be resolved
        """
        if pricing_config_id is not None:
            row = self.pricing_repo.get_by_id(pricing_config_id)
            if row is None:
                raise EntityNotFoundError("PricingConfig", pricing_config_id)
        else:
            if not price_type:
                raise ValidationError("price_type", "price type or pricing_config_id is required")
            row = self.resolve_price(price_type, on_date)

        return PriceLine(
            price_type=row.price_type,
            quantity=to_decimal(quantity),
            unit_price=to_decimal(row.price_per_unit),
            pricing_config_id=row.id,
            unit=row.unit,
            comment=comment,
        )

    def price_parameters(self, params: Dict[str, Any], on_date: Optional[date] = None) -> Dict[str, Any]:
        """
        Price infrastructure parameters.

        Each configured component (cpu, storage, server, operation) reads its
        quantity from params[field] and is priced against its price type.
        Components with zero quantity produce no line and cost 0.

        Returns:
            {'sheet': PriceSheet, 'costs': {'cpu_cost': ...}, 'total': Decimal}
        """
        sheet = PriceSheet()
        costs: Dict[str, Decimal] = {}
        for component, definition in self.config.parameter_components.items():
            quantity = to_decimal(params.get(definition["field"]))
            cost_key = f"{component}_cost"
            if quantity == 0:
                costs[cost_key] = Decimal("0.00")
                continue
            line = self.build_line(definition["price_type"], quantity, on_date=on_date)
            sheet.add(line)
            costs[cost_key] = line.total_price

        return {"sheet": sheet, "costs": costs, "total": sheet.total}

    # =========================================================================
    # Service type options
    # =========================================================================

    def _category(self, row: PricingConfig) -> str:
        return row.category or self.config.default_pricing_category

    def pricing_options(self, service_type: str, on_date: Optional[date] = None) -> Dict[str, Dict[str, List[PricingConfig]]]:
        """
        Currently effective rows for a service type, grouped by category.

        'default' holds rows listing the service type; 'other' holds rows
        with no service types. Rows disallowing the service type are left out
        of both.
        """
        options: Dict[str, Dict[str, List[PricingConfig]]] = {"default": {}, "other": {}}
        for row in self.current_pricing(on_date).values():
            if service_type in (row.disallowed_service_types or []):
                continue
            service_types = row.service_types or []
            if service_type in service_types:
                group = "default"
            elif not service_types:
                group = "other"
            else:
                continue
            options[group].setdefault(self._category(row), []).append(row)

        for groups in options.values():
            for rows in groups.values():
                rows.sort(key=lambda r: r.price_type)
        return options

    def default_lines(self, service_type: str, on_date: Optional[date] = None) -> List[PriceLine]:
        """Default rows for a service type as quantity-1 price lines."""
        lines = []
        for rows in self.pricing_options(service_type, on_date)["default"].values():
            for row in rows:
                lines.append(PriceLine(
                    price_type=row.price_type,
                    quantity=Decimal("1"),
                    unit_price=row.price_per_unit,
                    pricing_config_id=row.id,
                    unit=row.unit,
                ))
        return lines

    # =========================================================================
    # Price list maintenance
    # =========================================================================

    def list_pricing(self) -> List[PricingConfig]:
        return self.pricing_repo.list_ordered()

    def get_pricing(self, pricing_id: int) -> PricingConfig:
        row = self.pricing_repo.get_by_id(pricing_id)
        if row is None:
            raise EntityNotFoundError("PricingConfig", pricing_id)
        return row

    def _require_admin(self, user: Profile) -> None:
        if not user.is_admin:
            raise PermissionDeniedError("Only admins may change the price list")

    def _validate(self, values: Dict[str, Any]) -> None:
        if not (values.get("price_type") or "").strip():
            raise ValidationError("price_type", "is required")
        if values.get("price_per_unit") is None:
            raise ValidationError("price_per_unit", "is required")
        if to_decimal(values["price_per_unit"]) < 0:
            raise ValidationError("price_per_unit", "must not be negative")
        if values.get("effective_from") is None:
            raise ValidationError("effective_from", "is required")
        effective_to = values.get("effective_to")
        if effective_to is not None and effective_to < values["effective_from"]:
            raise InvalidEffectiveRangeError(values["effective_from"], effective_to)

        for field in ("service_types", "disallowed_service_types"):
            for service_type in values.get(field) or []:
                if not self.config.is_valid_service_type(service_type):
                    raise ValidationError(field, f"unknown service type '{service_type}'")

    def create_pricing(self, data: Dict[str, Any], user: Profile) -> PricingConfig:
        self._require_admin(user)
        values = {field: data.get(field) for field in PRICING_FIELDS}
        values["service_types"] = values["service_types"] or []
        values["disallowed_service_types"] = values["disallowed_service_types"] or []
        if not values["cost_owner"]:
            values["cost_owner"] = self.config.default_cost_owner
        self._validate(values)

        row = PricingConfig(**values, created_by=user.id)
        self.pricing_repo.add(row)
        self.session.flush()
        self.audit.log_audit("create", "pricing_config", row.id, None, pricing_snapshot(row), user.id)
        self.session.commit()
        logger.info(f"Created price row {row.id} for '{row.price_type}'")
        return row

    def update_pricing(self, pricing_id: int, data: Dict[str, Any], user: Profile) -> PricingConfig:
        """Partial update; keys absent from data keep their stored value."""
        self._require_admin(user)
        row = self.get_pricing(pricing_id)
        old_values = pricing_snapshot(row)

        values = dict(old_values)
        values.update({k: v for k, v in data.items() if k in PRICING_FIELDS})
        self._validate(values)

        for field, value in values.items():
            setattr(row, field, value)
        self.audit.log_audit("update", "pricing_config", row.id, old_values, pricing_snapshot(row), user.id)
        self.session.commit()
        logger.info(f"Updated price row {row.id}")
        return row

    def delete_pricing(self, pricing_id: int, user: Profile) -> None:
        """Delete a price row no calculation line refers to."""
        self._require_admin(user)
        row = self.get_pricing(pricing_id)
        used = self.pricing_repo.count_referencing(CalculationItem.pricing_config_id, pricing_id)
        if used:
            logger.warning(f"Refused to delete price row {pricing_id}: used by {used} calculation lines")
            raise ReferenceInUseError("PricingConfig", pricing_id, "calculation lines", used)
        old_values = pricing_snapshot(row)
        self.pricing_repo.delete(row)
        self.audit.log_audit("delete", "pricing_config", pricing_id, old_values, None, user.id)
        self.session.commit()
        logger.info(f"Deleted price row {pricing_id}")
