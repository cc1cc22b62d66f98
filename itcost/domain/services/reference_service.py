"""
Reference Data Service - customers, organizations and owning organizations.

All three tables share the same shape (name, description, is_active) and
the same rules: admin-only writes, audited, listed by name.
"""
import logging
from typing import Optional, List, Dict, Any

from sqlalchemy.orm import Session

from itcost.models import Calculation, Customer, Organization, OwningOrganization, Profile
from itcost.infrastructure.repositories import (
    CustomerRepository,
    OrganizationRepository,
    OwningOrganizationRepository,
)
from itcost.domain.exceptions import (
    EntityNotFoundError,
    PermissionDeniedError,
    ReferenceInUseError,
    ValidationError,
)
from .audit_service import AuditService

logger = logging.getLogger(__name__)

BASE_FIELDS = ("name", "description", "is_active")

KINDS = {
    "customers": (Customer, CustomerRepository, BASE_FIELDS),
    "organizations": (Organization, OrganizationRepository, BASE_FIELDS + ("customer_id", "parent_id")),
    "owning_organizations": (OwningOrganization, OwningOrganizationRepository, BASE_FIELDS),
}

# Foreign keys that block deleting a row of each kind
DEPENDENTS = {
    "customers": ((Calculation.customer_id, "calculations"), (Organization.customer_id, "organizations")),
    "organizations": ((Calculation.organization_id, "calculations"), (Organization.parent_id, "organizations")),
    "owning_organizations": ((Calculation.owning_organization_id, "calculations"),),
}


class ReferenceDataService:
    """
    CRUD for one kind of reference data.

    Args:
        session: Database session
        kind: 'customers', 'organizations' or 'owning_organizations'
    """

    def __init__(self, session: Session, kind: str):
        if kind not in KINDS:
            raise ValueError(f"Unknown reference data kind: {kind}")
        self.session = session
        self.kind = kind
        self.model_class, repo_class, self.fields = KINDS[kind]
        self.repo = repo_class(session)
        self.audit = AuditService(session)

    def _snapshot(self, entity) -> Dict[str, Any]:
        return {field: getattr(entity, field) for field in self.fields}

    def _require_admin(self, user: Profile) -> None:
        if not user.is_admin:
            raise PermissionDeniedError(f"Only admins may change {self.kind}")

    def list_entities(self, active_only: bool = False) -> list:
        return self.repo.list_named(active_only=active_only)

    def get(self, entity_id: int):
        entity = self.repo.get_by_id(entity_id)
        if entity is None:
            raise EntityNotFoundError(self.model_class.__name__, entity_id)
        return entity

    def _validate(self, values: Dict[str, Any], entity_id: Optional[int] = None) -> None:
        if not (values.get("name") or "").strip():
            raise ValidationError("name", "is required")

        if self.kind == "owning_organizations":
            existing = self.repo.get_by_name(values["name"].strip())
            if existing is not None and existing.id != entity_id:
                raise ValidationError("name", f"'{values['name']}' already exists")

        if self.kind == "organizations":
            if values.get("customer_id") is not None:
                if CustomerRepository(self.session).get_by_id(values["customer_id"]) is None:
                    raise EntityNotFoundError("Customer", values["customer_id"])
            parent_id = values.get("parent_id")
            if parent_id is not None:
                if entity_id is not None and parent_id == entity_id:
                    raise ValidationError("parent_id", "an organization cannot be its own parent")
                if self.repo.get_by_id(parent_id) is None:
                    raise EntityNotFoundError("Organization", parent_id)
                if entity_id is not None and entity_id in self.repo.ancestor_ids(parent_id):
                    raise ValidationError("parent_id", "parent link would create a cycle")

    def create(self, data: Dict[str, Any], user: Profile):
        self._require_admin(user)
        values = {field: data.get(field) for field in self.fields}
        if values.get("is_active") is None:
            values["is_active"] = True
        self._validate(values)
        values["name"] = values["name"].strip()

        entity = self.model_class(**values, created_by=user.id)
        self.repo.add(entity)
        self.session.flush()
        self.audit.log_audit("create", self.kind, entity.id, None, self._snapshot(entity), user.id)
        self.session.commit()
        logger.info(f"Created {self.kind} {entity.id} '{entity.name}'")
        return entity

    def update(self, entity_id: int, data: Dict[str, Any], user: Profile):
        """Partial update; fields absent from data are kept."""
        self._require_admin(user)
        entity = self.get(entity_id)
        old_values = self._snapshot(entity)

        values = dict(old_values)
        values.update({k: v for k, v in data.items() if k in self.fields})
        self._validate(values, entity_id=entity_id)
        values["name"] = values["name"].strip()

        for field, value in values.items():
            setattr(entity, field, value)
        self.audit.log_audit("update", self.kind, entity.id, old_values, self._snapshot(entity), user.id)
        self.session.commit()
        logger.info(f"Updated {self.kind} {entity.id}")
        return entity

    def delete(self, entity_id: int, user: Profile) -> None:
        self._require_admin(user)
        entity = self.get(entity_id)
        old_values = self._snapshot(entity)
        for column, label in DEPENDENTS[self.kind]:
            count = self.repo.count_referencing(column, entity_id)
            if count:
                logger.warning(f"Refused to delete {self.kind} {entity_id}: used by {count} {label}")
                raise ReferenceInUseError(self.model_class.__name__, entity_id, label, count)
        self.repo.delete(entity)
        self.audit.log_audit("delete", self.kind, entity_id, old_values, None, user.id)
        self.session.commit()
        logger.info(f"Deleted {self.kind} {entity_id}")

    def list_for_customer(self, customer_id: int, active_only: bool = False) -> List[Organization]:
        if self.kind != "organizations":
            raise ValueError("list_for_customer only applies to organizations")
        return self.repo.list_for_customer(customer_id, active_only=active_only)
