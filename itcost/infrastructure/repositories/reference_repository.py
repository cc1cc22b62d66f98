"""
Reference Data Repositories - customers, organizations and owning organizations.
"""
from typing import List, Optional
from sqlalchemy.orm import Session

from itcost.models import Customer, Organization, OwningOrganization
from .base_repository import BaseRepository


class _NamedRepository(BaseRepository):
    """Shared listing for reference tables with name and is_active columns."""

    def list_named(self, active_only: bool = False) -> list:
        query = self.session.query(self.model_class)
        if active_only:
            query = query.filter(self.model_class.is_active.is_(True))
        return query.order_by(self.model_class.name).all()

    def get_by_name(self, name: str):
        return self.session.query(self.model_class).filter(
            self.model_class.name == name
        ).first()


class CustomerRepository(_NamedRepository):
    def __init__(self, session: Session):
        super().__init__(session, Customer)


class OwningOrganizationRepository(_NamedRepository):
    def __init__(self, session: Session):
        super().__init__(session, OwningOrganization)


class OrganizationRepository(_NamedRepository):
    """Organizations form a tree via parent_id and belong to a customer."""

    def __init__(self, session: Session):
        super().__init__(session, Organization)

    def list_for_customer(self, customer_id: int, active_only: bool = False) -> List[Organization]:
        query = self.session.query(Organization).filter(Organization.customer_id == customer_id)
        if active_only:
            query = query.filter(Organization.is_active.is_(True))
        return query.order_by(Organization.name).all()

    def ancestor_ids(self, organization_id: Optional[int]) -> List[int]:
        """Walk parent links upward; stops on a repeated id."""
        seen: List[int] = []
        current = self.get_by_id(organization_id) if organization_id else None
        while current is not None and current.id not in seen:
            seen.append(current.id)
            current = current.parent
        return seen
