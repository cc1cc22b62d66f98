"""
Calculation Repository - Data access for calculations, price lines and version history.

Version rows are only ever inserted; this repository has no update or
delete path for them.
"""
from typing import List, Optional
from sqlalchemy.orm import Session

from itcost.models import (
    Calculation, CalculationItem, CalculationVersion, CalculationStatus
)
from .base_repository import BaseRepository


class CalculationRepository(BaseRepository[Calculation]):
    """Repository for Calculation entities."""

    def __init__(self, session: Session):
        super().__init__(session, Calculation)

    def list_calculations(
        self,
        user_id: Optional[int] = None,
        year: Optional[int] = None,
        status: Optional[str] = None
    ) -> List[Calculation]:
        """
        List calculations, newest first.

        Args:
            user_id: Restrict to calculations owned by this user (None = all)
            year: Restrict to a calculation year
            status: Restrict to a status
        """
        query = self.session.query(Calculation)
        if user_id is not None:
            query = query.filter(Calculation.user_id == user_id)
        if year is not None:
            query = query.filter(Calculation.calculation_year == year)
        if status is not None:
            query = query.filter(Calculation.status == status)
        return query.order_by(Calculation.created_at.desc(), Calculation.id.desc()).all()

    def list_pending(self, organizations: Optional[List[str]] = None) -> List[Calculation]:
        """
        Calculations awaiting approval, newest first.

        Args:
            organizations: Owning organization names to restrict to; empty/None = all
        """
        query = self.session.query(Calculation).filter(
            Calculation.status == CalculationStatus.PENDING_APPROVAL.value
        )
        if organizations:
            query = query.filter(Calculation.owning_organization.in_(organizations))
        return query.order_by(Calculation.created_at.desc(), Calculation.id.desc()).all()

    def replace_items(self, calculation: Calculation, items: List[CalculationItem]) -> None:
        """Replace all price lines of a calculation."""
        calculation.items.clear()
        self.session.flush()
        for item in items:
            calculation.items.append(item)

    # =========================================================================
    # Version history
    # =========================================================================

    def append_version(self, version: CalculationVersion) -> CalculationVersion:
        self.session.add(version)
        return version

    def get_versions(self, calculation_id: int) -> List[CalculationVersion]:
        """Version history, highest version (and latest snapshot) first."""
        return self.session.query(CalculationVersion).filter(
            CalculationVersion.calculation_id == calculation_id
        ).order_by(CalculationVersion.version.desc(), CalculationVersion.id.desc()).all()

    def get_version(self, version_id: int) -> Optional[CalculationVersion]:
        return self.session.get(CalculationVersion, version_id)

    def last_approved_version(self, calculation_id: int) -> Optional[CalculationVersion]:
        return self.session.query(CalculationVersion).filter(
            CalculationVersion.calculation_id == calculation_id,
            CalculationVersion.status == CalculationStatus.APPROVED.value
        ).order_by(CalculationVersion.version.desc(), CalculationVersion.id.desc()).first()
