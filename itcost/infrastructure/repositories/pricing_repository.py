"""
Pricing Repository - Data access for dated price list rows.
"""
from datetime import date
from typing import List, Optional, Iterable
from sqlalchemy import or_
from sqlalchemy.orm import Session

from itcost.models import PricingConfig
from .base_repository import BaseRepository


class PricingRepository(BaseRepository[PricingConfig]):
    """Repository for PricingConfig rows."""

    def __init__(self, session: Session):
        super().__init__(session, PricingConfig)

    def list_ordered(self) -> List[PricingConfig]:
        """All price rows ordered by category, then price type."""
        return self.session.query(PricingConfig).order_by(
            PricingConfig.category, PricingConfig.price_type, PricingConfig.effective_from.desc()
        ).all()

    def effective_on(self, on_date: date, price_type: Optional[str] = None) -> List[PricingConfig]:
        """
        Rows whose effective range covers a date, latest effective_from first.

        Args:
            on_date: Date the range must cover
            price_type: Optionally restrict to one price type
        """
        query = self.session.query(PricingConfig).filter(
            PricingConfig.effective_from <= on_date,
            or_(PricingConfig.effective_to.is_(None), PricingConfig.effective_to >= on_date)
        )
        if price_type is not None:
            query = query.filter(PricingConfig.price_type == price_type)
        return query.order_by(PricingConfig.effective_from.desc(), PricingConfig.id.desc()).all()

    def get_many(self, ids: Iterable[int]) -> List[PricingConfig]:
        ids = [i for i in ids if i is not None]
        if not ids:
            return []
        return self.session.query(PricingConfig).filter(PricingConfig.id.in_(ids)).all()
