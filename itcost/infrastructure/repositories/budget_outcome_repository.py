"""
Budget Outcome Repository - Data access for imported ledger rows.
"""
from typing import List, Dict, Any
from sqlalchemy.orm import Session

from itcost.models import BudgetOutcome
from .base_repository import BaseRepository

MATCHABLE_FIELDS = ("objekt", "mot")


class BudgetOutcomeRepository(BaseRepository[BudgetOutcome]):
    """Repository for BudgetOutcome rows."""

    def __init__(self, session: Session):
        super().__init__(session, BudgetOutcome)

    def list_rows(self) -> List[BudgetOutcome]:
        return self.session.query(BudgetOutcome).order_by(
            BudgetOutcome.ansvar, BudgetOutcome.id
        ).all()

    def rows_with_field(self, field: str) -> List[BudgetOutcome]:
        """
        Rows where a free-text match field is set.

        Args:
            field: One of 'objekt', 'mot'
        """
        if field not in MATCHABLE_FIELDS:
            raise ValueError(f"Unsupported ledger match field: {field}")
        column = getattr(BudgetOutcome, field)
        return self.session.query(BudgetOutcome).filter(column.isnot(None)).all()

    def insert_batch(self, records: List[Dict[str, Any]]) -> int:
        """Insert a batch of row dicts; returns number inserted."""
        self.session.add_all([BudgetOutcome(**record) for record in records])
        self.session.flush()
        return len(records)

    def delete_all(self) -> int:
        """Delete every ledger row; returns number deleted."""
        return self.session.query(BudgetOutcome).delete(synchronize_session=False)
