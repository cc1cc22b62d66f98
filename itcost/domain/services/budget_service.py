"""
Budget Service - Ledger import and reconciliation against calculations.

Ledger rows are matched to a configuration item when the leading token
of a free-text field equals the item's object number. The calculator
info panel matches on 'mot'; budget comparison matches on 'objekt'
(both configurable).
"""
import logging
from datetime import date
from decimal import Decimal
from typing import Optional, Dict, Any, List

import pandas as pd
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from itcost.config import get_config
from itcost.models import BudgetOutcome, Calculation, ConfigurationItem, Profile
from itcost.infrastructure.repositories import (
    BudgetOutcomeRepository,
    ConfigurationItemRepository,
)
from itcost.domain.entities import LedgerSummary, to_decimal
from itcost.domain.exceptions import PermissionDeniedError, CsvImportError
from itcost.modules.etl import match_ledger_rows
from .calculation_service import CalculationService
from .audit_service import AuditService

logger = logging.getLogger(__name__)


def _cell(value):
    """pandas cell -> plain Python value (NaN becomes None)."""
    if value is None:
        return None
    if not isinstance(value, (str, Decimal)) and pd.isna(value):
        return None
    return value


class BudgetService:
    """Service for budget/outcome ledger data."""

    def __init__(self, session: Session):
        self.session = session
        self.config = get_config()
        self.ledger_repo = BudgetOutcomeRepository(session)
        self.ci_repo = ConfigurationItemRepository(session)
        self.calculations = CalculationService(session)
        self.audit = AuditService(session)

    # =========================================================================
    # Import
    # =========================================================================

    def import_budget_outcomes(
        self,
        df: pd.DataFrame,
        user: Profile,
        label: Optional[str] = None,
        extraction_date: Optional[date] = None,
        replace: bool = False
    ) -> int:
        """
        Insert parsed ledger rows in batches.

        With replace, existing rows are deleted first. The delete and the
        inserts are committed together, so a failed import keeps the old rows.

        Args:
            df: Output of parse_budget_outcome_csv
            user: Importing admin
            label: Optional import label
            extraction_date: Date the ledger was extracted
            replace: Delete existing ledger rows before inserting

        Returns:
            Number of rows inserted
        """
        if not user.is_admin:
            raise PermissionDeniedError("Only admins may import ledger data")
        if df.empty:
            raise CsvImportError("No valid rows were found in the file.")

        batch_size = self.config.budget_import_batch_size
        columns = [c for c in self.config.budget_columns if c in df.columns]
        today = date.today()

        inserted = 0
        records = df[columns].to_dict(orient="records")
        try:
            if replace:
                self._delete_rows(user)
            for start in range(0, len(records), batch_size):
                batch = []
                for record in records[start:start + batch_size]:
                    row = {column: _cell(record[column]) for column in columns}
                    row.update(
                        import_label=label,
                        extraction_date=extraction_date,
                        import_date=today,
                        imported_by=user.id,
                    )
                    batch.append(row)
                inserted += self.ledger_repo.insert_batch(batch)
                logger.info(f"Imported ledger batch {start // batch_size + 1}: {len(batch)} rows")
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"Ledger import failed after {inserted} rows, rolled back: {e}")
            raise

        self.audit.log_audit(
            "import", "budget_outcomes", label or "-", None,
            {"rows": inserted, "label": label, "extraction_date": extraction_date},
            user.id,
        )
        self.session.commit()
        logger.info(f"Ledger import complete: {inserted} rows")
        return inserted

    def _delete_rows(self, user: Profile) -> int:
        removed = self.ledger_repo.delete_all()
        self.audit.log_audit("delete", "budget_outcomes", "*", {"rows": removed}, None, user.id)
        logger.info(f"Deleted {removed} ledger rows")
        return removed

    def delete_all(self, user: Profile) -> int:
        if not user.is_admin:
            raise PermissionDeniedError("Only admins may delete ledger data")
        removed = self._delete_rows(user)
        self.session.commit()
        return removed

    def list_rows(self) -> List[BudgetOutcome]:
        return self.ledger_repo.list_rows()

    # =========================================================================
    # Matching
    # =========================================================================

    def matched_rows(self, object_number: Optional[str], field: str) -> List[BudgetOutcome]:
        if not object_number:
            return []
        return match_ledger_rows(self.ledger_repo.rows_with_field(field), object_number, field)

    def object_summary(self, object_number: str) -> Optional[LedgerSummary]:
        """Ledger totals for an object number on the info-panel field; None when nothing matches."""
        field = self.config.ledger_info_field
        return LedgerSummary.from_rows(object_number, self.matched_rows(object_number, field))

    def _configuration_item_for(self, calculation: Calculation) -> Optional[ConfigurationItem]:
        if calculation.configuration_item_id is not None:
            return self.ci_repo.get_by_id(calculation.configuration_item_id)
        return self.ci_repo.get_by_ci_number(calculation.ci_identity)

    def compare_calculation(
        self,
        calculation_id: int,
        user: Profile,
        version_id: Optional[int] = None
    ) -> Dict[str, Any]:
        """
        Compare a calculation (or one of its versions) with ledger figures.

        Returns:
            Dict with calculation total, ledger sums, differences and the
            matched ledger rows
        """
        calculation = self.calculations.get_visible(calculation_id, user)
        if version_id is not None:
            version = self.calculations.get_version(calculation_id, version_id)
            calculated_total = to_decimal(version.total_cost)
            version_number = version.version
        else:
            calculated_total = to_decimal(calculation.total_cost)
            version_number = calculation.version

        ci = self._configuration_item_for(calculation)
        object_number = ci.object_number if ci else None
        field = self.config.ledger_comparison_field
        rows = self.matched_rows(object_number, field)
        summary = LedgerSummary.from_rows(object_number or "", rows)

        budget_2025 = summary.budget_2025 if summary else Decimal("0.00")
        budget_2026 = summary.budget_2026 if summary else Decimal("0.00")
        utfall_ack = summary.utfall_ack if summary else Decimal("0.00")

        return {
            "calculation_id": calculation.id,
            "version": version_number,
            "ci_identity": calculation.ci_identity,
            "object_number": object_number,
            "calculated_total": calculated_total,
            "budget_2025": budget_2025,
            "budget_2026": budget_2026,
            "utfall_ack": utfall_ack,
            "difference_budget_2026": budget_2026 - calculated_total,
            "difference_utfall": utfall_ack - calculated_total,
            "rows": rows,
        }
