"""
Ledger Summary Entity - totals of budget/outcome rows matched to one object.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional

from .price_line import to_decimal


@dataclass
class LedgerSummary:
    """
    Aggregated ledger figures for a configuration item's object number.

    Attributes:
        object_number: Object number the rows were matched on
        budget_2025: Sum of the 2025 budget column
        budget_2026: Sum of the 2026 budget column
        utfall_ack: Sum of accumulated outcome
        diff: Sum of the diff column
        row_count: Number of matched rows
    """

    object_number: str
    budget_2025: Decimal = Decimal("0.00")
    budget_2026: Decimal = Decimal("0.00")
    utfall_ack: Decimal = Decimal("0.00")
    diff: Decimal = Decimal("0.00")
    row_count: int = 0

    @classmethod
    def from_rows(cls, object_number: str, rows: Iterable) -> Optional["LedgerSummary"]:
        """Sum matched rows; None when nothing matched."""
        summary = cls(object_number=object_number)
        for row in rows:
            summary.budget_2025 += to_decimal(row.budget_2025)
            summary.budget_2026 += to_decimal(row.budget_2026)
            summary.utfall_ack += to_decimal(row.utfall_ack)
            summary.diff += to_decimal(row.diff)
            summary.row_count += 1
        return summary if summary.row_count else None

    def remaining_2025(self) -> Decimal:
        """Budget left after accumulated outcome."""
        return self.budget_2025 - self.utfall_ack

    def trend(self) -> str:
        """'over' when outcome exceeds budget, 'under' when below, else 'on_budget'."""
        remaining = self.remaining_2025()
        if remaining < 0:
            return "over"
        if remaining > 0:
            return "under"
        return "on_budget"
