"""
Analytics Service - Aggregated cost figures for reporting views.

Aggregation is done with pandas over the calculation and price line
tables. Amounts stay Decimal in object-dtype columns and are summed
exactly.
"""
from decimal import Decimal
from typing import Optional, Dict, Any, List

import pandas as pd
from sqlalchemy.orm import Session

from itcost.infrastructure.repositories import CalculationRepository
from itcost.domain.entities import to_decimal


def decimal_sum(values) -> Decimal:
    """Sum Decimal cells without going through float."""
    return sum(values, Decimal("0.00"))


class AnalyticsService:
    def __init__(self, session: Session):
        self.session = session
        self.calc_repo = CalculationRepository(session)

    def _frames(self, year: Optional[int]):
        calculations = self.calc_repo.list_calculations(year=year)
        calc_df = pd.DataFrame(
            [
                {
                    "id": c.id,
                    "service_type": c.service_type,
                    "total_cost": to_decimal(c.total_cost),
                }
                for c in calculations
            ],
            columns=["id", "service_type", "total_cost"],
            dtype=object,
        )
        item_df = pd.DataFrame(
            [
                {
                    "calculation_id": c.id,
                    "price_type": item.price_type,
                    "quantity": to_decimal(item.quantity),
                    "total_price": to_decimal(item.total_price),
                }
                for c in calculations
                for item in c.items
            ],
            columns=["calculation_id", "price_type", "quantity", "total_price"],
            dtype=object,
        )
        return calc_df, item_df

    def summary(self, year: Optional[int] = None) -> Dict[str, Any]:
        """
        Totals per service type and per price type.

        Returns:
            {
                'total_cost', 'calculation_count', 'item_count',
                'by_service_type': [{service_type, total, count, share_percent}],
                'by_price_type': [{price_type, quantity, total, count}],
            }
        """
        calc_df, item_df = self._frames(year)
        total_cost = decimal_sum(calc_df["total_cost"])

        by_service_type: List[Dict[str, Any]] = []
        if not calc_df.empty:
            grouped = calc_df.groupby("service_type").agg(
                total=("total_cost", decimal_sum), count=("id", "count")
            ).reset_index().sort_values(["total", "service_type"], ascending=[False, True])
            for row in grouped.itertuples(index=False):
                share = (row.total / total_cost * 100) if total_cost else Decimal("0")
                by_service_type.append({
                    "service_type": row.service_type,
                    "total": row.total,
                    "count": int(row.count),
                    "share_percent": round(float(share), 1),
                })

        by_price_type: List[Dict[str, Any]] = []
        if not item_df.empty:
            grouped = item_df.groupby("price_type").agg(
                quantity=("quantity", decimal_sum),
                total=("total_price", decimal_sum),
                count=("calculation_id", "count"),
            ).reset_index().sort_values(["total", "price_type"], ascending=[False, True])
            for row in grouped.itertuples(index=False):
                by_price_type.append({
                    "price_type": row.price_type,
                    "quantity": row.quantity,
                    "total": row.total,
                    "count": int(row.count),
                })

        return {
            "year": year,
            "total_cost": total_cost,
            "calculation_count": int(len(calc_df)),
            "item_count": int(len(item_df)),
            "by_service_type": by_service_type,
            "by_price_type": by_price_type,
        }
