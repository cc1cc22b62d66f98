"""
Analytics API Endpoints - aggregated cost figures.

Implements:
- GET /api/v1/analytics/summary?year= - Totals per service type and price type
"""
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from itcost.models import get_db, Profile
from itcost.domain.services import AnalyticsService
from .auth import get_current_active_user

router = APIRouter()


class ServiceTypeTotal(BaseModel):
    service_type: str
    total: Decimal
    count: int
    share_percent: float


class PriceTypeTotal(BaseModel):
    price_type: str
    quantity: Decimal
    total: Decimal
    count: int


class AnalyticsSummary(BaseModel):
    year: Optional[int] = None
    total_cost: Decimal
    calculation_count: int
    item_count: int
    by_service_type: List[ServiceTypeTotal]
    by_price_type: List[PriceTypeTotal]


@router.get("/summary", response_model=AnalyticsSummary, summary="Cost summary")
def analytics_summary(
    year: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    current_user: Profile = Depends(get_current_active_user)
):
    return AnalyticsService(db).summary(year=year)
