"""
Approval API Endpoints.

Implements:
- GET /api/v1/approvals/pending - Calculations awaiting the current user's approval
- GET /api/v1/approvals/{id}/details - Cost per sub-account next to ledger figures
- POST /api/v1/approvals/{id}/approve - Approve a pending calculation
"""
from decimal import Decimal
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from itcost.models import get_db, Profile
from itcost.domain.services import ApprovalService
from itcost.domain.exceptions import DomainError
from .auth import get_current_active_user
from .calculations import CalculationResponse, CalculationSummary
from .errors import to_http

router = APIRouter()


class LedgerTotals(BaseModel):
    budget_2025: Decimal
    budget_2026: Decimal
    utfall_ack: Decimal


class ApprovalDetailsResponse(BaseModel):
    calculation: CalculationResponse
    object_number: Optional[str] = None
    costs_by_ukonto: Dict[str, Decimal]
    ledger_by_ukonto: Dict[str, LedgerTotals]


@router.get("/pending", response_model=List[CalculationSummary], summary="Pending approvals")
def pending_approvals(
    db: Session = Depends(get_db),
    current_user: Profile = Depends(get_current_active_user)
):
    try:
        return ApprovalService(db).pending_for(current_user)
    except DomainError as e:
        raise to_http(e)


@router.get("/{calculation_id}/details", response_model=ApprovalDetailsResponse, summary="Approval details")
def approval_details(
    calculation_id: int,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(get_current_active_user)
):
    try:
        return ApprovalService(db).approval_details(calculation_id, current_user)
    except DomainError as e:
        raise to_http(e)


@router.post("/{calculation_id}/approve", response_model=CalculationResponse, summary="Approve a calculation")
def approve_calculation(
    calculation_id: int,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(get_current_active_user)
):
    try:
        return ApprovalService(db).approve(calculation_id, current_user)
    except DomainError as e:
        raise to_http(e)
