"""
Budget/Outcome API Endpoints - ledger import and lookups.

Implements:
- POST /api/v1/budget-outcomes/import - Upload a ledger CSV (admin)
- GET /api/v1/budget-outcomes - List ledger rows
- DELETE /api/v1/budget-outcomes - Delete every ledger row (admin)
- GET /api/v1/budget-outcomes/summary/{object_number} - Totals for an object number
"""
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from pydantic import BaseModel, ConfigDict
from sqlalchemy.orm import Session

from itcost.models import get_db, Profile
from itcost.domain.services import BudgetService
from itcost.domain.exceptions import DomainError
from itcost.modules.etl import decode_upload, parse_budget_outcome_csv
from .auth import get_current_active_user, require_admin
from .errors import to_http

router = APIRouter()


class BudgetOutcomeResponse(BaseModel):
    id: int
    ansvar: Optional[str] = None
    ukonto: Optional[str] = None
    vht: Optional[str] = None
    akt: Optional[str] = None
    proj: Optional[str] = None
    objekt: Optional[str] = None
    mot: Optional[str] = None
    kgrp: Optional[str] = None
    budget_2025: Optional[Decimal] = None
    utfall_ack: Optional[Decimal] = None
    diff: Optional[Decimal] = None
    budget_2026: Optional[Decimal] = None
    import_label: Optional[str] = None
    extraction_date: Optional[date] = None
    imported_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ImportResult(BaseModel):
    imported: int


class DeleteResult(BaseModel):
    deleted: int


class LedgerSummaryResponse(BaseModel):
    object_number: str
    budget_2025: Decimal
    budget_2026: Decimal
    utfall_ack: Decimal
    diff: Decimal
    row_count: int

    model_config = ConfigDict(from_attributes=True)


@router.post("/import", response_model=ImportResult, summary="Import a budget/outcome CSV")
async def import_budget_outcomes(
    file: UploadFile = File(...),
    label: Optional[str] = Form(None),
    extraction_date: Optional[date] = Form(None),
    replace: bool = Form(False),
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_admin)
):
    content = await file.read()
    try:
        df = parse_budget_outcome_csv(decode_upload(content))
        imported = BudgetService(db).import_budget_outcomes(
            df, current_user, label=label or file.filename, extraction_date=extraction_date,
            replace=replace,
        )
    except DomainError as e:
        raise to_http(e)
    return {"imported": imported}


@router.get("", response_model=List[BudgetOutcomeResponse], summary="List ledger rows")
def list_budget_outcomes(
    db: Session = Depends(get_db),
    current_user: Profile = Depends(get_current_active_user)
):
    return BudgetService(db).list_rows()


@router.delete("", response_model=DeleteResult, summary="Delete all ledger rows")
def delete_budget_outcomes(
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_admin)
):
    try:
        return {"deleted": BudgetService(db).delete_all(current_user)}
    except DomainError as e:
        raise to_http(e)


@router.get(
    "/summary/{object_number}",
    response_model=Optional[LedgerSummaryResponse],
    summary="Ledger totals for an object number",
    description="Sums over rows whose 'mot' field starts with the object number; null when none match"
)
def object_summary(
    object_number: str,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(get_current_active_user)
):
    return BudgetService(db).object_summary(object_number)
