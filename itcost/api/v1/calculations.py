"""
Calculation API Endpoints - saving, lifecycle and version history.

Implements:
- GET /api/v1/calculations - List (admins: all, others: own)
- GET /api/v1/calculations/export.csv - CSV export of the list
- POST /api/v1/calculations - Create
- GET/PUT/DELETE /api/v1/calculations/{id}
- POST /api/v1/calculations/{id}/submit - draft -> pending_approval
- POST /api/v1/calculations/{id}/close - approved -> closed (admin)
- GET /api/v1/calculations/{id}/versions - Version history
- GET /api/v1/calculations/{id}/versions/last-approved
- GET /api/v1/calculations/{id}/comparison - Budget comparison
- GET /api/v1/calculations/{id}/print - Printable HTML sheet
"""
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import HTMLResponse, StreamingResponse
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from itcost.models import get_db, Profile, CalculationStatus
from itcost.domain.services import CalculationService, BudgetService
from itcost.domain.exceptions import DomainError
from itcost.modules.reporting import render_calculation_sheet, calculations_to_csv, sheet_filename
from .auth import get_current_active_user, require_write, require_admin
from .budget_outcomes import BudgetOutcomeResponse
from .errors import to_http

router = APIRouter()


# =============================================================================
# Pydantic Models
# =============================================================================

class CalculationItemCreate(BaseModel):
    """A requested price line. Either price_type or pricing_config_id is required."""
    price_type: Optional[str] = Field(None, max_length=200)
    pricing_config_id: Optional[int] = None
    quantity: Decimal = Field(Decimal("1"), ge=0)
    comment: Optional[str] = None


class CalculationSave(BaseModel):
    """Request model for creating or updating a calculation."""
    name: str = Field(..., min_length=1, max_length=300)
    ci_identity: str = Field(..., min_length=1, max_length=200)
    configuration_item_id: Optional[int] = None
    service_type: str = Field(..., min_length=1)
    customer_id: int
    organization_id: Optional[int] = None
    owning_organization_id: int
    calculation_year: int = Field(..., ge=1900, le=2200)
    cpu_count: Decimal = Field(Decimal("0"), ge=0)
    storage_gb: Decimal = Field(Decimal("0"), ge=0)
    server_count: Decimal = Field(Decimal("0"), ge=0)
    operation_hours: Decimal = Field(Decimal("0"), ge=0)
    status: str = Field(
        CalculationStatus.DRAFT.value,
        pattern="^(draft|pending_approval)$",
        description="Requested status; edits of approved/closed calculations always become pending_approval"
    )
    items: List[CalculationItemCreate] = Field(default_factory=list)


class CalculationItemResponse(BaseModel):
    id: int
    pricing_config_id: Optional[int] = None
    price_type: str
    quantity: Decimal
    unit_price: Decimal
    total_price: Decimal
    comment: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class CalculationSummary(BaseModel):
    """Calculation without its price lines, for lists."""
    id: int
    name: Optional[str] = None
    ci_identity: str
    configuration_item_id: Optional[int] = None
    service_type: str
    customer_id: Optional[int] = None
    organization_id: Optional[int] = None
    owning_organization_id: Optional[int] = None
    municipality: Optional[str] = None
    owning_organization: Optional[str] = None
    calculation_year: int
    total_cost: Decimal
    status: str
    version: int
    user_id: int
    created_by_name: Optional[str] = None
    updated_by_name: Optional[str] = None
    approved_by_name: Optional[str] = None
    approved_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class CalculationResponse(CalculationSummary):
    cpu_count: Decimal
    storage_gb: Decimal
    server_count: Decimal
    operation_hours: Decimal
    cpu_cost: Decimal
    storage_cost: Decimal
    server_cost: Decimal
    operation_cost: Decimal
    items: List[CalculationItemResponse]


class VersionResponse(BaseModel):
    id: int
    calculation_id: int
    version: int
    status: str
    name: Optional[str] = None
    ci_identity: str
    service_type: str
    municipality: Optional[str] = None
    owning_organization: Optional[str] = None
    calculation_year: int
    total_cost: Decimal
    items: List[dict]
    created_by_name: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ComparisonResponse(BaseModel):
    calculation_id: int
    version: int
    ci_identity: str
    object_number: Optional[str] = None
    calculated_total: Decimal
    budget_2025: Decimal
    budget_2026: Decimal
    utfall_ack: Decimal
    difference_budget_2026: Decimal
    difference_utfall: Decimal
    rows: List[BudgetOutcomeResponse]


def _save_payload(data: CalculationSave) -> dict:
    payload = data.model_dump()
    payload["items"] = [item.model_dump() for item in data.items]
    return payload


# =============================================================================
# Endpoints
# =============================================================================

@router.get("", response_model=List[CalculationSummary], summary="List calculations")
def list_calculations(
    year: Optional[int] = Query(None, description="Filter by calculation year"),
    status_filter: Optional[str] = Query(None, alias="status", description="Filter by status"),
    db: Session = Depends(get_db),
    current_user: Profile = Depends(get_current_active_user)
):
    return CalculationService(db).list_for(current_user, year=year, status=status_filter)


@router.get("/export.csv", summary="Export calculation list as CSV")
def export_calculations(
    year: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    current_user: Profile = Depends(get_current_active_user)
):
    calculations = CalculationService(db).list_for(current_user, year=year)
    content = calculations_to_csv(calculations)
    suffix = f"-{year}" if year else ""
    return StreamingResponse(
        iter([content]),
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename=kalkyler{suffix}.csv"}
    )


@router.post(
    "",
    response_model=CalculationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a calculation",
    description="Price the parameters and lines, store the calculation and its first version"
)
def create_calculation(
    data: CalculationSave,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_write)
):
    try:
        return CalculationService(db).save(_save_payload(data), current_user)
    except DomainError as e:
        raise to_http(e)


@router.get("/{calculation_id}", response_model=CalculationResponse, summary="Get a calculation")
def get_calculation(
    calculation_id: int,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(get_current_active_user)
):
    try:
        return CalculationService(db).get_visible(calculation_id, current_user)
    except DomainError as e:
        raise to_http(e)


@router.put(
    "/{calculation_id}",
    response_model=CalculationResponse,
    summary="Update a calculation",
    description="Re-price and store a new version. Approved or closed calculations return to pending_approval."
)
def update_calculation(
    calculation_id: int,
    data: CalculationSave,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_write)
):
    try:
        return CalculationService(db).save(_save_payload(data), current_user, calculation_id=calculation_id)
    except DomainError as e:
        raise to_http(e)


@router.delete("/{calculation_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete a calculation")
def delete_calculation(
    calculation_id: int,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_write)
):
    try:
        CalculationService(db).delete(calculation_id, current_user)
    except DomainError as e:
        raise to_http(e)


@router.post("/{calculation_id}/submit", response_model=CalculationResponse, summary="Submit for approval")
def submit_calculation(
    calculation_id: int,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_write)
):
    try:
        return CalculationService(db).submit(calculation_id, current_user)
    except DomainError as e:
        raise to_http(e)


@router.post("/{calculation_id}/close", response_model=CalculationResponse, summary="Close an approved calculation")
def close_calculation(
    calculation_id: int,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_admin)
):
    try:
        return CalculationService(db).close(calculation_id, current_user)
    except DomainError as e:
        raise to_http(e)


@router.get("/{calculation_id}/versions", response_model=List[VersionResponse], summary="Version history")
def list_versions(
    calculation_id: int,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(get_current_active_user)
):
    service = CalculationService(db)
    try:
        service.get_visible(calculation_id, current_user)
        return service.versions(calculation_id)
    except DomainError as e:
        raise to_http(e)


@router.get(
    "/{calculation_id}/versions/last-approved",
    response_model=Optional[VersionResponse],
    summary="Last approved version"
)
def last_approved_version(
    calculation_id: int,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(get_current_active_user)
):
    service = CalculationService(db)
    try:
        service.get_visible(calculation_id, current_user)
        return service.last_approved_version(calculation_id)
    except DomainError as e:
        raise to_http(e)


@router.get(
    "/{calculation_id}/comparison",
    response_model=ComparisonResponse,
    summary="Compare with budget/outcome",
    description="Compare the calculation (or a chosen version) with ledger rows matched on the CI object number"
)
def compare_calculation(
    calculation_id: int,
    version_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    current_user: Profile = Depends(get_current_active_user)
):
    try:
        return BudgetService(db).compare_calculation(calculation_id, current_user, version_id=version_id)
    except DomainError as e:
        raise to_http(e)


@router.get("/{calculation_id}/print", response_class=HTMLResponse, summary="Printable calculation sheet")
def print_calculation(
    calculation_id: int,
    version_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    current_user: Profile = Depends(get_current_active_user)
):
    calc_service = CalculationService(db)
    budget_service = BudgetService(db)
    try:
        calculation = calc_service.get_visible(calculation_id, current_user)
        version = calc_service.get_version(calculation_id, version_id) if version_id else None
    except DomainError as e:
        raise to_http(e)

    ledger = None
    if calculation.configuration_item and calculation.configuration_item.object_number:
        ledger = budget_service.object_summary(calculation.configuration_item.object_number)

    html = render_calculation_sheet(calculation, ledger_summary=ledger, version=version)
    return HTMLResponse(
        content=html,
        headers={"Content-Disposition": f"inline; filename={sheet_filename(calculation)}"}
    )
