"""
Pricing API Endpoints - price list maintenance and price lookups.

Implements:
- GET /api/v1/pricing - All price rows
- GET /api/v1/pricing/current - One effective row per price type
- GET /api/v1/pricing/options - Default/other rows for a service type
- GET /api/v1/pricing/service-types - Configured service types
- POST /api/v1/pricing/quote - Price parameters and lines without saving
- POST/PUT/DELETE /api/v1/pricing[/{id}] - Admin maintenance
"""
from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from itcost.config import get_config
from itcost.models import get_db, Profile
from itcost.domain.services import PricingService
from itcost.domain.exceptions import DomainError
from .auth import get_current_active_user, require_admin
from .calculations import CalculationItemCreate
from .errors import to_http

router = APIRouter()


# =============================================================================
# Pydantic Models
# =============================================================================

class PricingCreate(BaseModel):
    price_type: str = Field(..., min_length=1, max_length=200)
    price_per_unit: Decimal = Field(..., ge=0)
    unit: Optional[str] = Field(None, max_length=50)
    category: Optional[str] = Field(None, max_length=100)
    comment: Optional[str] = None
    cost_owner: Optional[str] = Field(None, max_length=100)
    ukonto: Optional[str] = Field(None, max_length=50)
    internal_account: Optional[str] = Field(None, max_length=50)
    external_account: Optional[str] = Field(None, max_length=50)
    service_types: List[str] = Field(default_factory=list)
    disallowed_service_types: List[str] = Field(default_factory=list)
    effective_from: date
    effective_to: Optional[date] = None


class PricingUpdate(BaseModel):
    price_type: Optional[str] = Field(None, min_length=1, max_length=200)
    price_per_unit: Optional[Decimal] = Field(None, ge=0)
    unit: Optional[str] = None
    category: Optional[str] = None
    comment: Optional[str] = None
    cost_owner: Optional[str] = None
    ukonto: Optional[str] = None
    internal_account: Optional[str] = None
    external_account: Optional[str] = None
    service_types: Optional[List[str]] = None
    disallowed_service_types: Optional[List[str]] = None
    effective_from: Optional[date] = None
    effective_to: Optional[date] = None


class PricingResponse(BaseModel):
    id: int
    price_type: str
    price_per_unit: Decimal
    unit: Optional[str] = None
    category: Optional[str] = None
    comment: Optional[str] = None
    cost_owner: Optional[str] = None
    ukonto: Optional[str] = None
    internal_account: Optional[str] = None
    external_account: Optional[str] = None
    service_types: Optional[List[str]] = None
    disallowed_service_types: Optional[List[str]] = None
    effective_from: date
    effective_to: Optional[date] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class PricingOptionsResponse(BaseModel):
    service_type: str
    default: Dict[str, List[PricingResponse]]
    other: Dict[str, List[PricingResponse]]


class QuoteRequest(BaseModel):
    cpu_count: Decimal = Field(Decimal("0"), ge=0)
    storage_gb: Decimal = Field(Decimal("0"), ge=0)
    server_count: Decimal = Field(Decimal("0"), ge=0)
    operation_hours: Decimal = Field(Decimal("0"), ge=0)
    items: List[CalculationItemCreate] = Field(default_factory=list)
    on_date: Optional[date] = None


class QuoteLine(BaseModel):
    price_type: str
    pricing_config_id: Optional[int] = None
    quantity: Decimal
    unit_price: Decimal
    total_price: Decimal
    unit: Optional[str] = None
    comment: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class QuoteResponse(BaseModel):
    lines: List[QuoteLine]
    costs: Dict[str, Decimal]
    total: Decimal


# =============================================================================
# Lookups
# =============================================================================

@router.get("", response_model=List[PricingResponse], summary="List price rows")
def list_pricing(
    db: Session = Depends(get_db),
    current_user: Profile = Depends(get_current_active_user)
):
    return PricingService(db).list_pricing()


@router.get("/current", response_model=List[PricingResponse], summary="Effective price per price type")
def current_pricing(
    on_date: Optional[date] = Query(None, description="Date to resolve for (default today)"),
    db: Session = Depends(get_db),
    current_user: Profile = Depends(get_current_active_user)
):
    resolved = PricingService(db).current_pricing(on_date)
    return [resolved[price_type] for price_type in sorted(resolved)]


@router.get("/service-types", response_model=List[str], summary="Configured service types")
def service_types(current_user: Profile = Depends(get_current_active_user)):
    return get_config().service_types


@router.get("/options", response_model=PricingOptionsResponse, summary="Price options for a service type")
def pricing_options(
    service_type: str = Query(...),
    on_date: Optional[date] = Query(None),
    db: Session = Depends(get_db),
    current_user: Profile = Depends(get_current_active_user)
):
    options = PricingService(db).pricing_options(service_type, on_date)
    return {"service_type": service_type, **options}


@router.post("/quote", response_model=QuoteResponse, summary="Price a configuration without saving")
def quote(
    request: QuoteRequest,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(get_current_active_user)
):
    service = PricingService(db)
    try:
        priced = service.price_parameters(request.model_dump(), request.on_date)
        sheet = priced["sheet"]
        for item in request.items:
            sheet.add(service.build_line(
                price_type=item.price_type,
                quantity=item.quantity,
                pricing_config_id=item.pricing_config_id,
                comment=item.comment,
                on_date=request.on_date,
            ))
    except DomainError as e:
        raise to_http(e)
    return {"lines": sheet.lines, "costs": priced["costs"], "total": sheet.total}


# =============================================================================
# Maintenance
# =============================================================================

@router.post("", response_model=PricingResponse, status_code=status.HTTP_201_CREATED, summary="Create a price row")
def create_pricing(
    data: PricingCreate,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_admin)
):
    try:
        return PricingService(db).create_pricing(data.model_dump(), current_user)
    except DomainError as e:
        raise to_http(e)


@router.put("/{pricing_id}", response_model=PricingResponse, summary="Update a price row")
def update_pricing(
    pricing_id: int,
    data: PricingUpdate,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_admin)
):
    try:
        return PricingService(db).update_pricing(pricing_id, data.model_dump(exclude_unset=True), current_user)
    except DomainError as e:
        raise to_http(e)


@router.delete("/{pricing_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete a price row")
def delete_pricing(
    pricing_id: int,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_admin)
):
    try:
        PricingService(db).delete_pricing(pricing_id, current_user)
    except DomainError as e:
        raise to_http(e)
