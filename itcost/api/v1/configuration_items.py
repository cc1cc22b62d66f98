"""
Configuration Item API Endpoints.

Implements:
- GET /api/v1/configuration-items - List (active_only filter)
- GET /api/v1/configuration-items/search?q= - Search by CI number or system name
- POST /api/v1/configuration-items/import - Upload a CI CSV (admin)
- GET/POST/PUT/DELETE /api/v1/configuration-items[/{id}]
- GET /api/v1/configuration-items/{id}/ledger-summary - Ledger totals for the item's object number
"""
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile, status
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from itcost.models import get_db, Profile
from itcost.domain.services import ConfigurationItemService, BudgetService
from itcost.domain.exceptions import DomainError
from itcost.modules.etl import decode_upload, parse_configuration_item_csv
from .auth import get_current_active_user, require_admin
from .budget_outcomes import LedgerSummaryResponse
from .errors import to_http

router = APIRouter()


class ConfigurationItemCreate(BaseModel):
    ci_number: str = Field(..., min_length=1, max_length=100)
    system_name: str = Field(..., min_length=1, max_length=300)
    system_owner: Optional[str] = None
    system_administrator: Optional[str] = None
    organization: Optional[str] = None
    object_number: Optional[str] = Field(None, max_length=50)
    is_active: bool = True


class ConfigurationItemUpdate(BaseModel):
    ci_number: Optional[str] = Field(None, min_length=1, max_length=100)
    system_name: Optional[str] = Field(None, min_length=1, max_length=300)
    system_owner: Optional[str] = None
    system_administrator: Optional[str] = None
    organization: Optional[str] = None
    object_number: Optional[str] = None
    is_active: Optional[bool] = None


class ConfigurationItemResponse(BaseModel):
    id: int
    ci_number: str
    system_name: str
    system_owner: Optional[str] = None
    system_administrator: Optional[str] = None
    organization: Optional[str] = None
    object_number: Optional[str] = None
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class SearchHit(BaseModel):
    item: ConfigurationItemResponse
    score: float


class CiImportResult(BaseModel):
    success: int
    failed: int
    errors: List[str]


@router.get("", response_model=List[ConfigurationItemResponse], summary="List configuration items")
def list_items(
    active_only: bool = Query(False),
    db: Session = Depends(get_db),
    current_user: Profile = Depends(get_current_active_user)
):
    return ConfigurationItemService(db).list_items(active_only=active_only)


@router.get("/search", response_model=List[SearchHit], summary="Search configuration items")
def search_items(
    q: str = Query(..., min_length=1),
    active_only: bool = Query(True),
    limit: Optional[int] = Query(None, ge=1, le=200),
    db: Session = Depends(get_db),
    current_user: Profile = Depends(get_current_active_user)
):
    hits = ConfigurationItemService(db).search(q, active_only=active_only, limit=limit)
    return [{"item": item, "score": score} for item, score in hits]


@router.post("/import", response_model=CiImportResult, summary="Import configuration items from CSV")
async def import_items(
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_admin)
):
    content = await file.read()
    try:
        df = parse_configuration_item_csv(decode_upload(content))
        return ConfigurationItemService(db).import_items(df, current_user)
    except DomainError as e:
        raise to_http(e)


@router.get("/{item_id}", response_model=ConfigurationItemResponse)
def get_item(
    item_id: int,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(get_current_active_user)
):
    try:
        return ConfigurationItemService(db).get_item(item_id)
    except DomainError as e:
        raise to_http(e)


@router.get(
    "/{item_id}/ledger-summary",
    response_model=Optional[LedgerSummaryResponse],
    summary="Ledger totals for the item's object number"
)
def ledger_summary(
    item_id: int,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(get_current_active_user)
):
    try:
        item = ConfigurationItemService(db).get_item(item_id)
    except DomainError as e:
        raise to_http(e)
    if not item.object_number:
        return None
    return BudgetService(db).object_summary(item.object_number)


@router.post("", response_model=ConfigurationItemResponse, status_code=status.HTTP_201_CREATED)
def create_item(
    data: ConfigurationItemCreate,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_admin)
):
    try:
        return ConfigurationItemService(db).create_item(data.model_dump(), current_user)
    except DomainError as e:
        raise to_http(e)


@router.put("/{item_id}", response_model=ConfigurationItemResponse)
def update_item(
    item_id: int,
    data: ConfigurationItemUpdate,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_admin)
):
    try:
        return ConfigurationItemService(db).update_item(item_id, data.model_dump(exclude_unset=True), current_user)
    except DomainError as e:
        raise to_http(e)


@router.delete("/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_item(
    item_id: int,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_admin)
):
    try:
        ConfigurationItemService(db).delete_item(item_id, current_user)
    except DomainError as e:
        raise to_http(e)
