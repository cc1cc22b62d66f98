"""
Reference Data API Endpoints - customers, organizations, owning organizations.

Each kind gets the same routes:
- GET /api/v1/<kind>?active_only=true
- GET /api/v1/<kind>/{id}
- POST /api/v1/<kind> (admin)
- PUT /api/v1/<kind>/{id} (admin)
- DELETE /api/v1/<kind>/{id} (admin)

Organizations also support GET /api/v1/organizations/by-customer/{customer_id}.
"""
from datetime import datetime
from typing import List, Optional, Type

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from itcost.models import get_db, Profile
from itcost.domain.services import ReferenceDataService
from itcost.domain.exceptions import DomainError
from .auth import get_current_active_user, require_admin
from .errors import to_http


# =============================================================================
# Pydantic Models
# =============================================================================

class NamedCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    is_active: bool = True


class NamedUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    is_active: Optional[bool] = None


class NamedResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class OrganizationCreate(NamedCreate):
    customer_id: Optional[int] = None
    parent_id: Optional[int] = None


class OrganizationUpdate(NamedUpdate):
    customer_id: Optional[int] = None
    parent_id: Optional[int] = None


class OrganizationResponse(NamedResponse):
    customer_id: Optional[int] = None
    parent_id: Optional[int] = None


# =============================================================================
# Router factory
# =============================================================================

def build_router(
    kind: str,
    create_model: Type[BaseModel],
    update_model: Type[BaseModel],
    response_model: Type[BaseModel]
) -> APIRouter:
    """Build the CRUD routes for one reference data kind."""
    router = APIRouter()

    @router.get("", response_model=List[response_model])
    def list_entities(
        active_only: bool = Query(False),
        db: Session = Depends(get_db),
        current_user: Profile = Depends(get_current_active_user)
    ):
        return ReferenceDataService(db, kind).list_entities(active_only=active_only)

    @router.get("/{entity_id}", response_model=response_model)
    def get_entity(
        entity_id: int,
        db: Session = Depends(get_db),
        current_user: Profile = Depends(get_current_active_user)
    ):
        try:
            return ReferenceDataService(db, kind).get(entity_id)
        except DomainError as e:
            raise to_http(e)

    @router.post("", response_model=response_model, status_code=status.HTTP_201_CREATED)
    def create_entity(
        data: create_model,
        db: Session = Depends(get_db),
        current_user: Profile = Depends(require_admin)
    ):
        try:
            return ReferenceDataService(db, kind).create(data.model_dump(), current_user)
        except DomainError as e:
            raise to_http(e)

    @router.put("/{entity_id}", response_model=response_model)
    def update_entity(
        entity_id: int,
        data: update_model,
        db: Session = Depends(get_db),
        current_user: Profile = Depends(require_admin)
    ):
        try:
            return ReferenceDataService(db, kind).update(
                entity_id, data.model_dump(exclude_unset=True), current_user
            )
        except DomainError as e:
            raise to_http(e)

    @router.delete("/{entity_id}", status_code=status.HTTP_204_NO_CONTENT)
    def delete_entity(
        entity_id: int,
        db: Session = Depends(get_db),
        current_user: Profile = Depends(require_admin)
    ):
        try:
            ReferenceDataService(db, kind).delete(entity_id, current_user)
        except DomainError as e:
            raise to_http(e)

    return router


customers_router = build_router("customers", NamedCreate, NamedUpdate, NamedResponse)
owning_organizations_router = build_router("owning_organizations", NamedCreate, NamedUpdate, NamedResponse)
organizations_router = build_router("organizations", OrganizationCreate, OrganizationUpdate, OrganizationResponse)


@organizations_router.get("/by-customer/{customer_id}", response_model=List[OrganizationResponse])
def organizations_for_customer(
    customer_id: int,
    active_only: bool = Query(False),
    db: Session = Depends(get_db),
    current_user: Profile = Depends(get_current_active_user)
):
    return ReferenceDataService(db, "organizations").list_for_customer(customer_id, active_only=active_only)
