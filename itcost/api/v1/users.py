"""
User Administration API Endpoints (admin and superadmin only).

Implements:
- GET /api/v1/users - List users
- POST /api/v1/users/create-user - Create a user with role and permission level
- POST /api/v1/users/reset-user-password - Set a new password by email
- POST /api/v1/users/update-user-settings - Change role, permission level and approval scope
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from itcost.models import get_db, Profile
from itcost.domain.services import UserService
from itcost.domain.exceptions import DomainError
from .auth import require_admin, UserResponse
from .errors import to_http

router = APIRouter()


class CreateUserRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=255)
    password: str
    full_name: Optional[str] = Field(None, max_length=200)
    role: Optional[str] = Field(None, pattern="^(user|admin|superadmin)$")
    permission_level: Optional[str] = Field(None, pattern="^(read_only|read_write)$")
    can_approve: bool = False
    approval_organizations: List[str] = Field(default_factory=list)


class ResetPasswordRequest(BaseModel):
    email: str
    new_password: str


class UpdateUserSettingsRequest(BaseModel):
    user_id: int
    role: Optional[str] = Field(None, pattern="^(user|admin|superadmin)$")
    permission_level: Optional[str] = Field(None, pattern="^(read_only|read_write)$")
    can_approve: Optional[bool] = None
    approval_organizations: Optional[List[str]] = None


class ResetPasswordResponse(BaseModel):
    success: bool
    email: str


@router.get("", response_model=List[UserResponse], summary="List users")
def list_users(
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_admin)
):
    try:
        return UserService(db).list_users(current_user)
    except DomainError as e:
        raise to_http(e)


@router.post(
    "/create-user",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a user"
)
def create_user(
    request: CreateUserRequest,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_admin)
):
    try:
        return UserService(db).create_user(current_user, **request.model_dump())
    except DomainError as e:
        raise to_http(e)


@router.post("/reset-user-password", response_model=ResetPasswordResponse, summary="Reset a user's password")
def reset_user_password(
    request: ResetPasswordRequest,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_admin)
):
    try:
        target = UserService(db).reset_password(current_user, request.email, request.new_password)
    except DomainError as e:
        raise to_http(e)
    return {"success": True, "email": target.email}


@router.post("/update-user-settings", response_model=UserResponse, summary="Update role and approval settings")
def update_user_settings(
    request: UpdateUserSettingsRequest,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_admin)
):
    data = request.model_dump()
    user_id = data.pop("user_id")
    try:
        return UserService(db).update_settings(current_user, user_id, **data)
    except DomainError as e:
        raise to_http(e)
