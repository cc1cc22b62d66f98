"""
Auth API Endpoints - sign-in and the signed-in user's account.

Implements:
- POST /api/v1/auth/login - Exchange email/password for a bearer token
- GET /api/v1/auth/me - Current user profile
- POST /api/v1/auth/change-password - Change own password

Also provides the dependencies other routers use to resolve the
current user from the Authorization header.
"""
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from itcost.models import get_db, Profile
from itcost.infrastructure.security import decode_access_token
from itcost.domain.services import UserService
from itcost.domain.exceptions import DomainError, AuthenticationError
from .errors import to_http

router = APIRouter()

security = HTTPBearer(auto_error=False)


# =============================================================================
# Pydantic Models
# =============================================================================

class LoginRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=1)


class UserResponse(BaseModel):
    """Profile as returned to clients."""
    id: int
    email: str
    full_name: Optional[str] = None
    role_name: str
    permission_level: str
    can_approve: bool
    approval_organizations: Optional[List[str]] = None
    last_login_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse


class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str


# =============================================================================
# Dependencies
# =============================================================================

def get_current_active_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db)
) -> Profile:
    """Resolve the signed-in profile from a bearer token, or respond 401."""
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise to_http(AuthenticationError("Not authenticated"))
    try:
        payload = decode_access_token(credentials.credentials)
    except AuthenticationError as e:
        raise to_http(e)

    user = db.get(Profile, int(payload["sub"]))
    if user is None:
        raise to_http(AuthenticationError("User no longer exists"))
    return user


def require_admin(current_user: Profile = Depends(get_current_active_user)) -> Profile:
    if not current_user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"code": "PERMISSION_DENIED", "message": "Admin role required"}
        )
    return current_user


def require_write(current_user: Profile = Depends(get_current_active_user)) -> Profile:
    if not current_user.has_write_permission:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"code": "PERMISSION_DENIED", "message": "Write permission required"}
        )
    return current_user


# =============================================================================
# Endpoints
# =============================================================================

@router.post(
    "/login",
    response_model=TokenResponse,
    summary="Sign in",
    description="Verify email and password and return a bearer token"
)
def login(credentials: LoginRequest, db: Session = Depends(get_db)):
    try:
        return UserService(db).login(credentials.email, credentials.password)
    except DomainError as e:
        raise to_http(e)


@router.get("/me", response_model=UserResponse, summary="Current user")
def me(current_user: Profile = Depends(get_current_active_user)):
    return current_user


@router.post(
    "/change-password",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Change own password"
)
def change_password(
    request: ChangePasswordRequest,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(get_current_active_user)
):
    try:
        UserService(db).change_password(current_user, request.current_password, request.new_password)
    except DomainError as e:
        raise to_http(e)
