"""
User Service - Sign-in, passwords and user administration.

Administration rules:
- Only admins and superadmins may create users, reset passwords or
  change user settings
- Only a superadmin may create, modify or reset a superadmin, or grant
  the superadmin role
"""
import logging
from datetime import datetime
from typing import Optional, List, Dict, Any

from sqlalchemy.orm import Session

from itcost.config import get_config
from itcost.models import Profile, AppRole, PermissionLevel
from itcost.infrastructure.repositories import UserRepository
from itcost.infrastructure.security import hash_password, verify_password, create_access_token
from itcost.domain.exceptions import (
    AuthenticationError,
    DuplicateUserError,
    EntityNotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from .audit_service import AuditService

logger = logging.getLogger(__name__)

ROLES = tuple(r.value for r in AppRole)
PERMISSION_LEVELS = tuple(p.value for p in PermissionLevel)


def settings_snapshot(user: Profile) -> Dict[str, Any]:
    return {
        "role": user.role_name,
        "permissionLevel": user.permission_level,
        "canApprove": user.can_approve,
        "approvalOrganizations": list(user.approval_organizations or []),
    }


class UserService:
    """Service for identities and user administration."""

    def __init__(self, session: Session):
        self.session = session
        self.config = get_config()
        self.user_repo = UserRepository(session)
        self.audit = AuditService(session)

    # =========================================================================
    # Sign-in
    # =========================================================================

    def authenticate(self, email: str, password: str) -> Profile:
        user = self.user_repo.get_by_email(email or "")
        if user is None or not verify_password(password or "", user.password_hash):
            logger.warning(f"Failed sign-in for {email}")
            raise AuthenticationError("Invalid email or password")
        return user

    def login(self, email: str, password: str) -> Dict[str, Any]:
        """
        Verify credentials and issue an access token.

        Returns:
            {'access_token', 'token_type', 'user'}
        """
        user = self.authenticate(email, password)
        user.last_login_at = datetime.utcnow()
        self.session.commit()
        token = create_access_token(user.id, user.role_name)
        logger.info(f"User {user.id} signed in")
        return {"access_token": token, "token_type": "bearer", "user": user}

    def get_user(self, user_id: int) -> Profile:
        user = self.user_repo.get_by_id(user_id)
        if user is None:
            raise EntityNotFoundError("Profile", user_id)
        return user

    def _check_password(self, password: str) -> None:
        minimum = self.config.min_password_length
        if not password or len(password) < minimum:
            raise ValidationError("password", f"must be at least {minimum} characters")

    def change_password(self, user: Profile, current_password: str, new_password: str) -> None:
        if not verify_password(current_password or "", user.password_hash):
            raise AuthenticationError("Current password is incorrect")
        self._check_password(new_password)
        user.password_hash = hash_password(new_password)
        self.audit.log_audit("update", "profiles", user.id, None, {"password": "changed"}, user.id)
        self.session.commit()
        logger.info(f"User {user.id} changed password")

    # =========================================================================
    # Administration
    # =========================================================================

    @staticmethod
    def _require_admin(actor: Profile) -> None:
        if not actor.is_admin:
            raise PermissionDeniedError("Only admins may manage users")

    def list_users(self, actor: Profile) -> List[Profile]:
        self._require_admin(actor)
        return self.user_repo.list_users()

    def create_user(
        self,
        actor: Profile,
        email: str,
        password: str,
        full_name: Optional[str] = None,
        role: Optional[str] = None,
        permission_level: Optional[str] = None,
        can_approve: bool = False,
        approval_organizations: Optional[List[str]] = None
    ) -> Profile:
        self._require_admin(actor)
        role = role or self.config.default_role
        permission_level = permission_level or self.config.default_permission_level
        if role not in ROLES:
            raise ValidationError("role", f"must be one of {', '.join(ROLES)}")
        if permission_level not in PERMISSION_LEVELS:
            raise ValidationError("permission_level", f"must be one of {', '.join(PERMISSION_LEVELS)}")
        if role == AppRole.SUPERADMIN.value and not actor.is_superadmin:
            raise PermissionDeniedError("Only a superadmin can create a superadmin")

        email = (email or "").strip()
        if "@" not in email:
            raise ValidationError("email", "must be a valid email address")
        if self.user_repo.get_by_email(email) is not None:
            raise DuplicateUserError(email)
        self._check_password(password)

        user = Profile(
            email=email,
            full_name=full_name,
            password_hash=hash_password(password),
            permission_level=permission_level,
            can_approve=bool(can_approve),
            approval_organizations=list(approval_organizations or []),
        )
        self.user_repo.add(user)
        self.session.flush()
        self.user_repo.set_role(user, role)
        self.audit.log_audit(
            "create", "profiles", user.id, None,
            {"email": email, "role": role, "permissionLevel": permission_level}, actor.id,
        )
        self.session.commit()
        logger.info(f"User {actor.id} created user {user.id} with role {role}")
        return user

    def reset_password(self, actor: Profile, email: str, new_password: str) -> Profile:
        """
        Set a new password for the user with the given email.

        Raises:
            EntityNotFoundError: No user with that email
        """
        self._require_admin(actor)
        self._check_password(new_password)
        target = self.user_repo.get_by_email(email or "")
        if target is None:
            raise EntityNotFoundError("Profile", email)
        if target.is_superadmin and not actor.is_superadmin:
            raise PermissionDeniedError("Only a superadmin can reset a superadmin's password")

        target.password_hash = hash_password(new_password)
        self.audit.log_audit("update", "profiles", target.id, None, {"password": "reset"}, actor.id)
        self.session.commit()
        logger.info(f"User {actor.id} reset password for user {target.id}")
        return target

    def update_settings(
        self,
        actor: Profile,
        user_id: int,
        role: Optional[str] = None,
        permission_level: Optional[str] = None,
        can_approve: Optional[bool] = None,
        approval_organizations: Optional[List[str]] = None
    ) -> Profile:
        """Change role, permission level and approval scope; None leaves a setting unchanged."""
        self._require_admin(actor)
        target = self.get_user(user_id)

        if target.is_superadmin and not actor.is_superadmin:
            raise PermissionDeniedError("Only a superadmin can modify a superadmin")
        if role is not None and role not in ROLES:
            raise ValidationError("role", f"must be one of {', '.join(ROLES)}")
        if role == AppRole.SUPERADMIN.value and not actor.is_superadmin:
            raise PermissionDeniedError("Only a superadmin can grant the superadmin role")
        if permission_level is not None and permission_level not in PERMISSION_LEVELS:
            raise ValidationError("permission_level", f"must be one of {', '.join(PERMISSION_LEVELS)}")

        old_values = settings_snapshot(target)
        if role is not None:
            self.user_repo.set_role(target, role)
        if permission_level is not None:
            target.permission_level = permission_level
        if can_approve is not None:
            target.can_approve = can_approve
        if approval_organizations is not None:
            target.approval_organizations = list(approval_organizations)

        self.audit.log_audit("update", "user_settings", target.id, old_values, settings_snapshot(target), actor.id)
        self.session.commit()
        logger.info(f"User {actor.id} updated settings for user {target.id}")
        return target
